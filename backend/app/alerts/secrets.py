"""
secrets.py — One-time resolution of configuration secrets.

The Teams webhook URL can be configured either as the plain URL or as a
KMS-encrypted, base64-encoded blob. Resolution happens lazily on first
use and the result is cached for the lifetime of the process.

═══════════════════════════════════════════════════════════════════════════
WHEN IS A VALUE DECRYPTED?
═══════════════════════════════════════════════════════════════════════════

All of the following must hold, otherwise the value is used as-is:

    1. it is a string
    2. it is longer than 50 characters (ciphertexts are usually 250+)
    3. it contains no whitespace
    4. the caller's validity check passes (for the webhook URL: longer
       than 100 characters and not already an ``http(s)://`` URL)

If KMS fails, the error is logged and the raw value is used. An operator
can always fall back to configuring the plain URL.

═══════════════════════════════════════════════════════════════════════════
SINGLE-FLIGHT
═══════════════════════════════════════════════════════════════════════════

Concurrent first callers share one in-flight resolution; KMS is called
at most once per process no matter how many messages are sent.
"""

from __future__ import annotations

import asyncio
import base64
import logging
import re
from typing import Callable, Optional

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from backend.app.core.config import settings

logger = logging.getLogger(__name__)

MIN_ENCRYPTED_LENGTH = 50
_WHITESPACE = re.compile(r"\s")
_URL_PREFIX = re.compile(r"https?://\w")

Decryptor = Callable[[str], str]
Validator = Callable[[str], bool]


def should_decrypt(blob: object, is_valid: Optional[Validator] = None) -> bool:
    """Return True if ``blob`` looks like an encrypted value worth sending to KMS."""
    return (
        isinstance(blob, str)
        and len(blob) > MIN_ENCRYPTED_LENGTH
        and not _WHITESPACE.search(blob)
        and (is_valid is None or is_valid(blob))
    )


def looks_like_encrypted_hook_url(blob: str) -> bool:
    """Decrypted webhook URLs are well under 100 characters; literal URLs are never decrypted."""
    return len(blob) > 100 and not _URL_PREFIX.search(blob)


def kms_decrypt(blob: str) -> str:
    """Decrypt a base64 KMS ciphertext and return the ASCII plaintext."""
    client = boto3.client("kms", region_name=settings.AWS_REGION)
    response = client.decrypt(CiphertextBlob=base64.b64decode(blob, validate=True))
    return response["Plaintext"].decode("ascii")


class SecretResolver:
    """
    Lazily resolved, process-wide secret.

    Parameters
    ----------
    source : callable
        Returns the raw configured value; read once, at first resolution.
    is_valid : callable | None
        Extra check a value must pass before decryption is attempted.
    decrypt : callable
        Blocking decrypt function; runs in a worker thread.
    """

    def __init__(
        self,
        source: Callable[[], Optional[str]],
        *,
        is_valid: Optional[Validator] = None,
        decrypt: Decryptor = kms_decrypt,
    ):
        self._source = source
        self._is_valid = is_valid
        self._decrypt = decrypt
        self._inflight: Optional[asyncio.Future] = None
        self._resolved = False
        self._value: Optional[str] = None

    async def get(self) -> Optional[str]:
        """Resolve on first call; every later (or concurrent) caller gets the same value."""
        if self._resolved:
            return self._value
        if self._inflight is None:
            self._inflight = asyncio.ensure_future(self._resolve())
        # shield: a cancelled waiter must not cancel the shared resolution
        value = await asyncio.shield(self._inflight)
        self._value = value
        self._resolved = True
        return value

    def reset(self) -> None:
        """Forget the cached value (tests / config reload)."""
        self._inflight = None
        self._resolved = False
        self._value = None

    async def _resolve(self) -> Optional[str]:
        blob = self._source()
        if not should_decrypt(blob, self._is_valid):
            return blob

        try:
            return await asyncio.to_thread(self._decrypt, blob)
        except (BotoCoreError, ClientError, ValueError) as exc:
            logger.error("Error decrypting (using as-is): %s", exc)
            return blob


hook_url = SecretResolver(
    lambda: settings.TEAMS_HOOK_URL,
    is_valid=looks_like_encrypted_hook_url,
)
