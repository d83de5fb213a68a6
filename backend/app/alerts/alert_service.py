"""
alert_service.py — Delivery orchestration for rendered Teams messages.

This is the coordinator that:
    1. Resolves the webhook URL (once per process, see secrets.py)
    2. POSTs the rendered message to Teams
    3. Classifies the response (Delivered / PermanentFailure / TransientFailure)
    4. Retries transient failures with exponential backoff
    5. Returns the accepted response or raises the terminal error

═══════════════════════════════════════════════════════════════════════════
RETRY STRATEGY
═══════════════════════════════════════════════════════════════════════════

    Max attempts    Backoff base    Backoff type
    ────────────    ────────────    ────────────
    3               200 ms          Exponential

Backoff formula, n = number of the attempt that just failed (1-based):
    wait = 200ms × 2^n

    Attempt 1 fails → wait 400 ms → attempt 2
    Attempt 2 fails → wait 800 ms → attempt 3
    Attempt 3 fails → give up, raise TransientDeliveryError

A PermanentFailure (HTTP 4xx) stops the loop at once: the payload or the
webhook URL is wrong and sending it again cannot succeed.

Attempts are strictly sequential. Worst case latency is
400 + 800 ms of waiting plus three network timeouts.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, Mapping, Optional, Tuple

import httpx

from backend.app.alerts.channels import teams_webhook
from backend.app.alerts.models import (
    Delivered,
    DeliveryOutcome,
    DeliveryResult,
    PermanentFailure,
    TransientFailure,
)
from backend.app.alerts.secrets import hook_url
from backend.app.core.config import settings
from backend.app.core.errors import (
    NotifierError,
    PermanentDeliveryError,
    TransientDeliveryError,
)

logger = logging.getLogger(__name__)

Sleep = Callable[[float], Awaitable[Any]]
Operation = Callable[[], Awaitable[DeliveryOutcome]]


def compute_backoff_ms(attempt: int, base_ms: Optional[int] = None) -> int:
    """
    Delay before the attempt following ``attempt``.

    Parameters
    ----------
    attempt : int
        Number of the attempt that just failed (1-based).
    base_ms : int | None
        Overrides RETRY_BACKOFF_BASE_MS.
    """
    base = settings.RETRY_BACKOFF_BASE_MS if base_ms is None else base_ms
    return base * (2 ** attempt)


async def retry(
    max_attempts: int,
    operation: Operation,
    *,
    sleep: Sleep = asyncio.sleep,
    backoff_base_ms: Optional[int] = None,
) -> Tuple[DeliveryOutcome, int]:
    """
    Await ``operation`` until it succeeds, fails permanently or runs out of attempts.

    Returns
    -------
    (DeliveryOutcome, int)
        The last outcome and the number of attempts made.
    """
    attempt = 0
    while True:
        attempt += 1
        outcome = await operation()

        if isinstance(outcome, (Delivered, PermanentFailure)):
            return outcome, attempt
        if attempt >= max_attempts:
            return outcome, attempt

        wait_ms = compute_backoff_ms(attempt, backoff_base_ms)
        logger.warning(
            "[Retryable] attempt#%d, waiting %dms: %s",
            attempt, wait_ms, outcome.reason,
            extra={"attempt": attempt, "max_attempts": max_attempts, "wait_ms": wait_ms},
        )
        await sleep(wait_ms / 1000)


async def _attempt_delivery(message: Mapping[str, Any]) -> DeliveryOutcome:
    """One resolve → POST → classify round; transport errors become TransientFailure."""
    endpoint = await hook_url.get()
    try:
        result = await teams_webhook.post_json(message, endpoint)
    except (httpx.HTTPError, httpx.InvalidURL) as exc:
        return TransientFailure(reason=f"{type(exc).__name__}: {exc}")
    return teams_webhook.classify(result)


async def post_message(
    message: Mapping[str, Any],
    *,
    max_attempts: Optional[int] = None,
    sleep: Sleep = asyncio.sleep,
) -> DeliveryResult:
    """
    Post a rendered message to Teams.

    Parameters
    ----------
    message : mapping
        Output of ``card_renderer.render``.
    max_attempts : int | None
        Overrides DELIVERY_MAX_ATTEMPTS when given; must be at least 1.
    sleep : callable
        Awaitable sleep used between attempts.

    Returns
    -------
    DeliveryResult
        The accepted (2xx) response.

    Raises
    ------
    PermanentDeliveryError
        Teams answered 4xx; sent exactly once.
    TransientDeliveryError
        Every attempt failed transiently; carries the last failure.
    ValueError
        ``max_attempts`` is below 1.
    """
    if not settings.TEAMS_HOOK_URL:
        raise NotifierError(
            "TEAMS_HOOK_URL is not configured",
            error_code="CONFIGURATION_ERROR",
        )

    attempts_allowed = settings.DELIVERY_MAX_ATTEMPTS if max_attempts is None else max_attempts
    if attempts_allowed < 1:
        raise ValueError(f"max_attempts must be at least 1, got {attempts_allowed}")

    outcome, attempts = await retry(
        attempts_allowed,
        lambda: _attempt_delivery(message),
        sleep=sleep,
    )

    if isinstance(outcome, Delivered):
        logger.info(
            "Message posted successfully [HTTP:%d] after %d attempt(s)",
            outcome.result.status_code, attempts,
            extra={"status_code": outcome.result.status_code, "attempt": attempts},
        )
        return outcome.result

    if isinstance(outcome, PermanentFailure):
        result = outcome.result
        logger.error(
            "Teams rejected message [HTTP:%d] %s: %s",
            result.status_code, result.status_message, result.body,
            extra={"status_code": result.status_code, "attempt": attempts},
        )
        raise PermanentDeliveryError(
            result.status_code, result.status_message, result.body,
            attempts=attempts,
        )

    logger.error(
        "Giving up after %d attempt(s): %s", attempts, outcome.reason,
        extra={"attempt": attempts},
    )
    if outcome.result is not None:
        raise TransientDeliveryError(
            outcome.reason,
            status=outcome.result.status_code,
            status_message=outcome.result.status_message,
            body=outcome.result.body,
            attempts=attempts,
        )
    raise TransientDeliveryError(outcome.reason, attempts=attempts)
