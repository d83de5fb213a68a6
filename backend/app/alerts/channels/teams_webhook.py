"""
teams_webhook.py — Microsoft Teams incoming-webhook channel.

Delivery mechanism:
    • One HTTPS POST per attempt, JSON body, explicit Content-Length
    • 3.5 s connect/response timeout (DELIVERY_TIMEOUT_SECONDS)
    • The response is reduced to status code, reason phrase and raw body

Transport errors (DNS, connection reset, timeout) propagate as
``httpx.TransportError``; the retry driver in alert_service treats them
as transient. Everything else is decided by ``classify`` from the status.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Mapping, Optional

import httpx

from backend.app.alerts.models import (
    Delivered,
    DeliveryOutcome,
    DeliveryResult,
    PermanentFailure,
    TransientFailure,
)
from backend.app.core.config import settings

logger = logging.getLogger(__name__)


async def post_json(
    data: Mapping[str, Any],
    endpoint: str,
    *,
    timeout_seconds: Optional[float] = None,
) -> DeliveryResult:
    """
    POST ``data`` as JSON to an HTTPS endpoint.

    Parameters
    ----------
    data : mapping
        JSON-serialisable payload (the Teams message envelope).
    endpoint : str
        Webhook URL.
    timeout_seconds : float | None
        Overrides DELIVERY_TIMEOUT_SECONDS.

    Returns
    -------
    DeliveryResult
        Whatever the server answered, 2xx or not.
    """
    body = json.dumps(data).encode("utf-8")
    logger.debug("POST %d bytes: %s", len(body), body.decode("utf-8"))

    headers = {
        "Content-Type": "application/json",
        "Content-Length": str(len(body)),
    }
    timeout = timeout_seconds if timeout_seconds is not None else settings.DELIVERY_TIMEOUT_SECONDS

    async with httpx.AsyncClient(timeout=timeout) as client:
        response = await client.post(endpoint, content=body, headers=headers)

    return DeliveryResult(
        body=response.text,
        status_code=response.status_code,
        status_message=response.reason_phrase,
    )


def classify(result: DeliveryResult) -> DeliveryOutcome:
    """Map a webhook response to its delivery outcome by status code."""
    if 200 <= result.status_code < 300:
        return Delivered(result)
    if 400 <= result.status_code < 500:
        return PermanentFailure(result)
    return TransientFailure(
        reason=f"HTTP {result.status_code} {result.status_message}".strip(),
        result=result,
    )
