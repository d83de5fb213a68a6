"""
Centralised error handling — exception hierarchy + FastAPI handlers.

Provides:
    • Delivery errors carrying a ``retryable`` flag
    • Validation errors for malformed SNS events and ARNs
    • Consistent JSON error response format

Usage:
    from backend.app.core.errors import (
        NotifierError,
        DeliveryError,
        PermanentDeliveryError,
        TransientDeliveryError,
        ValidationError,
        register_error_handlers,
    )

    raise ValidationError("Record has no Sns section", field="Records[0].Sns")
"""

from __future__ import annotations

import logging
import traceback
from typing import Any, Dict, Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from backend.app.core.config import settings

logger = logging.getLogger(__name__)


# ═══════════════════════════════════════════════════════════════════════════
# Exception Hierarchy
# ═══════════════════════════════════════════════════════════════════════════

class NotifierError(Exception):
    """Base exception for all application errors."""

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        *,
        status_code: int = 500,
        error_code: str = "INTERNAL_ERROR",
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.error_code = error_code
        self.details = details or {}


class ValidationError(NotifierError):
    """Incoming event could not be understood (422)."""

    def __init__(self, message: str, *, field: Optional[str] = None, **details: Any):
        d = {**details}
        if field:
            d["field"] = field
        super().__init__(
            message=message,
            status_code=422,
            error_code="VALIDATION_ERROR",
            details=d,
        )


class DeliveryError(NotifierError):
    """
    Teams webhook delivery failed (502).

    ``retryable`` defaults to True; only errors that explicitly opt out
    stop the retry loop early.
    """

    retryable: bool = True

    def __init__(
        self,
        message: str,
        *,
        error_code: str = "DELIVERY_ERROR",
        status: Optional[int] = None,
        status_message: str = "",
        body: str = "",
        attempts: int = 0,
    ):
        details: Dict[str, Any] = {"attempts": attempts}
        if status is not None:
            details["http_status"] = status
            details["status_message"] = status_message
            details["body"] = body
        super().__init__(
            message=message,
            status_code=502,
            error_code=error_code,
            details=details,
        )
        self.http_status = status
        self.status_message = status_message
        self.body = body
        self.attempts = attempts


class PermanentDeliveryError(DeliveryError):
    """Webhook rejected the message with a 4xx status; never retried."""

    retryable = False

    def __init__(self, status: int, status_message: str, body: str, *, attempts: int = 1):
        super().__init__(
            f"Teams API reports bad request [HTTP:{status}] {status_message}: {body}",
            error_code="DELIVERY_REJECTED",
            status=status,
            status_message=status_message,
            body=body,
            attempts=attempts,
        )


class TransientDeliveryError(DeliveryError):
    """Last transient failure once the attempt budget is spent."""

    def __init__(
        self,
        reason: str,
        *,
        status: Optional[int] = None,
        status_message: str = "",
        body: str = "",
        attempts: int = 0,
    ):
        if status is not None:
            message = f"Teams API error [HTTP:{status}]: {body}"
        else:
            message = f"Teams API unreachable: {reason}"
        super().__init__(
            message,
            error_code="DELIVERY_FAILED",
            status=status,
            status_message=status_message,
            body=body,
            attempts=attempts,
        )
        self.reason = reason


# ═══════════════════════════════════════════════════════════════════════════
# Error Response Builder
# ═══════════════════════════════════════════════════════════════════════════

def _build_error_response(
    status_code: int,
    error_code: str,
    message: str,
    details: Optional[Dict[str, Any]] = None,
    request: Optional[Request] = None,
) -> JSONResponse:
    """Build a consistent JSON error response."""
    body: Dict[str, Any] = {
        "error": {
            "code": error_code,
            "message": message,
            "status": status_code,
        }
    }

    if details:
        body["error"]["details"] = details

    if request and not settings.is_production:
        body["error"]["path"] = str(request.url.path)

    return JSONResponse(status_code=status_code, content=body)


# ═══════════════════════════════════════════════════════════════════════════
# FastAPI Exception Handlers
# ═══════════════════════════════════════════════════════════════════════════

def register_error_handlers(app: FastAPI) -> None:
    """Register all exception handlers on the FastAPI app."""

    @app.exception_handler(NotifierError)
    async def handle_notifier_error(request: Request, exc: NotifierError):
        logger.error(
            "Notifier error [%s]: %s | details=%s",
            exc.error_code, exc.message, exc.details,
        )
        return _build_error_response(
            exc.status_code, exc.error_code, exc.message,
            exc.details, request,
        )

    @app.exception_handler(Exception)
    async def handle_unhandled(request: Request, exc: Exception):
        logger.critical(
            "Unhandled exception: %s\n%s",
            exc, traceback.format_exc(),
        )
        message = str(exc) if settings.DEBUG else "Internal server error"
        return _build_error_response(
            500, "INTERNAL_ERROR", message, request=request,
        )
