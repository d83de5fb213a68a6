"""
Request middleware — correlation IDs and per-request log lines.

SNS HTTP(S) subscriptions send ``x-amz-sns-message-id``; when present it
is added to the log context so every delivery log line can be traced back
to the originating notification.
"""

from __future__ import annotations

import logging
import time
import uuid

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from backend.app.core.logging_config import set_request_context

logger = logging.getLogger(__name__)

SNS_MESSAGE_ID_HEADER = "x-amz-sns-message-id"


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Tag each request with a request id and log its outcome and duration."""

    async def dispatch(self, request: Request, call_next) -> Response:
        request_id = request.headers.get("X-Request-ID", uuid.uuid4().hex[:16])
        path = request.url.path

        context = {"request_id": request_id, "endpoint": path}
        sns_message_id = request.headers.get(SNS_MESSAGE_ID_HEADER)
        if sns_message_id:
            context["sns_message_id"] = sns_message_id
        set_request_context(**context)

        start = time.perf_counter()
        try:
            response = await call_next(request)
            duration_ms = (time.perf_counter() - start) * 1000

            response.headers["X-Request-ID"] = request_id

            if path.startswith("/api/"):
                log_level = logging.WARNING if response.status_code >= 400 else logging.INFO
                logger.log(
                    log_level,
                    "%s %s → %d (%.1fms)",
                    request.method, path, response.status_code, duration_ms,
                    extra={
                        "duration_ms": duration_ms,
                        "status_code": response.status_code,
                        "endpoint": path,
                    },
                )
            return response
        finally:
            set_request_context()
