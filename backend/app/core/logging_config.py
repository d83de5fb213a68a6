"""
Structured logging configuration.

Production output is one JSON object per line, which CloudWatch Logs
Insights can filter on directly (``filter sns_message_id = "..."``).
Development output is a coloured single line tagged with the request and
SNS message ids.

The request context is a ContextVar set by the request middleware and
extended by the notify route once per SNS record.

Usage:
    import logging
    from backend.app.core.logging_config import setup_logging

    setup_logging()
    logger = logging.getLogger(__name__)
    logger.warning("Retrying delivery", extra={"attempt": 1, "wait_ms": 400})
"""

from __future__ import annotations

import json
import logging
import sys
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from backend.app.core.config import settings

_request_context: ContextVar[Dict[str, Any]] = ContextVar(
    "request_context", default={}
)

# Context keys lifted to the top level of JSON lines
CONTEXT_FIELDS = ("request_id", "sns_message_id")

# Record attributes passed via ``extra=`` that JSON lines keep
EXTRA_FIELDS = (
    "attempt", "max_attempts", "wait_ms", "status_code", "status_message",
    "topic", "message_id", "duration_ms", "endpoint",
)

NOISY_LOGGERS = ("uvicorn.access", "httpx", "httpcore", "botocore", "boto3", "urllib3")


def set_request_context(**kwargs: Any) -> None:
    """Replace the request context; call with no arguments to clear it."""
    _request_context.set(kwargs)


def update_request_context(**kwargs: Any) -> None:
    """Merge keys into the current request context."""
    _request_context.set({**_request_context.get(), **kwargs})


def get_request_context() -> Dict[str, Any]:
    return _request_context.get()


class JSONFormatter(logging.Formatter):
    """One JSON object per record."""

    def format(self, record: logging.LogRecord) -> str:
        ctx = get_request_context()
        entry: Dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for key in CONTEXT_FIELDS:
            if ctx.get(key):
                entry[key] = ctx[key]
        entry.update(
            (key, getattr(record, key)) for key in EXTRA_FIELDS if hasattr(record, key)
        )
        entry["source"] = f"{record.module}.{record.funcName}:{record.lineno}"

        if record.exc_info and record.exc_info[1]:
            exc = record.exc_info[1]
            entry["exception"] = {"type": type(exc).__name__, "message": str(exc)}

        return json.dumps(entry, default=str)


class PrettyFormatter(logging.Formatter):
    """Coloured human-readable format for local development."""

    COLORS = {
        "DEBUG": "\033[36m",
        "INFO": "\033[32m",
        "WARNING": "\033[33m",
        "ERROR": "\033[31m",
        "CRITICAL": "\033[35m",
    }
    RESET = "\033[0m"

    @staticmethod
    def _tags(ctx: Dict[str, Any]) -> str:
        tags = []
        if ctx.get("request_id"):
            tags.append(f"[{ctx['request_id'][:8]}]")
        if ctx.get("sns_message_id"):
            tags.append(f"[sns:{ctx['sns_message_id'][:8]}]")
        return "".join(f" {t}" for t in tags)

    def format(self, record: logging.LogRecord) -> str:
        color = self.COLORS.get(record.levelname, self.RESET)
        line = (
            f"{color}{self.formatTime(record, '%H:%M:%S')} {record.levelname:8s}{self.RESET}"
            f"{self._tags(get_request_context())} {record.name}: {record.getMessage()}"
        )
        if record.exc_info and record.exc_info[1]:
            line += f"\n  {type(record.exc_info[1]).__name__}: {record.exc_info[1]}"
        return line


def setup_logging(json_output: Optional[bool] = None) -> None:
    """
    Install a single stdout handler on the root logger.

    JSON output is used in production unless ``json_output`` says otherwise.
    """
    if json_output is None:
        json_output = settings.is_production

    root = logging.getLogger()
    root.setLevel(getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO))
    root.handlers.clear()

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(JSONFormatter() if json_output else PrettyFormatter())
    root.addHandler(handler)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
