"""
Pydantic schemas for the notify API.

SNS records are passed through as plain dicts; event_def owns their
interpretation so the same code serves Lambda-style and HTTP events.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class SnsEvent(BaseModel):
    """SNS event envelope: ``{"Records": [{"EventSubscriptionArn": ..., "Sns": {...}}]}``."""
    model_config = ConfigDict(extra="allow")

    Records: List[Dict[str, Any]] = Field(
        ..., min_length=1,
        description="SNS records; each becomes one Teams message",
    )


class DeliveryReceipt(BaseModel):
    """Teams response for one delivered record."""
    message_id: Optional[str] = None
    status_code: int
    status_message: str
    body: str = ""


class NotifyResponse(BaseModel):
    delivered: List[DeliveryReceipt]
