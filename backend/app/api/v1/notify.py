"""
FastAPI route: deliver SNS events to Microsoft Teams.

    POST /api/v1/notify   — render each record as an Adaptive Card and post it

Records are delivered one after another. The first delivery error fails
the whole request; its JSON error body is produced by core.errors.

Records before the failing one have already been posted to Teams by then,
but the error body does not list them: the caller cannot tell which
records were delivered. Redelivering the whole event may duplicate cards.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter

from backend.app.alerts.alert_service import post_message
from backend.app.alerts.event_def import (
    attachment_with_defaults,
    build_attachment,
    get_sns,
    records_from_event,
)
from backend.app.api.schemas import DeliveryReceipt, NotifyResponse, SnsEvent
from backend.app.core.logging_config import update_request_context

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1", tags=["notify"])


@router.post(
    "/notify",
    response_model=NotifyResponse,
    summary="Deliver an SNS event to Teams",
    description=(
        "Builds an attachment per SNS record (CloudWatch alarms get a "
        "dedicated layout), renders it as an Adaptive Card and posts it to "
        "the configured Teams webhook with retry."
    ),
)
async def notify(event: SnsEvent) -> NotifyResponse:
    receipts = []
    for record in records_from_event(event.model_dump()):
        message_id = get_sns(record).get("MessageId")
        update_request_context(sns_message_id=message_id or "")

        attachment = build_attachment(record)
        message = attachment_with_defaults(attachment, record)
        result = await post_message(message)

        receipts.append(DeliveryReceipt(message_id=message_id, **result.to_dict()))

    logger.info("Delivered %d record(s)", len(receipts))
    return NotifyResponse(delivered=receipts)
