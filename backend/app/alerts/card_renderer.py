"""
card_renderer.py — Attachment → Microsoft Teams Adaptive Card.

Card layout (one full-width column inside a single ColumnSet):

    ┌──────────────────────────────────────────────┐
    │ Author name                (severity colour) │
    │ [Title](title_link)                          │
    │──────────────────────────────────────────────│
    │ Body text                                    │
    │ Field title 1   Field value 1                │
    │ Field title 2   Field value 2                │
    │ [image]                          (optional)  │
    │                        footer    (optional)  │
    └──────────────────────────────────────────────┘

Rendering is pure: no I/O, the same attachment always yields the same card.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from backend.app.alerts.models import Attachment
from backend.app.core.config import settings

logger = logging.getLogger(__name__)

CONTENT_TYPE = "application/vnd.microsoft.card.adaptive"
CARD_SCHEMA = "http://adaptivecards.io/schemas/adaptive-card.json"
CARD_VERSION = "1.2"

# Teams colours: default, dark, light, accent, good, warning, attention
COLORS: Dict[str, str] = {
    "critical": "attention",  # #FF324D
    "warning": "warning",     # #FFD602
    "ok": "good",             # #8CC800
}


def format_link(url: str, text: str, *, hide: Optional[bool] = None) -> str:
    """
    Markdown link, or just ``text`` when AWS links are hidden.

    ``hide`` defaults to the HIDE_AWS_LINKS setting.
    """
    if hide is None:
        hide = settings.HIDE_AWS_LINKS
    if hide:
        return text
    return f"[{text}]({url})"


def map_color(color: Optional[str]) -> Optional[str]:
    if color is None:
        return None
    return COLORS.get(color, color)


def text_block(text: str, **props: Any) -> Dict[str, Any]:
    return {"type": "TextBlock", "text": text, **props}


class CardBuilder:
    """Collects card items; optional sections are only added when given a value."""

    def __init__(self) -> None:
        self.items: List[Dict[str, Any]] = []

    def add(self, block: Dict[str, Any]) -> "CardBuilder":
        self.items.append(block)
        return self

    def add_optional(self, value: Optional[str], make_block) -> "CardBuilder":
        if value:
            self.items.append(make_block(value))
        return self

    def build(self) -> Dict[str, Any]:
        body = [{
            "type": "ColumnSet",
            "columns": [{
                "type": "Column",
                "width": "stretch",
                "items": self.items,
            }],
        }]
        return {
            "type": "message",
            "attachments": [{
                "contentType": CONTENT_TYPE,
                "content": {
                    "type": "AdaptiveCard",
                    "$schema": CARD_SCHEMA,
                    "version": CARD_VERSION,
                    "body": body,
                },
            }],
        }


def _header(attachment: Attachment) -> Dict[str, Any]:
    color = map_color(attachment.color)
    if color is None:
        return text_block(attachment.author_name)
    return text_block(attachment.author_name, color=color)


def _field_table(attachment: Attachment) -> Dict[str, Any]:
    # Both columns come from the same ordered list, so row i lines up in each
    titles = [
        text_block(f.title, weight="Bolder", size="Small")
        for f in attachment.fields
    ]
    values = [
        text_block(f.value, size="Small")
        for f in attachment.fields
    ]
    return {
        "type": "ColumnSet",
        "columns": [
            {"type": "Column", "items": titles, "width": "auto", "spacing": "Small"},
            {"type": "Column", "items": values, "width": "stretch"},
        ],
        "spacing": "Small",
    }


def render(attachment: Attachment) -> Dict[str, Any]:
    """
    Render an attachment into a Teams message with one Adaptive Card.

    Parameters
    ----------
    attachment : Attachment

    Returns
    -------
    dict
        ``{"type": "message", "attachments": [card]}``, ready to POST.
    """
    builder = (
        CardBuilder()
        .add(_header(attachment))
        .add(text_block(
            format_link(attachment.title_link, attachment.title),
            wrap=True,
            spacing="Small",
        ))
        .add(text_block(
            attachment.text,
            wrap=True,
            separator=True,
            fontType="Default",
            size="Small",
        ))
        .add(_field_table(attachment))
        .add_optional(attachment.image_url, lambda url: {"type": "Image", "url": url})
        .add_optional(attachment.footer, lambda footer: text_block(
            footer,
            size="Small",
            spacing="Small",
            horizontalAlignment="Right",
            weight="Lighter",
            isSubtle=True,
        ))
    )
    message = builder.build()
    logger.debug("Rendered card: %s", message)
    return message
