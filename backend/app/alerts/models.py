"""
models.py — Shared data structures for the Teams alert relay.

Defines:
    • AttachmentField  — one row of the two-column field table
    • Attachment       — generic alert description, input to the card renderer
    • DeliveryResult   — raw description of one webhook response
    • Delivered / PermanentFailure / TransientFailure — closed outcome of
      one delivery attempt (DeliveryOutcome)

═══════════════════════════════════════════════════════════════════════════
OUTCOME CLASSIFICATION
═══════════════════════════════════════════════════════════════════════════

    HTTP status      Outcome             Retry?
    ───────────      ────────────────    ──────
    200–299          Delivered           stop, success
    400–499          PermanentFailure    stop, fail
    anything else    TransientFailure    back off and retry
    no response      TransientFailure    back off and retry
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional, Union


# ═══════════════════════════════════════════════════════════════════════════
# Attachment
# ═══════════════════════════════════════════════════════════════════════════

@dataclass
class AttachmentField:
    """A title/value pair rendered as one row of the field table."""
    title: str
    value: str = ""


@dataclass
class Attachment:
    """
    Alert description before rendering.

    Attributes
    ----------
    author_name : str
        Header line (usually the originating AWS service).
    title, title_link : str
        Card title and the link it points to.
    text : str
        Body text.
    fields : list of AttachmentField
        Rendered positionally; order is preserved.
    footer : str | None
        Right-aligned footer; omitted from the card when empty.
    image_url : str | None
        Optional image block.
    color : str | None
        Semantic severity ("critical", "warning", "ok") or a Teams colour.
    ts : int | datetime | None
        Epoch seconds; filled in by ``attachment_with_defaults``.
    """
    author_name: str = ""
    title: str = ""
    title_link: str = ""
    text: str = ""
    fields: List[AttachmentField] = field(default_factory=list)
    footer: Optional[str] = None
    image_url: Optional[str] = None
    color: Optional[str] = None
    ts: Optional[Union[int, datetime]] = None


# ═══════════════════════════════════════════════════════════════════════════
# Delivery
# ═══════════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class DeliveryResult:
    """Raw webhook response; opaque to the renderer."""
    body: str
    status_code: int
    status_message: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "body": self.body,
            "status_code": self.status_code,
            "status_message": self.status_message,
        }


@dataclass(frozen=True)
class Delivered:
    """2xx: the webhook accepted the message."""
    result: DeliveryResult


@dataclass(frozen=True)
class PermanentFailure:
    """4xx: the webhook rejected the message; retrying cannot help."""
    result: DeliveryResult

    retryable = False


@dataclass(frozen=True)
class TransientFailure:
    """Any other status, or no response at all."""
    reason: str
    result: Optional[DeliveryResult] = None

    retryable = True


DeliveryOutcome = Union[Delivered, PermanentFailure, TransientFailure]
