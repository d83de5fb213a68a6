"""
event_def.py — SNS event records → Attachment → rendered Teams message.

Handles two kinds of SNS notification:

    • CloudWatch alarm state changes (Message is JSON with ``AlarmName``)
    • Anything else, rendered generically from Subject / Message /
      MessageAttributes

``attachment_with_defaults`` fills in what the builders leave open:

    ts       SNS Timestamp of the record, else now; datetimes become
             integer epoch seconds
    footer   "Received via SNS <topic> | Sign-In", built from the
             record's EventSubscriptionArn
             (arn:aws:sns:region:account-id:topicname:subscriptionid)
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from typing import Any, Dict, List, Mapping, Optional
from urllib.parse import quote

from backend.app.alerts.card_renderer import format_link, render
from backend.app.alerts.models import Attachment, AttachmentField
from backend.app.core.config import settings
from backend.app.core.errors import ValidationError

logger = logging.getLogger(__name__)

TOPIC_VISIBLE_LIMIT = 40
TOPIC_TRUNCATE_TO = 35

# CloudWatch alarm state → attachment colour
ALARM_STATE_COLORS: Dict[str, str] = {
    "ALARM": "critical",
    "INSUFFICIENT_DATA": "warning",
    "OK": "ok",
}

_TIME_FORMATS = ("%Y-%m-%dT%H:%M:%S.%f%z", "%Y-%m-%dT%H:%M:%S%z")


# ═══════════════════════════════════════════════════════════════════════════
# ARNs and console links
# ═══════════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class Arn:
    """Parsed ``arn:partition:service:region:account:suffix``."""
    partition: str
    service: str
    region: str
    account: str
    suffix: str


def parse_arn(arn: str) -> Arn:
    parts = arn.split(":", 5) if isinstance(arn, str) else []
    if len(parts) < 6 or parts[0] != "arn":
        raise ValidationError(f"Not an ARN: {arn!r}", field="arn")
    return Arn(
        partition=parts[1],
        service=parts[2],
        region=parts[3],
        account=parts[4],
        suffix=parts[5],
    )


def console_url(path: str) -> str:
    return f"{settings.AWS_CONSOLE_URL}{path}"


def sns_footer(subscription_arn: str) -> str:
    """Footer linking the SNS topic and the account's sign-in page."""
    arn = parse_arn(subscription_arn)
    topic = arn.suffix.split(":")[0]
    url = console_url(
        f"/sns/v2/home?region={arn.region}"
        f"#/topics/arn:aws:sns:{arn.region}:{arn.account}:{topic}"
    )
    signin = f"https://{arn.account}.signin.aws.amazon.com/console/sns?region={arn.region}"

    if len(topic) > TOPIC_VISIBLE_LIMIT:
        topic_visible = topic[:TOPIC_TRUNCATE_TO] + "..."
    else:
        topic_visible = topic

    sns_link = format_link(url, f"SNS {topic_visible}")
    signin_link = format_link(signin, "Sign-In")
    return f"Received via {sns_link} | {signin_link}"


# ═══════════════════════════════════════════════════════════════════════════
# Record helpers
# ═══════════════════════════════════════════════════════════════════════════

def parse_time(value: Optional[str]) -> Optional[datetime]:
    """Parse SNS / CloudWatch timestamps (``...Z`` or ``...+0000``)."""
    if not value:
        return None
    for fmt in _TIME_FORMATS:
        try:
            return datetime.strptime(value, fmt)
        except ValueError:
            continue
    logger.warning("Unparseable timestamp %r", value)
    return None


def to_epoch(ts: datetime) -> int:
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)
    return int(ts.timestamp())


def get_sns(record: Mapping[str, Any]) -> Mapping[str, Any]:
    sns = record.get("Sns")
    if not isinstance(sns, Mapping):
        raise ValidationError("Record has no Sns section", field="Sns")
    return sns


def records_from_event(event: Mapping[str, Any]) -> List[Mapping[str, Any]]:
    records = event.get("Records")
    if not isinstance(records, list) or not records:
        raise ValidationError("Event contains no records", field="Records")
    return records


def _region_of(arn: Optional[str]) -> Optional[str]:
    if not arn:
        return None
    try:
        return parse_arn(arn).region
    except ValidationError:
        return None


# ═══════════════════════════════════════════════════════════════════════════
# Attachment builders
# ═══════════════════════════════════════════════════════════════════════════

def _load_json(message: str) -> Optional[Dict[str, Any]]:
    try:
        data = json.loads(message)
    except (TypeError, ValueError):
        return None
    return data if isinstance(data, dict) else None


def build_alarm_attachment(alarm: Mapping[str, Any], topic_arn: Optional[str] = None) -> Attachment:
    """CloudWatch alarm state-change notification."""
    name = alarm.get("AlarmName", "")
    state = alarm.get("NewStateValue", "")
    region = _region_of(alarm.get("AlarmArn")) or _region_of(topic_arn) or ""

    trigger = alarm.get("Trigger") or {}
    metric = "/".join(p for p in (trigger.get("Namespace"), trigger.get("MetricName")) if p)

    candidates = [
        ("State", state),
        ("Previous State", alarm.get("OldStateValue")),
        ("Metric", metric),
        ("Region", alarm.get("Region") or region),
        ("Account", alarm.get("AWSAccountId")),
    ]
    fields = [AttachmentField(title, str(value)) for title, value in candidates if value]

    changed_at = parse_time(alarm.get("StateChangeTime"))

    return Attachment(
        author_name="Amazon CloudWatch",
        title=name,
        title_link=console_url(
            f"/cloudwatch/home?region={region}#alarmsV2:alarm/{quote(name, safe='')}"
        ),
        text=alarm.get("NewStateReason") or alarm.get("AlarmDescription") or "",
        fields=fields,
        color=ALARM_STATE_COLORS.get(state),
        ts=to_epoch(changed_at) if changed_at else None,
    )


def build_generic_attachment(sns: Mapping[str, Any]) -> Attachment:
    """Any SNS notification that is not a recognised JSON document."""
    topic_arn = sns.get("TopicArn") or ""
    region = _region_of(topic_arn) or ""
    attributes = sns.get("MessageAttributes") or {}

    return Attachment(
        author_name="Amazon SNS",
        title=sns.get("Subject") or "SNS Notification",
        title_link=console_url(f"/sns/v2/home?region={region}#/topics/{topic_arn}"),
        text=sns.get("Message") or "",
        fields=[
            AttachmentField(name, str((attr or {}).get("Value", "")))
            for name, attr in attributes.items()
        ],
    )


def build_attachment(record: Mapping[str, Any]) -> Attachment:
    sns = get_sns(record)
    payload = _load_json(sns.get("Message", ""))
    if payload and "AlarmName" in payload:
        return build_alarm_attachment(payload, sns.get("TopicArn"))
    return build_generic_attachment(sns)


# ═══════════════════════════════════════════════════════════════════════════
# Defaults + render
# ═══════════════════════════════════════════════════════════════════════════

def attachment_with_defaults(
    attachment: Attachment,
    record: Optional[Mapping[str, Any]] = None,
    *,
    now: Optional[datetime] = None,
) -> Dict[str, Any]:
    """
    Fill default info and return a Teams message.

    Parameters
    ----------
    attachment : Attachment
    record : mapping | None
        The SNS record the attachment came from (source of the timestamp
        and the subscription ARN for the footer).
    now : datetime | None
        Fallback timestamp; defaults to the current UTC time.

    Returns
    -------
    dict
        Rendered message, see ``card_renderer.render``.
    """
    record = record or {}
    ts = attachment.ts
    if not ts:
        sns = record.get("Sns") or {}
        ts = parse_time(sns.get("Timestamp")) or now or datetime.now(timezone.utc)
    if isinstance(ts, datetime):
        ts = to_epoch(ts)

    footer = attachment.footer
    if not footer:
        subscription_arn = record.get("EventSubscriptionArn")
        if subscription_arn:
            footer = sns_footer(subscription_arn)

    return render(replace(attachment, ts=ts, footer=footer))
