"""
alerts — AWS notification → Microsoft Teams delivery.

Sub-modules:
    channels/       — Teams webhook POST + response classification
    alert_service   — retry driver and post_message
    card_renderer   — Attachment → Adaptive Card
    event_def       — SNS records → Attachment, footer/timestamp defaults
    secrets         — one-time webhook URL resolution (KMS)
    models          — data structures shared across the package
"""
