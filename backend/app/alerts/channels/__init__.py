"""
channels — Delivery backends.

Each channel module exposes:
    post_json(payload, endpoint) → DeliveryResult
    classify(result)             → DeliveryOutcome

Channels make a single attempt. Retry logic lives in alert_service.
"""
