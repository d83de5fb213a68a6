"""
test_alert_service.py — Tests for Teams delivery: POST, classification,
retry/backoff and the post_message façade.

Covers:
    • post_json request shape (headers, body, timeout)
    • Status classification (2xx / 4xx / other)
    • retry driver over DeliveryOutcome
    • post_message end-to-end against a mocked webhook

Run with:
    pytest tests/test_alert_service.py -v
"""

from __future__ import annotations

import json

import httpx
import pytest
import respx
from httpx import Response

from backend.app.alerts.alert_service import (
    compute_backoff_ms,
    post_message,
    retry,
)
from backend.app.alerts.channels.teams_webhook import classify, post_json
from backend.app.alerts.models import (
    Delivered,
    DeliveryResult,
    PermanentFailure,
    TransientFailure,
)
from backend.app.core.config import settings
from backend.app.core.errors import (
    DeliveryError,
    NotifierError,
    PermanentDeliveryError,
    TransientDeliveryError,
)

HOOK_URL = "https://example.webhook.office.com/webhookb2/abc"

MESSAGE = {"type": "message", "attachments": [{"content": {"body": []}}]}


def _result(status: int, body: str = "") -> DeliveryResult:
    return DeliveryResult(body=body, status_code=status, status_message="reason")


# ═══════════════════════════════════════════════════════════════════════════
# Section 1: Classification
# ═══════════════════════════════════════════════════════════════════════════

class TestClassify:

    @pytest.mark.parametrize("status", [200, 201, 202, 299])
    def test_2xx_delivered(self, status):
        assert isinstance(classify(_result(status)), Delivered)

    @pytest.mark.parametrize("status", [400, 401, 404, 413, 429, 499])
    def test_4xx_permanent(self, status):
        outcome = classify(_result(status))
        assert isinstance(outcome, PermanentFailure)
        assert outcome.retryable is False

    @pytest.mark.parametrize("status", [100, 301, 500, 502, 503, 504])
    def test_other_transient(self, status):
        outcome = classify(_result(status))
        assert isinstance(outcome, TransientFailure)
        assert outcome.retryable is True
        assert str(status) in outcome.reason


class TestComputeBackoff:

    def test_exponential_from_200ms(self):
        assert compute_backoff_ms(1) == 400
        assert compute_backoff_ms(2) == 800
        assert compute_backoff_ms(3) == 1600

    def test_custom_base(self):
        assert compute_backoff_ms(2, base_ms=10) == 40


# ═══════════════════════════════════════════════════════════════════════════
# Section 2: post_json
# ═══════════════════════════════════════════════════════════════════════════

class TestPostJson:

    @pytest.mark.asyncio
    @respx.mock
    async def test_sends_json_with_content_length(self):
        route = respx.post(HOOK_URL).mock(return_value=Response(200, text="1"))

        result = await post_json(MESSAGE, HOOK_URL)

        assert route.call_count == 1
        request = route.calls.last.request
        assert request.headers["Content-Type"] == "application/json"
        assert int(request.headers["Content-Length"]) == len(request.content)
        assert json.loads(request.content) == MESSAGE
        assert result == DeliveryResult(body="1", status_code=200, status_message="OK")

    @pytest.mark.asyncio
    @respx.mock
    async def test_non_2xx_is_returned_not_raised(self):
        respx.post(HOOK_URL).mock(return_value=Response(503, text="busy"))

        result = await post_json(MESSAGE, HOOK_URL)

        assert result.status_code == 503
        assert result.status_message == "Service Unavailable"
        assert result.body == "busy"

    @pytest.mark.asyncio
    @respx.mock
    async def test_transport_error_raises(self):
        respx.post(HOOK_URL).mock(side_effect=httpx.ConnectTimeout)

        with pytest.raises(httpx.TransportError):
            await post_json(MESSAGE, HOOK_URL)

    def test_default_timeout(self):
        assert settings.DELIVERY_TIMEOUT_SECONDS == 3.5


# ═══════════════════════════════════════════════════════════════════════════
# Section 3: Retry driver
# ═══════════════════════════════════════════════════════════════════════════

def _sequence(*outcomes):
    """Operation returning the given outcomes in order, counting calls."""
    calls = []

    async def operation():
        calls.append(1)
        return outcomes[len(calls) - 1]

    return operation, calls


class TestRetry:

    @pytest.mark.asyncio
    async def test_success_first_try(self, recording_sleep):
        op, calls = _sequence(Delivered(_result(200)))

        outcome, attempts = await retry(3, op, sleep=recording_sleep)

        assert isinstance(outcome, Delivered)
        assert attempts == 1
        assert len(calls) == 1
        assert recording_sleep.calls == []

    @pytest.mark.asyncio
    async def test_permanent_stops_immediately(self, recording_sleep):
        op, calls = _sequence(PermanentFailure(_result(400)), Delivered(_result(200)))

        outcome, attempts = await retry(3, op, sleep=recording_sleep)

        assert isinstance(outcome, PermanentFailure)
        assert attempts == 1
        assert len(calls) == 1
        assert recording_sleep.calls == []

    @pytest.mark.asyncio
    async def test_transient_then_success(self, recording_sleep):
        op, calls = _sequence(
            TransientFailure("HTTP 500"),
            Delivered(_result(200)),
        )

        outcome, attempts = await retry(3, op, sleep=recording_sleep)

        assert isinstance(outcome, Delivered)
        assert attempts == 2
        assert recording_sleep.calls == [0.4]

    @pytest.mark.asyncio
    async def test_exhaustion_returns_last_failure(self, recording_sleep):
        op, calls = _sequence(
            TransientFailure("first"),
            TransientFailure("second"),
            TransientFailure("third"),
        )

        outcome, attempts = await retry(3, op, sleep=recording_sleep)

        assert attempts == 3
        assert len(calls) == 3
        assert outcome.reason == "third"
        assert recording_sleep.calls == [0.4, 0.8]

    @pytest.mark.asyncio
    async def test_single_attempt_budget(self, recording_sleep):
        op, calls = _sequence(TransientFailure("only"))

        outcome, attempts = await retry(1, op, sleep=recording_sleep)

        assert attempts == 1
        assert recording_sleep.calls == []

    @pytest.mark.asyncio
    async def test_logs_attempt_and_wait(self, recording_sleep, caplog):
        op, _ = _sequence(TransientFailure("HTTP 502"), Delivered(_result(200)))

        with caplog.at_level("WARNING"):
            await retry(3, op, sleep=recording_sleep)

        assert "attempt#1, waiting 400ms" in caplog.text


# ═══════════════════════════════════════════════════════════════════════════
# Section 4: post_message
# ═══════════════════════════════════════════════════════════════════════════

class TestPostMessage:

    @pytest.mark.asyncio
    @respx.mock
    async def test_success(self, recording_sleep):
        route = respx.post(HOOK_URL).mock(return_value=Response(200, text="1"))

        result = await post_message(MESSAGE, sleep=recording_sleep)

        assert route.call_count == 1
        assert result.status_code == 200
        assert result.body == "1"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status", [400, 404, 429, 499])
    @respx.mock
    async def test_4xx_single_attempt_non_retryable(self, status, recording_sleep):
        route = respx.post(HOOK_URL).mock(
            return_value=Response(status, text="Webhook message delivery failed")
        )

        with pytest.raises(PermanentDeliveryError) as exc_info:
            await post_message(MESSAGE, sleep=recording_sleep)

        err = exc_info.value
        assert route.call_count == 1
        assert recording_sleep.calls == []
        assert err.retryable is False
        assert err.http_status == status
        assert err.body == "Webhook message delivery failed"
        assert err.status_code == 502
        assert f"[HTTP:{status}]" in err.message

    @pytest.mark.asyncio
    @respx.mock
    async def test_recovers_after_transient_failures(self, recording_sleep):
        route = respx.post(HOOK_URL).mock(side_effect=[
            Response(500, text="oops"),
            httpx.ConnectError,
            Response(200, text="1"),
        ])

        result = await post_message(MESSAGE, sleep=recording_sleep)

        assert route.call_count == 3
        assert result.status_code == 200
        assert recording_sleep.calls == [0.4, 0.8]

    @pytest.mark.asyncio
    @respx.mock
    async def test_three_transient_failures(self, recording_sleep):
        route = respx.post(HOOK_URL).mock(side_effect=[
            Response(500, text="first"),
            Response(502, text="second"),
            Response(503, text="third"),
        ])

        with pytest.raises(TransientDeliveryError) as exc_info:
            await post_message(MESSAGE, sleep=recording_sleep)

        err = exc_info.value
        assert route.call_count == 3
        assert recording_sleep.calls == [0.4, 0.8]
        assert err.http_status == 503
        assert err.body == "third"
        assert err.attempts == 3
        assert err.retryable is True

    @pytest.mark.asyncio
    @respx.mock
    async def test_network_failures_exhaust_budget(self, recording_sleep):
        route = respx.post(HOOK_URL).mock(side_effect=httpx.ConnectError)

        with pytest.raises(TransientDeliveryError) as exc_info:
            await post_message(MESSAGE, sleep=recording_sleep)

        assert route.call_count == 3
        assert exc_info.value.http_status is None
        assert "ConnectError" in exc_info.value.reason

    @pytest.mark.asyncio
    @respx.mock
    async def test_transient_then_permanent_stops(self, recording_sleep):
        route = respx.post(HOOK_URL).mock(side_effect=[
            Response(500),
            Response(400, text="bad card"),
            Response(200),
        ])

        with pytest.raises(PermanentDeliveryError):
            await post_message(MESSAGE, sleep=recording_sleep)

        assert route.call_count == 2
        assert recording_sleep.calls == [0.4]

    @pytest.mark.asyncio
    async def test_missing_hook_url(self, monkeypatch, recording_sleep):
        monkeypatch.setattr(settings, "TEAMS_HOOK_URL", None)

        with pytest.raises(NotifierError) as exc_info:
            await post_message(MESSAGE, sleep=recording_sleep)

        assert not isinstance(exc_info.value, DeliveryError)
        assert exc_info.value.error_code == "CONFIGURATION_ERROR"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("max_attempts", [0, -1])
    @respx.mock
    async def test_non_positive_budget_rejected(self, max_attempts, recording_sleep):
        route = respx.post(HOOK_URL).mock(return_value=Response(200, text="1"))

        with pytest.raises(ValueError):
            await post_message(MESSAGE, max_attempts=max_attempts, sleep=recording_sleep)

        assert route.call_count == 0

    @pytest.mark.asyncio
    @respx.mock
    async def test_explicit_budget_overrides_setting(self, recording_sleep):
        route = respx.post(HOOK_URL).mock(return_value=Response(503, text="down"))

        with pytest.raises(TransientDeliveryError) as exc_info:
            await post_message(MESSAGE, max_attempts=2, sleep=recording_sleep)

        assert route.call_count == 2
        assert exc_info.value.attempts == 2
        assert recording_sleep.calls == [0.4]


class TestDeliveryResult:

    def test_to_dict(self):
        assert _result(202, "1").to_dict() == {
            "body": "1",
            "status_code": 202,
            "status_message": "reason",
        }
