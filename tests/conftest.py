"""Shared fixtures: a plain webhook URL, links shown, fresh secret cache."""

from __future__ import annotations

from typing import List

import pytest

from backend.app.alerts.secrets import hook_url
from backend.app.core.config import settings

HOOK_URL = "https://example.webhook.office.com/webhookb2/abc"


class RecordingSleep:
    """Stand-in for asyncio.sleep that only records requested delays."""

    def __init__(self) -> None:
        self.calls: List[float] = []

    async def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)


@pytest.fixture(autouse=True)
def _webhook_settings(monkeypatch):
    monkeypatch.setattr(settings, "TEAMS_HOOK_URL", HOOK_URL)
    monkeypatch.setattr(settings, "HIDE_AWS_LINKS", False)
    hook_url.reset()
    yield
    hook_url.reset()


@pytest.fixture()
def recording_sleep() -> RecordingSleep:
    return RecordingSleep()
