"""
Environment configuration — single source of truth for all settings.

Uses pydantic-settings for type-safe config with .env file support.
All values have sensible defaults for local development.

Usage:
    from backend.app.core.config import settings
    print(settings.TEAMS_HOOK_URL)
"""

from __future__ import annotations

import re
from functools import lru_cache
from typing import Any, Optional

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application-wide settings loaded from environment variables or .env file.

    Precedence: env var > .env file > default value
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    # ── Application ──
    APP_NAME: str = "AWS Alerts to Teams"
    APP_VERSION: str = "1.0.0"
    ENVIRONMENT: str = "development"  # development | staging | production
    DEBUG: bool = True
    LOG_LEVEL: str = "INFO"  # DEBUG | INFO | WARNING | ERROR | CRITICAL

    # ── Teams webhook ──
    TEAMS_HOOK_URL: Optional[str] = None  # raw URL or KMS-encrypted base64 blob
    DELIVERY_TIMEOUT_SECONDS: float = 3.5
    DELIVERY_MAX_ATTEMPTS: int = 3
    RETRY_BACKOFF_BASE_MS: int = 200  # wait = base × 2^attempt

    # ── AWS ──
    AWS_REGION: Optional[str] = None  # KMS region; boto3 default chain if unset
    AWS_CONSOLE_URL: str = "https://console.aws.amazon.com"
    HIDE_AWS_LINKS: bool = False  # redact console links in rendered cards

    @field_validator("HIDE_AWS_LINKS", mode="before")
    @classmethod
    def _parse_hide_links(cls, value: Any) -> bool:
        # Any value mentioning "true" or "1" hides links; everything else shows them
        if isinstance(value, bool):
            return value
        if value is None:
            return False
        return re.search(r"true|1", str(value), re.IGNORECASE) is not None

    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT == "production"


@lru_cache()
def get_settings() -> Settings:
    """Cached settings singleton."""
    return Settings()


settings = get_settings()
