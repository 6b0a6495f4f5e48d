"""Settings for the notification API client."""

from __future__ import annotations

from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class ClientSettings(BaseSettings):
    """Client configuration loaded from ``NOTIFICATION_CLIENT_*`` variables."""

    model_config = SettingsConfigDict(
        env_prefix="NOTIFICATION_CLIENT_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    base_url: str = Field(default="http://localhost:8000", description="API base URL")
    token: str | None = Field(default=None, description="Bearer token of the signed-in user")
    cache_path: Path | None = Field(
        default=None,
        description="JSON file that keeps the history between sessions; memory only when unset",
    )
    page_size: int = Field(default=20, ge=1, le=100)
    history_capacity: int = Field(default=100, ge=1)
    toast_capacity: int = Field(default=3, ge=1)
    toast_duration_seconds: float = Field(default=5.0, gt=0)
    toast_error_duration_seconds: float = Field(default=7.0, gt=0)
    toast_high_priority_duration_seconds: float = Field(default=8.0, gt=0)
    init_delay_seconds: float = Field(default=1.0, ge=0)
    unread_delay_seconds: float = Field(default=2.0, ge=0)
    page_debounce_seconds: float = Field(default=1.5, ge=0)
    unread_debounce_seconds: float = Field(default=2.0, ge=0)
    rate_limit_min_interval_seconds: float = Field(default=1.0, ge=0)
    rate_limit_max_concurrent: int = Field(default=3, ge=1)
    rate_limit_debounce_seconds: float = Field(default=0.5, ge=0)
    retry_max_retries: int = Field(default=2, ge=0)
    breaker_failure_threshold: int = Field(default=5, ge=1)
    breaker_recovery_seconds: float = Field(default=30.0, gt=0)
    request_timeout_seconds: float = Field(default=10.0, gt=0)


__all__ = ["ClientSettings"]
