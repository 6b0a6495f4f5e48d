"""Application configuration settings."""

from __future__ import annotations

from functools import lru_cache

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

ENV_FILE = ".env"
ENV_FILE_ENCODING = "utf-8"


class Settings(BaseSettings):
    """Application configuration values loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=ENV_FILE, env_file_encoding=ENV_FILE_ENCODING, extra="ignore"
    )

    database_url: str = Field(
        description="Database connection URL used by SQLAlchemy to connect to the DB",
        min_length=1,
    )
    secret_key: str = Field(
        description="Secret key used to verify the identity tokens", min_length=1
    )
    access_token_expire_minutes: int = Field(
        default=60,
        description="Number of minutes before access tokens expire",
        gt=0,
    )
    sendgrid_api_key: str | None = Field(
        default=None,
        description="SendGrid API key used for sending transactional emails via the REST API",
    )
    sendgrid_sender: str | None = Field(
        default=None,
        description="Email address that will appear as the sender of transactional messages",
        min_length=3,
    )
    app_timezone: str = Field(
        default="America/Sao_Paulo",
        description="IANA timezone (or UTC offset) used to store and compare timestamps",
    )
    frontend_url: str = Field(
        default="http://localhost:4200",
        description="Base URL of the web client, used for CORS and email deep links",
    )
    overdue_dedup_window_hours: int = Field(
        default=24,
        description="Trailing window in which an identical payment-overdue event is suppressed",
        gt=0,
    )
    expiring_high_priority_days: int = Field(
        default=7,
        description="Contracts expiring within this many days are notified as high priority",
        ge=0,
    )
    notification_retention_days: int = Field(
        default=30,
        description="Age in days after which the purge job removes notifications",
        gt=0,
    )
    background_max_attempts: int = Field(
        default=3,
        description="Attempts made for every background work item before giving up",
        gt=0,
    )
    background_retry_delay_seconds: float = Field(
        default=1.0,
        description="Pause between attempts of a failed background work item",
        ge=0,
    )
    log_level: str = Field(default="INFO", description="Root logging level")

    @model_validator(mode="after")
    def _validate_sendgrid_pair(self) -> "Settings":
        if bool(self.sendgrid_api_key) ^ bool(self.sendgrid_sender):
            raise ValueError(
                "SENDGRID_API_KEY and SENDGRID_SENDER must both be provided to enable email"
            )
        if self.sendgrid_sender and "@" not in self.sendgrid_sender:
            raise ValueError("SENDGRID_SENDER must be a valid email address")
        return self


@lru_cache
def get_settings() -> Settings:
    """Return cached application settings instance."""

    return Settings()


def reset_settings_cache() -> None:
    """Clear the settings cache to force reloading from the environment."""

    get_settings.cache_clear()


__all__ = ["Settings", "get_settings", "reset_settings_cache"]
