"""Configuration management service with Pydantic Settings.

This module provides centralized configuration for the build notifier,
loading and validating environment variables when the dispatcher is built.
"""

from __future__ import annotations

from functools import lru_cache
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class SenderSettings(BaseSettings):
    """Transport settings shared by all channel senders."""

    model_config = SettingsConfigDict(env_prefix="NOTIFIER_")

    http_timeout: float = Field(
        default=10.0,
        alias="NOTIFIER_HTTP_TIMEOUT",
        description="HTTP request timeout in seconds for webhook and bot senders",
        gt=0,
    )
    max_retries: int = Field(
        default=3,
        alias="NOTIFIER_MAX_RETRIES",
        description="Maximum delivery attempts per channel send",
        ge=1,
        le=10,
    )
    retry_delay: float = Field(
        default=1.0,
        alias="NOTIFIER_RETRY_DELAY",
        description="Base delay between retries (exponential backoff)",
        ge=0,
    )
    smtp_timeout: float = Field(
        default=30.0,
        alias="NOTIFIER_SMTP_TIMEOUT",
        description="SMTP connection timeout in seconds",
        gt=0,
    )


class Settings(BaseSettings):
    """Main notifier settings.

    Loads configuration from environment variables with support for
    .env files.

    Example:
        ```python
        from build_notifier.config import get_settings

        settings = get_settings()
        print(settings.app_name)
        print(settings.sender.http_timeout)
        ```
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    sender: SenderSettings = Field(default_factory=SenderSettings)

    app_name: str = Field(
        default="Dokploy",
        alias="NOTIFIER_APP_NAME",
        description="Product name used in email subjects and embed footers",
    )
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO",
        alias="LOG_LEVEL",
        description="Logging level",
    )
    max_concurrent_sends: int = Field(
        default=10,
        alias="NOTIFIER_MAX_CONCURRENT_SENDS",
        description="Upper bound on in-flight channel sends per dispatch",
        ge=1,
        le=100,
    )

    @field_validator("app_name")
    @classmethod
    def validate_app_name(cls, v: str) -> str:
        """Reject blank product names."""
        if not v.strip():
            raise ValueError("NOTIFIER_APP_NAME must not be blank")
        return v.strip()

    def summary(self) -> dict[str, str]:
        """Get a flat, printable summary of the settings."""
        return {
            "app_name": self.app_name,
            "log_level": self.log_level,
            "max_concurrent_sends": str(self.max_concurrent_sends),
            "http_timeout": str(self.sender.http_timeout),
            "max_retries": str(self.sender.max_retries),
            "retry_delay": str(self.sender.retry_delay),
            "smtp_timeout": str(self.sender.smtp_timeout),
        }


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Get the notifier settings singleton.

    Returns:
        The Settings instance.

    Raises:
        ValidationError: If environment variables have invalid values.
    """
    return Settings()


def clear_settings_cache() -> None:
    """Clear the settings cache.

    Useful for testing when you need to reload settings with
    different environment variables.
    """
    get_settings.cache_clear()
