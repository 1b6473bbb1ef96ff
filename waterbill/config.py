"""Application configuration from environment variables."""

import logging
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    Pydantic automatically loads values from:
    1. OS environment variables (at instantiation time)
    2. .env file (if present)

    Tariffs and fees are not configured here; they live in the versioned
    ``billing_settings`` table.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Database
    database_url: str = Field(
        default="sqlite:///./waterbill.db", description="SQLAlchemy database URL"
    )
    database_echo: bool = Field(default=False, description="Log SQL queries")
    database_isolation_level: str = Field(
        default="SERIALIZABLE",
        description="Transaction isolation for non-SQLite backends",
    )

    # Logging
    log_level: str = Field(default="INFO", description="Logging level")
    log_file: str = Field(default="logs/server.log", description="Server log file")

    # Notification gateway
    notification_gateway_url: str = Field(
        default="", description="Base URL of the messaging gateway; empty disables delivery"
    )
    notification_gateway_api_key: str = Field(default="", description="Sent as x-api-key")
    notification_timeout_seconds: float = Field(
        default=10.0, description="Upper bound for one gateway call"
    )

    # Links and sessions
    app_origin: str = Field(
        default="", description="Public origin used to build magic links and document URLs"
    )
    magic_link_ttl_hours: int = Field(default=24, description="Lifetime of a magic link")
    session_ttl_days: int = Field(default=7, description="Lifetime of a redeemed session")
    session_cookie_name: str = Field(default="session")
    session_cookie_secure: bool = Field(default=False, description="Set Secure on cookies")

    # Formatting
    locale: str = Field(default="id_ID", description="Babel locale for messages")

    # API
    api_title: str = Field(default="Water Billing API", description="API title")
    api_version: str = Field(default="0.1.0", description="API version")

    @property
    def origin(self) -> str:
        return self.app_origin.rstrip("/")


# Lazy loader to ensure environment is loaded before instantiation
_settings_instance: Optional[Settings] = None


def get_settings() -> Settings:
    """Get or create the settings instance."""
    global _settings_instance
    if _settings_instance is None:
        _settings_instance = Settings()
        if not _settings_instance.notification_gateway_url:
            logger.info("NOTIFICATION_GATEWAY_URL not set; notifications will be logged as failed")
    return _settings_instance


def reset_settings() -> None:
    """Drop the cached settings (tests and reconfiguration)."""
    global _settings_instance
    _settings_instance = None


__all__ = ["Settings", "get_settings", "reset_settings"]
