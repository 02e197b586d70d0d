"""Configuration with environment variable loading."""

import functools

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# Check intervals offered by the settings screen, in hours.
ALLOWED_CHECK_INTERVALS = (3, 6, 12, 24)


class Settings(BaseSettings):
    """Email Assistant settings.

    All settings can be overridden via environment variables with the
    EMAIL_ASSISTANT_ prefix.
    Example: EMAIL_ASSISTANT_API_URL, EMAIL_ASSISTANT_GRACE_PERIOD_SECONDS
    """

    model_config = SettingsConfigDict(
        env_prefix="EMAIL_ASSISTANT_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Remote email service
    api_url: str = "http://localhost:3001"
    api_token: str | None = None
    request_timeout: float = 25.0

    # Bulk actions
    grace_period_seconds: float = 120.0
    check_interval_hours: int = 12

    # HTTP server
    host: str = "127.0.0.1"
    port: int = 8000
    cors_origins: list[str] = ["*"]

    # Logging
    log_level: str = "INFO"

    @field_validator("grace_period_seconds")
    @classmethod
    def validate_grace_period(cls, v: float) -> float:
        """Ensure the grace window is not negative."""
        if v < 0:
            raise ValueError("grace_period_seconds must be >= 0")
        return v

    @field_validator("check_interval_hours")
    @classmethod
    def validate_check_interval(cls, v: int) -> int:
        """Ensure the check interval is one the service supports."""
        if v not in ALLOWED_CHECK_INTERVALS:
            raise ValueError(
                f"check_interval_hours must be one of {ALLOWED_CHECK_INTERVALS}"
            )
        return v

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Ensure log level is valid."""
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        if v.upper() not in valid_levels:
            raise ValueError(f"log_level must be one of {valid_levels}")
        return v.upper()


@functools.lru_cache
def get_settings() -> Settings:
    """Get cached settings instance.

    Settings are loaded once and cached for the lifetime of the process.
    Use this function for dependency injection in FastAPI.
    """
    return Settings()
