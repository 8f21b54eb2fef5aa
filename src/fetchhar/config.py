"""Configuration management with pydantic-settings."""

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# Body size cap for content.text
MAX_BODY_SIZE = 5 * 1024 * 1024  # 5MB


class FetchHarSettings(BaseSettings):
    """fetchhar settings loaded from environment variables.

    All settings use the FETCHHAR_ prefix for environment variables.
    """

    # Capture configuration
    header_name: str = Field(
        default="x-har-request-id",
        description="Request header carrying the correlation token",
    )
    page_ref: str = Field(
        default="page_1",
        description="Default pageref assigned to recorded entries",
    )
    page_title: str = Field(
        default="Page",
        description="Title of the page created by create_har_log",
    )
    max_body_size: int = Field(
        default=MAX_BODY_SIZE,
        description="Largest decoded body (bytes) whose text is kept in content.text",
    )

    # Logging configuration
    log_level: str = Field(default="WARNING", description="Logging level")
    log_format: str = Field(
        default="console",
        description="Log output format: console or json",
    )

    model_config = SettingsConfigDict(
        env_prefix="FETCHHAR_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    @field_validator("header_name")
    @classmethod
    def _lowercase_header(cls, value: str) -> str:
        value = value.strip().lower()
        if not value:
            raise ValueError("header_name must not be empty")
        return value

    @field_validator("log_format")
    @classmethod
    def _known_format(cls, value: str) -> str:
        if value not in ("console", "json"):
            raise ValueError(f"Unsupported log format: {value}. Supported: console, json")
        return value


# Global settings instance
_settings: FetchHarSettings | None = None


def get_settings() -> FetchHarSettings:
    """Get or create the global settings instance."""
    global _settings
    if _settings is None:
        _settings = FetchHarSettings()
    return _settings


def reset_settings() -> None:
    """Reset the global settings instance (useful for testing)."""
    global _settings
    _settings = None
