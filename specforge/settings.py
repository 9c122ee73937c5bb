"""Application settings using pydantic-settings.

Loads configuration from environment variables with .env file support.
Variables are prefixed with ``SPECFORGE_`` (e.g. ``SPECFORGE_API_TOKEN``).
"""

from collections.abc import Callable
from functools import lru_cache
from typing import Literal

from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Client configuration loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="SPECFORGE_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Logging
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO",
        description="Log level for specforge loggers",
    )

    # Backend API
    api_base_url: str = Field(
        default="http://localhost:8080/api/v1",
        description="Base URL prepended to every endpoint path",
    )
    api_token: SecretStr = Field(
        default=SecretStr(""),
        description="Bearer token sent with API and stream requests",
    )

    # Timeouts
    http_timeout: float = Field(
        default=30.0,
        gt=0,
        description="Timeout in seconds for plain REST calls",
    )
    stream_connect_timeout: float = Field(
        default=10.0,
        gt=0,
        description="Connect timeout in seconds for event streams (reads never time out)",
    )

    @field_validator("api_base_url")
    @classmethod
    def _strip_trailing_slash(cls, value: str) -> str:
        return value.rstrip("/")


def settings_token_getter(settings: Settings) -> Callable[[], str | None]:
    """Adapt the configured token to the token-getter collaborator.

    Returns a callable yielding the token, or None when no token is set.
    """

    def _get() -> str | None:
        token = settings.api_token.get_secret_value()
        return token or None

    return _get


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance.

    Uses lru_cache to ensure settings are loaded once and reused.
    """
    return Settings()
