"""Environment-based configuration using pydantic-settings.

Example:
    >>> from appcase.foundation.config import get_settings
    >>> settings = get_settings()
    >>> settings.widget.token_budget
    4000

    # Or with environment variables:
    # APPCASE_WIDGET_TOKEN_BUDGET=2000
    # APPCASE_LOG_LEVEL=DEBUG
"""

from __future__ import annotations

from functools import lru_cache
from typing import Annotated, Literal

from pydantic import (
    Field,
    PositiveFloat,
    PositiveInt,
    SecretStr,
    computed_field,
    field_validator,
)
from pydantic_settings import BaseSettings, SettingsConfigDict


class ResponseSettings(BaseSettings):
    """Response composer configuration."""

    model_config = SettingsConfigDict(env_prefix="APPCASE_RESPONSE_", extra="ignore")

    narration_max_chars: Annotated[int, Field(ge=40, le=4000)] = 500
    audit_layers: bool = Field(default=True, description="Log layer-separation findings on every response")


class WidgetStateSettings(BaseSettings):
    """Widget state store configuration."""

    model_config = SettingsConfigDict(env_prefix="APPCASE_WIDGET_", extra="ignore")

    token_budget: PositiveInt = Field(default=4000, description="Approximate token budget per widget state")
    chars_per_token: PositiveInt = Field(default=4, description="Serialized bytes per estimated token")
    ttl: PositiveFloat = Field(default=86400.0, description="Seconds before an untouched state goes stale")
    max_entries: PositiveInt = Field(default=10_000, description="Max in-memory widget instances")
    redis_url: SecretStr | None = Field(default=None, description="Redis URL for shared widget state")

    @computed_field
    @property
    def backend(self) -> Literal["memory", "redis"]:
        return "redis" if self.redis_url else "memory"


class LoggingSettings(BaseSettings):
    """Logging configuration."""

    model_config = SettingsConfigDict(env_prefix="APPCASE_LOG_", extra="ignore")

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"
    format: Literal["console", "json", "none"] = "console"

    @field_validator("level", mode="before")
    @classmethod
    def _upper(cls, v: str) -> str:
        return v.upper() if isinstance(v, str) else v


class RegistrySettings(BaseSettings):
    """Tool registration rules."""

    model_config = SettingsConfigDict(env_prefix="APPCASE_REGISTRY_", extra="ignore")

    min_description_length: Annotated[int, Field(ge=10, le=400)] = 20
    enforce_single_service: bool = Field(default=False, description="Reject tools from a second service prefix")


class ServerSettings(BaseSettings):
    """Transport defaults."""

    model_config = SettingsConfigDict(env_prefix="APPCASE_SERVER_", extra="ignore")

    name: str = "appcase"
    host: str = "127.0.0.1"
    port: Annotated[int, Field(ge=1, le=65535)] = 8000
    transport: Literal["stdio", "sse", "streamable-http", "http"] = "stdio"


class RateLimitSettings(BaseSettings):
    """Rate limiting defaults."""

    model_config = SettingsConfigDict(env_prefix="APPCASE_RATELIMIT_", extra="ignore")

    enabled: bool = False
    max_calls: PositiveInt = Field(default=60, description="Max calls per window")
    window_seconds: PositiveFloat = Field(default=60.0, description="Time window in seconds")
    per_tool: bool = True


class AppcaseSettings(BaseSettings):
    """Root settings, loaded from APPCASE_* environment variables and .env.

    Example environment variables:
        APPCASE_DEBUG=true
        APPCASE_RESPONSE_NARRATION_MAX_CHARS=300
        APPCASE_WIDGET_REDIS_URL=redis://localhost:6379/0
        APPCASE_RATELIMIT_ENABLED=true
    """

    model_config = SettingsConfigDict(
        env_prefix="APPCASE_",
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        extra="ignore",
        validate_default=True,
    )

    debug: bool = Field(default=False, description="Log at DEBUG level regardless of APPCASE_LOG_LEVEL")
    environment: Literal["development", "staging", "production"] = "development"

    response: ResponseSettings = Field(default_factory=ResponseSettings)
    widget: WidgetStateSettings = Field(default_factory=WidgetStateSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)
    registry: RegistrySettings = Field(default_factory=RegistrySettings)
    server: ServerSettings = Field(default_factory=ServerSettings)
    rate_limit: RateLimitSettings = Field(default_factory=RateLimitSettings)

    @field_validator("environment", mode="before")
    @classmethod
    def _normalize_env(cls, v: str) -> str:
        return v.lower() if isinstance(v, str) else v

    @computed_field
    @property
    def is_production(self) -> bool:
        return self.environment == "production"


@lru_cache(maxsize=1)
def get_settings() -> AppcaseSettings:
    """Get the global settings instance (cached)."""
    return AppcaseSettings()


def clear_settings_cache() -> None:
    """Clear the settings cache so the next get_settings() re-reads the environment."""
    get_settings.cache_clear()
