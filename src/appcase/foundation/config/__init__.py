"""Configuration management using pydantic-settings."""

from .settings import (
    AppcaseSettings,
    LoggingSettings,
    RateLimitSettings,
    RegistrySettings,
    ResponseSettings,
    ServerSettings,
    WidgetStateSettings,
    clear_settings_cache,
    get_settings,
)

__all__ = [
    "AppcaseSettings",
    "LoggingSettings",
    "RateLimitSettings",
    "RegistrySettings",
    "ResponseSettings",
    "ServerSettings",
    "WidgetStateSettings",
    "clear_settings_cache",
    "get_settings",
]
