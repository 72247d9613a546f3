"""Observability: structured logging for tool execution and widget state."""

from .logging import (
    BoundLogger,
    ConsoleRenderer,
    JsonRenderer,
    LogEntry,
    LogRenderer,
    NoOpRenderer,
    bounded,
    configure_from_settings,
    configure_logging,
    conversation_scope,
    get_logger,
)

__all__ = [
    "BoundLogger", "LogEntry", "LogRenderer",
    "ConsoleRenderer", "JsonRenderer", "NoOpRenderer", "bounded",
    "configure_logging", "configure_from_settings", "get_logger", "conversation_scope",
]
