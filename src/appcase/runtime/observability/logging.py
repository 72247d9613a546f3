"""Structured logging for tool invocations and widget state.

Events are short lowercase phrases with key-value context. Invocation
loggers carry the tool name and, when known, the conversation id; a
conversation scope adds the id to every event emitted inside it, across
await boundaries.

Values are bounded before rendering so that widget state, ``_meta`` payloads
and long narrations never flood the output: nested containers collapse to
their size and long strings are cut.

Quick Start:
    >>> from appcase.runtime.observability import configure_logging, conversation_scope, get_logger
    >>> configure_logging(format="console")
    >>> log = get_logger("appcase.registry").for_invocation("taskflow_list_tasks")
    >>> with conversation_scope("c-1"):
    ...     log.info("executing", limit=20)
"""

from __future__ import annotations

import logging
import sys
import time
import traceback
from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Protocol, TextIO, runtime_checkable

import orjson

from appcase.foundation.errors import JsonDict, JsonValue

MAX_VALUE_CHARS = 200

_scope: ContextVar[JsonDict] = ContextVar("appcase_log_scope", default={})


@dataclass(frozen=True, slots=True)
class LogEntry:
    timestamp: float
    level: str
    event: str
    context: JsonDict
    logger: str | None = None

    @property
    def when(self) -> datetime:
        return datetime.fromtimestamp(self.timestamp, tz=UTC)


@runtime_checkable
class LogRenderer(Protocol):
    def render(self, entry: LogEntry) -> None: ...


@dataclass(frozen=True, slots=True)
class BoundLogger:
    """Logger with fixed context. ``bind`` returns a new logger.

    Example:
        >>> log = get_logger("appcase.state").bind(conversation="c-1")
        >>> log.info("widget seeded", instance="w-1")
        # => 10:30:45.120 INFO  appcase.state: widget seeded conversation="c-1" instance="w-1"
    """

    name: str | None = None
    context: JsonDict = field(default_factory=dict)

    def bind(self, **kw: JsonValue) -> BoundLogger:
        return BoundLogger(self.name, {**self.context, **kw})

    def for_invocation(self, tool_name: str, conversation_id: str | None = None) -> BoundLogger:
        """Logger for one tool call."""
        if conversation_id is None:
            return self.bind(tool=tool_name)
        return self.bind(tool=tool_name, conversation=conversation_id)

    def _emit(self, level: int, event: str, kw: JsonDict) -> None:
        config = _config.get()
        if level < config.level:
            return
        context = {**_scope.get(), **self.context, **kw}
        config.renderer.render(LogEntry(time.time(), logging.getLevelName(level).lower(), event, context, self.name))

    def debug(self, event: str, **kw: JsonValue) -> None:
        self._emit(logging.DEBUG, event, kw)

    def info(self, event: str, **kw: JsonValue) -> None:
        self._emit(logging.INFO, event, kw)

    def warning(self, event: str, **kw: JsonValue) -> None:
        self._emit(logging.WARNING, event, kw)

    def error(self, event: str, **kw: JsonValue) -> None:
        self._emit(logging.ERROR, event, kw)

    def exception(self, event: str, **kw: JsonValue) -> None:
        """Error event with the traceback of the exception being handled."""
        self._emit(logging.ERROR, event, {**kw, "exc_info": traceback.format_exc()})


# ─────────────────────────────────────────────────────────────────────────────
# Renderers
# ─────────────────────────────────────────────────────────────────────────────


def bounded(value: object, limit: int = MAX_VALUE_CHARS) -> JsonValue:
    """Loggable form of a value: containers become their size, long strings are cut."""
    match value:
        case None | bool() | int() | float():
            return value
        case dict():
            return f"{{{len(value)} keys}}"
        case list() | tuple() | set():
            return f"[{len(value)} items]"
        case str() if len(value) > limit:
            return f"{value[:limit]}...({len(value)} chars)"
        case str():
            return value
        case _:
            return bounded(str(value), limit)


@dataclass(slots=True)
class ConsoleRenderer:
    """One line per event: ``HH:MM:SS.mmm LEVEL logger: event key=value``."""

    output: TextIO = field(default_factory=lambda: sys.stderr)
    limit: int = MAX_VALUE_CHARS

    def render(self, entry: LogEntry) -> None:
        head = f"{entry.when:%H:%M:%S}.{entry.when.microsecond // 1000:03d} {entry.level.upper():<7}"
        source = f"{entry.logger}: " if entry.logger else ""
        pairs = " ".join(
            f"{k}={orjson.dumps(bounded(v, self.limit)).decode()}"
            for k, v in sorted(entry.context.items()) if k != "exc_info"
        )
        print(f"{head} {source}{entry.event} {pairs}".rstrip(), file=self.output)
        if tb := entry.context.get("exc_info"):
            print(tb, file=self.output, end="" if str(tb).endswith("\n") else "\n")


@dataclass(slots=True)
class JsonRenderer:
    """JSON Lines for log aggregation. Tracebacks are kept whole."""

    output: TextIO = field(default_factory=lambda: sys.stdout)
    limit: int = MAX_VALUE_CHARS

    def render(self, entry: LogEntry) -> None:
        record: JsonDict = {"timestamp": entry.when.isoformat(), "level": entry.level, "event": entry.event}
        if entry.logger:
            record["logger"] = entry.logger
        for k, v in entry.context.items():
            record[k] = v if k == "exc_info" else bounded(v, self.limit)
        self.output.write(orjson.dumps(record).decode() + "\n")


class NoOpRenderer:
    def render(self, entry: LogEntry) -> None:
        return None


# ─────────────────────────────────────────────────────────────────────────────
# Configuration
# ─────────────────────────────────────────────────────────────────────────────


@dataclass(frozen=True, slots=True)
class _Config:
    renderer: LogRenderer
    level: int


_config: ContextVar[_Config] = ContextVar("appcase_log_config", default=_Config(ConsoleRenderer(), logging.INFO))


def configure_logging(
    format: str = "console",  # noqa: A002 - matches stdlib naming
    level: str = "INFO",
    *,
    output: TextIO | None = None,
    renderer: LogRenderer | None = None,
) -> LogRenderer:
    """Set the renderer and threshold for the current context.

    Format is "console", "json" or "none"; an explicit renderer wins over it.
    """
    numeric = logging.getLevelName(level.upper())
    if not isinstance(numeric, int):
        raise ValueError(f"Unknown log level: {level}")
    if renderer is None:
        match format:
            case "console":
                renderer = ConsoleRenderer(output=output or sys.stderr)
            case "json":
                renderer = JsonRenderer(output=output or sys.stdout)
            case "none":
                renderer = NoOpRenderer()
            case _:
                raise ValueError(f"Unknown format: {format}. Use 'console', 'json', or 'none'")
    _config.set(_Config(renderer, numeric))
    return renderer


def configure_from_settings() -> LogRenderer:
    """Configure logging from APPCASE_LOG_* settings. APPCASE_DEBUG forces the DEBUG level."""
    from appcase.foundation.config import get_settings
    settings = get_settings()
    level = "DEBUG" if settings.debug else settings.logging.level
    return configure_logging(format=settings.logging.format, level=level)


def get_logger(name: str | None = None, **context: JsonValue) -> BoundLogger:
    return BoundLogger(name, dict(context))


@contextmanager
def conversation_scope(conversation_id: str | None, **kw: JsonValue) -> Iterator[None]:
    """Add the conversation id (and any extra pairs) to every event in scope."""
    extra: JsonDict = dict(kw)
    if conversation_id is not None:
        extra["conversation"] = conversation_id
    token = _scope.set({**_scope.get(), **extra})
    try:
        yield
    finally:
        _scope.reset(token)
