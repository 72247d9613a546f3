"""Log capture for asserting on structured log events."""

from __future__ import annotations

from appcase.runtime.observability import LogEntry, configure_logging


class CapturingRenderer:
    """Keeps structured log entries in memory.

    Example:
        >>> logs = capture_logs()
        >>> registry.execute(...)  # doctest: +SKIP
        >>> "widget state over budget" in logs.events("warning")  # doctest: +SKIP
    """

    def __init__(self) -> None:
        self.entries: list[LogEntry] = []

    def render(self, entry: LogEntry) -> None:
        self.entries.append(entry)

    def events(self, level: str | None = None) -> list[str]:
        return [e.event for e in self.entries if level is None or e.level == level]

    def find(self, event: str) -> list[LogEntry]:
        return [e for e in self.entries if e.event == event]


def capture_logs(level: str = "DEBUG") -> CapturingRenderer:
    """Route structured logging in the current context to a new capturing renderer."""
    renderer = CapturingRenderer()
    configure_logging(renderer=renderer, level=level)
    return renderer
