"""Middleware system for tool execution hooks.

Example:
    >>> from appcase import get_registry
    >>> from appcase.runtime.middleware import LoggingMiddleware, TimeoutMiddleware
    >>>
    >>> registry = get_registry()
    >>> registry.use(LoggingMiddleware())
    >>> registry.use(TimeoutMiddleware(timeout_seconds=10))
    >>>
    >>> envelope = await registry.execute("taskflow_list_tasks", {"status": "open"})
"""

from .middleware import Context, Middleware, Next, compose
from .plugins import LoggingMiddleware, RateLimitMiddleware, TimeoutMiddleware

__all__ = [
    # Core
    "Middleware",
    "Next",
    "Context",
    "compose",
    # Plugins
    "LoggingMiddleware",
    "RateLimitMiddleware",
    "TimeoutMiddleware",
]
