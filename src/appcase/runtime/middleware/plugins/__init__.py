"""Built-in middleware plugins for common cross-cutting concerns."""

from .logging import LoggingMiddleware
from .rate_limit import RateLimitMiddleware
from .timeout import TimeoutMiddleware

__all__ = [
    "LoggingMiddleware",
    "RateLimitMiddleware",
    "TimeoutMiddleware",
]
