"""Rate limiting middleware for tool execution."""

from __future__ import annotations

import time
from collections import deque
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Callable

from appcase.apps.envelope import ToolOutput
from appcase.foundation.errors import RateLimitedError

from ..middleware import Context, Next

if TYPE_CHECKING:
    from appcase.foundation.config import RateLimitSettings
    from appcase.foundation.core import BaseTool, StrictParams


@dataclass
class RateLimitMiddleware:
    """Sliding-window rate limiter per tool or global.

    Raises RateLimitedError carrying the seconds until the oldest call in
    the window expires, so the caller knows how long to back off.

    Args:
        max_calls: Maximum calls per window
        window_seconds: Time window in seconds
        per_tool: Apply limits per-tool (True) or globally (False)
        clock: Monotonic time source

    Example:
        >>> registry.use(RateLimitMiddleware(max_calls=10, window_seconds=60))
    """

    max_calls: int = 10
    window_seconds: float = 60.0
    per_tool: bool = True
    clock: Callable[[], float] = field(default=time.monotonic, repr=False)
    _timestamps: dict[str, deque[float]] = field(default_factory=dict, repr=False)

    @classmethod
    def from_settings(cls, settings: RateLimitSettings) -> RateLimitMiddleware:
        return cls(max_calls=settings.max_calls, window_seconds=settings.window_seconds, per_tool=settings.per_tool)

    def _check_limit(self, key: str) -> float:
        """Record a call if allowed. Returns 0 when allowed, else seconds to wait."""
        now = self.clock()
        bucket = self._timestamps.setdefault(key, deque())

        cutoff = now - self.window_seconds
        while bucket and bucket[0] <= cutoff:
            bucket.popleft()

        if len(bucket) >= self.max_calls:
            return max(bucket[0] + self.window_seconds - now, 0.001)

        bucket.append(now)
        return 0.0

    async def __call__(
        self,
        tool: BaseTool[StrictParams],
        params: StrictParams,
        ctx: Context,
        next: Next,
    ) -> ToolOutput:
        name = tool.metadata.name
        if wait := self._check_limit(name if self.per_tool else "_global_"):
            raise RateLimitedError(
                f"{name} is limited to {self.max_calls} calls per {self.window_seconds:g}s",
                retry_after_seconds=round(wait, 3),
            )
        return await next(tool, params, ctx)
