"""Logging middleware for tool execution."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from appcase.apps.envelope import ToolOutput
from appcase.foundation.errors import ToolException

from ..middleware import Context, Next

if TYPE_CHECKING:
    from appcase.foundation.core import BaseTool, StrictParams

logger = logging.getLogger("appcase.middleware")


@dataclass(slots=True)
class LoggingMiddleware:
    """Log tool execution with timing and outcome.

    Logs at INFO level for successful calls, WARNING for categorized
    failures and ERROR with traceback for unexpected exceptions.
    Duration is stored in context as 'duration_ms'.

    Args:
        log: Logger instance to use (defaults to appcase.middleware)
        log_params: Whether to include params in log (default False for privacy)

    Example:
        >>> registry.use(LoggingMiddleware(log_params=True))
    """

    log: logging.Logger = field(default_factory=lambda: logger)
    log_params: bool = False

    async def __call__(
        self,
        tool: BaseTool[StrictParams],
        params: StrictParams,
        ctx: Context,
        next: Next,
    ) -> ToolOutput:
        name = tool.metadata.name
        start = time.perf_counter()

        param_str = f" params={params.model_dump()}" if self.log_params else ""
        self.log.info(f"[{name}] Starting{param_str}")

        try:
            output = await next(tool, params, ctx)
        except ToolException as e:
            ctx["duration_ms"] = duration_ms = (time.perf_counter() - start) * 1000
            self.log.warning(f"[{name}] {e.code} ({duration_ms:.1f}ms): {e.message}")
            raise
        except Exception as e:
            ctx["duration_ms"] = duration_ms = (time.perf_counter() - start) * 1000
            self.log.exception(f"[{name}] EXCEPTION ({duration_ms:.1f}ms): {e}")
            raise

        ctx["duration_ms"] = duration_ms = (time.perf_counter() - start) * 1000
        self.log.info(f"[{name}] OK ({duration_ms:.1f}ms)")
        return output
