"""Timeout middleware for tool execution."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from appcase.apps.envelope import ToolOutput
from appcase.foundation.errors import ErrorCode, ToolException

from ..middleware import Context, Next

if TYPE_CHECKING:
    from appcase.foundation.core import BaseTool, StrictParams


@dataclass(slots=True)
class TimeoutMiddleware:
    """Enforce execution timeout.

    Wraps execution in asyncio.wait_for. Raises ToolException with
    TIMEOUT code if exceeded.

    Args:
        timeout_seconds: Maximum execution time
        per_tool_overrides: Dict of tool_name -> timeout for specific tools

    Example:
        >>> registry.use(TimeoutMiddleware(
        ...     timeout_seconds=30.0,
        ...     per_tool_overrides={"taskflow_send_reminder": 120.0}
        ... ))
    """

    timeout_seconds: float = 30.0
    per_tool_overrides: dict[str, float] = field(default_factory=dict)

    async def __call__(
        self,
        tool: BaseTool[StrictParams],
        params: StrictParams,
        ctx: Context,
        next: Next,
    ) -> ToolOutput:
        timeout = self.per_tool_overrides.get(tool.metadata.name, self.timeout_seconds)
        ctx["timeout_configured"] = timeout
        try:
            return await asyncio.wait_for(next(tool, params, ctx), timeout=timeout)
        except TimeoutError:
            raise ToolException(
                f"{tool.metadata.name} did not finish within {timeout:g}s",
                ErrorCode.TIMEOUT,
            ) from None
