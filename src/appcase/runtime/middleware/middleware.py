"""Core middleware types and chain composition.

Middleware follows continuation-passing style: each middleware receives
the tool, params, context, and a `next` function to call downstream.
Handlers and middleware report failures by raising; the registry composes
the outcome into an envelope after the chain returns.
"""

from __future__ import annotations

from collections.abc import Coroutine, Sequence
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Callable, Protocol, runtime_checkable

from appcase.apps.envelope import ToolOutput
from appcase.foundation.core import StrictParams

if TYPE_CHECKING:
    from appcase.foundation.core import BaseTool


@dataclass(slots=True)
class Context:
    """Execution context passed through the middleware chain.

    Carries request-scoped state between middleware: timing data,
    conversation id, request ids, or custom middleware state.

    Example:
        >>> ctx = Context()
        >>> ctx["conversation_id"] = "c-1"
        >>> ctx.get("conversation_id")
        'c-1'
    """

    data: dict[str, object] = field(default_factory=dict)

    def __getitem__(self, key: str) -> object:
        return self.data[key]

    def __setitem__(self, key: str, value: object) -> None:
        self.data[key] = value

    def __contains__(self, key: str) -> bool:
        return key in self.data

    def get(self, key: str, default: object = None) -> object:
        return self.data.get(key, default)


# Type alias for the continuation function
Next = Callable[["BaseTool[StrictParams]", StrictParams, Context], Coroutine[Any, Any, ToolOutput]]


@runtime_checkable
class Middleware(Protocol):
    """Protocol for tool middleware.

    Example:
        >>> class TimingMiddleware:
        ...     async def __call__(self, tool, params, ctx, next):
        ...         start = time.perf_counter()
        ...         output = await next(tool, params, ctx)
        ...         ctx["duration"] = time.perf_counter() - start
        ...         return output
    """

    async def __call__(
        self,
        tool: BaseTool[StrictParams],
        params: StrictParams,
        ctx: Context,
        next: Next,
    ) -> ToolOutput:
        """Execute middleware logic.

        Args:
            tool: The tool being executed
            params: Validated parameters
            ctx: Request-scoped context for sharing state
            next: Continuation to call downstream chain

        Returns:
            Handler output (possibly modified)
        """
        ...


def compose(middleware: Sequence[Middleware]) -> Next:
    """Compose middleware into a single execution function.

    Args:
        middleware: Ordered list of middleware (first = outermost)

    Returns:
        Composed async function: (tool, params, ctx) -> ToolOutput
    """
    async def base(tool: BaseTool[StrictParams], params: StrictParams, ctx: Context) -> ToolOutput:
        return await tool._async_run(params)

    chain: Next = base
    for mw in reversed(middleware):
        def make_wrapper(m: Middleware, nxt: Next) -> Next:
            async def wrapped(tool: BaseTool[StrictParams], params: StrictParams, ctx: Context) -> ToolOutput:
                return await m(tool, params, ctx, nxt)
            return wrapped
        chain = make_wrapper(mw, chain)

    return chain
