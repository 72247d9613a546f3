"""Central registry for tool discovery and execution.

The registry provides:
- Tool registration with naming, description and schema checks
- Lookup by name, filtering by service prefix or verb role
- Tool descriptors and widget templates for transports
- Middleware pipeline for cross-cutting concerns
- Envelope composition for every invocation, successful or not
"""

from __future__ import annotations

from collections.abc import Iterator, Mapping

from pydantic import BaseModel

from appcase.apps.audit import META_SERVICE
from appcase.apps.composer import ResponseComposer, get_composer
from appcase.apps.envelope import ResponseEnvelope
from appcase.apps.widget import WidgetTemplate
from appcase.foundation.core import BaseTool, StrictParams, ToolMetadata, Verb, check_params_schema
from appcase.foundation.errors import ErrorCode, JsonDict, ToolError, ToolException
from appcase.runtime.middleware import Context, Middleware, Next, compose
from appcase.runtime.observability import get_logger

log = get_logger("appcase.registry")


class ToolRegistry:
    """Central registry for all available tools.

    Args:
        min_description_length: Shortest description accepted (settings default)
        enforce_single_service: Reject tools whose service prefix differs from
            the first registered tool's (settings default). The appcase meta
            tools are exempt.
        composer: Envelope composer (global composer by default)

    Example:
        >>> registry = ToolRegistry()
        >>> registry.register(ListTasksTool(store))
        >>> registry.use(LoggingMiddleware())
        >>> envelope = await registry.execute("taskflow_list_tasks", {"status": "open"})
    """

    __slots__ = ("_tools", "_middleware", "_chain", "_min_description", "_single_service", "_composer")

    def __init__(
        self,
        *,
        min_description_length: int | None = None,
        enforce_single_service: bool | None = None,
        composer: ResponseComposer | None = None,
    ) -> None:
        from appcase.foundation.config import get_settings
        cfg = get_settings().registry
        self._tools: dict[str, BaseTool[StrictParams]] = {}
        self._middleware: list[Middleware] = []
        self._chain: Next | None = None
        self._min_description = cfg.min_description_length if min_description_length is None else min_description_length
        self._single_service = cfg.enforce_single_service if enforce_single_service is None else enforce_single_service
        self._composer = composer

    @property
    def composer(self) -> ResponseComposer:
        return self._composer or get_composer()

    def register(self, tool: BaseTool[StrictParams]) -> None:
        """Register a tool instance with validation.

        Raises:
            ValueError: On duplicate name, short description, loose schema or
                a second service prefix when single-service is enforced.
        """
        meta = tool.metadata
        name = meta.name
        if name in self._tools:
            raise ValueError(f"Tool '{name}' already registered. Use unregister() first.")
        if len(meta.description) < self._min_description:
            raise ValueError(
                f"Tool '{name}' description is shorter than {self._min_description} characters; "
                "state when to use it, what it accepts and what it returns."
            )
        check_params_schema(tool.params_schema)
        if self._single_service and meta.service != META_SERVICE:
            served = self.services() - {META_SERVICE}
            if served and meta.service not in served:
                raise ValueError(f"Tool '{name}' uses service '{meta.service}' but this registry serves {sorted(served)}")
        self._tools[name] = tool
        log.debug("tool registered", tool=name, service=meta.service, verb=meta.verb.value)

    def register_all(self, *tools: BaseTool[StrictParams]) -> None:
        """Register multiple tools at once."""
        for tool in tools:
            self.register(tool)

    def unregister(self, name: str) -> bool:
        """Remove a tool by name. Returns True if found."""
        return self._tools.pop(name, None) is not None

    def get(self, name: str) -> BaseTool[StrictParams] | None:
        """Get tool by name."""
        return self._tools.get(name)

    def __getitem__(self, name: str) -> BaseTool[StrictParams]:
        """Get tool by name, raises KeyError if not found."""
        return self._tools[name]

    def __contains__(self, name: str) -> bool:
        return name in self._tools

    def __len__(self) -> int:
        return len(self._tools)

    def __iter__(self) -> Iterator[BaseTool[StrictParams]]:
        return iter(self._tools.values())

    # ─────────────────────────────────────────────────────────────────
    # Middleware
    # ─────────────────────────────────────────────────────────────────

    def use(self, middleware: Middleware) -> None:
        """Add middleware to the execution pipeline.

        Middleware is applied in order: first added = outermost (runs first).
        """
        self._middleware.append(middleware)
        self._chain = None

    @property
    def middleware(self) -> tuple[Middleware, ...]:
        """Installed middleware, outermost first."""
        return tuple(self._middleware)

    def _get_chain(self) -> Next:
        if self._chain is None:
            self._chain = compose(self._middleware)
        return self._chain

    async def execute(
        self,
        name: str,
        arguments: Mapping[str, object] | BaseModel | None = None,
        *,
        ctx: Context | None = None,
    ) -> ResponseEnvelope:
        """Validate, run through the middleware chain and compose the envelope.

        Never raises for tool failures: unknown tools, validation failures,
        handler exceptions and middleware rejections all become error envelopes.
        """
        composer = self.composer
        tool = self._tools.get(name)
        if tool is None or not tool.metadata.enabled:
            return composer.compose_error(ToolError.create(
                name or "unknown_tool", f"No tool named '{name}' is available",
                ErrorCode.NOT_FOUND, next_step="List the available tools and pick one of them.",
            ))

        context = ctx or Context()
        context["tool_name"] = name
        try:
            output = await self._get_chain()(tool, tool.validate(arguments), context)
        except ToolException as e:
            return composer.compose_error(e.error_for(name))
        except Exception as e:
            log.for_invocation(name, context.get("conversation_id")).exception("tool failed")
            return composer.compose_error(ToolError.from_exception(name, e))
        return composer.compose(name, output, template=tool.metadata.template)

    # ─────────────────────────────────────────────────────────────────
    # Querying
    # ─────────────────────────────────────────────────────────────────

    def list_tools(self, *, enabled_only: bool = True) -> list[ToolMetadata]:
        """List metadata for all registered tools."""
        return [t.metadata for t in self._tools.values() if not enabled_only or t.metadata.enabled]

    def list_by_service(self, service: str, *, enabled_only: bool = True) -> list[ToolMetadata]:
        return [m for m in self.list_tools(enabled_only=enabled_only) if m.service == service]

    def list_by_verb(self, verb: Verb | str, *, enabled_only: bool = True) -> list[ToolMetadata]:
        return [m for m in self.list_tools(enabled_only=enabled_only) if m.verb == verb]

    def services(self) -> set[str]:
        """Get all service prefixes in use."""
        return {t.metadata.service for t in self._tools.values()}

    def descriptors(self, *, enabled_only: bool = True) -> list[JsonDict]:
        """Tool definitions as listed to the agent."""
        return [t.descriptor() for t in self._tools.values() if not enabled_only or t.metadata.enabled]

    def templates(self) -> list[WidgetTemplate]:
        """Distinct widget templates referenced by registered tools."""
        seen: dict[str, WidgetTemplate] = {}
        for t in self._tools.values():
            if (tpl := t.metadata.template) is not None:
                seen.setdefault(tpl.uri, tpl)
        return list(seen.values())

    def clear(self) -> None:
        """Remove all registered tools and middleware."""
        self._tools.clear()
        self._middleware.clear()
        self._chain = None


# ─────────────────────────────────────────────────────────────────────────────
# Global Registry
# ─────────────────────────────────────────────────────────────────────────────

_registry: ToolRegistry | None = None


def get_registry() -> ToolRegistry:
    """Get the global tool registry instance."""
    global _registry
    if _registry is None:
        _registry = ToolRegistry()
    return _registry


def set_registry(registry: ToolRegistry) -> None:
    """Replace the global registry."""
    global _registry
    _registry = registry


def reset_registry() -> None:
    """Reset the global registry (useful for testing)."""
    global _registry
    if _registry is not None:
        _registry.clear()
    _registry = None
