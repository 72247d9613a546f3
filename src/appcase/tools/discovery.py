"""Tool discovery - meta-tool for listing available tools.

Lets the agent see which capabilities are active before choosing one.
Names and roles go to structured content; full descriptors stay in _meta.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, ClassVar

from pydantic import Field

from appcase.apps.envelope import ToolOutput
from appcase.foundation.core import BaseTool, StrictParams, ToolAnnotations, ToolMetadata, Verb

if TYPE_CHECKING:
    from appcase.foundation.registry import ToolRegistry


class DiscoveryParams(StrictParams):
    """Parameters for tool discovery."""

    service: str | None = Field(
        default=None,
        pattern=r"^[a-z][a-z0-9_]*$",
        description="Only list tools of this service prefix, e.g. 'taskflow'. Omit to list all.",
    )
    verb: Verb | None = Field(
        default=None,
        description="Only list tools with this verb role, e.g. 'list' or 'delete'. Omit to list all.",
    )


class DiscoveryTool(BaseTool[DiscoveryParams]):
    """Meta-tool that lists the tools in a registry.

    Args:
        registry: Registry to describe (global registry when omitted)
    """

    metadata: ClassVar[ToolMetadata] = ToolMetadata(
        name="appcase_list_tools",
        title="Available tools",
        description=(
            "Use when unsure which tool fits a request. Accepts an optional service prefix and verb "
            "to filter by. Returns each tool's name, verb role and whether it only reads data."
        ),
        annotations=ToolAnnotations(read_only=True, destructive=False, open_world=False),
    )
    params_schema: ClassVar[type[DiscoveryParams]] = DiscoveryParams

    def __init__(self, registry: ToolRegistry | None = None) -> None:
        self._registry = registry

    @property
    def registry(self) -> ToolRegistry:
        if self._registry is None:
            from appcase.foundation.registry import get_registry
            return get_registry()
        return self._registry

    def _run(self, params: DiscoveryParams) -> ToolOutput:
        tools = [
            t for t in self.registry
            if t.metadata.enabled
            and (params.service is None or t.metadata.service == params.service)
            and (params.verb is None or t.metadata.verb == params.verb)
        ]
        tools.sort(key=lambda t: t.metadata.name)

        if not tools:
            scope = " matching that filter" if params.service or params.verb else ""
            narration = f"No tools are available{scope}."
        else:
            names = ", ".join(t.metadata.name for t in tools[:8])
            more = f" and {len(tools) - 8} more" if len(tools) > 8 else ""
            narration = f"{len(tools)} tool{'s' if len(tools) != 1 else ''} available: {names}{more}."

        return ToolOutput(
            narration=narration,
            structured={
                "tools": [
                    {"name": t.metadata.name, "verb": t.metadata.verb.value,
                     "read_only": t.metadata.annotations.read_only}
                    for t in tools
                ],
                "total": len(tools),
            },
            meta={"descriptors": [t.descriptor() for t in tools]},
        )
