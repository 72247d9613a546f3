"""Bridge between appcase tools and fastmcp primitives.

Registry tools become fastmcp ``Tool`` objects whose results carry all three
envelope layers, and widget templates become skybridge resources.

Requires: pip install appcase[mcp]
"""

from __future__ import annotations

from functools import lru_cache
from typing import TYPE_CHECKING, Any

from pydantic import Field

if TYPE_CHECKING:
    from appcase.apps.envelope import ResponseEnvelope
    from appcase.apps.widget import WidgetTemplate
    from appcase.foundation.core import BaseTool, StrictParams
    from appcase.foundation.registry import ToolRegistry


def _import_fastmcp() -> Any:
    """Lazy import fastmcp with clear error."""
    try:
        import fastmcp
        return fastmcp
    except ImportError as e:
        raise ImportError(
            "MCP integration requires fastmcp. "
            "Install with: pip install appcase[mcp]"
        ) from e


def envelope_to_result(envelope: ResponseEnvelope) -> Any:
    """Convert an envelope into a fastmcp ToolResult with all layers intact."""
    _import_fastmcp()
    from fastmcp.tools.tool import ToolResult

    return ToolResult(
        content=envelope.narration,
        structured_content=envelope.structured_content,
        meta=envelope.meta or None,
    )


@lru_cache(maxsize=1)
def _registry_tool_class() -> type:
    _import_fastmcp()
    from fastmcp.tools import Tool

    class RegistryTool(Tool):
        """fastmcp Tool that dispatches through a ToolRegistry."""

        registry: Any = Field(default=None, exclude=True)

        async def run(self, arguments: dict[str, Any]) -> Any:
            return envelope_to_result(await self.registry.execute(self.name, arguments))

    return RegistryTool


def tool_to_mcp(tool: BaseTool[StrictParams], registry: ToolRegistry) -> Any:
    """Build the fastmcp Tool for a registered tool.

    The published schema, annotations and template ``_meta`` are the same
    ones the HTTP transport lists.
    """
    from mcp.types import ToolAnnotations

    meta = tool.metadata
    return _registry_tool_class()(
        name=meta.name,
        title=meta.title,
        description=meta.description,
        parameters=tool.input_schema(),
        annotations=ToolAnnotations(title=meta.title, **meta.annotations.to_mcp()),
        meta=meta.template.descriptor_meta() if meta.template else None,
        registry=registry,
    )


def template_to_resource(template: WidgetTemplate) -> Any:
    """Build the fastmcp resource serving a widget template."""
    _import_fastmcp()
    from fastmcp.resources import TextResource

    entry = template.resource()
    return TextResource(
        uri=entry["uri"],
        name=entry["name"],
        text=entry["text"],
        mime_type=entry["mimeType"],
        description=template.description,
        meta=entry["_meta"] or None,
    )


def registry_to_mcp(registry: ToolRegistry, *, enabled_only: bool = True) -> list[Any]:
    """Convert all registry tools to fastmcp Tools."""
    return [
        tool_to_mcp(tool, registry)
        for tool in registry
        if not enabled_only or tool.metadata.enabled
    ]
