"""Three-layer tool response types.

- ToolOutput: what a handler returns (narration, structured data, widget metadata)
- ResponseEnvelope: the wire result, ``content`` / ``structuredContent`` / ``_meta``

Narration and structured content are visible to the calling model. ``_meta``
reaches the rendering widget only.
"""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from appcase.foundation.errors import JsonDict


class ToolOutput(BaseModel):
    """Handler result before composition.

    Attributes:
        narration: Short outcome summary for the model's conversation
        structured: Minimal fields the model may reuse in later calls
        meta: Widget-only payload (full objects, cursors, UI preferences)

    Example:
        >>> ToolOutput(
        ...     narration="Found 2 open tasks.",
        ...     structured={"tasks": [{"id": "t-1", "status": "open"}], "total": 2},
        ...     meta={"next_cursor": "20"},
        ... )  # doctest: +SKIP
    """

    model_config = ConfigDict(frozen=True)

    narration: str = Field(..., min_length=1)
    structured: JsonDict = Field(default_factory=dict)
    meta: JsonDict = Field(default_factory=dict)


class TextContent(BaseModel):
    """One narration block."""

    model_config = ConfigDict(frozen=True)

    type: Literal["text"] = "text"
    text: str


class ResponseEnvelope(BaseModel):
    """Result of one tool invocation, split by visibility."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    content: list[TextContent] = Field(default_factory=list)
    structured_content: JsonDict = Field(default_factory=dict, alias="structuredContent")
    meta: JsonDict = Field(default_factory=dict, alias="_meta")
    is_error: bool = Field(default=False, alias="isError")

    @property
    def narration(self) -> str:
        return "\n".join(block.text for block in self.content)

    @property
    def error_category(self) -> str | None:
        """Error category from structured content, None on success."""
        return self.structured_content.get("category") if self.is_error else None

    def to_wire(self) -> JsonDict:
        """Serialize with protocol key names."""
        return self.model_dump(mode="json", by_alias=True)

    def model_visible(self) -> JsonDict:
        """Only the channels the calling model sees."""
        return {
            "content": [block.model_dump() for block in self.content],
            "structuredContent": self.structured_content,
            "isError": self.is_error,
        }
