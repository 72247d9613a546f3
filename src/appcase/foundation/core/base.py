"""Core tool abstractions: BaseTool, ToolMetadata, ToolAnnotations, StrictParams.

Tools are defined by subclassing BaseTool with a strict parameter schema and
a handler returning a ToolOutput. Every invocation is validated before the
handler runs and composed into a three-layer ResponseEnvelope afterwards.
"""

from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod
from collections.abc import Mapping
from typing import TYPE_CHECKING, ClassVar, Generic, TypeVar

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

from appcase.apps.envelope import ResponseEnvelope, ToolOutput
from appcase.apps.widget import WidgetTemplate
from appcase.foundation.errors import (
    ErrorCode,
    InvalidParamsError,
    JsonDict,
    ToolError,
    ToolException,
    format_validation_error,
    validation_fields,
)

from .naming import ToolName, Verb, parse_tool_name

if TYPE_CHECKING:
    from appcase.apps.composer import ResponseComposer


class ToolAnnotations(BaseModel):
    """Side-effect class of a tool, published as MCP annotation hints.

    All three flags are declared explicitly. They are independent except that
    a read-only tool cannot be destructive.

    Example:
        >>> ToolAnnotations(read_only=False, destructive=True, open_world=False).to_mcp()
        {'readOnlyHint': False, 'destructiveHint': True, 'openWorldHint': False}
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="forbid")

    read_only: bool = Field(..., alias="readOnlyHint", description="No side effects")
    destructive: bool = Field(..., alias="destructiveHint", description="Irreversible removal or modification")
    open_world: bool = Field(..., alias="openWorldHint", description="Reaches a system outside the tool's own store")

    @model_validator(mode="after")
    def _read_only_is_not_destructive(self) -> ToolAnnotations:
        if self.read_only and self.destructive:
            raise ValueError("a read-only tool cannot be destructive")
        return self

    def to_mcp(self) -> dict[str, bool]:
        return self.model_dump(by_alias=True)


class ToolMetadata(BaseModel):
    """Tool definition shown to the agent for tool selection.

    Attributes:
        name: ``<service>_<verb>_<noun>``, unique in the active tool set
        description: When to use the tool, what it accepts and what it returns
        annotations: Declared side-effect class
        title: Optional human-readable title
        template: Widget template rendering the tool's results
        enabled: Whether the tool is currently exposed
    """

    model_config = ConfigDict(frozen=True)

    name: str = Field(..., pattern=r"^[a-z][a-z0-9]*(_[a-z][a-z0-9]*){2,}$")
    description: str = Field(..., min_length=10)
    annotations: ToolAnnotations
    title: str | None = None
    template: WidgetTemplate | None = None
    enabled: bool = True

    @field_validator("name")
    @classmethod
    def _parse_name(cls, v: str) -> str:
        parse_tool_name(v)
        return v

    @model_validator(mode="after")
    def _verb_matches_annotations(self) -> ToolMetadata:
        parsed = self.parsed_name
        if parsed.is_read != self.annotations.read_only:
            kind = "read" if parsed.is_read else "write"
            raise ValueError(
                f"'{self.name}' uses {kind} verb '{parsed.verb}' but declares readOnlyHint={self.annotations.read_only}"
            )
        if parsed.verb is Verb.DELETE and not self.annotations.destructive:
            raise ValueError(f"'{self.name}' deletes data and must declare destructiveHint=True")
        return self

    @property
    def parsed_name(self) -> ToolName:
        return parse_tool_name(self.name)

    @property
    def service(self) -> str:
        return self.parsed_name.service

    @property
    def verb(self) -> Verb:
        return self.parsed_name.verb


class StrictParams(BaseModel):
    """Base for tool input schemas: unknown fields are rejected, never dropped."""

    model_config = ConfigDict(extra="forbid", str_strip_whitespace=True)


class EmptyParams(StrictParams):
    """Schema for tools with no inputs."""


def check_params_schema(schema: type[BaseModel]) -> None:
    """Ensure a schema is strictly closed and every field is described.

    Raises:
        ValueError: On extra fields allowed or a field without description.
    """
    if schema.model_config.get("extra") != "forbid":
        raise ValueError(f"{schema.__name__} must reject unknown fields; subclass StrictParams")
    if missing := [name for name, info in schema.model_fields.items() if not info.description]:
        raise ValueError(f"{schema.__name__} fields need descriptions: {', '.join(missing)}")


TParams = TypeVar("TParams", bound=StrictParams)


class BaseTool(ABC, Generic[TParams]):
    """Abstract base class for all tools.

    Subclasses must:
    - Define `metadata` class variable with ToolMetadata
    - Define `params_schema` class variable with a StrictParams subclass
    - Implement `_run(params)` returning a ToolOutput

    Optional overrides:
    - `_async_run(params)` for native async implementations

    Handlers report failures by raising ToolException (or a shortcut such as
    NotFoundError); the tool composes them into error envelopes.

    Example:
        >>> class GetTaskParams(StrictParams):
        ...     task_id: str = Field(..., description="Task identifier from taskflow_list_tasks")
        ...
        >>> class GetTaskTool(BaseTool[GetTaskParams]):
        ...     metadata = ToolMetadata(
        ...         name="taskflow_get_task",
        ...         description="Use when the user asks about one task. Takes task_id; returns its status.",
        ...         annotations=ToolAnnotations(read_only=True, destructive=False, open_world=False),
        ...     )
        ...     params_schema = GetTaskParams
        ...
        ...     def _run(self, params: GetTaskParams) -> ToolOutput:
        ...         return ToolOutput(narration=f"Task {params.task_id} is open.",
        ...                           structured={"id": params.task_id, "status": "open"})
    """

    metadata: ClassVar[ToolMetadata]
    params_schema: ClassVar[type[StrictParams]]

    # ─────────────────────────────────────────────────────────────────
    # Validation
    # ─────────────────────────────────────────────────────────────────

    def validate(self, arguments: Mapping[str, object] | BaseModel | None) -> TParams:
        """Validate raw arguments against the schema.

        Raises:
            InvalidParamsError: Naming every offending field.
        """
        if isinstance(arguments, self.params_schema):
            return arguments  # type: ignore[return-value]
        if isinstance(arguments, BaseModel):
            arguments = arguments.model_dump()
        try:
            return self.params_schema.model_validate(dict(arguments or {}))  # type: ignore[return-value]
        except ValidationError as e:
            raise InvalidParamsError(
                format_validation_error(e, tool_name=self.metadata.name),
                fields=validation_fields(e),
            ) from None

    # ─────────────────────────────────────────────────────────────────
    # Core Execution
    # ─────────────────────────────────────────────────────────────────

    @abstractmethod
    def _run(self, params: TParams) -> ToolOutput:
        """Execute the tool synchronously and return its three-layer output."""
        ...

    async def _async_run(self, params: TParams) -> ToolOutput:
        """Execute asynchronously. Default runs `_run` in a worker thread."""
        return await asyncio.to_thread(self._run, params)

    def _error(self, exc: BaseException) -> ToolError:
        return ToolError.from_exception(self.metadata.name, exc)

    def run(
        self,
        arguments: Mapping[str, object] | BaseModel | None = None,
        *,
        composer: ResponseComposer | None = None,
    ) -> ResponseEnvelope:
        """Validate, execute and compose synchronously. Never raises for tool failures."""
        from appcase.apps.composer import get_composer
        composer = composer or get_composer()
        try:
            output = self._run(self.validate(arguments))
        except ToolException as e:
            return composer.compose_error(e.error_for(self.metadata.name))
        except Exception as e:
            return composer.compose_error(self._error(e))
        return composer.compose(self.metadata.name, output, template=self.metadata.template)

    async def arun(
        self,
        arguments: Mapping[str, object] | BaseModel | None = None,
        *,
        timeout: float | None = None,
        composer: ResponseComposer | None = None,
    ) -> ResponseEnvelope:
        """Validate, execute and compose asynchronously with an optional timeout."""
        from appcase.apps.composer import get_composer
        composer = composer or get_composer()
        try:
            params = self.validate(arguments)
            output = await asyncio.wait_for(self._async_run(params), timeout=timeout)
        except ToolException as e:
            return composer.compose_error(e.error_for(self.metadata.name))
        except TimeoutError:
            return composer.compose_error(ToolError.create(
                self.metadata.name, f"{self.metadata.name} did not finish within {timeout}s", ErrorCode.TIMEOUT,
            ))
        except Exception as e:
            return composer.compose_error(self._error(e))
        return composer.compose(self.metadata.name, output, template=self.metadata.template)

    def __call__(self, **kwargs: object) -> ResponseEnvelope:
        """Invoke with keyword arguments."""
        return self.run(kwargs)

    # ─────────────────────────────────────────────────────────────────
    # Descriptor
    # ─────────────────────────────────────────────────────────────────

    def input_schema(self) -> JsonDict:
        """Closed JSON schema for the tool's parameters."""
        schema = self.params_schema.model_json_schema()
        schema.pop("title", None)
        schema["additionalProperties"] = False
        for prop in schema.get("properties", {}).values():
            prop.pop("title", None)
        return schema

    def descriptor(self) -> JsonDict:
        """Tool definition as listed to the agent."""
        meta = self.metadata
        out: JsonDict = {
            "name": meta.name,
            "description": meta.description,
            "inputSchema": self.input_schema(),
            "annotations": meta.annotations.to_mcp(),
            "_meta": meta.template.descriptor_meta() if meta.template else {},
        }
        if meta.title:
            out["title"] = meta.title
        return out
