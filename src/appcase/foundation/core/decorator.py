"""Decorator-based tool definition for plain functions.

Builds a full BaseTool from a function: the strict parameter schema comes
from its type hints, field descriptions from its docstring ``Args`` section,
and annotation defaults from the verb in its name.

Example:
    >>> @tool(service="taskflow")
    ... def get_task(task_id: str) -> ToolOutput:
    ...     '''Use when the user asks about one task. Returns its title and status.
    ...
    ...     Args:
    ...         task_id: Task identifier from taskflow_list_tasks
    ...     '''
    ...     return ToolOutput(narration=f"Task {task_id} is open.", structured={"id": task_id})
    ...
    >>> get_task.metadata.name
    'taskflow_get_task'
    >>> get_task.metadata.annotations.read_only
    True
"""

from __future__ import annotations

import asyncio
import inspect
import re
from collections.abc import Awaitable, Callable
from functools import wraps
from typing import Any, get_type_hints

from pydantic import Field, create_model

from appcase.apps.envelope import ToolOutput
from appcase.apps.widget import WidgetTemplate

from .base import BaseTool, StrictParams, ToolAnnotations, ToolMetadata, check_params_schema
from .naming import Verb, parse_tool_name

Handler = Callable[..., ToolOutput] | Callable[..., Awaitable[ToolOutput]]


# ─────────────────────────────────────────────────────────────────────────────
# Docstring Parsing
# ─────────────────────────────────────────────────────────────────────────────

_PARAM_PATTERN = re.compile(
    r"^\s*(?P<name>\w+)\s*(?:\([^)]*\))?\s*:\s*(?P<desc>.+?)(?=\n\s*\w+\s*(?:\([^)]*\))?\s*:|$)",
    re.MULTILINE | re.DOTALL,
)
_SECTION = re.compile(r"(?:^|\n)\s*(?:Args|Arguments|Parameters)\s*:\s*\n", re.IGNORECASE)
_END_SECTION = re.compile(r"\n\s*(?:Returns|Raises|Examples?|Notes?|Yields)\s*:", re.IGNORECASE)


def _parse_docstring_params(docstring: str | None) -> dict[str, str]:
    """Extract parameter descriptions from a Google-style ``Args`` section."""
    if not docstring:
        return {}
    sections = _SECTION.split(inspect.cleandoc(docstring), maxsplit=1)
    if len(sections) < 2:
        return {}
    args_section = _END_SECTION.split(sections[1], maxsplit=1)[0]
    return {
        m.group("name"): " ".join(m.group("desc").split())
        for m in _PARAM_PATTERN.finditer(args_section)
    }


def _extract_description(docstring: str | None) -> str | None:
    """Summary paragraphs of a docstring, up to its first section."""
    if not docstring:
        return None
    summary = _END_SECTION.split(_SECTION.split(inspect.cleandoc(docstring), maxsplit=1)[0], maxsplit=1)[0]
    return " ".join(summary.split()) or None


# ─────────────────────────────────────────────────────────────────────────────
# Schema Generation
# ─────────────────────────────────────────────────────────────────────────────

def _generate_schema(func: Callable[..., Any], model_name: str) -> type[StrictParams]:
    """Build a strict params model from the function signature.

    Raises:
        ValueError: If a parameter lacks a docstring description.
    """
    sig = inspect.signature(func)
    hints = get_type_hints(func, include_extras=True)
    param_docs = _parse_docstring_params(func.__doc__)

    fields: dict[str, tuple[Any, Any]] = {}
    for name, param in sig.parameters.items():
        if name in ("self", "cls") or param.kind in (param.VAR_POSITIONAL, param.VAR_KEYWORD):
            continue
        field_type = hints.get(name, str)
        description = param_docs.get(name)
        default = ... if param.default is inspect.Parameter.empty else param.default
        fields[name] = (field_type, Field(default, description=description))

    schema: type[StrictParams] = create_model(model_name, __base__=StrictParams, **fields)  # type: ignore[call-overload]
    check_params_schema(schema)
    return schema


# ─────────────────────────────────────────────────────────────────────────────
# FunctionTool: BaseTool wrapper for functions
# ─────────────────────────────────────────────────────────────────────────────

class FunctionTool(BaseTool[StrictParams]):
    """BaseTool implementation that wraps a decorated function.

    Each decorated function gets its own subclass so ``metadata`` and
    ``params_schema`` stay class-level, as on hand-written tools.
    """

    def __init__(self, func: Handler) -> None:
        self._func = func
        self._is_async = inspect.iscoroutinefunction(func)

    @classmethod
    def build(cls, func: Handler, metadata: ToolMetadata, params_schema: type[StrictParams]) -> FunctionTool:
        subclass = type(
            f"FunctionTool_{metadata.name}",
            (cls,),
            {"metadata": metadata, "params_schema": params_schema},
        )
        return subclass(func)

    @staticmethod
    def _checked(result: object) -> ToolOutput:
        if not isinstance(result, ToolOutput):
            raise TypeError(f"tool handlers must return ToolOutput, got {type(result).__name__}")
        return result

    def _run(self, params: StrictParams) -> ToolOutput:
        kwargs = params.model_dump()
        if self._is_async:
            return self._checked(asyncio.run(self._func(**kwargs)))  # type: ignore[arg-type]
        return self._checked(self._func(**kwargs))

    async def _async_run(self, params: StrictParams) -> ToolOutput:
        kwargs = params.model_dump()
        if self._is_async:
            return self._checked(await self._func(**kwargs))  # type: ignore[misc]
        return self._checked(await asyncio.to_thread(self._func, **kwargs))

    @property
    def func(self) -> Handler:
        """Access the original wrapped function."""
        return self._func


# ─────────────────────────────────────────────────────────────────────────────
# The @tool Decorator
# ─────────────────────────────────────────────────────────────────────────────

def tool(
    func: Handler | None = None,
    *,
    service: str | None = None,
    name: str | None = None,
    description: str | None = None,
    read_only: bool | None = None,
    destructive: bool | None = None,
    open_world: bool = False,
    template: WidgetTemplate | None = None,
    title: str | None = None,
) -> FunctionTool | Callable[[Handler], FunctionTool]:
    """Decorator to create a tool from a function.

    Args:
        func: The function to wrap (used when decorator called without parens)
        service: Service prefix; the name becomes ``<service>_<function name>``
        name: Full tool name, overriding the service-derived one
        description: Tool description (defaults to the docstring summary)
        read_only: readOnlyHint (defaults to whether the verb is a read verb)
        destructive: destructiveHint (defaults to True only for delete verbs)
        open_world: openWorldHint
        template: Widget template rendering the tool's results
        title: Human-readable title

    Returns:
        FunctionTool instance that wraps the function

    Raises:
        ValueError: If the name, description, schema or annotations are invalid.
    """
    def decorator(fn: Handler) -> FunctionTool:
        tool_name = name or (f"{service}_{fn.__name__}" if service else fn.__name__)
        verb = parse_tool_name(tool_name).verb
        tool_desc = description or _extract_description(fn.__doc__)
        if not tool_desc:
            raise ValueError(f"{tool_name} needs a description or a docstring")

        meta = ToolMetadata(
            name=tool_name,
            description=tool_desc,
            title=title,
            template=template,
            annotations=ToolAnnotations(
                read_only=verb.is_read if read_only is None else read_only,
                destructive=(verb is Verb.DELETE) if destructive is None else destructive,
                open_world=open_world,
            ),
        )
        schema = _generate_schema(fn, "".join(w.capitalize() for w in tool_name.split("_")) + "Params")
        instance = FunctionTool.build(fn, meta, schema)
        wraps(fn)(instance)
        return instance

    if func is not None:
        return decorator(func)
    return decorator
