"""Core tool abstractions and decorators.

- BaseTool: Abstract base class for all tools
- ToolMetadata / ToolAnnotations: Tool definition and side-effect class
- StrictParams / EmptyParams: Closed parameter schemas
- @tool decorator: Convert functions to tools
- Tool name grammar: ``<service>_<verb>_<noun>``
"""

from .base import BaseTool, EmptyParams, StrictParams, ToolAnnotations, ToolMetadata, check_params_schema
from .decorator import FunctionTool, tool
from .naming import READ_VERBS, WRITE_VERBS, ToolName, ToolNameError, Verb, is_valid_tool_name, parse_tool_name

__all__ = [
    "BaseTool",
    "ToolMetadata",
    "ToolAnnotations",
    "StrictParams",
    "EmptyParams",
    "check_params_schema",
    "tool",
    "FunctionTool",
    "Verb",
    "READ_VERBS",
    "WRITE_VERBS",
    "ToolName",
    "ToolNameError",
    "parse_tool_name",
    "is_valid_tool_name",
]
