"""Foundation - core building blocks for appcase.

Contains: tool abstractions and naming, error handling, registry, testing, config.
"""

from __future__ import annotations

__all__ = [
    # Core
    "BaseTool", "ToolMetadata", "ToolAnnotations", "StrictParams", "EmptyParams", "tool", "FunctionTool",
    "Verb", "ToolName", "ToolNameError", "parse_tool_name", "is_valid_tool_name",
    # Errors
    "ErrorCode", "ToolError", "ToolException", "classify_exception",
    "NotFoundError", "PermissionDeniedError", "RateLimitedError", "InvalidParamsError", "ConflictError",
    # Registry
    "ToolRegistry", "get_registry", "set_registry", "reset_registry",
    # Testing
    "mock_tool", "MockTool", "Invocation",
    # Config
    "AppcaseSettings", "get_settings", "clear_settings_cache",
]

_MODULES = {
    "core": ("BaseTool", "ToolMetadata", "ToolAnnotations", "StrictParams", "EmptyParams", "tool", "FunctionTool",
             "Verb", "ToolName", "ToolNameError", "parse_tool_name", "is_valid_tool_name"),
    "errors": ("ErrorCode", "ToolError", "ToolException", "classify_exception",
               "NotFoundError", "PermissionDeniedError", "RateLimitedError", "InvalidParamsError", "ConflictError"),
    "registry": ("ToolRegistry", "get_registry", "set_registry", "reset_registry"),
    "testing": ("mock_tool", "MockTool", "Invocation"),
    "config": ("AppcaseSettings", "get_settings", "clear_settings_cache"),
}


def __getattr__(name: str):
    """Lazy imports to avoid circular dependencies."""
    for module, names in _MODULES.items():
        if name in names:
            from importlib import import_module
            return getattr(import_module(f"{__name__}.{module}"), name)
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
