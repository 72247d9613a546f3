"""appcase - three-layer tool responses for conversational apps.

Tools are named ``<service>_<verb>_<noun>``, declare their side effects as
annotation hints, validate input strictly and answer with three channels:
narration for the model, minimal structured data the model can reuse, and
widget-only ``_meta`` for the rendering surface.

Quick Start (Decorator):
    >>> from appcase import ToolOutput, get_registry, tool
    >>>
    >>> @tool(service="taskflow")
    ... def get_task(task_id: str) -> ToolOutput:
    ...     '''Use when the user asks about one task. Returns its title and status.
    ...
    ...     Args:
    ...         task_id: Task identifier from taskflow_list_tasks
    ...     '''
    ...     return ToolOutput(narration=f"Task {task_id} is open.",
    ...                       structured={"id": task_id, "status": "open"})
    >>>
    >>> get_registry().register(get_task)
    >>> get_task(task_id="t-1").to_wire()["structuredContent"]
    {'id': 't-1', 'status': 'open'}

Reference integration:
    >>> from appcase.tools import register_taskflow
    >>> store = register_taskflow(get_registry())

Serving:
    >>> from appcase.ext.mcp import serve_mcp, serve_http
    >>> serve_mcp(get_registry(), transport="streamable-http", port=8080)
    >>> serve_http(get_registry(), port=8000)
"""

from __future__ import annotations

__version__ = "0.1.0"

# Errors
from .foundation.errors import (
    ConflictError,
    ErrorCode,
    InvalidParamsError,
    NotFoundError,
    PermissionDeniedError,
    RateLimitedError,
    ToolError,
    ToolException,
    classify_exception,
)

# Response layer
from .apps import (
    ResponseComposer,
    ResponseEnvelope,
    ToolOutput,
    WidgetCSP,
    WidgetTemplate,
    audit_registry,
    get_composer,
    reset_composer,
    set_composer,
)

# Core
from .foundation.core import (
    BaseTool,
    EmptyParams,
    FunctionTool,
    StrictParams,
    ToolAnnotations,
    ToolMetadata,
    Verb,
    parse_tool_name,
    tool,
)

# Registry
from .foundation.registry import ToolRegistry, get_registry, reset_registry, set_registry

# Config
from .foundation.config import AppcaseSettings, clear_settings_cache, get_settings

# Widget state
from .io.state import (
    InteractionOrigin,
    MemoryStateStore,
    StateStore,
    WidgetPhase,
    WidgetStateError,
    get_state_store,
    reset_state_store,
    set_state_store,
)

# Middleware
from .runtime.middleware import Context, LoggingMiddleware, Middleware, RateLimitMiddleware, TimeoutMiddleware

# Logging
from .runtime.observability import configure_logging, get_logger

__all__ = [
    "__version__",
    # Core
    "BaseTool", "ToolMetadata", "ToolAnnotations", "StrictParams", "EmptyParams", "tool", "FunctionTool",
    "Verb", "parse_tool_name",
    # Errors
    "ErrorCode", "ToolError", "ToolException", "classify_exception",
    "NotFoundError", "PermissionDeniedError", "RateLimitedError", "InvalidParamsError", "ConflictError",
    # Response layer
    "ToolOutput", "ResponseEnvelope", "ResponseComposer", "get_composer", "set_composer", "reset_composer",
    "WidgetTemplate", "WidgetCSP", "audit_registry",
    # Registry
    "ToolRegistry", "get_registry", "set_registry", "reset_registry",
    # Widget state
    "StateStore", "MemoryStateStore", "WidgetPhase", "InteractionOrigin", "WidgetStateError",
    "get_state_store", "set_state_store", "reset_state_store",
    # Middleware
    "Middleware", "Context", "LoggingMiddleware", "RateLimitMiddleware", "TimeoutMiddleware",
    # Config / logging
    "AppcaseSettings", "get_settings", "clear_settings_cache", "configure_logging", "get_logger",
]
