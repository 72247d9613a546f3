"""Unified error handling for appcase.

- ErrorCode: error categories surfaced to the model
- ToolError: structured failure with narration and structured renderings
- ToolException and shortcuts: raised by handlers, bound to a tool by the dispatcher
- format_validation_error: one-sentence rendering of pydantic validation failures
"""

from .errors import (
    NEXT_STEPS,
    PERMISSION_DENIED_MESSAGE,
    ConflictError,
    ErrorCode,
    InvalidParamsError,
    NotFoundError,
    PermissionDeniedError,
    RateLimitedError,
    ToolError,
    ToolException,
    classify_exception,
    format_validation_error,
    is_generic_message,
    validation_fields,
)
from .types import JsonDict, JsonMapping, JsonPrimitive, JsonValue

__all__ = [
    # Core errors
    "ErrorCode", "ToolError", "ToolException", "classify_exception",
    "NEXT_STEPS", "PERMISSION_DENIED_MESSAGE", "is_generic_message",
    # Shortcuts
    "NotFoundError", "PermissionDeniedError", "RateLimitedError", "InvalidParamsError", "ConflictError",
    # Validation
    "format_validation_error", "validation_fields",
    # Types
    "JsonDict", "JsonMapping", "JsonPrimitive", "JsonValue",
]
