"""Standardized error handling for tools.

Every failure reaches the model twice: as a narration sentence naming the cause
and a next step, and as a machine-checkable indicator in structured content.
Uses Pydantic for validation and serialization.
"""

from __future__ import annotations

import math
import re
from enum import StrEnum
from functools import lru_cache
from typing import Annotated, Self

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    computed_field,
    field_validator,
    model_validator,
)

from .types import JsonDict


class ErrorCode(StrEnum):
    """Error categories surfaced to the model in structured content."""
    NOT_FOUND = "NOT_FOUND"
    RATE_LIMITED = "RATE_LIMITED"
    PERMISSION_DENIED = "PERMISSION_DENIED"
    INVALID_PARAMS = "INVALID_PARAMS"
    CONFLICT = "CONFLICT"
    TIMEOUT = "TIMEOUT"
    EXTERNAL_SERVICE_ERROR = "EXTERNAL_SERVICE_ERROR"
    UNKNOWN = "UNKNOWN"


# Default next step per category, used when the raiser does not supply one
NEXT_STEPS: dict[ErrorCode, str] = {
    ErrorCode.NOT_FOUND: "List the available items again and retry with a current identifier.",
    ErrorCode.RATE_LIMITED: "Wait before retrying.",
    ErrorCode.PERMISSION_DENIED: "Ask the user to check their access or pick an item they own.",
    ErrorCode.INVALID_PARAMS: "Correct the listed fields and call the tool again.",
    ErrorCode.CONFLICT: "Fetch the latest version of the item and retry the change.",
    ErrorCode.TIMEOUT: "Retry the request, or narrow it if it keeps timing out.",
    ErrorCode.EXTERNAL_SERVICE_ERROR: "Retry shortly, or tell the user the service is unavailable.",
    ErrorCode.UNKNOWN: "Retry once, and tell the user the action could not be completed if it fails again.",
}

PERMISSION_DENIED_MESSAGE = "Access to this item was denied."

# Messages that tell the model nothing about the cause
_GENERIC_MESSAGES = frozenset({
    "error", "failed", "failure", "unknown error", "an error occurred",
    "something went wrong", "internal error", "internal server error", "oops",
})
_NUMERIC_ONLY = re.compile(r"^[\s\d.:#-]*$")

_PATTERN_CODES: dict[str, ErrorCode] = {
    "timeout": ErrorCode.TIMEOUT,
    "timedout": ErrorCode.TIMEOUT,
    "notfound": ErrorCode.NOT_FOUND,
    "not found": ErrorCode.NOT_FOUND,
    "keyerror": ErrorCode.NOT_FOUND,
    "lookup": ErrorCode.NOT_FOUND,
    "permission": ErrorCode.PERMISSION_DENIED,
    "forbidden": ErrorCode.PERMISSION_DENIED,
    "unauthorized": ErrorCode.PERMISSION_DENIED,
    "ratelimit": ErrorCode.RATE_LIMITED,
    "rate limit": ErrorCode.RATE_LIMITED,
    "throttl": ErrorCode.RATE_LIMITED,
    "conflict": ErrorCode.CONFLICT,
    "validation": ErrorCode.INVALID_PARAMS,
    "valueerror": ErrorCode.INVALID_PARAMS,
    "connection": ErrorCode.EXTERNAL_SERVICE_ERROR,
    "network": ErrorCode.EXTERNAL_SERVICE_ERROR,
}
_PATTERN_KEYS = tuple(_PATTERN_CODES.keys())  # Ordered for priority

_RETRYABLE_CODES: frozenset[ErrorCode] = frozenset({
    ErrorCode.RATE_LIMITED,
    ErrorCode.TIMEOUT,
    ErrorCode.EXTERNAL_SERVICE_ERROR,
})


@lru_cache(maxsize=256)
def _classify_cached(exc_key: str) -> ErrorCode:
    haystack = exc_key.lower()
    for pattern in _PATTERN_KEYS:
        if pattern in haystack:
            return _PATTERN_CODES[pattern]
    return ErrorCode.UNKNOWN


def classify_exception(exc: BaseException) -> ErrorCode:
    """Map exception to error code via pattern matching on name/message."""
    if isinstance(exc, ToolException):
        return exc.code
    return _classify_cached(f"{type(exc).__name__} {exc}")


def is_generic_message(message: str) -> bool:
    """Whether a message is empty, numeric-only or a stock failure phrase."""
    text = message.strip().rstrip(".!").lower()
    return not text or text in _GENERIC_MESSAGES or bool(_NUMERIC_ONLY.match(text))


class ToolError(BaseModel):
    """Structured error response for tool failures.

    Attributes:
        tool_name: Name of the tool that failed
        message: Specific, human-readable cause
        code: Machine-readable error category
        next_step: Suggested recovery action (defaults per category)
        retry_after_seconds: Back-off duration for rate limits
        invalid_fields: Offending input fields for validation failures
        recoverable: Whether the caller can do something to succeed
    """

    model_config = ConfigDict(
        frozen=True,
        str_strip_whitespace=True,
        validate_default=True,
        json_schema_extra={
            "title": "Tool Error",
            "examples": [{
                "tool_name": "taskflow_get_task",
                "message": "Task 't-42' was not found.",
                "code": "NOT_FOUND",
            }],
        },
    )

    tool_name: Annotated[str, Field(min_length=1)]
    message: Annotated[str, Field(min_length=1)]
    code: ErrorCode = ErrorCode.UNKNOWN
    next_step: str | None = None
    retry_after_seconds: Annotated[float, Field(ge=0)] | None = None
    invalid_fields: tuple[str, ...] = ()
    recoverable: bool = True

    @model_validator(mode="before")
    @classmethod
    def _mask_permission_detail(cls, data: object) -> object:
        """Permission failures never carry the raiser's wording."""
        if isinstance(data, dict) and data.get("code") in (ErrorCode.PERMISSION_DENIED, "PERMISSION_DENIED"):
            return {**data, "message": PERMISSION_DENIED_MESSAGE}
        return data

    @field_validator("message")
    @classmethod
    def _reject_generic(cls, v: str) -> str:
        if is_generic_message(v):
            raise ValueError(f"error message {v!r} is too generic; name the cause")
        return v

    @computed_field
    @property
    def is_retryable(self) -> bool:
        """Whether retrying the same call may succeed (rate limits, timeouts, outages)."""
        return self.code in _RETRYABLE_CODES

    @property
    def suggested_step(self) -> str:
        if self.next_step:
            return self.next_step
        if self.code is ErrorCode.RATE_LIMITED and self.retry_after_seconds is not None:
            return f"Wait {math.ceil(self.retry_after_seconds)} seconds before retrying."
        return NEXT_STEPS[self.code]

    @classmethod
    def create(
        cls,
        tool_name: str,
        message: str,
        code: ErrorCode = ErrorCode.UNKNOWN,
        *,
        next_step: str | None = None,
        retry_after_seconds: float | None = None,
        fields: tuple[str, ...] = (),
        recoverable: bool = True,
    ) -> Self:
        """Factory method for construction."""
        return cls(
            tool_name=tool_name, message=message, code=code, next_step=next_step,
            retry_after_seconds=retry_after_seconds, invalid_fields=fields, recoverable=recoverable,
        )

    @classmethod
    def from_exception(cls, tool_name: str, exc: BaseException, context: str = "") -> Self:
        """Create from an unexpected exception with auto-classification.

        The traceback is never included; it belongs in logs, not narration.
        """
        if isinstance(exc, ToolException):
            return exc.error_for(tool_name)
        detail = str(exc).strip()
        if is_generic_message(detail):
            detail = f"{tool_name} stopped with an unexpected {type(exc).__name__}"
        return cls(
            tool_name=tool_name,
            message=f"{context}: {detail}" if context else detail,
            code=classify_exception(exc),
        )

    @property
    def cause(self) -> str:
        """The message as a sentence."""
        return self.message if self.message.endswith((".", "!", "?")) else f"{self.message}."

    def render(self) -> str:
        """Narration sentence: the cause followed by the next step."""
        return f"{self.cause} {self.suggested_step}"

    def structured(self) -> JsonDict:
        """Machine-checkable error indicator for structured content."""
        out: JsonDict = {
            "error": True,
            "category": self.code.value,
            "message": self.message,
            "retryable": self.is_retryable,
        }
        if self.retry_after_seconds is not None:
            out["retry_after_seconds"] = self.retry_after_seconds
        if self.invalid_fields:
            out["fields"] = list(self.invalid_fields)
        return out

    __str__ = render


class ToolException(Exception):
    """Exception raised by tool handlers to report a categorized failure.

    The dispatcher binds the tool name when converting it to a ToolError.
    """

    code: ErrorCode = ErrorCode.UNKNOWN

    def __init__(
        self,
        message: str,
        code: ErrorCode | None = None,
        *,
        next_step: str | None = None,
        retry_after_seconds: float | None = None,
        fields: tuple[str, ...] = (),
        recoverable: bool = True,
    ) -> None:
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code
        self.next_step = next_step
        self.retry_after_seconds = retry_after_seconds
        self.fields = fields
        self.recoverable = recoverable

    def error_for(self, tool_name: str) -> ToolError:
        """Bind this failure to the tool that raised it."""
        return ToolError.create(
            tool_name, self.message, self.code,
            next_step=self.next_step, retry_after_seconds=self.retry_after_seconds,
            fields=self.fields, recoverable=self.recoverable,
        )


class NotFoundError(ToolException):
    """Referenced entity no longer exists."""
    code = ErrorCode.NOT_FOUND


class PermissionDeniedError(ToolException):
    """Caller lacks access. The message is replaced before it reaches the model."""
    code = ErrorCode.PERMISSION_DENIED


class RateLimitedError(ToolException):
    """Caller must back off before retrying."""
    code = ErrorCode.RATE_LIMITED

    def __init__(self, message: str, *, retry_after_seconds: float, next_step: str | None = None) -> None:
        super().__init__(message, next_step=next_step, retry_after_seconds=retry_after_seconds)


class InvalidParamsError(ToolException):
    """Input rejected by the tool's schema or by a handler-level check."""
    code = ErrorCode.INVALID_PARAMS

    def __init__(self, message: str, *, fields: tuple[str, ...] = (), next_step: str | None = None) -> None:
        super().__init__(message, fields=fields, next_step=next_step, recoverable=True)


class ConflictError(ToolException):
    """The requested change clashes with the entity's current state."""
    code = ErrorCode.CONFLICT


def _field_path(loc: tuple[int | str, ...]) -> str:
    return ".".join(str(p) for p in loc) or "input"


def format_validation_error(exc: ValidationError, *, tool_name: str) -> str:
    """Render a pydantic ValidationError as one specific sentence for the model."""
    problems: list[str] = []
    for err in exc.errors():
        path = _field_path(err.get("loc", ()))
        match err.get("type"):
            case "extra_forbidden":
                problems.append(f"'{path}' is not an accepted field")
            case "missing":
                problems.append(f"'{path}' is required")
            case _:
                problems.append(f"'{path}' {err.get('msg', 'is invalid').lower()}")
    return f"Invalid input for {tool_name}: {'; '.join(problems)}."


def validation_fields(exc: ValidationError) -> tuple[str, ...]:
    """Offending field paths, in error order without duplicates."""
    return tuple(dict.fromkeys(_field_path(err.get("loc", ())) for err in exc.errors()))
