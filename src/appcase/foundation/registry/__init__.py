"""Tool registry: registration, lookup, middleware and execution."""

from .registry import ToolRegistry, get_registry, reset_registry, set_registry

__all__ = ["ToolRegistry", "get_registry", "set_registry", "reset_registry"]
