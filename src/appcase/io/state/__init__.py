"""Widget state stores.

- StateStore: lifecycle rules (render, persist, read, composer reset)
- MemoryStateStore: in-process backend
- RedisStateStore: shared backend for multi-process servers
"""

from __future__ import annotations

from .memory import MemoryStateStore
from .redis import RedisClient, RedisStateStore
from .state import (
    InteractionOrigin,
    StateRecord,
    StateStore,
    StateWrite,
    WidgetPhase,
    WidgetState,
    WidgetStateError,
    estimate_tokens,
)

_store: StateStore | None = None


def get_state_store() -> StateStore:
    """Get the global state store, built from settings on first use."""
    global _store
    if _store is None:
        from appcase.foundation.config import get_settings
        cfg = get_settings().widget
        opts = {"ttl": cfg.ttl, "token_budget": cfg.token_budget, "chars_per_token": cfg.chars_per_token}
        if cfg.redis_url is not None:
            _store = RedisStateStore.from_url(cfg.redis_url.get_secret_value(), **opts)
        else:
            _store = MemoryStateStore(max_entries=cfg.max_entries, **opts)
    return _store


def set_state_store(store: StateStore) -> None:
    """Set a custom state store."""
    global _store
    _store = store


def reset_state_store() -> None:
    """Reset the global store (useful for testing)."""
    global _store
    if _store is not None:
        _store.clear()
    _store = None


__all__ = [
    "WidgetPhase", "InteractionOrigin", "WidgetState", "WidgetStateError", "StateWrite", "StateRecord",
    "StateStore", "MemoryStateStore", "RedisStateStore", "RedisClient", "estimate_tokens",
    "get_state_store", "set_state_store", "reset_state_store",
]
