"""Redis widget state backend for multi-process deployments.

Requires: pip install appcase[redis]
"""

from __future__ import annotations

import base64
import math
from collections.abc import Iterator
from typing import Protocol, runtime_checkable

from .state import StateRecord, StateStore


@runtime_checkable
class RedisClient(Protocol):
    """Protocol for sync Redis client (duck typing)."""
    def get(self, key: str) -> bytes | None: ...
    def setex(self, name: str, time: int, value: bytes) -> bool: ...
    def delete(self, *names: str) -> int: ...
    def scan_iter(self, match: str) -> Iterator[bytes | str]: ...
    def ping(self) -> bool: ...


def _import_redis() -> object:
    """Lazy import redis with clear error."""
    try:
        import redis
        return redis
    except ImportError as e:
        raise ImportError(
            "Redis state store requires redis package. "
            "Install with: pip install appcase[redis]"
        ) from e


class RedisStateStore(StateStore):
    """Redis-backed widget state.

    Keys are ``<prefix><conversation>:<instance>`` with the conversation id
    in unpadded urlsafe base64, so ids holding colons or glob characters
    never match another conversation's keys. Redis expiry is set to
    twice the ttl so instances remain observable as STALE before they are
    dropped. Conversation resets use SCAN, never KEYS.

    Args:
        client: Existing Redis client instance (sync)
        prefix: Key prefix for namespacing (default: "appcase:widget:")

    Example:
        >>> store = RedisStateStore.from_url("redis://localhost:6379/0", ttl=3600)
        >>> set_state_store(store)
    """

    def __init__(self, client: RedisClient, prefix: str = "appcase:widget:", **kwargs: object) -> None:
        super().__init__(**kwargs)  # type: ignore[arg-type]
        self._client = client
        self._prefix = prefix

    @classmethod
    def from_url(cls, url: str, prefix: str = "appcase:widget:", **kwargs: object) -> RedisStateStore:
        """Create store from Redis URL. Extra keyword arguments configure the store."""
        redis = _import_redis()
        return cls(redis.from_url(url), prefix, **kwargs)  # type: ignore[attr-defined]

    def _conversation_head(self, conversation_id: str) -> str:
        encoded = base64.urlsafe_b64encode(conversation_id.encode()).decode().rstrip("=")
        return f"{self._prefix}{encoded}:"

    def _key(self, conversation_id: str, instance_id: str) -> str:
        return self._conversation_head(conversation_id) + instance_id

    def _load(self, conversation_id: str, instance_id: str) -> StateRecord | None:
        raw = self._client.get(self._key(conversation_id, instance_id))
        return StateRecord.from_bytes(raw) if raw else None

    def _save(self, conversation_id: str, instance_id: str, record: StateRecord) -> None:
        self._client.setex(self._key(conversation_id, instance_id), math.ceil(self._ttl * 2), record.to_bytes())

    def _scan(self, pattern: str) -> list[str]:
        return [k.decode() if isinstance(k, bytes) else k for k in self._client.scan_iter(match=pattern)]

    def _drop_conversation(self, conversation_id: str) -> int:
        keys = self._scan(self._conversation_head(conversation_id) + "*")
        return self._client.delete(*keys) if keys else 0

    def instances(self, conversation_id: str) -> Iterator[str]:
        head = self._conversation_head(conversation_id)
        return iter([k[len(head):] for k in self._scan(head + "*")])

    def clear(self) -> None:
        """Clear all widget keys using SCAN."""
        if keys := self._scan(f"{self._prefix}*"):
            self._client.delete(*keys)

    def ping(self) -> bool:
        """Check Redis connection health."""
        return bool(self._client.ping())
