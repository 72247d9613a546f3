"""In-memory widget state backend."""

from __future__ import annotations

from collections.abc import Iterator

from .state import StateRecord, StateStore

DEFAULT_MAX_ENTRIES = 10_000


class MemoryStateStore(StateStore):
    """Thread-safe in-memory store with bounded entries.

    When full, instances older than the ttl are evicted first, then the
    least recently touched quarter.

    Example:
        >>> store = MemoryStateStore(ttl=3600)
        >>> store.render("c-1", "w-1", {"selected": None}).phase
        <WidgetPhase.ACTIVE: 'active'>
        >>> store.persist("c-1", "w-1", {"selected": "t-1"}).over_budget
        False
    """

    def __init__(self, *, max_entries: int = DEFAULT_MAX_ENTRIES, **kwargs: object) -> None:
        super().__init__(**kwargs)  # type: ignore[arg-type]
        self._records: dict[tuple[str, str], StateRecord] = {}
        self._max_entries = max_entries

    def _load(self, conversation_id: str, instance_id: str) -> StateRecord | None:
        with self._lock:
            record = self._records.get((conversation_id, instance_id))
            return None if record is None else record.copy()

    def _save(self, conversation_id: str, instance_id: str, record: StateRecord) -> None:
        key = (conversation_id, instance_id)
        with self._lock:
            if key not in self._records and len(self._records) >= self._max_entries:
                self._evict_unlocked()
            self._records[key] = record.copy()

    def _drop_conversation(self, conversation_id: str) -> int:
        with self._lock:
            keys = [k for k in self._records if k[0] == conversation_id]
            for key in keys:
                del self._records[key]
            return len(keys)

    def instances(self, conversation_id: str) -> Iterator[str]:
        with self._lock:
            return iter([iid for cid, iid in self._records if cid == conversation_id])

    def clear(self) -> None:
        with self._lock:
            self._records.clear()

    def _evict_unlocked(self) -> None:
        """Remove stale entries, then oldest if still over capacity. Caller must hold lock."""
        cutoff = self._clock() - self._ttl
        for key in [k for k, v in self._records.items() if v.updated_at < cutoff]:
            del self._records[key]
        if len(self._records) >= self._max_entries:
            oldest = sorted(self._records, key=lambda k: self._records[k].updated_at)
            for key in oldest[: max(self._max_entries // 4, 1)]:
                del self._records[key]

    @property
    def size(self) -> int:
        with self._lock:
            return len(self._records)
