"""Widget state lifecycle.

Each widget instance in a conversation moves through three phases:

    UNINITIALIZED --render--> ACTIVE --persist--> ACTIVE
          ^                     |  \\
          |   composer input    |   \\ ttl elapsed
          +---------------------+    +--> STALE --render--> ACTIVE

A new message typed into the conversation composer is the only reset
signal. Interactions inside the widget and follow-up tool calls keep
state. Persisted state replaces the previous value wholesale.
"""

from __future__ import annotations

import threading
import time
from abc import ABC, abstractmethod
from collections.abc import Callable, Iterator
from dataclasses import dataclass
from enum import StrEnum

import orjson
from pydantic import BaseModel, ConfigDict, Field

from appcase.foundation.errors import ErrorCode, JsonDict, ToolException
from appcase.runtime.observability import get_logger

log = get_logger("appcase.state")

DEFAULT_TOKEN_BUDGET = 4000
CHARS_PER_TOKEN = 4
DEFAULT_TTL: float = 86400.0


class WidgetPhase(StrEnum):
    UNINITIALIZED = "uninitialized"
    ACTIVE = "active"
    STALE = "stale"


class InteractionOrigin(StrEnum):
    """Where an interaction came from. Only COMPOSER resets widget state."""
    COMPOSER = "composer"
    WIDGET = "widget"
    TOOL_CALL = "tool_call"


class WidgetStateError(ToolException):
    """State mutation attempted on an instance that is not active."""
    code = ErrorCode.NOT_FOUND


class WidgetState(BaseModel):
    """Snapshot of one widget instance."""

    model_config = ConfigDict(frozen=True)

    conversation_id: str
    instance_id: str
    phase: WidgetPhase
    data: JsonDict = Field(default_factory=dict)
    updated_at: float | None = None


@dataclass(frozen=True, slots=True)
class StateWrite:
    """Outcome of a persist call."""
    state: WidgetState
    tokens: int
    budget: int

    @property
    def over_budget(self) -> bool:
        return self.tokens > self.budget


@dataclass(slots=True)
class StateRecord:
    """Stored form of an active instance."""
    data: JsonDict
    updated_at: float

    def to_bytes(self) -> bytes:
        return orjson.dumps({"data": self.data, "updated_at": self.updated_at})

    def copy(self) -> StateRecord:
        """Deep copy through the stored form; nested values are never shared."""
        return StateRecord.from_bytes(self.to_bytes())

    @classmethod
    def from_bytes(cls, raw: bytes | str) -> StateRecord:
        obj = orjson.loads(raw)
        return cls(data=obj["data"], updated_at=obj["updated_at"])


def estimate_tokens(data: JsonDict, chars_per_token: int = CHARS_PER_TOKEN) -> int:
    """Approximate token count of serialized state (bytes / chars_per_token, rounded up)."""
    return -(-len(orjson.dumps(data, default=str)) // chars_per_token)


class StateStore(ABC):
    """Widget state lifecycle over a key-value backend.

    Subclasses provide storage primitives keyed by (conversation, instance);
    the phase rules live here. Read-modify-write sequences run under a
    process-local lock.

    Args:
        ttl: Seconds after the last touch before an instance is STALE
        token_budget: Approximate token budget per instance
        chars_per_token: Serialized bytes per estimated token
        clock: Wall-clock time source
    """

    def __init__(
        self,
        *,
        ttl: float = DEFAULT_TTL,
        token_budget: int = DEFAULT_TOKEN_BUDGET,
        chars_per_token: int = CHARS_PER_TOKEN,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._ttl = ttl
        self._budget = token_budget
        self._chars_per_token = chars_per_token
        self._clock = clock
        self._lock = threading.RLock()

    @property
    def ttl(self) -> float:
        return self._ttl

    @property
    def token_budget(self) -> int:
        return self._budget

    # ─────────────────────────────────────────────────────────────────
    # Backend primitives
    # ─────────────────────────────────────────────────────────────────

    @abstractmethod
    def _load(self, conversation_id: str, instance_id: str) -> StateRecord | None: ...

    @abstractmethod
    def _save(self, conversation_id: str, instance_id: str, record: StateRecord) -> None: ...

    @abstractmethod
    def _drop_conversation(self, conversation_id: str) -> int:
        """Remove every instance of a conversation. Returns count removed."""
        ...

    @abstractmethod
    def instances(self, conversation_id: str) -> Iterator[str]:
        """Instance ids stored for a conversation."""
        ...

    @abstractmethod
    def clear(self) -> None: ...

    # ─────────────────────────────────────────────────────────────────
    # Lifecycle
    # ─────────────────────────────────────────────────────────────────

    def _phase_of(self, record: StateRecord | None) -> WidgetPhase:
        if record is None:
            return WidgetPhase.UNINITIALIZED
        if self._clock() - record.updated_at > self._ttl:
            return WidgetPhase.STALE
        return WidgetPhase.ACTIVE

    def _snapshot(self, cid: str, iid: str, record: StateRecord | None) -> WidgetState:
        phase = self._phase_of(record)
        if phase is not WidgetPhase.ACTIVE or record is None:
            return WidgetState(conversation_id=cid, instance_id=iid, phase=phase)
        return WidgetState(
            conversation_id=cid, instance_id=iid, phase=phase, data=record.data, updated_at=record.updated_at,
        )

    def phase(self, conversation_id: str, instance_id: str) -> WidgetPhase:
        return self._phase_of(self._load(conversation_id, instance_id))

    def get_state(self, conversation_id: str, instance_id: str) -> WidgetState:
        """Current snapshot. Non-active instances carry the empty default."""
        return self._snapshot(conversation_id, instance_id, self._load(conversation_id, instance_id))

    def read(self, conversation_id: str, instance_id: str) -> JsonDict:
        """State data, or the empty default when the instance is not active."""
        return dict(self.get_state(conversation_id, instance_id).data)

    def render(self, conversation_id: str, instance_id: str, initial: JsonDict | None = None) -> WidgetState:
        """Widget rendered. Seeds UNINITIALIZED or STALE instances; keeps ACTIVE state."""
        with self._lock:
            record = self._load(conversation_id, instance_id)
            now = self._clock()
            if self._phase_of(record) is WidgetPhase.ACTIVE and record is not None:
                record.updated_at = now
            else:
                record = StateRecord(data=initial or {}, updated_at=now).copy()
                log.debug("widget seeded", conversation=conversation_id, instance=instance_id)
            self._save(conversation_id, instance_id, record)
            return self._snapshot(conversation_id, instance_id, record)

    def persist(self, conversation_id: str, instance_id: str, data: JsonDict) -> StateWrite:
        """Replace the state of an active instance.

        Raises:
            WidgetStateError: If the instance is UNINITIALIZED or STALE.
        """
        with self._lock:
            phase = self.phase(conversation_id, instance_id)
            if phase is not WidgetPhase.ACTIVE:
                raise WidgetStateError(
                    f"Widget '{instance_id}' is {phase.value} and has no state to update",
                    next_step="Render the widget again before saving its state.",
                )
            record = StateRecord(data=data, updated_at=self._clock()).copy()
            self._save(conversation_id, instance_id, record)
        tokens = estimate_tokens(record.data, self._chars_per_token)
        if tokens > self._budget:
            log.warning(
                "widget state over budget",
                conversation=conversation_id, instance=instance_id, tokens=tokens, budget=self._budget,
            )
        return StateWrite(self._snapshot(conversation_id, instance_id, record), tokens, self._budget)

    def signal(self, conversation_id: str, origin: InteractionOrigin | str) -> int:
        """Apply an interaction. Returns the number of instances reset."""
        if InteractionOrigin(origin) is not InteractionOrigin.COMPOSER:
            return 0
        with self._lock:
            count = self._drop_conversation(conversation_id)
        log.info("widget state reset", conversation=conversation_id, instances=count)
        return count

    def composer_input(self, conversation_id: str) -> int:
        """The user typed a new message in the conversation composer."""
        return self.signal(conversation_id, InteractionOrigin.COMPOSER)
