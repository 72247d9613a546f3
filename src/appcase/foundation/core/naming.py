"""Tool name grammar: ``<service>_<verb>_<noun>``.

The service prefix keeps names unique across integrations that are active at
the same time. The verb is one canonical role; a name carrying two verbs
conflates a read with a write and is rejected.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import StrEnum


class Verb(StrEnum):
    """Canonical verb roles."""
    GET = "get"
    LIST = "list"
    SEARCH = "search"
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"
    COMPLETE = "complete"
    SEND = "send"

    @property
    def is_read(self) -> bool:
        return self in READ_VERBS


READ_VERBS: frozenset[Verb] = frozenset({Verb.GET, Verb.LIST, Verb.SEARCH})
WRITE_VERBS: frozenset[Verb] = frozenset(Verb) - READ_VERBS

_SEGMENT = re.compile(r"^[a-z][a-z0-9]*$")
_VERBS = frozenset(v.value for v in Verb)


class ToolNameError(ValueError):
    """Tool name does not follow ``<service>_<verb>_<noun>``."""


@dataclass(frozen=True, slots=True)
class ToolName:
    """Parsed tool name."""
    service: str
    verb: Verb
    noun: str

    def __str__(self) -> str:
        return f"{self.service}_{self.verb}_{self.noun}"

    @property
    def is_read(self) -> bool:
        return self.verb.is_read


def parse_tool_name(name: str) -> ToolName:
    """Split a tool name into service, verb and noun.

    The verb is the first canonical verb after at least one service segment,
    and at least one noun segment must follow it.

    Raises:
        ToolNameError: If the name is malformed, has no verb or has two.
    """
    parts = name.split("_")
    if len(parts) < 3 or not all(_SEGMENT.match(p) for p in parts):
        raise ToolNameError(
            f"'{name}' must be lowercase '<service>_<verb>_<noun>' with segments starting with a letter"
        )
    positions = [i for i, part in enumerate(parts[1:-1], start=1) if part in _VERBS]
    if not positions:
        raise ToolNameError(f"'{name}' has no canonical verb; use one of: {', '.join(v.value for v in Verb)}")
    idx = positions[0]
    if extra := [parts[i] for i in positions[1:]] + ([parts[-1]] if parts[-1] in _VERBS else []):
        raise ToolNameError(f"'{name}' combines verbs '{parts[idx]}' and '{extra[0]}'; split it into separate tools")
    return ToolName(service="_".join(parts[:idx]), verb=Verb(parts[idx]), noun="_".join(parts[idx + 1:]))


def is_valid_tool_name(name: str) -> bool:
    try:
        parse_tool_name(name)
    except ToolNameError:
        return False
    return True
