"""Response composer: turns handler output into the three-layer envelope.

Narration is bounded, structured content is checked for minimality against
widget metadata, and failures are rendered into both model-visible channels.
Layer findings are logged, never raised.
"""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass

import orjson

from appcase.foundation.errors import JsonDict, ToolError
from appcase.runtime.observability import get_logger

from .envelope import ResponseEnvelope, TextContent, ToolOutput
from .widget import OUTPUT_TEMPLATE_KEY, WidgetTemplate

log = get_logger("appcase.composer")

_ELLIPSIS = "…"
_MIN_CAUSE_CHARS = 20
_ID_KEYS = frozenset({"id", "uri", "name", "key", "slug"})


def _is_identifier_key(key: str) -> bool:
    return key in _ID_KEYS or key.endswith("_id")


def _json_size(value: object) -> int:
    return len(orjson.dumps(value, default=str))


def _objects(key: str, value: object) -> Iterator[tuple[str, dict[str, object]]]:
    """Yield every dict nested under ``key`` (lists included)."""
    if isinstance(value, dict):
        yield key, value
        for k, v in value.items():
            yield from _objects(f"{key}.{k}", v)
    elif isinstance(value, list):
        for item in value:
            yield from _objects(key, item)


def audit_layers(structured: JsonDict, meta: JsonDict) -> list[str]:
    """Layer-separation findings for one response.

    Flags structured keys repeated in ``_meta``, structured payloads larger
    than the widget payload, and structured objects without an identifier.
    """
    findings = [
        f"'{key}' appears in both structuredContent and _meta; keep it in one layer"
        for key in sorted(structured.keys() & meta.keys())
    ]
    if meta and _json_size(structured) > _json_size(meta):
        findings.append("structuredContent is larger than _meta; move bulk data to _meta")
    seen: set[str] = set()
    for top_key, top_value in structured.items():
        for path, obj in _objects(top_key, top_value):
            if path not in seen and obj and not any(_is_identifier_key(k) for k in obj):
                seen.add(path)
                findings.append(f"objects under '{path}' carry no identifier field")
    return findings


def truncate_narration(text: str, limit: int) -> str:
    """Trim to ``limit`` characters on a word boundary, marking the cut."""
    text = " ".join(text.split())
    if len(text) <= limit:
        return text
    cut = text[: limit - len(_ELLIPSIS)]
    if " " in cut:
        cut = cut.rsplit(" ", 1)[0]
    return cut.rstrip(" ,;:") + _ELLIPSIS


@dataclass(slots=True)
class ResponseComposer:
    """Assemble ResponseEnvelopes from handler output or errors.

    Args:
        narration_max_chars: Bound on narration length
        audit: Log layer-separation findings for each success

    Example:
        >>> composer = ResponseComposer(narration_max_chars=200)
        >>> envelope = composer.compose("taskflow_get_task", ToolOutput(
        ...     narration="Task t-1 is open.", structured={"id": "t-1", "status": "open"},
        ... ))
        >>> envelope.to_wire()["structuredContent"]
        {'id': 't-1', 'status': 'open'}
    """

    narration_max_chars: int = 500
    audit: bool = True

    @classmethod
    def from_settings(cls) -> ResponseComposer:
        from appcase.foundation.config import get_settings
        cfg = get_settings().response
        return cls(narration_max_chars=cfg.narration_max_chars, audit=cfg.audit_layers)

    def _bounded(self, tool_name: str, text: str, limit: int | None = None) -> str:
        limit = self.narration_max_chars if limit is None else limit
        bounded = truncate_narration(text, limit)
        if len(bounded) < len(" ".join(text.split())):
            log.warning("narration truncated", tool=tool_name, length=len(text), limit=limit)
        return bounded

    def compose(
        self,
        tool_name: str,
        output: ToolOutput,
        *,
        template: WidgetTemplate | None = None,
    ) -> ResponseEnvelope:
        """Build a success envelope. The template URI is added to ``_meta``."""
        meta = dict(output.meta)
        if template is not None:
            meta.setdefault(OUTPUT_TEMPLATE_KEY, template.uri)
        if self.audit:
            for finding in audit_layers(output.structured, output.meta):
                log.warning("layer finding", tool=tool_name, finding=finding)
        return ResponseEnvelope(
            content=[TextContent(text=self._bounded(tool_name, output.narration))],
            structured_content=dict(output.structured),
            meta=meta,
        )

    def compose_error(self, error: ToolError) -> ResponseEnvelope:
        """Build a failure envelope with narration and a structured indicator.

        Long causes are cut ahead of the next step, which is kept whole
        whenever it leaves room for a short cause.
        """
        step = " ".join(error.suggested_step.split())
        room = self.narration_max_chars - len(step) - 1
        if room >= _MIN_CAUSE_CHARS:
            narration = f"{self._bounded(error.tool_name, error.cause, room)} {step}"
        else:
            narration = self._bounded(error.tool_name, error.render())
        return ResponseEnvelope(
            content=[TextContent(text=narration)],
            structured_content=error.structured(),
            is_error=True,
        )


_composer: ResponseComposer | None = None


def get_composer() -> ResponseComposer:
    """Get the global composer, created from settings on first use."""
    global _composer
    if _composer is None:
        _composer = ResponseComposer.from_settings()
    return _composer


def set_composer(composer: ResponseComposer) -> None:
    global _composer
    _composer = composer


def reset_composer() -> None:
    global _composer
    _composer = None
