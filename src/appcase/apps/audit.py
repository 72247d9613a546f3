"""Design audit for registered tools.

Checks naming, descriptions, parameter schemas, annotations and widget CSP
against the tool conventions. Findings are returned, never raised, so the
audit can run in CI or at server start.
"""

from __future__ import annotations

import re
from collections import Counter
from dataclasses import dataclass
from enum import StrEnum
from typing import TYPE_CHECKING, Any

from appcase.runtime.observability import get_logger

if TYPE_CHECKING:
    from appcase.foundation.core import BaseTool, StrictParams
    from appcase.foundation.registry import ToolRegistry

log = get_logger("appcase.audit")

META_SERVICE = "appcase"

MARKETING_WORDS = ("best", "powerful", "amazing", "seamless", "revolutionary", "ultimate")
LEAKAGE_WORDS = ("sql", "endpoint", "api key", "database", "http")
STATUS_LIKE = re.compile(r"(^|_)(status|state|kind|type|mode|channel|priority)$")

_MARKETING = re.compile(rf"\b({'|'.join(MARKETING_WORDS)})\b", re.IGNORECASE)
_LEAKAGE = re.compile(rf"\b({'|'.join(re.escape(w) for w in LEAKAGE_WORDS)})", re.IGNORECASE)
_RETURNS = re.compile(r"\breturns?\b", re.IGNORECASE)
_ACCEPTS = re.compile(r"\b(accepts?|takes?|given)\b", re.IGNORECASE)


class Severity(StrEnum):
    WARNING = "warning"
    REVIEW = "review"


@dataclass(frozen=True, slots=True)
class Finding:
    """One convention issue for one tool."""
    tool: str
    rule: str
    severity: Severity
    message: str

    def __str__(self) -> str:
        return f"[{self.severity}] {self.tool} {self.rule}: {self.message}"


def _variants(prop: dict[str, Any], defs: dict[str, Any]) -> list[dict[str, Any]]:
    """Non-null alternatives of a property schema, with $refs resolved."""
    out: list[dict[str, Any]] = []
    for option in prop.get("anyOf", [prop]):
        if len(wrapped := option.get("allOf", ())) == 1:
            option = wrapped[0]
        if ref := option.get("$ref"):
            option = defs.get(ref.rsplit("/", 1)[-1], {})
        if option.get("type") != "null":
            out.append(option)
    return out


def _nullable(prop: dict[str, Any]) -> bool:
    return any(o.get("type") == "null" for o in prop.get("anyOf", ()))


def _bounded(option: dict[str, Any]) -> bool:
    lower = "minimum" in option or "exclusiveMinimum" in option
    upper = "maximum" in option or "exclusiveMaximum" in option
    return lower and upper


def audit_description(tool: BaseTool[StrictParams]) -> list[Finding]:
    meta = tool.metadata
    text = meta.description
    out: list[Finding] = []
    if m := _MARKETING.search(text):
        out.append(Finding(meta.name, "description-marketing", Severity.WARNING,
                           f"'{m.group(0)}' is marketing language; state when to use the tool instead"))
    if m := _LEAKAGE.search(text):
        out.append(Finding(meta.name, "description-leakage", Severity.WARNING,
                           f"'{m.group(0)}' exposes implementation detail the agent cannot act on"))
    if not _RETURNS.search(text):
        out.append(Finding(meta.name, "description-returns", Severity.WARNING,
                           "description does not say what the tool returns"))
    fields = tool.params_schema.model_fields
    if fields and not _ACCEPTS.search(text) and not any(name in text for name in fields):
        out.append(Finding(meta.name, "description-params", Severity.WARNING,
                           "description does not mention the accepted parameters"))
    return out


def audit_params(tool: BaseTool[StrictParams]) -> list[Finding]:
    name = tool.metadata.name
    schema = tool.input_schema()
    defs = schema.get("$defs", {})
    required = set(schema.get("required", ()))
    out: list[Finding] = []
    for field, prop in schema.get("properties", {}).items():
        options = _variants(prop, defs)
        if _nullable(prop) and field in required:
            out.append(Finding(name, "param-default", Severity.WARNING,
                               f"'{field}' is optional but has no default"))
        if any(o.get("type") in ("integer", "number") and not _bounded(o) for o in options):
            out.append(Finding(name, "param-bounds", Severity.WARNING,
                               f"numeric '{field}' has no lower and upper bound"))
        if STATUS_LIKE.search(field) and any(o.get("type") == "string" and "enum" not in o for o in options):
            out.append(Finding(name, "param-enum", Severity.WARNING,
                               f"'{field}' looks categorical; declare its values as an enumeration"))
    return out


def audit_annotations(tool: BaseTool[StrictParams]) -> list[Finding]:
    meta = tool.metadata
    hints = meta.annotations
    if hints.destructive and hints.open_world:
        return [Finding(meta.name, "annotations-confirm", Severity.REVIEW,
                        "destructive and open-world; the host should ask for confirmation")]
    return []


def audit_csp(tool: BaseTool[StrictParams]) -> list[Finding]:
    template = tool.metadata.template
    if template is None or template.csp is None:
        return []
    return [
        Finding(tool.metadata.name, "csp-frame", Severity.REVIEW, f"{flag.domain}: {flag.reason}")
        for flag in template.csp.review_flags()
    ]


def audit_naming(tools: list[BaseTool[StrictParams]]) -> list[Finding]:
    """Flag tools whose service prefix differs from the dominant one."""
    services = Counter(t.metadata.service for t in tools if t.metadata.service != META_SERVICE)
    if len(services) < 2:
        return []
    dominant = services.most_common(1)[0][0]
    return [
        Finding(t.metadata.name, "naming-service", Severity.WARNING,
                f"service '{t.metadata.service}' differs from '{dominant}' used by the other tools")
        for t in tools
        if t.metadata.service not in (dominant, META_SERVICE)
    ]


def audit_tool(tool: BaseTool[StrictParams]) -> list[Finding]:
    """All per-tool findings."""
    return [*audit_description(tool), *audit_params(tool), *audit_annotations(tool), *audit_csp(tool)]


def audit_registry(registry: ToolRegistry | None = None) -> list[Finding]:
    """Audit every registered tool. Each finding is also logged."""
    if registry is None:
        from appcase.foundation.registry import get_registry
        registry = get_registry()
    tools = list(registry)
    findings = audit_naming(tools)
    for tool in tools:
        findings.extend(audit_tool(tool))
    for f in findings:
        log.warning("design finding", tool=f.tool, rule=f.rule, severity=f.severity.value, detail=f.message)
    return findings
