"""Content Security Policy declarations for widgets.

Four independent allow-lists, each kept minimal: outbound fetches, passive
resource loads, top-level redirects and embedded frames. Wildcards are
rejected, and frame entries are surfaced for heavier review.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

from pydantic import BaseModel, ConfigDict, Field, field_validator

from appcase.foundation.errors import JsonDict

CSP_META_KEY = "openai/widgetCSP"

_ORIGIN = re.compile(r"^https://[a-z0-9]([a-z0-9-]*[a-z0-9])?(\.[a-z0-9]([a-z0-9-]*[a-z0-9])?)+(:\d{1,5})?$")


@dataclass(frozen=True, slots=True)
class CSPReviewFlag:
    """A CSP entry that needs a closer look before submission."""
    list_name: str
    domain: str
    reason: str


class WidgetCSP(BaseModel):
    """Per-widget domain allow-lists.

    Attributes:
        connect_domains: Origins the widget may fetch data from
        resource_domains: Origins for images, fonts and scripts
        redirect_domains: Origins allowed as top-level navigation targets
        frame_domains: Origins allowed inside embedded frames

    Example:
        >>> csp = WidgetCSP(connect_domains=["https://api.example.com"])
        >>> csp.to_meta()["openai/widgetCSP"]["connect_domains"]
        ['https://api.example.com']
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    connect_domains: tuple[str, ...] = Field(default=(), description="Origins permitted for outbound data fetches")
    resource_domains: tuple[str, ...] = Field(default=(), description="Origins permitted for passive resource loads")
    redirect_domains: tuple[str, ...] = Field(default=(), description="Origins permitted for top-level redirects")
    frame_domains: tuple[str, ...] = Field(default=(), description="Origins permitted for embedded frames")

    @field_validator("connect_domains", "resource_domains", "redirect_domains", "frame_domains")
    @classmethod
    def _check_origins(cls, v: tuple[str, ...]) -> tuple[str, ...]:
        seen: dict[str, None] = {}
        for raw in v:
            origin = raw.strip().lower().rstrip("/")
            if "*" in origin:
                raise ValueError(f"wildcard origin '{raw}' is not allowed; list each origin explicitly")
            if not _ORIGIN.match(origin):
                raise ValueError(f"'{raw}' must be an https:// origin without path or query")
            seen.setdefault(origin)
        return tuple(seen)

    @property
    def is_empty(self) -> bool:
        return not (self.connect_domains or self.resource_domains or self.redirect_domains or self.frame_domains)

    def review_flags(self) -> list[CSPReviewFlag]:
        """Entries carrying heavier review weight (every frame origin)."""
        return [
            CSPReviewFlag("frame_domains", domain, "embedded frames receive heavier review")
            for domain in self.frame_domains
        ]

    def to_meta(self) -> JsonDict:
        """The ``openai/widgetCSP`` block for resource metadata."""
        block: JsonDict = {
            "connect_domains": list(self.connect_domains),
            "resource_domains": list(self.resource_domains),
        }
        if self.redirect_domains:
            block["redirect_domains"] = list(self.redirect_domains)
        if self.frame_domains:
            block["frame_domains"] = list(self.frame_domains)
        return {CSP_META_KEY: block}
