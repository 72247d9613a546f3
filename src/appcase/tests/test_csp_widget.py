"""Tests for widget templates and CSP declarations."""

import pytest
from pydantic import ValidationError

from appcase.apps.csp import CSP_META_KEY, WidgetCSP
from appcase.apps.widget import (
    OUTPUT_TEMPLATE_KEY,
    PREFERS_BORDER_KEY,
    SKYBRIDGE_MIME,
    WIDGET_DESCRIPTION_KEY,
    WidgetTemplate,
)


class TestWidgetCSP:
    def test_minimal_meta_block(self) -> None:
        csp = WidgetCSP(connect_domains=["https://api.notes.example"])
        assert csp.to_meta() == {
            CSP_META_KEY: {"connect_domains": ["https://api.notes.example"], "resource_domains": []},
        }

    def test_optional_lists_included_when_set(self) -> None:
        block = WidgetCSP(
            redirect_domains=["https://checkout.notes.example"],
            frame_domains=["https://maps.example.org"],
        ).to_meta()[CSP_META_KEY]
        assert block["redirect_domains"] == ["https://checkout.notes.example"]
        assert block["frame_domains"] == ["https://maps.example.org"]

    @pytest.mark.parametrize("origin", ["https://*.example.com", "*"])
    def test_wildcards_rejected(self, origin: str) -> None:
        with pytest.raises(ValidationError, match="wildcard"):
            WidgetCSP(resource_domains=[origin])

    @pytest.mark.parametrize("origin", [
        "http://api.example.com",
        "https://api.example.com/v1",
        "https://api.example.com?x=1",
        "api.example.com",
        "https://localhost",
    ])
    def test_non_origins_rejected(self, origin: str) -> None:
        with pytest.raises(ValidationError, match="https:// origin"):
            WidgetCSP(connect_domains=[origin])

    def test_origins_normalized_and_deduplicated(self) -> None:
        csp = WidgetCSP(connect_domains=["https://API.example.com/", "https://api.example.com", "https://a.b.io:8443"])
        assert csp.connect_domains == ("https://api.example.com", "https://a.b.io:8443")

    def test_lists_are_independent(self) -> None:
        csp = WidgetCSP(connect_domains=["https://api.example.com"])
        assert csp.resource_domains == ()
        assert not csp.is_empty
        assert WidgetCSP().is_empty

    def test_every_frame_origin_flagged_for_review(self) -> None:
        csp = WidgetCSP(
            connect_domains=["https://api.example.com"],
            frame_domains=["https://maps.example.org", "https://video.example.org"],
        )
        flags = csp.review_flags()
        assert [f.domain for f in flags] == ["https://maps.example.org", "https://video.example.org"]
        assert {f.list_name for f in flags} == {"frame_domains"}

    def test_unknown_list_rejected(self) -> None:
        with pytest.raises(ValidationError):
            WidgetCSP(script_domains=["https://cdn.example.com"])


class TestWidgetTemplate:
    def test_descriptor_meta(self) -> None:
        template = WidgetTemplate(
            uri="ui://widget/notes/list.html", name="note-list", html="<div></div>",
            invoking="Loading notes", invoked="Notes ready", widget_accessible=True,
        )
        assert template.descriptor_meta() == {
            OUTPUT_TEMPLATE_KEY: "ui://widget/notes/list.html",
            "openai/toolInvocation/invoking": "Loading notes",
            "openai/toolInvocation/invoked": "Notes ready",
            "openai/widgetAccessible": True,
        }

    def test_resource_carries_csp(self) -> None:
        template = WidgetTemplate(
            uri="ui://widget/notes/list.html", name="note-list", html="<div></div>",
            description="Shows the user's notes as cards.",
            csp=WidgetCSP(connect_domains=["https://api.notes.example"]),
            prefers_border=True,
        )
        resource = template.resource()
        assert resource["mimeType"] == SKYBRIDGE_MIME
        assert resource["text"] == "<div></div>"
        assert resource["_meta"][PREFERS_BORDER_KEY] is True
        assert resource["_meta"][WIDGET_DESCRIPTION_KEY] == "Shows the user's notes as cards."
        assert resource["_meta"][CSP_META_KEY]["connect_domains"] == ["https://api.notes.example"]

    def test_resource_without_csp(self) -> None:
        resource = WidgetTemplate(uri="ui://widget/plain.html", name="plain", html="<p></p>").resource()
        assert CSP_META_KEY not in resource["_meta"]

    @pytest.mark.parametrize("uri", ["https://example.com/w.html", "ui://widget/list", "ui://widget/List.html"])
    def test_uri_scheme_enforced(self, uri: str) -> None:
        with pytest.raises(ValidationError):
            WidgetTemplate(uri=uri, name="w", html="<div></div>")
