"""Widget templates: the UI resource a tool result renders into."""

from __future__ import annotations

from typing import Annotated

from pydantic import BaseModel, ConfigDict, Field

from appcase.foundation.errors import JsonDict

from .csp import WidgetCSP

SKYBRIDGE_MIME = "text/html+skybridge"

OUTPUT_TEMPLATE_KEY = "openai/outputTemplate"
INVOKING_KEY = "openai/toolInvocation/invoking"
INVOKED_KEY = "openai/toolInvocation/invoked"
WIDGET_ACCESSIBLE_KEY = "openai/widgetAccessible"
WIDGET_DESCRIPTION_KEY = "openai/widgetDescription"
PREFERS_BORDER_KEY = "openai/widgetPrefersBorder"


class WidgetTemplate(BaseModel):
    """HTML resource that renders a tool's results.

    Example:
        >>> template = WidgetTemplate(
        ...     uri="ui://widget/task-list.html",
        ...     name="task-list",
        ...     html="<div id='root'></div>",
        ... )
        >>> template.descriptor_meta()["openai/outputTemplate"]
        'ui://widget/task-list.html'
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    uri: str = Field(..., pattern=r"^ui://widget/[a-z0-9][a-z0-9._/-]*\.html$")
    name: Annotated[str, Field(min_length=1)]
    html: str = Field(..., min_length=1, repr=False)
    description: str | None = None
    csp: WidgetCSP | None = None
    invoking: str = Field(default="Loading…", min_length=1, max_length=64)
    invoked: str = Field(default="Ready", min_length=1, max_length=64)
    widget_accessible: bool = False
    prefers_border: bool = False

    def descriptor_meta(self) -> JsonDict:
        """Keys added to the ``_meta`` of every tool rendering this template."""
        return {
            OUTPUT_TEMPLATE_KEY: self.uri,
            INVOKING_KEY: self.invoking,
            INVOKED_KEY: self.invoked,
            WIDGET_ACCESSIBLE_KEY: self.widget_accessible,
        }

    def resource_meta(self) -> JsonDict:
        meta: JsonDict = {PREFERS_BORDER_KEY: self.prefers_border}
        if self.description:
            meta[WIDGET_DESCRIPTION_KEY] = self.description
        if self.csp is not None:
            meta |= self.csp.to_meta()
        return meta

    def resource(self) -> JsonDict:
        """MCP resource entry served for the template URI."""
        return {
            "uri": self.uri,
            "name": self.name,
            "mimeType": SKYBRIDGE_MIME,
            "text": self.html,
            "_meta": self.resource_meta(),
        }
