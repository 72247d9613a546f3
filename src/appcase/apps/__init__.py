"""Apps SDK response layer.

- ResponseEnvelope / ToolOutput: three-layer tool results
- ResponseComposer: narration bounds, layer audit, error rendering
- WidgetTemplate / WidgetCSP: widget resources and their sandbox policy
- audit_registry: design conventions check for registered tools
"""

from .audit import Finding, Severity, audit_registry, audit_tool
from .composer import ResponseComposer, audit_layers, get_composer, reset_composer, set_composer, truncate_narration
from .csp import CSP_META_KEY, CSPReviewFlag, WidgetCSP
from .envelope import ResponseEnvelope, TextContent, ToolOutput
from .widget import OUTPUT_TEMPLATE_KEY, SKYBRIDGE_MIME, WidgetTemplate

__all__ = [
    # Envelope
    "ToolOutput", "ResponseEnvelope", "TextContent",
    # Composer
    "ResponseComposer", "audit_layers", "truncate_narration", "get_composer", "set_composer", "reset_composer",
    # Widgets
    "WidgetTemplate", "WidgetCSP", "CSPReviewFlag", "CSP_META_KEY", "OUTPUT_TEMPLATE_KEY", "SKYBRIDGE_MIME",
    # Audit
    "Finding", "Severity", "audit_registry", "audit_tool",
]
