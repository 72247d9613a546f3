"""MCP and HTTP transports for appcase registries.

Requires: pip install appcase[mcp] and/or appcase[http]
"""

from .bridge import envelope_to_result, registry_to_mcp, template_to_resource, tool_to_mcp
from .server import (
    HTTP_STATUS,
    HTTPToolServer,
    MCPServer,
    ToolServer,
    apply_settings,
    create_http_app,
    create_mcp_server,
    serve_http,
    serve_mcp,
    status_for,
)

__all__ = [
    # Servers
    "ToolServer", "MCPServer", "HTTPToolServer",
    "serve_mcp", "serve_http", "create_http_app", "create_mcp_server",
    "HTTP_STATUS", "status_for", "apply_settings",
    # Bridge
    "envelope_to_result", "tool_to_mcp", "template_to_resource", "registry_to_mcp",
]
