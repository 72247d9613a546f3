"""Server implementations exposing a registry and its widget state.

1. **FastMCP** - Full MCP protocol; envelopes pass through with
   structuredContent and _meta intact
2. **HTTP/REST** - Starlette endpoints for web backends and tests

Example - FastMCP (MCP clients):
    >>> from appcase.ext.mcp import serve_mcp
    >>> serve_mcp(registry, transport="streamable-http", port=8080)

Example - HTTP endpoints (web backends):
    >>> from appcase.ext.mcp import create_http_app
    >>> app = create_http_app(registry)  # Starlette ASGI app

Requires: pip install appcase[mcp] (for FastMCP)
         pip install appcase[http] (for HTTP endpoints)
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any, Literal

from appcase.foundation.errors import ErrorCode, JsonDict, ToolError
from appcase.io.state import StateStore, WidgetStateError, get_state_store
from appcase.runtime.middleware import Context
from appcase.runtime.middleware.plugins import RateLimitMiddleware
from appcase.runtime.observability import configure_from_settings, conversation_scope, get_logger

if TYPE_CHECKING:
    from appcase.foundation.registry import ToolRegistry

Transport = Literal["stdio", "sse", "streamable-http"]

log = get_logger("appcase.server")

HTTP_STATUS: dict[ErrorCode, int] = {
    ErrorCode.NOT_FOUND: 404,
    ErrorCode.RATE_LIMITED: 429,
    ErrorCode.PERMISSION_DENIED: 403,
    ErrorCode.INVALID_PARAMS: 422,
    ErrorCode.CONFLICT: 409,
    ErrorCode.TIMEOUT: 504,
    ErrorCode.EXTERNAL_SERVICE_ERROR: 502,
    ErrorCode.UNKNOWN: 500,
}


def status_for(category: str | None) -> int:
    """HTTP status for an error category (200 when there is no error)."""
    if category is None:
        return 200
    return HTTP_STATUS.get(ErrorCode(category), 500)


# ═══════════════════════════════════════════════════════════════════════════════
# Abstract Server Protocol
# ═══════════════════════════════════════════════════════════════════════════════


class ToolServer(ABC):
    """Abstract base for tool server implementations.

    Subclasses implement transport adapters while sharing tool listing,
    invocation and the widget state channel.
    """

    __slots__ = ("_name", "_registry", "_store")

    def __init__(self, name: str, registry: ToolRegistry, *, store: StateStore | None = None) -> None:
        self._name = name
        self._registry = registry
        self._store = store

    @property
    def name(self) -> str:
        return self._name

    @property
    def registry(self) -> ToolRegistry:
        return self._registry

    @property
    def store(self) -> StateStore:
        return self._store or get_state_store()

    @abstractmethod
    def run(self, **kwargs: Any) -> None:
        """Start the server (blocking)."""
        ...

    def list_tools(self) -> list[JsonDict]:
        """Descriptors of enabled tools with inputSchema, annotations and _meta."""
        return self._registry.descriptors()

    def list_resources(self) -> list[JsonDict]:
        """Widget template resources referenced by registered tools."""
        return [tpl.resource() for tpl in self._registry.templates()]

    async def invoke(
        self,
        tool_name: str,
        arguments: JsonDict | None,
        *,
        conversation_id: str | None = None,
    ) -> JsonDict:
        """Invoke a tool by name. Returns the envelope in wire form, never raises.

        A tool call is not a composer input, so widget state is left alone.
        """
        ctx = Context()
        if conversation_id:
            ctx["conversation_id"] = conversation_id
        with conversation_scope(conversation_id or None):
            envelope = await self._registry.execute(tool_name, arguments, ctx=ctx)
        return envelope.to_wire()

    # ─────────────────────────────────────────────────────────────────
    # Widget state channel
    # ─────────────────────────────────────────────────────────────────

    def render_widget(self, conversation_id: str, instance_id: str, initial: JsonDict | None = None) -> JsonDict:
        return self.store.render(conversation_id, instance_id, initial).model_dump(mode="json")

    def persist_widget_state(self, conversation_id: str, instance_id: str, state: JsonDict) -> JsonDict:
        """Replace widget state from a widget-driven interaction.

        Raises:
            WidgetStateError: If the instance is not active.
        """
        write = self.store.persist(conversation_id, instance_id, state)
        return {
            **write.state.model_dump(mode="json"),
            "tokens": write.tokens,
            "over_budget": write.over_budget,
        }

    def read_widget_state(self, conversation_id: str, instance_id: str) -> JsonDict:
        return self.store.get_state(conversation_id, instance_id).model_dump(mode="json")

    def composer_input(self, conversation_id: str) -> int:
        """New user message in the conversation composer. Returns instances reset."""
        return self.store.composer_input(conversation_id)


# ═══════════════════════════════════════════════════════════════════════════════
# FastMCP Adapter (Full MCP Protocol)
# ═══════════════════════════════════════════════════════════════════════════════


class MCPServer(ToolServer):
    """FastMCP-backed server for MCP clients.

    Example:
        >>> server = MCPServer("taskflow", registry)
        >>> server.run(transport="sse", port=8080)
    """

    __slots__ = ("_mcp",)

    def __init__(self, name: str, registry: ToolRegistry, *, store: StateStore | None = None) -> None:
        super().__init__(name, registry, store=store)
        self._mcp = self._create_server()

    def _create_server(self) -> Any:
        """Create FastMCP server and register tools and widget resources."""
        from .bridge import _import_fastmcp, registry_to_mcp, template_to_resource

        mcp = _import_fastmcp().FastMCP(self._name)
        for mcp_tool in registry_to_mcp(self._registry):
            mcp.add_tool(mcp_tool)
        for template in self._registry.templates():
            mcp.add_resource(template_to_resource(template))
        return mcp

    def run(
        self,
        transport: Transport = "stdio",
        *,
        host: str = "127.0.0.1",
        port: int = 8080,
    ) -> None:
        """Start MCP server.

        Args:
            transport: "stdio" (CLI), "sse" (HTTP), "streamable-http"
            host: Host for HTTP transports
            port: Port for HTTP transports
        """
        log.info("mcp server starting", server=self._name, transport=transport, tools=len(self._registry))
        if transport == "stdio":
            self._mcp.run()
        else:
            self._mcp.run(transport=transport, host=host, port=port)

    @property
    def fastmcp(self) -> Any:
        """Access underlying FastMCP instance."""
        return self._mcp


# ═══════════════════════════════════════════════════════════════════════════════
# HTTP REST Adapter (Web Backends)
# ═══════════════════════════════════════════════════════════════════════════════


def _problem(code: ErrorCode, message: str) -> tuple[JsonDict, int]:
    return {"error": True, "category": code.value, "message": message}, HTTP_STATUS[code]


class HTTPToolServer(ToolServer):
    """HTTP/REST server for web backend integration.

    Endpoints:
    - GET  /tools                                → List tool descriptors
    - GET  /tools/{name}/schema                  → One tool descriptor
    - POST /tools/{name}                         → Invoke tool with JSON body
    - GET  /resources                            → Widget template resources
    - POST /widgets/{instance_id}/render         → Render (seed) a widget instance
    - GET  /widgets/{instance_id}/state          → Read widget state
    - PUT  /widgets/{instance_id}/state          → Replace widget state
    - POST /conversations/{conversation_id}/composer → Composer input (reset)

    Widget routes take the conversation from the ``conversation_id`` query
    parameter or JSON field. Tool invocations read it from the
    ``X-Conversation-Id`` header.

    Example:
        >>> server = HTTPToolServer("taskflow", registry)
        >>> server.run(host="0.0.0.0", port=8000)
    """

    __slots__ = ("_app",)

    def __init__(self, name: str, registry: ToolRegistry, *, store: StateStore | None = None) -> None:
        super().__init__(name, registry, store=store)
        self._app = self._create_app()

    def _create_app(self) -> Any:
        """Create Starlette app with tool and widget endpoints."""
        try:
            from starlette.applications import Starlette
            from starlette.requests import Request
            from starlette.responses import JSONResponse
            from starlette.routing import Route
        except ImportError as e:
            raise ImportError(
                "HTTP server requires starlette. "
                "Install with: pip install appcase[http]"
            ) from e

        def problem(code: ErrorCode, message: str) -> JSONResponse:
            body, status = _problem(code, message)
            return JSONResponse(body, status_code=status)

        async def json_object(request: Request) -> JsonDict | None:
            raw = await request.body()
            if not raw:
                return {}
            try:
                body = await request.json()
            except ValueError:
                return None
            return body if isinstance(body, dict) else None

        async def list_tools(request: Request) -> JSONResponse:
            return JSONResponse({"server": self._name, "tools": self.list_tools()})

        async def get_tool_schema(request: Request) -> JSONResponse:
            tool_name = request.path_params["name"]
            tool = self._registry.get(tool_name)
            if tool is None or not tool.metadata.enabled:
                return problem(ErrorCode.NOT_FOUND, f"No tool named '{tool_name}' is available")
            return JSONResponse(tool.descriptor())

        async def invoke_tool(request: Request) -> JSONResponse:
            tool_name = request.path_params["name"]
            body = await json_object(request)
            if body is None:
                envelope = self._registry.composer.compose_error(ToolError.create(
                    tool_name, "Request body must be a JSON object of tool arguments", ErrorCode.INVALID_PARAMS,
                )).to_wire()
            else:
                envelope = await self.invoke(
                    tool_name, body, conversation_id=request.headers.get("x-conversation-id"),
                )
            category = envelope["structuredContent"].get("category") if envelope.get("isError") else None
            return JSONResponse(envelope, status_code=status_for(category))

        async def list_resources(request: Request) -> JSONResponse:
            return JSONResponse({"resources": self.list_resources()})

        def conversation_of(request: Request, body: JsonDict | None = None) -> str | None:
            cid = (body or {}).get("conversation_id") or request.query_params.get("conversation_id")
            return cid if isinstance(cid, str) and cid else None

        async def render_widget(request: Request) -> JSONResponse:
            body = await json_object(request)
            if body is None:
                return problem(ErrorCode.INVALID_PARAMS, "Request body must be a JSON object")
            if (cid := conversation_of(request, body)) is None:
                return problem(ErrorCode.INVALID_PARAMS, "'conversation_id' is required")
            initial = body.get("state")
            if initial is not None and not isinstance(initial, dict):
                return problem(ErrorCode.INVALID_PARAMS, "'state' must be a JSON object")
            return JSONResponse(self.render_widget(cid, request.path_params["instance_id"], initial))

        async def widget_state(request: Request) -> JSONResponse:
            instance_id = request.path_params["instance_id"]
            if request.method == "GET":
                if (cid := conversation_of(request)) is None:
                    return problem(ErrorCode.INVALID_PARAMS, "'conversation_id' is required")
                return JSONResponse(self.read_widget_state(cid, instance_id))

            body = await json_object(request)
            if body is None:
                return problem(ErrorCode.INVALID_PARAMS, "Request body must be a JSON object")
            if (cid := conversation_of(request, body)) is None:
                return problem(ErrorCode.INVALID_PARAMS, "'conversation_id' is required")
            state = body.get("state")
            if not isinstance(state, dict):
                return problem(ErrorCode.INVALID_PARAMS, "'state' must be a JSON object")
            try:
                return JSONResponse(self.persist_widget_state(cid, instance_id, state))
            except WidgetStateError as e:
                error = e.error_for("widget_state")
                return JSONResponse(
                    {**error.structured(), "next_step": error.suggested_step},
                    status_code=HTTP_STATUS[error.code],
                )

        async def composer_input(request: Request) -> JSONResponse:
            cid = request.path_params["conversation_id"]
            return JSONResponse({"conversation_id": cid, "reset": self.composer_input(cid)})

        routes = [
            Route("/tools", list_tools, methods=["GET"]),
            Route("/tools/{name}", invoke_tool, methods=["POST"]),
            Route("/tools/{name}/schema", get_tool_schema, methods=["GET"]),
            Route("/resources", list_resources, methods=["GET"]),
            Route("/widgets/{instance_id}/render", render_widget, methods=["POST"]),
            Route("/widgets/{instance_id}/state", widget_state, methods=["GET", "PUT"]),
            Route("/conversations/{conversation_id}/composer", composer_input, methods=["POST"]),
        ]

        return Starlette(routes=routes)

    def run(self, host: str = "127.0.0.1", port: int = 8000) -> None:
        """Start HTTP server."""
        try:
            import uvicorn
        except ImportError as e:
            raise ImportError(
                "HTTP server requires uvicorn. "
                "Install with: pip install appcase[http]"
            ) from e

        log.info("http server starting", server=self._name, host=host, port=port)
        uvicorn.run(self._app, host=host, port=port)

    @property
    def app(self) -> Any:
        """Access ASGI app for embedding in larger applications."""
        return self._app


# ═══════════════════════════════════════════════════════════════════════════════
# Factory Functions
# ═══════════════════════════════════════════════════════════════════════════════


def apply_settings(registry: ToolRegistry) -> None:
    """Configure logging and settings-driven middleware before serving.

    Installs a RateLimitMiddleware when APPCASE_RATELIMIT_ENABLED is set and
    the registry has none yet.
    """
    from appcase.foundation.config import get_settings
    settings = get_settings()
    configure_from_settings()
    limits = settings.rate_limit
    if limits.enabled and not any(isinstance(m, RateLimitMiddleware) for m in registry.middleware):
        registry.use(RateLimitMiddleware.from_settings(limits))
    log.info("settings applied", environment=settings.environment, debug=settings.debug, rate_limited=limits.enabled)


def serve_mcp(
    registry: ToolRegistry,
    *,
    name: str | None = None,
    transport: Transport | None = None,
    host: str | None = None,
    port: int | None = None,
) -> None:
    """Expose tools via MCP protocol. Unset arguments come from ServerSettings."""
    from appcase.foundation.config import get_settings
    apply_settings(registry)
    cfg = get_settings().server
    chosen = transport or (cfg.transport if cfg.transport != "http" else "streamable-http")
    MCPServer(name or cfg.name, registry).run(
        transport=chosen, host=host or cfg.host, port=port or cfg.port,  # type: ignore[arg-type]
    )


def serve_http(
    registry: ToolRegistry,
    *,
    name: str | None = None,
    host: str | None = None,
    port: int | None = None,
) -> None:
    """Expose tools via HTTP REST endpoints. Unset arguments come from ServerSettings."""
    from appcase.foundation.config import get_settings
    apply_settings(registry)
    cfg = get_settings().server
    HTTPToolServer(name or cfg.name, registry).run(host=host or cfg.host, port=port or cfg.port)


def create_http_app(registry: ToolRegistry, name: str = "appcase", *, store: StateStore | None = None) -> Any:
    """Create ASGI app without running it.

    Example:
        >>> from starlette.routing import Mount
        >>> tools_app = create_http_app(registry)
        >>> app = Starlette(routes=[Mount("/apps", tools_app)])
    """
    return HTTPToolServer(name, registry, store=store).app


def create_mcp_server(registry: ToolRegistry, name: str = "appcase", *, store: StateStore | None = None) -> MCPServer:
    """Create MCP server without starting it."""
    return MCPServer(name, registry, store=store)
