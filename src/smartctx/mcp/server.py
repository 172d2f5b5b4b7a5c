"""smartctx MCP server.

Exposes the context engine through the Model Context Protocol: JSON-RPC
2.0 messages over stdio, one JSON object per line. Supported methods are
``initialize``, ``notifications/initialized``, ``ping``, ``tools/list`` and
``tools/call``.

stdout carries protocol messages only; logs go to stderr or a log file.
"""

from __future__ import annotations

import asyncio
import json
import sys
from typing import Any, TextIO

from pydantic import ValidationError

from smartctx import __version__
from smartctx.context.engine import ContextEngine
from smartctx.core.logging import get_logger
from smartctx.mcp.errors import (
    invalid_params,
    invalid_request,
    map_exception_to_rpc_error,
    method_not_found,
    parse_error,
)
from smartctx.mcp.protocol import (
    MCP_PROTOCOL_VERSION,
    JsonRpcError,
    JsonRpcRequest,
    JsonRpcResponse,
    ToolCallParams,
)
from smartctx.mcp.tools import ContextTools

_logger = get_logger("mcp.server")


class MCPServer:
    """MCP server over one project's ContextEngine.

    Example:
        >>> server = MCPServer(engine)
        >>> await server.initialize({"name": "editor"})
        >>> await server.call_tool("search_codebase", {"query": "auth"})
    """

    def __init__(self, engine: ContextEngine):
        self.engine = engine
        self.context_tools = ContextTools(engine)
        self.initialized = False
        self.client_info: dict[str, Any] | None = None

    @property
    def capabilities(self) -> dict[str, Any]:
        """Server capabilities advertised during MCP negotiation."""
        return {
            "tools": {"listChanged": False},
            "logging": {},
        }

    async def initialize(self, client_info: dict[str, Any] | None = None) -> dict[str, Any]:
        """Initialize the server with client information."""
        self.client_info = client_info or {}
        self.initialized = True
        _logger.info(
            "mcp_initialized",
            client=self.client_info.get("name", "unknown"),
            project_root=str(self.engine.project_root),
        )
        return {
            "protocolVersion": MCP_PROTOCOL_VERSION,
            "capabilities": self.capabilities,
            "serverInfo": {"name": "smartctx", "version": __version__},
        }

    async def list_tools(self) -> list[dict[str, Any]]:
        """List all available tools.

        Raises:
            RuntimeError: If the server is not initialized.
        """
        if not self.initialized:
            raise RuntimeError("Server not initialized")
        return await self.context_tools.list_tools()

    async def call_tool(self, name: str, arguments: dict[str, Any] | None = None) -> dict[str, Any]:
        """Execute a tool with the given arguments.

        Raises:
            RuntimeError: If the server is not initialized.
            ValueError: If the tool is unknown.
        """
        if not self.initialized:
            raise RuntimeError("Server not initialized")
        if name not in self.context_tools.tool_names:
            raise ValueError(f"Unknown tool: {name}")
        return await self.context_tools.call_tool(name, arguments or {})

    async def handle_request(
        self, request: JsonRpcRequest
    ) -> JsonRpcResponse | JsonRpcError | None:
        """Dispatch one request. Notifications return None."""
        try:
            result = await self._dispatch(request)
        except _MethodNotFound:
            if request.id is None:
                return None
            return method_not_found(request.id, request.method)
        except ValidationError as e:
            return invalid_params(request.id, str(e))
        except RuntimeError as e:
            return invalid_request(request.id, str(e))
        except ValueError as e:
            return invalid_params(request.id, str(e))
        except Exception as e:
            _logger.exception("mcp_request_failed", method=request.method, error=str(e))
            return map_exception_to_rpc_error(e, request.id)

        if request.id is None:
            return None
        return JsonRpcResponse(result=result, id=request.id)

    async def _dispatch(self, request: JsonRpcRequest) -> Any:
        params = request.params or {}
        method = request.method
        if method == "initialize":
            return await self.initialize(params.get("clientInfo"))
        if method == "notifications/initialized":
            return None
        if method == "ping":
            return {}
        if method == "tools/list":
            return {"tools": await self.list_tools()}
        if method == "tools/call":
            call = ToolCallParams.model_validate(params)
            return await self.call_tool(call.name, call.arguments)
        raise _MethodNotFound(method)

    async def process_line(self, line: str) -> str | None:
        """Handle one NDJSON line and return the serialized response."""
        try:
            raw = json.loads(line)
        except json.JSONDecodeError:
            return parse_error().model_dump_json()

        if not isinstance(raw, dict) or "method" not in raw:
            return invalid_request(
                raw.get("id") if isinstance(raw, dict) else None,
                "missing 'method' field",
            ).model_dump_json()

        try:
            request = JsonRpcRequest.model_validate(raw)
        except ValidationError as e:
            return invalid_request(raw.get("id"), str(e)).model_dump_json()

        response = await self.handle_request(request)
        if response is None:
            return None
        return response.model_dump_json()

    async def shutdown(self) -> None:
        """Shutdown the server and release the store."""
        _logger.info("mcp_shutting_down")
        self.engine.store.close()
        self.initialized = False


class _MethodNotFound(Exception):
    pass


async def serve_stdio(
    server: MCPServer,
    stdin: TextIO | None = None,
    stdout: TextIO | None = None,
) -> None:
    """Serve NDJSON requests from ``stdin`` until end of input."""
    reader = stdin or sys.stdin
    writer = stdout or sys.stdout
    _logger.info("mcp_stdio_started")
    try:
        while True:
            line = await asyncio.to_thread(reader.readline)
            if not line:
                break
            if not line.strip():
                continue
            response = await server.process_line(line)
            if response is not None:
                writer.write(response + "\n")
                writer.flush()
    finally:
        await server.shutdown()


__all__ = ["MCPServer", "serve_stdio"]
