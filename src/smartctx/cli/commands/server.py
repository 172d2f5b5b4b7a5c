"""MCP server command."""

from __future__ import annotations

import asyncio

from ..helpers import create_engine, get_project_root
from ..output import err_console


def mcp() -> None:
    """Serve the MCP tools over stdio.

    Reads newline-delimited JSON-RPC requests from stdin and writes
    responses to stdout. Logs go to stderr (or --log-file), never stdout.

    Examples:
        smartctx mcp
        smartctx --project ~/src/app --log-file /tmp/smartctx.log mcp
    """
    from smartctx.mcp.server import MCPServer, serve_stdio

    engine = create_engine(err_console)
    server = MCPServer(engine)
    err_console.print(f"[dim]smartctx MCP server on stdio for {get_project_root()}[/dim]")
    try:
        asyncio.run(serve_stdio(server))
    except KeyboardInterrupt:
        err_console.print("[yellow]MCP server stopped.[/yellow]")
