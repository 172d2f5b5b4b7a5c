"""smartctx MCP server - Model Context Protocol integration.

Exposes context selection, feedback and learning queries as MCP tools for
editors and agents:

- get_optimal_context, search_codebase
- apply_user_overrides, record_session_outcome
- get_file_relationships, get_learning_insights

Example:
    >>> from smartctx.mcp import MCPServer, serve_stdio
    >>> await serve_stdio(MCPServer(engine))
"""

from .server import MCPServer, serve_stdio
from .tools import ContextTools

__all__ = ["ContextTools", "MCPServer", "serve_stdio"]
