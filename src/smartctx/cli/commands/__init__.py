"""smartctx CLI commands.

Each module groups related commands:
- select.py: select, expand, search
- feedback.py: override, outcome
- inspect.py: session, relationships, insights, analyze
- server.py: mcp
"""

from .feedback import outcome, override
from .inspect import analyze, insights, relationships, session
from .select import expand, search, select
from .server import mcp

__all__ = [
    "analyze",
    "expand",
    "insights",
    "mcp",
    "outcome",
    "override",
    "relationships",
    "search",
    "select",
    "session",
]
