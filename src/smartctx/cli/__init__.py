"""smartctx CLI.

Built with Typer. Global options (logging, project, config file, database)
are handled by the app callback before any command runs; commands live in
the ``commands`` package and are registered here.

Package structure:
    cli/
    ├── __init__.py           # App assembly and global options
    ├── helpers.py            # Logging/project state, engine construction
    ├── output.py             # Rich tables and JSON output
    └── commands/
        ├── select.py         # select, expand, search
        ├── feedback.py       # override, outcome
        ├── inspect.py        # session, relationships, insights, analyze
        └── server.py         # mcp
"""

from __future__ import annotations

from pathlib import Path
from typing import Annotated

import typer

from smartctx import __version__

from . import helpers as helpers
from .commands import (
    analyze,
    expand,
    insights,
    mcp,
    outcome,
    override,
    relationships,
    search,
    select,
    session,
)
from .helpers import (
    configure_global_logging,
    set_config_path,
    set_db_path,
    set_log_file,
    set_log_format,
    set_log_level,
    set_project_root,
)
from .output import console

# =============================================================================
# Typer app definition
# =============================================================================

app = typer.Typer(
    name="smartctx",
    help="Pick the files relevant to a task, and learn from your corrections",
    add_completion=False,
    no_args_is_help=True,
)


# =============================================================================
# Global option callbacks
# =============================================================================


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        console.print(f"smartctx v{__version__}")
        raise typer.Exit()


def log_level_callback(value: str | None) -> str | None:
    if value:
        set_log_level(value)
    return value


def log_file_callback(value: Path | None) -> Path | None:
    if value:
        set_log_file(value)
    return value


def log_format_callback(value: str | None) -> str | None:
    if value:
        set_log_format(value)
    return value


@app.callback()
def main(
    version: bool = typer.Option(
        False,
        "--version",
        "-V",
        callback=version_callback,
        is_eager=True,
        help="Show version and exit",
    ),
    log_level: Annotated[
        str | None,
        typer.Option(
            "--log-level",
            "-L",
            callback=log_level_callback,
            help="Logging level (DEBUG, INFO, WARNING, ERROR)",
            envvar="SMART_CONTEXT_LOG_LEVEL",
        ),
    ] = None,
    log_file: Annotated[
        Path | None,
        typer.Option(
            "--log-file",
            callback=log_file_callback,
            help="Path for JSON log file output",
            envvar="SMART_CONTEXT_LOG_FILE",
        ),
    ] = None,
    log_format: Annotated[
        str | None,
        typer.Option(
            "--log-format",
            callback=log_format_callback,
            help="Log format: json, console, or both",
        ),
    ] = None,
    project: Annotated[
        Path | None,
        typer.Option(
            "--project",
            "-C",
            help="Project root (defaults to the current directory)",
        ),
    ] = None,
    config: Annotated[
        Path | None,
        typer.Option(
            "--config",
            "-c",
            help="Configuration file (defaults to .smartctx.yaml in the project)",
        ),
    ] = None,
    db: Annotated[
        Path | None,
        typer.Option(
            "--db",
            help="Learning database (defaults to ~/.smartctx/context.db)",
            envvar="SMART_CONTEXT_DB_PATH",
        ),
    ] = None,
) -> None:
    """smartctx - relevance scoring and feedback learning for code context."""
    set_project_root(project)
    set_config_path(config)
    set_db_path(db)
    configure_global_logging(console)


# =============================================================================
# Command registration
# =============================================================================

# Selection
app.command()(select)
app.command()(expand)
app.command()(search)

# Feedback
app.command()(override)
app.command()(outcome)

# Inspection
app.command()(session)
app.command()(relationships)
app.command()(insights)
app.command()(analyze)

# Server
app.command()(mcp)


__all__ = [
    "app",
    "main",
    "console",
]
