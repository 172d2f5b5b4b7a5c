"""Inspection commands.

- `session`: show one session, or list recent sessions
- `relationships`: cached relationships of a file
- `insights`: what has been learned for the project
- `analyze`: mine git history for co-change relationships
"""

from __future__ import annotations

import typer

from ..helpers import create_engine, report_errors
from ..output import (
    console,
    create_co_change_table,
    create_excluded_table,
    create_insights_panel,
    create_mode_table,
    create_patterns_table,
    create_relationships_table,
    create_selection_table,
    create_session_panel,
    create_sessions_table,
    print_json,
)


def session(
    session_id: int | None = typer.Argument(
        None, help="Session to show; omitted lists recent sessions"
    ),
    limit: int = typer.Option(20, "--limit", "-n", help="Sessions to list"),
    mode: str | None = typer.Option(
        None, "--mode", help="Only list sessions of this task mode"
    ),
    json_output: bool = typer.Option(
        False,
        "--json",
        "-j",
        help="Output as JSON for machine parsing",
    ),
) -> None:
    """Show a recorded session or list recent ones.

    Examples:
        smartctx session
        smartctx session 12 --json
    """
    engine = create_engine(console)
    if session_id is None:
        with report_errors(console):
            listing = engine.list_sessions(limit, mode)
        if json_output:
            print_json(listing)
        elif not listing["sessions"]:
            console.print("[dim]No sessions recorded for this project.[/dim]")
        else:
            console.print(create_sessions_table(listing["sessions"]))
        return

    with report_errors(console):
        data = engine.get_session(session_id)
    if json_output:
        print_json(data)
        return
    console.print(create_session_panel(data))
    selection = data["selection"]
    if selection["included"]:
        console.print(create_selection_table(selection["included"]))
    if selection["excluded"]:
        console.print(create_excluded_table(selection["excluded"], limit=10))


def relationships(
    file_path: str = typer.Argument(..., help="Project-relative file path"),
    relationship_type: str = typer.Option(
        "all",
        "--type",
        "-t",
        help="import, co-change, used-together or all",
    ),
    limit: int = typer.Option(20, "--limit", "-n", help="Maximum relationships"),
    json_output: bool = typer.Option(
        False,
        "--json",
        "-j",
        help="Output as JSON for machine parsing",
    ),
) -> None:
    """Show files related to a file, strongest first.

    Examples:
        smartctx relationships src/auth/login.js
        smartctx relationships src/auth/login.js --type co-change
    """
    engine = create_engine(console)
    with report_errors(console):
        result = engine.get_file_relationships(file_path, relationship_type, limit)

    if json_output:
        print_json(result)
        return
    if not result["relationships"]:
        console.print(f"[dim]No relationships recorded for {result['file_path']}.[/dim]")
        return
    console.print(create_relationships_table(result["file_path"], result["relationships"]))


def insights(
    mode: str | None = typer.Option(
        None, "--mode", help="Restrict session statistics to one task mode"
    ),
    json_output: bool = typer.Option(
        False,
        "--json",
        "-j",
        help="Output as JSON for machine parsing",
    ),
) -> None:
    """Show sessions, overrides and learned adjustments for the project.

    Examples:
        smartctx insights
        smartctx insights --mode debug --json
    """
    engine = create_engine(console)
    with report_errors(console):
        data = engine.get_learning_insights(mode)

    if json_output:
        print_json(data)
        return
    console.print(create_insights_panel(data))
    if data["modes"]:
        console.print(create_mode_table(data["modes"]))
    if data["active_patterns"]:
        console.print(create_patterns_table(data["active_patterns"]))


def analyze(
    commits: int = typer.Option(
        100, "--commits", "-n", help="Number of recent commits to analyze"
    ),
    limit: int = typer.Option(20, "--limit", "-l", help="Maximum patterns shown"),
    json_output: bool = typer.Option(
        False,
        "--json",
        "-j",
        help="Output as JSON for machine parsing",
    ),
) -> None:
    """Record co-change relationships mined from git history.

    Examples:
        smartctx analyze
        smartctx analyze --commits 500 --json
    """
    engine = create_engine(console)
    with report_errors(console):
        data = engine.analyze_git_patterns(commits, limit)

    if json_output:
        print_json(data)
        return
    if not data["history_available"]:
        console.print("[yellow]Version history unavailable; nothing analyzed.[/yellow]")
        return
    if not data["co_change_patterns"]:
        console.print("[dim]No co-change patterns found.[/dim]")
        return
    console.print(create_co_change_table(data["co_change_patterns"]))
    console.print(f"Relationships recorded: {data['relationships_recorded']}")
