"""Context selection commands.

- `select`: choose the files relevant to a task under a token budget
- `expand`: grow a session's budget and include what it cut off
- `search`: keyword search over file contents
"""

from __future__ import annotations

import typer

from ..helpers import create_engine, report_errors
from ..output import (
    console,
    create_excluded_table,
    create_search_table,
    create_selection_table,
    print_json,
)


def select(
    task: str = typer.Argument(..., help="Description of the engineering task"),
    current_file: str | None = typer.Option(
        None,
        "--file",
        "-f",
        help="Project-relative path of the file you are working in",
    ),
    budget: int | None = typer.Option(
        None,
        "--budget",
        "-b",
        help="Token budget (defaults to the configured budget)",
    ),
    min_relevance: float | None = typer.Option(
        None,
        "--min-relevance",
        "-m",
        help="Minimum final score for inclusion, between 0 and 1",
    ),
    only: list[str] | None = typer.Option(
        None,
        "--only",
        help="Score only these project-relative files (repeatable)",
    ),
    show_excluded: bool = typer.Option(
        False,
        "--excluded",
        "-x",
        help="Also list excluded files with their reasons",
    ),
    json_output: bool = typer.Option(
        False,
        "--json",
        "-j",
        help="Output as JSON for machine parsing",
    ),
) -> None:
    """Select the files most relevant to a task.

    Every file gets a tier (essential, recommended, optional, excluded) and
    the reasons behind it. The session id printed at the end is what
    `override` and `outcome` report feedback against.

    Examples:
        smartctx select "fix login token expiry bug" --file src/auth/login.js
        smartctx select "add export to reports" --budget 8000 --json
    """
    engine = create_engine(console)
    with report_errors(console):
        response = engine.get_optimal_context(
            task,
            current_file=current_file,
            project_files=only or None,
            target_tokens=budget,
            min_relevance_score=min_relevance,
        ).to_dict()

    if json_output:
        print_json(response)
        return

    console.print(
        f"[bold]Session {response['session_id']}[/bold] "
        f"[dim]mode={response['task_mode']} pattern={response['pattern_fingerprint']}[/dim]"
    )
    if response["included"]:
        console.print(create_selection_table(response["included"]))
    else:
        console.print("[yellow]No files selected.[/yellow]")
    console.print(
        f"Budget used: {response['total_cost']} / {response['token_budget']}"
    )
    if show_excluded and response["excluded"]:
        console.print(create_excluded_table(response["excluded"]))
    for suggestion in response["suggestions"]:
        console.print(f"[cyan]Suggestion:[/cyan] {suggestion}")
    for error in response["scan_errors"]:
        console.print(f"[yellow]Unreadable:[/yellow] {error['path']} ({error['message']})")


def search(
    query: str = typer.Argument(..., help="Keywords to search for"),
    limit: int = typer.Option(10, "--limit", "-n", help="Maximum number of results"),
    json_output: bool = typer.Option(
        False,
        "--json",
        "-j",
        help="Output as JSON for machine parsing",
    ),
) -> None:
    """Search file contents for keywords.

    Examples:
        smartctx search "session token refresh"
        smartctx search parser --limit 5 --json
    """
    engine = create_engine(console)
    with report_errors(console):
        result = engine.search_codebase(query, limit)

    if json_output:
        print_json(result)
        return
    if not result["results"]:
        console.print(f"[yellow]No files match '{query}'.[/yellow]")
        return
    console.print(create_search_table(result["results"]))


def expand(
    session_id: int = typer.Argument(..., help="Session to expand"),
    tokens: int = typer.Option(
        2000, "--tokens", "-t", help="Budget units to add to the session"
    ),
    json_output: bool = typer.Option(
        False,
        "--json",
        "-j",
        help="Output as JSON for machine parsing",
    ),
) -> None:
    """Raise a session's budget and include the files it cut off.

    Examples:
        smartctx expand 12
        smartctx expand 12 --tokens 4000 --json
    """
    engine = create_engine(console)
    with report_errors(console):
        result = engine.expand_context(session_id, tokens)

    if json_output:
        print_json(result)
        return
    added = set(result["added"])
    if added:
        console.print(
            create_selection_table(
                [f for f in result["included"] if f["path"] in added], title="Added Files"
            )
        )
    else:
        console.print("[yellow]No further files fit the larger budget.[/yellow]")
    console.print(f"Budget used: {result['total_cost']} / {result['token_budget']}")
