"""Feedback commands.

- `override`: report files added to, removed from or kept in a selection
- `outcome`: report whether a session's task succeeded
"""

from __future__ import annotations

import typer

from ..helpers import create_engine, report_errors
from ..output import console, print_json


def override(
    session_id: int = typer.Argument(..., help="Session id printed by `select`"),
    added: list[str] | None = typer.Option(
        None, "--add", "-a", help="File you added to the selection (repeatable)"
    ),
    removed: list[str] | None = typer.Option(
        None, "--remove", "-r", help="File you removed from the selection (repeatable)"
    ),
    kept: list[str] | None = typer.Option(
        None, "--keep", "-k", help="Selected file you confirmed (repeatable)"
    ),
    json_output: bool = typer.Option(
        False,
        "--json",
        "-j",
        help="Output as JSON for machine parsing",
    ),
) -> None:
    """Record manual corrections to a session's selection.

    After three consistent corrections for the same kind of task, the file's
    score for that task pattern is adjusted in future selections.

    Examples:
        smartctx override 12 --add config/auth.config.js
        smartctx override 12 --remove src/legacy.js --keep src/auth/login.js
    """
    if not (added or removed or kept):
        console.print("[red]Error:[/red] Give at least one of --add, --remove or --keep")
        raise typer.Exit(1)

    engine = create_engine(console)
    with report_errors(console):
        result = engine.apply_user_overrides(
            session_id, added or (), removed or (), kept or ()
        )

    if json_output:
        print_json(result)
        return
    counts = result["overrides"]
    console.print(
        f"[green]Recorded overrides for session {session_id}:[/green] "
        f"{counts['added']} added, {counts['removed']} removed, {counts['kept']} kept"
    )
    duplicates = sum(counts.values()) - result["recorded"]
    if duplicates:
        console.print(f"[dim]{duplicates} already recorded for this session[/dim]")


def outcome(
    session_id: int = typer.Argument(..., help="Session id printed by `select`"),
    success: bool = typer.Option(
        ...,
        "--success/--failure",
        help="Whether the task was completed",
    ),
    used: list[str] | None = typer.Option(
        None, "--used", "-u", help="File the task actually needed (repeatable)"
    ),
    json_output: bool = typer.Option(
        False,
        "--json",
        "-j",
        help="Output as JSON for machine parsing",
    ),
) -> None:
    """Record the outcome of a session.

    Used files that were not selected count as additions. After a success,
    selected essential or recommended files that went unused count as
    removals. Only the first report for a session is applied.

    Examples:
        smartctx outcome 12 --success --used src/auth/login.js --used config/auth.config.js
        smartctx outcome 13 --failure
    """
    engine = create_engine(console)
    with report_errors(console):
        result = engine.record_session_outcome(session_id, success, used or ())

    if json_output:
        print_json(result)
        return
    if result["already_recorded"]:
        console.print(
            f"[yellow]Outcome for session {session_id} was already recorded; "
            "nothing changed.[/yellow]"
        )
        return
    implicit = result["implicit_overrides"]
    console.print(f"[green]Recorded outcome for session {session_id}.[/green]")
    if implicit["added"]:
        console.print(f"  Learned additions: {', '.join(implicit['added'])}")
    if implicit["removed"]:
        console.print(f"  Learned removals: {', '.join(implicit['removed'])}")
