"""Rich output formatting for the smartctx CLI.

Color schemes, table builders and the JSON printer shared by the commands.
Commands receive plain dicts (the same payloads the MCP tools return) and
render them here.
"""

from __future__ import annotations

import json
from collections.abc import Sequence
from typing import Any

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

# =============================================================================
# Shared console instance
# =============================================================================

console = Console()

# Status messages of commands whose stdout carries protocol traffic
err_console = Console(stderr=True)


# =============================================================================
# Color schemes
# =============================================================================

TIER_COLORS: dict[str, str] = {
    "essential": "bold green",
    "recommended": "green",
    "optional": "yellow",
    "excluded": "dim",
}

RELATIONSHIP_COLORS: dict[str, str] = {
    "import": "cyan",
    "co-change": "magenta",
    "used-together": "green",
}


def format_tier(tier: str) -> str:
    color = TIER_COLORS.get(tier, "white")
    return f"[{color}]{tier}[/{color}]"


def format_score(score: float | None) -> str:
    """Score with two decimals, or a dash when missing."""
    if score is None:
        return "-"
    return f"{score:.2f}"


def format_rate(rate: float | None) -> str:
    if rate is None:
        return "-"
    return f"{rate:.0%}"


def print_json(payload: Any) -> None:
    """Print a payload as JSON without markup, highlighting or wrapping."""
    console.print(
        json.dumps(payload, indent=2, default=str),
        markup=False,
        highlight=False,
        soft_wrap=True,
    )


# =============================================================================
# Table builders
# =============================================================================


def create_selection_table(included: Sequence[dict[str, Any]], title: str = "Selected Files") -> Table:
    """Table of included files: path, tier, score, cost and primary reason."""
    table = Table(title=title)
    table.add_column("Path", style="cyan", no_wrap=True)
    table.add_column("Tier")
    table.add_column("Score", justify="right")
    table.add_column("Cost", justify="right")
    table.add_column("Why")
    for item in included:
        table.add_row(
            item["path"],
            format_tier(item["tier"]),
            format_score(item["final_score"]),
            str(item["cost"]),
            item["primary_reason"],
        )
    return table


def create_excluded_table(excluded: Sequence[dict[str, Any]], limit: int = 15) -> Table:
    """Table of the highest-scoring excluded files with their reasons."""
    shown = list(excluded)[:limit]
    title = "Excluded Files"
    if len(excluded) > limit:
        title += f" (top {limit} of {len(excluded)})"
    table = Table(title=title)
    table.add_column("Path", style="dim", no_wrap=True)
    table.add_column("Tier")
    table.add_column("Score", justify="right")
    table.add_column("Reason")
    for item in shown:
        table.add_row(
            item["path"],
            format_tier(item["tier"]),
            format_score(item["final_score"]),
            item["reason"],
        )
    return table


def create_search_table(results: Sequence[dict[str, Any]]) -> Table:
    table = Table(title="Search Results")
    table.add_column("Path", style="cyan", no_wrap=True)
    table.add_column("Score", justify="right")
    table.add_column("Match", style="dim")
    for item in results:
        matches = item.get("matches") or []
        table.add_row(item["path"], format_score(item["score"]), matches[0] if matches else "")
    return table


def create_relationships_table(file_path: str, relationships: Sequence[dict[str, Any]]) -> Table:
    table = Table(title=f"Relationships of {file_path}")
    table.add_column("Related File", style="cyan", no_wrap=True)
    table.add_column("Type")
    table.add_column("Strength", justify="right")
    table.add_column("Observed", justify="right")
    for item in relationships:
        kind = item["relationship_type"]
        color = RELATIONSHIP_COLORS.get(kind, "white")
        table.add_row(
            item["related_file"],
            f"[{color}]{kind}[/{color}]",
            format_score(item["strength"]),
            str(item["observation_count"]),
        )
    return table


def create_co_change_table(patterns: Sequence[dict[str, Any]]) -> Table:
    table = Table(title="Co-change Patterns")
    table.add_column("File", style="cyan", no_wrap=True)
    table.add_column("Changes With", style="cyan", no_wrap=True)
    table.add_column("Strength", justify="right")
    for item in patterns:
        first, second = item["files"]
        table.add_row(first, second, format_score(item["strength"]))
    return table


def create_sessions_table(sessions: Sequence[dict[str, Any]]) -> Table:
    table = Table(title="Recent Sessions")
    table.add_column("ID", justify="right", style="bold")
    table.add_column("Mode")
    table.add_column("Task")
    table.add_column("Included", justify="right")
    table.add_column("Outcome")
    table.add_column("Created", style="dim")
    for session in sessions:
        outcome = session.get("outcome")
        if outcome is None:
            outcome_text = "[dim]pending[/dim]"
        elif outcome["was_successful"]:
            outcome_text = "[green]success[/green]"
        else:
            outcome_text = "[red]failure[/red]"
        task = session["task_description"]
        table.add_row(
            str(session["id"]),
            session["task_mode"],
            task if len(task) <= 48 else task[:45] + "...",
            str(len(session["selection"]["included"])),
            outcome_text,
            session["created_at"][:19],
        )
    return table


def create_session_panel(session: dict[str, Any]) -> Panel:
    selection = session["selection"]
    lines = [
        f"[bold]Task:[/bold] {session['task_description']}",
        f"[bold]Mode:[/bold] {session['task_mode']}",
        f"[bold]Pattern:[/bold] {session['pattern_fingerprint']}",
        f"[bold]Focal file:[/bold] {session['focal_file'] or '-'}",
        f"[bold]Budget:[/bold] {selection['total_cost']} / {session['token_budget']}",
        f"[bold]Created:[/bold] {session['created_at']}",
    ]
    outcome = session.get("outcome")
    if outcome is not None:
        status = "[green]success[/green]" if outcome["was_successful"] else "[red]failure[/red]"
        lines.append(f"[bold]Outcome:[/bold] {status}")
        used = outcome.get("files_actually_used") or []
        if used:
            lines.append(f"[bold]Files used:[/bold] {', '.join(used)}")
    return Panel("\n".join(lines), title=f"Session {session['id']}")


def create_insights_panel(insights: dict[str, Any]) -> Panel:
    events = insights["override_counts"]
    lines = [
        f"[bold]Sessions:[/bold] {insights['total_sessions']}",
        f"[bold]Active learned adjustments:[/bold] {len(insights['active_patterns'])}",
        f"[bold]Relationships:[/bold] {insights['relationship_count']}",
        "[bold]Override events:[/bold] "
        + (", ".join(f"{kind} {count}" for kind, count in events.items()) or "none"),
    ]
    return Panel("\n".join(lines), title="Learning Insights")


def create_mode_table(modes: Sequence[dict[str, Any]]) -> Table:
    table = Table(title="Sessions by Task Mode")
    table.add_column("Mode", style="bold")
    table.add_column("Sessions", justify="right")
    table.add_column("With Outcome", justify="right")
    table.add_column("Success Rate", justify="right")
    for mode in modes:
        table.add_row(
            mode["task_mode"],
            str(mode["sessions"]),
            str(mode["with_outcome"]),
            format_rate(mode["success_rate"]),
        )
    return table


def create_patterns_table(patterns: Sequence[dict[str, Any]]) -> Table:
    table = Table(title="Active Learned Adjustments")
    table.add_column("File", style="cyan", no_wrap=True)
    table.add_column("Pattern")
    table.add_column("Adjustment", justify="right")
    table.add_column("Confidence", justify="right")
    table.add_column("Last", style="dim")
    for pattern in patterns:
        adjustment = pattern["cumulative_adjustment"]
        color = "green" if adjustment > 0 else "red" if adjustment < 0 else "white"
        table.add_row(
            pattern["file_path"],
            pattern["pattern_fingerprint"],
            f"[{color}]{adjustment:+.2f}[/{color}]",
            format_score(pattern["confidence"]),
            pattern["last_override_type"] or "-",
        )
    return table


__all__ = [
    "RELATIONSHIP_COLORS",
    "TIER_COLORS",
    "console",
    "err_console",
    "create_co_change_table",
    "create_excluded_table",
    "create_insights_panel",
    "create_mode_table",
    "create_patterns_table",
    "create_relationships_table",
    "create_search_table",
    "create_selection_table",
    "create_session_panel",
    "create_sessions_table",
    "format_rate",
    "format_score",
    "format_tier",
    "print_json",
]
