"""Shared utilities for smartctx CLI commands.

- Logging state set by the global options and applied once per run
- Project, config and database selection
- Engine construction
- Error reporting: SmartContextError becomes a red message and exit code 1
"""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Literal

import typer
from rich.console import Console

from smartctx.context.engine import ContextEngine
from smartctx.core.config import EngineConfig
from smartctx.core.errors import SmartContextError
from smartctx.core.logging import configure_logging, get_logger
from smartctx.store import ContextStore

_logger = get_logger("cli")


# =============================================================================
# Logging configuration
# =============================================================================


@dataclass
class CliLoggingConfig:
    """CLI logging configuration state shared by the global option callbacks."""

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "WARNING"
    file: Path | None = None
    format: Literal["json", "console", "both"] = "console"
    configured: bool = False


_log_config = CliLoggingConfig()


def get_log_level() -> str:
    """Get current log level."""
    return _log_config.level


def set_log_level(level: str) -> None:
    """Set the log level (DEBUG, INFO, WARNING, ERROR)."""
    _log_config.level = level.upper()  # type: ignore[assignment]


def get_log_file() -> Path | None:
    """Get current log file path."""
    return _log_config.file


def set_log_file(path: Path | None) -> None:
    """Set the log file path.

    File logs are written as JSON; stdout stays free for command output and
    the MCP protocol.
    """
    _log_config.file = path
    if path and _log_config.format == "console":
        _log_config.format = "json"


def get_log_format() -> str:
    """Get current log format."""
    return _log_config.format


def set_log_format(fmt: str) -> None:
    """Set the log format (json, console, both)."""
    _log_config.format = fmt  # type: ignore[assignment]


def configure_global_logging(console: Console) -> None:
    """Configure logging from the global CLI options, once per run.

    Raises:
        typer.Exit: If logging configuration fails.
    """
    if _log_config.configured:
        return
    try:
        configure_logging(
            level=_log_config.level,
            format=_log_config.format,
            file_path=_log_config.file,
        )
        _log_config.configured = True
    except (ValueError, AttributeError) as e:
        console.print(f"[red]Logging configuration error:[/red] {e}")
        raise typer.Exit(1) from None


def reset_logging_state() -> None:
    """Reset logging state (primarily for testing)."""
    _log_config.configured = False
    _log_config.level = "WARNING"
    _log_config.file = None
    _log_config.format = "console"


# =============================================================================
# Project selection
# =============================================================================


@dataclass
class CliProjectState:
    """Project, configuration file and database chosen by global options."""

    project_root: Path | None = None
    config_path: Path | None = None
    db_path: Path | None = None


_project_state = CliProjectState()


def set_project_root(path: Path | None) -> None:
    _project_state.project_root = path


def set_config_path(path: Path | None) -> None:
    _project_state.config_path = path


def set_db_path(path: Path | None) -> None:
    _project_state.db_path = path


def reset_project_state() -> None:
    """Reset project selection (primarily for testing)."""
    _project_state.project_root = None
    _project_state.config_path = None
    _project_state.db_path = None


def get_project_root() -> Path:
    """Selected project root, defaulting to the current directory."""
    return (_project_state.project_root or Path.cwd()).resolve()


def load_config(console: Console) -> EngineConfig:
    """Resolve configuration for the selected project.

    Raises:
        typer.Exit: If the configuration is invalid.
    """
    try:
        config = EngineConfig.load(
            project_root=get_project_root(),
            config_path=_project_state.config_path,
        )
    except SmartContextError as e:
        console.print(f"[red]Configuration error:[/red] {e}")
        raise typer.Exit(1) from None
    if _project_state.db_path is not None:
        config.store.db_path = _project_state.db_path
    return config


def create_engine(console: Console) -> ContextEngine:
    """Build a ContextEngine for the selected project and database."""
    config = load_config(console)
    store = ContextStore(config=config.store, learning=config.learning)
    _logger.debug(
        "engine_created",
        project_root=str(get_project_root()),
        db_path=str(store.db_path),
    )
    return ContextEngine(get_project_root(), store=store, config=config)


@contextmanager
def report_errors(console: Console) -> Iterator[None]:
    """Turn engine errors into a red message and exit code 1."""
    try:
        yield
    except SmartContextError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1) from None


__all__ = [
    "CliLoggingConfig",
    "CliProjectState",
    "configure_global_logging",
    "create_engine",
    "get_log_file",
    "get_log_format",
    "get_log_level",
    "get_project_root",
    "load_config",
    "report_errors",
    "reset_logging_state",
    "reset_project_state",
    "set_config_path",
    "set_db_path",
    "set_log_file",
    "set_log_format",
    "set_log_level",
    "set_project_root",
]
