"""Pytest fixtures for smartctx tests."""

import logging
from collections.abc import Generator
from pathlib import Path

import pytest
import structlog

from smartctx.context.engine import ContextEngine
from smartctx.core.config import EngineConfig
from smartctx.core.logging import clear_context
from smartctx.store import ContextStore, reset_store
from tests.helpers import FIXED_NOW, FakeHistory, FakeIndex


@pytest.fixture(autouse=True)
def reset_logging_state() -> Generator[None, None, None]:
    """Reset logging and CLI state before and after each test."""
    from smartctx.cli import helpers as cli_helpers

    cli_helpers.reset_logging_state()
    cli_helpers.reset_project_state()
    structlog.reset_defaults()
    clear_context()

    root_logger = logging.getLogger()
    original_handlers = root_logger.handlers[:]
    for handler in original_handlers:
        root_logger.removeHandler(handler)

    yield

    cli_helpers.reset_logging_state()
    cli_helpers.reset_project_state()
    reset_store()
    clear_context()
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)
    for handler in original_handlers:
        root_logger.addHandler(handler)


@pytest.fixture
def db_path(tmp_path: Path) -> Path:
    return tmp_path / "state" / "context.db"


@pytest.fixture
def store(db_path: Path) -> Generator[ContextStore, None, None]:
    """A fresh store on a temporary database."""
    ctx_store = ContextStore(db_path=db_path)
    yield ctx_store
    ctx_store.close()


@pytest.fixture
def project_root(tmp_path: Path) -> Path:
    root = tmp_path / "project"
    root.mkdir()
    return root


@pytest.fixture
def history() -> FakeHistory:
    return FakeHistory()


@pytest.fixture
def index() -> FakeIndex:
    return FakeIndex()


@pytest.fixture
def engine(
    project_root: Path, store: ContextStore, history: FakeHistory, index: FakeIndex
) -> ContextEngine:
    """Engine over fake history and index with a fixed clock."""
    return ContextEngine(
        project_root,
        store=store,
        config=EngineConfig(),
        history=history,
        index=index,
        clock=lambda: FIXED_NOW,
    )
