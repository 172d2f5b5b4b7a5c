"""Interfaces of the engine's external collaborators.

The engine depends only on these protocols. Default implementations live
in ``scanner``, ``history`` and ``search``; tests substitute fakes.
"""

from __future__ import annotations

from pathlib import Path
from typing import Protocol

from smartctx.context.models import ScanResult, SearchMatch


class CodebaseScanner(Protocol):
    """Produces a snapshot of the project (satisfied by FileSystemScanner)."""

    def scan(self, project_root: Path) -> ScanResult: ...


class VersionHistory(Protocol):
    """Version-control signals (satisfied by GitHistoryAnalyzer).

    Every method returns empty results, not errors, when no history system
    is present.
    """

    def recently_modified(self, hours_window: int) -> set[str]: ...

    def co_change_frequency(
        self, focal_file: str, commit_lookback: int,
    ) -> dict[str, float]: ...

    def co_change_pairs(
        self, commit_lookback: int, max_commit_files: int = 50,
    ) -> dict[tuple[str, str], float]: ...


class SemanticIndex(Protocol):
    """Content search over the codebase (satisfied by KeywordIndex)."""

    def search(self, query: str, limit: int) -> list[SearchMatch]: ...


__all__ = ["CodebaseScanner", "SemanticIndex", "VersionHistory"]
