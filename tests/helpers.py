"""Shared test helpers for smartctx tests."""

from __future__ import annotations

import time
from datetime import UTC, datetime, timedelta

from smartctx.context.models import FileDescriptor, ScanResult, SearchMatch, SignalSet

FIXED_NOW = datetime(2026, 3, 2, 12, 0, tzinfo=UTC)


def descriptor(
    path: str,
    days_old: float = 30.0,
    size: int = 2000,
    imports: tuple[str, ...] = (),
    now: datetime = FIXED_NOW,
) -> FileDescriptor:
    """Test helper: a FileDescriptor modified ``days_old`` days before ``now``."""
    return FileDescriptor(
        path=path,
        size=size,
        last_modified=now - timedelta(days=days_old),
        imports=imports,
    )


def signals(
    keyword: float = 0.0,
    relation: float = 0.0,
    recency: float = 0.0,
    co_change: float = 0.0,
    **notes: str,
) -> SignalSet:
    return SignalSet(
        keyword=keyword,
        relation=relation,
        recency=recency,
        co_change=co_change,
        notes=dict(notes),
    )


class FakeHistory:
    """In-memory VersionHistory."""

    def __init__(
        self,
        recent: set[str] | None = None,
        co_change: dict[str, dict[str, float]] | None = None,
        delay: float = 0.0,
        error: Exception | None = None,
        pairs: dict[tuple[str, str], float] | None = None,
    ) -> None:
        self.recent = recent or set()
        self.co_change = co_change or {}
        self.pairs = pairs or {}
        self.delay = delay
        self.error = error
        self.calls: list[tuple[str, object]] = []

    def recently_modified(self, hours_window: int) -> set[str]:
        self.calls.append(("recently_modified", hours_window))
        if self.delay:
            time.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return set(self.recent)

    def co_change_frequency(self, focal_file: str, commit_lookback: int) -> dict[str, float]:
        self.calls.append(("co_change_frequency", focal_file))
        if self.error is not None:
            raise self.error
        return dict(self.co_change.get(focal_file, {}))

    def co_change_pairs(
        self, commit_lookback: int, max_commit_files: int = 50,
    ) -> dict[tuple[str, str], float]:
        self.calls.append(("co_change_pairs", commit_lookback))
        if self.error is not None:
            raise self.error
        return dict(self.pairs)


class FakeIndex:
    """In-memory SemanticIndex returning canned matches."""

    def __init__(self, matches: list[SearchMatch] | None = None, error: Exception | None = None):
        self.matches = matches or []
        self.error = error
        self.queries: list[str] = []

    def search(self, query: str, limit: int) -> list[SearchMatch]:
        self.queries.append(query)
        if self.error is not None:
            raise self.error
        return self.matches[:limit]


class FakeScanner:
    """CodebaseScanner returning a fixed snapshot."""

    def __init__(self, result: ScanResult) -> None:
        self.result = result
        self.scans = 0

    def scan(self, project_root) -> ScanResult:  # noqa: ANN001
        self.scans += 1
        return self.result


AUTH_TASK = "fix authentication error when session expires"
AUTH_FOCAL = "src/api/authController.js"


def auth_project_files() -> list[FileDescriptor]:
    """Snapshot of a small web project centred on authentication."""
    return [
        descriptor(AUTH_FOCAL, days_old=0.5, imports=("../services/authService",)),
        descriptor("src/services/authService.js", days_old=1),
        descriptor("src/middleware/auth.js", days_old=2),
        descriptor("config/auth.config.js", days_old=3, size=800),
        descriptor("src/api/userController.js", days_old=10),
        descriptor("src/utils/format.js", days_old=40),
        descriptor("docs/changelog.md", days_old=90),
        descriptor("tests/api/authController.test.js", days_old=25),
    ]
