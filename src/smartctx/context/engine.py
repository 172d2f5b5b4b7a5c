"""Context engine: the request pipeline and the feedback entry points.

``ContextEngine`` wires the pipeline stages together for one project:

    task text -> TaskPattern -> SignalSets -> ScoredFiles -> Selection

and persists each completed request as a session. Overrides and outcome
reports arrive later against a session id and flow into the store's
override learning.

External I/O (version history, text index) is bounded by a timeout and
degrades to zero-valued signals. Every other failure surfaces as one of
the SmartContextError subclasses.
"""

from __future__ import annotations

import posixpath
import re
from collections.abc import Callable, Iterable, Sequence
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from contextlib import AbstractContextManager
from datetime import UTC, datetime
from pathlib import Path
from typing import Any, TypeVar

from smartctx.context.collaborators import CodebaseScanner, SemanticIndex, VersionHistory
from smartctx.context.history import GitHistoryAnalyzer
from smartctx.context.models import (
    ContextResponse,
    FileDescriptor,
    OverrideType,
    ScanError,
    ScanResult,
    ScoredFile,
    SearchMatch,
    Selection,
    SignalSet,
    TaskMode,
    TaskPattern,
)
from smartctx.context.scanner import FileSystemScanner
from smartctx.context.scorer import RelevanceScorer
from smartctx.context.search import KeywordIndex
from smartctx.context.selector import BudgetSelector, estimate_cost
from smartctx.context.signals import SignalCollector, is_test_file
from smartctx.context.task_pattern import extract_task_pattern
from smartctx.core.config import EngineConfig
from smartctx.core.errors import (
    InvalidInputError,
    SignalUnavailableError,
    StorageContentionError,
)
from smartctx.core.logging import (
    RequestContext,
    get_current_context,
    get_logger,
    with_context,
)
from smartctx.store import ContextStore, RelationshipType
from smartctx.utils.time import utc_now

_logger = get_logger("engine")

T = TypeVar("T")

# Shared pool for bounded external calls; a hung call only ties up a worker
_IO_POOL = ThreadPoolExecutor(max_workers=4, thread_name_prefix="smartctx-io")

_DRIVE_PREFIX = re.compile(r"^[A-Za-z]:/")


def bounded_call(source: str, func: Callable[[], T], timeout: float) -> T:
    """Run ``func`` with an upper bound on its duration.

    Raises:
        SignalUnavailableError: If the call times out or raises.
    """
    future = _IO_POOL.submit(func)
    try:
        return future.result(timeout=timeout)
    except FutureTimeoutError:
        future.cancel()
        raise SignalUnavailableError(source, f"timed out after {timeout}s") from None
    except Exception as e:
        raise SignalUnavailableError(source, f"{type(e).__name__}: {e}") from e


def build_suggestions(
    task_mode: TaskMode,
    selection: Selection,
    scan_errors: Sequence[ScanError],
    max_test_suggestions: int = 3,
) -> list[str]:
    """Follow-up hints shown alongside a selection."""
    suggestions: list[str] = []
    if task_mode is TaskMode.DEBUG and max_test_suggestions:
        tests = [f.path for f in selection.excluded if is_test_file(f.path)]
        for path in tests[:max_test_suggestions]:
            suggestions.append(f"Consider including test file {path}")
    remaining = selection.token_budget - selection.total_cost
    if selection.total_cost < selection.token_budget / 2:
        suggestions.append(
            f"{remaining} of {selection.token_budget} budget units unused; "
            "lower the minimum relevance to include more files"
        )
    if scan_errors:
        suggestions.append(f"{len(scan_errors)} files could not be read")
    return suggestions


class ContextEngine:
    """Relevance scoring and feedback learning for one project.

    Collaborators are injected; defaults are a FileSystemScanner, a
    GitHistoryAnalyzer over the project root and a KeywordIndex rebuilt
    whenever the scanned snapshot changes. An injected index is used as is.
    """

    def __init__(
        self,
        project_root: Path,
        store: ContextStore | None = None,
        config: EngineConfig | None = None,
        scanner: CodebaseScanner | None = None,
        history: VersionHistory | None = None,
        index: SemanticIndex | None = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.project_root = Path(project_root)
        self.config = config or EngineConfig()
        self.store = store or ContextStore(
            config=self.config.store, learning=self.config.learning
        )
        self.scanner: CodebaseScanner = scanner or FileSystemScanner()
        self.history: VersionHistory = history or GitHistoryAnalyzer(self.project_root)
        self.index = index
        self._fixed_index = index is not None
        self._index_key: tuple[tuple[str, int, datetime], ...] | None = None
        self.clock = clock
        self.collector = SignalCollector(self.config.signals)
        self.scorer = RelevanceScorer(self.config.weights, self.config.thresholds)
        self.selector = BudgetSelector(self.config.thresholds)
        self.project_hash = self.store.hash_project(self.project_root)

    def _request_context(
        self, session_id: int | None = None
    ) -> AbstractContextManager[RequestContext]:
        """Logging context for an engine operation.

        Inherits the request id of an enclosing context (an MCP tool call,
        for instance) so entries of one request stay correlated.
        """
        current = get_current_context()
        if current is None:
            ctx = RequestContext(project_hash=self.project_hash, component="engine")
        else:
            ctx = current.with_component("engine")
        if session_id is not None:
            ctx = ctx.with_session(session_id)
        return with_context(ctx)

    # ------------------------------------------------------------------
    # Request pipeline
    # ------------------------------------------------------------------

    def get_optimal_context(
        self,
        task: str,
        current_file: str | None = None,
        project_files: Sequence[FileDescriptor | str] | None = None,
        target_tokens: int | None = None,
        min_relevance_score: float | None = None,
    ) -> ContextResponse:
        """Select the files most relevant to a task under a budget.

        Args:
            task: Free-text task description.
            current_file: Focal file, project-relative.
            project_files: Snapshot to score; None scans the project root.
            target_tokens: Budget; defaults to the configured budget.
            min_relevance_score: Minimum final score for inclusion.

        Raises:
            InvalidInputError: Empty task, non-positive budget, a minimum
                relevance outside [0, 1], or a path that is empty, absolute
                or outside the project. Nothing is written.
        """
        budget = self.config.selection.default_token_budget if target_tokens is None else target_tokens
        min_relevance = (
            self.config.selection.default_min_relevance
            if min_relevance_score is None
            else min_relevance_score
        )
        self._validate_request(task, budget, min_relevance)
        focal = _relative_path(current_file, "current_file") if current_file else None

        with self._request_context():
            pattern = extract_task_pattern(task)
            snapshot = self._snapshot(project_files)
            files = list(snapshot.files)
            now = self.clock()

            signals = self._collect_signals(files, pattern, focal, task, now)
            adjustments = self.store.get_adjustments(pattern.fingerprint)
            scored = self._score(files, signals, adjustments, min_relevance)
            selection = self.selector.select(scored, budget, min_relevance)
            suggestions = build_suggestions(
                pattern.task_mode,
                selection,
                snapshot.errors,
                self.config.selection.max_test_suggestions,
            )

            session_id = self.store.create_session(
                self.project_root,
                pattern,
                task,
                focal,
                budget,
                selection,
                created_at=now,
            )
            with self._request_context(session_id):
                self._cache_relationships(focal, signals, selection)
                _logger.info(
                    "context_selected",
                    task_mode=pattern.task_mode.value,
                    fingerprint=pattern.fingerprint,
                    candidates=len(files),
                    included=len(selection.included),
                    excluded=len(selection.excluded),
                    total_cost=selection.total_cost,
                    token_budget=budget,
                    learned_adjustments=len(adjustments),
                )
            return ContextResponse(
                session_id=session_id,
                task_mode=pattern.task_mode,
                pattern_fingerprint=pattern.fingerprint,
                selection=selection,
                suggestions=tuple(suggestions),
                scan_errors=snapshot.errors,
            )

    def score_files(
        self,
        task: str,
        current_file: str | None = None,
        project_files: Sequence[FileDescriptor | str] | None = None,
        min_relevance_score: float | None = None,
    ) -> list[ScoredFile]:
        """Score a snapshot without selecting or recording a session."""
        if not task or not task.strip():
            raise InvalidInputError("Task description must not be empty", field="task")
        pattern = extract_task_pattern(task)
        snapshot = self._snapshot(project_files)
        files = list(snapshot.files)
        focal = _relative_path(current_file, "current_file") if current_file else None
        signals = self._collect_signals(files, pattern, focal, task, self.clock())
        adjustments = self.store.get_adjustments(pattern.fingerprint)
        return self._score(files, signals, adjustments, min_relevance_score)

    @staticmethod
    def _validate_request(task: str, budget: int, min_relevance: float | None) -> None:
        if not isinstance(task, str) or not task.strip():
            raise InvalidInputError("Task description must not be empty", field="task")
        if budget <= 0:
            raise InvalidInputError(
                f"Token budget must be positive, got {budget}", field="target_tokens"
            )
        if min_relevance is not None and not 0.0 <= min_relevance <= 1.0:
            raise InvalidInputError(
                f"Minimum relevance must be within [0, 1], got {min_relevance}",
                field="min_relevance_score",
            )

    def _snapshot(self, project_files: Sequence[FileDescriptor | str] | None) -> ScanResult:
        if project_files is None:
            return self.scanner.scan(self.project_root)

        files: list[FileDescriptor] = []
        errors: list[ScanError] = []
        seen: set[str] = set()
        for entry in project_files:
            if isinstance(entry, FileDescriptor):
                if entry.path not in seen:
                    seen.add(entry.path)
                    files.append(entry)
                continue
            path = _relative_path(entry, "project_files")
            if path in seen:
                continue
            seen.add(path)
            try:
                stat = (self.project_root / path).stat()
            except OSError as e:
                errors.append(ScanError(path=path, message=str(e)))
                continue
            files.append(
                FileDescriptor(
                    path=path,
                    size=stat.st_size,
                    last_modified=datetime.fromtimestamp(stat.st_mtime, UTC),
                )
            )
        return ScanResult(files=tuple(files), errors=tuple(errors))

    def _collect_signals(
        self,
        files: list[FileDescriptor],
        pattern: TaskPattern,
        focal: str | None,
        task: str,
        now: datetime,
    ) -> dict[str, SignalSet]:
        cfg = self.config.signals
        history_available = True
        recent: set[str] = set()
        co_change: dict[str, float] = {}
        try:
            recent = bounded_call(
                "version_history",
                lambda: self.history.recently_modified(cfg.recent_hours_window),
                cfg.io_timeout_seconds,
            )
            if focal:
                co_change = bounded_call(
                    "version_history",
                    lambda: self.history.co_change_frequency(focal, cfg.commit_lookback),
                    cfg.io_timeout_seconds,
                )
        except SignalUnavailableError as e:
            _logger.warning("signal_unavailable", source=e.source, reason=e.reason)
            history_available = False

        if history_available and not recent and not co_change and not self._has_history():
            history_available = False

        index_available = True
        matches: dict[str, SearchMatch] = {}
        try:
            index = self._index_for(files)
            results = bounded_call(
                "text_index",
                lambda: index.search(task, cfg.search_limit),
                cfg.io_timeout_seconds,
            )
            matches = {m.path: m for m in results}
        except SignalUnavailableError as e:
            _logger.warning("signal_unavailable", source=e.source, reason=e.reason)
            index_available = False

        return self.collector.collect(
            files,
            pattern,
            focal,
            now,
            recently_modified=recent,
            co_change=co_change,
            content_matches=matches,
            history_available=history_available,
            index_available=index_available,
        )

    def _has_history(self) -> bool:
        is_repository = getattr(self.history, "is_repository", None)
        if is_repository is None:
            return True
        return bool(is_repository())

    def _index_for(self, files: Sequence[FileDescriptor]) -> SemanticIndex:
        """Index over ``files``, rebuilt when any path, size or mtime changed."""
        if self._fixed_index and self.index is not None:
            return self.index
        key = tuple(sorted((f.path, f.size, f.last_modified) for f in files))
        if self.index is None or key != self._index_key:
            self.index = KeywordIndex.build(self.project_root, files)
            self._index_key = key
            _logger.debug("text_index_built", files=len(key))
        return self.index

    def _score(
        self,
        files: list[FileDescriptor],
        signals: dict[str, SignalSet],
        adjustments: dict[str, float],
        min_relevance: float | None,
    ) -> list[ScoredFile]:
        chars_per_token = self.config.selection.chars_per_token
        return [
            self.scorer.score(
                f.path,
                estimate_cost(f.size, chars_per_token),
                signals[f.path],
                adjustments.get(f.path, 0.0),
                min_relevance,
            )
            for f in files
        ]

    def _cache_relationships(
        self,
        focal: str | None,
        signals: dict[str, SignalSet],
        selection: Selection,
    ) -> None:
        """Remember import and co-change relations of included files."""
        if not focal:
            return
        observations: list[tuple[str, str, RelationshipType, float]] = []
        for path in selection.included_paths:
            if path == focal or path not in signals:
                continue
            signal_set = signals[path]
            relation_note = signal_set.notes.get("relation", "").lower()
            if "imported by focal file" in relation_note or "imports focal file" in relation_note:
                observations.append((focal, path, RelationshipType.IMPORT, 1.0))
            if signal_set.co_change > 0:
                observations.append((focal, path, RelationshipType.CO_CHANGE, signal_set.co_change))
        if not observations:
            return
        try:
            self.store.observe_relationships(observations)
        except StorageContentionError as e:
            _logger.warning("relationship_cache_skipped", error=str(e))

    # ------------------------------------------------------------------
    # Feedback
    # ------------------------------------------------------------------

    def apply_user_overrides(
        self,
        session_id: int,
        added: Iterable[str] = (),
        removed: Iterable[str] = (),
        kept: Iterable[str] = (),
    ) -> dict[str, Any]:
        """Record explicit user corrections to a session's selection.

        Raises:
            InvalidInputError: If a path is empty, absolute or outside the
                project. Nothing is written.
            UnknownSessionError: If the session is missing or foreign.
            StorageContentionError: If a write kept conflicting.
        """
        groups = {
            OverrideType.ADDED: [_relative_path(p, "added") for p in added],
            OverrideType.REMOVED: [_relative_path(p, "removed") for p in removed],
            OverrideType.KEPT: [_relative_path(p, "kept") for p in kept],
        }
        self.store.get_session(session_id, self.project_root)
        with self._request_context(session_id):
            recorded = self.store.record_overrides(
                session_id,
                [(path, kind) for kind, paths in groups.items() for path in paths],
            )
            _logger.info("overrides_applied", submitted=sum(map(len, groups.values())), recorded=recorded)
        return {
            "session_id": session_id,
            "overrides": {kind.value: len(paths) for kind, paths in groups.items()},
            "recorded": recorded,
        }

    def record_session_outcome(
        self,
        session_id: int,
        was_successful: bool,
        files_actually_used: Iterable[str] = (),
    ) -> dict[str, Any]:
        """Record whether a session's task succeeded and which files were used.

        Raises:
            InvalidInputError: If a used path is empty, absolute or outside
                the project.
            UnknownSessionError: If the session is missing or foreign.
            StorageContentionError: If the outcome write kept conflicting;
                nothing was recorded and the report can be retried.
        """
        used = [_relative_path(p, "files_actually_used") for p in files_actually_used]
        with self._request_context(session_id):
            result = self.store.record_outcome(
                session_id, self.project_root, was_successful, used
            )
        return result.to_dict()

    def expand_context(self, session_id: int, additional_tokens: int = 2000) -> dict[str, Any]:
        """Raise a session's budget and include the files it cut off.

        Only files excluded for budget reasons are reconsidered; the stored
        selection and budget are updated in place.

        Raises:
            InvalidInputError: If ``additional_tokens`` is not positive.
            UnknownSessionError: If the session is missing or foreign.
            StorageContentionError: If the write kept conflicting.
        """
        if isinstance(additional_tokens, bool) or additional_tokens <= 0:
            raise InvalidInputError(
                f"Additional tokens must be positive, got {additional_tokens}",
                field="additional_tokens",
            )
        with self._request_context(session_id):
            while True:
                session = self.store.get_session(session_id, self.project_root)
                previous = session.selection
                expanded = self.selector.expand(previous, additional_tokens)
                if self.store.update_selection(session_id, expanded, previous.token_budget):
                    break
                _logger.debug("expansion_raced", session_id=session_id)

            before = set(previous.included_paths)
            added = [path for path in expanded.included_paths if path not in before]
            _logger.info(
                "context_expanded",
                added=len(added),
                token_budget=expanded.token_budget,
                total_cost=expanded.total_cost,
            )
        return {"session_id": session_id, "added": added, **expanded.to_dict()}

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def search_codebase(self, query: str, limit: int = 10) -> dict[str, Any]:
        """Content search through the text index.

        Raises:
            InvalidInputError: If the query is empty or the limit is not positive.
        """
        if not query or not query.strip():
            raise InvalidInputError("Search query must not be empty", field="query")
        if limit <= 0:
            raise InvalidInputError(f"Limit must be positive, got {limit}", field="limit")
        if self._fixed_index and self.index is not None:
            index = self.index
        else:
            index = self._index_for(self.scanner.scan(self.project_root).files)
        results = index.search(query, limit)
        return {
            "query": query,
            "results": [
                {"path": m.path, "score": m.score, "matches": [m.excerpt] if m.excerpt else []}
                for m in results
            ],
        }

    def analyze_git_patterns(self, commit_limit: int = 100, limit: int = 20) -> dict[str, Any]:
        """Mine recent commits for co-change relationships and cache them.

        Every co-changing pair is recorded as a ``co_change`` relationship;
        the strongest ``limit`` pairs are returned. A history call that fails
        or times out yields an empty result with ``history_available`` False.

        Raises:
            InvalidInputError: If ``commit_limit`` or ``limit`` is not positive.
            StorageContentionError: If caching the relationships kept conflicting.
        """
        if commit_limit <= 0:
            raise InvalidInputError(
                f"Commit limit must be positive, got {commit_limit}", field="commit_limit"
            )
        if limit <= 0:
            raise InvalidInputError(f"Limit must be positive, got {limit}", field="limit")
        cfg = self.config.signals
        history_available = True
        with self._request_context():
            try:
                pairs = bounded_call(
                    "version_history",
                    lambda: self.history.co_change_pairs(commit_limit),
                    cfg.io_timeout_seconds,
                )
                recent = bounded_call(
                    "version_history",
                    lambda: self.history.recently_modified(cfg.recent_hours_window),
                    cfg.io_timeout_seconds,
                )
            except SignalUnavailableError as e:
                _logger.warning("signal_unavailable", source=e.source, reason=e.reason)
                pairs, recent = {}, set()
                history_available = False

            recorded = 0
            if pairs:
                recorded = self.store.observe_relationships(
                    [(a, b, RelationshipType.CO_CHANGE, strength) for (a, b), strength in pairs.items()]
                )
            strongest = sorted(pairs.items(), key=lambda item: (-item[1], item[0]))[:limit]
            _logger.info("git_patterns_analyzed", commit_limit=commit_limit, recorded=recorded)
        return {
            "commit_limit": commit_limit,
            "history_available": history_available,
            "relationships_recorded": recorded,
            "co_change_patterns": [
                {"files": [a, b], "strength": round(strength, 4)} for (a, b), strength in strongest
            ],
            "recently_modified": sorted(recent)[:10],
        }

    def get_file_relationships(
        self,
        file_path: str,
        relationship_type: str = "all",
        limit: int = 20,
    ) -> dict[str, Any]:
        """Cached relationships of a file, strongest first.

        Raises:
            InvalidInputError: If the relationship type is unknown or the
                path is empty, absolute or outside the project.
        """
        kind: RelationshipType | None = None
        if relationship_type != "all":
            try:
                kind = RelationshipType(relationship_type)
            except ValueError:
                raise InvalidInputError(
                    f"Unknown relationship type: {relationship_type!r}",
                    field="relationship_type",
                ) from None
        path = _relative_path(file_path, "file_path")
        relationships = self.store.get_file_relationships(path, kind, limit)
        return {
            "file_path": path,
            "relationships": [r.to_dict(anchor=path) for r in relationships],
        }

    def get_session(self, session_id: int) -> dict[str, Any]:
        """A recorded session of this project.

        Raises:
            UnknownSessionError: If the session is missing or foreign.
        """
        return self.store.get_session(session_id, self.project_root).to_dict()

    def list_sessions(self, limit: int = 20, task_mode: str | None = None) -> dict[str, Any]:
        """Most recent sessions of this project, newest first."""
        sessions = self.store.list_sessions(self.project_root, limit, _parse_task_mode(task_mode))
        return {"sessions": [s.to_dict() for s in sessions]}

    def get_learning_insights(self, task_mode: str | None = None) -> dict[str, Any]:
        """What the store has learned for this project.

        Raises:
            InvalidInputError: If the task mode is unknown.
        """
        insights = self.store.get_learning_insights(self.project_root, _parse_task_mode(task_mode))
        return insights.to_dict()


def _parse_task_mode(value: str | None) -> TaskMode | None:
    if not value:
        return None
    try:
        return TaskMode(value)
    except ValueError:
        raise InvalidInputError(f"Unknown task mode: {value!r}", field="task_mode") from None


def _relative_path(path: str, field: str) -> str:
    """Project-relative path with ``/`` separators.

    Raises:
        InvalidInputError: If the path is empty, absolute or points outside
            the project.
    """
    if not isinstance(path, str) or not path.strip():
        raise InvalidInputError(f"Empty path in {field}", field=field)
    normalized = posixpath.normpath(path.replace("\\", "/"))
    if normalized.startswith("/") or _DRIVE_PREFIX.match(normalized):
        raise InvalidInputError(
            f"Path must be project-relative, got {path!r}", field=field
        )
    if normalized in (".", "..") or normalized.startswith("../"):
        raise InvalidInputError(
            f"Path must name a file inside the project, got {path!r}", field=field
        )
    return normalized


__all__ = [
    "ContextEngine",
    "bounded_call",
    "build_suggestions",
]
