"""Tests for ContextStore: sessions, override learning, outcomes and relationships."""

import sqlite3
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from unittest.mock import patch

import pytest

from smartctx.context.models import (
    OverrideType,
    SelectedFile,
    Selection,
    TaskMode,
    Tier,
)
from smartctx.context.task_pattern import extract_task_pattern
from smartctx.core.config import OverrideLearningConfig, StoreConfig
from smartctx.core.errors import (
    InvalidInputError,
    StorageContentionError,
    UnknownSessionError,
)
from smartctx.store import (
    ContextStore,
    OverridePattern,
    RelationshipType,
    apply_override_event,
    get_store,
    reset_store,
)
from smartctx.store.base import KEY_LOCK_STRIPES
from smartctx.store.outcomes import implicit_overrides

TASK = "fix authentication error when session expires"


def make_selection(*files: tuple[str, Tier]) -> Selection:
    included = tuple(
        SelectedFile(
            path=path,
            tier=tier,
            final_score=0.8,
            cost=100,
            primary_reason="Matches task keywords",
            reasons=("Matches task keywords",),
        )
        for path, tier in files
    )
    return Selection(
        included=included,
        excluded=(),
        total_cost=100 * len(included),
        token_budget=6000,
    )


def new_session(
    store: ContextStore,
    project_root: Path,
    task: str = TASK,
    selection: Selection | None = None,
) -> int:
    return store.create_session(
        project_root,
        extract_task_pattern(task),
        task,
        "src/api/authController.js",
        6000,
        selection or make_selection(("src/services/authService.js", Tier.ESSENTIAL)),
    )


class TestSessions:
    """Tests for the session ledger."""

    def test_create_and_get(self, store: ContextStore, project_root: Path) -> None:
        session_id = new_session(store, project_root)
        session = store.get_session(session_id, project_root)

        assert session.id == session_id
        assert session.task_description == TASK
        assert session.task_mode is TaskMode.DEBUG
        assert session.pattern_fingerprint == "authentication-error-expires-session"
        assert session.focal_file == "src/api/authController.js"
        assert session.selection.included_paths == ["src/services/authService.js"]
        assert session.outcome is None

    def test_ids_strictly_increase(self, store: ContextStore, project_root: Path) -> None:
        ids = [new_session(store, project_root) for _ in range(3)]
        assert ids == sorted(ids)
        assert len(set(ids)) == 3

    def test_unknown_session(self, store: ContextStore, project_root: Path) -> None:
        with pytest.raises(UnknownSessionError) as exc_info:
            store.get_session(999, project_root)
        assert exc_info.value.session_id == 999

    def test_foreign_project_session_is_unknown(
        self, store: ContextStore, project_root: Path, tmp_path: Path
    ) -> None:
        other = tmp_path / "other"
        other.mkdir()
        session_id = new_session(store, other)
        with pytest.raises(UnknownSessionError):
            store.get_session(session_id, project_root)

    def test_list_sessions_newest_first(self, store: ContextStore, project_root: Path) -> None:
        first = new_session(store, project_root)
        second = new_session(store, project_root, task="add csv export")
        sessions = store.list_sessions(project_root)
        assert [s.id for s in sessions] == [second, first]

    def test_list_sessions_by_mode(self, store: ContextStore, project_root: Path) -> None:
        new_session(store, project_root)
        feature = new_session(store, project_root, task="add csv export")
        sessions = store.list_sessions(project_root, task_mode=TaskMode.FEATURE)
        assert [s.id for s in sessions] == [feature]

    def test_update_selection(self, store: ContextStore, project_root: Path) -> None:
        session_id = new_session(store, project_root)
        expanded = make_selection(
            ("src/services/authService.js", Tier.ESSENTIAL), ("src/b.js", Tier.OPTIONAL)
        )
        expanded = Selection(expanded.included, (), expanded.total_cost, 8000)

        assert store.update_selection(session_id, expanded, expected_budget=6000)
        session = store.get_session(session_id, project_root)
        assert session.token_budget == 8000
        assert session.selection.included_paths == ["src/services/authService.js", "src/b.js"]

    def test_update_selection_rejects_stale_budget(
        self, store: ContextStore, project_root: Path
    ) -> None:
        session_id = new_session(store, project_root)
        stale = Selection((), (), 0, 9000)
        assert not store.update_selection(session_id, stale, expected_budget=4000)
        assert store.get_session(session_id, project_root).token_budget == 6000

    def test_hash_project_is_stable(self, project_root: Path) -> None:
        first = ContextStore.hash_project(project_root)
        assert first == ContextStore.hash_project(project_root / "sub" / "..")
        assert len(first) == 16


class TestApplyOverrideEvent:
    """Tests for the pure pattern update."""

    @pytest.fixture
    def config(self) -> OverrideLearningConfig:
        return OverrideLearningConfig()

    def run_events(
        self, config: OverrideLearningConfig, *kinds: OverrideType
    ) -> OverridePattern:
        pattern = None
        for kind in kinds:
            pattern = apply_override_event(pattern, "a.js", "fp", kind, config)
        assert pattern is not None
        return pattern

    def test_new_pattern(self, config: OverrideLearningConfig) -> None:
        pattern = self.run_events(config, OverrideType.ADDED)
        assert pattern.override_count == 1
        assert pattern.cumulative_adjustment == 0.0
        assert pattern.confidence == 0.5

    def test_no_adjustment_before_third_strike(self, config: OverrideLearningConfig) -> None:
        pattern = self.run_events(config, OverrideType.ADDED, OverrideType.ADDED)
        assert pattern.override_count == 2
        assert pattern.cumulative_adjustment == 0.0

    def test_third_strike_applies_delta(self, config: OverrideLearningConfig) -> None:
        pattern = self.run_events(config, *[OverrideType.ADDED] * 3)
        assert pattern.cumulative_adjustment == pytest.approx(0.3)
        assert pattern.confidence == pytest.approx(0.6)

    def test_mixed_types_do_not_adjust(self, config: OverrideLearningConfig) -> None:
        pattern = self.run_events(
            config, OverrideType.ADDED, OverrideType.ADDED, OverrideType.REMOVED
        )
        assert pattern.cumulative_adjustment == 0.0
        assert pattern.last_override_type is OverrideType.REMOVED

    def test_adjustment_is_clamped(self, config: OverrideLearningConfig) -> None:
        pattern = self.run_events(config, *[OverrideType.ADDED] * 8)
        assert pattern.cumulative_adjustment == pytest.approx(1.0)
        assert pattern.confidence == pytest.approx(1.0)

    def test_removed_lowers_adjustment(self, config: OverrideLearningConfig) -> None:
        pattern = self.run_events(config, *[OverrideType.REMOVED] * 4)
        assert pattern.cumulative_adjustment == pytest.approx(-0.1)

    def test_input_pattern_is_not_mutated(self, config: OverrideLearningConfig) -> None:
        pattern = self.run_events(config, OverrideType.ADDED, OverrideType.ADDED)
        apply_override_event(pattern, "a.js", "fp", OverrideType.ADDED, config)
        assert pattern.override_count == 2


class TestOverrideLearning:
    """Tests for recording overrides in the store."""

    def test_three_strikes_surface_adjustment(
        self, store: ContextStore, project_root: Path
    ) -> None:
        fingerprint = extract_task_pattern(TASK).fingerprint
        for expected in (0.0, 0.0, 0.3):
            session_id = new_session(store, project_root)
            assert store.record_override(session_id, "config/auth.config.js", "added")
            assert store.get_adjustment("config/auth.config.js", fingerprint) == pytest.approx(
                expected
            )
        assert store.get_adjustments(fingerprint) == pytest.approx(
            {"config/auth.config.js": 0.3}
        )

    def test_duplicate_event_is_ignored(self, store: ContextStore, project_root: Path) -> None:
        session_id = new_session(store, project_root)
        assert store.record_override(session_id, "a.js", OverrideType.ADDED)
        assert not store.record_override(session_id, "a.js", OverrideType.ADDED)

        fingerprint = extract_task_pattern(TASK).fingerprint
        pattern = store.get_override_pattern("a.js", fingerprint)
        assert pattern is not None
        assert pattern.override_count == 1
        assert len(store.list_override_events(session_id)) == 1

    def test_gate_hides_unconfident_pattern(self, store: ContextStore, project_root: Path) -> None:
        session_id = new_session(store, project_root)
        store.record_override(session_id, "a.js", "added")
        fingerprint = extract_task_pattern(TASK).fingerprint
        assert store.get_adjustment("a.js", fingerprint) == 0.0
        assert store.get_adjustments(fingerprint) == {}

    def test_patterns_are_per_fingerprint(self, store: ContextStore, project_root: Path) -> None:
        for _ in range(3):
            store.record_override(new_session(store, project_root), "a.js", "added")
        other = extract_task_pattern("add csv export").fingerprint
        assert store.get_adjustment("a.js", other) == 0.0

    def test_unknown_override_type(self, store: ContextStore, project_root: Path) -> None:
        session_id = new_session(store, project_root)
        with pytest.raises(InvalidInputError) as exc_info:
            store.record_override(session_id, "a.js", "ignored")
        assert exc_info.value.field == "override_type"

    def test_unknown_session(self, store: ContextStore) -> None:
        with pytest.raises(UnknownSessionError):
            store.record_override(42, "a.js", "added")

    def test_record_overrides_counts_new_events(
        self, store: ContextStore, project_root: Path
    ) -> None:
        session_id = new_session(store, project_root)
        count = store.record_overrides(
            session_id, [("a.js", "added"), ("b.js", "removed"), ("a.js", "added")]
        )
        assert count == 2


class TestOutcomes:
    """Tests for outcome recording."""

    def test_implicit_overrides_for_success(
        self, store: ContextStore, project_root: Path
    ) -> None:
        selection = make_selection(
            ("src/a.js", Tier.ESSENTIAL),
            ("src/b.js", Tier.RECOMMENDED),
            ("src/c.js", Tier.OPTIONAL),
        )
        session_id = new_session(store, project_root, selection=selection)
        session = store.get_session(session_id, project_root)

        added, removed = implicit_overrides(session, True, ["src/a.js", "src/d.js"])
        assert added == ["src/d.js"]
        assert removed == ["src/b.js"]

    def test_failed_session_ignores_non_use(
        self, store: ContextStore, project_root: Path
    ) -> None:
        session_id = new_session(store, project_root)
        session = store.get_session(session_id, project_root)
        added, removed = implicit_overrides(session, False, ["src/x.js"])
        assert added == ["src/x.js"]
        assert removed == []

    def test_record_outcome(self, store: ContextStore, project_root: Path) -> None:
        session_id = new_session(store, project_root)
        result = store.record_outcome(
            session_id, project_root, True, ["src/services/authService.js", "src/x.js"]
        )

        assert result.to_dict() == {
            "session_id": session_id,
            "acknowledged": True,
            "already_recorded": False,
            "implicit_overrides": {"added": ["src/x.js"], "removed": []},
        }
        outcome = store.get_session(session_id, project_root).outcome
        assert outcome is not None
        assert outcome.was_successful
        assert [e.override_type for e in store.list_override_events(session_id)] == [
            OverrideType.ADDED
        ]

    def test_outcome_is_recorded_once(self, store: ContextStore, project_root: Path) -> None:
        session_id = new_session(store, project_root)
        store.record_outcome(session_id, project_root, False, [])
        second = store.record_outcome(session_id, project_root, True, ["src/x.js"])

        assert second.already_recorded
        outcome = store.get_session(session_id, project_root).outcome
        assert outcome is not None
        assert not outcome.was_successful
        assert store.list_override_events(session_id) == []

    def test_success_strengthens_used_together(
        self, store: ContextStore, project_root: Path
    ) -> None:
        session_id = new_session(store, project_root)
        store.record_outcome(session_id, project_root, True, ["src/b.js", "src/a.js"])

        relationships = store.get_file_relationships(
            "src/a.js", RelationshipType.USED_TOGETHER
        )
        assert len(relationships) == 1
        assert relationships[0].other("src/a.js") == "src/b.js"
        assert relationships[0].strength == pytest.approx(0.5)

    def test_contention_mid_outcome_keeps_report_retryable(
        self, db_path: Path, project_root: Path
    ) -> None:
        store = ContextStore(
            db_path=db_path, config=StoreConfig(max_retries=2, retry_backoff_seconds=0)
        )
        session_id = new_session(store, project_root)
        write_override = store._write_override
        writes = []

        def locked_after_first(*args: object) -> bool:
            writes.append(args)
            if len(writes) > 1:
                raise sqlite3.OperationalError("database is locked")
            return write_override(*args)

        with patch.object(store, "_write_override", side_effect=locked_after_first):
            with pytest.raises(StorageContentionError):
                store.record_outcome(session_id, project_root, True, ["x.js", "y.js"])

        assert store.get_session(session_id, project_root).outcome is None
        assert store.list_override_events(session_id) == []

        retried = store.record_outcome(session_id, project_root, True, ["x.js", "y.js"])
        assert not retried.already_recorded
        events = {(e.file_path, e.override_type) for e in store.list_override_events(session_id)}
        assert events == {
            ("x.js", OverrideType.ADDED),
            ("y.js", OverrideType.ADDED),
            ("src/services/authService.js", OverrideType.REMOVED),
        }
        assert store.record_outcome(session_id, project_root, True, []).already_recorded

    def test_used_together_contention_does_not_fail_outcome(
        self, store: ContextStore, project_root: Path
    ) -> None:
        session_id = new_session(store, project_root)
        with patch.object(
            store,
            "strengthen_used_together",
            side_effect=StorageContentionError("strengthen_used_together", 4),
        ):
            result = store.record_outcome(session_id, project_root, True, ["a.js", "b.js"])

        assert not result.already_recorded
        assert store.get_session(session_id, project_root).outcome is not None
        assert len(store.list_override_events(session_id)) == 3


class TestRelationships:
    """Tests for the relationship cache."""

    def test_pairs_are_stored_once(self, store: ContextStore) -> None:
        store.observe_relationships(
            [
                ("src/b.js", "src/a.js", RelationshipType.IMPORT, 1.0),
                ("src/a.js", "src/b.js", RelationshipType.IMPORT, 1.0),
            ]
        )
        relationships = store.get_file_relationships("src/a.js")
        assert len(relationships) == 1
        assert relationships[0].file_a == "src/a.js"
        assert relationships[0].observation_count == 2

    def test_self_pairs_are_skipped(self, store: ContextStore) -> None:
        assert store.observe_relationships([("a.js", "a.js", RelationshipType.IMPORT, 1.0)]) == 0

    def test_latest_strength_wins(self, store: ContextStore) -> None:
        store.observe_relationships([("a.js", "b.js", RelationshipType.CO_CHANGE, 0.2)])
        store.observe_relationships([("a.js", "b.js", RelationshipType.CO_CHANGE, 0.6)])
        (relationship,) = store.get_file_relationships("b.js")
        assert relationship.strength == pytest.approx(0.6)

    def test_used_together_strength_grows_and_caps(self, store: ContextStore) -> None:
        for _ in range(8):
            store.strengthen_used_together(["a.js", "b.js"])
        (relationship,) = store.get_file_relationships("a.js")
        assert relationship.strength == pytest.approx(1.0)
        assert relationship.observation_count == 8

    def test_filter_by_type_and_order(self, store: ContextStore) -> None:
        store.observe_relationships(
            [
                ("a.js", "b.js", RelationshipType.CO_CHANGE, 0.3),
                ("a.js", "c.js", RelationshipType.IMPORT, 1.0),
                ("a.js", "d.js", RelationshipType.CO_CHANGE, 0.7),
            ]
        )
        all_related = [r.other("a.js") for r in store.get_file_relationships("a.js")]
        assert all_related == ["c.js", "d.js", "b.js"]

        co_change = store.get_file_relationships("a.js", RelationshipType.CO_CHANGE, limit=1)
        assert [r.other("a.js") for r in co_change] == ["d.js"]

    def test_to_dict_with_anchor(self, store: ContextStore) -> None:
        store.observe_relationships([("a.js", "b.js", RelationshipType.IMPORT, 1.0)])
        (relationship,) = store.get_file_relationships("b.js")
        data = relationship.to_dict(anchor="b.js")
        assert data["related_file"] == "a.js"
        assert data["relationship_type"] == "import"


class TestInsights:
    """Tests for learning insights."""

    def test_empty_store(self, store: ContextStore) -> None:
        insights = store.get_learning_insights()
        assert insights.total_sessions == 0
        assert insights.active_patterns == []
        assert insights.override_counts == {}

    def test_aggregates(self, store: ContextStore, project_root: Path) -> None:
        for _ in range(3):
            session_id = new_session(store, project_root)
            store.record_override(session_id, "config/auth.config.js", "added")
        store.record_outcome(session_id, project_root, True, ["src/services/authService.js"])
        new_session(store, project_root, task="add csv export")

        insights = store.get_learning_insights(project_root)
        assert insights.total_sessions == 4
        debug = next(m for m in insights.modes if m.task_mode == "debug")
        assert (debug.sessions, debug.with_outcome, debug.success_rate) == (3, 1, 1.0)
        assert insights.override_counts == {"added": 3}
        assert [p.file_path for p in insights.active_patterns] == ["config/auth.config.js"]

    def test_filter_by_mode(self, store: ContextStore, project_root: Path) -> None:
        new_session(store, project_root)
        new_session(store, project_root, task="add csv export")
        insights = store.get_learning_insights(project_root, task_mode=TaskMode.FEATURE)
        assert insights.total_sessions == 1
        assert [m.task_mode for m in insights.modes] == ["feature"]


class TestContention:
    """Tests for bounded retries of contended writes."""

    def test_retries_then_succeeds(self, db_path: Path) -> None:
        store = ContextStore(db_path=db_path, config=StoreConfig(retry_backoff_seconds=0))
        calls = []

        def flaky() -> str:
            calls.append(1)
            if len(calls) < 3:
                raise sqlite3.OperationalError("database is locked")
            return "ok"

        assert store._with_retry("test", flaky) == "ok"
        assert len(calls) == 3

    def test_gives_up_with_contention_error(self, db_path: Path) -> None:
        store = ContextStore(
            db_path=db_path, config=StoreConfig(max_retries=2, retry_backoff_seconds=0)
        )

        def locked() -> None:
            raise sqlite3.OperationalError("database is locked")

        with pytest.raises(StorageContentionError) as exc_info:
            store._with_retry("record_override", locked)
        assert exc_info.value.attempts == 3

    def test_other_operational_errors_propagate(self, db_path: Path) -> None:
        store = ContextStore(db_path=db_path)

        def broken() -> None:
            raise sqlite3.OperationalError("no such table: nope")

        with pytest.raises(sqlite3.OperationalError):
            store._with_retry("test", broken)

    def test_sleep_uses_exponential_backoff(self, db_path: Path) -> None:
        store = ContextStore(
            db_path=db_path, config=StoreConfig(max_retries=2, retry_backoff_seconds=0.01)
        )

        def locked() -> None:
            raise sqlite3.OperationalError("database is busy")

        with patch("smartctx.store.base.time.sleep") as sleep:
            with pytest.raises(StorageContentionError):
                store._with_retry("test", locked)
        assert [call.args[0] for call in sleep.call_args_list] == pytest.approx([0.01, 0.02])


class TestConcurrentOverrides:
    """Tests for concurrent writers of one (file, pattern) key."""

    def test_no_lost_updates(self, store: ContextStore, project_root: Path) -> None:
        sessions = [new_session(store, project_root) for _ in range(40)]

        with ThreadPoolExecutor(max_workers=8) as pool:
            results = list(
                pool.map(
                    lambda sid: store.record_override(
                        sid, "config/auth.config.js", OverrideType.ADDED
                    ),
                    sessions,
                )
            )

        assert all(results)
        fingerprint = extract_task_pattern(TASK).fingerprint
        pattern = store.get_override_pattern("config/auth.config.js", fingerprint)
        assert pattern is not None
        assert pattern.override_count == 40
        assert pattern.cumulative_adjustment == pytest.approx(1.0)
        assert pattern.confidence == pytest.approx(1.0)
        assert len(store.list_override_events(sessions[-1])) == 1

    def test_key_locks_are_bounded(self, store: ContextStore) -> None:
        lock = store._key_lock(("a.js", "debug:auth"))
        assert store._key_lock(("a.js", "debug:auth")) is lock
        for i in range(KEY_LOCK_STRIPES * 4):
            store._key_lock((f"file{i}.js", "debug:auth"))
        assert len(store._key_locks) == KEY_LOCK_STRIPES


class TestBatchConnection:
    """Tests for shared-transaction batches."""

    def test_batch_commits_together(self, store: ContextStore, project_root: Path) -> None:
        with store.batch_connection():
            first = new_session(store, project_root)
            second = new_session(store, project_root)
        assert [s.id for s in store.list_sessions(project_root)] == [second, first]

    def test_batch_rolls_back_on_error(self, store: ContextStore, project_root: Path) -> None:
        with pytest.raises(RuntimeError):
            with store.batch_connection():
                new_session(store, project_root)
                raise RuntimeError("abort")
        assert store.list_sessions(project_root) == []


class TestGetStore:
    def test_cached_per_path(self, tmp_path: Path) -> None:
        first = get_store(tmp_path / "a.db")
        assert get_store(tmp_path / "a.db") is first
        assert get_store(tmp_path / "b.db") is not first
        reset_store()
