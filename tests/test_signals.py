"""Tests for relevance signal collection."""

from datetime import timedelta

import pytest

from smartctx.context.models import SearchMatch
from smartctx.context.signals import (
    INDEX_UNAVAILABLE_NOTE,
    NO_FOCAL_NOTE,
    NO_HISTORY_NOTE,
    SignalCollector,
    co_change_signal,
    is_test_file,
    keyword_signal,
    path_tokens,
    recency_signal,
    relation_signal,
    resolve_import,
    strip_extension,
)
from smartctx.context.task_pattern import extract_task_pattern
from smartctx.core.config import SignalConfig
from tests.helpers import FIXED_NOW, descriptor


@pytest.fixture
def config() -> SignalConfig:
    return SignalConfig()


class TestPathHelpers:
    """Tests for path tokenization and import resolution."""

    def test_path_tokens_split_camel_case(self) -> None:
        dirs, names = path_tokens("src/api/authController.js")
        assert dirs == {"src", "api"}
        assert names == {"auth", "controller"}

    def test_strip_extension_drops_index_modules(self) -> None:
        assert strip_extension("src/auth/index.js") == "src/auth"
        assert strip_extension("pkg/core/__init__.py") == "pkg/core"
        assert strip_extension("src/a.test.js") == "src/a.test"

    @pytest.mark.parametrize(
        "path",
        [
            "tests/test_scanner.py",
            "src/auth/login.test.js",
            "src/auth/login.spec.ts",
            "__tests__/login.js",
            "pkg/scanner_test.go",
        ],
    )
    def test_is_test_file(self, path: str) -> None:
        assert is_test_file(path)

    def test_is_not_test_file(self) -> None:
        assert not is_test_file("src/contest/latest.js")

    def test_resolve_relative_js_import(self) -> None:
        resolved = resolve_import("src/api/authController.js", "../services/authService.js")
        assert resolved == "src/services/authService"

    def test_resolve_python_relative_import(self) -> None:
        assert resolve_import("pkg/store/base.py", ".models") == "pkg/store/models"
        assert resolve_import("pkg/store/base.py", "..core.config") == "pkg/core/config"

    def test_resolve_dotted_python_import(self) -> None:
        assert resolve_import("pkg/cli.py", "pkg.store.base") == "pkg/store/base"

    def test_resolve_bare_package(self) -> None:
        assert resolve_import("src/app.js", "express") == "express"


class TestKeywordSignal:
    """Tests for the keyword signal."""

    def test_file_name_match_saturates(self, config: SignalConfig) -> None:
        score, note = keyword_signal("src/auth/login.js", ("authentication", "login"), config)
        assert score == 1.0
        assert note == "Matches task keywords: authentication, login"

    def test_directory_match_is_discounted(self, config: SignalConfig) -> None:
        score, _ = keyword_signal("src/auth/handlers.js", ("authentication",), config)
        assert score == pytest.approx(0.75)

    def test_no_match(self, config: SignalConfig) -> None:
        assert keyword_signal("src/utils/format.js", ("authentication",), config) == (0.0, None)

    def test_content_match_raises_score(self, config: SignalConfig) -> None:
        match = SearchMatch(path="src/utils/format.js", score=0.6, excerpt="")
        score, note = keyword_signal(
            "src/utils/format.js", ("session",), config, content_match=match
        )
        assert score == pytest.approx(0.6)
        assert note == "Content matches task keywords"

    def test_focal_file_boost(self, config: SignalConfig) -> None:
        score, note = keyword_signal("src/utils/format.js", ("session",), config, is_focal=True)
        assert score == pytest.approx(0.25)
        assert note == "Focal file"


class TestRecencySignal:
    """Tests for the recency signal."""

    def test_linear_decay(self, config: SignalConfig) -> None:
        score, note = recency_signal(FIXED_NOW - timedelta(days=7), FIXED_NOW, config)
        assert score == pytest.approx(0.5)
        assert note == "Modified 7 days ago"

    def test_modified_today(self, config: SignalConfig) -> None:
        score, note = recency_signal(FIXED_NOW - timedelta(hours=6), FIXED_NOW, config)
        assert score > 0.9
        assert note == "Modified today"

    def test_past_horizon_is_zero(self, config: SignalConfig) -> None:
        assert recency_signal(FIXED_NOW - timedelta(days=30), FIXED_NOW, config) == (0.0, None)

    def test_recent_commit_is_full(self, config: SignalConfig) -> None:
        score, note = recency_signal(
            FIXED_NOW - timedelta(days=30), FIXED_NOW, config, recently_committed=True
        )
        assert score == 1.0
        assert note == "Committed within the last 48h"


class TestRelationSignal:
    """Tests for the relation signal."""

    def test_no_focal_file(self, config: SignalConfig) -> None:
        assert relation_signal("src/a.js", None, {}, config) == (0.0, NO_FOCAL_NOTE)

    def test_focal_file_itself(self, config: SignalConfig) -> None:
        assert relation_signal("src/a.js", "src/a.js", {}, config) == (1.0, "Focal file")

    def test_same_directory(self, config: SignalConfig) -> None:
        score, note = relation_signal("src/api/b.js", "src/api/a.js", {}, config)
        assert score == pytest.approx(0.4)
        assert note == "Same directory as focal file"

    def test_imported_by_focal_file(self, config: SignalConfig) -> None:
        imports = {"src/api/a.js": ("../services/b",)}
        score, note = relation_signal("src/services/b.js", "src/api/a.js", imports, config)
        assert score == pytest.approx(0.5)
        assert note == "Imported by focal file"

    def test_imports_focal_file(self, config: SignalConfig) -> None:
        imports = {"src/services/b.js": ("../api/a",)}
        score, note = relation_signal("src/services/b.js", "src/api/a.js", imports, config)
        assert score == pytest.approx(0.5)
        assert note == "Imports focal file"

    def test_test_pairing(self, config: SignalConfig) -> None:
        score, note = relation_signal(
            "tests/api/authController.test.js", "src/api/authController.js", {}, config
        )
        assert score == pytest.approx(0.4)
        assert note == "Test pairing with focal file"

    def test_parts_accumulate_and_cap(self, config: SignalConfig) -> None:
        imports = {"src/api/a.js": ("./a.test.js",)}
        score, note = relation_signal("src/api/a.test.js", "src/api/a.js", imports, config)
        assert score == 1.0
        assert note == "Same directory as focal file; imported by focal file; test pairing with focal file"


class TestCoChangeSignal:
    """Tests for the co-change signal."""

    def test_history_unavailable(self) -> None:
        assert co_change_signal("src/a.js", None) == (0.0, NO_HISTORY_NOTE)

    def test_fraction(self) -> None:
        score, note = co_change_signal("src/a.js", {"src/a.js": 0.5})
        assert score == 0.5
        assert note == "Changed with focal file in 50% of recent commits"

    def test_never_changed_together(self) -> None:
        assert co_change_signal("src/a.js", {"src/b.js": 0.5}) == (0.0, None)


class TestSignalCollector:
    """Tests for SignalCollector.collect()."""

    def test_collects_every_file_in_snapshot_order(self) -> None:
        files = [descriptor("src/b.js", 1), descriptor("src/a.js", 2)]
        result = SignalCollector().collect(
            files, extract_task_pattern("update things"), None, FIXED_NOW
        )
        assert list(result) == ["src/b.js", "src/a.js"]

    def test_signals_stay_in_unit_range(self) -> None:
        files = [
            descriptor("src/auth/authSession.js", 0, imports=("./authSessionStore",)),
            descriptor("src/auth/authSessionStore.js", 0),
        ]
        result = SignalCollector().collect(
            files,
            extract_task_pattern("authentication session store"),
            "src/auth/authSession.js",
            FIXED_NOW,
            recently_modified={"src/auth/authSessionStore.js"},
            co_change={"src/auth/authSessionStore.js": 1.0},
            content_matches={
                "src/auth/authSessionStore.js": SearchMatch(
                    path="src/auth/authSessionStore.js", score=1.0
                )
            },
        )
        for signal_set in result.values():
            for name in ("keyword", "relation", "recency", "co_change"):
                assert 0.0 <= signal_set.value(name) <= 1.0

    def test_history_unavailable_notes(self) -> None:
        files = [descriptor("src/a.js", 1)]
        result = SignalCollector().collect(
            files,
            extract_task_pattern("update parser"),
            None,
            FIXED_NOW,
            history_available=False,
            index_available=False,
        )
        notes = result["src/a.js"].notes
        assert notes["co_change"] == NO_HISTORY_NOTE
        assert notes["keyword"] == INDEX_UNAVAILABLE_NOTE
        assert notes["relation"] == NO_FOCAL_NOTE

    def test_no_co_change_without_focal_file(self) -> None:
        files = [descriptor("src/a.js", 1)]
        result = SignalCollector().collect(
            files, extract_task_pattern("update parser"), None, FIXED_NOW
        )
        assert result["src/a.js"].co_change == 0.0
        assert "co_change" not in result["src/a.js"].notes
