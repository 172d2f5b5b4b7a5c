"""Tests for GitHistoryAnalyzer with a mocked git binary."""

import subprocess
from pathlib import Path
from unittest.mock import patch

import pytest

from smartctx.context.history import GitHistoryAnalyzer

LOG_OUTPUT = (
    "--commit--\nsrc/a.js\nsrc/b.js\n\n"
    "--commit--\nsrc/a.js\nsrc/c.js\n\n"
    "--commit--\nsrc/b.js\nREADME.md\n"
)


def completed(stdout: str = "", returncode: int = 0) -> subprocess.CompletedProcess[str]:
    return subprocess.CompletedProcess(args=["git"], returncode=returncode, stdout=stdout, stderr="")


def fake_git(log_output: str = LOG_OUTPUT, inside_work_tree: bool = True):  # noqa: ANN201
    def run(args: list[str], **kwargs: object) -> subprocess.CompletedProcess[str]:
        if args[1] == "rev-parse":
            if inside_work_tree:
                return completed("true\n")
            return completed(returncode=128)
        return completed(log_output)

    return run


@pytest.fixture
def analyzer(tmp_path: Path) -> GitHistoryAnalyzer:
    return GitHistoryAnalyzer(tmp_path, timeout=5)


class TestGitHistoryAnalyzer:
    """Tests for history queries."""

    def test_co_change_frequency(self, analyzer: GitHistoryAnalyzer) -> None:
        with patch("smartctx.context.history.subprocess.run", side_effect=fake_git()):
            frequencies = analyzer.co_change_frequency("src/a.js", 100)
        assert frequencies == {"src/b.js": 0.5, "src/c.js": 0.5}

    def test_co_change_without_focal_commits(self, analyzer: GitHistoryAnalyzer) -> None:
        with patch("smartctx.context.history.subprocess.run", side_effect=fake_git()):
            assert analyzer.co_change_frequency("src/z.js", 100) == {}

    def test_lookback_is_passed_to_git(self, analyzer: GitHistoryAnalyzer) -> None:
        with patch("smartctx.context.history.subprocess.run", side_effect=fake_git()) as run:
            analyzer.co_change_frequency("src/a.js", 25)
        log_args = run.call_args_list[-1].args[0]
        assert log_args[:4] == ["git", "log", "-n", "25"]
        assert run.call_args_list[-1].kwargs["cwd"] == str(analyzer.repo_path)

    def test_co_change_pairs(self, analyzer: GitHistoryAnalyzer) -> None:
        with patch("smartctx.context.history.subprocess.run", side_effect=fake_git()) as run:
            pairs = analyzer.co_change_pairs(100)
        assert pairs == {
            ("src/a.js", "src/b.js"): 0.5,
            ("src/a.js", "src/c.js"): 0.5,
            ("README.md", "src/b.js"): 0.5,
        }
        assert run.call_args_list[-1].args[0][:4] == ["git", "log", "-n", "100"]

    def test_co_change_pairs_skip_large_commits(self, analyzer: GitHistoryAnalyzer) -> None:
        log_output = (
            "--commit--\nsrc/a.js\nsrc/b.js\nsrc/c.js\n\n"
            "--commit--\nsrc/a.js\nsrc/b.js\n"
        )
        with patch(
            "smartctx.context.history.subprocess.run", side_effect=fake_git(log_output)
        ):
            pairs = analyzer.co_change_pairs(100, max_commit_files=2)
        assert pairs == {("src/a.js", "src/b.js"): 1.0}

    def test_recently_modified(self, analyzer: GitHistoryAnalyzer) -> None:
        with patch("smartctx.context.history.subprocess.run", side_effect=fake_git()) as run:
            recent = analyzer.recently_modified(48)
        assert recent == {"src/a.js", "src/b.js", "src/c.js", "README.md"}
        assert run.call_args_list[-1].args[0][2].startswith("--since=")

    def test_not_a_repository(self, analyzer: GitHistoryAnalyzer) -> None:
        with patch(
            "smartctx.context.history.subprocess.run",
            side_effect=fake_git(inside_work_tree=False),
        ) as run:
            assert analyzer.recently_modified(48) == set()
            assert analyzer.co_change_frequency("src/a.js", 100) == {}
            assert analyzer.co_change_pairs(100) == {}
        assert not analyzer.is_repository()
        assert run.call_count == 1

    def test_git_not_installed(self, analyzer: GitHistoryAnalyzer) -> None:
        with patch("smartctx.context.history.subprocess.run", side_effect=FileNotFoundError):
            assert not analyzer.is_repository()
            assert analyzer.recently_modified(48) == set()

    def test_timeout_yields_empty_result(self, analyzer: GitHistoryAnalyzer) -> None:
        analyzer._is_repo = True
        with patch(
            "smartctx.context.history.subprocess.run",
            side_effect=subprocess.TimeoutExpired(cmd="git", timeout=5),
        ):
            assert analyzer.co_change_frequency("src/a.js", 100) == {}

    def test_failed_log_yields_empty_result(self, analyzer: GitHistoryAnalyzer) -> None:
        analyzer._is_repo = True
        with patch(
            "smartctx.context.history.subprocess.run",
            return_value=completed(returncode=1),
        ):
            assert analyzer.recently_modified(48) == set()
