"""Version-history signals from git.

Runs ``git log`` through subprocess with a timeout. A missing git binary,
a directory that is not a repository or a failing command all produce
empty results rather than errors.
"""

from __future__ import annotations

import subprocess
from collections import Counter
from datetime import timedelta
from itertools import combinations
from pathlib import Path

from smartctx.core.logging import get_logger
from smartctx.utils.time import utc_now

_logger = get_logger("context.history")

_COMMIT_MARKER = "--commit--"


class GitHistoryAnalyzer:
    """Recently modified files and co-change statistics from git history."""

    def __init__(self, repo_path: Path, timeout: float = 30.0) -> None:
        self.repo_path = Path(repo_path)
        self.timeout = timeout
        self._is_repo: bool | None = None

    def _run(self, *args: str) -> str | None:
        """Run a git command; None when git is unavailable or fails."""
        try:
            result = subprocess.run(
                ["git", *args],
                cwd=str(self.repo_path),
                capture_output=True,
                text=True,
                timeout=self.timeout,
            )
        except subprocess.TimeoutExpired:
            _logger.warning("git_command_timed_out", args=list(args))
            return None
        except FileNotFoundError:
            _logger.debug("git_not_installed")
            return None
        except (subprocess.SubprocessError, OSError) as e:
            _logger.warning("git_command_error", args=list(args), error=str(e))
            return None
        if result.returncode != 0:
            _logger.debug("git_command_failed", args=list(args), stderr=result.stderr.strip())
            return None
        return result.stdout

    def is_repository(self) -> bool:
        if self._is_repo is None:
            output = self._run("rev-parse", "--is-inside-work-tree")
            self._is_repo = output is not None and output.strip() == "true"
        return self._is_repo

    def _commits(self, *args: str) -> list[list[str]]:
        """File lists of commits selected by ``git log`` arguments."""
        if not self.is_repository():
            return []
        output = self._run(
            "log", *args, "--name-only", f"--pretty=format:{_COMMIT_MARKER}"
        )
        if not output:
            return []
        commits: list[list[str]] = []
        for block in output.split(_COMMIT_MARKER):
            files = [line.strip() for line in block.splitlines() if line.strip()]
            if files:
                commits.append(files)
        return commits

    def recently_modified(self, hours_window: int) -> set[str]:
        """Files touched by commits within the last ``hours_window`` hours."""
        since = (utc_now() - timedelta(hours=hours_window)).isoformat()
        return {path for files in self._commits(f"--since={since}") for path in files}

    def co_change_frequency(
        self, focal_file: str, commit_lookback: int,
    ) -> dict[str, float]:
        """Fraction of recent commits touching ``focal_file`` that touched each other file.

        Only the last ``commit_lookback`` commits are inspected.
        """
        together: Counter[str] = Counter()
        focal_commits = 0
        for files in self._commits("-n", str(commit_lookback)):
            if focal_file not in files:
                continue
            focal_commits += 1
            together.update(path for path in set(files) if path != focal_file)
        if not focal_commits:
            return {}
        return {path: count / focal_commits for path, count in together.items()}

    def co_change_pairs(
        self, commit_lookback: int, max_commit_files: int = 50,
    ) -> dict[tuple[str, str], float]:
        """Co-change strength of every file pair across recent commits.

        The strength of a pair is the number of commits touching both files
        divided by the commit count of the busier file. Commits touching
        more than ``max_commit_files`` files (mass renames, reformatting)
        are skipped. Pairs are ordered lexicographically.
        """
        touched: Counter[str] = Counter()
        together: Counter[tuple[str, str]] = Counter()
        for files in self._commits("-n", str(commit_lookback)):
            unique = sorted(set(files))
            if len(unique) > max_commit_files:
                continue
            touched.update(unique)
            together.update(combinations(unique, 2))
        return {
            (a, b): count / max(touched[a], touched[b])
            for (a, b), count in together.items()
        }


__all__ = ["GitHistoryAnalyzer"]
