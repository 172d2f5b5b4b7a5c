"""Session outcome mixin for ContextStore.

Turns an outcome report into implicit override events:
- files used but not selected count as "added"
- for successful sessions, essential and recommended files selected but
  not used count as "removed"; a failed session's non-use is ignored
The outcome and its implicit events commit together. Successful sessions
also strengthen "used-together" relationships among the files actually
used.
"""

import sqlite3
from collections.abc import Callable, Iterable, Sequence
from contextlib import AbstractContextManager
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from smartctx.context.models import OverrideType, Tier
from smartctx.core.errors import StorageContentionError
from smartctx.core.logging import ContextLogger
from smartctx.store.models import Session, SessionOutcome
from smartctx.utils.time import utc_now


@dataclass
class OutcomeResult:
    """Acknowledgement of an outcome report."""

    session_id: int
    already_recorded: bool
    implicit_added: list[str] = field(default_factory=list)
    implicit_removed: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "session_id": self.session_id,
            "acknowledged": True,
            "already_recorded": self.already_recorded,
            "implicit_overrides": {
                "added": list(self.implicit_added),
                "removed": list(self.implicit_removed),
            },
        }


def implicit_overrides(
    session: Session,
    was_successful: bool,
    files_actually_used: Sequence[str],
) -> tuple[list[str], list[str]]:
    """Files implicitly added and removed by an outcome report."""
    selected = {f.path: f.tier for f in session.selection.included}
    used = list(dict.fromkeys(files_actually_used))
    added = [path for path in used if path not in selected]
    removed: list[str] = []
    if was_successful:
        used_set = set(used)
        removed = [
            f.path
            for f in session.selection.included
            if f.tier in (Tier.ESSENTIAL, Tier.RECOMMENDED) and f.path not in used_set
        ]
    return added, removed


class OutcomeMixin:
    """Mixin recording session outcomes.

    Requires ``get_session()``, ``set_outcome()``, ``batch_connection()``,
    ``_with_retry()``, ``_write_override()`` and ``strengthen_used_together()``
    from the composed class.
    """

    _logger: ContextLogger
    get_session: Callable[[int, Path], Session]
    set_outcome: Callable[[int, SessionOutcome], bool]
    batch_connection: Callable[[], AbstractContextManager[sqlite3.Connection]]
    _with_retry: Callable[..., Any]
    _write_override: Callable[[int, str, str, OverrideType], bool]
    strengthen_used_together: Callable[[Iterable[str]], int]

    def record_outcome(
        self,
        session_id: int,
        project_root: Path,
        was_successful: bool,
        files_actually_used: Sequence[str],
    ) -> OutcomeResult:
        """Record a session outcome once and learn from it.

        The outcome and its implicit override events commit in a single
        transaction, so a failed write leaves the session without an
        outcome and the report can be retried in full. A repeated report
        is acknowledged with ``already_recorded=True`` and changes nothing.

        Strengthening "used-together" relationships runs after the commit
        and is skipped with a warning under storage contention.

        Raises:
            UnknownSessionError: If the session is missing or foreign.
            StorageContentionError: If the outcome write kept conflicting.
        """
        session = self.get_session(session_id, project_root)
        if session.outcome is not None:
            self._logger.info("outcome_already_recorded", session_id=session_id)
            return OutcomeResult(session_id=session_id, already_recorded=True)

        outcome = SessionOutcome(
            was_successful=was_successful,
            files_actually_used=tuple(dict.fromkeys(files_actually_used)),
            recorded_at=utc_now(),
        )
        added, removed = implicit_overrides(session, was_successful, files_actually_used)
        events = [(path, OverrideType.ADDED) for path in added]
        events += [(path, OverrideType.REMOVED) for path in removed]

        def _write() -> bool:
            with self.batch_connection():
                if not self.set_outcome(session_id, outcome):
                    return False
                for path, kind in events:
                    self._write_override(session_id, path, session.pattern_fingerprint, kind)
                return True

        stored: bool = self._with_retry("record_outcome", _write)
        if not stored:
            self._logger.info("outcome_already_recorded", session_id=session_id)
            return OutcomeResult(session_id=session_id, already_recorded=True)

        if was_successful and len(outcome.files_actually_used) > 1:
            try:
                self.strengthen_used_together(outcome.files_actually_used)
            except StorageContentionError as e:
                self._logger.warning(
                    "used_together_skipped",
                    session_id=session_id,
                    error=str(e),
                )

        self._logger.info(
            "outcome_recorded",
            session_id=session_id,
            was_successful=was_successful,
            implicit_added=len(added),
            implicit_removed=len(removed),
        )
        return OutcomeResult(
            session_id=session_id,
            already_recorded=False,
            implicit_added=added,
            implicit_removed=removed,
        )
