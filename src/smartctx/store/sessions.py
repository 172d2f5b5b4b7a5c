"""Session ledger mixin for ContextStore.

Provides methods for the project-scoped session ledger:
- create_session: Persist a completed request and its selection
- get_session: Fetch a session, rejecting foreign-project ids
- list_sessions: Recent sessions of a project
- update_selection: Replace a selection after a budget expansion
- set_outcome: Record a session outcome exactly once
"""

import json
import sqlite3
from collections.abc import Callable
from contextlib import AbstractContextManager
from datetime import datetime
from pathlib import Path
from typing import Any

from smartctx.context.models import Selection, TaskMode, TaskPattern
from smartctx.core.errors import UnknownSessionError
from smartctx.core.logging import ContextLogger
from smartctx.store.base import WhereBuilder
from smartctx.store.models import Session, SessionOutcome
from smartctx.utils.time import parse_timestamp, utc_now


class SessionMixin:
    """Mixin providing session ledger methods.

    Requires the composed class to provide ``_get_connection()``,
    ``_read_connection()``, ``_with_retry()`` and ``hash_project()``.
    """

    _logger: ContextLogger
    _get_connection: Callable[[], AbstractContextManager[sqlite3.Connection]]
    _read_connection: Callable[[], AbstractContextManager[sqlite3.Connection]]
    _with_retry: Callable[..., Any]
    hash_project: Callable[[Path], str]

    def create_session(
        self,
        project_root: Path,
        pattern: TaskPattern,
        task_description: str,
        focal_file: str | None,
        token_budget: int,
        selection: Selection,
        created_at: datetime | None = None,
    ) -> int:
        """Persist a session and return its id.

        Ids come from an AUTOINCREMENT key, so they are unique and strictly
        increasing even across concurrent writers.
        """
        project_hash = self.hash_project(project_root)
        created = (created_at or utc_now()).isoformat()
        payload = json.dumps(selection.to_dict())

        def _insert() -> int:
            with self._get_connection() as conn:
                cursor = conn.execute(
                    """
                    INSERT INTO sessions (
                        project_hash, task_description, task_mode,
                        pattern_fingerprint, focal_file, token_budget,
                        created_at, selection
                    ) VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                    """,
                    (
                        project_hash,
                        task_description,
                        pattern.task_mode.value,
                        pattern.fingerprint,
                        focal_file,
                        token_budget,
                        created,
                        payload,
                    ),
                )
                return int(cursor.lastrowid or 0)

        session_id: int = self._with_retry("create_session", _insert)
        self._logger.debug(
            "session_created",
            session_id=session_id,
            project_hash=project_hash,
            fingerprint=pattern.fingerprint,
        )
        return session_id

    def get_session(self, session_id: int, project_root: Path) -> Session:
        """Fetch a session of a project.

        Raises:
            UnknownSessionError: If the id does not exist or belongs to
                another project.
        """
        project_hash = self.hash_project(project_root)
        with self._read_connection() as conn:
            row = conn.execute(
                "SELECT * FROM sessions WHERE id = ? AND project_hash = ?",
                (session_id, project_hash),
            ).fetchone()
        if row is None:
            raise UnknownSessionError(session_id)
        return self._row_to_session(row)

    def get_session_fingerprint(self, session_id: int) -> str:
        """Pattern fingerprint of a session, regardless of project.

        Raises:
            UnknownSessionError: If the id does not exist.
        """
        with self._read_connection() as conn:
            row = conn.execute(
                "SELECT pattern_fingerprint FROM sessions WHERE id = ?",
                (session_id,),
            ).fetchone()
        if row is None:
            raise UnknownSessionError(session_id)
        return str(row["pattern_fingerprint"])

    def list_sessions(
        self,
        project_root: Path,
        limit: int = 20,
        task_mode: TaskMode | None = None,
    ) -> list[Session]:
        """Most recent sessions of a project, newest first."""
        wb = WhereBuilder()
        wb.add("project_hash = ?", self.hash_project(project_root))
        if task_mode is not None:
            wb.add("task_mode = ?", task_mode.value)
        where_sql, params = wb.build()
        with self._read_connection() as conn:
            rows = conn.execute(
                f"SELECT * FROM sessions WHERE {where_sql} ORDER BY id DESC LIMIT ?",
                (*params, limit),
            ).fetchall()
        return [self._row_to_session(row) for row in rows]

    def update_selection(
        self,
        session_id: int,
        selection: Selection,
        expected_budget: int,
    ) -> bool:
        """Replace a session's selection and budget.

        The write only applies while the stored budget still equals
        ``expected_budget``, so two concurrent expansions cannot overwrite
        each other.

        Returns:
            True if the selection was replaced, False if the session
            changed in the meantime.
        """
        payload = json.dumps(selection.to_dict())

        def _update() -> bool:
            with self._get_connection() as conn:
                cursor = conn.execute(
                    """
                    UPDATE sessions SET selection = ?, token_budget = ?
                    WHERE id = ? AND token_budget = ?
                    """,
                    (payload, selection.token_budget, session_id, expected_budget),
                )
                return cursor.rowcount > 0

        updated: bool = self._with_retry("update_selection", _update)
        if updated:
            self._logger.debug(
                "session_selection_updated",
                session_id=session_id,
                token_budget=selection.token_budget,
            )
        return updated

    def set_outcome(self, session_id: int, outcome: SessionOutcome) -> bool:
        """Record a session's outcome.

        Returns:
            True if the outcome was stored, False if one was already set.
        """
        payload = json.dumps(outcome.to_dict())

        def _update() -> bool:
            with self._get_connection() as conn:
                cursor = conn.execute(
                    "UPDATE sessions SET outcome = ? WHERE id = ? AND outcome IS NULL",
                    (payload, session_id),
                )
                return cursor.rowcount > 0

        updated: bool = self._with_retry("set_outcome", _update)
        return updated

    @staticmethod
    def _row_to_session(row: sqlite3.Row) -> Session:
        outcome_raw = row["outcome"]
        return Session(
            id=int(row["id"]),
            project_hash=row["project_hash"],
            task_description=row["task_description"],
            task_mode=TaskMode(row["task_mode"]),
            pattern_fingerprint=row["pattern_fingerprint"],
            focal_file=row["focal_file"],
            token_budget=int(row["token_budget"]),
            created_at=parse_timestamp(row["created_at"]) or utc_now(),
            selection=Selection.from_dict(json.loads(row["selection"])),
            outcome=SessionOutcome.from_dict(json.loads(outcome_raw)) if outcome_raw else None,
        )
