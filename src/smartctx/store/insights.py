"""Learning insights mixin for ContextStore.

Summarizes what the store has learned: sessions and success rates per
task mode, override event counts by type and the learned patterns that
currently pass the confidence gate.
"""

import json
import sqlite3
from collections.abc import Callable
from contextlib import AbstractContextManager
from pathlib import Path

from smartctx.context.models import TaskMode
from smartctx.core.config import OverrideLearningConfig
from smartctx.store.base import WhereBuilder
from smartctx.store.models import LearningInsights, ModeInsight, OverridePattern


class InsightsMixin:
    """Mixin providing aggregate learning statistics."""

    learning: OverrideLearningConfig
    _read_connection: Callable[[], AbstractContextManager[sqlite3.Connection]]
    _row_to_pattern: Callable[[sqlite3.Row], OverridePattern]
    hash_project: Callable[[Path], str]

    def get_learning_insights(
        self,
        project_root: Path | None = None,
        task_mode: TaskMode | None = None,
        limit: int = 10,
    ) -> LearningInsights:
        """Aggregate learning statistics.

        Args:
            project_root: Restrict session statistics to one project.
            task_mode: Restrict session statistics to one task mode.
            limit: Maximum number of active patterns returned.
        """
        wb = WhereBuilder()
        if project_root is not None:
            wb.add("s.project_hash = ?", self.hash_project(project_root))
        if task_mode is not None:
            wb.add("s.task_mode = ?", task_mode.value)
        where_sql, params = wb.build()

        insights = LearningInsights()
        with self._read_connection() as conn:
            modes: dict[str, ModeInsight] = {}
            rows = conn.execute(
                f"SELECT s.task_mode AS task_mode, s.outcome AS outcome "
                f"FROM sessions s WHERE {where_sql}",
                params,
            ).fetchall()
            for row in rows:
                mode = modes.setdefault(row["task_mode"], ModeInsight(row["task_mode"]))
                mode.sessions += 1
                if row["outcome"]:
                    mode.with_outcome += 1
                    if json.loads(row["outcome"]).get("was_successful"):
                        mode.successful += 1
            insights.total_sessions = len(rows)
            insights.modes = sorted(modes.values(), key=lambda m: (-m.sessions, m.task_mode))

            event_rows = conn.execute(
                f"""
                SELECT e.override_type AS override_type, COUNT(*) AS n
                FROM override_events e JOIN sessions s ON s.id = e.session_id
                WHERE {where_sql}
                GROUP BY e.override_type
                """,
                params,
            ).fetchall()
            insights.override_counts = {
                row["override_type"]: int(row["n"]) for row in event_rows
            }

            pattern_rows = conn.execute(
                """
                SELECT * FROM override_patterns
                WHERE confidence > ? AND cumulative_adjustment != 0
                ORDER BY ABS(cumulative_adjustment) DESC, confidence DESC, file_path
                LIMIT ?
                """,
                (self.learning.confidence_gate, limit),
            ).fetchall()
            insights.active_patterns = [self._row_to_pattern(row) for row in pattern_rows]

            insights.relationship_count = int(
                conn.execute("SELECT COUNT(*) FROM file_relationships").fetchone()[0]
            )
        return insights
