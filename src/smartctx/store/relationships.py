"""File relationship mixin for ContextStore.

Caches observed relationships between pairs of files: import edges and
co-change fractions seen while scoring, plus "used-together" pairs from
successful sessions. Pairs are stored once, ordered lexically.
"""

import sqlite3
from collections.abc import Callable, Iterable
from contextlib import AbstractContextManager
from itertools import combinations
from typing import Any

from smartctx.core.config import OverrideLearningConfig
from smartctx.core.logging import ContextLogger
from smartctx.store.base import WhereBuilder
from smartctx.store.models import FileRelationship, RelationshipType
from smartctx.utils.time import parse_timestamp, utc_now


def ordered_pair(a: str, b: str) -> tuple[str, str]:
    return (a, b) if a < b else (b, a)


class RelationshipMixin:
    """Mixin providing file relationship methods.

    Requires the composed class to provide ``_get_connection()``,
    ``_read_connection()``, ``_with_retry()`` and the ``learning`` config.
    """

    _logger: ContextLogger
    learning: OverrideLearningConfig
    _get_connection: Callable[[], AbstractContextManager[sqlite3.Connection]]
    _read_connection: Callable[[], AbstractContextManager[sqlite3.Connection]]
    _with_retry: Callable[..., Any]

    def observe_relationships(
        self,
        observations: Iterable[tuple[str, str, RelationshipType, float]],
    ) -> int:
        """Upsert observed (file_a, file_b, type, strength) relationships.

        The latest observed strength replaces the stored one and the
        observation count grows by one. Self-pairs are skipped.
        """
        rows = []
        now = utc_now().isoformat()
        for a, b, kind, strength in observations:
            if a == b:
                continue
            first, second = ordered_pair(a, b)
            rows.append((first, second, kind.value, max(0.0, min(1.0, strength)), now))
        if not rows:
            return 0

        def _upsert() -> int:
            with self._get_connection() as conn:
                conn.executemany(
                    """
                    INSERT INTO file_relationships (
                        file_a, file_b, relationship_type, strength,
                        observation_count, updated_at
                    ) VALUES (?, ?, ?, ?, 1, ?)
                    ON CONFLICT(file_a, file_b, relationship_type) DO UPDATE SET
                        strength = excluded.strength,
                        observation_count = observation_count + 1,
                        updated_at = excluded.updated_at
                    """,
                    rows,
                )
            return len(rows)

        count: int = self._with_retry("observe_relationships", _upsert)
        return count

    def strengthen_used_together(self, paths: Iterable[str]) -> int:
        """Strengthen the "used-together" relationship of every pair of paths.

        New pairs start at the initial strength; existing pairs gain
        ``relationship_step``, capped at 1.0.
        """
        unique = sorted(set(paths))
        pairs = list(combinations(unique, 2))
        if not pairs:
            return 0
        now = utc_now().isoformat()
        step = self.learning.relationship_step
        initial = self.learning.initial_relationship_strength

        def _upsert() -> int:
            with self._get_connection() as conn:
                conn.executemany(
                    """
                    INSERT INTO file_relationships (
                        file_a, file_b, relationship_type, strength,
                        observation_count, updated_at
                    ) VALUES (?, ?, ?, ?, 1, ?)
                    ON CONFLICT(file_a, file_b, relationship_type) DO UPDATE SET
                        strength = MIN(1.0, strength + ?),
                        observation_count = observation_count + 1,
                        updated_at = excluded.updated_at
                    """,
                    [
                        (a, b, RelationshipType.USED_TOGETHER.value, initial, now, step)
                        for a, b in pairs
                    ],
                )
            return len(pairs)

        count: int = self._with_retry("strengthen_used_together", _upsert)
        self._logger.debug("relationships_strengthened", pairs=count)
        return count

    def get_file_relationships(
        self,
        file_path: str,
        relationship_type: RelationshipType | None = None,
        limit: int = 20,
    ) -> list[FileRelationship]:
        """Relationships involving a file, strongest first."""
        wb = WhereBuilder()
        wb.add("(file_a = ? OR file_b = ?)", file_path, file_path)
        if relationship_type is not None:
            wb.add("relationship_type = ?", relationship_type.value)
        where_sql, params = wb.build()
        with self._read_connection() as conn:
            rows = conn.execute(
                f"""
                SELECT * FROM file_relationships WHERE {where_sql}
                ORDER BY strength DESC, observation_count DESC, file_a, file_b
                LIMIT ?
                """,
                (*params, limit),
            ).fetchall()
        return [
            FileRelationship(
                file_a=row["file_a"],
                file_b=row["file_b"],
                relationship_type=RelationshipType(row["relationship_type"]),
                strength=float(row["strength"]),
                observation_count=int(row["observation_count"]),
                updated_at=parse_timestamp(row["updated_at"]) or utc_now(),
            )
            for row in rows
        ]
