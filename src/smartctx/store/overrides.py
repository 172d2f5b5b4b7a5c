"""Override learning mixin for ContextStore.

Learns per-(file, task pattern) score adjustments from override events:
- record_override: Append an event and update the learned pattern
- get_adjustment / get_adjustments: Confidence-gated adjustments for scoring
- get_override_pattern: Inspect a learned pattern
- list_override_events: Events of a session

A pattern only moves once the same override type has been seen
``strike_threshold`` times in a row; every applied adjustment is clamped
into the configured bounds.
"""

import sqlite3
from collections.abc import Callable, Iterable
from contextlib import AbstractContextManager
from datetime import datetime
from typing import Any

from smartctx.context.models import OverrideType
from smartctx.core.config import OverrideLearningConfig
from smartctx.core.errors import InvalidInputError
from smartctx.core.logging import ContextLogger
from smartctx.store.models import OverrideEvent, OverridePattern
from smartctx.utils.time import parse_timestamp, utc_now


def parse_override_type(value: str | OverrideType) -> OverrideType:
    """Coerce a raw override type.

    Raises:
        InvalidInputError: If the value is not added, removed or kept.
    """
    try:
        return OverrideType(value)
    except ValueError:
        raise InvalidInputError(
            f"Unknown override type: {value!r} (expected added, removed or kept)",
            field="override_type",
        ) from None


def apply_override_event(
    pattern: OverridePattern | None,
    file_path: str,
    fingerprint: str,
    override_type: OverrideType,
    config: OverrideLearningConfig,
    now: datetime | None = None,
) -> OverridePattern:
    """Next state of a learned pattern after one new override event.

    A new pattern starts at count 1 with no adjustment. An existing pattern
    counts the event and, once the count reaches the strike threshold with
    the same type as last time, applies that type's delta (clamped) and
    gains confidence.
    """
    now = now or utc_now()
    if pattern is None:
        return OverridePattern(
            file_path=file_path,
            pattern_fingerprint=fingerprint,
            override_count=1,
            last_override_type=override_type,
            cumulative_adjustment=0.0,
            confidence=config.initial_confidence,
            updated_at=now,
        )

    count = pattern.override_count + 1
    adjustment = pattern.cumulative_adjustment
    confidence = pattern.confidence
    if count >= config.strike_threshold and override_type == pattern.last_override_type:
        adjustment = config.clamp(adjustment + config.delta_for(override_type.value))
        confidence = min(1.0, confidence + config.confidence_step)

    return OverridePattern(
        file_path=file_path,
        pattern_fingerprint=fingerprint,
        override_count=count,
        last_override_type=override_type,
        cumulative_adjustment=adjustment,
        confidence=confidence,
        updated_at=now,
    )


class OverrideMixin:
    """Mixin providing override learning methods.

    Requires the composed class to provide ``_get_connection()``,
    ``_read_connection()``, ``_with_retry()``, ``_key_lock()``,
    ``get_session_fingerprint()`` and the ``learning`` config.
    """

    _logger: ContextLogger
    learning: OverrideLearningConfig
    _get_connection: Callable[[], AbstractContextManager[sqlite3.Connection]]
    _read_connection: Callable[[], AbstractContextManager[sqlite3.Connection]]
    _with_retry: Callable[..., Any]
    _key_lock: Callable[[tuple[str, str]], Any]
    get_session_fingerprint: Callable[[int], str]

    def record_override(
        self,
        session_id: int,
        file_path: str,
        override_type: str | OverrideType,
    ) -> bool:
        """Record one override and update the learned pattern.

        The event and the pattern update commit in one transaction. A
        repeated (session, file, type) event is ignored.

        Returns:
            True if the event was new, False if it was a duplicate.

        Raises:
            InvalidInputError: If the override type is unknown.
            UnknownSessionError: If the session does not exist.
            StorageContentionError: If the write kept conflicting.
        """
        kind = parse_override_type(override_type)
        fingerprint = self.get_session_fingerprint(session_id)
        key = (file_path, fingerprint)

        with self._key_lock(key):
            recorded: bool = self._with_retry(
                "record_override",
                lambda: self._write_override(session_id, file_path, fingerprint, kind),
            )

        if recorded:
            self._logger.info(
                "override_recorded",
                session_id=session_id,
                file_path=file_path,
                override_type=kind.value,
                fingerprint=fingerprint,
            )
        return recorded

    def record_overrides(
        self,
        session_id: int,
        overrides: Iterable[tuple[str, str | OverrideType]],
    ) -> int:
        """Record several overrides; returns how many were new."""
        return sum(
            1 for path, kind in overrides if self.record_override(session_id, path, kind)
        )

    def _write_override(
        self,
        session_id: int,
        file_path: str,
        fingerprint: str,
        override_type: OverrideType,
    ) -> bool:
        now = utc_now()
        with self._get_connection() as conn:
            cursor = conn.execute(
                """
                INSERT OR IGNORE INTO override_events (
                    session_id, file_path, override_type,
                    pattern_fingerprint, timestamp
                ) VALUES (?, ?, ?, ?, ?)
                """,
                (session_id, file_path, override_type.value, fingerprint, now.isoformat()),
            )
            if cursor.rowcount == 0:
                return False

            row = conn.execute(
                """
                SELECT * FROM override_patterns
                WHERE file_path = ? AND pattern_fingerprint = ?
                """,
                (file_path, fingerprint),
            ).fetchone()
            current = self._row_to_pattern(row) if row else None
            updated = apply_override_event(
                current, file_path, fingerprint, override_type, self.learning, now
            )
            conn.execute(
                """
                INSERT INTO override_patterns (
                    file_path, pattern_fingerprint, override_count,
                    last_override_type, cumulative_adjustment, confidence, updated_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT(file_path, pattern_fingerprint) DO UPDATE SET
                    override_count = excluded.override_count,
                    last_override_type = excluded.last_override_type,
                    cumulative_adjustment = excluded.cumulative_adjustment,
                    confidence = excluded.confidence,
                    updated_at = excluded.updated_at
                """,
                (
                    updated.file_path,
                    updated.pattern_fingerprint,
                    updated.override_count,
                    override_type.value,
                    updated.cumulative_adjustment,
                    updated.confidence,
                    now.isoformat(),
                ),
            )
            return True

    def get_override_pattern(
        self, file_path: str, fingerprint: str
    ) -> OverridePattern | None:
        with self._read_connection() as conn:
            row = conn.execute(
                """
                SELECT * FROM override_patterns
                WHERE file_path = ? AND pattern_fingerprint = ?
                """,
                (file_path, fingerprint),
            ).fetchone()
        return self._row_to_pattern(row) if row else None

    def get_adjustment(self, file_path: str, fingerprint: str) -> float:
        """Learned adjustment for a file under a task pattern.

        Returns 0.0 unless the pattern's confidence is above the gate.
        """
        pattern = self.get_override_pattern(file_path, fingerprint)
        if pattern is None or pattern.confidence <= self.learning.confidence_gate:
            return 0.0
        return pattern.cumulative_adjustment

    def get_adjustments(self, fingerprint: str) -> dict[str, float]:
        """Gated adjustments of every file learned under a task pattern."""
        with self._read_connection() as conn:
            rows = conn.execute(
                """
                SELECT file_path, cumulative_adjustment FROM override_patterns
                WHERE pattern_fingerprint = ? AND confidence > ?
                  AND cumulative_adjustment != 0
                """,
                (fingerprint, self.learning.confidence_gate),
            ).fetchall()
        return {row["file_path"]: float(row["cumulative_adjustment"]) for row in rows}

    def list_override_events(self, session_id: int) -> list[OverrideEvent]:
        with self._read_connection() as conn:
            rows = conn.execute(
                "SELECT * FROM override_events WHERE session_id = ? ORDER BY id",
                (session_id,),
            ).fetchall()
        return [
            OverrideEvent(
                id=int(row["id"]),
                session_id=int(row["session_id"]),
                file_path=row["file_path"],
                override_type=OverrideType(row["override_type"]),
                pattern_fingerprint=row["pattern_fingerprint"],
                timestamp=parse_timestamp(row["timestamp"]) or utc_now(),
            )
            for row in rows
        ]

    @staticmethod
    def _row_to_pattern(row: sqlite3.Row) -> OverridePattern:
        last_type = row["last_override_type"]
        return OverridePattern(
            file_path=row["file_path"],
            pattern_fingerprint=row["pattern_fingerprint"],
            override_count=int(row["override_count"]),
            last_override_type=OverrideType(last_type) if last_type else None,
            cumulative_adjustment=float(row["cumulative_adjustment"]),
            confidence=float(row["confidence"]),
            updated_at=parse_timestamp(row["updated_at"]),
        )
