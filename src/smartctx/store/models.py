"""Records persisted by the context store.

Sessions, override events, learned override patterns and file
relationships, as read back from SQLite.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any

from smartctx.context.models import OverrideType, Selection, TaskMode


class RelationshipType(str, Enum):
    """How a pair of files was observed to be related."""

    IMPORT = "import"
    """One file declares an import of the other."""

    CO_CHANGE = "co-change"
    """The files changed together in version history."""

    USED_TOGETHER = "used-together"
    """Both files were used in the same successful session."""


@dataclass(frozen=True)
class SessionOutcome:
    """Outcome reported for a session; set at most once."""

    was_successful: bool
    files_actually_used: tuple[str, ...]
    recorded_at: datetime

    def to_dict(self) -> dict[str, Any]:
        return {
            "was_successful": self.was_successful,
            "files_actually_used": list(self.files_actually_used),
            "recorded_at": self.recorded_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> SessionOutcome:
        return cls(
            was_successful=bool(data["was_successful"]),
            files_actually_used=tuple(data.get("files_actually_used", ())),
            recorded_at=datetime.fromisoformat(data["recorded_at"]),
        )


@dataclass(frozen=True)
class Session:
    """One context request and its result.

    Immutable once written, except for ``outcome``.
    """

    id: int
    project_hash: str
    task_description: str
    task_mode: TaskMode
    pattern_fingerprint: str
    focal_file: str | None
    token_budget: int
    created_at: datetime
    selection: Selection
    outcome: SessionOutcome | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "project_hash": self.project_hash,
            "task_description": self.task_description,
            "task_mode": self.task_mode.value,
            "pattern_fingerprint": self.pattern_fingerprint,
            "focal_file": self.focal_file,
            "token_budget": self.token_budget,
            "created_at": self.created_at.isoformat(),
            "selection": self.selection.to_dict(),
            "outcome": self.outcome.to_dict() if self.outcome else None,
        }


@dataclass(frozen=True)
class OverrideEvent:
    """Append-only record of one user or implicit override."""

    id: int
    session_id: int
    file_path: str
    override_type: OverrideType
    pattern_fingerprint: str
    timestamp: datetime


@dataclass
class OverridePattern:
    """Learned adjustment for a (file, task pattern) pair.

    Updated in place as override events arrive; never deleted.
    """

    file_path: str
    pattern_fingerprint: str
    override_count: int = 0
    last_override_type: OverrideType | None = None
    cumulative_adjustment: float = 0.0
    confidence: float = 0.5
    updated_at: datetime | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "file_path": self.file_path,
            "pattern_fingerprint": self.pattern_fingerprint,
            "override_count": self.override_count,
            "last_override_type": (
                self.last_override_type.value if self.last_override_type else None
            ),
            "cumulative_adjustment": round(self.cumulative_adjustment, 4),
            "confidence": round(self.confidence, 4),
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }


@dataclass(frozen=True)
class FileRelationship:
    """Symmetric relationship between two files, stored with file_a < file_b."""

    file_a: str
    file_b: str
    relationship_type: RelationshipType
    strength: float
    observation_count: int
    updated_at: datetime

    def other(self, path: str) -> str:
        """The file on the other side of the relationship."""
        return self.file_b if path == self.file_a else self.file_a

    def to_dict(self, anchor: str | None = None) -> dict[str, Any]:
        data: dict[str, Any] = {
            "file_a": self.file_a,
            "file_b": self.file_b,
            "relationship_type": self.relationship_type.value,
            "strength": round(self.strength, 4),
            "observation_count": self.observation_count,
            "updated_at": self.updated_at.isoformat(),
        }
        if anchor is not None:
            data["related_file"] = self.other(anchor)
        return data


@dataclass
class ModeInsight:
    """Session statistics for one task mode."""

    task_mode: str
    sessions: int = 0
    with_outcome: int = 0
    successful: int = 0

    @property
    def success_rate(self) -> float | None:
        if not self.with_outcome:
            return None
        return self.successful / self.with_outcome


@dataclass
class LearningInsights:
    """Aggregate view of what the store has learned."""

    total_sessions: int = 0
    modes: list[ModeInsight] = field(default_factory=list)
    override_counts: dict[str, int] = field(default_factory=dict)
    active_patterns: list[OverridePattern] = field(default_factory=list)
    relationship_count: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "total_sessions": self.total_sessions,
            "modes": [
                {
                    "task_mode": m.task_mode,
                    "sessions": m.sessions,
                    "with_outcome": m.with_outcome,
                    "successful": m.successful,
                    "success_rate": (
                        round(m.success_rate, 4) if m.success_rate is not None else None
                    ),
                }
                for m in self.modes
            ],
            "override_counts": dict(self.override_counts),
            "active_patterns": [p.to_dict() for p in self.active_patterns],
            "relationship_count": self.relationship_count,
        }


__all__ = [
    "FileRelationship",
    "LearningInsights",
    "ModeInsight",
    "OverrideEvent",
    "OverridePattern",
    "RelationshipType",
    "Session",
    "SessionOutcome",
]
