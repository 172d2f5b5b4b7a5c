"""Records flowing through the relevance pipeline.

Every stage produces new frozen records rather than mutating its input:
the collector emits SignalSets, the scorer turns them into ScoredFiles and
the selector assembles a Selection. Only the Selection is persisted (as
JSON inside the session row).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any


class TaskMode(str, Enum):
    """Coarse intent of a task, inferred from its description."""

    DEBUG = "debug"
    """Fixing a defect: errors, crashes, failing behaviour."""

    FEATURE = "feature"
    """Adding new behaviour."""

    REFACTOR = "refactor"
    """Restructuring without changing behaviour."""

    TEST = "test"
    """Writing or repairing tests."""

    GENERAL = "general"
    """No recognised intent keywords."""


class Tier(str, Enum):
    """Relevance tier of a scored file."""

    ESSENTIAL = "essential"
    """Always included, even past the budget."""

    RECOMMENDED = "recommended"
    """Included while the budget allows, before optional files."""

    OPTIONAL = "optional"
    """Included only with budget to spare."""

    EXCLUDED = "excluded"
    """Never included."""

    @property
    def rank(self) -> int:
        return list(Tier).index(self)


class OverrideType(str, Enum):
    """Kind of correction a user applied to a selection."""

    ADDED = "added"
    """File was missing and the user added it."""

    REMOVED = "removed"
    """File was selected and the user removed it."""

    KEPT = "kept"
    """File was selected and the user confirmed it."""


@dataclass(frozen=True)
class FileDescriptor:
    """A file of the codebase snapshot, as reported by the scanner.

    Attributes:
        path: Project-relative path using ``/`` separators.
        size: Size in bytes, used to estimate the file's cost.
        last_modified: Modification time (timezone-aware).
        imports: Raw import specifiers declared by the file.
    """

    path: str
    size: int
    last_modified: datetime
    imports: tuple[str, ...] = ()


@dataclass(frozen=True)
class ScanError:
    """A file the scanner could not read."""

    path: str
    message: str


@dataclass(frozen=True)
class ScanResult:
    """Snapshot of a codebase: readable files plus per-file scan errors."""

    files: tuple[FileDescriptor, ...]
    errors: tuple[ScanError, ...] = ()


@dataclass(frozen=True)
class SearchMatch:
    """A content match returned by a text or semantic index."""

    path: str
    score: float
    excerpt: str = ""


@dataclass(frozen=True)
class TaskPattern:
    """Mode, fingerprint and keywords extracted from a task description."""

    task_mode: TaskMode
    fingerprint: str
    keywords: tuple[str, ...]


@dataclass(frozen=True)
class SignalSet:
    """The four relevance signals of one file, each in [0, 1].

    ``notes`` maps a signal name to its human-readable reason: the reason it
    contributed, or the reason it is unavailable.
    """

    keyword: float = 0.0
    recency: float = 0.0
    relation: float = 0.0
    co_change: float = 0.0
    notes: dict[str, str] = field(default_factory=dict)

    def value(self, signal: str) -> float:
        return float(getattr(self, signal))

    def is_empty(self) -> bool:
        return not (self.keyword or self.recency or self.relation or self.co_change)


@dataclass(frozen=True)
class ScoredFile:
    """A candidate file after scoring. Never persisted as-is."""

    path: str
    cost: int
    signals: SignalSet
    base_score: float
    override_adjustment: float
    final_score: float
    tier: Tier
    reasons: tuple[str, ...]

    @property
    def primary_reason(self) -> str:
        return self.reasons[0] if self.reasons else ""

    @property
    def depth(self) -> int:
        return self.path.count("/")


@dataclass(frozen=True)
class SelectedFile:
    """A file included in a selection."""

    path: str
    tier: Tier
    final_score: float
    cost: int
    primary_reason: str
    reasons: tuple[str, ...]

    def to_dict(self) -> dict[str, Any]:
        return {
            "path": self.path,
            "tier": self.tier.value,
            "final_score": round(self.final_score, 4),
            "cost": self.cost,
            "primary_reason": self.primary_reason,
            "reasons": list(self.reasons),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> SelectedFile:
        return cls(
            path=data["path"],
            tier=Tier(data["tier"]),
            final_score=float(data["final_score"]),
            cost=int(data["cost"]),
            primary_reason=data.get("primary_reason", ""),
            reasons=tuple(data.get("reasons", ())),
        )


@dataclass(frozen=True)
class ExcludedFile:
    """A file left out of a selection, with the reason it was left out."""

    path: str
    tier: Tier
    final_score: float
    reason: str
    cost: int = 0
    primary_reason: str = ""
    reasons: tuple[str, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return {
            "path": self.path,
            "tier": self.tier.value,
            "final_score": round(self.final_score, 4),
            "reason": self.reason,
            "cost": self.cost,
            "primary_reason": self.primary_reason,
            "reasons": list(self.reasons),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ExcludedFile:
        return cls(
            path=data["path"],
            tier=Tier(data["tier"]),
            final_score=float(data["final_score"]),
            reason=data["reason"],
            cost=int(data.get("cost", 0)),
            primary_reason=data.get("primary_reason", ""),
            reasons=tuple(data.get("reasons", ())),
        )


@dataclass(frozen=True)
class Selection:
    """Ordered, budget-constrained result of the selector."""

    included: tuple[SelectedFile, ...]
    excluded: tuple[ExcludedFile, ...]
    total_cost: int
    token_budget: int

    def tier_of(self, path: str) -> Tier | None:
        """Tier of an included file, or None when it was not included."""
        for selected in self.included:
            if selected.path == path:
                return selected.tier
        return None

    @property
    def included_paths(self) -> list[str]:
        return [f.path for f in self.included]

    def to_dict(self) -> dict[str, Any]:
        return {
            "included": [f.to_dict() for f in self.included],
            "excluded": [f.to_dict() for f in self.excluded],
            "total_cost": self.total_cost,
            "token_budget": self.token_budget,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Selection:
        return cls(
            included=tuple(SelectedFile.from_dict(f) for f in data.get("included", [])),
            excluded=tuple(ExcludedFile.from_dict(f) for f in data.get("excluded", [])),
            total_cost=int(data.get("total_cost", 0)),
            token_budget=int(data.get("token_budget", 0)),
        )


@dataclass(frozen=True)
class ContextResponse:
    """Response of ``get_optimal_context``."""

    session_id: int
    task_mode: TaskMode
    pattern_fingerprint: str
    selection: Selection
    suggestions: tuple[str, ...] = ()
    scan_errors: tuple[ScanError, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return {
            "session_id": self.session_id,
            "task_mode": self.task_mode.value,
            "pattern_fingerprint": self.pattern_fingerprint,
            **self.selection.to_dict(),
            "suggestions": list(self.suggestions),
            "scan_errors": [
                {"path": e.path, "message": e.message} for e in self.scan_errors
            ],
        }


__all__ = [
    "ContextResponse",
    "ExcludedFile",
    "FileDescriptor",
    "OverrideType",
    "ScanError",
    "ScanResult",
    "ScoredFile",
    "SearchMatch",
    "SelectedFile",
    "Selection",
    "SignalSet",
    "TaskMode",
    "TaskPattern",
    "Tier",
]
