"""Context store with modular mixins.

The ContextStore class is composed from mixins, each handling one domain:

- SessionMixin: Project-scoped session ledger
- OverrideMixin: Override events and learned (file, pattern) adjustments
- OutcomeMixin: Outcome reports turned into implicit overrides
- RelationshipMixin: Cached relationships between files
- InsightsMixin: Aggregate learning statistics

The base class (ContextStoreBase) provides SQLite connection management,
schema creation, contention retries and project hashing. It is listed
LAST so mixins can rely on its attributes.

Usage:
    from smartctx.store import ContextStore

    store = ContextStore()  # ~/.smartctx/context.db
    store = ContextStore(db_path=Path("/tmp/ctx.db"))
"""

import threading
from pathlib import Path

from smartctx.core.config import OverrideLearningConfig, StoreConfig
from smartctx.store.base import ContextStoreBase, WhereBuilder
from smartctx.store.insights import InsightsMixin
from smartctx.store.models import (
    FileRelationship,
    LearningInsights,
    ModeInsight,
    OverrideEvent,
    OverridePattern,
    RelationshipType,
    Session,
    SessionOutcome,
)
from smartctx.store.outcomes import OutcomeMixin, OutcomeResult
from smartctx.store.overrides import OverrideMixin, apply_override_event
from smartctx.store.relationships import RelationshipMixin
from smartctx.store.sessions import SessionMixin


class ContextStore(
    SessionMixin,
    OverrideMixin,
    OutcomeMixin,
    RelationshipMixin,
    InsightsMixin,
    ContextStoreBase,
):
    """Persistent store for sessions, override learning and relationships.

    Safe for concurrent use from several threads and processes: writes on
    the same (file, pattern) key are serialized in-process by a per-key
    lock and across processes by ``BEGIN IMMEDIATE`` transactions.
    """


_store: ContextStore | None = None
_store_lock = threading.Lock()


def get_store(
    db_path: Path | None = None,
    config: StoreConfig | None = None,
    learning: OverrideLearningConfig | None = None,
) -> ContextStore:
    """Get or create the process-wide store.

    A different ``db_path`` replaces the cached instance.
    """
    global _store
    with _store_lock:
        wanted = db_path or (config.db_path if config else None)
        if _store is None or (wanted is not None and _store.db_path != wanted):
            _store = ContextStore(db_path=wanted, config=config, learning=learning)
        return _store


def reset_store() -> None:
    """Drop the cached process-wide store."""
    global _store
    with _store_lock:
        _store = None


__all__ = [
    "ContextStore",
    "ContextStoreBase",
    "FileRelationship",
    "LearningInsights",
    "ModeInsight",
    "OutcomeResult",
    "OverrideEvent",
    "OverridePattern",
    "RelationshipType",
    "Session",
    "SessionOutcome",
    "WhereBuilder",
    "apply_override_event",
    "get_store",
    "reset_store",
]
