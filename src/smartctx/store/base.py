"""Base class for ContextStore with connection and schema management.

Handles SQLite connection management (WAL mode, busy timeout), schema
creation with versioning, retrying of contended writes and project
hashing. Mixins inherit from this base to add sessions, overrides,
relationships and insights.
"""

import contextvars
import hashlib
import sqlite3
import threading
import time
from collections.abc import Callable, Generator
from contextlib import contextmanager
from pathlib import Path
from typing import TypeVar

from smartctx.core.config import OverrideLearningConfig, StoreConfig
from smartctx.core.errors import StorageContentionError
from smartctx.core.logging import get_logger

_logger = get_logger("store")

T = TypeVar("T")

# Matches sqlite3.execute() bind parameter types
SQLParam = str | int | float | bytes | None

# Striped in-process write locks; bounded regardless of key count
KEY_LOCK_STRIPES = 64


class WhereBuilder:
    """Accumulates SQL WHERE clauses and their bound parameters.

    Usage::

        wb = WhereBuilder()
        wb.add("task_mode = ?", mode)
        where_sql, params = wb.build()
        conn.execute(f"SELECT * FROM sessions WHERE {where_sql}", params)
    """

    __slots__ = ("_clauses", "_params")

    def __init__(self) -> None:
        self._clauses: list[str] = []
        self._params: list[SQLParam] = []

    def add(self, clause: str, *params: SQLParam) -> None:
        self._clauses.append(clause)
        self._params.extend(params)

    def build(self) -> tuple[str, tuple[SQLParam, ...]]:
        """Combined WHERE fragment and parameters; ``("1=1", ())`` when empty."""
        if not self._clauses:
            return "1=1", ()
        return " AND ".join(self._clauses), tuple(self._params)


def is_contention_error(error: sqlite3.OperationalError) -> bool:
    message = str(error).lower()
    return "locked" in message or "busy" in message


class ContextStoreBase:
    """SQLite-backed store base class.

    Connections are opened per operation; inside ``batch_connection()`` a
    single connection is shared. The database path is injected, so tests
    construct isolated stores over ``tmp_path``.

    Attributes:
        db_path: Path to the SQLite database file.
        config: Store settings (timeouts and retry policy).
        learning: Override learning constants.
    """

    # v1: sessions, override_events, override_patterns, file_relationships
    SCHEMA_VERSION = 1

    def __init__(
        self,
        db_path: Path | None = None,
        config: StoreConfig | None = None,
        learning: OverrideLearningConfig | None = None,
    ) -> None:
        self.config = config or StoreConfig()
        self.learning = learning or OverrideLearningConfig()
        self.db_path = db_path or self.config.db_path
        self._logger = _logger.bind(db_path=str(self.db_path))
        self._key_locks = tuple(threading.Lock() for _ in range(KEY_LOCK_STRIPES))
        # Scoped per thread/task so one caller's batch never leaks into another
        self._batch_conn: contextvars.ContextVar[sqlite3.Connection | None] = (
            contextvars.ContextVar("_batch_conn", default=None)
        )
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._migrate_if_needed()

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(
            str(self.db_path),
            timeout=self.config.busy_timeout_ms / 1000,
            isolation_level=None,
            check_same_thread=False,
        )
        conn.execute("PRAGMA journal_mode=WAL")
        conn.execute(f"PRAGMA busy_timeout={self.config.busy_timeout_ms}")
        conn.row_factory = sqlite3.Row
        return conn

    @contextmanager
    def _get_connection(self) -> Generator[sqlite3.Connection, None, None]:
        """Yield a configured connection running one transaction.

        Reuses the active ``batch_connection()`` when there is one. Otherwise
        a fresh connection runs ``BEGIN IMMEDIATE`` so writers take the write
        lock up front, and commits on success.
        """
        batch = self._batch_conn.get()
        if batch is not None:
            yield batch
            return

        conn = self._connect()
        try:
            conn.execute("BEGIN IMMEDIATE")
            yield conn
            conn.execute("COMMIT")
        except Exception as e:
            if conn.in_transaction:
                conn.execute("ROLLBACK")
            _logger.warning(
                "database_operation_failed",
                db_path=str(self.db_path),
                error_type=type(e).__name__,
                error=str(e),
            )
            raise
        finally:
            conn.close()

    @contextmanager
    def _read_connection(self) -> Generator[sqlite3.Connection, None, None]:
        """Yield a connection for reads without taking the write lock.

        Under WAL, readers see the last committed state and never block
        writers.
        """
        batch = self._batch_conn.get()
        if batch is not None:
            yield batch
            return

        conn = self._connect()
        try:
            yield conn
        finally:
            conn.close()

    @contextmanager
    def batch_connection(self) -> Generator[sqlite3.Connection, None, None]:
        """Share one connection and one transaction across several operations."""
        conn = self._connect()
        token = self._batch_conn.set(conn)
        try:
            conn.execute("BEGIN IMMEDIATE")
            yield conn
            conn.execute("COMMIT")
        except Exception as e:
            if conn.in_transaction:
                conn.execute("ROLLBACK")
            _logger.warning(
                "batch_operation_failed",
                db_path=str(self.db_path),
                error_type=type(e).__name__,
                error=str(e),
            )
            raise
        finally:
            self._batch_conn.reset(token)
            conn.close()

    def _key_lock(self, key: tuple[str, str]) -> threading.Lock:
        """In-process lock serializing writers of one (file, pattern) key.

        Keys share a fixed set of striped locks, so memory stays bounded no
        matter how many distinct keys a long-running server sees. Two keys
        on the same stripe merely serialize.
        """
        return self._key_locks[hash(key) % len(self._key_locks)]

    def _with_retry(self, operation: str, func: Callable[[], T]) -> T:
        """Run a write, retrying SQLite lock contention with backoff.

        Raises:
            StorageContentionError: If the write still conflicts after
                ``max_retries`` retries.
        """
        attempts = self.config.max_retries + 1
        for attempt in range(attempts):
            try:
                return func()
            except sqlite3.OperationalError as e:
                if not is_contention_error(e):
                    raise
                if attempt == attempts - 1:
                    _logger.error(
                        "storage_contention_exhausted",
                        operation=operation,
                        attempts=attempts,
                    )
                    raise StorageContentionError(operation, attempts) from e
                delay = self.config.retry_backoff_seconds * (2**attempt)
                _logger.warning(
                    "storage_contention_retry",
                    operation=operation,
                    attempt=attempt + 1,
                    delay_seconds=delay,
                )
                time.sleep(delay)
        raise StorageContentionError(operation, attempts)

    def close(self) -> None:  # noqa: B027
        """No-op: connections are opened and closed per operation."""

    def _migrate_if_needed(self) -> None:
        with self._get_connection() as conn:
            try:
                row = conn.execute("SELECT version FROM schema_version LIMIT 1").fetchone()
                current_version = row["version"] if row else 0
            except sqlite3.OperationalError:
                current_version = 0

            if current_version < self.SCHEMA_VERSION:
                self._create_schema(conn)

    def _create_schema(self, conn: sqlite3.Connection) -> None:
        """Create all tables and indexes (idempotent)."""
        self._create_schema_version_table(conn)
        self._create_sessions_table(conn)
        self._create_override_events_table(conn)
        self._create_override_patterns_table(conn)
        self._create_file_relationships_table(conn)

        conn.execute("DELETE FROM schema_version")
        conn.execute(
            "INSERT INTO schema_version (version) VALUES (?)",
            (self.SCHEMA_VERSION,),
        )
        self._logger.info("schema_created", version=self.SCHEMA_VERSION)

    @staticmethod
    def _create_schema_version_table(conn: sqlite3.Connection) -> None:
        conn.execute("""
            CREATE TABLE IF NOT EXISTS schema_version (
                version INTEGER PRIMARY KEY
            )
        """)

    @staticmethod
    def _create_sessions_table(conn: sqlite3.Connection) -> None:
        conn.execute("""
            CREATE TABLE IF NOT EXISTS sessions (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                project_hash TEXT NOT NULL,
                task_description TEXT NOT NULL,
                task_mode TEXT NOT NULL,
                pattern_fingerprint TEXT NOT NULL,
                focal_file TEXT,
                token_budget INTEGER NOT NULL,
                created_at TIMESTAMP NOT NULL,
                selection TEXT NOT NULL,
                outcome TEXT
            )
        """)
        conn.execute(
            "CREATE INDEX IF NOT EXISTS idx_sessions_project "
            "ON sessions(project_hash)"
        )
        conn.execute(
            "CREATE INDEX IF NOT EXISTS idx_sessions_fingerprint "
            "ON sessions(pattern_fingerprint)"
        )

    @staticmethod
    def _create_override_events_table(conn: sqlite3.Connection) -> None:
        conn.execute("""
            CREATE TABLE IF NOT EXISTS override_events (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                session_id INTEGER NOT NULL REFERENCES sessions(id),
                file_path TEXT NOT NULL,
                override_type TEXT NOT NULL,
                pattern_fingerprint TEXT NOT NULL,
                timestamp TIMESTAMP NOT NULL,
                UNIQUE (session_id, file_path, override_type)
            )
        """)
        conn.execute(
            "CREATE INDEX IF NOT EXISTS idx_override_events_pattern "
            "ON override_events(file_path, pattern_fingerprint)"
        )

    @staticmethod
    def _create_override_patterns_table(conn: sqlite3.Connection) -> None:
        conn.execute("""
            CREATE TABLE IF NOT EXISTS override_patterns (
                file_path TEXT NOT NULL,
                pattern_fingerprint TEXT NOT NULL,
                override_count INTEGER NOT NULL DEFAULT 0,
                last_override_type TEXT,
                cumulative_adjustment REAL NOT NULL DEFAULT 0.0,
                confidence REAL NOT NULL DEFAULT 0.5,
                updated_at TIMESTAMP NOT NULL,
                PRIMARY KEY (file_path, pattern_fingerprint)
            )
        """)
        conn.execute(
            "CREATE INDEX IF NOT EXISTS idx_override_patterns_fingerprint "
            "ON override_patterns(pattern_fingerprint)"
        )

    @staticmethod
    def _create_file_relationships_table(conn: sqlite3.Connection) -> None:
        conn.execute("""
            CREATE TABLE IF NOT EXISTS file_relationships (
                file_a TEXT NOT NULL,
                file_b TEXT NOT NULL,
                relationship_type TEXT NOT NULL,
                strength REAL NOT NULL,
                observation_count INTEGER NOT NULL DEFAULT 1,
                updated_at TIMESTAMP NOT NULL,
                PRIMARY KEY (file_a, file_b, relationship_type)
            )
        """)
        conn.execute(
            "CREATE INDEX IF NOT EXISTS idx_relationships_b "
            "ON file_relationships(file_b)"
        )

    @staticmethod
    def hash_project(project_root: Path) -> str:
        """Stable 16-character hash of a resolved project root path."""
        normalized = str(Path(project_root).resolve())
        return hashlib.sha256(normalized.encode()).hexdigest()[:16]


__all__ = [
    "KEY_LOCK_STRIPES",
    "ContextStoreBase",
    "SQLParam",
    "WhereBuilder",
    "_logger",
    "is_contention_error",
]
