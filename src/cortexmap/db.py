"""SQLite storage handle shared by the graph, snapshot and commit stores.

The handle is passed explicitly to each store. Every thread gets its own
connection to the same database file; SQLite's WAL mode gives readers a
consistent view while a writer holds its transaction.
"""

from __future__ import annotations

import logging
import sqlite3
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator

from .errors import StorageUnavailable, ValidationFailure

logger = logging.getLogger(__name__)

SCHEMA_VERSION = 1

SCHEMA = """
    CREATE TABLE IF NOT EXISTS nodes (
        id TEXT PRIMARY KEY,
        text TEXT NOT NULL,
        role TEXT NOT NULL,
        metadata TEXT,
        parent_id TEXT
    );

    CREATE TABLE IF NOT EXISTS edges (
        id TEXT PRIMARY KEY,
        source TEXT NOT NULL,
        target TEXT NOT NULL,
        edge_type TEXT NOT NULL,
        metadata TEXT
    );

    CREATE TABLE IF NOT EXISTS snapshots (
        id TEXT PRIMARY KEY,
        payload TEXT NOT NULL,
        created_at TEXT NOT NULL
    );

    CREATE TABLE IF NOT EXISTS commits (
        id TEXT PRIMARY KEY,
        parent_id TEXT,
        agent_id TEXT NOT NULL,
        message TEXT NOT NULL,
        timestamp TEXT NOT NULL,
        snapshot_id TEXT NOT NULL
    );

    CREATE INDEX IF NOT EXISTS idx_commits_timestamp ON commits(timestamp);
"""


class Database:
    """Per-thread SQLite connections with explicit transactions."""

    def __init__(self, db_path: Path, timeout: float = 30.0):
        """Open (and if needed create) the database.

        Args:
            db_path: Path to cortex_map.db
            timeout: Seconds to wait on a locked database before failing
        """
        self.db_path = Path(db_path)
        self.timeout = timeout
        self._local = threading.local()
        self._lock = threading.Lock()
        self._connections: dict[threading.Thread, sqlite3.Connection] = {}
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._init_db()

    def connection(self) -> sqlite3.Connection:
        """Get or create the calling thread's connection.

        Opening a new connection also closes those left by threads that
        have since exited.
        """
        conn = getattr(self._local, "conn", None)
        if conn is None:
            try:
                # Autocommit mode: transactions are opened explicitly in transaction()
                conn = sqlite3.connect(
                    str(self.db_path),
                    timeout=self.timeout,
                    isolation_level=None,
                    check_same_thread=False,
                )
                conn.row_factory = sqlite3.Row
                conn.execute("PRAGMA journal_mode=WAL")
                conn.execute(f"PRAGMA busy_timeout={int(self.timeout * 1000)}")
            except sqlite3.Error as e:
                raise StorageUnavailable(f"Cannot open database {self.db_path}: {e}") from e
            self._local.conn = conn
            with self._lock:
                self._release_finished_threads()
                self._connections[threading.current_thread()] = conn
        return conn

    def _release_finished_threads(self) -> None:
        # Caller holds self._lock
        finished = [t for t in self._connections if not t.is_alive()]
        for thread in finished:
            conn = self._connections.pop(thread)
            try:
                conn.close()
            except sqlite3.Error as e:
                logger.debug(f"Error closing connection of {thread.name}: {e}")
        if finished:
            logger.debug(f"Released {len(finished)} connection(s) of finished threads")

    @property
    def open_connections(self) -> int:
        with self._lock:
            return len(self._connections)

    def _init_db(self) -> None:
        """Create the schema once if it is absent."""
        with self.transaction() as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS schema_version (
                    version INTEGER PRIMARY KEY,
                    created_at TEXT DEFAULT (datetime('now'))
                )
            """)
            version = conn.execute("SELECT version FROM schema_version").fetchone()
            if version is None:
                conn.execute("INSERT INTO schema_version (version) VALUES (?)", (SCHEMA_VERSION,))
            elif version[0] != SCHEMA_VERSION:
                logger.warning(f"Schema version {version[0]} detected, expected {SCHEMA_VERSION}")
            for statement in SCHEMA.split(";"):
                if statement.strip():
                    conn.execute(statement)

    @contextmanager
    def transaction(self, immediate: bool = False) -> Iterator[sqlite3.Connection]:
        """Run a block inside one transaction.

        Commits on success, rolls back on any exception. Driver errors are
        re-raised as StorageUnavailable, constraint violations as
        ValidationFailure.

        Args:
            immediate: Take the write lock at BEGIN instead of at first write.
        """
        conn = self.connection()
        try:
            conn.execute("BEGIN IMMEDIATE" if immediate else "BEGIN")
        except sqlite3.Error as e:
            raise StorageUnavailable(f"Cannot begin transaction: {e}") from e

        try:
            yield conn
            conn.execute("COMMIT")
        except BaseException as e:
            if conn.in_transaction:
                try:
                    conn.execute("ROLLBACK")
                except sqlite3.Error as rollback_error:
                    logger.error(f"Rollback failed: {rollback_error}")
            if isinstance(e, sqlite3.IntegrityError):
                raise ValidationFailure(f"Constraint violated: {e}") from e
            if isinstance(e, sqlite3.Error):
                raise StorageUnavailable(f"Storage error: {e}") from e
            raise

    @contextmanager
    def scope(
        self, conn: sqlite3.Connection | None = None, immediate: bool = False
    ) -> Iterator[sqlite3.Connection]:
        """Join the caller's transaction if one is passed, else open a new one.

        Pass immediate=True for a read followed by a write: a deferred
        transaction cannot upgrade once another writer has committed.
        """
        if conn is not None:
            yield conn
        else:
            with self.transaction(immediate=immediate) as own:
                yield own

    def close(self) -> None:
        """Close every connection opened through this handle.

        Forces a WAL checkpoint first so the main database file is complete.
        """
        with self._lock:
            connections, self._connections = list(self._connections.values()), {}
        for index, conn in enumerate(connections):
            try:
                if index == 0:
                    conn.execute("PRAGMA wal_checkpoint(TRUNCATE)")
                conn.close()
            except sqlite3.Error as e:
                logger.debug(f"Error closing connection: {e}")
        self._local = threading.local()
