"""Append-only commit log.

Each commit points at one snapshot and at the commit that was latest
when it was created. "Latest" is simply the newest timestamp; there is
no branch head and forks are never merged.
"""

from __future__ import annotations

import logging
import sqlite3
from datetime import datetime, timedelta, timezone

from .db import Database
from .errors import NotFound
from .models import Commit, generate_id, utc_now

logger = logging.getLogger(__name__)

# Fixed width so that lexical order in SQLite is chronological order
TIMESTAMP_FORMAT = "%Y-%m-%dT%H:%M:%S.%f+00:00"

_COLUMNS = "id, parent_id, agent_id, message, timestamp, snapshot_id"


def format_timestamp(ts: datetime) -> str:
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)
    return ts.astimezone(timezone.utc).strftime(TIMESTAMP_FORMAT)


def parse_timestamp(raw: str) -> datetime:
    ts = datetime.fromisoformat(raw)
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)
    return ts


class CommitLog:
    """Owns the commits table."""

    def __init__(self, db: Database):
        self.db = db

    def _row_to_commit(self, row: sqlite3.Row) -> Commit:
        return Commit(
            id=row["id"],
            parent_id=row["parent_id"],
            agent_id=row["agent_id"],
            message=row["message"],
            timestamp=parse_timestamp(row["timestamp"]),
            snapshot_id=row["snapshot_id"],
        )

    def _latest_row(self, conn: sqlite3.Connection) -> sqlite3.Row | None:
        # id breaks timestamp ties so the answer is stable between calls
        return conn.execute(
            "SELECT id, timestamp FROM commits ORDER BY timestamp DESC, id DESC LIMIT 1"
        ).fetchone()

    def latest(self, conn: sqlite3.Connection | None = None) -> str | None:
        """Return the id of the newest commit, or None if the log is empty."""
        with self.db.scope(conn) as c:
            row = self._latest_row(c)
        return row["id"] if row else None

    def append(
        self,
        agent_id: str,
        message: str,
        snapshot_id: str,
        conn: sqlite3.Connection | None = None,
    ) -> str:
        """Record a new commit on top of the current latest one.

        The parent lookup and the insert share the caller's transaction
        when one is passed in; otherwise they run in one of their own that
        holds the write lock from the start.

        Returns:
            The new commit id
        """
        commit_id = generate_id()
        with self.db.scope(conn, immediate=True) as c:
            parent = self._latest_row(c)
            ts = utc_now()
            if parent is not None:
                parent_ts = parse_timestamp(parent["timestamp"])
                if ts <= parent_ts:
                    # Coarse clocks: keep sequential commits strictly ordered
                    ts = parent_ts + timedelta(microseconds=1)
            c.execute(
                f"INSERT INTO commits ({_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?)",
                (
                    commit_id,
                    parent["id"] if parent else None,
                    agent_id,
                    message,
                    format_timestamp(ts),
                    snapshot_id,
                ),
            )
        return commit_id

    def get(self, commit_id: str, conn: sqlite3.Connection | None = None) -> Commit:
        """Load one commit.

        Raises:
            NotFound: no commit with that id
        """
        with self.db.scope(conn) as c:
            row = c.execute(
                f"SELECT {_COLUMNS} FROM commits WHERE id = ?", (commit_id,)
            ).fetchone()
        if row is None:
            raise NotFound("commit", commit_id)
        return self._row_to_commit(row)

    def list(self, limit: int | None = None, since: datetime | None = None) -> list[Commit]:
        """Return commits newest first.

        Args:
            limit: Maximum number of commits to return
            since: Only commits at or after this time
        """
        query = f"SELECT {_COLUMNS} FROM commits"
        params: list = []
        if since is not None:
            query += " WHERE timestamp >= ?"
            params.append(format_timestamp(since))
        query += " ORDER BY timestamp DESC, id DESC"
        if limit is not None:
            query += " LIMIT ?"
            params.append(limit)

        with self.db.transaction() as c:
            rows = c.execute(query, params).fetchall()
        return [self._row_to_commit(row) for row in rows]

    def lineage(self, commit_id: str) -> list[Commit]:
        """Walk parent links from a commit back to the root.

        Returns the commits starting with commit_id itself. A parent id
        that no longer resolves ends the walk.
        """
        chain = [self.get(commit_id)]
        seen = {commit_id}
        while chain[-1].parent_id is not None:
            parent_id = chain[-1].parent_id
            if parent_id in seen:
                logger.warning(f"Cycle in commit history at {parent_id}")
                break
            try:
                chain.append(self.get(parent_id))
            except NotFound:
                logger.warning(f"Commit {chain[-1].id} has dangling parent {parent_id}")
                break
            seen.add(parent_id)
        return chain

    def count(self) -> int:
        with self.db.transaction() as c:
            return c.execute("SELECT COUNT(*) FROM commits").fetchone()[0]
