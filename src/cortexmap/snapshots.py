"""Immutable full-graph snapshots.

A snapshot is the whole graph state serialized as one JSON document,
not a diff. It is written once by a commit and only ever read back whole.
"""

from __future__ import annotations

import json
import logging
import sqlite3

from pydantic import ValidationError

from .db import Database
from .errors import Corrupt, NotFound, ValidationFailure
from .models import GraphState, generate_id, utc_now

logger = logging.getLogger(__name__)


def encode_state(state: GraphState) -> str:
    """Serialize a graph state losslessly."""
    try:
        return json.dumps(state.model_dump(mode="python"), allow_nan=False)
    except (TypeError, ValueError) as e:
        raise ValidationFailure(f"Graph state is not serializable: {e}") from e


def decode_state(snapshot_id: str, payload: str) -> GraphState:
    """Materialize a stored payload, refusing to coerce bad data."""
    try:
        data = json.loads(payload)
    except json.JSONDecodeError as e:
        raise Corrupt(snapshot_id, f"invalid JSON ({e})") from e
    if not isinstance(data, dict) or "nodes" not in data or "edges" not in data:
        raise Corrupt(snapshot_id, "payload is not a graph state")
    try:
        return GraphState.model_validate(data)
    except ValidationError as e:
        raise Corrupt(snapshot_id, f"{e.error_count()} invalid field(s)") from e


class SnapshotStore:
    """Owns the snapshots table. Rows are never updated or deleted."""

    def __init__(self, db: Database):
        self.db = db

    def create(self, state: GraphState, conn: sqlite3.Connection | None = None) -> str:
        """Persist a snapshot of the given state and return its id."""
        payload = encode_state(state)
        snapshot_id = generate_id()
        with self.db.scope(conn) as c:
            c.execute(
                "INSERT INTO snapshots (id, payload, created_at) VALUES (?, ?, ?)",
                (snapshot_id, payload, utc_now().isoformat()),
            )
        logger.debug(f"Created snapshot {snapshot_id} ({len(payload)} bytes)")
        return snapshot_id

    def get(self, snapshot_id: str, conn: sqlite3.Connection | None = None) -> GraphState:
        """Load a snapshot.

        Raises:
            NotFound: no snapshot with that id
            Corrupt: the stored payload is not a valid graph state
        """
        with self.db.scope(conn) as c:
            row = c.execute(
                "SELECT payload FROM snapshots WHERE id = ?", (snapshot_id,)
            ).fetchone()
        if row is None:
            raise NotFound("snapshot", snapshot_id)
        return decode_state(snapshot_id, row["payload"])

    def count(self) -> int:
        with self.db.transaction() as c:
            return c.execute("SELECT COUNT(*) FROM snapshots").fetchone()[0]
