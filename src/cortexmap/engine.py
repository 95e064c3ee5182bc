"""CortexMap engine - wires the stores together behind payload-level operations."""

from __future__ import annotations

import logging
from datetime import datetime
from pathlib import Path

from pydantic import ValidationError

from .commits import CommitLog
from .config import DB_FILE_NAME, Settings
from .db import Database
from .errors import ValidationFailure
from .graph_store import GraphStore
from .models import GraphState
from .snapshots import SnapshotStore
from .versioning import VersionControl

logger = logging.getLogger(__name__)


def parse_graph_payload(payload: dict) -> GraphState:
    """Validate a {"nodes": [...], "edges": [...]} payload.

    Raises:
        ValidationFailure: missing keys, unknown roles, wrong types
    """
    if not isinstance(payload, dict):
        raise ValidationFailure("Graph payload must be an object with 'nodes' and 'edges'")
    try:
        return GraphState.model_validate(
            {"nodes": payload.get("nodes", []), "edges": payload.get("edges", [])}
        )
    except ValidationError as e:
        raise ValidationFailure(f"Invalid graph payload: {e}") from e


class CortexEngine:
    """Main entry point for graph and history operations.

    Thread-safety: one engine may be shared by many threads; each thread
    talks to SQLite over its own connection.
    """

    def __init__(self, data_dir: Path, linear_history: bool = False):
        self.data_dir = Path(data_dir)
        self.db = Database(self.data_dir / DB_FILE_NAME)
        self.graph = GraphStore(self.db)
        self.snapshots = SnapshotStore(self.db)
        self.log = CommitLog(self.db)
        self.vcs = VersionControl(
            self.db, self.graph, self.snapshots, self.log, linear_history=linear_history
        )

    @classmethod
    def from_settings(cls, settings: Settings) -> "CortexEngine":
        return cls(settings.data_dir, linear_history=settings.linear_history)

    def close(self) -> None:
        self.db.close()

    # --- Live graph ---

    def read_graph(self) -> dict:
        """Return the live graph as a JSON-ready dict."""
        return self.graph.read().model_dump(mode="json")

    def save_graph(self, payload: dict) -> dict:
        """Replace the live graph with the submitted state."""
        state = parse_graph_payload(payload)
        self.graph.replace(state)
        return state.to_summary()

    # --- History ---

    def list_commits(self, limit: int | None = None, since: datetime | None = None) -> list[dict]:
        return [c.model_dump(mode="json") for c in self.vcs.history(limit=limit, since=since)]

    def create_commit(self, agent_id: str, message: str) -> dict:
        commit_id = self.vcs.commit(agent_id, message)
        return self.log.get(commit_id).model_dump(mode="json")

    def restore_commit(self, commit_id: str) -> dict:
        state = self.vcs.restore(commit_id)
        return {"restored": commit_id, **state.to_summary()}

    def commit_snapshot(self, commit_id: str) -> dict:
        """Return the graph captured by a commit (read-only)."""
        return self.vcs.peek(commit_id).model_dump(mode="json")

    def commit_lineage(self, commit_id: str) -> list[dict]:
        return [c.to_summary() for c in self.vcs.lineage(commit_id)]

    def status(self) -> dict:
        return {"data_dir": str(self.data_dir), **self.vcs.status()}
