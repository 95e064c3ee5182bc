"""Commit, restore and peek across the graph, snapshot and commit stores.

History only ever grows by appending. The live graph is only changed by
an all-or-nothing replace, and restoring does not record a new commit.
"""

from __future__ import annotations

import logging
from datetime import datetime

from .commits import CommitLog
from .db import Database
from .graph_store import GraphStore
from .models import Commit, GraphState
from .snapshots import SnapshotStore

logger = logging.getLogger(__name__)


class VersionControl:
    """Coordinates the three stores.

    The snapshot write and the commit append always share one write lock.
    With linear_history=True the graph read joins them; otherwise the graph
    is read first in its own transaction and the commit may capture a graph
    that was replaced a moment later.
    """

    def __init__(
        self,
        db: Database,
        graph: GraphStore,
        snapshots: SnapshotStore,
        log: CommitLog,
        linear_history: bool = False,
    ):
        self.db = db
        self.graph = graph
        self.snapshots = snapshots
        self.log = log
        self.linear_history = linear_history

    def commit(self, agent_id: str, message: str) -> str:
        """Snapshot the live graph and append a commit pointing at it.

        The snapshot and the commit row are written in one transaction;
        if either fails neither is visible.

        Returns:
            The new commit id
        """
        if self.linear_history:
            with self.db.transaction(immediate=True) as conn:
                state = self.graph.read(conn)
                snapshot_id = self.snapshots.create(state, conn)
                commit_id = self.log.append(agent_id, message, snapshot_id, conn)
        else:
            state = self.graph.read()
            with self.db.transaction(immediate=True) as conn:
                snapshot_id = self.snapshots.create(state, conn)
                commit_id = self.log.append(agent_id, message, snapshot_id, conn)

        logger.info(
            f"Commit {commit_id} by {agent_id}: {len(state.nodes)} nodes, "
            f"{len(state.edges)} edges"
        )
        return commit_id

    def peek(self, commit_id: str) -> GraphState:
        """Return the graph captured by a commit without touching the live graph.

        Raises:
            NotFound: unknown commit, or its snapshot is missing
            Corrupt: the snapshot cannot be decoded
        """
        commit = self.log.get(commit_id)
        return self.snapshots.get(commit.snapshot_id)

    def restore(self, commit_id: str) -> GraphState:
        """Replace the live graph with the state captured by a commit.

        Lookups happen before any write, so a missing or corrupt snapshot
        leaves the live graph untouched.

        Returns:
            The restored state
        """
        state = self.peek(commit_id)
        self.graph.replace(state)
        logger.info(
            f"Restored graph to commit {commit_id}: {len(state.nodes)} nodes, "
            f"{len(state.edges)} edges"
        )
        return state

    def history(self, limit: int | None = None, since: datetime | None = None) -> list[Commit]:
        """List commits newest first."""
        return self.log.list(limit=limit, since=since)

    def lineage(self, commit_id: str) -> list[Commit]:
        """Commits from commit_id back to the root via parent links."""
        return self.log.lineage(commit_id)

    def status(self) -> dict:
        """Summarize the live graph, stored snapshots and the head of history."""
        node_count, edge_count = self.graph.counts()
        head_id = self.log.latest()
        head = self.log.get(head_id) if head_id else None
        return {
            "node_count": node_count,
            "edge_count": edge_count,
            "commit_count": self.log.count(),
            "snapshot_count": self.snapshots.count(),
            "head": head.to_summary() if head else None,
        }
