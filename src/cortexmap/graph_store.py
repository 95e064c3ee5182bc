"""Live graph storage: full read and atomic full replace.

There is no per-node mutation. Clients always submit the complete
desired state and it replaces the previous one inside one transaction.
"""

from __future__ import annotations

import json
import logging
import sqlite3
from typing import Any

from .db import Database
from .errors import ValidationFailure
from .models import Edge, GraphState, Node, decode_role

logger = logging.getLogger(__name__)


def encode_metadata(value: Any, owner: str) -> str | None:
    """Serialize metadata for storage. Absent metadata stays NULL."""
    if value is None:
        return None
    try:
        return json.dumps(value, allow_nan=False)
    except (TypeError, ValueError) as e:
        raise ValidationFailure(f"Metadata of {owner} is not serializable: {e}") from e


def decode_metadata(raw: str | None, owner: str) -> Any | None:
    """Parse stored metadata, degrading unreadable payloads to None."""
    if raw is None:
        return None
    try:
        return json.loads(raw)
    except json.JSONDecodeError as e:
        logger.warning(f"Dropping unreadable metadata on {owner}: {e}")
        return None


class GraphStore:
    """Owns the live nodes and edges tables."""

    def __init__(self, db: Database):
        self.db = db

    def read(self, conn: sqlite3.Connection | None = None) -> GraphState:
        """Return every live node and edge.

        Both tables are read inside one transaction so a concurrent
        replace is seen either entirely or not at all.
        """
        with self.db.scope(conn) as c:
            node_rows = c.execute(
                "SELECT id, text, role, metadata, parent_id FROM nodes ORDER BY rowid"
            ).fetchall()
            edge_rows = c.execute(
                "SELECT id, source, target, edge_type, metadata FROM edges ORDER BY rowid"
            ).fetchall()

        nodes = [
            Node(
                id=row["id"],
                text=row["text"],
                role=decode_role(row["role"]),
                metadata=decode_metadata(row["metadata"], f"node {row['id']}"),
                parent_id=row["parent_id"],
            )
            for row in node_rows
        ]
        edges = [
            Edge(
                id=row["id"],
                source=row["source"],
                target=row["target"],
                edge_type=row["edge_type"],
                metadata=decode_metadata(row["metadata"], f"edge {row['id']}"),
            )
            for row in edge_rows
        ]
        return GraphState(nodes=nodes, edges=edges)

    def replace(self, state: GraphState, conn: sqlite3.Connection | None = None) -> None:
        """Discard all nodes and edges and insert the given state.

        All-or-nothing: any failing insert rolls back the deletes too.

        Raises:
            ValidationFailure: unserializable metadata or duplicate ids
            StorageUnavailable: the transaction could not be completed
        """
        with self.db.scope(conn) as c:
            c.execute("DELETE FROM nodes")
            c.execute("DELETE FROM edges")

            for node in state.nodes:
                c.execute(
                    "INSERT INTO nodes (id, text, role, metadata, parent_id) VALUES (?, ?, ?, ?, ?)",
                    (
                        node.id,
                        node.text,
                        node.role,
                        encode_metadata(node.metadata, f"node {node.id}"),
                        node.parent_id,
                    ),
                )

            for edge in state.edges:
                c.execute(
                    "INSERT INTO edges (id, source, target, edge_type, metadata) VALUES (?, ?, ?, ?, ?)",
                    (
                        edge.id,
                        edge.source,
                        edge.target,
                        edge.edge_type,
                        encode_metadata(edge.metadata, f"edge {edge.id}"),
                    ),
                )

        logger.debug(f"Replaced graph: {len(state.nodes)} nodes, {len(state.edges)} edges")

    def counts(self) -> tuple[int, int]:
        """Return (node_count, edge_count) without materializing the graph."""
        with self.db.transaction() as c:
            nodes = c.execute("SELECT COUNT(*) FROM nodes").fetchone()[0]
            edges = c.execute("SELECT COUNT(*) FROM edges").fetchone()[0]
        return nodes, edges
