"""Shared test fixtures and helpers for cortexmap tests."""

import tempfile
from pathlib import Path

import pytest

from cortexmap.commits import CommitLog
from cortexmap.db import Database
from cortexmap.engine import CortexEngine
from cortexmap.graph_store import GraphStore
from cortexmap.models import Edge, GraphState, Node
from cortexmap.snapshots import SnapshotStore
from cortexmap.versioning import VersionControl


# --- Fixtures ---


@pytest.fixture
def temp_data_dir():
    """Provide a temporary data directory, cleaned up after the test."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def db(temp_data_dir):
    """Provide an open Database in the temporary directory."""
    database = Database(temp_data_dir / "cortex_map.db")
    yield database
    database.close()


@pytest.fixture
def graph(db):
    return GraphStore(db)


@pytest.fixture
def snapshots(db):
    return SnapshotStore(db)


@pytest.fixture
def commit_log(db):
    return CommitLog(db)


@pytest.fixture
def vcs(db, graph, snapshots, commit_log):
    """Provide a VersionControl over fresh stores."""
    return VersionControl(db, graph, snapshots, commit_log)


@pytest.fixture
def engine(temp_data_dir):
    """Provide a fresh CortexEngine with an empty store."""
    eng = CortexEngine(temp_data_dir)
    yield eng
    eng.close()


# --- Helper Functions (not fixtures) ---


def make_node(id: str, text: str = "", role: str = "plan", **kwargs) -> Node:
    """Build a node; text defaults to the id."""
    return Node(id=id, text=text or id, role=role, **kwargs)


def make_edge(id: str, source: str, target: str, edge_type: str = "leads_to", **kwargs) -> Edge:
    return Edge(id=id, source=source, target=target, edge_type=edge_type, **kwargs)


def sample_state() -> GraphState:
    """A small graph touching every field."""
    return GraphState(
        nodes=[
            make_node("n1", "root goal", "plan", metadata={"priority": 1}),
            make_node("n2", "ran the search", "execution", parent_id="n1"),
            make_node("n3", "found a source", "evidence", parent_id="n2",
                      metadata={"url": "https://example.com", "tags": ["a", "b"]}),
            make_node("n4", "what went wrong", "reflection", parent_id="missing-node"),
        ],
        edges=[
            make_edge("e1", "n1", "n2"),
            make_edge("e2", "n2", "n3", "supports", metadata={"weight": 0.5}),
            make_edge("n1", "n3", "n4", "questions"),  # edge id reuses a node id
        ],
    )
