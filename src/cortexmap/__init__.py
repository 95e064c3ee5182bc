"""Versioned persistence for the CortexMap reasoning graph.

Public API:
- CortexEngine: opens a data directory and exposes graph and history operations
- GraphStore, SnapshotStore, CommitLog: the three stores behind it
- VersionControl: commit / restore / peek across the stores
- Node, Edge, GraphState, Commit: data models
- StorageUnavailable, NotFound, Corrupt, ValidationFailure: failure categories
"""

from .commits import CommitLog
from .db import Database
from .engine import CortexEngine
from .errors import CortexMapError, Corrupt, NotFound, StorageUnavailable, ValidationFailure
from .graph_store import GraphStore
from .models import Commit, Edge, GraphState, Node
from .snapshots import SnapshotStore
from .versioning import VersionControl

__all__ = [
    "CortexEngine",
    "Database",
    "GraphStore",
    "SnapshotStore",
    "CommitLog",
    "VersionControl",
    "Node",
    "Edge",
    "GraphState",
    "Commit",
    "CortexMapError",
    "StorageUnavailable",
    "NotFound",
    "Corrupt",
    "ValidationFailure",
]
