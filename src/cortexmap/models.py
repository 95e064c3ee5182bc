"""Core data models for the reasoning graph and its history.

Uses Pydantic v2 for validation, ULID for sortable unique IDs.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Literal, get_args

from pydantic import BaseModel, Field, JsonValue, field_validator
from ulid import ULID

logger = logging.getLogger(__name__)


def generate_id() -> str:
    """Generate a ULID (sortable, unique identifier)."""
    return str(ULID())


def utc_now() -> datetime:
    """Get current UTC timestamp."""
    return datetime.now(timezone.utc)


NodeRole = Literal[
    "plan",        # intended steps
    "execution",   # actions taken
    "memory",      # recalled context
    "evidence",    # supporting facts
    "reflection",  # self-assessment
]

NODE_ROLES: tuple[str, ...] = get_args(NodeRole)
DEFAULT_ROLE: NodeRole = "plan"


def decode_role(tag: str | None) -> NodeRole:
    """Decode a stored role tag, falling back to 'plan' for anything unknown.

    Used on the read path only: a bad tag in storage degrades one node
    instead of failing the whole read. Writes always store the lower-case
    tag, so matching is exact: "Memory" in storage decodes to plan.
    """
    if tag in NODE_ROLES:
        return tag  # type: ignore[return-value]
    logger.warning(f"Unknown node role {tag!r}, defaulting to '{DEFAULT_ROLE}'")
    return DEFAULT_ROLE


class Node(BaseModel):
    """A reasoning unit in the graph."""

    id: str
    text: str
    role: NodeRole = DEFAULT_ROLE
    metadata: JsonValue = None  # JSON types only: str keys, lists, scalars
    parent_id: str | None = None  # not enforced, may dangle

    @field_validator("role", mode="before")
    @classmethod
    def _normalize_role(cls, value: Any) -> Any:
        # Accept "Plan" as well as "plan"; unknown tags still fail validation
        if isinstance(value, str):
            return value.strip().lower()
        return value


class Edge(BaseModel):
    """A directed relation between two nodes."""

    id: str
    source: str  # node ID, not enforced
    target: str  # node ID, not enforced
    edge_type: str
    metadata: JsonValue = None


class GraphState(BaseModel):
    """The complete set of live nodes and edges at one instant."""

    nodes: list[Node] = Field(default_factory=list)
    edges: list[Edge] = Field(default_factory=list)

    def node_map(self) -> dict[str, Node]:
        return {n.id: n for n in self.nodes}

    def edge_map(self) -> dict[str, Edge]:
        return {e.id: e for e in self.edges}

    def same_as(self, other: "GraphState") -> bool:
        """Order-independent, id-keyed equality."""
        return self.node_map() == other.node_map() and self.edge_map() == other.edge_map()

    def to_summary(self) -> dict:
        """Return a compact summary of this state."""
        return {
            "node_count": len(self.nodes),
            "edge_count": len(self.edges),
            "roles": {
                role: sum(1 for n in self.nodes if n.role == role)
                for role in NODE_ROLES
                if any(n.role == role for n in self.nodes)
            },
        }


class Commit(BaseModel):
    """An append-only history entry pointing at one snapshot."""

    id: str = Field(default_factory=generate_id)
    parent_id: str | None = None  # None for the first commit
    agent_id: str
    message: str
    timestamp: datetime = Field(default_factory=utc_now)
    snapshot_id: str

    def to_summary(self) -> dict:
        """Return a compact summary of this commit."""
        return {
            "id": self.id,
            "parent_id": self.parent_id,
            "agent_id": self.agent_id,
            "message": self.message.split("\n")[0],
            "timestamp": self.timestamp.isoformat(),
        }
