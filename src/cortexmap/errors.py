"""Failure categories surfaced by the storage and versioning layer.

Callers branch on the category: storage failures may be retried,
the others are permanent for the given input.
"""


class CortexMapError(Exception):
    """Base class for all cortexmap failures."""

    code = "error"


class StorageUnavailable(CortexMapError, RuntimeError):
    """Connection or transaction failure in the underlying store."""

    code = "storage_unavailable"


class NotFound(CortexMapError, ValueError):
    """A referenced commit or snapshot does not exist."""

    code = "not_found"

    def __init__(self, kind: str, ident: str):
        self.kind = kind
        self.ident = ident
        super().__init__(f"{kind.capitalize()} not found: {ident}")


class Corrupt(CortexMapError, ValueError):
    """A stored snapshot payload cannot be decoded into a graph state."""

    code = "corrupt"

    def __init__(self, snapshot_id: str, reason: str):
        self.snapshot_id = snapshot_id
        super().__init__(f"Snapshot {snapshot_id} is corrupt: {reason}")


class ValidationFailure(CortexMapError, ValueError):
    """Malformed input graph state; the enclosing write is rolled back."""

    code = "validation_failure"
