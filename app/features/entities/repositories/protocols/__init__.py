"""Repository protocols for the entities feature."""

from .graph_store import (
    GraphStore,
    RelationshipMergeResult,
    TransferResult,
    UpdateOutcome,
    UpsertEntityResult,
)

__all__ = [
    "GraphStore",
    "RelationshipMergeResult",
    "TransferResult",
    "UpdateOutcome",
    "UpsertEntityResult",
]
