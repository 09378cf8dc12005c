"""Entity graph repositories package."""

from .age_repository import AgeGraphStore
from .memory_repository import MemoryGraphStore
from .protocols import (
    GraphStore,
    RelationshipMergeResult,
    TransferResult,
    UpdateOutcome,
    UpsertEntityResult,
)

__all__ = [
    # Graph implementations
    "AgeGraphStore",
    "MemoryGraphStore",
    # Protocol and types (from protocols/)
    "GraphStore",
    "RelationshipMergeResult",
    "TransferResult",
    "UpdateOutcome",
    "UpsertEntityResult",
]
