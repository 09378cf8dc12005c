"""Protocol definition and types for graph store operations."""

import enum
from typing import Protocol, TypedDict

from app.features.entities.models import (
    Entity,
    PropertyMap,
    Relationship,
    RelationshipView,
)
from app.features.entities.services.property_merge import PropertyConflictPolicy


class UpsertEntityResult(TypedDict):
    """Result of an idempotent create-or-touch."""

    entity: Entity
    created: bool


class TransferResult(TypedDict):
    """Counts reported by an atomic transfer-and-delete."""

    relationships_transferred: int
    properties_transferred: int
    provenance_units_added: list[str]


class RelationshipMergeResult(TypedDict):
    """Counts reported by an idempotent relationship merge."""

    created: int
    updated: int


class UpdateOutcome(enum.Enum):
    """Outcome of a field update guarded by an optional kind precondition."""

    UPDATED = "updated"
    NOT_FOUND = "not_found"
    PRECONDITION_FAILED = "precondition_failed"


class GraphStore(Protocol):
    """Protocol for the graph store the merge engine coordinates.

    Implementations must make every write method atomic per call and
    serialize writes that touch the same entity id.
    """

    async def get_entity(self, entity_id: str) -> Entity | None:
        """Fetch an entity with its provenance unit ids."""
        ...

    async def create_or_touch_entity(
        self,
        entity_id: str,
        code: str,
        label: str,
        kind: str,
        properties: PropertyMap,
        unit_ref: str,
    ) -> UpsertEntityResult:
        """Create the entity, or overwrite code/label and overlay properties if it exists."""
        ...

    async def conditional_update_properties(
        self,
        entity_id: str,
        expected_version: int,
        properties: PropertyMap,
        unit_ref: str,
    ) -> bool:
        """Replace properties and bump the version only if the version still matches.

        The entity is linked to ``unit_ref`` in the same write.
        """
        ...

    async def update_entity(
        self,
        entity_id: str,
        *,
        kind: str | None,
        label: str | None,
        properties: PropertyMap,
        unit_ref: str,
        require_kind: str | None = None,
    ) -> UpdateOutcome:
        """Set kind/label when given, replace properties wholesale and link ``unit_ref``."""
        ...

    async def touch_entity(self, entity_id: str, unit_ref: str) -> bool:
        """Refresh last_updated and link ``unit_ref``. False if the entity does not exist."""
        ...

    async def transfer_and_delete(
        self,
        from_id: str,
        to_id: str,
        policy: PropertyConflictPolicy = PropertyConflictPolicy.DISCARD,
    ) -> TransferResult:
        """Re-point every relationship of ``from_id`` to ``to_id`` and delete ``from_id``.

        All or nothing. Raises WriteConflictError if either node is missing
        when the transaction runs.
        """
        ...

    async def delete_entity(self, entity_id: str) -> int | None:
        """Delete an entity and its relationships. Returns None if missing."""
        ...

    async def create_relationships(self, relationships: list[Relationship]) -> int:
        """Create all relationships or none. Missing endpoints raise EntityNotFoundError."""
        ...

    async def merge_relationships(
        self, relationships: list[Relationship]
    ) -> RelationshipMergeResult:
        """Create or update relationships keyed on (subject, predicate, object, provenance_ref).

        All or nothing. Missing endpoints raise EntityNotFoundError.
        """
        ...

    async def get_relationships(self, entity_id: str) -> list[RelationshipView] | None:
        """List relationships of an entity in both directions. None if missing."""
        ...
