"""Entity resolution DTOs for API requests and responses.

This module defines Data Transfer Objects for the create, merge, absorb and
relationship endpoints.
"""

from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, Field

from app.features.entities.models import Entity, RelationshipView


class EntityDto(BaseModel):
    """DTO for Entity API responses."""

    canonical_id: str = Field(..., description="Caller-supplied stable identifier")
    code: str = Field(..., description="Human-readable slug")
    label: str = Field(..., description="Display name")
    kind: str = Field(..., description="Type tag ('unknown' marks a placeholder)")
    properties: dict[str, Any] = Field(  # pyright: ignore[reportExplicitAny]
        default_factory=dict, description="Opaque property map"
    )
    creator_ref: str | None = Field(
        default=None, description="Unit that first created this entity"
    )
    version: int = Field(..., description="Optimistic concurrency token")
    first_seen: datetime = Field(..., description="When the entity was created")
    last_updated: datetime = Field(..., description="Last mutation or touch")
    provenance_refs: list[str] = Field(
        default_factory=list, description="Units that mentioned this entity"
    )

    @classmethod
    def from_entity(cls, entity: Entity) -> "EntityDto":
        """Map a graph Entity to its API representation."""
        return cls(
            canonical_id=entity.id,
            code=entity.code,
            label=entity.label,
            kind=entity.kind,
            properties=entity.properties,
            creator_ref=entity.creator_ref,
            version=entity.version,
            first_seen=entity.first_seen,
            last_updated=entity.last_updated,
            provenance_refs=entity.provenance_refs,
        )


class CreateEntityRequest(BaseModel):
    """Request to create an entity, or touch it if the id already exists."""

    canonical_id: str = Field(..., description="Stable identifier of the entity")
    code: str = Field(..., description="Human-readable slug")
    label: str = Field(..., description="Display name")
    kind: str = Field(..., description="Type tag, 'unknown' for a placeholder")
    properties: dict[str, Any] = Field(  # pyright: ignore[reportExplicitAny]
        default_factory=dict, description="Initial properties"
    )
    unit_ref: str = Field(..., description="Unit asserting this entity")


class CreateEntityResponse(BaseModel):
    """Response for an idempotent create."""

    success: bool = True
    canonical_id: str
    created: bool = Field(
        ..., description="False when the entity already existed and was touched"
    )
    entity: EntityDto


class MergeEntityRequest(BaseModel):
    """Request to apply a merge strategy to an existing entity."""

    canonical_id: str = Field(..., description="Entity to update")
    strategy: str = Field(
        ...,
        description="One of enrich_placeholder, merge_peers, link_only, prefer_new",
    )
    properties: dict[str, Any] = Field(  # pyright: ignore[reportExplicitAny]
        default_factory=dict, description="Incoming properties"
    )
    kind: str | None = Field(default=None, description="New kind, when supplied")
    label: str | None = Field(default=None, description="New label, when supplied")
    unit_ref: str = Field(..., description="Unit asserting the new data")


class ConflictDto(BaseModel):
    """A property whose existing and incoming values differed."""

    property: str
    existing_value: Any  # pyright: ignore[reportExplicitAny]
    new_value: Any  # pyright: ignore[reportExplicitAny]
    resolution: str = "accumulated"


class MergeEntityResponse(BaseModel):
    """Response for a merge."""

    success: bool = True
    canonical_id: str
    strategy: str
    updated: bool = Field(
        ..., description="Whether properties, kind or label were written"
    )
    conflicts: list[ConflictDto] = Field(default_factory=list)


class AbsorbEntityRequest(BaseModel):
    """Request to absorb a duplicate entity into its canonical entity."""

    source_id: str = Field(..., description="Duplicate entity, deleted on success")
    target_id: str = Field(..., description="Canonical entity that survives")


class AbsorbedCountsDto(BaseModel):
    """What moved from the duplicate onto the canonical entity."""

    properties_transferred: int
    relationships_transferred: int
    provenance_units_added: list[str] = Field(default_factory=list)


class AbsorbEntityResponse(BaseModel):
    """Response for a completed absorption."""

    success: bool = True
    source_id: str
    target_id: str
    merged: AbsorbedCountsDto


class GetEntityResponse(BaseModel):
    """Response for getting an entity by id."""

    success: bool = True
    found: bool
    entity: EntityDto | None = None


class EntityExistsResponse(BaseModel):
    """Response for an existence check."""

    success: bool = True
    canonical_id: str
    exists: bool


class DeleteEntityResponse(BaseModel):
    """Response for a cascade delete."""

    success: bool = True
    canonical_id: str
    relationship_count: int = Field(
        ..., description="Relationships removed together with the entity"
    )


class RelationshipDto(BaseModel):
    """DTO for one relationship in a batch create."""

    subject_id: str = Field(..., description="Entity the edge starts from")
    predicate: str = Field(..., description="Relationship type (e.g., 'works_at')")
    object_id: str = Field(..., description="Entity the edge points to")
    properties: dict[str, Any] = Field(  # pyright: ignore[reportExplicitAny]
        default_factory=dict
    )
    unit_ref: str = Field(..., description="Unit asserting this edge")


class CreateRelationshipsRequest(BaseModel):
    """Request to create a batch of relationships, all or nothing."""

    relationships: list[RelationshipDto]


class CreateRelationshipsResponse(BaseModel):
    """Response for a batch relationship create."""

    success: bool = True
    count: int


class MergeRelationshipsRequest(BaseModel):
    """Request to create or update a batch of relationships, all or nothing.

    Each item is keyed on (subject_id, predicate, object_id, unit_ref), so
    replaying the same batch updates properties instead of adding edges.
    """

    relationships: list[RelationshipDto]


class MergeRelationshipsResponse(BaseModel):
    """Response for an idempotent relationship merge."""

    success: bool = True
    count: int
    created: int = Field(..., description="Edges that did not exist before")
    updated: int = Field(..., description="Existing edges whose properties were rewritten")


class RelationshipViewDto(BaseModel):
    """A relationship seen from the requested entity."""

    direction: Literal["outgoing", "incoming"]
    predicate: str
    other_id: str
    other_code: str | None = None
    other_label: str | None = None
    other_kind: str | None = None
    properties: dict[str, Any] = Field(  # pyright: ignore[reportExplicitAny]
        default_factory=dict
    )
    provenance_ref: str | None = None
    created_at: datetime | None = None
    last_updated: datetime | None = None

    @classmethod
    def from_view(cls, view: RelationshipView) -> "RelationshipViewDto":
        """Map a store relationship view to its API representation."""
        return cls.model_validate(view.model_dump())


class EntityRelationshipsResponse(BaseModel):
    """Response listing the relationships of one entity."""

    success: bool = True
    canonical_id: str
    count: int
    relationships: list[RelationshipViewDto]
