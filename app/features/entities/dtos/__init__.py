"""Entity resolution DTOs."""

from .entity_dto import (
    AbsorbEntityRequest,
    AbsorbEntityResponse,
    AbsorbedCountsDto,
    ConflictDto,
    CreateEntityRequest,
    CreateEntityResponse,
    CreateRelationshipsRequest,
    CreateRelationshipsResponse,
    DeleteEntityResponse,
    EntityDto,
    EntityExistsResponse,
    EntityRelationshipsResponse,
    GetEntityResponse,
    MergeEntityRequest,
    MergeEntityResponse,
    MergeRelationshipsRequest,
    MergeRelationshipsResponse,
    RelationshipDto,
    RelationshipViewDto,
)

__all__ = [
    "AbsorbEntityRequest",
    "AbsorbEntityResponse",
    "AbsorbedCountsDto",
    "ConflictDto",
    "CreateEntityRequest",
    "CreateEntityResponse",
    "CreateRelationshipsRequest",
    "CreateRelationshipsResponse",
    "DeleteEntityResponse",
    "EntityDto",
    "EntityExistsResponse",
    "EntityRelationshipsResponse",
    "GetEntityResponse",
    "MergeEntityRequest",
    "MergeEntityResponse",
    "MergeRelationshipsRequest",
    "MergeRelationshipsResponse",
    "RelationshipDto",
    "RelationshipViewDto",
]
