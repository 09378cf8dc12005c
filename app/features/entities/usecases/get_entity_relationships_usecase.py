"""Use case for listing the relationships of one entity."""

from app.features.entities.dtos import (
    EntityRelationshipsResponse,
    RelationshipViewDto,
)
from app.features.entities.errors import EntityNotFoundError
from app.features.entities.repositories.protocols import GraphStore
from app.features.entities.services.merge_strategy import require_fields


class GetEntityRelationshipsUseCaseImpl:
    """Implementation of the get entity relationships use case."""

    def __init__(self, repository: GraphStore):
        self.repository: GraphStore = repository

    async def execute(self, entity_id: str) -> EntityRelationshipsResponse:
        """List outgoing and incoming relationships of an entity.

        Raises:
            EntityNotFoundError: If the entity does not exist
        """
        require_fields(canonical_id=entity_id)

        views = await self.repository.get_relationships(entity_id)
        if views is None:
            raise EntityNotFoundError(entity_id)

        return EntityRelationshipsResponse(
            canonical_id=entity_id,
            count=len(views),
            relationships=[RelationshipViewDto.from_view(view) for view in views],
        )
