"""Use case for reading a single entity."""

from app.features.entities.dtos import (
    EntityDto,
    EntityExistsResponse,
    GetEntityResponse,
)
from app.features.entities.repositories.protocols import GraphStore
from app.features.entities.services.merge_strategy import require_fields


class GetEntityUseCaseImpl:
    """Implementation of the get entity use case."""

    def __init__(self, repository: GraphStore):
        self.repository: GraphStore = repository

    async def execute(self, entity_id: str) -> GetEntityResponse:
        """Fetch an entity by id. A missing entity is reported with found=False."""
        require_fields(canonical_id=entity_id)
        entity = await self.repository.get_entity(entity_id)
        if entity is None:
            return GetEntityResponse(found=False)
        return GetEntityResponse(found=True, entity=EntityDto.from_entity(entity))

    async def exists(self, entity_id: str) -> EntityExistsResponse:
        """Check whether an entity id is currently live."""
        require_fields(canonical_id=entity_id)
        entity = await self.repository.get_entity(entity_id)
        return EntityExistsResponse(canonical_id=entity_id, exists=entity is not None)
