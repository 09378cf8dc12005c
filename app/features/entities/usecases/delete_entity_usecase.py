"""Use case for deleting an entity together with its relationships."""

import logging

from app.features.entities.dtos import DeleteEntityResponse
from app.features.entities.errors import EntityNotFoundError
from app.features.entities.repositories.protocols import GraphStore
from app.features.entities.services.merge_strategy import require_fields

logger = logging.getLogger(__name__)


class DeleteEntityUseCaseImpl:
    """Implementation of the delete entity use case."""

    def __init__(self, repository: GraphStore):
        """Initialize the use case with dependencies.

        Args:
            repository: Graph store holding the entity
        """
        self.repository: GraphStore = repository

    async def execute(self, entity_id: str) -> DeleteEntityResponse:
        """Delete an entity and cascade-delete every relationship touching it.

        Args:
            entity_id: The entity to delete

        Returns:
            Response with the number of relationships removed

        Raises:
            EntityNotFoundError: If the entity does not exist
        """
        require_fields(canonical_id=entity_id)

        relationship_count = await self.repository.delete_entity(entity_id)
        if relationship_count is None:
            raise EntityNotFoundError(entity_id)

        logger.info(
            "Deleted entity %s and %d relationships", entity_id, relationship_count
        )
        return DeleteEntityResponse(
            canonical_id=entity_id, relationship_count=relationship_count
        )
