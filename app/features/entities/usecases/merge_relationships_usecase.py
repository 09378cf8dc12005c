"""Use case for idempotently merging a batch of relationships."""

import logging

from app.features.entities.dtos import (
    MergeRelationshipsRequest,
    MergeRelationshipsResponse,
)
from app.features.entities.repositories.protocols import GraphStore

from .create_relationships_usecase import relationships_from_items

logger = logging.getLogger(__name__)


class MergeRelationshipsUseCaseImpl:
    """Implementation of the merge relationships use case."""

    def __init__(self, repository: GraphStore):
        """Initialize the use case with dependencies.

        Args:
            repository: Graph store the relationships are written to
        """
        self.repository: GraphStore = repository

    async def execute(
        self, request: MergeRelationshipsRequest
    ) -> MergeRelationshipsResponse:
        """Create or update every relationship in the batch, or none of them.

        An edge with the same subject, predicate, object and unit is reused and
        its properties replaced, so a retried batch never duplicates edges.

        Args:
            request: The batch of relationships

        Returns:
            Response with created and updated counts

        Raises:
            ValidationError: If the batch is empty or an item misses a field
            EntityNotFoundError: If any endpoint does not exist
        """
        relationships = relationships_from_items(request.relationships)
        result = await self.repository.merge_relationships(relationships)
        logger.info(
            "Merged %d relationships (%d created, %d updated)",
            len(relationships),
            result["created"],
            result["updated"],
        )
        return MergeRelationshipsResponse(
            count=len(relationships),
            created=result["created"],
            updated=result["updated"],
        )
