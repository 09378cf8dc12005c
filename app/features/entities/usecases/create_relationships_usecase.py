"""Use case for creating a batch of relationships."""

import logging

from app.features.entities.dtos import (
    CreateRelationshipsRequest,
    CreateRelationshipsResponse,
    RelationshipDto,
)
from app.features.entities.errors import ValidationError
from app.features.entities.models import Relationship
from app.features.entities.repositories.protocols import GraphStore

logger = logging.getLogger(__name__)

_REQUIRED = ("subject_id", "predicate", "object_id", "unit_ref")


def relationships_from_items(items: list[RelationshipDto]) -> list[Relationship]:
    """Validate a relationship batch and convert it to store models.

    Raises:
        ValidationError: If the batch is empty or an item misses a field
    """
    if not items:
        raise ValidationError("relationships must be a non-empty list")

    for index, item in enumerate(items):
        missing = [
            name
            for name in _REQUIRED
            if not getattr(item, name) or not str(getattr(item, name)).strip()
        ]
        if missing:
            raise ValidationError(
                f"Relationship {index} is missing: {', '.join(missing)}",
                {"index": index, "fields": missing},
            )

    return [
        Relationship(
            subject_id=item.subject_id,
            predicate=item.predicate,
            object_id=item.object_id,
            properties=item.properties,
            provenance_ref=item.unit_ref,
        )
        for item in items
    ]


class CreateRelationshipsUseCaseImpl:
    """Implementation of the create relationships use case."""

    def __init__(self, repository: GraphStore):
        """Initialize the use case with dependencies.

        Args:
            repository: Graph store the relationships are written to
        """
        self.repository: GraphStore = repository

    async def execute(
        self, request: CreateRelationshipsRequest
    ) -> CreateRelationshipsResponse:
        """Create every relationship in the batch, or none of them.

        Args:
            request: The batch of relationships

        Returns:
            Response with the number of relationships created

        Raises:
            ValidationError: If the batch is empty or an item misses a field
            EntityNotFoundError: If any endpoint does not exist
        """
        relationships = relationships_from_items(request.relationships)
        count = await self.repository.create_relationships(relationships)
        logger.info("Created %d relationships", count)
        return CreateRelationshipsResponse(count=count)
