"""Use case for idempotent entity creation."""

import logging

from app.features.entities.dtos import (
    CreateEntityRequest,
    CreateEntityResponse,
    EntityDto,
)
from app.features.entities.repositories.protocols import GraphStore
from app.features.entities.services.merge_strategy import require_fields

logger = logging.getLogger(__name__)


class CreateEntityUseCaseImpl:
    """Implementation of the create entity use case."""

    def __init__(self, repository: GraphStore):
        """Initialize the use case with dependencies.

        Args:
            repository: Graph store the entity is written to
        """
        self.repository: GraphStore = repository

    async def execute(self, request: CreateEntityRequest) -> CreateEntityResponse:
        """Create the entity, or touch it when the id is already taken.

        Repeating the call is safe: the store performs one conditional
        create-or-update, so concurrent callers with the same id converge on a
        single node whose creator_ref names the first creator.

        Args:
            request: The entity creation request

        Returns:
            Response with the stored entity and whether it was newly created

        Raises:
            ValidationError: If a required field is missing or blank
        """
        require_fields(
            canonical_id=request.canonical_id,
            code=request.code,
            label=request.label,
            kind=request.kind,
            unit_ref=request.unit_ref,
        )

        result = await self.repository.create_or_touch_entity(
            entity_id=request.canonical_id,
            code=request.code,
            label=request.label,
            kind=request.kind,
            properties=request.properties,
            unit_ref=request.unit_ref,
        )

        if result["created"]:
            logger.info(
                "Created entity %s (kind=%s) from %s",
                request.canonical_id,
                request.kind,
                request.unit_ref,
            )
        else:
            logger.info(
                "Touched existing entity %s from %s",
                request.canonical_id,
                request.unit_ref,
            )

        return CreateEntityResponse(
            canonical_id=request.canonical_id,
            created=result["created"],
            entity=EntityDto.from_entity(result["entity"]),
        )
