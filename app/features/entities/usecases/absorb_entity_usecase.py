"""Use case for absorbing a duplicate entity into its canonical entity.

The duplicate's relationships (both directions, self-loops included) are
re-pointed to the canonical entity, its properties fill keys the canonical
entity lacks, its provenance units are carried over and the duplicate is
deleted. The store does all of that in one atomic call.

When absorptions race over overlapping ids, the losers observe
SourceNotFoundError or TargetNotFoundError. Callers treat those as "try the
next candidate", not as failures to escalate.
"""

import asyncio
import logging

from app.features.entities.dtos import (
    AbsorbedCountsDto,
    AbsorbEntityRequest,
    AbsorbEntityResponse,
)
from app.features.entities.errors import (
    SelfMergeRejectedError,
    SourceNotFoundError,
    TargetNotFoundError,
)
from app.features.entities.repositories.protocols import GraphStore, TransferResult
from app.features.entities.services.merge_strategy import require_fields
from app.features.entities.services.optimistic_concurrency import (
    OptimisticConcurrencyController,
)
from app.features.entities.services.property_merge import PropertyConflictPolicy

logger = logging.getLogger(__name__)


class AbsorbEntityUseCaseImpl:
    """Implementation of the absorb entity use case."""

    def __init__(
        self,
        repository: GraphStore,
        controller: OptimisticConcurrencyController | None = None,
    ):
        """Initialize the use case with dependencies.

        Args:
            repository: Graph store holding both entities
            controller: Retry loop for transient store conflicts
        """
        self.repository: GraphStore = repository
        self.controller: OptimisticConcurrencyController = (
            controller or OptimisticConcurrencyController()
        )

    async def execute(self, request: AbsorbEntityRequest) -> AbsorbEntityResponse:
        """Absorb ``source_id`` into ``target_id``.

        Args:
            request: The absorb request

        Returns:
            Response with the transferred counts

        Raises:
            ValidationError: If either id is missing or blank
            SelfMergeRejectedError: If both ids are equal (no store access happens)
            TargetNotFoundError: If the canonical entity does not exist
            SourceNotFoundError: If the duplicate does not exist (often already absorbed)
            ConcurrencyExhaustedError: If the store keeps reporting conflicts
        """
        require_fields(source_id=request.source_id, target_id=request.target_id)
        if request.source_id == request.target_id:
            raise SelfMergeRejectedError(request.source_id)

        source_id = request.source_id
        target_id = request.target_id

        async def attempt() -> TransferResult:
            target, source = await asyncio.gather(
                self.repository.get_entity(target_id),
                self.repository.get_entity(source_id),
            )
            if target is None:
                logger.warning(
                    "Absorption of %s aborted: target %s is gone", source_id, target_id
                )
                raise TargetNotFoundError(target_id)
            if source is None:
                logger.warning(
                    "Absorption into %s aborted: source %s is gone", target_id, source_id
                )
                raise SourceNotFoundError(source_id)

            return await self.repository.transfer_and_delete(
                source_id, target_id, PropertyConflictPolicy.DISCARD
            )

        result = await self.controller.run(attempt, entity_id=target_id)

        logger.info(
            "Absorbed %s into %s: %d relationships, %d properties, %d provenance units",
            source_id,
            target_id,
            result["relationships_transferred"],
            result["properties_transferred"],
            len(result["provenance_units_added"]),
        )

        return AbsorbEntityResponse(
            source_id=source_id,
            target_id=target_id,
            merged=AbsorbedCountsDto(
                properties_transferred=result["properties_transferred"],
                relationships_transferred=result["relationships_transferred"],
                provenance_units_added=result["provenance_units_added"],
            ),
        )
