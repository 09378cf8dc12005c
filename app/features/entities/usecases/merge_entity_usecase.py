"""Use case for merging new data into an existing entity.

The strategy named in the request picks one of four state transitions over
the target entity:

| Strategy             | Precondition         | Effect                                   |
|----------------------|----------------------|------------------------------------------|
| enrich_placeholder   | kind == "unknown"    | set kind/label, replace properties       |
| merge_peers          | entity exists        | accumulate properties, retried on races  |
| link_only            | entity exists        | provenance edge and touch only           |
| prefer_new           | entity exists        | overwrite kind/label if given, replace   |

Every strategy links the entity to the asserting unit in the same store write
that applies its effect, so a concurrent absorption or delete sees either both
or neither.
"""

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field

from app.features.entities.dtos import (
    ConflictDto,
    MergeEntityRequest,
    MergeEntityResponse,
)
from app.features.entities.errors import (
    EntityNotFoundError,
    NotAPlaceholderError,
    ValidationError,
    WriteConflictError,
)
from app.features.entities.models import PLACEHOLDER_KIND
from app.features.entities.repositories.protocols import GraphStore, UpdateOutcome
from app.features.entities.services.merge_strategy import MergeStrategy, require_fields
from app.features.entities.services.optimistic_concurrency import (
    OptimisticConcurrencyController,
)
from app.features.entities.services.property_merge import (
    PropertyConflict,
    merge_properties,
)

logger = logging.getLogger(__name__)


@dataclass
class StrategyOutcome:
    """What a strategy did to the target entity."""

    updated: bool
    conflicts: list[PropertyConflict] = field(default_factory=list)


class MergeEntityUseCaseImpl:
    """Implementation of the merge entity use case."""

    def __init__(
        self,
        repository: GraphStore,
        controller: OptimisticConcurrencyController | None = None,
    ):
        """Initialize the use case with dependencies.

        Args:
            repository: Graph store holding the target entity
            controller: Retry loop for merge_peers; a default policy is used when omitted
        """
        self.repository: GraphStore = repository
        self.controller: OptimisticConcurrencyController = (
            controller or OptimisticConcurrencyController()
        )
        self._handlers: dict[
            MergeStrategy, Callable[[MergeEntityRequest], Awaitable[StrategyOutcome]]
        ] = {
            MergeStrategy.ENRICH_PLACEHOLDER: self._enrich_placeholder,
            MergeStrategy.MERGE_PEERS: self._merge_peers,
            MergeStrategy.LINK_ONLY: self._link_only,
            MergeStrategy.PREFER_NEW: self._prefer_new,
        }

    async def execute(self, request: MergeEntityRequest) -> MergeEntityResponse:
        """Apply the requested merge strategy to the target entity.

        Args:
            request: The merge request

        Returns:
            Response with the applied strategy and any recorded conflicts

        Raises:
            ValidationError: If a required field is missing or blank
            InvalidMergeStrategyError: If the strategy name is unknown
            EntityNotFoundError: If the target entity does not exist
            NotAPlaceholderError: If enrich_placeholder targets a resolved entity
            ConcurrencyExhaustedError: If merge_peers runs out of retries
        """
        require_fields(canonical_id=request.canonical_id, unit_ref=request.unit_ref)
        strategy = MergeStrategy.parse(request.strategy)

        outcome = await self._handlers[strategy](request)

        logger.info(
            "Applied %s to %s (%d conflicts)",
            strategy.value,
            request.canonical_id,
            len(outcome.conflicts),
        )

        return MergeEntityResponse(
            canonical_id=request.canonical_id,
            strategy=strategy.value,
            updated=outcome.updated,
            conflicts=[
                ConflictDto(
                    property=conflict.property,
                    existing_value=conflict.existing_value,
                    new_value=conflict.new_value,
                    resolution=conflict.resolution,
                )
                for conflict in outcome.conflicts
            ],
        )

    async def _enrich_placeholder(self, request: MergeEntityRequest) -> StrategyOutcome:
        if not request.kind or not request.kind.strip():
            raise ValidationError(
                "kind is required for enrich_placeholder", {"fields": ["kind"]}
            )

        outcome = await self.repository.update_entity(
            request.canonical_id,
            kind=request.kind,
            label=request.label,
            properties=request.properties,
            unit_ref=request.unit_ref,
            require_kind=PLACEHOLDER_KIND,
        )
        if outcome is UpdateOutcome.NOT_FOUND:
            raise EntityNotFoundError(request.canonical_id)
        if outcome is UpdateOutcome.PRECONDITION_FAILED:
            current = await self.repository.get_entity(request.canonical_id)
            raise NotAPlaceholderError(
                request.canonical_id, current.kind if current else None
            )
        return StrategyOutcome(updated=True)

    async def _merge_peers(self, request: MergeEntityRequest) -> StrategyOutcome:
        entity_id = request.canonical_id

        async def attempt() -> list[PropertyConflict]:
            entity = await self.repository.get_entity(entity_id)
            if entity is None:
                raise EntityNotFoundError(entity_id)

            result = merge_properties(entity.properties, request.properties)
            written = await self.repository.conditional_update_properties(
                entity_id, entity.version, result.merged, request.unit_ref
            )
            if not written:
                raise WriteConflictError(entity_id)
            return result.conflicts

        conflicts = await self.controller.run(attempt, entity_id=entity_id)
        return StrategyOutcome(updated=True, conflicts=conflicts)

    async def _link_only(self, request: MergeEntityRequest) -> StrategyOutcome:
        if not await self.repository.touch_entity(request.canonical_id, request.unit_ref):
            raise EntityNotFoundError(request.canonical_id)
        return StrategyOutcome(updated=False)

    async def _prefer_new(self, request: MergeEntityRequest) -> StrategyOutcome:
        outcome = await self.repository.update_entity(
            request.canonical_id,
            kind=request.kind or None,
            label=request.label or None,
            properties=request.properties,
            unit_ref=request.unit_ref,
        )
        if outcome is UpdateOutcome.NOT_FOUND:
            raise EntityNotFoundError(request.canonical_id)
        return StrategyOutcome(updated=True)
