"""Merge and absorb route handlers."""

from typing import Protocol

from fastapi import APIRouter, Depends

from app.features.entities.dependencies import (
    get_concurrency_controller,
    get_graph_store,
)
from app.features.entities.dtos import (
    AbsorbEntityRequest,
    AbsorbEntityResponse,
    MergeEntityRequest,
    MergeEntityResponse,
)
from app.features.entities.repositories.protocols import GraphStore
from app.features.entities.services.optimistic_concurrency import (
    OptimisticConcurrencyController,
)
from app.features.entities.usecases import (
    AbsorbEntityUseCaseImpl,
    MergeEntityUseCaseImpl,
)


class MergeEntityUseCase(Protocol):
    """Protocol for the merge entity use case."""

    async def execute(self, request: MergeEntityRequest) -> MergeEntityResponse:
        """Apply a merge strategy to an entity."""
        ...


class AbsorbEntityUseCase(Protocol):
    """Protocol for the absorb entity use case."""

    async def execute(self, request: AbsorbEntityRequest) -> AbsorbEntityResponse:
        """Absorb a duplicate entity into its canonical entity."""
        ...


async def get_merge_entity_use_case(
    store: GraphStore = Depends(get_graph_store),
    controller: OptimisticConcurrencyController = Depends(get_concurrency_controller),
) -> MergeEntityUseCase:
    """Dependency injection for the merge entity use case."""
    return MergeEntityUseCaseImpl(repository=store, controller=controller)


async def get_absorb_entity_use_case(
    store: GraphStore = Depends(get_graph_store),
    controller: OptimisticConcurrencyController = Depends(get_concurrency_controller),
) -> AbsorbEntityUseCase:
    """Dependency injection for the absorb entity use case."""
    return AbsorbEntityUseCaseImpl(repository=store, controller=controller)


router = APIRouter()


@router.post("/entities/merge", response_model=MergeEntityResponse)
async def merge_entity(
    request: MergeEntityRequest,
    use_case: MergeEntityUseCase = Depends(get_merge_entity_use_case),
) -> MergeEntityResponse:
    """Merge new data into an existing entity using an explicit strategy.

    Strategies: enrich_placeholder, merge_peers, link_only, prefer_new.
    """
    return await use_case.execute(request)


@router.post("/entities/absorb", response_model=AbsorbEntityResponse)
async def absorb_entity(
    request: AbsorbEntityRequest,
    use_case: AbsorbEntityUseCase = Depends(get_absorb_entity_use_case),
) -> AbsorbEntityResponse:
    """Absorb source_id into target_id and delete source_id.

    A 404 with SOURCE_NOT_FOUND usually means a concurrent absorption already
    consumed the source; move on to the next candidate.
    """
    return await use_case.execute(request)
