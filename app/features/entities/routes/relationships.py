"""Relationship route handlers."""

from typing import Protocol

from fastapi import APIRouter, Depends

from app.features.entities.dependencies import get_graph_store
from app.features.entities.dtos import (
    CreateRelationshipsRequest,
    CreateRelationshipsResponse,
    EntityRelationshipsResponse,
    MergeRelationshipsRequest,
    MergeRelationshipsResponse,
)
from app.features.entities.repositories.protocols import GraphStore
from app.features.entities.usecases import (
    CreateRelationshipsUseCaseImpl,
    GetEntityRelationshipsUseCaseImpl,
    MergeRelationshipsUseCaseImpl,
)


class CreateRelationshipsUseCase(Protocol):
    """Protocol for the create relationships use case."""

    async def execute(
        self, request: CreateRelationshipsRequest
    ) -> CreateRelationshipsResponse:
        """Create a batch of relationships."""
        ...


class MergeRelationshipsUseCase(Protocol):
    """Protocol for the merge relationships use case."""

    async def execute(
        self, request: MergeRelationshipsRequest
    ) -> MergeRelationshipsResponse:
        """Create or update a batch of relationships."""
        ...


class GetEntityRelationshipsUseCase(Protocol):
    """Protocol for the get entity relationships use case."""

    async def execute(self, entity_id: str) -> EntityRelationshipsResponse:
        """List the relationships of an entity."""
        ...


async def get_create_relationships_use_case(
    store: GraphStore = Depends(get_graph_store),
) -> CreateRelationshipsUseCase:
    """Dependency injection for the create relationships use case."""
    return CreateRelationshipsUseCaseImpl(repository=store)


async def get_merge_relationships_use_case(
    store: GraphStore = Depends(get_graph_store),
) -> MergeRelationshipsUseCase:
    """Dependency injection for the merge relationships use case."""
    return MergeRelationshipsUseCaseImpl(repository=store)


async def get_entity_relationships_use_case(
    store: GraphStore = Depends(get_graph_store),
) -> GetEntityRelationshipsUseCase:
    """Dependency injection for the get entity relationships use case."""
    return GetEntityRelationshipsUseCaseImpl(repository=store)


router = APIRouter()


@router.post("/relationships", response_model=CreateRelationshipsResponse)
async def create_relationships(
    request: CreateRelationshipsRequest,
    use_case: CreateRelationshipsUseCase = Depends(get_create_relationships_use_case),
) -> CreateRelationshipsResponse:
    """Create a batch of relationships. Either all are created or none."""
    return await use_case.execute(request)


@router.post("/relationships/merge", response_model=MergeRelationshipsResponse)
async def merge_relationships(
    request: MergeRelationshipsRequest,
    use_case: MergeRelationshipsUseCase = Depends(get_merge_relationships_use_case),
) -> MergeRelationshipsResponse:
    """Create or update a batch of relationships. Safe to retry."""
    return await use_case.execute(request)


@router.get(
    "/entities/{entity_id}/relationships", response_model=EntityRelationshipsResponse
)
async def get_entity_relationships(
    entity_id: str,
    use_case: GetEntityRelationshipsUseCase = Depends(
        get_entity_relationships_use_case
    ),
) -> EntityRelationshipsResponse:
    """List outgoing and incoming relationships of an entity."""
    return await use_case.execute(entity_id)
