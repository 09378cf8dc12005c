"""Entity create, read and delete route handlers."""

from typing import Protocol

from fastapi import APIRouter, Depends

from app.features.entities.dependencies import get_graph_store
from app.features.entities.dtos import (
    CreateEntityRequest,
    CreateEntityResponse,
    DeleteEntityResponse,
    EntityExistsResponse,
    GetEntityResponse,
)
from app.features.entities.repositories.protocols import GraphStore
from app.features.entities.usecases import (
    CreateEntityUseCaseImpl,
    DeleteEntityUseCaseImpl,
    GetEntityUseCaseImpl,
)


class CreateEntityUseCase(Protocol):
    """Protocol for the create entity use case."""

    async def execute(self, request: CreateEntityRequest) -> CreateEntityResponse:
        """Create or touch an entity."""
        ...


class GetEntityUseCase(Protocol):
    """Protocol for the get entity use case."""

    async def execute(self, entity_id: str) -> GetEntityResponse:
        """Fetch an entity by id."""
        ...

    async def exists(self, entity_id: str) -> EntityExistsResponse:
        """Check whether an entity exists."""
        ...


class DeleteEntityUseCase(Protocol):
    """Protocol for the delete entity use case."""

    async def execute(self, entity_id: str) -> DeleteEntityResponse:
        """Delete an entity and its relationships."""
        ...


async def get_create_entity_use_case(
    store: GraphStore = Depends(get_graph_store),
) -> CreateEntityUseCase:
    """Dependency injection for the create entity use case."""
    return CreateEntityUseCaseImpl(repository=store)


async def get_get_entity_use_case(
    store: GraphStore = Depends(get_graph_store),
) -> GetEntityUseCase:
    """Dependency injection for the get entity use case."""
    return GetEntityUseCaseImpl(repository=store)


async def get_delete_entity_use_case(
    store: GraphStore = Depends(get_graph_store),
) -> DeleteEntityUseCase:
    """Dependency injection for the delete entity use case."""
    return DeleteEntityUseCaseImpl(repository=store)


router = APIRouter()


@router.post("/entities", response_model=CreateEntityResponse)
async def create_entity(
    request: CreateEntityRequest,
    use_case: CreateEntityUseCase = Depends(get_create_entity_use_case),
) -> CreateEntityResponse:
    """Create an entity, or touch it if the id already exists.

    Safe to repeat: concurrent requests with the same id converge on one entity.
    """
    return await use_case.execute(request)


@router.get("/entities/{entity_id}", response_model=GetEntityResponse)
async def get_entity(
    entity_id: str,
    use_case: GetEntityUseCase = Depends(get_get_entity_use_case),
) -> GetEntityResponse:
    """Retrieve an entity with its provenance units."""
    return await use_case.execute(entity_id)


@router.get("/entities/{entity_id}/exists", response_model=EntityExistsResponse)
async def entity_exists(
    entity_id: str,
    use_case: GetEntityUseCase = Depends(get_get_entity_use_case),
) -> EntityExistsResponse:
    """Check whether an entity id is live."""
    return await use_case.exists(entity_id)


@router.delete("/entities/{entity_id}", response_model=DeleteEntityResponse)
async def delete_entity(
    entity_id: str,
    use_case: DeleteEntityUseCase = Depends(get_delete_entity_use_case),
) -> DeleteEntityResponse:
    """Delete an entity and every relationship touching it."""
    return await use_case.execute(entity_id)
