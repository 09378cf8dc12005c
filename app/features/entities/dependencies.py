"""Shared FastAPI dependencies for the entities feature."""

import logging

from app.core.settings import get_settings
from app.db.postgres.graph_connection import get_graph_db_pool
from app.features.entities.repositories import AgeGraphStore, MemoryGraphStore
from app.features.entities.repositories.protocols import GraphStore
from app.features.entities.services.optimistic_concurrency import (
    OptimisticConcurrencyController,
    RetryPolicy,
)

logger = logging.getLogger(__name__)

# Process-wide store for graph_backend=memory (lazy initialization)
_memory_store: MemoryGraphStore | None = None


async def get_graph_store() -> GraphStore:
    """Dependency injection for the configured graph store."""
    global _memory_store
    settings = get_settings()

    if settings.graph_backend == "memory":
        if _memory_store is None:
            logger.info("Using in-process memory graph store")
            _memory_store = MemoryGraphStore()
        return _memory_store

    pool = await get_graph_db_pool()
    return AgeGraphStore(pool, graph_name=settings.age_graph_name)


def get_concurrency_controller() -> OptimisticConcurrencyController:
    """Dependency injection for the optimistic retry loop."""
    return OptimisticConcurrencyController(RetryPolicy.from_settings(get_settings()))
