"""PostgreSQL connection management for graph operations.

This module provides the asyncpg pool used by the Apache AGE graph store for
Cypher queries.
"""

import logging

import asyncpg

from app.core.settings import get_settings

logger = logging.getLogger(__name__)

_pool: asyncpg.Pool | None = None


async def get_graph_db_pool() -> asyncpg.Pool:
    """Get the database connection pool as a dependency."""
    global _pool
    if _pool is None:
        settings = get_settings()
        _pool = await asyncpg.create_pool(
            user=settings.postgres_user,
            password=settings.postgres_password,
            host=settings.postgres_host,
            port=settings.postgres_port,
            database=settings.postgres_db,
            min_size=settings.pool_min_size,
            max_size=settings.pool_max_size,
        )
        logger.info(
            "Graph database pool created for %s:%s/%s",
            settings.postgres_host,
            settings.postgres_port,
            settings.postgres_db,
        )

    return _pool


async def close_graph_db_pool() -> None:
    """Close the database connection pool."""
    global _pool
    if _pool:
        await _pool.close()
        _pool = None
