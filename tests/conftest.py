"""Pytest configuration and shared fixtures for all tests.

This module provides function-scoped fixtures for:
- The in-process memory graph store
- An optimistic concurrency controller that never really sleeps
- PostgreSQL/AGE connection pools for integration tests (skipped when unreachable)
"""

import asyncio
from collections.abc import AsyncGenerator

import asyncpg
import pytest
import pytest_asyncio

from app.core.settings import Settings, get_settings
from app.features.entities.repositories import AgeGraphStore, MemoryGraphStore
from app.features.entities.services.optimistic_concurrency import (
    OptimisticConcurrencyController,
    RetryPolicy,
)

TEST_GRAPH_NAME = "test_graph"


async def yield_once(_delay: float) -> None:
    """Stand-in for asyncio.sleep that only hands control back to the loop."""
    await asyncio.sleep(0)


@pytest.fixture
def memory_store() -> MemoryGraphStore:
    """Provide an empty in-process graph store."""
    return MemoryGraphStore()


@pytest.fixture
def controller() -> OptimisticConcurrencyController:
    """Provide a controller with a generous budget and no real backoff waits."""
    return OptimisticConcurrencyController(
        RetryPolicy(max_attempts=50, deadline=None), sleep=yield_once
    )


@pytest.fixture(scope="function")
def test_settings() -> Settings:
    """Provide application settings for integration tests."""
    return get_settings()


@pytest_asyncio.fixture(scope="function")
async def postgres_pool(test_settings: Settings) -> AsyncGenerator[asyncpg.Pool, None]:
    """Provide a PostgreSQL connection pool with AGE loaded.

    Skips the requesting test when the database cannot be reached.
    """
    try:
        pool = await asyncpg.create_pool(
            user=test_settings.postgres_user,
            password=test_settings.postgres_password,
            host=test_settings.postgres_host,
            port=test_settings.postgres_port,
            database=test_settings.test_postgres_db,
            min_size=1,
            max_size=10,
            timeout=3,
        )
    except (OSError, asyncpg.PostgresError, asyncpg.InterfaceError) as e:
        pytest.skip(f"PostgreSQL/AGE not reachable: {e}")

    try:
        async with pool.acquire() as conn:
            _ = await conn.execute("CREATE EXTENSION IF NOT EXISTS age;")
    except asyncpg.PostgresError as e:
        await pool.close()
        pytest.skip(f"AGE extension unavailable: {e}")

    yield pool

    # Close pool after test
    await pool.close()


async def _clear_graph(pool: asyncpg.Pool, graph_name: str) -> None:
    async with pool.acquire() as conn:
        _ = await conn.execute("LOAD 'age';")
        _ = await conn.execute("SET search_path = ag_catalog, '$user', public;")

        # Create the graph if it doesn't exist
        graph_exists = await conn.fetchval(
            "SELECT 1 FROM ag_graph WHERE name = $1;", graph_name
        )
        if not graph_exists:
            _ = await conn.execute(f"SELECT create_graph('{graph_name}');")

        _ = await conn.execute(
            f"SELECT * FROM ag_catalog.cypher('{graph_name}', $$ MATCH (n) DETACH DELETE n $$) as (v agtype);"
        )


@pytest_asyncio.fixture
async def age_store(postgres_pool: asyncpg.Pool) -> AsyncGenerator[AgeGraphStore, None]:
    """Provide an AgeGraphStore over an emptied test graph."""
    await _clear_graph(postgres_pool, TEST_GRAPH_NAME)
    yield AgeGraphStore(postgres_pool, graph_name=TEST_GRAPH_NAME)
    await _clear_graph(postgres_pool, TEST_GRAPH_NAME)
