"""Script to set up the Apache AGE graph used by the entity store.

This script connects to PostgreSQL, installs the AGE extension, creates the
graph named in settings and the vertex/edge labels the store writes to, and
indexes vertex properties so id lookups do not scan the whole label.

To run this script, ensure that PostgreSQL with the AGE extension is running
and that the required environment variables for the database connection are set.

Usage:
    python -m scripts.setup_age_graph
"""

import asyncio
import logging
import os
import sys

import asyncpg

# Add project root to Python path to allow importing from 'app'
sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from app.core.settings import get_settings

# Configure logging
logging.basicConfig(
    level=logging.INFO, format="%(asctime)s - %(levelname)s - %(message)s"
)

VERTEX_LABELS = ["Entity", "Unit"]
EDGE_LABELS = ["RELATIONSHIP", "EXTRACTED_FROM"]


def schema_statements(graph_name: str) -> list[str]:
    """DDL for the graph, in execution order."""
    statements = [f"SELECT create_vlabel('{graph_name}', '{label}');" for label in VERTEX_LABELS]
    statements += [f"SELECT create_elabel('{graph_name}', '{label}');" for label in EDGE_LABELS]
    statements += [
        f'CREATE INDEX IF NOT EXISTS {label.lower()}_properties_idx '
        f'ON {graph_name}."{label}" USING gin (properties);'
        for label in VERTEX_LABELS
    ]
    return statements


async def setup_graph() -> None:
    """Create the AGE extension, graph, labels and indexes."""
    settings = get_settings()
    graph_name = settings.age_graph_name

    logging.info(
        "Connecting to %s:%s/%s...",
        settings.postgres_host,
        settings.postgres_port,
        settings.postgres_db,
    )
    conn = await asyncpg.connect(
        user=settings.postgres_user,
        password=settings.postgres_password,
        host=settings.postgres_host,
        port=settings.postgres_port,
        database=settings.postgres_db,
    )

    try:
        _ = await conn.execute("CREATE EXTENSION IF NOT EXISTS age;")
        _ = await conn.execute("LOAD 'age';")
        _ = await conn.execute("SET search_path = ag_catalog, '$user', public;")

        graph_exists = await conn.fetchval(
            "SELECT 1 FROM ag_graph WHERE name = $1;", graph_name
        )
        if not graph_exists:
            _ = await conn.execute(f"SELECT create_graph('{graph_name}');")
            logging.info("Created graph %s", graph_name)

        statements = schema_statements(graph_name)
        failed_commands = 0
        for i, statement in enumerate(statements, 1):
            try:
                logging.info("Executing statement %d/%d: %s", i, len(statements), statement)
                _ = await conn.execute(statement)
            except asyncpg.PostgresError as e:
                logging.error("Statement %d failed: %s", i, e)
                failed_commands += 1

        if failed_commands > 0:
            logging.warning(
                "%d statements failed. This may be expected if the labels already exist.",
                failed_commands,
            )
    finally:
        logging.info("Closing PostgreSQL connection.")
        await conn.close()


if __name__ == "__main__":
    asyncio.run(setup_graph())
