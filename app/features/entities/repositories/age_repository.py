"""PostgreSQL AGE implementation of the graph store protocol.

Graph layout:

* ``(:Entity {id, code, label, kind, properties, creator_ref, version,
  first_seen, last_updated})`` with ``properties`` stored as a JSON string
* ``(:Entity)-[:RELATIONSHIP {predicate, properties, provenance_ref,
  created_at}]->(:Entity)``
* ``(:Entity)-[:EXTRACTED_FROM {extracted_at}]->(:Unit {id})`` provenance

AGE has no uniqueness constraints, so every write runs inside one
transaction that first takes a transaction-scoped advisory lock on each
entity id it touches. Locks are taken in sorted order, which serializes
writers per node without lock-order deadlocks.
"""

import json
import logging
import re
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Any, cast

import asyncpg
from typing_extensions import override

from app.features.entities.errors import (
    EntityNotFoundError,
    StoreUnavailableError,
    WriteConflictError,
)
from app.features.entities.models import (
    Entity,
    PropertyMap,
    Relationship,
    RelationshipView,
    utc_now,
)
from app.features.entities.repositories.protocols import (
    GraphStore,
    RelationshipMergeResult,
    TransferResult,
    UpdateOutcome,
    UpsertEntityResult,
)
from app.features.entities.services.property_merge import (
    PropertyConflictPolicy,
    apply_policy,
    overlay_properties,
)

logger = logging.getLogger(__name__)

_TRANSIENT_ERRORS = (
    asyncpg.exceptions.SerializationError,
    asyncpg.exceptions.DeadlockDetectedError,
)
_TRANSPORT_ERRORS = (
    OSError,
    asyncpg.exceptions.PostgresConnectionError,
    asyncpg.exceptions.InterfaceError,
)


class AgeGraphStore(GraphStore):
    """PostgreSQL AGE implementation of the graph store."""

    pool: asyncpg.Pool
    graph_name: str

    def __init__(self, pool: asyncpg.Pool, graph_name: str):
        """Initialize the store with a database connection pool and graph name."""
        self.pool = pool
        self.graph_name = graph_name
        if not graph_name:
            raise ValueError("graph_name must be provided")

    @staticmethod
    def _escape_cypher_string(value: str) -> str:
        """Escape a value for use inside a single-quoted Cypher string literal.

        ``$`` is written as a unicode escape so the literal can never close
        the ``$$`` quoting of the surrounding SQL.
        """
        return (
            value.replace("\\", "\\\\").replace("'", "\\'").replace("$", "\\u0024")
        )

    def _literal(self, value: str) -> str:
        return f"'{self._escape_cypher_string(value)}'"

    def _json_literal(self, value: PropertyMap) -> str:
        return self._literal(json.dumps(value, default=str))

    @staticmethod
    def _clean_agtype_string(agtype_str: str) -> str:
        """Clean AGE agtype string by removing type annotations like ::vertex and ::edge."""
        return re.sub(r"::(vertex|edge|path)", "", agtype_str)

    def _parse_agtype(self, value: str | None) -> Any:  # pyright: ignore[reportExplicitAny, reportAny]
        if value is None:
            return None
        return json.loads(self._clean_agtype_string(value))  # pyright: ignore[reportAny]

    async def _setup_age_connection(self, conn: asyncpg.Connection) -> None:
        """Setup AGE extension and search path for a connection."""
        _ = await conn.execute("LOAD 'age';")
        _ = await conn.execute("SET search_path = ag_catalog, '$user', public;")

    @asynccontextmanager
    async def _transaction(self, *lock_ids: str) -> AsyncIterator[asyncpg.Connection]:
        """Open a transaction holding advisory locks on the given ids.

        Raises:
            WriteConflictError: On serialization failure or deadlock
            StoreUnavailableError: On connection-level failures
        """
        try:
            async with self.pool.acquire() as conn:
                conn = cast(asyncpg.Connection, conn)
                async with conn.transaction():
                    await self._setup_age_connection(conn)
                    for lock_id in sorted(set(lock_ids)):
                        _ = await conn.execute(
                            "SELECT pg_advisory_xact_lock(hashtextextended($1, 0));",
                            f"entity:{lock_id}",
                        )
                    yield conn
        except _TRANSIENT_ERRORS as e:
            conflict_id = lock_ids[0] if lock_ids else self.graph_name
            raise WriteConflictError(conflict_id, type(e).__name__) from e
        except _TRANSPORT_ERRORS as e:
            logger.warning("Graph store transport failure: %s", e)
            raise StoreUnavailableError(f"Graph store unavailable: {e}") from e

    async def _execute_cypher(
        self,
        conn: asyncpg.Connection,
        cypher_query: str,
        as_clause: str = "as (result agtype)",
        fetch_mode: str = "row",
    ) -> asyncpg.Record | list[asyncpg.Record] | str | None:
        """
        Execute a Cypher query on an open connection by wrapping it in the necessary SQL.

        Args:
            conn: Connection already prepared by _transaction.
            cypher_query: The raw Cypher query string.
            as_clause: The complete AS clause string, e.g., "as (result agtype)".
            fetch_mode: "row" for fetchrow, "all" for fetch, "none" for execute.

        Returns:
            Query result based on fetch_mode.
        """
        if not as_clause.strip().lower().startswith("as"):
            raise ValueError("The 'as_clause' must start with 'AS'.")

        query = f"""
            SELECT * FROM cypher('{self.graph_name}', $${cypher_query}$$)
            {as_clause};
        """

        if fetch_mode == "row":
            return await conn.fetchrow(query)
        elif fetch_mode == "all":
            return await conn.fetch(query)
        else:  # "none"
            return await conn.execute(query)

    async def _fetch_rows(
        self, conn: asyncpg.Connection, cypher_query: str, as_clause: str
    ) -> list[asyncpg.Record]:
        records = await self._execute_cypher(conn, cypher_query, as_clause, "all")
        return cast(list[asyncpg.Record], records)

    async def _fetch_count(self, conn: asyncpg.Connection, cypher_query: str) -> int:
        record = await self._execute_cypher(
            conn, cypher_query, "as (total agtype)", "row"
        )
        if not record:
            return 0
        record = cast(asyncpg.Record, record)
        return int(cast(str, record["total"]))

    def _entity_from_agtype(self, vertex: str, units: str | None) -> Entity:
        vertex_map = cast(dict[str, Any], self._parse_agtype(vertex))  # pyright: ignore[reportExplicitAny]
        props = cast(dict[str, Any], vertex_map["properties"])  # pyright: ignore[reportExplicitAny]
        unit_ids = cast(list[str], self._parse_agtype(units) or [])
        return Entity(
            id=props["id"],
            code=props.get("code", ""),
            label=props.get("label", ""),
            kind=props.get("kind", ""),
            properties=json.loads(props["properties"]) if props.get("properties") else {},
            creator_ref=props.get("creator_ref"),
            version=int(props.get("version", 0)),
            first_seen=datetime.fromisoformat(props["first_seen"]),
            last_updated=datetime.fromisoformat(props["last_updated"]),
            provenance_refs=sorted(unit_ids),
        )

    async def _fetch_entity(self, conn: asyncpg.Connection, entity_id: str) -> Entity | None:
        cypher_query = f"""
        MATCH (e:Entity {{id: {self._literal(entity_id)}}})
        OPTIONAL MATCH (e)-[:EXTRACTED_FROM]->(u:Unit)
        RETURN e, collect(u.id)
        """
        record = await self._execute_cypher(
            conn, cypher_query, "as (entity agtype, units agtype)", "row"
        )
        if not record:
            return None
        record = cast(asyncpg.Record, record)
        return self._entity_from_agtype(
            cast(str, record["entity"]), cast(str | None, record["units"])
        )

    async def _link_unit(
        self, conn: asyncpg.Connection, entity_id: str, unit_ref: str
    ) -> bool:
        """Create the EXTRACTED_FROM edge (and the Unit) unless it already exists."""
        _ = await conn.execute(
            "SELECT pg_advisory_xact_lock(hashtextextended($1, 0));",
            f"unit:{unit_ref}",
        )
        unit = self._literal(unit_ref)
        entity = self._literal(entity_id)

        linked = await self._fetch_count(
            conn,
            f"""
            MATCH (e:Entity {{id: {entity}}})-[:EXTRACTED_FROM]->(u:Unit {{id: {unit}}})
            RETURN count(u)
            """,
        )
        if linked:
            return False

        unit_exists = await self._fetch_count(
            conn, f"MATCH (u:Unit {{id: {unit}}}) RETURN count(u)"
        )
        if not unit_exists:
            _ = await self._execute_cypher(
                conn,
                f"CREATE (u:Unit {{id: {unit}}}) RETURN u",
                fetch_mode="none",
            )

        _ = await self._execute_cypher(
            conn,
            f"""
            MATCH (e:Entity {{id: {entity}}}), (u:Unit {{id: {unit}}})
            CREATE (e)-[r:EXTRACTED_FROM {{extracted_at: '{utc_now().isoformat()}'}}]->(u)
            RETURN r
            """,
            fetch_mode="none",
        )
        return True

    @override
    async def get_entity(self, entity_id: str) -> Entity | None:
        async with self._transaction() as conn:
            return await self._fetch_entity(conn, entity_id)

    @override
    async def create_or_touch_entity(
        self,
        entity_id: str,
        code: str,
        label: str,
        kind: str,
        properties: PropertyMap,
        unit_ref: str,
    ) -> UpsertEntityResult:
        async with self._transaction(entity_id) as conn:
            now = utc_now().isoformat()
            existing = await self._fetch_entity(conn, entity_id)

            if existing is None:
                cypher_query = f"""
                CREATE (e:Entity {{
                    id: {self._literal(entity_id)},
                    code: {self._literal(code)},
                    label: {self._literal(label)},
                    kind: {self._literal(kind)},
                    properties: {self._json_literal(properties)},
                    creator_ref: {self._literal(unit_ref)},
                    version: 0,
                    first_seen: '{now}',
                    last_updated: '{now}'
                }})
                RETURN e
                """
                created = True
            else:
                merged = overlay_properties(existing.properties, properties).merged
                version = (
                    existing.version + 1
                    if merged != existing.properties
                    else existing.version
                )
                cypher_query = f"""
                MATCH (e:Entity {{id: {self._literal(entity_id)}}})
                SET e.code = {self._literal(code)},
                    e.label = {self._literal(label)},
                    e.properties = {self._json_literal(merged)},
                    e.version = {version},
                    e.last_updated = '{now}'
                RETURN e
                """
                created = False

            _ = await self._execute_cypher(conn, cypher_query, fetch_mode="none")
            _ = await self._link_unit(conn, entity_id, unit_ref)

            entity = await self._fetch_entity(conn, entity_id)
            if entity is None:
                raise RuntimeError(
                    f"Failed to upsert entity '{entity_id}', it was not found afterwards."
                )
            return {"entity": entity, "created": created}

    @override
    async def conditional_update_properties(
        self,
        entity_id: str,
        expected_version: int,
        properties: PropertyMap,
        unit_ref: str,
    ) -> bool:
        cypher_query = f"""
        MATCH (e:Entity {{id: {self._literal(entity_id)}}})
        WHERE e.version = {int(expected_version)}
        SET e.properties = {self._json_literal(properties)},
            e.version = {int(expected_version) + 1},
            e.last_updated = '{utc_now().isoformat()}'
        RETURN e.version
        """
        try:
            async with self._transaction(entity_id) as conn:
                record = await self._execute_cypher(conn, cypher_query)
                if record is None:
                    return False
                _ = await self._link_unit(conn, entity_id, unit_ref)
        except WriteConflictError:
            return False
        return True

    @override
    async def update_entity(
        self,
        entity_id: str,
        *,
        kind: str | None,
        label: str | None,
        properties: PropertyMap,
        unit_ref: str,
        require_kind: str | None = None,
    ) -> UpdateOutcome:
        async with self._transaction(entity_id) as conn:
            existing = await self._fetch_entity(conn, entity_id)
            if existing is None:
                return UpdateOutcome.NOT_FOUND
            if require_kind is not None and existing.kind != require_kind:
                return UpdateOutcome.PRECONDITION_FAILED

            assignments = [
                f"e.properties = {self._json_literal(properties)}",
                f"e.version = {existing.version + 1}",
                f"e.last_updated = '{utc_now().isoformat()}'",
            ]
            if kind is not None:
                assignments.append(f"e.kind = {self._literal(kind)}")
            if label is not None:
                assignments.append(f"e.label = {self._literal(label)}")

            cypher_query = f"""
            MATCH (e:Entity {{id: {self._literal(entity_id)}}})
            SET {", ".join(assignments)}
            RETURN e
            """
            _ = await self._execute_cypher(conn, cypher_query, fetch_mode="none")
            _ = await self._link_unit(conn, entity_id, unit_ref)
            return UpdateOutcome.UPDATED

    @override
    async def touch_entity(self, entity_id: str, unit_ref: str) -> bool:
        cypher_query = f"""
        MATCH (e:Entity {{id: {self._literal(entity_id)}}})
        SET e.last_updated = '{utc_now().isoformat()}'
        RETURN e.id
        """
        async with self._transaction(entity_id) as conn:
            record = await self._execute_cypher(conn, cypher_query)
            if record is None:
                return False
            _ = await self._link_unit(conn, entity_id, unit_ref)
            return True

    def _copy_relationship_query(self, match: str, create: str) -> str:
        return f"""
        {match}
        CREATE {create}
        RETURN count(*)
        """

    @override
    async def transfer_and_delete(
        self,
        from_id: str,
        to_id: str,
        policy: PropertyConflictPolicy = PropertyConflictPolicy.DISCARD,
    ) -> TransferResult:
        source_id = self._literal(from_id)
        target_id = self._literal(to_id)
        copied_props = (
            "{predicate: r.predicate, properties: r.properties, "
            "provenance_ref: r.provenance_ref, created_at: r.created_at, "
            "last_updated: r.last_updated}"
        )

        async with self._transaction(from_id, to_id) as conn:
            source = await self._fetch_entity(conn, from_id)
            target = await self._fetch_entity(conn, to_id)
            if source is None:
                raise WriteConflictError(from_id, "source vanished before transfer")
            if target is None:
                raise WriteConflictError(to_id, "target vanished before transfer")

            # Outgoing edges, self-loops included: d->o becomes c->o, d->d becomes c->c
            outgoing = await self._fetch_count(
                conn,
                self._copy_relationship_query(
                    f"""
                    MATCH (d:Entity {{id: {source_id}}})-[r:RELATIONSHIP]->(o:Entity)
                    WHERE o.id <> {source_id}
                    MATCH (c:Entity {{id: {target_id}}})
                    """,
                    f"(c)-[:RELATIONSHIP {copied_props}]->(o)",
                ),
            )
            loops = await self._fetch_count(
                conn,
                self._copy_relationship_query(
                    f"""
                    MATCH (d:Entity {{id: {source_id}}})-[r:RELATIONSHIP]->(o:Entity)
                    WHERE o.id = {source_id}
                    MATCH (c:Entity {{id: {target_id}}})
                    """,
                    f"(c)-[:RELATIONSHIP {copied_props}]->(c)",
                ),
            )
            incoming = await self._fetch_count(
                conn,
                self._copy_relationship_query(
                    f"""
                    MATCH (s:Entity)-[r:RELATIONSHIP]->(d:Entity {{id: {source_id}}})
                    WHERE s.id <> {source_id}
                    MATCH (c:Entity {{id: {target_id}}})
                    """,
                    f"(s)-[:RELATIONSHIP {copied_props}]->(c)",
                ),
            )

            units_added: list[str] = []
            for unit_ref in source.provenance_refs:
                if unit_ref in target.provenance_refs:
                    continue
                if await self._link_unit(conn, to_id, unit_ref):
                    units_added.append(unit_ref)

            merge = apply_policy(target.properties, source.properties, policy)
            version = (
                target.version + 1
                if merge.merged != target.properties
                else target.version
            )
            _ = await self._execute_cypher(
                conn,
                f"""
                MATCH (c:Entity {{id: {target_id}}})
                SET c.properties = {self._json_literal(merge.merged)},
                    c.version = {version},
                    c.last_updated = '{utc_now().isoformat()}'
                RETURN c
                """,
                fetch_mode="none",
            )

            _ = await self._execute_cypher(
                conn,
                f"""
                MATCH (d:Entity {{id: {source_id}}})
                DETACH DELETE d
                RETURN true
                """,
                fetch_mode="none",
            )

            return {
                "relationships_transferred": outgoing + loops + incoming,
                "properties_transferred": merge.keys_added,
                "provenance_units_added": units_added,
            }

    @override
    async def delete_entity(self, entity_id: str) -> int | None:
        entity = self._literal(entity_id)
        async with self._transaction(entity_id) as conn:
            exists = await self._fetch_count(
                conn, f"MATCH (e:Entity {{id: {entity}}}) RETURN count(e)"
            )
            if not exists:
                return None

            outgoing = await self._fetch_count(
                conn,
                f"MATCH (e:Entity {{id: {entity}}})-[r:RELATIONSHIP]->() RETURN count(r)",
            )
            incoming = await self._fetch_count(
                conn,
                f"""
                MATCH (s:Entity)-[r:RELATIONSHIP]->(e:Entity {{id: {entity}}})
                WHERE s.id <> {entity}
                RETURN count(r)
                """,
            )

            _ = await self._execute_cypher(
                conn,
                f"""
                MATCH (e:Entity {{id: {entity}}})
                DETACH DELETE e
                RETURN true
                """,
                fetch_mode="none",
            )
            return outgoing + incoming

    async def _require_entities(
        self, conn: asyncpg.Connection, entity_ids: list[str]
    ) -> None:
        """Raise EntityNotFoundError listing whichever of ``entity_ids`` are missing."""
        id_list = ", ".join(self._literal(i) for i in entity_ids)
        rows = await self._fetch_rows(
            conn,
            f"MATCH (e:Entity) WHERE e.id IN [{id_list}] RETURN e.id",
            "as (id agtype)",
        )
        found = {cast(str, self._parse_agtype(cast(str, row["id"]))) for row in rows}
        missing = [i for i in entity_ids if i not in found]
        if missing:
            raise EntityNotFoundError(missing)

    async def _create_relationship(
        self, conn: asyncpg.Connection, relationship: Relationship
    ) -> None:
        _ = await self._execute_cypher(
            conn,
            f"""
            MATCH (s:Entity {{id: {self._literal(relationship.subject_id)}}}),
                  (o:Entity {{id: {self._literal(relationship.object_id)}}})
            CREATE (s)-[r:RELATIONSHIP {{
                predicate: {self._literal(relationship.predicate)},
                properties: {self._json_literal(relationship.properties)},
                provenance_ref: {self._literal(relationship.provenance_ref)},
                created_at: '{relationship.created_at.isoformat()}'
            }}]->(o)
            RETURN r
            """,
            fetch_mode="none",
        )

    @override
    async def create_relationships(self, relationships: list[Relationship]) -> int:
        endpoint_ids = sorted(
            {r.subject_id for r in relationships} | {r.object_id for r in relationships}
        )
        async with self._transaction(*endpoint_ids) as conn:
            await self._require_entities(conn, endpoint_ids)
            for relationship in relationships:
                await self._create_relationship(conn, relationship)
            return len(relationships)

    @override
    async def merge_relationships(
        self, relationships: list[Relationship]
    ) -> RelationshipMergeResult:
        endpoint_ids = sorted(
            {r.subject_id for r in relationships} | {r.object_id for r in relationships}
        )
        created = 0
        updated = 0
        async with self._transaction(*endpoint_ids) as conn:
            await self._require_entities(conn, endpoint_ids)
            for relationship in relationships:
                match = f"""
                MATCH (s:Entity {{id: {self._literal(relationship.subject_id)}}})
                      -[r:RELATIONSHIP]->
                      (o:Entity {{id: {self._literal(relationship.object_id)}}})
                WHERE r.predicate = {self._literal(relationship.predicate)}
                  AND r.provenance_ref = {self._literal(relationship.provenance_ref)}
                """
                existing = await self._fetch_count(conn, f"{match} RETURN count(r)")
                if not existing:
                    await self._create_relationship(conn, relationship)
                    created += 1
                    continue

                _ = await self._execute_cypher(
                    conn,
                    f"""
                    {match}
                    SET r.properties = {self._json_literal(relationship.properties)},
                        r.last_updated = '{utc_now().isoformat()}'
                    RETURN r
                    """,
                    fetch_mode="none",
                )
                updated += 1
        return {"created": created, "updated": updated}

    def _view_from_row(self, record: asyncpg.Record, direction: str) -> RelationshipView:
        edge = cast(dict[str, Any], self._parse_agtype(cast(str, record["rel"])))  # pyright: ignore[reportExplicitAny]
        other = cast(dict[str, Any], self._parse_agtype(cast(str, record["other"])))  # pyright: ignore[reportExplicitAny]
        edge_props = cast(dict[str, Any], edge["properties"])  # pyright: ignore[reportExplicitAny]
        other_props = cast(dict[str, Any], other["properties"])  # pyright: ignore[reportExplicitAny]
        return RelationshipView(
            direction=direction,  # pyright: ignore[reportArgumentType]
            predicate=edge_props["predicate"],
            other_id=other_props["id"],
            other_code=other_props.get("code"),
            other_label=other_props.get("label"),
            other_kind=other_props.get("kind"),
            properties=json.loads(edge_props["properties"])
            if edge_props.get("properties")
            else {},
            provenance_ref=edge_props.get("provenance_ref"),
            created_at=datetime.fromisoformat(edge_props["created_at"])
            if edge_props.get("created_at")
            else None,
            last_updated=datetime.fromisoformat(edge_props["last_updated"])
            if edge_props.get("last_updated")
            else None,
        )

    @override
    async def get_relationships(self, entity_id: str) -> list[RelationshipView] | None:
        entity = self._literal(entity_id)
        async with self._transaction() as conn:
            exists = await self._fetch_count(
                conn, f"MATCH (e:Entity {{id: {entity}}}) RETURN count(e)"
            )
            if not exists:
                return None

            outgoing = await self._fetch_rows(
                conn,
                f"MATCH (e:Entity {{id: {entity}}})-[r:RELATIONSHIP]->(o:Entity) RETURN r, o",
                "as (rel agtype, other agtype)",
            )
            incoming = await self._fetch_rows(
                conn,
                f"MATCH (s:Entity)-[r:RELATIONSHIP]->(e:Entity {{id: {entity}}}) RETURN r, s",
                "as (rel agtype, other agtype)",
            )

        return [self._view_from_row(row, "outgoing") for row in outgoing] + [
            self._view_from_row(row, "incoming") for row in incoming
        ]
