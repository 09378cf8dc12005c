"""In-process implementation of the graph store protocol.

State lives in plain dicts guarded by an asyncio.Lock. Reads yield to the
event loop before answering so concurrent callers interleave the way they
would against a networked store, which keeps the optimistic retry path
honest under test.
"""

import asyncio
import copy
import logging

from typing_extensions import override

from app.features.entities.errors import EntityNotFoundError, WriteConflictError
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


def _link_unit(node: Entity, unit_ref: str) -> None:
    if unit_ref not in node.provenance_refs:
        node.provenance_refs.append(unit_ref)


def _merge_key(relationship: Relationship) -> tuple[str, str, str, str]:
    return (
        relationship.subject_id,
        relationship.predicate,
        relationship.object_id,
        relationship.provenance_ref,
    )


class MemoryGraphStore(GraphStore):
    """Graph store held in process memory."""

    def __init__(self, read_delay: float = 0.0):
        """Initialize an empty store.

        Args:
            read_delay: Seconds each read waits before answering. Zero still
                        yields once to the event loop.
        """
        self.read_delay: float = read_delay
        self._nodes: dict[str, Entity] = {}
        self._relationships: list[Relationship] = []
        self._lock: asyncio.Lock = asyncio.Lock()

    async def _io(self) -> None:
        await asyncio.sleep(self.read_delay)

    @override
    async def get_entity(self, entity_id: str) -> Entity | None:
        await self._io()
        node = self._nodes.get(entity_id)
        return node.model_copy(deep=True) if node else None

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
        async with self._lock:
            now = utc_now()
            node = self._nodes.get(entity_id)

            if node is None:
                node = Entity(
                    id=entity_id,
                    code=code,
                    label=label,
                    kind=kind,
                    properties=copy.deepcopy(properties),
                    creator_ref=unit_ref,
                    version=0,
                    first_seen=now,
                    last_updated=now,
                    provenance_refs=[unit_ref],
                )
                self._nodes[entity_id] = node
                return {"entity": node.model_copy(deep=True), "created": True}

            merged = overlay_properties(node.properties, copy.deepcopy(properties)).merged
            if merged != node.properties:
                node.properties = merged
                node.version += 1
            node.code = code
            node.label = label
            node.last_updated = now
            _link_unit(node, unit_ref)
            return {"entity": node.model_copy(deep=True), "created": False}

    @override
    async def conditional_update_properties(
        self,
        entity_id: str,
        expected_version: int,
        properties: PropertyMap,
        unit_ref: str,
    ) -> bool:
        async with self._lock:
            node = self._nodes.get(entity_id)
            if node is None or node.version != expected_version:
                return False
            node.properties = copy.deepcopy(properties)
            node.version += 1
            node.last_updated = utc_now()
            _link_unit(node, unit_ref)
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
        async with self._lock:
            node = self._nodes.get(entity_id)
            if node is None:
                return UpdateOutcome.NOT_FOUND
            if require_kind is not None and node.kind != require_kind:
                return UpdateOutcome.PRECONDITION_FAILED
            if kind is not None:
                node.kind = kind
            if label is not None:
                node.label = label
            node.properties = copy.deepcopy(properties)
            node.version += 1
            node.last_updated = utc_now()
            _link_unit(node, unit_ref)
            return UpdateOutcome.UPDATED

    @override
    async def touch_entity(self, entity_id: str, unit_ref: str) -> bool:
        async with self._lock:
            node = self._nodes.get(entity_id)
            if node is None:
                return False
            node.last_updated = utc_now()
            _link_unit(node, unit_ref)
            return True

    def _retarget_relationship(
        self, relationship: Relationship, from_id: str, to_id: str
    ) -> Relationship:
        """Copy of ``relationship`` with every ``from_id`` endpoint moved to ``to_id``."""
        return relationship.model_copy(
            update={
                "subject_id": to_id
                if relationship.subject_id == from_id
                else relationship.subject_id,
                "object_id": to_id
                if relationship.object_id == from_id
                else relationship.object_id,
            },
            deep=True,
        )

    @override
    async def transfer_and_delete(
        self,
        from_id: str,
        to_id: str,
        policy: PropertyConflictPolicy = PropertyConflictPolicy.DISCARD,
    ) -> TransferResult:
        async with self._lock:
            source = self._nodes.get(from_id)
            target = self._nodes.get(to_id)
            if source is None:
                raise WriteConflictError(from_id, "source vanished before transfer")
            if target is None:
                raise WriteConflictError(to_id, "target vanished before transfer")

            # Stage everything on copies; live state changes only at commit.
            staged_relationships: list[Relationship] = []
            transferred = 0
            for relationship in self._relationships:
                if from_id in (relationship.subject_id, relationship.object_id):
                    staged_relationships.append(
                        self._retarget_relationship(relationship, from_id, to_id)
                    )
                    transferred += 1
                else:
                    staged_relationships.append(relationship)

            staged_target = target.model_copy(deep=True)
            merge = apply_policy(target.properties, source.properties, policy)
            if merge.merged != target.properties:
                staged_target.properties = merge.merged
                staged_target.version += 1

            units_added = [
                unit for unit in source.provenance_refs if unit not in target.provenance_refs
            ]
            staged_target.provenance_refs = [*target.provenance_refs, *units_added]
            staged_target.last_updated = utc_now()

            self._relationships = staged_relationships
            self._nodes[to_id] = staged_target
            del self._nodes[from_id]
            logger.debug(
                "Transferred %d relationships from %s to %s", transferred, from_id, to_id
            )

            return {
                "relationships_transferred": transferred,
                "properties_transferred": merge.keys_added,
                "provenance_units_added": units_added,
            }

    @override
    async def delete_entity(self, entity_id: str) -> int | None:
        async with self._lock:
            if entity_id not in self._nodes:
                return None
            kept = [
                r
                for r in self._relationships
                if entity_id not in (r.subject_id, r.object_id)
            ]
            removed = len(self._relationships) - len(kept)
            self._relationships = kept
            del self._nodes[entity_id]
            return removed

    @override
    async def create_relationships(self, relationships: list[Relationship]) -> int:
        async with self._lock:
            endpoints = {r.subject_id for r in relationships} | {
                r.object_id for r in relationships
            }
            missing = sorted(endpoints - self._nodes.keys())
            if missing:
                raise EntityNotFoundError(missing)
            self._relationships.extend(r.model_copy(deep=True) for r in relationships)
            return len(relationships)

    @override
    async def merge_relationships(
        self, relationships: list[Relationship]
    ) -> RelationshipMergeResult:
        async with self._lock:
            endpoints = {r.subject_id for r in relationships} | {
                r.object_id for r in relationships
            }
            missing = sorted(endpoints - self._nodes.keys())
            if missing:
                raise EntityNotFoundError(missing)

            created = 0
            updated = 0
            for incoming in relationships:
                existing = next(
                    (r for r in self._relationships if _merge_key(r) == _merge_key(incoming)),
                    None,
                )
                if existing is None:
                    self._relationships.append(incoming.model_copy(deep=True))
                    created += 1
                else:
                    existing.properties = copy.deepcopy(incoming.properties)
                    existing.last_updated = utc_now()
                    updated += 1
            return {"created": created, "updated": updated}

    @override
    async def get_relationships(self, entity_id: str) -> list[RelationshipView] | None:
        await self._io()
        if entity_id not in self._nodes:
            return None

        views: list[RelationshipView] = []
        for relationship in self._relationships:
            if relationship.subject_id == entity_id:
                views.append(self._view(relationship, "outgoing", relationship.object_id))
            if relationship.object_id == entity_id:
                views.append(self._view(relationship, "incoming", relationship.subject_id))
        return views

    def _view(
        self, relationship: Relationship, direction: str, other_id: str
    ) -> RelationshipView:
        other = self._nodes.get(other_id)
        return RelationshipView(
            direction=direction,  # pyright: ignore[reportArgumentType]
            predicate=relationship.predicate,
            other_id=other_id,
            other_code=other.code if other else None,
            other_label=other.label if other else None,
            other_kind=other.kind if other else None,
            properties=copy.deepcopy(relationship.properties),
            provenance_ref=relationship.provenance_ref,
            created_at=relationship.created_at,
            last_updated=relationship.last_updated,
        )

    def relationship_count(self) -> int:
        """Number of relationships currently stored."""
        return len(self._relationships)
