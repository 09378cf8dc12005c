"""Tests for MergeRelationshipsUseCaseImpl."""

import asyncio
from unittest.mock import AsyncMock

import pytest

from app.features.entities.dtos import MergeRelationshipsRequest
from app.features.entities.errors import EntityNotFoundError, ValidationError
from app.features.entities.repositories import MemoryGraphStore
from app.features.entities.repositories.protocols import GraphStore
from app.features.entities.usecases import MergeRelationshipsUseCaseImpl


@pytest.fixture
def use_case(memory_store: MemoryGraphStore) -> MergeRelationshipsUseCaseImpl:
    """Create a MergeRelationshipsUseCaseImpl over the memory store."""
    return MergeRelationshipsUseCaseImpl(repository=memory_store)


async def seed(store: MemoryGraphStore, *entity_ids: str) -> None:
    for entity_id in entity_ids:
        _ = await store.create_or_touch_entity(
            entity_id, entity_id.lower(), entity_id, "person", {}, "unit-0"
        )


def merge_request(*items: dict[str, object]) -> MergeRelationshipsRequest:
    return MergeRelationshipsRequest.model_validate({"relationships": list(items)})


def edge(weight: int = 1, unit_ref: str = "unit-1") -> dict[str, object]:
    return {
        "subject_id": "A",
        "predicate": "works_with",
        "object_id": "B",
        "properties": {"weight": weight},
        "unit_ref": unit_ref,
    }


class TestMergeRelationships:
    """Tests for idempotent relationship batches."""

    async def test_replayed_batch_updates_in_place(
        self, memory_store: MemoryGraphStore, use_case: MergeRelationshipsUseCaseImpl
    ) -> None:
        await seed(memory_store, "A", "B")

        first = await use_case.execute(merge_request(edge(1)))
        second = await use_case.execute(merge_request(edge(2)))

        assert (first.count, first.created, first.updated) == (1, 1, 0)
        assert (second.count, second.created, second.updated) == (1, 0, 1)
        assert memory_store.relationship_count() == 1
        views = await memory_store.get_relationships("A")
        assert views is not None
        assert views[0].properties == {"weight": 2}

    async def test_concurrent_merges_converge_to_one_edge(
        self, memory_store: MemoryGraphStore, use_case: MergeRelationshipsUseCaseImpl
    ) -> None:
        await seed(memory_store, "A", "B")

        responses = await asyncio.gather(
            *(use_case.execute(merge_request(edge(n))) for n in range(5))
        )

        assert sum(r.created for r in responses) == 1
        assert sum(r.updated for r in responses) == 4
        assert memory_store.relationship_count() == 1

    async def test_missing_endpoint_rejects_the_batch(
        self, memory_store: MemoryGraphStore, use_case: MergeRelationshipsUseCaseImpl
    ) -> None:
        await seed(memory_store, "A")

        with pytest.raises(EntityNotFoundError):
            _ = await use_case.execute(merge_request(edge()))

        assert memory_store.relationship_count() == 0

    async def test_blank_field_is_rejected_before_store_access(self) -> None:
        repository = AsyncMock(spec=GraphStore)
        use_case = MergeRelationshipsUseCaseImpl(repository=repository)

        with pytest.raises(ValidationError) as exc_info:
            _ = await use_case.execute(merge_request(edge(unit_ref=" ")))

        assert exc_info.value.details == {"index": 0, "fields": ["unit_ref"]}
        assert repository.mock_calls == []

    async def test_empty_batch_is_rejected(self) -> None:
        repository = AsyncMock(spec=GraphStore)
        use_case = MergeRelationshipsUseCaseImpl(repository=repository)

        with pytest.raises(ValidationError):
            _ = await use_case.execute(merge_request())

        assert repository.mock_calls == []
