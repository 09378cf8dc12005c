"""Tests for CreateEntityUseCaseImpl."""

import asyncio

import pytest

from app.features.entities.dtos import CreateEntityRequest
from app.features.entities.errors import ValidationError
from app.features.entities.repositories import MemoryGraphStore
from app.features.entities.usecases import CreateEntityUseCaseImpl


@pytest.fixture
def use_case(memory_store: MemoryGraphStore) -> CreateEntityUseCaseImpl:
    """Create a CreateEntityUseCaseImpl over the memory store."""
    return CreateEntityUseCaseImpl(repository=memory_store)


def make_request(unit_ref: str = "unit-1", **properties: object) -> CreateEntityRequest:
    return CreateEntityRequest(
        canonical_id="E1",
        code="e1",
        label="Entity One",
        kind="person",
        properties=dict(properties),
        unit_ref=unit_ref,
    )


class TestCreateEntityUseCase:
    """Tests for idempotent entity creation."""

    async def test_first_call_creates(self, use_case: CreateEntityUseCaseImpl) -> None:
        response = await use_case.execute(make_request(role="researcher"))

        assert response.success is True
        assert response.created is True
        assert response.entity.canonical_id == "E1"
        assert response.entity.properties == {"role": "researcher"}
        assert response.entity.creator_ref == "unit-1"

    async def test_repeated_call_touches(self, use_case: CreateEntityUseCaseImpl) -> None:
        _ = await use_case.execute(make_request(a=1))

        response = await use_case.execute(make_request("unit-2", b=2))

        assert response.created is False
        assert response.entity.properties == {"a": 1, "b": 2}
        assert response.entity.creator_ref == "unit-1"
        assert response.entity.provenance_refs == ["unit-1", "unit-2"]

    async def test_concurrent_creates_converge_on_one_entity(
        self, memory_store: MemoryGraphStore, use_case: CreateEntityUseCaseImpl
    ) -> None:
        requests = [make_request(f"unit-{n}", **{f"key{n}": n}) for n in range(10)]

        responses = await asyncio.gather(*(use_case.execute(r) for r in requests))

        created = [r for r in responses if r.created]
        assert len(created) == 1
        first_creator = created[0].entity.creator_ref

        entity = await memory_store.get_entity("E1")
        assert entity is not None
        assert entity.creator_ref == first_creator
        assert entity.properties == {f"key{n}": n for n in range(10)}
        assert sorted(entity.provenance_refs) == sorted(f"unit-{n}" for n in range(10))

    async def test_blank_fields_are_rejected_before_store_access(
        self, memory_store: MemoryGraphStore, use_case: CreateEntityUseCaseImpl
    ) -> None:
        request = make_request()
        request.canonical_id = "  "
        request.unit_ref = ""

        with pytest.raises(ValidationError) as exc_info:
            _ = await use_case.execute(request)

        assert exc_info.value.details == {"fields": ["canonical_id", "unit_ref"]}
        assert await memory_store.get_entity("  ") is None
