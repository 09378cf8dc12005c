"""Tests for AbsorbEntityUseCaseImpl."""

import asyncio
from unittest.mock import AsyncMock, patch

import pytest

from app.features.entities.dtos import AbsorbEntityRequest
from app.features.entities.errors import (
    SelfMergeRejectedError,
    SourceNotFoundError,
    TargetNotFoundError,
)
from app.features.entities.models import Relationship
from app.features.entities.repositories import MemoryGraphStore
from app.features.entities.repositories.protocols import GraphStore
from app.features.entities.services.optimistic_concurrency import (
    OptimisticConcurrencyController,
)
from app.features.entities.usecases import AbsorbEntityUseCaseImpl


@pytest.fixture
def use_case(
    memory_store: MemoryGraphStore, controller: OptimisticConcurrencyController
) -> AbsorbEntityUseCaseImpl:
    """Create an AbsorbEntityUseCaseImpl over the memory store."""
    return AbsorbEntityUseCaseImpl(repository=memory_store, controller=controller)


async def create(store: MemoryGraphStore, entity_id: str, **properties: object) -> None:
    _ = await store.create_or_touch_entity(
        entity_id, entity_id.lower(), entity_id, "person", dict(properties), f"unit-{entity_id}"
    )


def edge(subject_id: str, predicate: str, object_id: str) -> Relationship:
    return Relationship(
        subject_id=subject_id,
        predicate=predicate,
        object_id=object_id,
        provenance_ref="unit-rel",
    )


class TestAbsorbEntity:
    """Tests for a single absorption."""

    async def test_duplicate_is_folded_into_canonical(
        self, memory_store: MemoryGraphStore, use_case: AbsorbEntityUseCaseImpl
    ) -> None:
        await create(memory_store, "C", name="Ada", born=1815)
        await create(memory_store, "D", name="A. Lovelace", field="math")
        await create(memory_store, "X")
        _ = await memory_store.create_relationships(
            [edge("D", "wrote", "X"), edge("X", "cites", "D")]
        )

        response = await use_case.execute(AbsorbEntityRequest(source_id="D", target_id="C"))

        assert response.success is True
        assert response.merged.relationships_transferred == 2
        assert response.merged.properties_transferred == 1
        assert response.merged.provenance_units_added == ["unit-D"]

        assert await memory_store.get_entity("D") is None
        canonical = await memory_store.get_entity("C")
        assert canonical is not None
        assert canonical.properties == {"name": "Ada", "born": 1815, "field": "math"}
        assert canonical.creator_ref == "unit-C"

        views = await memory_store.get_relationships("C")
        assert views is not None
        assert {(v.direction, v.predicate, v.other_id) for v in views} == {
            ("outgoing", "wrote", "X"),
            ("incoming", "cites", "X"),
        }

    async def test_induced_failure_leaves_everything_untouched(
        self, memory_store: MemoryGraphStore, use_case: AbsorbEntityUseCaseImpl
    ) -> None:
        await create(memory_store, "C", name="Ada")
        await create(memory_store, "D", extra=1)
        await create(memory_store, "X")
        _ = await memory_store.create_relationships(
            [edge("D", "a", "X"), edge("D", "b", "X"), edge("X", "c", "D")]
        )
        before_c = await memory_store.get_entity("C")
        before_d = await memory_store.get_relationships("D")
        retarget = memory_store._retarget_relationship  # pyright: ignore[reportPrivateUsage]
        calls = 0

        def fail_on_second(relationship: Relationship, from_id: str, to_id: str) -> Relationship:
            nonlocal calls
            calls += 1
            if calls == 2:
                raise RuntimeError("store crashed mid-transfer")
            return retarget(relationship, from_id, to_id)

        with patch.object(memory_store, "_retarget_relationship", side_effect=fail_on_second):
            with pytest.raises(RuntimeError):
                _ = await use_case.execute(
                    AbsorbEntityRequest(source_id="D", target_id="C")
                )

        assert await memory_store.get_entity("D") is not None
        assert await memory_store.get_entity("C") == before_c
        assert await memory_store.get_relationships("D") == before_d
        assert memory_store.relationship_count() == 3

    async def test_self_merge_is_rejected_without_store_access(self) -> None:
        repository = AsyncMock(spec=GraphStore)
        use_case = AbsorbEntityUseCaseImpl(repository=repository)

        with pytest.raises(SelfMergeRejectedError) as exc_info:
            _ = await use_case.execute(AbsorbEntityRequest(source_id="X", target_id="X"))

        assert exc_info.value.status_code == 400
        assert repository.mock_calls == []

    async def test_missing_target(
        self, memory_store: MemoryGraphStore, use_case: AbsorbEntityUseCaseImpl
    ) -> None:
        await create(memory_store, "D")

        with pytest.raises(TargetNotFoundError):
            _ = await use_case.execute(AbsorbEntityRequest(source_id="D", target_id="C"))

        assert await memory_store.get_entity("D") is not None

    async def test_missing_source(
        self, memory_store: MemoryGraphStore, use_case: AbsorbEntityUseCaseImpl
    ) -> None:
        await create(memory_store, "C")

        with pytest.raises(SourceNotFoundError) as exc_info:
            _ = await use_case.execute(AbsorbEntityRequest(source_id="D", target_id="C"))

        assert exc_info.value.details == {"source_id": "D"}

    async def test_target_reported_first_when_both_missing(
        self, use_case: AbsorbEntityUseCaseImpl
    ) -> None:
        with pytest.raises(TargetNotFoundError):
            _ = await use_case.execute(AbsorbEntityRequest(source_id="D", target_id="C"))

    async def test_second_absorption_of_same_source_reports_source_not_found(
        self, memory_store: MemoryGraphStore, use_case: AbsorbEntityUseCaseImpl
    ) -> None:
        await create(memory_store, "C")
        await create(memory_store, "D")
        _ = await use_case.execute(AbsorbEntityRequest(source_id="D", target_id="C"))

        with pytest.raises(SourceNotFoundError):
            _ = await use_case.execute(AbsorbEntityRequest(source_id="D", target_id="C"))


class TestAbsorptionRaces:
    """Tests for concurrent absorptions over overlapping ids."""

    async def test_cycle_keeps_a_survivor_and_every_relationship(
        self, memory_store: MemoryGraphStore, use_case: AbsorbEntityUseCaseImpl
    ) -> None:
        for entity_id in ("A", "B", "C", "X"):
            await create(memory_store, entity_id)
        _ = await memory_store.create_relationships(
            [
                edge("A", "p", "X"),
                edge("B", "p", "X"),
                edge("X", "p", "C"),
                edge("A", "q", "B"),
                edge("C", "q", "A"),
            ]
        )
        total_before = memory_store.relationship_count()

        results = await asyncio.gather(
            use_case.execute(AbsorbEntityRequest(source_id="A", target_id="B")),
            use_case.execute(AbsorbEntityRequest(source_id="B", target_id="C")),
            use_case.execute(AbsorbEntityRequest(source_id="C", target_id="A")),
            return_exceptions=True,
        )

        for result in results:
            if isinstance(result, BaseException):
                assert isinstance(result, (SourceNotFoundError, TargetNotFoundError))

        survivors = [
            entity_id
            for entity_id in ("A", "B", "C")
            if await memory_store.get_entity(entity_id) is not None
        ]
        assert 1 <= len(survivors) <= 2

        assert memory_store.relationship_count() == total_before
        live = set(survivors) | {"X"}
        referenced = 0
        for entity_id in live:
            views = await memory_store.get_relationships(entity_id)
            assert views is not None
            assert all(view.other_id in live for view in views)
            referenced += sum(1 for view in views if view.direction == "outgoing")
        assert referenced == total_before
