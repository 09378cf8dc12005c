"""Tests for the optimistic concurrency controller and its retry policy."""

import pytest

from app.core.settings import Settings
from app.features.entities.errors import (
    ConcurrencyExhaustedError,
    EntityNotFoundError,
    WriteConflictError,
)
from app.features.entities.services.optimistic_concurrency import (
    OptimisticConcurrencyController,
    RetryPolicy,
)


class FakeClock:
    """Monotonic clock advanced only by the fake sleep."""

    def __init__(self) -> None:
        self.now = 0.0
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    async def sleep(self, delay: float) -> None:
        self.sleeps.append(delay)
        self.now += delay


def make_controller(policy: RetryPolicy, clock: FakeClock) -> OptimisticConcurrencyController:
    return OptimisticConcurrencyController(
        policy, sleep=clock.sleep, clock=clock, rng=lambda: 0.5
    )


class TestRetryPolicy:
    """Tests for the backoff schedule."""

    def test_backoff_grows_and_caps(self) -> None:
        policy = RetryPolicy(base_delay=0.1, backoff_ratio=2.0, max_delay=0.5, jitter=0.0)

        delays = [policy.backoff(n) for n in range(1, 6)]

        assert delays == pytest.approx([0.1, 0.2, 0.4, 0.5, 0.5])

    def test_jitter_is_added_on_top(self) -> None:
        policy = RetryPolicy(base_delay=0.1, backoff_ratio=1.0, jitter=0.2)

        assert policy.backoff(1, rng=lambda: 0.5) == pytest.approx(0.2)

    def test_invalid_policy_is_rejected(self) -> None:
        with pytest.raises(ValueError):
            _ = RetryPolicy(max_attempts=0)
        with pytest.raises(ValueError):
            _ = RetryPolicy(backoff_ratio=0.5)

    def test_from_settings(self) -> None:
        settings = Settings(
            merge_retry_max_attempts=7,
            merge_retry_base_delay=0.01,
            merge_retry_backoff_ratio=3.0,
            merge_retry_max_delay=1.0,
            merge_retry_jitter=0.0,
            merge_retry_deadline=None,
        )

        policy = RetryPolicy.from_settings(settings)

        assert policy == RetryPolicy(
            max_attempts=7,
            base_delay=0.01,
            backoff_ratio=3.0,
            max_delay=1.0,
            jitter=0.0,
            deadline=None,
        )


class TestOptimisticConcurrencyController:
    """Tests for the retry loop."""

    async def test_returns_first_success(self) -> None:
        clock = FakeClock()
        controller = make_controller(RetryPolicy(), clock)

        async def operation() -> str:
            return "done"

        assert await controller.run(operation, entity_id="e1") == "done"
        assert clock.sleeps == []

    async def test_retries_conflicts_with_backoff(self) -> None:
        clock = FakeClock()
        policy = RetryPolicy(base_delay=0.1, backoff_ratio=2.0, jitter=0.0)
        controller = make_controller(policy, clock)
        calls = 0

        async def operation() -> int:
            nonlocal calls
            calls += 1
            if calls < 4:
                raise WriteConflictError("e1")
            return calls

        assert await controller.run(operation, entity_id="e1") == 4
        assert clock.sleeps == pytest.approx([0.1, 0.2, 0.4])

    async def test_attempt_cap_raises_concurrency_exhausted(self) -> None:
        clock = FakeClock()
        controller = make_controller(RetryPolicy(max_attempts=3, deadline=None), clock)
        calls = 0

        async def operation() -> None:
            nonlocal calls
            calls += 1
            raise WriteConflictError("e1")

        with pytest.raises(ConcurrencyExhaustedError) as exc_info:
            await controller.run(operation, entity_id="e1")

        assert calls == 3
        assert len(clock.sleeps) == 2
        assert exc_info.value.details["attempts"] == 3
        assert exc_info.value.details["canonical_id"] == "e1"
        assert exc_info.value.status_code == 409

    async def test_deadline_stops_before_attempt_cap(self) -> None:
        clock = FakeClock()
        policy = RetryPolicy(
            max_attempts=100,
            base_delay=1.0,
            backoff_ratio=1.0,
            max_delay=1.0,
            jitter=0.0,
            deadline=2.5,
        )
        controller = make_controller(policy, clock)
        calls = 0

        async def operation() -> None:
            nonlocal calls
            calls += 1
            raise WriteConflictError("e1")

        with pytest.raises(ConcurrencyExhaustedError):
            await controller.run(operation, entity_id="e1")

        # Sleeps at t=0 and t=1; the third wait would end past the deadline
        assert calls == 3
        assert clock.sleeps == pytest.approx([1.0, 1.0])

    async def test_other_errors_propagate_without_retry(self) -> None:
        clock = FakeClock()
        controller = make_controller(RetryPolicy(), clock)
        calls = 0

        async def operation() -> None:
            nonlocal calls
            calls += 1
            raise EntityNotFoundError("e1")

        with pytest.raises(EntityNotFoundError):
            await controller.run(operation, entity_id="e1")

        assert calls == 1
        assert clock.sleeps == []
