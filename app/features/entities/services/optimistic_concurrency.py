"""Optimistic concurrency control for read-compute-write sequences.

An operation is a coroutine function that reads the current state, computes
the new state and issues a conditional write. When the write loses a race it
raises WriteConflictError and the whole operation is run again from the
read, so the computation always sees the latest committed state.
"""

import asyncio
import logging
import random
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import TypeVar

from app.core.settings import Settings
from app.features.entities.errors import ConcurrencyExhaustedError, WriteConflictError

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(slots=True, frozen=True)
class RetryPolicy:
    """Bounded exponential backoff with additive jitter.

    The delay before retry ``n`` (1-based) is
    ``min(base_delay * backoff_ratio ** (n - 1), max_delay)`` plus a uniform
    random amount in ``[0, jitter)``.
    """

    max_attempts: int = 20
    base_delay: float = 0.05
    backoff_ratio: float = 1.5
    max_delay: float = 2.0
    jitter: float = 0.05
    deadline: float | None = 30.0

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if self.base_delay < 0 or self.max_delay < 0 or self.jitter < 0:
            raise ValueError("delays must not be negative")
        if self.backoff_ratio < 1:
            raise ValueError("backoff_ratio must be >= 1")

    def backoff(self, retry: int, rng: Callable[[], float] = random.random) -> float:
        """Seconds to wait before the given retry."""
        delay = min(self.base_delay * self.backoff_ratio ** (retry - 1), self.max_delay)
        return delay + rng() * self.jitter

    @classmethod
    def from_settings(cls, settings: Settings) -> "RetryPolicy":
        """Build a policy from the merge_retry_* settings."""
        return cls(
            max_attempts=settings.merge_retry_max_attempts,
            base_delay=settings.merge_retry_base_delay,
            backoff_ratio=settings.merge_retry_backoff_ratio,
            max_delay=settings.merge_retry_max_delay,
            jitter=settings.merge_retry_jitter,
            deadline=settings.merge_retry_deadline,
        )


class OptimisticConcurrencyController:
    """Runs an operation until its conditional write succeeds or the budget ends."""

    def __init__(
        self,
        policy: RetryPolicy | None = None,
        *,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        clock: Callable[[], float] = time.monotonic,
        rng: Callable[[], float] = random.random,
    ):
        """Initialize the controller.

        Args:
            policy: Retry budget and backoff shape
            sleep: Non-blocking wait used between attempts
            clock: Monotonic clock used for the wall-clock deadline
            rng: Source of jitter in [0, 1)
        """
        self.policy: RetryPolicy = policy or RetryPolicy()
        self._sleep = sleep
        self._clock = clock
        self._rng = rng

    async def run(self, operation: Callable[[], Awaitable[T]], *, entity_id: str) -> T:
        """Execute ``operation`` with retries on WriteConflictError.

        Any other exception propagates immediately without a retry.

        Raises:
            ConcurrencyExhaustedError: If the attempt cap or deadline is reached
        """
        started_at = self._clock()
        attempt = 0

        while True:
            attempt += 1
            try:
                return await operation()
            except WriteConflictError as e:
                elapsed = self._clock() - started_at
                if attempt >= self.policy.max_attempts:
                    logger.warning(
                        "Retry budget exhausted for %s after %d attempts (%s)",
                        entity_id,
                        attempt,
                        e.reason,
                    )
                    raise ConcurrencyExhaustedError(entity_id, attempt, elapsed) from e

                delay = self.policy.backoff(attempt, self._rng)
                if (
                    self.policy.deadline is not None
                    and elapsed + delay > self.policy.deadline
                ):
                    logger.warning(
                        "Retry deadline reached for %s after %d attempts (%.3fs)",
                        entity_id,
                        attempt,
                        elapsed,
                    )
                    raise ConcurrencyExhaustedError(entity_id, attempt, elapsed) from e

                logger.debug(
                    "Write conflict on %s (attempt %d, %s); retrying in %.3fs",
                    entity_id,
                    attempt,
                    e.reason,
                    delay,
                )
                await self._sleep(delay)
