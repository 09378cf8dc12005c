"""Custom exceptions for entity resolution operations.

Every error a caller can observe derives from EntityResolutionError and carries
a stable ``code``, an HTTP-equivalent ``status_code`` and the ids involved in
``details`` so an orchestrator can decide whether to retry, skip or abort.
"""

from typing import Any


class EntityResolutionError(Exception):
    """Base class for typed entity resolution failures."""

    code: str = "INTERNAL_ERROR"
    status_code: int = 500

    def __init__(self, message: str, details: dict[str, Any] | None = None):  # pyright: ignore[reportExplicitAny]
        super().__init__(message)
        self.message = message
        self.details: dict[str, Any] = details or {}  # pyright: ignore[reportExplicitAny]


class ValidationError(EntityResolutionError):
    """Raised when a request is malformed or misses required fields."""

    code = "VALIDATION_ERROR"
    status_code = 400


class InvalidMergeStrategyError(ValidationError):
    """Raised when the requested merge strategy is not one of the known variants."""

    code = "INVALID_MERGE_STRATEGY"

    def __init__(self, strategy: str, allowed: list[str]):
        super().__init__(
            f"Unknown merge strategy '{strategy}'",
            {"strategy": strategy, "allowed": allowed},
        )


class SelfMergeRejectedError(EntityResolutionError):
    """Raised when an entity is asked to absorb itself."""

    code = "SELF_MERGE_REJECTED"
    status_code = 400

    def __init__(self, entity_id: str):
        super().__init__(
            "source_id and target_id cannot be the same",
            {"source_id": entity_id, "target_id": entity_id},
        )


class EntityNotFoundError(EntityResolutionError):
    """Raised when the entity an operation targets does not exist."""

    code = "ENTITY_NOT_FOUND"
    status_code = 404

    def __init__(self, entity_id: str | list[str]):
        if isinstance(entity_id, list):
            super().__init__(
                f"Entities not found: {', '.join(entity_id)}", {"ids": entity_id}
            )
        else:
            super().__init__(
                f"Entity '{entity_id}' not found", {"canonical_id": entity_id}
            )


class SourceNotFoundError(EntityResolutionError):
    """Raised when the duplicate side of an absorption is gone.

    Expected when a concurrent absorption already consumed it.
    """

    code = "SOURCE_NOT_FOUND"
    status_code = 404

    def __init__(self, source_id: str):
        super().__init__(
            "Source entity does not exist (may have been merged already)",
            {"source_id": source_id},
        )


class TargetNotFoundError(EntityResolutionError):
    """Raised when the canonical side of an absorption is gone."""

    code = "TARGET_NOT_FOUND"
    status_code = 404

    def __init__(self, target_id: str):
        super().__init__("Target entity does not exist", {"target_id": target_id})


class NotAPlaceholderError(EntityResolutionError):
    """Raised when enrich_placeholder targets an entity that is already resolved."""

    code = "NOT_A_PLACEHOLDER"
    status_code = 409

    def __init__(self, entity_id: str, kind: str | None):
        super().__init__(
            f"Entity '{entity_id}' is not a placeholder",
            {"canonical_id": entity_id, "kind": kind},
        )


class ConcurrencyExhaustedError(EntityResolutionError):
    """Raised when the optimistic retry budget is used up."""

    code = "CONCURRENCY_EXHAUSTED"
    status_code = 409

    def __init__(self, entity_id: str, attempts: int, elapsed: float):
        super().__init__(
            "Concurrent modification collision - please retry",
            {
                "canonical_id": entity_id,
                "attempts": attempts,
                "elapsed_seconds": round(elapsed, 3),
            },
        )


class StoreUnavailableError(EntityResolutionError):
    """Raised when the graph backend cannot be reached or fails at the I/O level."""

    code = "STORE_UNAVAILABLE"
    status_code = 503

    def __init__(self, detail: str = "Graph store unavailable"):
        super().__init__(detail)


class WriteConflictError(Exception):
    """Signals that a write lost a race and the attempt should be repeated.

    Raised by store adapters and use cases inside an optimistic attempt; the
    concurrency controller consumes it and never lets it reach a caller.
    """

    def __init__(self, entity_id: str, reason: str = "version mismatch"):
        super().__init__(f"Write conflict on '{entity_id}': {reason}")
        self.entity_id = entity_id
        self.reason = reason
