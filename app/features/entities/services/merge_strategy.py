"""Closed set of merge strategies and request validation helpers."""

import enum

from app.features.entities.errors import InvalidMergeStrategyError, ValidationError


class MergeStrategy(enum.Enum):
    """How a merge request changes an existing entity.

    ENRICH_PLACEHOLDER: resolve an 'unknown' entity (kind, label, properties)
    MERGE_PEERS: accumulate properties under optimistic concurrency
    LINK_ONLY: record provenance and touch, nothing else
    PREFER_NEW: replace properties, overwrite kind/label when given
    """

    ENRICH_PLACEHOLDER = "enrich_placeholder"
    MERGE_PEERS = "merge_peers"
    LINK_ONLY = "link_only"
    PREFER_NEW = "prefer_new"

    @classmethod
    def parse(cls, value: str) -> "MergeStrategy":
        """Resolve a strategy name.

        Raises:
            InvalidMergeStrategyError: If the name is not a known strategy
        """
        try:
            return cls(value)
        except ValueError:
            raise InvalidMergeStrategyError(
                value, [strategy.value for strategy in cls]
            ) from None


def require_fields(**fields: str | None) -> None:
    """Reject missing or blank required string fields.

    Raises:
        ValidationError: Listing every offending field name
    """
    missing = [name for name, value in fields.items() if not value or not value.strip()]
    if missing:
        raise ValidationError(
            f"Missing required fields: {', '.join(missing)}", {"fields": missing}
        )
