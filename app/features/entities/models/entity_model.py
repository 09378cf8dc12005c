"""Entity model for the graph database.

An Entity is the canonical node for one real-world thing. Its ``id`` is
supplied by the caller and never changes; ``creator_ref`` records the unit
that first created it and is never touched by a merge.
"""

from datetime import datetime, timezone
from typing import Any

from pydantic import Field, field_validator

from .base_model import GraphBaseModel

PLACEHOLDER_KIND = "unknown"

PropertyMap = dict[str, Any]  # pyright: ignore[reportExplicitAny]


def utc_now() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


class Entity(GraphBaseModel):
    """Represents a canonical entity in the graph database."""

    id: str = Field(..., description="Caller-supplied stable identifier")
    code: str = Field(..., description="Human-readable slug")
    label: str = Field(..., description="Display name")
    kind: str = Field(
        ..., description="Open-ended type tag ('unknown' marks a placeholder)"
    )
    properties: PropertyMap = Field(
        default_factory=dict, description="Opaque property map"
    )
    creator_ref: str | None = Field(
        default=None, description="Unit that first created this entity"
    )
    version: int = Field(
        default=0, ge=0, description="Incremented on every property mutation"
    )
    first_seen: datetime = Field(default_factory=utc_now)
    last_updated: datetime = Field(default_factory=utc_now)
    provenance_refs: list[str] = Field(
        default_factory=list, description="Units that mentioned this entity"
    )

    @field_validator("id")
    @classmethod
    def validate_id(cls, v: str) -> str:
        """Ensure the identifier is not blank."""
        if not v or not v.strip():
            raise ValueError("Entity id cannot be empty")
        return v

    @property
    def is_placeholder(self) -> bool:
        """Whether this entity still carries the unresolved sentinel kind."""
        return self.kind == PLACEHOLDER_KIND
