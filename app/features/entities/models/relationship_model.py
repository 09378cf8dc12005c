"""Relationship models for the graph database."""

from datetime import datetime
from typing import Literal

from pydantic import Field, field_validator

from .base_model import GraphBaseModel
from .entity_model import PropertyMap, utc_now


class Relationship(GraphBaseModel):
    """Directed, typed edge between two entities.

    Relationships reference their endpoints by id and are owned by neither.
    """

    subject_id: str = Field(..., description="Entity the edge starts from")
    predicate: str = Field(..., description="Open relationship type")
    object_id: str = Field(..., description="Entity the edge points to")
    properties: PropertyMap = Field(default_factory=dict)
    provenance_ref: str = Field(..., description="Unit that asserted this edge")
    created_at: datetime = Field(default_factory=utc_now)
    last_updated: datetime | None = Field(
        default=None, description="Set when a merge rewrites the properties"
    )

    @field_validator("subject_id", "predicate", "object_id", "provenance_ref")
    @classmethod
    def validate_not_empty(cls, v: str) -> str:
        """Ensure required string fields are not blank."""
        if not v or not v.strip():
            raise ValueError("Field cannot be empty")
        return v


class RelationshipView(GraphBaseModel):
    """A relationship seen from one of its endpoints."""

    direction: Literal["outgoing", "incoming"]
    predicate: str
    other_id: str
    other_code: str | None = None
    other_label: str | None = None
    other_kind: str | None = None
    properties: PropertyMap = Field(default_factory=dict)
    provenance_ref: str | None = None
    created_at: datetime | None = None
    last_updated: datetime | None = None
