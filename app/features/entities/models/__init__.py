"""Graph database models for entity resolution."""

from .base_model import GraphBaseModel
from .entity_model import PLACEHOLDER_KIND, Entity, PropertyMap, utc_now
from .relationship_model import Relationship, RelationshipView

__all__ = [
    "GraphBaseModel",
    "Entity",
    "PropertyMap",
    "PLACEHOLDER_KIND",
    "utc_now",
    "Relationship",
    "RelationshipView",
]
