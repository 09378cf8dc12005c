"""Entity resolution use cases."""

from .absorb_entity_usecase import AbsorbEntityUseCaseImpl
from .create_entity_usecase import CreateEntityUseCaseImpl
from .create_relationships_usecase import CreateRelationshipsUseCaseImpl
from .delete_entity_usecase import DeleteEntityUseCaseImpl
from .get_entity_relationships_usecase import GetEntityRelationshipsUseCaseImpl
from .get_entity_usecase import GetEntityUseCaseImpl
from .merge_entity_usecase import MergeEntityUseCaseImpl
from .merge_relationships_usecase import MergeRelationshipsUseCaseImpl

__all__ = [
    "AbsorbEntityUseCaseImpl",
    "CreateEntityUseCaseImpl",
    "CreateRelationshipsUseCaseImpl",
    "DeleteEntityUseCaseImpl",
    "GetEntityRelationshipsUseCaseImpl",
    "GetEntityUseCaseImpl",
    "MergeEntityUseCaseImpl",
    "MergeRelationshipsUseCaseImpl",
]
