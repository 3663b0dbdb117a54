"""
MDB Data Repository Pattern

Typed repositories over MongoDB with soft-delete filtering and declarative
relationship loading.

Usage:
    from mdb_data.repositories import (
        Entity, MongoRepository, QueryMethod, RepositoryDefinition, required,
    )

    @dataclass
    class User(Entity):
        __collection__ = "user"
        __visibility_flag__ = "enabled"

        name: str = required()
        enabled: bool = True

    users = MongoRepository(
        db,
        RepositoryDefinition(
            User,
            methods={"find_disabled": QueryMethod(query={"enabled": False}, raw=True)},
        ),
    )
"""

from .base import Repository
from .definition import MANIFEST_SCHEMA, QueryMethod, RepositoryDefinition, validate_manifest
from .entity import (
    Entity,
    Relationship,
    many_to_many,
    many_to_one,
    one_to_many,
    required,
    resolve_entity,
)
from .filters import bind_parameters, compose_predicate
from .loader import JoinPlan, RelationshipLoader
from .mongo import MongoRepository
from .unit_of_work import UnitOfWork

__all__ = [
    "Repository",
    "MongoRepository",
    "UnitOfWork",
    "Entity",
    "Relationship",
    "required",
    "many_to_one",
    "many_to_many",
    "one_to_many",
    "resolve_entity",
    "QueryMethod",
    "RepositoryDefinition",
    "MANIFEST_SCHEMA",
    "validate_manifest",
    "compose_predicate",
    "bind_parameters",
    "JoinPlan",
    "RelationshipLoader",
]
