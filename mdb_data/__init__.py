"""
MDB_DATA - Declarative MongoDB repositories

Typed async repositories with soft-delete filtering, per-method join
loading and query overrides.
"""

from .config import RepositoryConfig
from .database import InMemoryDatabase, get_database
from .exceptions import (
    BatchSaveError,
    ConfigurationError,
    ManifestValidationError,
    MongoDataError,
    OperationTimeoutError,
    RelationshipError,
    StoreUnavailableError,
    ValidationError,
)
from .identifiers import coerce_id, new_id
from .repositories import (
    Entity,
    MongoRepository,
    QueryMethod,
    Repository,
    RepositoryDefinition,
    UnitOfWork,
    many_to_many,
    many_to_one,
    one_to_many,
    required,
)

__version__ = "0.1.0"

__all__ = [
    # Repositories
    "Repository",
    "MongoRepository",
    "RepositoryDefinition",
    "QueryMethod",
    "UnitOfWork",
    # Entities
    "Entity",
    "required",
    "many_to_one",
    "many_to_many",
    "one_to_many",
    "new_id",
    "coerce_id",
    # Database
    "InMemoryDatabase",
    "get_database",
    # Configuration
    "RepositoryConfig",
    # Errors
    "MongoDataError",
    "ValidationError",
    "StoreUnavailableError",
    "OperationTimeoutError",
    "BatchSaveError",
    "ConfigurationError",
    "ManifestValidationError",
    "RelationshipError",
]
