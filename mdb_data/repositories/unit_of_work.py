"""
Unit of Work Pattern

Holds the repository definitions for one store handle and hands out
repositories for them. Repositories are created lazily and cached.
"""

import logging
from typing import Any, Iterable

from ..config import RepositoryConfig
from ..exceptions import ConfigurationError
from .definition import RepositoryDefinition
from .entity import Entity
from .mongo import MongoRepository

logger = logging.getLogger(__name__)


class UnitOfWork:
    """
    Registry of repositories over one store handle.

    Usage:
        uow = UnitOfWork(db, [user_definition, student_definition])

        # Attribute access uses the collection name
        await uow.user.find_by_id(user_id)

        # Or look up by entity class / collection name
        students = uow.repository(Student)
    """

    def __init__(
        self,
        db: Any,  # AsyncIOMotorDatabase or compatible
        definitions: Iterable[RepositoryDefinition] | None = None,
        config: RepositoryConfig | None = None,
    ):
        """
        Initialize the Unit of Work.

        Args:
            db: Store handle shared by every repository
            definitions: Repository definitions to register
            config: Configuration passed to each repository
        """
        self._db = db
        self._config = config
        self._definitions: dict[str, RepositoryDefinition] = {}
        self._repositories: dict[str, MongoRepository] = {}
        for definition in definitions or ():
            self.register(definition)

    def register(self, definition: RepositoryDefinition | type[Entity]) -> RepositoryDefinition:
        """
        Register a definition (or an entity class with the default table).

        Raises:
            ConfigurationError: If the collection already has a definition
        """
        if not isinstance(definition, RepositoryDefinition):
            definition = RepositoryDefinition(definition)

        name = definition.collection_name
        if name in self._definitions:
            raise ConfigurationError(
                f"Collection '{name}' already has a repository definition",
                config_key=name,
            )
        self._definitions[name] = definition
        return definition

    def repository(self, key: str | type[Entity]) -> MongoRepository:
        """
        Get or create the repository for a collection name or entity class.

        Unregistered entity classes are registered with the default table.

        Raises:
            ConfigurationError: If a collection name has no definition
        """
        if isinstance(key, type):
            name = key.collection_name()
            if name not in self._definitions:
                self.register(key)
        else:
            name = key

        if name in self._repositories:
            return self._repositories[name]

        definition = self._definitions.get(name)
        if definition is None:
            raise ConfigurationError(
                f"No repository definition for collection '{name}'",
                config_key=name,
            )

        repo = MongoRepository(self._db, definition, config=self._config)
        self._repositories[name] = repo

        logger.debug(f"Created repository for '{name}' with entity {definition.entity.__name__}")
        return repo

    def __getattr__(self, name: str) -> MongoRepository:
        """
        Access repositories via attribute syntax.

        Example:
            uow.user     # Repository for the 'user' collection
            uow.student  # Repository for the 'student' collection
        """
        if name.startswith("_"):
            raise AttributeError(f"'{type(self).__name__}' has no attribute '{name}'")

        try:
            return self.repository(name)
        except ConfigurationError as e:
            raise AttributeError(str(e)) from e

    @property
    def db(self) -> Any:
        """Direct access to the underlying store handle."""
        return self._db

    def dispose(self) -> None:
        """Drop cached repositories; definitions stay registered."""
        self._repositories.clear()
        logger.debug("UnitOfWork disposed")
