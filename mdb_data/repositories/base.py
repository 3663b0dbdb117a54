"""
Abstract Repository Pattern

Defines the typed repository interface every entity repository exposes.
Default reads are filtered by the entity's where predicate; see filters.py.
"""

from abc import ABC, abstractmethod
from typing import Any, Generic, Iterable, TypeVar

from .entity import Entity

T = TypeVar("T", bound=Entity)


class Repository(ABC, Generic[T]):
    """
    Abstract repository interface for data access.

    Every operation accepts an optional ``timeout`` in seconds.

    Example:
        class UserService:
            def __init__(self, users: Repository[User]):
                self._users = users

            async def deactivate(self, user_id) -> None:
                await self._users.delete_by_id(user_id)
    """

    @abstractmethod
    async def save(self, entity: T, *, timeout: float | None = None) -> T:
        """
        Persist a new or updated entity.

        Args:
            entity: Entity to save; an id is assigned if it has none

        Returns:
            The saved entity

        Raises:
            ValidationError: If a declared constraint is violated
        """

    @abstractmethod
    async def save_all(self, entities: Iterable[T], *, timeout: float | None = None) -> list[T]:
        """
        Save entities one by one (no cross-entity atomicity).

        Raises:
            BatchSaveError: Listing the entities that failed
        """

    @abstractmethod
    async def update(self, entity: T, *, timeout: float | None = None) -> bool:
        """
        Replace an existing entity.

        Returns:
            True if the entity existed and was replaced
        """

    @abstractmethod
    async def find_by_id(self, id: Any, *, timeout: float | None = None) -> T | None:
        """
        Get a single visible entity by ID.

        Returns:
            Entity if found and visible, None otherwise
        """

    @abstractmethod
    async def exists_by_id(self, id: Any, *, timeout: float | None = None) -> bool:
        """Check whether a visible entity with this ID exists."""

    @abstractmethod
    async def find_all(
        self,
        skip: int = 0,
        limit: int | None = None,
        sort: list[tuple] | None = None,
        *,
        timeout: float | None = None,
    ) -> list[T]:
        """List visible entities."""

    @abstractmethod
    async def find(
        self,
        filter: dict[str, Any] | None = None,
        skip: int = 0,
        limit: int | None = None,
        sort: list[tuple] | None = None,
        *,
        timeout: float | None = None,
    ) -> list[T]:
        """
        Find visible entities matching a filter.

        Args:
            filter: MongoDB-style filter dictionary
            skip: Number of documents to skip
            limit: Maximum documents to return
            sort: List of (field, direction) tuples
        """

    @abstractmethod
    async def find_one(
        self, filter: dict[str, Any], *, timeout: float | None = None
    ) -> T | None:
        """Find the first visible entity matching a filter."""

    @abstractmethod
    async def count(
        self, filter: dict[str, Any] | None = None, *, timeout: float | None = None
    ) -> int:
        """Count visible entities matching a filter."""

    @abstractmethod
    async def delete_by_id(self, id: Any, *, timeout: float | None = None) -> bool:
        """
        Delete an entity by ID.

        Physical by default; logical (flag flip) for entities with a
        visibility flag.

        Returns:
            True if an entity was deleted
        """

    @abstractmethod
    async def delete(self, entity: T, *, timeout: float | None = None) -> bool:
        """Delete the given entity (same contract as delete_by_id)."""

    @abstractmethod
    async def delete_all(
        self, entities: Iterable[T] | None = None, *, timeout: float | None = None
    ) -> int:
        """
        Delete the given entities, or every visible entity when None.

        Returns:
            Number of entities deleted
        """
