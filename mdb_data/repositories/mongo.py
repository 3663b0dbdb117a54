"""
MongoDB Repository Implementation

Implements the Repository interface over a Motor database handle (or any
object exposing the same async collection API, such as InMemoryDatabase).

Each operation resolves in this order:
    1. the definition's override for the operation name, if declared
    2. otherwise the default implementation below

Default reads go through compose_predicate() so the entity's where predicate
(soft-delete flag) is always applied; declared raw methods are exempt.
"""

import asyncio
import logging
import time
from datetime import datetime, timezone
from typing import Any, Awaitable, Generic, Iterable, TypeVar

from bson.errors import InvalidDocument
from pymongo.errors import (
    ConnectionFailure,
    DuplicateKeyError,
    OperationFailure,
    PyMongoError,
    WriteError,
)

from ..config import RepositoryConfig
from ..constants import (
    ACTION_COUNT,
    ACTION_DELETE,
    ACTION_EXISTS,
    ACTION_FIND_ALL,
    ACTION_FIND_ONE,
    ACTION_INSERT,
    ACTION_UPDATE,
    BUILTIN_OPERATIONS,
    DOCUMENT_VALIDATION_FAILURE,
    ID_FIELD,
)
from ..exceptions import (
    BatchSaveError,
    MongoDataError,
    OperationTimeoutError,
    StoreUnavailableError,
    ValidationError,
)
from ..identifiers import coerce_id
from ..observability.logging import get_logger, log_operation
from .base import Repository
from .definition import QueryMethod, RepositoryDefinition
from .entity import Entity
from .filters import compose_predicate
from .loader import RelationshipLoader

logger = logging.getLogger(__name__)

T = TypeVar("T", bound=Entity)


def _utcnow() -> datetime:
    # Naive UTC at millisecond precision, matching what BSON stores
    now = datetime.now(timezone.utc).replace(tzinfo=None)
    return now.replace(microsecond=now.microsecond // 1000 * 1000)


class MongoRepository(Repository[T], Generic[T]):
    """
    MongoDB implementation of the Repository interface.

    Example:
        users = MongoRepository(
            db,
            RepositoryDefinition(
                User,
                methods={
                    "find_disabled": QueryMethod(query={"enabled": False}, raw=True),
                },
            ),
        )

        await users.save_all([User(name="Joe"), User(name="Fred")])
        await users.delete_by_id(joe.id)        # flips User.enabled
        disabled = await users.find_disabled()  # custom finder
    """

    def __init__(
        self,
        db: Any,  # AsyncIOMotorDatabase or compatible
        definition: RepositoryDefinition | type[T],
        config: RepositoryConfig | None = None,
    ):
        """
        Initialize the MongoDB repository.

        Args:
            db: Store handle; the collection is resolved as db[collection_name]
            definition: Repository definition, or an Entity subclass for the
                default capability table
            config: Optional configuration (defaults read from environment)
        """
        if not isinstance(definition, RepositoryDefinition):
            definition = RepositoryDefinition(definition)
        config = config or RepositoryConfig()
        config.validate()

        self._db = db
        self._definition = definition
        self._entity_class: type[T] = definition.entity
        self._collection = db[definition.collection_name]
        self._loader = RelationshipLoader(db)
        self._default_limit = config.default_limit
        self._default_timeout = config.operation_timeout
        self._log = get_logger(__name__, collection=definition.collection_name)

    @property
    def entity_class(self) -> type[T]:
        return self._entity_class

    @property
    def definition(self) -> RepositoryDefinition:
        return self._definition

    @property
    def collection(self) -> Any:
        return self._collection

    def __getattr__(self, name: str) -> Any:
        """
        Expose custom methods declared in the definition.

        Example:
            await users.find_disabled()
            await students.query_by_id(student_id)
        """
        if name.startswith("_"):
            raise AttributeError(f"'{type(self).__name__}' has no attribute '{name}'")

        definition = self.__dict__.get("_definition")
        method = definition.method(name) if definition is not None else None
        if method is None or name in BUILTIN_OPERATIONS:
            raise AttributeError(f"'{type(self).__name__}' has no attribute '{name}'")

        async def call(*args: Any, timeout: float | None = None, **kwargs: Any) -> Any:
            return await self._invoke(name, method, args, kwargs, timeout)

        call.__name__ = name
        call.__qualname__ = f"{type(self).__name__}.{name}"
        return call

    # ------------------------------------------------------------------
    # Execution helpers
    # ------------------------------------------------------------------

    async def _execute(self, operation: str, coro: Awaitable, timeout: float | None) -> Any:
        """Run one repository call with deadline, error translation and logging."""
        timeout = timeout if timeout is not None else self._default_timeout
        collection_name = self._definition.collection_name
        start = time.perf_counter()
        success = True
        try:
            if timeout is None:
                return await coro
            return await asyncio.wait_for(coro, timeout)
        except asyncio.TimeoutError as e:
            success = False
            raise OperationTimeoutError(
                f"{operation} did not complete within {timeout}s",
                timeout=timeout,
                operation=operation,
                collection=collection_name,
            ) from e
        except DuplicateKeyError as e:
            success = False
            raise ValidationError(
                f"Duplicate key on {operation}: {e}",
                entity=self._entity_class.__name__,
            ) from e
        except ConnectionFailure as e:
            success = False
            logger.error(f"Store unavailable during {collection_name}.{operation}: {e}")
            raise StoreUnavailableError(
                f"Store unavailable: {e}",
                operation=operation,
                collection=collection_name,
            ) from e
        except OperationFailure as e:
            success = False
            context = {"operation": operation, "collection": collection_name, "code": e.code}
            if isinstance(e, WriteError) or e.code == DOCUMENT_VALIDATION_FAILURE:
                raise ValidationError(
                    f"{operation} rejected by the store: {e}",
                    entity=self._entity_class.__name__,
                    context=context,
                ) from e
            raise MongoDataError(f"{operation} failed: {e}", context=context) from e
        except InvalidDocument as e:
            success = False
            raise ValidationError(
                f"{operation} produced an unencodable document: {e}",
                entity=self._entity_class.__name__,
            ) from e
        except PyMongoError as e:
            success = False
            raise MongoDataError(
                f"{operation} failed: {e}",
                context={"operation": operation, "collection": collection_name},
            ) from e
        except BaseException:
            success = False
            raise
        finally:
            log_operation(
                self._log,
                f"{collection_name}.{operation}",
                success=success,
                duration_ms=(time.perf_counter() - start) * 1000,
            )

    def _to_entity(self, doc: dict[str, Any] | None) -> T | None:
        """Convert a MongoDB document to an entity."""
        if doc is None:
            return None
        return self._entity_class.from_dict(doc)

    def _visible(self, predicate: dict[str, Any] | None = None) -> dict[str, Any]:
        return compose_predicate(self._entity_class, predicate)

    def _check_entity(self, entity: Any) -> None:
        if not isinstance(entity, self._entity_class):
            raise ValidationError(
                f"Expected {self._entity_class.__name__}, got {type(entity).__name__}",
                entity=self._entity_class.__name__,
            )

    async def _load(self, operation: str, entities: list[T]) -> list[T]:
        plan = self._definition.join_plan(operation)
        if not plan.is_empty:
            await self._loader.load(entities, plan)
        return entities

    async def _list(
        self,
        operation: str,
        predicate: dict[str, Any],
        skip: int = 0,
        limit: int | None = None,
        sort: list[tuple] | None = None,
    ) -> list[T]:
        limit = self._default_limit if limit is None else limit
        cursor = self._collection.find(predicate)

        if skip > 0:
            cursor = cursor.skip(skip)
        if limit > 0:
            cursor = cursor.limit(limit)
        if sort:
            cursor = cursor.sort(sort)

        docs = await cursor.to_list(length=limit or None)
        return await self._load(operation, [self._to_entity(doc) for doc in docs])

    async def _invoke(
        self,
        name: str,
        method: QueryMethod,
        args: tuple,
        kwargs: dict[str, Any],
        timeout: float | None,
        skip: int = 0,
        limit: int = 0,
        sort: list[tuple] | None = None,
    ) -> Any:
        """
        Run a declared method from the capability table.

        skip, limit and sort page find_all methods; declared finders are
        unlimited unless the caller passes a limit.
        """
        values = method.bind(args, kwargs)
        predicate = compose_predicate(self._entity_class, method.predicate(values), raw=method.raw)

        async def run() -> Any:
            if method.action == ACTION_FIND_ONE:
                entity = self._to_entity(await self._collection.find_one(predicate))
                if entity is not None:
                    await self._load(name, [entity])
                return entity
            if method.action == ACTION_FIND_ALL:
                return await self._list(name, predicate, skip, limit, sort)
            if method.action == ACTION_COUNT:
                return await self._collection.count_documents(predicate)
            if method.action == ACTION_EXISTS:
                doc = await self._collection.find_one(predicate, projection={ID_FIELD: 1})
                return doc is not None
            if method.action == ACTION_UPDATE:
                update = method.update_document(values)
                if "$set" in update:
                    update["$set"].setdefault("updated_at", _utcnow())
                result = await self._collection.update_many(predicate, update)
                return result.modified_count
            if method.action == ACTION_DELETE:
                result = await self._collection.delete_many(predicate)
                return result.deleted_count
            if method.action == ACTION_INSERT:
                entity = self._entity_class(**values)
                entity.validate()
                return await self._save(entity)
            raise MongoDataError(f"Unsupported action '{method.action}'")

        return await self._execute(name, run(), timeout)

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def save(self, entity: T, *, timeout: float | None = None) -> T:
        """Insert (server-side id) or upsert by id (client-side id)."""
        self._check_entity(entity)
        entity.validate()
        return await self._execute("save", self._save(entity), timeout)

    async def _save(self, entity: T) -> T:
        now = _utcnow()
        doc = entity.to_dict()

        if entity.id is None:
            doc.setdefault("created_at", now)
            result = await self._collection.insert_one(doc)
            entity.id = result.inserted_id
            logger.debug(f"Added {self._entity_class.__name__} with id={entity.id}")
        else:
            if entity.created_at is None:
                doc["created_at"] = now
            else:
                doc["updated_at"] = now
            await self._collection.replace_one({ID_FIELD: entity.id}, doc, upsert=True)

        entity.created_at = doc.get("created_at")
        entity.updated_at = doc.get("updated_at")
        return entity

    async def save_all(self, entities: Iterable[T], *, timeout: float | None = None) -> list[T]:
        """
        Save each entity in order, best effort.

        ``timeout`` bounds each save on its own, so the whole batch may run
        for up to len(entities) * timeout.

        Raises:
            BatchSaveError: If any entity failed; the others stay persisted
        """
        saved: list[T] = []
        failures: list[tuple[int, T, BaseException]] = []

        for index, entity in enumerate(entities):
            try:
                saved.append(await self.save(entity, timeout=timeout))
            except MongoDataError as e:
                logger.warning(
                    f"save_all: {self._entity_class.__name__} at index {index} failed: {e}"
                )
                failures.append((index, entity, e))

        if failures:
            raise BatchSaveError(
                f"{len(failures)} of {len(saved) + len(failures)} "
                f"{self._entity_class.__name__} entities failed to save",
                failures=failures,
                saved=saved,
            )

        logger.debug(f"Saved {len(saved)} {self._entity_class.__name__} entities")
        return saved

    async def update(self, entity: T, *, timeout: float | None = None) -> bool:
        self._check_entity(entity)
        if entity.id is None:
            return False
        entity.validate()

        async def run() -> bool:
            doc = entity.to_dict()
            doc["updated_at"] = _utcnow()
            result = await self._collection.replace_one({ID_FIELD: entity.id}, doc)
            if result.matched_count > 0:
                entity.updated_at = doc["updated_at"]
                return True
            return False

        return await self._execute("update", run(), timeout)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def find_by_id(self, id: Any, *, timeout: float | None = None) -> T | None:
        override = self._definition.override("find_by_id")
        if override is not None:
            return await self._invoke("find_by_id", override, (id,), {}, timeout)

        predicate = self._visible({ID_FIELD: coerce_id(id)})

        async def run() -> T | None:
            entity = self._to_entity(await self._collection.find_one(predicate))
            if entity is not None:
                await self._load("find_by_id", [entity])
            return entity

        return await self._execute("find_by_id", run(), timeout)

    async def exists_by_id(self, id: Any, *, timeout: float | None = None) -> bool:
        override = self._definition.override("exists_by_id")
        if override is not None:
            return bool(await self._invoke("exists_by_id", override, (id,), {}, timeout))

        predicate = self._visible({ID_FIELD: coerce_id(id)})

        async def run() -> bool:
            doc = await self._collection.find_one(predicate, projection={ID_FIELD: 1})
            return doc is not None

        return await self._execute("exists_by_id", run(), timeout)

    async def find_all(
        self,
        skip: int = 0,
        limit: int | None = None,
        sort: list[tuple] | None = None,
        *,
        timeout: float | None = None,
    ) -> list[T]:
        override = self._definition.override("find_all")
        if override is not None:
            return await self._invoke(
                "find_all", override, (), {}, timeout, skip, limit or 0, sort
            )

        return await self._execute(
            "find_all", self._list("find_all", self._visible(), skip, limit, sort), timeout
        )

    async def find(
        self,
        filter: dict[str, Any] | None = None,
        skip: int = 0,
        limit: int | None = None,
        sort: list[tuple] | None = None,
        *,
        timeout: float | None = None,
    ) -> list[T]:
        return await self._execute(
            "find", self._list("find", self._visible(filter), skip, limit, sort), timeout
        )

    async def find_one(
        self, filter: dict[str, Any], *, timeout: float | None = None
    ) -> T | None:
        predicate = self._visible(filter)

        async def run() -> T | None:
            entity = self._to_entity(await self._collection.find_one(predicate))
            if entity is not None:
                await self._load("find_one", [entity])
            return entity

        return await self._execute("find_one", run(), timeout)

    async def count(
        self, filter: dict[str, Any] | None = None, *, timeout: float | None = None
    ) -> int:
        override = self._definition.override("count")
        if override is not None and filter is None:
            return await self._invoke("count", override, (), {}, timeout)

        return await self._execute(
            "count", self._collection.count_documents(self._visible(filter)), timeout
        )

    # ------------------------------------------------------------------
    # Deletes
    # ------------------------------------------------------------------

    async def delete_by_id(self, id: Any, *, timeout: float | None = None) -> bool:
        """Physical delete, unless the definition overrides it (soft delete)."""
        override = self._definition.override("delete_by_id")
        if override is not None:
            return bool(await self._invoke("delete_by_id", override, (id,), {}, timeout))

        async def run() -> bool:
            result = await self._collection.delete_one({ID_FIELD: coerce_id(id)})
            return result.deleted_count > 0

        return await self._execute("delete_by_id", run(), timeout)

    async def delete(self, entity: T, *, timeout: float | None = None) -> bool:
        self._check_entity(entity)
        if entity.id is None:
            return False
        return await self.delete_by_id(entity.id, timeout=timeout)

    async def delete_all(
        self, entities: Iterable[T] | None = None, *, timeout: float | None = None
    ) -> int:
        """
        Delete the given entities, or every visible entity.

        Both forms honour the delete_by_id contract, so flagged entities are
        soft-deleted rather than removed.
        """
        if entities is not None:
            deleted = 0
            for entity in entities:
                if await self.delete(entity, timeout=timeout):
                    deleted += 1
            return deleted

        if self._definition.override("delete_by_id") is None:

            async def run() -> int:
                result = await self._collection.delete_many(self._visible())
                return result.deleted_count

            return await self._execute("delete_all", run(), timeout)

        cursor = self._collection.find(self._visible(), projection={ID_FIELD: 1})
        docs = await self._execute("delete_all", cursor.to_list(length=None), timeout)
        deleted = 0
        for doc in docs:
            if await self.delete_by_id(doc[ID_FIELD], timeout=timeout):
                deleted += 1
        return deleted
