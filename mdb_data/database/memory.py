"""
In-process document store.

Implements the subset of the Motor collection API the repositories use, so
repositories can run without a MongoDB server (unit tests, examples, local
prototyping). Results are pymongo result objects and write conflicts raise
pymongo errors, exactly as the driver would.

Supported query operators: $eq, $ne, $gt, $gte, $lt, $lte, $in, $nin,
$exists, $and, $or, $nor. Supported update operators: $set, $unset, $inc.

Usage:
    db = InMemoryDatabase("test_db")
    users = MongoRepository(db, User)
"""

import copy
import logging
from typing import Any, Iterable

from bson import ObjectId
from pymongo.errors import DuplicateKeyError, OperationFailure
from pymongo.results import DeleteResult, InsertManyResult, InsertOneResult, UpdateResult

from ..constants import ID_FIELD

logger = logging.getLogger(__name__)

_MISSING = object()


def _get_path(doc: dict[str, Any], path: str) -> Any:
    value: Any = doc
    for part in path.split("."):
        if isinstance(value, dict) and part in value:
            value = value[part]
        else:
            return _MISSING
    return value


def _equals(value: Any, expected: Any) -> bool:
    if value is _MISSING:
        return expected is None
    if isinstance(value, list) and not isinstance(expected, list):
        return expected in value
    return value == expected


def _compare(value: Any, expected: Any, op: str) -> bool:
    if value is _MISSING or value is None:
        return False
    try:
        if op == "$gt":
            return value > expected
        if op == "$gte":
            return value >= expected
        if op == "$lt":
            return value < expected
        return value <= expected
    except TypeError:
        return False


def _match_operators(value: Any, condition: dict[str, Any]) -> bool:
    for op, expected in condition.items():
        if op == "$eq":
            matched = _equals(value, expected)
        elif op == "$ne":
            matched = not _equals(value, expected)
        elif op in ("$gt", "$gte", "$lt", "$lte"):
            matched = _compare(value, expected, op)
        elif op == "$in":
            matched = any(_equals(value, candidate) for candidate in expected)
        elif op == "$nin":
            matched = not any(_equals(value, candidate) for candidate in expected)
        elif op == "$exists":
            matched = (value is not _MISSING) == bool(expected)
        else:
            raise OperationFailure(f"unknown operator: {op}")
        if not matched:
            return False
    return True


def matches(doc: dict[str, Any], filter: dict[str, Any] | None) -> bool:
    """Evaluate a MongoDB-style filter against a document."""
    for key, condition in (filter or {}).items():
        if key == "$and":
            if not all(matches(doc, sub) for sub in condition):
                return False
        elif key == "$or":
            if not any(matches(doc, sub) for sub in condition):
                return False
        elif key == "$nor":
            if any(matches(doc, sub) for sub in condition):
                return False
        elif key.startswith("$"):
            raise OperationFailure(f"unknown top level operator: {key}")
        else:
            value = _get_path(doc, key)
            is_operator_doc = (
                isinstance(condition, dict)
                and condition
                and all(k.startswith("$") for k in condition)
            )
            if is_operator_doc:
                if not _match_operators(value, condition):
                    return False
            elif not _equals(value, condition):
                return False
    return True


def _project(doc: dict[str, Any], projection: dict[str, Any] | None) -> dict[str, Any]:
    doc = copy.deepcopy(doc)
    if not projection:
        return doc
    include = {k for k, v in projection.items() if v}
    if include:
        projected = {k: doc[k] for k in include if k in doc and k != ID_FIELD}
        if projection.get(ID_FIELD, 1) and ID_FIELD in doc:
            projected[ID_FIELD] = doc[ID_FIELD]
        return projected
    return {k: v for k, v in doc.items() if projection.get(k, 1)}


def _apply_update(doc: dict[str, Any], update: dict[str, Any]) -> bool:
    """Apply update operators in place; return True if the document changed."""
    before = copy.deepcopy(doc)
    for op, fields in update.items():
        if op == "$set":
            for key, value in fields.items():
                if key == ID_FIELD and doc.get(ID_FIELD) != value:
                    raise OperationFailure(
                        "Performing an update on the path '_id' would modify "
                        "the immutable field '_id'"
                    )
                doc[key] = copy.deepcopy(value)
        elif op == "$unset":
            for key in fields:
                doc.pop(key, None)
        elif op == "$inc":
            for key, amount in fields.items():
                doc[key] = doc.get(key, 0) + amount
        else:
            raise OperationFailure(f"Unknown modifier: {op}")
    return doc != before


class InMemoryCursor:
    """Chainable cursor with Motor's skip/limit/sort/to_list surface."""

    def __init__(self, docs: list[dict[str, Any]], projection: dict[str, Any] | None = None):
        self._docs = docs
        self._projection = projection
        self._skip = 0
        self._limit = 0
        self._sort: list[tuple] = []

    def skip(self, skip: int) -> "InMemoryCursor":
        self._skip = skip
        return self

    def limit(self, limit: int) -> "InMemoryCursor":
        self._limit = limit
        return self

    def sort(self, key_or_list: Any, direction: int = 1) -> "InMemoryCursor":
        if isinstance(key_or_list, str):
            self._sort = [(key_or_list, direction)]
        else:
            self._sort = list(key_or_list)
        return self

    def _results(self) -> list[dict[str, Any]]:
        docs = list(self._docs)
        for key, direction in reversed(self._sort):
            present = [d for d in docs if _get_path(d, key) not in (_MISSING, None)]
            absent = [d for d in docs if _get_path(d, key) in (_MISSING, None)]
            present.sort(key=lambda d: _get_path(d, key), reverse=direction < 0)
            docs = absent + present if direction > 0 else present + absent
        docs = docs[self._skip :]
        if self._limit > 0:
            docs = docs[: self._limit]
        return [_project(d, self._projection) for d in docs]

    async def to_list(self, length: int | None = None) -> list[dict[str, Any]]:
        results = self._results()
        return results[:length] if length else results

    def __aiter__(self):
        return self._iterate()

    async def _iterate(self):
        for doc in self._results():
            yield doc


class InMemoryCollection:
    """A single collection; documents are stored by _id in insertion order."""

    def __init__(self, name: str, database: "InMemoryDatabase | None" = None):
        self.name = name
        self.database = database
        self._documents: dict[Any, dict[str, Any]] = {}
        self._unique_indexes: list[tuple[str, ...]] = []

    def _matching(self, filter: dict[str, Any] | None) -> list[dict[str, Any]]:
        return [doc for doc in self._documents.values() if matches(doc, filter)]

    def _check_unique(self, doc: dict[str, Any], exclude_id: Any = _MISSING) -> None:
        for fields in self._unique_indexes:
            key = tuple(_get_path(doc, f) for f in fields)
            for other_id, other in self._documents.items():
                if other_id == exclude_id:
                    continue
                if tuple(_get_path(other, f) for f in fields) == key:
                    raise DuplicateKeyError(
                        f"E11000 duplicate key error collection: {self.name} "
                        f"index: {'_'.join(fields)} dup key: {key}",
                        code=11000,
                    )

    async def create_index(self, keys: Any, unique: bool = False, **kwargs: Any) -> str:
        fields = (keys,) if isinstance(keys, str) else tuple(k for k, _ in keys)
        if unique:
            self._unique_indexes.append(fields)
        return "_".join(f"{f}_1" for f in fields)

    async def insert_one(self, document: dict[str, Any]) -> InsertOneResult:
        if ID_FIELD not in document:
            document[ID_FIELD] = ObjectId()
        doc_id = document[ID_FIELD]
        if doc_id in self._documents:
            raise DuplicateKeyError(
                f"E11000 duplicate key error collection: {self.name} index: _id_ "
                f"dup key: {{ _id: {doc_id!r} }}",
                code=11000,
            )
        self._check_unique(document)
        self._documents[doc_id] = copy.deepcopy(document)
        return InsertOneResult(doc_id, True)

    async def insert_many(self, documents: Iterable[dict[str, Any]]) -> InsertManyResult:
        inserted = []
        for document in documents:
            result = await self.insert_one(document)
            inserted.append(result.inserted_id)
        return InsertManyResult(inserted, True)

    async def find_one(
        self, filter: dict[str, Any] | None = None, projection: dict[str, Any] | None = None
    ) -> dict[str, Any] | None:
        for doc in self._matching(filter):
            return _project(doc, projection)
        return None

    def find(
        self, filter: dict[str, Any] | None = None, projection: dict[str, Any] | None = None
    ) -> InMemoryCursor:
        return InMemoryCursor(self._matching(filter), projection)

    async def count_documents(self, filter: dict[str, Any] | None = None) -> int:
        return len(self._matching(filter))

    async def replace_one(
        self, filter: dict[str, Any], replacement: dict[str, Any], upsert: bool = False
    ) -> UpdateResult:
        for doc in self._matching(filter):
            new_doc = copy.deepcopy(replacement)
            new_doc[ID_FIELD] = doc[ID_FIELD]
            self._check_unique(new_doc, exclude_id=doc[ID_FIELD])
            modified = new_doc != doc
            self._documents[doc[ID_FIELD]] = new_doc
            return UpdateResult({"n": 1, "nModified": int(modified)}, True)

        if not upsert:
            return UpdateResult({"n": 0, "nModified": 0}, True)

        new_doc = copy.deepcopy(replacement)
        if ID_FIELD not in new_doc:
            id_value = filter.get(ID_FIELD) if filter else None
            new_doc[ID_FIELD] = id_value if id_value is not None else ObjectId()
        await self.insert_one(new_doc)
        return UpdateResult({"n": 1, "nModified": 0, "upserted": new_doc[ID_FIELD]}, True)

    async def _update(
        self, filter: dict[str, Any], update: dict[str, Any], many: bool
    ) -> UpdateResult:
        matched = modified = 0
        for doc in self._matching(filter):
            candidate = copy.deepcopy(doc)
            changed = _apply_update(candidate, update)
            self._check_unique(candidate, exclude_id=doc[ID_FIELD])
            self._documents[doc[ID_FIELD]] = candidate
            matched += 1
            modified += int(changed)
            if not many:
                break
        return UpdateResult({"n": matched, "nModified": modified}, True)

    async def update_one(self, filter: dict[str, Any], update: dict[str, Any]) -> UpdateResult:
        return await self._update(filter, update, many=False)

    async def update_many(self, filter: dict[str, Any], update: dict[str, Any]) -> UpdateResult:
        return await self._update(filter, update, many=True)

    async def delete_one(self, filter: dict[str, Any]) -> DeleteResult:
        for doc in self._matching(filter):
            del self._documents[doc[ID_FIELD]]
            return DeleteResult({"n": 1}, True)
        return DeleteResult({"n": 0}, True)

    async def delete_many(self, filter: dict[str, Any]) -> DeleteResult:
        docs = self._matching(filter)
        for doc in docs:
            del self._documents[doc[ID_FIELD]]
        return DeleteResult({"n": len(docs)}, True)

    async def drop(self) -> None:
        self._documents.clear()
        self._unique_indexes.clear()


class InMemoryDatabase:
    """
    Database handle returning InMemoryCollection instances.

    Collections are created on first access, by item or attribute:
        db["user"] is db.user
    """

    def __init__(self, name: str = "mdb_data"):
        object.__setattr__(self, "name", name)
        object.__setattr__(self, "_collections", {})

    def __getitem__(self, name: str) -> InMemoryCollection:
        collections = self._collections
        if name not in collections:
            collections[name] = InMemoryCollection(name, self)
            logger.debug(f"Created in-memory collection '{name}'")
        return collections[name]

    def __getattr__(self, name: str) -> InMemoryCollection:
        if name.startswith("_"):
            raise AttributeError(f"'{type(self).__name__}' object has no attribute '{name}'")
        return self[name]

    async def list_collection_names(self) -> list[str]:
        return list(self._collections)

    async def drop_collection(self, name: str) -> None:
        self._collections.pop(name, None)
