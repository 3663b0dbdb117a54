"""
Relationship Loader

Resolves declared join paths ("courses", "ratings.course") against loaded
entities. Sibling paths are merged into one JoinPlan tree, so a shared prefix
is fetched once. Each relationship node issues a single store query for all
parent entities at that depth, then its children resolve against the
entities it loaded (depth-first).

Relationships that are not part of the plan stay unloaded: references remain
id-only stubs and inverse collections remain None. Nothing is fetched on
attribute access.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Iterable

from ..constants import ID_FIELD, JOIN_PATH_SEPARATOR, MANY_TO_MANY, MANY_TO_ONE
from ..exceptions import RelationshipError
from .entity import Entity, Relationship
from .filters import compose_predicate

logger = logging.getLogger(__name__)


@dataclass
class JoinPlan:
    """Tree of relationship names to resolve, built from dot-separated paths."""

    children: dict[str, "JoinPlan"] = field(default_factory=dict)

    @classmethod
    def from_paths(cls, paths: Iterable[str]) -> "JoinPlan":
        """
        Merge join paths into a plan. A nested path implies its prefixes.

        Raises:
            RelationshipError: If a path has an empty segment
        """
        root = cls()
        for path in paths:
            node = root
            for part in path.split(JOIN_PATH_SEPARATOR):
                if not part:
                    raise RelationshipError("Join path has an empty segment", path=path)
                node = node.children.setdefault(part, cls())
        return root

    @property
    def is_empty(self) -> bool:
        return not self.children

    def paths(self, prefix: str = "") -> list[str]:
        """Flatten the plan back into join paths (prefixes included)."""
        result = []
        for name, child in self.children.items():
            path = f"{prefix}{name}"
            result.append(path)
            result.extend(child.paths(path + JOIN_PATH_SEPARATOR))
        return result

    def validate(self, entity_class: type[Entity], prefix: str = "") -> None:
        """
        Check every node names a declared relationship of its entity.

        Raises:
            RelationshipError: If a path segment is not a relationship field
        """
        relations = entity_class.relationships()
        for name, child in self.children.items():
            path = f"{prefix}{name}"
            if name not in relations:
                raise RelationshipError(
                    f"'{name}' is not a relationship of {entity_class.__name__}",
                    path=path,
                    entity=entity_class.__name__,
                )
            child.validate(relations[name].target_class, path + JOIN_PATH_SEPARATOR)


def _reference_id(value: Any) -> Any:
    return value.id if isinstance(value, Entity) else value


class RelationshipLoader:
    """
    Fetches and attaches related entities for a JoinPlan.

    Documents fetched during one load() call are cached by (collection, id),
    so the same related document is never fetched twice in one call. Every
    attached entity is a fresh instance; the loader never creates cycles.
    """

    def __init__(self, db: Any):
        """
        Args:
            db: Store handle (AsyncIOMotorDatabase or compatible)
        """
        self._db = db

    async def load(self, entities: list[Entity], plan: JoinPlan) -> list[Entity]:
        """Resolve ``plan`` against ``entities`` in place and return them."""
        entities = [e for e in entities if e is not None]
        if not entities or plan.is_empty:
            return entities

        cache: dict[tuple[str, Any], dict[str, Any]] = {}
        await self._resolve(type(entities[0]), entities, plan, cache)
        return entities

    async def _resolve(
        self,
        entity_class: type[Entity],
        entities: list[Entity],
        plan: JoinPlan,
        cache: dict[tuple[str, Any], dict[str, Any]],
    ) -> None:
        relations = entity_class.relationships()
        for name, child_plan in plan.children.items():
            relation = relations.get(name)
            if relation is None:
                raise RelationshipError(
                    f"'{name}' is not a relationship of {entity_class.__name__}",
                    path=name,
                    entity=entity_class.__name__,
                )

            loaded = await self._load_relation(relation, entities, cache)
            logger.debug(
                f"Loaded {len(loaded)} {relation.target_class.__name__} for "
                f"{entity_class.__name__}.{name}"
            )

            if loaded and not child_plan.is_empty:
                await self._resolve(relation.target_class, loaded, child_plan, cache)

    async def _load_relation(
        self,
        relation: Relationship,
        entities: list[Entity],
        cache: dict[tuple[str, Any], dict[str, Any]],
    ) -> list[Entity]:
        target = relation.target_class
        name = relation.field_name
        loaded: list[Entity] = []

        if relation.kind == MANY_TO_ONE:
            ids = [_reference_id(getattr(e, name)) for e in entities]
            docs = await self._fetch_by_ids(target, [i for i in ids if i is not None], cache)
            for entity, ref in zip(entities, ids):
                if ref is None:
                    continue
                doc = docs.get(ref)
                value = target.from_dict(doc) if doc is not None else None
                setattr(entity, name, value)
                if value is not None:
                    loaded.append(value)
            return loaded

        if relation.kind == MANY_TO_MANY:
            refs = [[_reference_id(v) for v in getattr(e, name) or []] for e in entities]
            all_ids = [i for ids in refs for i in ids]
            docs = await self._fetch_by_ids(target, all_ids, cache)
            for entity, ids in zip(entities, refs):
                values = [target.from_dict(docs[i]) for i in ids if i in docs]
                setattr(entity, name, values)
                loaded.extend(values)
            return loaded

        # one_to_many: the target documents carry the back-reference
        parent_ids = [e.id for e in entities if e.id is not None]
        grouped: dict[Any, list[dict[str, Any]]] = {}
        if parent_ids:
            predicate = compose_predicate(target, {relation.mapped_by: {"$in": parent_ids}})
            cursor = self._db[target.collection_name()].find(predicate)
            for doc in await cursor.to_list(length=None):
                cache[(target.collection_name(), doc[ID_FIELD])] = doc
                grouped.setdefault(doc.get(relation.mapped_by), []).append(doc)

        for entity in entities:
            values = [target.from_dict(doc) for doc in grouped.get(entity.id, [])]
            setattr(entity, name, values)
            loaded.extend(values)
        return loaded

    async def _fetch_by_ids(
        self,
        target: type[Entity],
        ids: list[Any],
        cache: dict[tuple[str, Any], dict[str, Any]],
    ) -> dict[Any, dict[str, Any]]:
        collection_name = target.collection_name()
        missing = list(dict.fromkeys(i for i in ids if (collection_name, i) not in cache))
        if missing:
            predicate = compose_predicate(target, {ID_FIELD: {"$in": missing}})
            cursor = self._db[collection_name].find(predicate)
            for doc in await cursor.to_list(length=None):
                cache[(collection_name, doc[ID_FIELD])] = doc
        return {i: cache[(collection_name, i)] for i in ids if (collection_name, i) in cache}
