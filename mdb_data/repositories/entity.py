"""
Entity Model

Entities are plain dataclasses with one identifier field, scalar fields and
declared relationship fields. Relationship fields hold references to other
entities, never owned copies: only identifiers are written to the document.

Example:
    @dataclass
    class User(Entity):
        __collection__ = "user"
        __visibility_flag__ = "enabled"

        name: str = required()
        enabled: bool = True
"""

import dataclasses
import re
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, ClassVar

from ..constants import (
    ENTITY_ID_ATTRIBUTE,
    ID_FIELD,
    MANY_TO_MANY,
    MANY_TO_ONE,
    ONE_TO_MANY,
)
from ..exceptions import ConfigurationError, ValidationError
from ..identifiers import coerce_id

_REQUIRED = "mdb_data.required"
_RELATION = "mdb_data.relation"

# Entity classes by class name, used to resolve string relationship targets
_entity_registry: dict[str, type["Entity"]] = {}


def resolve_entity(target: Any) -> type["Entity"]:
    """Resolve a relationship target given as a class or a class name."""
    if isinstance(target, type) and issubclass(target, Entity):
        return target
    if isinstance(target, str):
        try:
            return _entity_registry[target]
        except KeyError:
            raise ConfigurationError(
                f"Unknown entity '{target}'",
                config_key="target",
                config_value=target,
            ) from None
    raise ConfigurationError(
        f"Relationship target must be an Entity class or name, got {type(target).__name__}"
    )


@dataclass(frozen=True)
class Relationship:
    """Static declaration of a relationship field."""

    field_name: str
    kind: str
    target: Any
    mapped_by: str | None = None

    @property
    def target_class(self) -> type["Entity"]:
        return resolve_entity(self.target)

    @property
    def is_collection(self) -> bool:
        return self.kind != MANY_TO_ONE

    @property
    def is_stored(self) -> bool:
        """Whether the owning document holds the reference."""
        return self.kind != ONE_TO_MANY


def required(default: Any = None) -> Any:
    """Declare a field that must be set (not None) when the entity is saved."""
    return field(default=default, metadata={_REQUIRED: True})


def many_to_one(target: Any, is_required: bool = False) -> Any:
    """Declare a reference to a single entity; the document stores its id."""
    return field(
        default=None,
        metadata={_RELATION: (MANY_TO_ONE, target, None), _REQUIRED: is_required},
    )


def many_to_many(target: Any) -> Any:
    """Declare a collection of references; the document stores a list of ids."""
    return field(default_factory=list, metadata={_RELATION: (MANY_TO_MANY, target, None)})


def one_to_many(target: Any, mapped_by: str) -> Any:
    """
    Declare the inverse side of a many-to-one.

    Nothing is stored on this side: the target documents hold the
    back-reference in their ``mapped_by`` field. Unloaded, the attribute is None.
    """
    return field(default=None, metadata={_RELATION: (ONE_TO_MANY, target, mapped_by)})


def _snake_case(name: str) -> str:
    return re.sub(r"(?<!^)(?=[A-Z])", "_", name).lower()


@dataclass
class Entity:
    """
    Base class for persisted entities.

    Class options:
        __collection__: Collection name (defaults to the snake_case class name)
        __visibility_flag__: Boolean field gating default reads (soft delete)
        __where__: Additional static predicate applied to default reads
    """

    __collection__: ClassVar[str | None] = None
    __visibility_flag__: ClassVar[str | None] = None
    __where__: ClassVar[dict[str, Any] | None] = None

    id: Any = None
    created_at: datetime | None = field(default=None)
    updated_at: datetime | None = field(default=None)

    def __init_subclass__(cls, **kwargs: Any) -> None:
        super().__init_subclass__(**kwargs)
        _entity_registry[cls.__name__] = cls

    def __setattr__(self, name: str, value: Any) -> None:
        if name == ENTITY_ID_ATTRIBUTE:
            current = self.__dict__.get(ENTITY_ID_ATTRIBUTE)
            if current is not None and coerce_id(value) != current:
                raise ValidationError(
                    "Identifier is immutable once assigned",
                    entity=type(self).__name__,
                    field_name=ENTITY_ID_ATTRIBUTE,
                )
            value = coerce_id(value)
        super().__setattr__(name, value)

    # ------------------------------------------------------------------
    # Model metadata
    # ------------------------------------------------------------------

    @classmethod
    def collection_name(cls) -> str:
        return cls.__collection__ or _snake_case(cls.__name__)

    @classmethod
    def where_predicate(cls) -> dict[str, Any]:
        """Predicate every default read of this entity must satisfy."""
        predicate: dict[str, Any] = {}
        if cls.__visibility_flag__:
            predicate[cls.__visibility_flag__] = True
        if cls.__where__:
            predicate.update(cls.__where__)
        return predicate

    @classmethod
    def relationships(cls) -> dict[str, Relationship]:
        relations = {}
        for f in dataclasses.fields(cls):
            declared = f.metadata.get(_RELATION)
            if declared:
                kind, target, mapped_by = declared
                relations[f.name] = Relationship(f.name, kind, target, mapped_by)
        return relations

    @classmethod
    def required_fields(cls) -> list[str]:
        return [f.name for f in dataclasses.fields(cls) if f.metadata.get(_REQUIRED)]

    @classmethod
    def stub(cls, id: Any) -> "Entity":
        """Create an unloaded reference holding only the identifier."""
        return cls(id=id)

    # ------------------------------------------------------------------
    # Validation and mapping
    # ------------------------------------------------------------------

    def validate(self) -> None:
        """
        Check declared constraints before persisting.

        Raises:
            ValidationError: If a required field is missing
        """
        for name in self.required_fields():
            if getattr(self, name) is None:
                raise ValidationError(
                    f"Required field '{name}' is missing",
                    entity=type(self).__name__,
                    field_name=name,
                )

    def _reference_id(self, relation: Relationship, value: Any) -> Any:
        if isinstance(value, Entity):
            if value.id is None:
                raise ValidationError(
                    f"Relationship '{relation.field_name}' references an unsaved "
                    f"{type(value).__name__}",
                    entity=type(self).__name__,
                    field_name=relation.field_name,
                )
            return value.id
        return coerce_id(value)

    def to_dict(self) -> dict[str, Any]:
        """Convert entity to a document for storage."""
        data: dict[str, Any] = {}
        relations = self.relationships()
        for f in dataclasses.fields(self):
            value = getattr(self, f.name)
            relation = relations.get(f.name)
            if relation is not None:
                if not relation.is_stored or value is None:
                    continue
                if relation.is_collection:
                    data[f.name] = [self._reference_id(relation, v) for v in value]
                else:
                    data[f.name] = self._reference_id(relation, value)
            elif value is None:
                continue
            elif f.name == ENTITY_ID_ATTRIBUTE:
                data[ID_FIELD] = value
            else:
                data[f.name] = value
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> "Entity | None":
        """Create entity from a stored document. Unknown keys are ignored."""
        if data is None:
            return None

        data = dict(data)
        if ID_FIELD in data:
            data[ENTITY_ID_ATTRIBUTE] = data.pop(ID_FIELD)

        relations = cls.relationships()
        values = {}
        for f in dataclasses.fields(cls):
            if not f.init or f.name not in data:
                continue
            value = data[f.name]
            relation = relations.get(f.name)
            if relation is not None:
                if not relation.is_stored:
                    continue
                target = relation.target_class
                if relation.is_collection:
                    value = [target.stub(v) for v in value or []]
                elif value is not None:
                    value = target.stub(value)
            values[f.name] = value
        return cls(**values)
