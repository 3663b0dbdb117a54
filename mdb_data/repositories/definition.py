"""
Repository definitions.

A RepositoryDefinition is the capability table for one entity: a mapping
from method name to QueryMethod {action, query, update, params, joins, raw}.
It is resolved once, when the definition is built, rather than by scanning
annotations at call time.

Built-in operation names (find_by_id, delete_by_id, ...) may appear in the
table:
    - with only ``joins``: the default implementation runs with those joins
    - with a ``query``/``update``: the declared method replaces the default

Any other name declares a custom finder callable as ``repo.<name>(...)``.

Definitions can also be written as JSON-style manifests, validated against
MANIFEST_SCHEMA:

    {
        "entity": "User",
        "methods": {
            "find_disabled": {"query": {"enabled": false}, "raw": true}
        }
    }
"""

import dataclasses
import logging
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any, Mapping

from jsonschema import Draft7Validator, SchemaError

from ..constants import (
    ACTION_DELETE,
    ACTION_FIND_ALL,
    ACTION_INSERT,
    ACTION_UPDATE,
    BUILTIN_OPERATIONS,
    ENTITY_ID_ATTRIBUTE,
    ID_FIELD,
    PARAMETER_PREFIX,
    QUERY_ACTIONS,
)
from ..exceptions import ConfigurationError, ManifestValidationError
from .entity import Entity, resolve_entity
from .filters import bind_parameters
from .loader import JoinPlan

logger = logging.getLogger(__name__)

_IDENTIFIER_PATTERN = "^[A-Za-z_][A-Za-z0-9_]*$"
_JOIN_PATH_PATTERN = "^[A-Za-z_][A-Za-z0-9_]*(\\.[A-Za-z_][A-Za-z0-9_]*)*$"

MANIFEST_SCHEMA: dict[str, Any] = {
    "$schema": "http://json-schema.org/draft-07/schema#",
    "title": "Repository manifest",
    "type": "object",
    "required": ["entity"],
    "additionalProperties": False,
    "properties": {
        "entity": {"type": "string", "minLength": 1},
        "methods": {
            "type": "object",
            "propertyNames": {"pattern": _IDENTIFIER_PATTERN},
            "additionalProperties": {
                "type": "object",
                "additionalProperties": False,
                "properties": {
                    "action": {"enum": list(QUERY_ACTIONS)},
                    "query": {"type": "object"},
                    "update": {"type": "object", "minProperties": 1},
                    "params": {
                        "type": "array",
                        "items": {"type": "string", "pattern": _IDENTIFIER_PATTERN},
                        "uniqueItems": True,
                    },
                    "joins": {
                        "type": "array",
                        "items": {"type": "string", "pattern": _JOIN_PATH_PATTERN},
                        "uniqueItems": True,
                    },
                    "raw": {"type": "boolean"},
                },
            },
        },
    },
}


@dataclass(frozen=True, eq=False)
class QueryMethod:
    """
    One entry of the capability table.

    Attributes:
        action: What the method does (find_one, find_all, count, exists,
            update, delete, insert). An insert builds a new entity from the
            bound params and saves it
        query: Predicate template; ':name' strings are bound from arguments
        update: Update document template (action='update')
        params: Parameter names bound from positional arguments, in order
        joins: Join paths loaded for returned entities
        raw: Exempt from the entity's where predicate (declared, not inferred)
    """

    action: str = ACTION_FIND_ALL
    query: Mapping[str, Any] | None = None
    update: Mapping[str, Any] | None = None
    params: tuple[str, ...] = ()
    joins: tuple[str, ...] = ()
    raw: bool = False

    def __post_init__(self) -> None:
        if self.action not in QUERY_ACTIONS:
            raise ConfigurationError(
                f"Unknown query action '{self.action}'",
                config_key="action",
                config_value=self.action,
            )
        if self.action == ACTION_UPDATE and not self.update:
            raise ConfigurationError("Update methods require an update document")
        if self.action == ACTION_INSERT and (self.query is not None or self.update is not None):
            raise ConfigurationError("Insert methods take their fields from params only")
        if self.action == ACTION_INSERT and not self.params:
            raise ConfigurationError("Insert methods require params")
        object.__setattr__(self, "params", tuple(self.params))
        object.__setattr__(self, "joins", tuple(self.joins))

    @property
    def replaces_default(self) -> bool:
        return self.query is not None or self.update is not None

    @property
    def plan(self) -> JoinPlan:
        return JoinPlan.from_paths(self.joins)

    def bind(self, args: tuple, kwargs: dict[str, Any]) -> dict[str, Any]:
        """
        Map call arguments to named parameters.

        Raises:
            ConfigurationError: On surplus positional args or unknown names
        """
        if len(args) > len(self.params):
            raise ConfigurationError(
                f"Expected at most {len(self.params)} positional arguments, got {len(args)}"
            )
        values = dict(zip(self.params, args))
        for name, value in kwargs.items():
            if name not in self.params:
                raise ConfigurationError(f"Unknown query parameter '{name}'", config_key=name)
            values[name] = value
        missing = [name for name in self.params if name not in values]
        if missing:
            raise ConfigurationError(
                f"Missing query parameters: {', '.join(missing)}",
                config_key=missing[0],
            )
        return values

    def predicate(self, values: dict[str, Any]) -> dict[str, Any]:
        return bind_parameters(dict(self.query or {}), values)

    def update_document(self, values: dict[str, Any]) -> dict[str, Any]:
        return bind_parameters(dict(self.update or {}), values)


def soft_delete_method(flag: str) -> QueryMethod:
    """The delete_by_id override for entities carrying a visibility flag."""
    return QueryMethod(
        action=ACTION_UPDATE,
        query={ID_FIELD: f"{PARAMETER_PREFIX}{ENTITY_ID_ATTRIBUTE}"},
        update={"$set": {flag: False}},
        params=(ENTITY_ID_ATTRIBUTE,),
        raw=True,
    )


class RepositoryDefinition:
    """
    Capability table for one entity type.

    Example:
        users = RepositoryDefinition(
            User,
            methods={
                "find_disabled": QueryMethod(query={"enabled": False}, raw=True),
            },
        )
    """

    def __init__(
        self,
        entity: type[Entity] | str,
        methods: Mapping[str, QueryMethod] | None = None,
    ):
        """
        Build and validate the table.

        For entities with a visibility flag, delete_by_id is always logical:
        a flag-flip override is installed unless one is declared.

        Raises:
            ConfigurationError: On invalid method names or a physical delete
                override for a flagged entity
            RelationshipError: If a join path is not a declared relationship
        """
        self.entity: type[Entity] = resolve_entity(entity)
        table: dict[str, QueryMethod] = {}

        for name, method in (methods or {}).items():
            if name.startswith("_"):
                raise ConfigurationError(
                    f"Method name '{name}' must not start with an underscore",
                    config_key=name,
                )
            if not isinstance(method, QueryMethod):
                raise ConfigurationError(
                    f"Method '{name}' must be a QueryMethod, got {type(method).__name__}",
                    config_key=name,
                )
            if method.action == ACTION_INSERT:
                self._check_insert(name, method)
            table[name] = method

        flag = self.entity.__visibility_flag__
        if flag:
            declared = table.get("delete_by_id")
            if declared is None or not declared.replaces_default:
                soft = soft_delete_method(flag)
                if declared is not None:
                    soft = QueryMethod(
                        action=soft.action,
                        query=soft.query,
                        update=soft.update,
                        params=soft.params,
                        joins=declared.joins,
                        raw=soft.raw,
                    )
                table["delete_by_id"] = soft
            elif declared.action == ACTION_DELETE:
                raise ConfigurationError(
                    f"{self.entity.__name__} has visibility flag '{flag}'; "
                    f"delete_by_id must not physically delete",
                    config_key="delete_by_id",
                )

        self._plans = {name: method.plan for name, method in table.items()}
        for plan in self._plans.values():
            plan.validate(self.entity)

        self.methods: Mapping[str, QueryMethod] = MappingProxyType(table)
        logger.debug(
            f"Repository definition for {self.entity.__name__}: "
            f"methods={sorted(self.methods)}"
        )

    def _check_insert(self, name: str, method: QueryMethod) -> None:
        if name in BUILTIN_OPERATIONS:
            raise ConfigurationError(
                f"Insert method '{name}' must not reuse a built-in operation name",
                config_key=name,
            )
        fields = {f.name for f in dataclasses.fields(self.entity) if f.init}
        unknown = [param for param in method.params if param not in fields]
        if unknown:
            raise ConfigurationError(
                f"Insert method '{name}' names unknown {self.entity.__name__} fields: "
                f"{', '.join(unknown)}",
                config_key=name,
            )

    @property
    def collection_name(self) -> str:
        return self.entity.collection_name()

    def method(self, name: str) -> QueryMethod | None:
        return self.methods.get(name)

    def join_plan(self, name: str) -> JoinPlan:
        """Join plan declared for a method (empty if none)."""
        return self._plans.get(name) or JoinPlan()

    def override(self, name: str) -> QueryMethod | None:
        """The declared method replacing a default operation, if any."""
        method = self.methods.get(name)
        if method is not None and method.replaces_default:
            return method
        return None

    @classmethod
    def from_manifest(cls, manifest: dict[str, Any]) -> "RepositoryDefinition":
        """
        Build a definition from a JSON-style manifest.

        Raises:
            ManifestValidationError: If the manifest does not match MANIFEST_SCHEMA
        """
        validate_manifest(manifest)
        methods = {}
        for name, spec in (manifest.get("methods") or {}).items():
            action = spec.get("action")
            if action is None:
                action = ACTION_UPDATE if "update" in spec else ACTION_FIND_ALL
            methods[name] = QueryMethod(
                action=action,
                query=spec.get("query"),
                update=spec.get("update"),
                params=tuple(spec.get("params", ())),
                joins=tuple(spec.get("joins", ())),
                raw=spec.get("raw", False),
            )
        return cls(manifest["entity"], methods)


def validate_manifest(manifest: Any) -> None:
    """
    Validate a repository manifest against MANIFEST_SCHEMA.

    Raises:
        ManifestValidationError: With the JSON paths of every violation
    """
    try:
        errors = sorted(
            Draft7Validator(MANIFEST_SCHEMA).iter_errors(manifest),
            key=lambda e: [str(p) for p in e.absolute_path],
        )
    except SchemaError as e:
        raise ManifestValidationError(f"Invalid schema definition: {e.message}") from e

    if not errors:
        return

    error_paths = []
    for error in errors:
        path_parts = list(error.absolute_path)
        error_paths.append(".".join(str(p) for p in path_parts) if path_parts else "root")

    entity = manifest.get("entity") if isinstance(manifest, dict) else None
    raise ManifestValidationError(
        "; ".join(dict.fromkeys(e.message for e in errors)),
        error_paths=error_paths,
        entity=entity if isinstance(entity, str) else None,
    )
