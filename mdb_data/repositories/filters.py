"""
Soft-Delete Filter

Every default read path (find, find_all, count, exists) passes its predicate
through compose_predicate(), which AND-s in the entity's where predicate
(the visibility flag plus any static __where__). Declared raw queries are
exempt; the exemption is a property of the declaration, never inferred from
the predicate's content.
"""

import copy
from typing import Any

from ..constants import ID_FIELD, PARAMETER_PREFIX
from ..exceptions import ConfigurationError
from ..identifiers import coerce_id


def compose_predicate(
    entity_class: type,
    predicate: dict[str, Any] | None = None,
    raw: bool = False,
) -> dict[str, Any]:
    """
    Compose a caller predicate with the entity's where predicate.

    Args:
        entity_class: Entity subclass being read
        predicate: Caller predicate (may be None or empty)
        raw: True for declared queries that bypass the where predicate

    Returns:
        The predicate to send to the store
    """
    predicate = dict(predicate or {})
    if raw:
        return predicate

    where = entity_class.where_predicate()
    if not where:
        return predicate
    if not predicate:
        return dict(where)
    return {"$and": [dict(where), predicate]}


def bind_parameters(template: Any, params: dict[str, Any]) -> Any:
    """
    Substitute named parameters in a query template.

    String values of the form ':name' are replaced with params['name']. Values
    bound under the '_id' key are coerced to identifiers. Nothing else in the
    template is interpreted.

    Raises:
        ConfigurationError: If a placeholder has no bound value
    """
    return _bind(copy.deepcopy(template), params, key=None)


def _bind(node: Any, params: dict[str, Any], key: str | None) -> Any:
    if isinstance(node, dict):
        return {k: _bind(v, params, k if not k.startswith("$") else key) for k, v in node.items()}
    if isinstance(node, list):
        return [_bind(item, params, key) for item in node]
    if isinstance(node, str) and node.startswith(PARAMETER_PREFIX) and len(node) > 1:
        name = node[len(PARAMETER_PREFIX) :]
        if name not in params:
            raise ConfigurationError(
                f"No value bound for query parameter '{name}'",
                config_key=name,
            )
        value = params[name]
        if key == ID_FIELD:
            return [coerce_id(v) for v in value] if isinstance(value, list) else coerce_id(value)
        return value
    return node
