"""
Entity identifiers.

Identifiers are BSON ObjectIds. They are issued either by the caller before
save (client-side) or by the store on insert (server-side).
"""

from typing import Any

from bson import ObjectId
from bson.errors import InvalidId


def new_id() -> ObjectId:
    """Issue a fresh identifier on the client side."""
    return ObjectId()


def coerce_id(value: Any) -> Any:
    """
    Normalise a caller-supplied identifier.

    ObjectIds and valid 24-character hex strings become ObjectIds; any other
    value is treated as an opaque identifier and returned unchanged.
    """
    if value is None or isinstance(value, ObjectId):
        return value
    if isinstance(value, str) and ObjectId.is_valid(value):
        try:
            return ObjectId(value)
        except (InvalidId, TypeError):
            return value
    return value
