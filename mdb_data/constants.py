"""
Constants for MDB_DATA.

This module contains all shared constants used across the codebase to avoid
magic numbers and improve maintainability.
"""

from typing import Final

# ============================================================================
# DOCUMENT CONSTANTS
# ============================================================================

ID_FIELD: Final[str] = "_id"
"""Document key holding the entity identifier."""

ENTITY_ID_ATTRIBUTE: Final[str] = "id"
"""Entity attribute mapped to ID_FIELD."""

PARAMETER_PREFIX: Final[str] = ":"
"""Prefix marking a named parameter placeholder in query templates (e.g. ':id')."""

# ============================================================================
# QUERY CONSTANTS
# ============================================================================

DEFAULT_QUERY_LIMIT: Final[int] = 100
"""Default maximum number of entities returned by list reads (0 = unlimited)."""

JOIN_PATH_SEPARATOR: Final[str] = "."
"""Separator for nested join paths (e.g. 'ratings.course')."""

DOCUMENT_VALIDATION_FAILURE: Final[int] = 121
"""Server error code for a write rejected by collection schema validation."""

# ============================================================================
# QUERY METHOD ACTIONS
# ============================================================================

ACTION_FIND_ONE: Final[str] = "find_one"
ACTION_FIND_ALL: Final[str] = "find_all"
ACTION_COUNT: Final[str] = "count"
ACTION_EXISTS: Final[str] = "exists"
ACTION_UPDATE: Final[str] = "update"
ACTION_DELETE: Final[str] = "delete"
ACTION_INSERT: Final[str] = "insert"

QUERY_ACTIONS: Final[tuple] = (
    ACTION_FIND_ONE,
    ACTION_FIND_ALL,
    ACTION_COUNT,
    ACTION_EXISTS,
    ACTION_UPDATE,
    ACTION_DELETE,
    ACTION_INSERT,
)
"""All actions a declared query method may perform."""

# ============================================================================
# BUILT-IN REPOSITORY OPERATIONS
# ============================================================================

BUILTIN_OPERATIONS: Final[tuple] = (
    "save",
    "save_all",
    "update",
    "find_by_id",
    "exists_by_id",
    "find_all",
    "find",
    "find_one",
    "count",
    "delete_by_id",
    "delete",
    "delete_all",
)
"""Operations every repository implements by default."""

# ============================================================================
# RELATIONSHIP KINDS
# ============================================================================

MANY_TO_ONE: Final[str] = "many_to_one"
ONE_TO_MANY: Final[str] = "one_to_many"
MANY_TO_MANY: Final[str] = "many_to_many"

RELATION_KINDS: Final[tuple] = (MANY_TO_ONE, ONE_TO_MANY, MANY_TO_MANY)
"""Supported relationship kinds."""

# ============================================================================
# CONNECTION DEFAULTS
# ============================================================================

DEFAULT_MAX_POOL_SIZE: Final[int] = 10
"""Default maximum MongoDB connection pool size for the shared client."""

DEFAULT_MIN_POOL_SIZE: Final[int] = 1
"""Default minimum MongoDB connection pool size for the shared client."""

DEFAULT_SERVER_SELECTION_TIMEOUT_MS: Final[int] = 5000
"""Default server selection timeout in milliseconds."""

DEFAULT_MAX_IDLE_TIME_MS: Final[int] = 45000
"""Default maximum idle time before closing connections (milliseconds)."""
