"""
Database layer for MDB_DATA.

Provides the shared Motor client helper and an in-process store that
implements the same async collection API.
"""

from .connection import (
    close_shared_client,
    get_database,
    get_shared_mongo_client,
    verify_shared_client,
)
from .memory import InMemoryCollection, InMemoryCursor, InMemoryDatabase

__all__ = [
    "get_shared_mongo_client",
    "get_database",
    "verify_shared_client",
    "close_shared_client",
    "InMemoryDatabase",
    "InMemoryCollection",
    "InMemoryCursor",
]
