"""
Shared MongoDB client.

Repositories never build their own client: the store handle is injected.
This module gives applications one process-wide Motor client to build that
handle from.

Usage:
    from mdb_data.database import get_database

    db = get_database(RepositoryConfig())
    users = MongoRepository(db, user_definition)
"""

import logging
import threading

from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase
from pymongo.errors import ConfigurationError as PyMongoConfigurationError
from pymongo.errors import ConnectionFailure, InvalidOperation, OperationFailure

from ..config import RepositoryConfig
from ..constants import (
    DEFAULT_MAX_IDLE_TIME_MS,
    DEFAULT_MAX_POOL_SIZE,
    DEFAULT_MIN_POOL_SIZE,
    DEFAULT_SERVER_SELECTION_TIMEOUT_MS,
)
from ..exceptions import StoreUnavailableError

logger = logging.getLogger(__name__)

# Global singleton instance
_shared_client: AsyncIOMotorClient | None = None
# threading.Lock: the client may be requested from several threads
_init_lock = threading.Lock()


def get_shared_mongo_client(
    mongo_uri: str,
    max_pool_size: int = DEFAULT_MAX_POOL_SIZE,
    min_pool_size: int = DEFAULT_MIN_POOL_SIZE,
    server_selection_timeout_ms: int = DEFAULT_SERVER_SELECTION_TIMEOUT_MS,
    max_idle_time_ms: int = DEFAULT_MAX_IDLE_TIME_MS,
) -> AsyncIOMotorClient:
    """
    Gets or creates the shared MongoDB client.

    Args:
        mongo_uri: MongoDB connection URI
        max_pool_size: Maximum connection pool size
        min_pool_size: Minimum connection pool size
        server_selection_timeout_ms: Server selection timeout in milliseconds
        max_idle_time_ms: Maximum idle time before closing connections

    Returns:
        Shared AsyncIOMotorClient instance

    Raises:
        StoreUnavailableError: If the client cannot be created
    """
    global _shared_client

    if _shared_client is not None:
        return _shared_client

    with _init_lock:
        # Another thread may have initialized while we waited
        if _shared_client is not None:
            return _shared_client

        logger.info(
            f"Opening shared MongoDB client (pool {min_pool_size}..{max_pool_size})"
        )

        try:
            _shared_client = AsyncIOMotorClient(
                mongo_uri,
                serverSelectionTimeoutMS=server_selection_timeout_ms,
                appname="MDB_DATA_Shared",
                maxPoolSize=max_pool_size,
                minPoolSize=min_pool_size,
                maxIdleTimeMS=max_idle_time_ms,
            )
        except (ConnectionFailure, PyMongoConfigurationError, ValueError, TypeError) as e:
            logger.error(f"Cannot open shared MongoDB client: {e}")
            _shared_client = None
            raise StoreUnavailableError(f"Failed to create MongoDB client: {e}") from e

    return _shared_client


def get_database(config: RepositoryConfig | None = None) -> AsyncIOMotorDatabase:
    """
    Build a store handle from configuration using the shared client.

    Raises:
        ConfigurationError: If mongo_uri or db_name is missing
        StoreUnavailableError: If the client cannot be created
    """
    config = config or RepositoryConfig()
    config.validate(require_connection=True)
    client = get_shared_mongo_client(config.mongo_uri)
    return client[config.db_name]


async def verify_shared_client() -> bool:
    """
    Ping the shared client.

    Returns:
        True if the server answered, False otherwise
    """
    if _shared_client is None:
        logger.warning("No shared MongoDB client to verify")
        return False

    try:
        await _shared_client.admin.command("ping")
        logger.debug("Shared MongoDB client answered ping")
        return True
    except (ConnectionFailure, OperationFailure, InvalidOperation) as e:
        logger.warning(f"Shared MongoDB client ping failed: {e}")
        return False


def close_shared_client() -> None:
    """
    Close the shared client and forget it; the next call creates a new one.
    """
    global _shared_client

    if _shared_client is not None:
        try:
            _shared_client.close()
            logger.info("Closed shared MongoDB client")
        except (InvalidOperation, AttributeError, RuntimeError) as e:
            logger.warning(f"Ignoring error while closing shared MongoDB client: {e}")
        finally:
            _shared_client = None
