"""
Configuration management for MDB_DATA.

Repositories can be built with direct parameters or read their defaults
from environment variables through RepositoryConfig.
"""

import os

from .constants import DEFAULT_QUERY_LIMIT
from .exceptions import ConfigurationError


def _env_number(name: str, default: str | None, cast: type) -> int | float | None:
    raw = os.getenv(name, default)
    if raw is None or raw == "":
        return None
    try:
        return cast(raw)
    except ValueError:
        raise ConfigurationError(
            f"{name} must be a number", config_key=name, config_value=raw
        ) from None


class RepositoryConfig:
    """
    Repository configuration.

    Example:
        # Using environment variables
        config = RepositoryConfig()
        users = MongoRepository(db, user_definition, config=config)

        # Or using direct parameters
        config = RepositoryConfig(default_limit=50, operation_timeout=2.5)
    """

    def __init__(
        self,
        mongo_uri: str | None = None,
        db_name: str | None = None,
        default_limit: int | None = None,
        operation_timeout: float | None = None,
    ):
        """
        Initialize configuration.

        Args:
            mongo_uri: MongoDB connection URI (defaults to MONGO_URI env var)
            db_name: Database name (defaults to DB_NAME env var)
            default_limit: Default list-read limit, 0 for unlimited
                (defaults to 100 or MDB_DATA_DEFAULT_LIMIT)
            operation_timeout: Default per-call deadline in seconds
                (defaults to MDB_DATA_OPERATION_TIMEOUT, unset means none)
        """
        self.mongo_uri = mongo_uri or os.getenv("MONGO_URI", "")
        self.db_name = db_name or os.getenv("DB_NAME", "")
        self.default_limit = (
            default_limit
            if default_limit is not None
            else _env_number("MDB_DATA_DEFAULT_LIMIT", str(DEFAULT_QUERY_LIMIT), int)
        )
        self.operation_timeout = (
            operation_timeout
            if operation_timeout is not None
            else _env_number("MDB_DATA_OPERATION_TIMEOUT", None, float)
        )

    def validate(self, require_connection: bool = False) -> None:
        """
        Validate configuration values.

        Args:
            require_connection: Also require mongo_uri and db_name

        Raises:
            ConfigurationError: If required configuration is missing or invalid
        """
        if require_connection and not self.mongo_uri:
            raise ConfigurationError(
                "mongo_uri is required (set MONGO_URI environment variable or pass directly)",
                config_key="mongo_uri",
            )

        if require_connection and not self.db_name:
            raise ConfigurationError(
                "db_name is required (set DB_NAME environment variable or pass directly)",
                config_key="db_name",
            )

        if self.default_limit is None or self.default_limit < 0:
            raise ConfigurationError(
                f"default_limit must be >= 0, got {self.default_limit}",
                config_key="default_limit",
                config_value=self.default_limit,
            )

        if self.operation_timeout is not None and self.operation_timeout <= 0:
            raise ConfigurationError(
                f"operation_timeout must be > 0, got {self.operation_timeout}",
                config_key="operation_timeout",
                config_value=self.operation_timeout,
            )
