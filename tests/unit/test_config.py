"""
Unit tests for RepositoryConfig.
"""

import pytest

from mdb_data.config import RepositoryConfig
from mdb_data.exceptions import ConfigurationError


@pytest.fixture
def clean_env(monkeypatch):
    for name in ("MONGO_URI", "DB_NAME", "MDB_DATA_DEFAULT_LIMIT", "MDB_DATA_OPERATION_TIMEOUT"):
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


class TestRepositoryConfig:
    def test_defaults(self, clean_env):
        config = RepositoryConfig()
        assert config.default_limit == 100
        assert config.operation_timeout is None
        config.validate()

    def test_from_environment(self, clean_env):
        clean_env.setenv("MONGO_URI", "mongodb://localhost:27017")
        clean_env.setenv("DB_NAME", "school")
        clean_env.setenv("MDB_DATA_DEFAULT_LIMIT", "25")
        clean_env.setenv("MDB_DATA_OPERATION_TIMEOUT", "2.5")

        config = RepositoryConfig()

        assert config.mongo_uri == "mongodb://localhost:27017"
        assert config.db_name == "school"
        assert config.default_limit == 25
        assert config.operation_timeout == 2.5
        config.validate(require_connection=True)

    def test_direct_parameters_win(self, clean_env):
        clean_env.setenv("MDB_DATA_DEFAULT_LIMIT", "25")
        assert RepositoryConfig(default_limit=0).default_limit == 0

    def test_non_numeric_environment(self, clean_env):
        clean_env.setenv("MDB_DATA_DEFAULT_LIMIT", "many")
        with pytest.raises(ConfigurationError) as exc_info:
            RepositoryConfig()
        assert exc_info.value.config_key == "MDB_DATA_DEFAULT_LIMIT"

    def test_connection_required(self, clean_env):
        with pytest.raises(ConfigurationError, match="mongo_uri"):
            RepositoryConfig().validate(require_connection=True)
        with pytest.raises(ConfigurationError, match="db_name"):
            RepositoryConfig(mongo_uri="mongodb://localhost").validate(require_connection=True)

    def test_negative_limit(self, clean_env):
        with pytest.raises(ConfigurationError, match="default_limit"):
            RepositoryConfig(default_limit=-1).validate()

    def test_non_positive_timeout(self, clean_env):
        with pytest.raises(ConfigurationError, match="operation_timeout"):
            RepositoryConfig(operation_timeout=0).validate()

    def test_repository_validates_config(self, clean_env, db, models):
        from mdb_data.repositories import MongoRepository

        with pytest.raises(ConfigurationError):
            MongoRepository(db, models.Course, config=RepositoryConfig(default_limit=-5))
