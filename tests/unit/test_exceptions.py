"""
Unit tests for custom exceptions.

Tests exception hierarchy, context and error messages.
"""

from pymongo.errors import ConnectionFailure

from mdb_data.exceptions import (
    BatchSaveError,
    ConfigurationError,
    ManifestValidationError,
    MongoDataError,
    OperationTimeoutError,
    RelationshipError,
    StoreUnavailableError,
    ValidationError,
)


class TestExceptionHierarchy:
    """Test exception inheritance hierarchy."""

    def test_mongo_data_error_is_runtime_error(self):
        error = MongoDataError("test error")
        assert isinstance(error, RuntimeError)

    def test_all_errors_inherit_from_base(self):
        for cls in (
            ValidationError,
            StoreUnavailableError,
            OperationTimeoutError,
            BatchSaveError,
            ConfigurationError,
            ManifestValidationError,
            RelationshipError,
        ):
            assert issubclass(cls, MongoDataError)

    def test_timeout_is_store_unavailable(self):
        """Callers handling unavailability also catch deadline expiry."""
        error = OperationTimeoutError("too slow", timeout=0.5)
        assert isinstance(error, StoreUnavailableError)

    def test_definition_errors_are_configuration_errors(self):
        assert isinstance(ManifestValidationError("bad"), ConfigurationError)
        assert isinstance(RelationshipError("bad"), ConfigurationError)


class TestExceptionMessages:
    """Test exception message formatting."""

    def test_base_error_message(self):
        message = "Something went wrong"
        error = MongoDataError(message)
        assert str(error) == message
        assert error.message == message
        assert error.context == {}

    def test_base_error_with_context(self):
        error = MongoDataError("Something went wrong", context={"collection": "user"})
        assert "context:" in str(error)
        assert "collection=user" in str(error)

    def test_validation_error_fields(self):
        error = ValidationError("Required field 'name' is missing", entity="User", field_name="name")
        assert error.entity == "User"
        assert error.field_name == "name"
        assert error.context == {"entity": "User", "field": "name"}

    def test_store_unavailable_chains_cause(self):
        cause = ConnectionFailure("connection refused")
        try:
            try:
                raise cause
            except ConnectionFailure as e:
                raise StoreUnavailableError("Store unavailable", operation="save") from e
        except StoreUnavailableError as error:
            assert error.__cause__ is cause
            assert error.operation == "save"
            assert error.context["operation"] == "save"

    def test_operation_timeout_context(self):
        error = OperationTimeoutError(
            "find_all did not complete", timeout=1.5, operation="find_all", collection="user"
        )
        assert error.timeout == 1.5
        assert error.context == {"timeout": 1.5, "operation": "find_all", "collection": "user"}

    def test_configuration_error_fields(self):
        error = ConfigurationError("bad limit", config_key="default_limit", config_value=-1)
        assert error.config_key == "default_limit"
        assert error.config_value == -1
        assert "config_key=default_limit" in str(error)

    def test_manifest_validation_error_paths(self):
        error = ManifestValidationError(
            "Invalid manifest", error_paths=["methods.find_all.action"], entity="User"
        )
        assert error.error_paths == ["methods.find_all.action"]
        assert error.entity == "User"
        assert error.context["error_paths"] == ["methods.find_all.action"]

    def test_relationship_error_path(self):
        error = RelationshipError("not a relationship", path="ratings.teacher", entity="Rating")
        assert error.path == "ratings.teacher"
        assert error.context == {"path": "ratings.teacher", "entity": "Rating"}


class TestBatchSaveError:
    def test_reports_failures_and_saved(self):
        failure = ValidationError("missing name")
        error = BatchSaveError(
            "1 of 3 entities failed to save",
            failures=[(1, "entity-b", failure)],
            saved=["entity-a", "entity-c"],
        )
        assert error.failed_indexes == [1]
        assert error.saved == ["entity-a", "entity-c"]
        assert error.failures[0][2] is failure
        assert error.context["failed_indexes"] == [1]
        assert error.context["saved_count"] == 2

    def test_defaults_empty(self):
        error = BatchSaveError("nothing")
        assert error.failures == []
        assert error.saved == []
        assert error.failed_indexes == []
