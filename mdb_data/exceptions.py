"""
Custom exceptions for MDB_DATA.

All library errors derive from MongoDataError, which keeps compatibility
with RuntimeError while carrying a context dictionary for diagnostics.
"""

from typing import Any, Dict, List, Optional, Tuple


class MongoDataError(RuntimeError):
    """
    Base exception for MDB_DATA errors.

    Attributes:
        message: Error message
        context: Optional dictionary with additional context (collection,
                 entity, operation, etc.)
    """

    def __init__(self, message: str, context: Optional[Dict[str, Any]] = None) -> None:
        """
        Initialize the exception.

        Args:
            message: Error message
            context: Optional dictionary with additional context information
        """
        super().__init__(message)
        self.message = message
        self.context = context or {}

    def __str__(self) -> str:
        """Return formatted error message with context if available."""
        if self.context:
            context_str = ", ".join(f"{k}={v}" for k, v in self.context.items())
            return f"{self.message} (context: {context_str})"
        return self.message


class ValidationError(MongoDataError):
    """
    Raised when a save violates a declared constraint.

    Covers missing required fields, uniqueness violations, identifier
    mutation and references to unsaved entities. Never retried.

    Attributes:
        message: Error message
        entity: Entity class name (if available)
        field_name: Offending field (if available)
        context: Additional context information
    """

    def __init__(
        self,
        message: str,
        entity: Optional[str] = None,
        field_name: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ) -> None:
        context = context or {}
        if entity:
            context["entity"] = entity
        if field_name:
            context["field"] = field_name
        super().__init__(message, context=context)
        self.entity = entity
        self.field_name = field_name


class StoreUnavailableError(MongoDataError):
    """
    Raised when the underlying store cannot be reached.

    The driver exception is chained as __cause__. No retry is attempted;
    retry policy belongs to the caller or the driver.

    Attributes:
        message: Error message
        operation: Repository operation that failed (if available)
        collection: Collection name (if available)
        context: Additional context information
    """

    def __init__(
        self,
        message: str,
        operation: Optional[str] = None,
        collection: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ) -> None:
        context = context or {}
        if operation:
            context["operation"] = operation
        if collection:
            context["collection"] = collection
        super().__init__(message, context=context)
        self.operation = operation
        self.collection = collection


class OperationTimeoutError(StoreUnavailableError):
    """
    Raised when a repository call exceeds its caller-supplied deadline.

    Attributes:
        timeout: Deadline in seconds
    """

    def __init__(
        self,
        message: str,
        timeout: Optional[float] = None,
        operation: Optional[str] = None,
        collection: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ) -> None:
        context = context or {}
        if timeout is not None:
            context["timeout"] = timeout
        super().__init__(message, operation=operation, collection=collection, context=context)
        self.timeout = timeout


class BatchSaveError(MongoDataError):
    """
    Raised when one or more entities in a save_all batch fail.

    Entities saved before or after the failures remain persisted; there is
    no rollback.

    Attributes:
        failures: List of (index, entity, exception) tuples
        saved: Entities that were persisted
    """

    def __init__(
        self,
        message: str,
        failures: Optional[List[Tuple[int, Any, BaseException]]] = None,
        saved: Optional[List[Any]] = None,
        context: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.failures = failures or []
        self.saved = saved or []
        context = context or {}
        context["failed_indexes"] = [index for index, _, _ in self.failures]
        context["saved_count"] = len(self.saved)
        super().__init__(message, context=context)

    @property
    def failed_indexes(self) -> List[int]:
        """Positions in the batch that failed."""
        return [index for index, _, _ in self.failures]


class ConfigurationError(MongoDataError):
    """
    Raised when configuration or a repository definition is invalid.

    Attributes:
        message: Error message
        config_key: Configuration key that caused the error (if available)
        config_value: Configuration value that caused the error (if available)
        context: Additional context information
    """

    def __init__(
        self,
        message: str,
        config_key: Optional[str] = None,
        config_value: Optional[Any] = None,
        context: Optional[Dict[str, Any]] = None,
    ) -> None:
        context = context or {}
        if config_key:
            context["config_key"] = config_key
        if config_value is not None:
            context["config_value"] = config_value
        super().__init__(message, context=context)
        self.config_key = config_key
        self.config_value = config_value


class ManifestValidationError(ConfigurationError):
    """
    Raised when a repository manifest fails schema validation.

    Attributes:
        error_paths: List of JSON paths with validation errors
        entity: Entity name from the manifest (if available)
    """

    def __init__(
        self,
        message: str,
        error_paths: Optional[List[str]] = None,
        entity: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ) -> None:
        context = context or {}
        if error_paths:
            context["error_paths"] = error_paths
        if entity:
            context["entity"] = entity
        super().__init__(message, context=context)
        self.error_paths = error_paths
        self.entity = entity


class RelationshipError(ConfigurationError):
    """
    Raised when a join path does not name a declared relationship.

    Attributes:
        path: The offending join path
        entity: Entity the path was resolved against
    """

    def __init__(
        self,
        message: str,
        path: Optional[str] = None,
        entity: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ) -> None:
        context = context or {}
        if path:
            context["path"] = path
        if entity:
            context["entity"] = entity
        super().__init__(message, context=context)
        self.path = path
        self.entity = entity
