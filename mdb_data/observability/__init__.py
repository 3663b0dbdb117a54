"""
Observability components.

Structured logging with request context for repository operations.
"""

from .logging import (
    RepositoryLoggerAdapter,
    bind_log_context,
    clear_correlation_id,
    clear_log_context,
    get_correlation_id,
    get_logger,
    get_logging_context,
    log_operation,
    set_correlation_id,
    set_log_context,
)

__all__ = [
    "bind_log_context",
    "set_log_context",
    "clear_log_context",
    "get_logging_context",
    "get_correlation_id",
    "set_correlation_id",
    "clear_correlation_id",
    "RepositoryLoggerAdapter",
    "get_logger",
    "log_operation",
]
