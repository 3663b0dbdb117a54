"""
Logging utilities for MDB_DATA.

Repository calls log through a RepositoryLoggerAdapter, which stamps every
record with the collection it serves and with whatever request context the
caller has bound (correlation id, tenant, ...).

Usage:
    with bind_log_context(correlation_id="req-42", tenant="acme"):
        await users.find_all()   # records carry correlation_id and tenant
"""

import contextlib
import contextvars
import logging
import uuid
from typing import Any, Iterator, Mapping

CORRELATION_ID = "correlation_id"

# Fields attached to every record logged in the current context
_log_context: contextvars.ContextVar[Mapping[str, Any]] = contextvars.ContextVar(
    "mdb_data_log_context", default={}
)


def get_logging_context() -> dict[str, Any]:
    """Fields bound in the current context."""
    return dict(_log_context.get())


def set_log_context(**fields: Any) -> None:
    """Merge fields into the current context until cleared."""
    _log_context.set({**_log_context.get(), **fields})


def clear_log_context() -> None:
    _log_context.set({})


@contextlib.contextmanager
def bind_log_context(**fields: Any) -> Iterator[dict[str, Any]]:
    """Bind fields for the duration of a block; the previous context is restored on exit."""
    token = _log_context.set({**_log_context.get(), **fields})
    try:
        yield get_logging_context()
    finally:
        _log_context.reset(token)


def get_correlation_id() -> str | None:
    return _log_context.get().get(CORRELATION_ID)


def set_correlation_id(correlation_id: str | None = None) -> str:
    """
    Bind a correlation id to the current context.

    Args:
        correlation_id: Id to bind (a new uuid4 when omitted)

    Returns:
        The bound correlation id
    """
    correlation_id = correlation_id or str(uuid.uuid4())
    set_log_context(**{CORRELATION_ID: correlation_id})
    return correlation_id


def clear_correlation_id() -> None:
    context = get_logging_context()
    context.pop(CORRELATION_ID, None)
    _log_context.set(context)


class RepositoryLoggerAdapter(logging.LoggerAdapter):
    """
    Adds the bound context and the adapter's own fields (e.g. collection)
    to each record. Per-call ``extra`` wins over both.
    """

    def process(self, msg: str, kwargs: dict[str, Any]) -> tuple[str, dict[str, Any]]:
        extra = {**_log_context.get(), **(self.extra or {}), **kwargs.get("extra", {})}
        kwargs["extra"] = extra
        return msg, kwargs


def get_logger(name: str, **fields: Any) -> RepositoryLoggerAdapter:
    """
    Get a logger adapter carrying ``fields`` on every record.

    Example:
        log = get_logger(__name__, collection="user")
    """
    return RepositoryLoggerAdapter(logging.getLogger(name), fields)


def log_operation(
    logger: logging.Logger | logging.LoggerAdapter,
    operation: str,
    *,
    success: bool = True,
    duration_ms: float | None = None,
    level: int | None = None,
    **fields: Any,
) -> None:
    """
    Log one completed repository operation.

    Successful calls log at DEBUG and failures at WARNING unless ``level``
    is given. The record carries ``operation``, ``success``, ``duration_ms``
    and any extra ``fields``.
    """
    if level is None:
        level = logging.DEBUG if success else logging.WARNING

    extra: dict[str, Any] = {"operation": operation, "success": success, **fields}
    outcome = "ok" if success else "failed"
    message = f"{operation} {outcome}"
    if duration_ms is not None:
        extra["duration_ms"] = round(duration_ms, 2)
        message += f" in {duration_ms:.2f}ms"

    logger.log(level, message, extra=extra)
