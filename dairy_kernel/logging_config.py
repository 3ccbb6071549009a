"""Structured JSON logging for the dairy kernel."""

__all__ = [
    "StructuredFormatter",
    "LogContext",
    "get_logger",
    "configure_logging",
    "reset_logging",
]

import json
import logging
import sys
from contextvars import ContextVar
from datetime import UTC, datetime
from decimal import Decimal
from typing import Any
from uuid import UUID

# ---------------------------------------------------------------------------
# Context propagation
# ---------------------------------------------------------------------------


class LogContext:
    """Thread-safe / async-safe context holder for operation-scoped log fields."""

    _correlation_id: ContextVar[str | None] = ContextVar(
        "log_correlation_id", default=None
    )
    _operation: ContextVar[str | None] = ContextVar(
        "log_operation", default=None
    )
    _farmer_id: ContextVar[str | None] = ContextVar(
        "log_farmer_id", default=None
    )
    _request_id: ContextVar[str | None] = ContextVar(
        "log_request_id", default=None
    )
    _feed_id: ContextVar[str | None] = ContextVar(
        "log_feed_id", default=None
    )

    _FIELD_NAMES = (
        "correlation_id",
        "operation",
        "farmer_id",
        "request_id",
        "feed_id",
    )

    @classmethod
    def set(
        cls,
        *,
        correlation_id: str | None = None,
        operation: str | None = None,
        farmer_id: str | None = None,
        request_id: str | None = None,
        feed_id: str | None = None,
    ) -> None:
        """Set context fields. Only non-None values are updated."""
        if correlation_id is not None:
            cls._correlation_id.set(correlation_id)
        if operation is not None:
            cls._operation.set(operation)
        if farmer_id is not None:
            cls._farmer_id.set(farmer_id)
        if request_id is not None:
            cls._request_id.set(request_id)
        if feed_id is not None:
            cls._feed_id.set(feed_id)

    @classmethod
    def get_all(cls) -> dict[str, str]:
        """Return all non-None context fields as a dict."""
        ctx: dict[str, str] = {}
        for name in cls._FIELD_NAMES:
            val = getattr(cls, f"_{name}").get()
            if val is not None:
                ctx[name] = val
        return ctx

    @classmethod
    def clear(cls) -> None:
        """Reset all context fields to None."""
        for name in cls._FIELD_NAMES:
            getattr(cls, f"_{name}").set(None)

    @classmethod
    def bind(cls, **kwargs: str | None) -> "_LogContextManager":
        """Context manager that sets fields on entry and restores on exit."""
        return _LogContextManager(**kwargs)


class _LogContextManager:
    """Context manager for LogContext.bind()."""

    def __init__(self, **kwargs: str | None):
        self._kwargs = kwargs
        self._tokens: dict[str, Any] = {}

    def __enter__(self) -> type[LogContext]:
        for key, val in self._kwargs.items():
            if val is not None:
                var = getattr(LogContext, f"_{key}", None)
                if var is not None:
                    self._tokens[key] = var.set(str(val))
        return LogContext

    def __exit__(self, *exc: Any) -> None:
        for key, token in self._tokens.items():
            var = getattr(LogContext, f"_{key}", None)
            if var is not None:
                var.reset(token)


# ---------------------------------------------------------------------------
# JSON Formatter
# ---------------------------------------------------------------------------

_RECORD_ATTRS: frozenset[str] = frozenset(
    vars(logging.LogRecord("", 0, "", 0, "", (), None)).keys()
) | {"message", "taskName"}


def _json_default(obj: Any) -> Any:
    # Quantities and money stay exact in the log line
    if isinstance(obj, (Decimal, UUID)):
        return str(obj)
    if isinstance(obj, datetime):
        return obj.isoformat()
    return repr(obj)


class StructuredFormatter(logging.Formatter):
    """
    One JSON object per record.

    Key order: ts, level, logger, message, then LogContext fields, then the
    record's ``extra`` payload.  A context field is never overwritten by an
    extra of the same name.  For DairyKernelError the ``code`` and public
    attributes (feed_id, requested, available...) are copied as ``exc_*``.
    """

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            **LogContext.get_all(),
        }
        payload.update(
            (key, val)
            for key, val in vars(record).items()
            if key not in _RECORD_ATTRS and key not in payload
        )

        if record.exc_info and record.exc_info[1] is not None:
            payload.update(_exception_fields(record.exc_info[1]))
            payload["traceback"] = self.formatException(record.exc_info)

        return json.dumps(payload, default=_json_default)


def _exception_fields(exc: BaseException) -> dict[str, Any]:
    fields: dict[str, Any] = {
        "exc_type": type(exc).__name__,
        "exc_message": str(exc),
    }
    code = getattr(exc, "code", None)
    if code is not None:
        fields["exc_code"] = code
        fields.update(
            (f"exc_{name}", value)
            for name, value in vars(exc).items()
            if not name.startswith("_") and name != "code"
        )
    return fields


# ---------------------------------------------------------------------------
# Logger factory
# ---------------------------------------------------------------------------

_LOGGER_PREFIX = "dairy_kernel"


def get_logger(name: str) -> logging.Logger:
    """Get a logger under the dairy_kernel namespace."""
    return logging.getLogger(f"{_LOGGER_PREFIX}.{name}")


# ---------------------------------------------------------------------------
# Initialization
# ---------------------------------------------------------------------------

# Marks the handler configure_logging installed; other handlers (test
# capture, host application) are left alone.
_OWNED_HANDLER_ATTR = "_dairy_kernel_owned"


def _owned_handlers(root_logger: logging.Logger) -> list[logging.Handler]:
    return [h for h in root_logger.handlers if getattr(h, _OWNED_HANDLER_ATTR, False)]


def configure_logging(
    *,
    level: int = logging.INFO,
    stream: Any = None,
    handler: logging.Handler | None = None,
) -> None:
    """
    Install the JSON handler on the ``dairy_kernel`` logger.

    Idempotent: once a handler is installed, later calls (the engine calls
    this on every init) change nothing until ``reset_logging``.
    """
    root_logger = logging.getLogger(_LOGGER_PREFIX)
    if _owned_handlers(root_logger):
        return

    h = handler if handler is not None else logging.StreamHandler(stream or sys.stderr)
    h.setFormatter(StructuredFormatter())
    setattr(h, _OWNED_HANDLER_ATTR, True)
    root_logger.addHandler(h)
    root_logger.setLevel(level)
    root_logger.propagate = False


def reset_logging() -> None:
    """Remove the installed handler and restore the default level. Tests only."""
    root_logger = logging.getLogger(_LOGGER_PREFIX)
    for h in _owned_handlers(root_logger):
        root_logger.removeHandler(h)
    root_logger.setLevel(logging.WARNING)
