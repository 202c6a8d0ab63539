"""
Structured JSON logging for the wallet kernel.

Every record is emitted as one JSON object per line:

    {"ts": "...", "level": "INFO", "logger": "wallet_kernel.services.transfer_engine",
     "message": "transfer_completed", "correlation_id": "...", "sender_id": "...",
     "settled_amount": "15.79", ...}

The message is a snake_case event name; event data goes in ``extra={...}``.
Request-scoped identifiers (correlation, actor, sender, receiver,
transaction) live in LogContext and are merged into every record emitted
while they are bound.
"""

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
import threading
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import UTC, datetime
from decimal import Decimal
from typing import Any, Iterator
from uuid import UUID

_LOGGER_PREFIX = "wallet_kernel"

# ---------------------------------------------------------------------------
# Context propagation
# ---------------------------------------------------------------------------

_CONTEXT_FIELDS = (
    "correlation_id",
    "actor_id",
    "sender_id",
    "receiver_id",
    "transaction_id",
)

_context: ContextVar[dict[str, str]] = ContextVar("wallet_log_context", default={})


def _known(fields: dict[str, Any]) -> dict[str, str]:
    return {
        name: str(value)
        for name, value in fields.items()
        if name in _CONTEXT_FIELDS and value is not None
    }


class LogContext:
    """
    Request-scoped log fields, safe across threads and asyncio tasks.

    The current mapping is never mutated in place; every change installs a
    new dict, so a value bound in one thread is invisible to the others.
    Unknown field names are ignored.
    """

    @staticmethod
    def set(**fields: Any) -> None:
        """Set fields for the rest of the current context.  None leaves a field as is."""
        _context.set({**_context.get(), **_known(fields)})

    @staticmethod
    def get_all() -> dict[str, str]:
        return dict(_context.get())

    @staticmethod
    def clear() -> None:
        _context.set({})

    @staticmethod
    @contextmanager
    def bind(**fields: Any) -> Iterator[None]:
        """Bind fields for the duration of a ``with`` block, then restore."""
        token = _context.set({**_context.get(), **_known(fields)})
        try:
            yield
        finally:
            _context.reset(token)


# ---------------------------------------------------------------------------
# JSON formatter
# ---------------------------------------------------------------------------

_RESERVED_ATTRS: frozenset[str] = frozenset(
    vars(logging.LogRecord("", 0, "", 0, "", (), None))
) | {"message", "taskName"}


def _json_default(obj: Any) -> Any:
    if isinstance(obj, (UUID, Decimal)):
        return str(obj)
    if isinstance(obj, datetime):
        return obj.isoformat()
    return str(obj)


def _exception_fields(exc: BaseException) -> dict[str, Any]:
    fields: dict[str, Any] = {
        "exc_type": type(exc).__name__,
        "exc_message": str(exc),
    }
    code = getattr(exc, "code", None)
    if code is not None:
        fields["exc_code"] = code
    # WalletKernelError subclasses keep their context as public attributes
    for name, value in vars(exc).items():
        if not name.startswith("_") and name != "code":
            fields[f"exc_{name}"] = value
    return fields


class StructuredFormatter(logging.Formatter):
    """Renders a LogRecord as a single JSON line."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            **LogContext.get_all(),
        }

        for name, value in vars(record).items():
            if name not in _RESERVED_ATTRS:
                payload.setdefault(name, value)

        if record.exc_info and record.exc_info[1] is not None:
            payload.update(_exception_fields(record.exc_info[1]))
            payload["traceback"] = self.formatException(record.exc_info)

        return json.dumps(payload, default=_json_default)


# ---------------------------------------------------------------------------
# Setup
# ---------------------------------------------------------------------------


def get_logger(name: str) -> logging.Logger:
    """Logger ``wallet_kernel.<name>``."""
    return logging.getLogger(f"{_LOGGER_PREFIX}.{name}")


_configured = False
_configure_lock = threading.Lock()


def configure_logging(
    *,
    level: int | str = logging.INFO,
    stream: Any = None,
    handler: logging.Handler | None = None,
) -> None:
    """
    Attach one JSON handler to the ``wallet_kernel`` logger.

    Only the first call has an effect; later calls return immediately so
    the engine, the bootstrap and the test suite can all call it.

    Args:
        level: Logger level (int or name).
        stream: Stream for the default StreamHandler.  Defaults to stderr.
        handler: Use this handler instead of a StreamHandler.
    """
    global _configured
    with _configure_lock:
        if _configured:
            return
        _configured = True

    kernel_logger = logging.getLogger(_LOGGER_PREFIX)
    kernel_logger.setLevel(level.upper() if isinstance(level, str) else level)
    kernel_logger.propagate = False

    if handler is None:
        handler = logging.StreamHandler(stream or sys.stderr)
    handler.setFormatter(StructuredFormatter())
    kernel_logger.addHandler(handler)


def reset_logging() -> None:
    """Drop handlers and allow configure_logging() to run again.  Tests only."""
    global _configured
    with _configure_lock:
        _configured = False
    kernel_logger = logging.getLogger(_LOGGER_PREFIX)
    kernel_logger.handlers.clear()
    kernel_logger.setLevel(logging.WARNING)
