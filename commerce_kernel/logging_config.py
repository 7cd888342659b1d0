"""
Structured JSON logging for the commerce kernel.

Every record is one JSON object per line.  Three sources feed a record:

    - the fixed envelope (``ts``, ``level``, ``logger``, ``message``);
    - the bound :class:`LogContext` fields of the current action
      (which document, which warehouse, which service call);
    - the ``extra`` mapping passed at the call site.

Context wins over ``extra`` on a key clash, so a service that binds
``document_id`` cannot be contradicted by a nested helper.

Usage::

    logger = get_logger("modules.documents.service")

    with LogContext.bind(action="receive_goods", document_id=str(order_id)):
        logger.info("receive_goods_started", extra={"line_count": 2})
"""

__all__ = [
    "CONTEXT_FIELDS",
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
from contextvars import ContextVar, Token
from datetime import UTC, date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import UUID

# ---------------------------------------------------------------------------
# Context propagation
# ---------------------------------------------------------------------------

CONTEXT_FIELDS: tuple[str, ...] = (
    "correlation_id",
    "action",
    "domain",
    "document_id",
    "document_number",
    "product_code",
    "warehouse_code",
)

_VARS: dict[str, ContextVar[str | None]] = {
    name: ContextVar(f"commerce_log_{name}", default=None) for name in CONTEXT_FIELDS
}


def _context_var(name: str) -> ContextVar[str | None]:
    try:
        return _VARS[name]
    except KeyError:
        raise TypeError(f"Unknown log context field: {name!r}") from None


def _as_text(value: Any) -> str:
    if isinstance(value, Enum):
        return str(value.value)
    return str(value)


class LogContext:
    """Async-safe holder for the fields of the action being logged."""

    @classmethod
    def set(cls, **fields: Any) -> None:
        """Set context fields. ``None`` values are ignored."""
        for name, value in fields.items():
            var = _context_var(name)
            if value is not None:
                var.set(_as_text(value))

    @classmethod
    def get_all(cls) -> dict[str, str]:
        """Return the non-None context fields."""
        return {
            name: value
            for name, var in _VARS.items()
            if (value := var.get()) is not None
        }

    @classmethod
    def clear(cls) -> None:
        for var in _VARS.values():
            var.set(None)

    @classmethod
    def bind(cls, **fields: Any) -> "_BoundContext":
        """Context manager: set ``fields`` on entry, restore on exit."""
        return _BoundContext(fields)


class _BoundContext:

    def __init__(self, fields: dict[str, Any]):
        self._fields = fields
        self._tokens: list[tuple[ContextVar[str | None], Token]] = []

    def __enter__(self) -> type[LogContext]:
        for name, value in self._fields.items():
            var = _context_var(name)
            if value is not None:
                self._tokens.append((var, var.set(_as_text(value))))
        return LogContext

    def __exit__(self, *exc: Any) -> None:
        while self._tokens:
            var, token = self._tokens.pop()
            var.reset(token)


# ---------------------------------------------------------------------------
# JSON Formatter
# ---------------------------------------------------------------------------

_STDLIB_KEYS: frozenset[str] = frozenset(
    vars(logging.LogRecord("", 0, "", 0, "", (), None)).keys()
) | {"message", "taskName"}


def _json_default(obj: Any) -> Any:
    if isinstance(obj, Enum):
        return obj.value
    if isinstance(obj, (UUID, Decimal)):
        return str(obj)
    if isinstance(obj, (datetime, date)):
        return obj.isoformat()
    if isinstance(obj, (set, frozenset)):
        return sorted(obj, key=str)
    return str(obj)


def _exception_fields(exc: BaseException) -> dict[str, Any]:
    fields: dict[str, Any] = {
        "exc_type": type(exc).__name__,
        "exc_message": str(exc),
    }
    code = getattr(exc, "code", None)
    if code is not None:
        fields["exc_code"] = code
    # Structured attributes of CommerceKernelError subclasses
    for key, value in vars(exc).items():
        if not key.startswith("_") and key not in ("args", "code"):
            fields[f"exc_{key}"] = value
    return fields


class StructuredFormatter(logging.Formatter):
    """Formats each log record as a single JSON line."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        payload.update(LogContext.get_all())

        for key, value in vars(record).items():
            if key not in _STDLIB_KEYS and key not in payload:
                payload[key] = value

        if record.exc_info and record.exc_info[1] is not None:
            payload.update(_exception_fields(record.exc_info[1]))
            payload["traceback"] = self.formatException(record.exc_info)

        return json.dumps(payload, default=_json_default)


# ---------------------------------------------------------------------------
# Logger factory
# ---------------------------------------------------------------------------

_LOGGER_PREFIX = "commerce_kernel"


def get_logger(name: str) -> logging.Logger:
    """Get a logger under the commerce_kernel namespace."""
    return logging.getLogger(f"{_LOGGER_PREFIX}.{name}")


# ---------------------------------------------------------------------------
# Initialization
# ---------------------------------------------------------------------------

_configured = False
_lock = threading.Lock()


def configure_logging(
    *,
    level: int = logging.INFO,
    stream: Any = None,
    handler: logging.Handler | None = None,
) -> None:
    """Attach one JSON handler to the commerce_kernel hierarchy (idempotent)."""
    global _configured
    with _lock:
        if _configured:
            return
        _configured = True

        root_logger = logging.getLogger(_LOGGER_PREFIX)
        root_logger.setLevel(level)
        root_logger.propagate = False

        h = handler if handler is not None else logging.StreamHandler(stream or sys.stderr)
        h.setFormatter(StructuredFormatter())
        root_logger.addHandler(h)


def reset_logging() -> None:
    """Detach handlers so the next configure_logging() call takes effect. Tests only."""
    global _configured
    with _lock:
        _configured = False
        root_logger = logging.getLogger(_LOGGER_PREFIX)
        for h in list(root_logger.handlers):
            root_logger.removeHandler(h)
        root_logger.setLevel(logging.WARNING)
