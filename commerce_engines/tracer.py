"""
commerce_engines.tracer -- COMMERCE_ENGINE_TRACE records for pure engines.

One DEBUG record per engine call: engine name and version, a fingerprint
of the selected arguments, the number of priced lines when the call takes
``items``, and the duration.  Arguments are matched by name whether they
were passed positionally or by keyword.

Fingerprints are value-based: ``Decimal("10")`` and ``Decimal("10.00")``
fingerprint alike, enums by value, and document lines by
``item_id:quantity@price``.

Usage:
    @traced_engine("pricing", "1.0", fingerprint_fields=("items", "tax_rate"))
    def price(self, items, *, tax_rate): ...
"""

from __future__ import annotations

import functools
import hashlib
import inspect
import logging
import time
from collections.abc import Callable, Mapping
from decimal import Decimal
from enum import Enum
from typing import Any

_logger = logging.getLogger("commerce_kernel.engines.tracer")


def _canonicalize(value: Any) -> str:
    """Stable string form of a value for fingerprinting."""
    if value is None:
        return "null"
    if isinstance(value, Enum):
        return str(value.value)
    if isinstance(value, Decimal):
        return format(value.normalize(), "f") if value.is_finite() else str(value)
    if isinstance(value, (str, int, float)):
        return str(value)
    if isinstance(value, Mapping):
        items = sorted(value.items(), key=lambda kv: str(kv[0]))
        return "{" + ",".join(f"{k}:{_canonicalize(v)}" for k, v in items) + "}"
    if isinstance(value, (list, tuple)):
        return "[" + ",".join(_canonicalize(v) for v in value) + "]"
    if hasattr(value, "quantity") and hasattr(value, "price"):
        item_id = getattr(value, "item_id", "")
        return f"{item_id}:{_canonicalize(value.quantity)}@{_canonicalize(value.price)}"
    return str(value)


def compute_input_fingerprint(
    fingerprint_fields: tuple[str, ...],
    arguments: Mapping[str, Any],
) -> str:
    """16-hex-char SHA-256 prefix over the named arguments (missing -> "null")."""
    canonical = "|".join(
        f"{name}={_canonicalize(arguments.get(name))}" for name in fingerprint_fields
    )
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()[:16]


def traced_engine(
    engine_name: str,
    engine_version: str,
    fingerprint_fields: tuple[str, ...] = (),
) -> Callable:
    """Decorator that emits COMMERCE_ENGINE_TRACE for pure engine invocations."""

    def decorator(func: Callable) -> Callable:
        signature = inspect.signature(func)

        @functools.wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            if not _logger.isEnabledFor(logging.DEBUG):
                return func(*args, **kwargs)

            bound = signature.bind_partial(*args, **kwargs)
            bound.apply_defaults()
            arguments = bound.arguments

            t0 = time.monotonic()
            result = func(*args, **kwargs)
            duration_ms = round((time.monotonic() - t0) * 1000, 2)

            extra: dict[str, Any] = {
                "trace_type": "COMMERCE_ENGINE_TRACE",
                "engine_name": engine_name,
                "engine_version": engine_version,
                "input_fingerprint": (
                    compute_input_fingerprint(fingerprint_fields, arguments)
                    if fingerprint_fields else ""
                ),
                "duration_ms": duration_ms,
                "function": func.__qualname__,
            }
            if "items" in arguments:
                extra["line_count"] = len(arguments["items"])
            _logger.debug("COMMERCE_ENGINE_TRACE", extra=extra)
            return result

        return wrapper

    return decorator
