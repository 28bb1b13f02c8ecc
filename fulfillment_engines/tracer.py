"""
fulfillment_engines.tracer -- Engine invocation tracer.

Wraps pure engine functions with a structured ``FULFILLMENT_ENGINE_TRACE``
log record carrying the engine name and version, a deterministic
fingerprint of selected inputs, and the duration.  The wrapper only reads
arguments and logs; it never changes what the engine computes.

Usage:
    @traced_engine("reconciler", "1.0", fingerprint_fields=("quantity",))
    def compute_line_total(quantity, unit_price, ...):
        ...
"""

from __future__ import annotations

import functools
import inspect
import time
from collections.abc import Callable
from typing import Any

from fulfillment_kernel.logging_config import get_logger
from fulfillment_kernel.utils.hashing import hash_payload

_logger = get_logger("engines.tracer")


def compute_input_fingerprint(
    fingerprint_fields: tuple[str, ...],
    arguments: dict[str, Any],
) -> str:
    """16-hex-char SHA-256 prefix over the named arguments.

    Missing fields are recorded as null.  Decimals are normalized, so
    Decimal("1.50") and Decimal("1.5") fingerprint alike.
    """
    selected = {name: arguments.get(name) for name in fingerprint_fields}
    return hash_payload(selected)[:16]


def traced_engine(
    engine_name: str,
    engine_version: str,
    fingerprint_fields: tuple[str, ...] = (),
) -> Callable:
    """Decorator that emits FULFILLMENT_ENGINE_TRACE for pure engine calls."""

    def decorator(func: Callable) -> Callable:
        signature = inspect.signature(func)

        @functools.wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            fp = ""
            if fingerprint_fields:
                bound = signature.bind_partial(*args, **kwargs)
                fp = compute_input_fingerprint(fingerprint_fields, dict(bound.arguments))

            t0 = time.monotonic()
            result = func(*args, **kwargs)
            duration_ms = round((time.monotonic() - t0) * 1000, 3)

            _logger.debug(
                "FULFILLMENT_ENGINE_TRACE",
                extra={
                    "trace_type": "FULFILLMENT_ENGINE_TRACE",
                    "engine_name": engine_name,
                    "engine_version": engine_version,
                    "input_fingerprint": fp,
                    "duration_ms": duration_ms,
                    "function": func.__qualname__,
                },
            )
            return result

        return wrapper

    return decorator
