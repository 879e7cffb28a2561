"""
stock_engines.tracer -- Engine invocation tracer emitting STOCK_ENGINE_TRACE.

Responsibility:
    ``@traced_engine`` wraps a pure engine function and emits one structured
    log record per call: engine name and version, a fingerprint of the
    selected arguments, the duration and the wrapped function's name.

Architecture position:
    Engines -- support for the pure statistics layer.  Emits a log record
    only; the wrapped function stays pure.  Logs under the
    ``stock_kernel.engines.tracer`` namespace so the kernel's logging
    configuration picks it up without an import.

Invariants enforced:
    - Fingerprints are deterministic: arguments are bound to the signature
      (positional and keyword calls fingerprint identically, defaults
      included), dict keys are sorted and floats use repr().
    - An exception raised by the engine propagates unchanged and no trace
      record is emitted for the failed call.

Failure modes:
    - Unknown types fall back to ``str(value)``; a type without a stable
      __str__ yields an unstable fingerprint.

Usage:
    from stock_engines.tracer import traced_engine

    @traced_engine("forecasting.trend", "1.0", fingerprint_fields=("values",))
    def calculate_trend(values, threshold=0.1):
        ...
"""

from __future__ import annotations

import dataclasses
import functools
import hashlib
import inspect
import logging
import time
from collections.abc import Callable, Mapping
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import UUID

TRACE_TYPE = "STOCK_ENGINE_TRACE"

_logger = logging.getLogger("stock_kernel.engines.tracer")


def _canonicalize(value: Any) -> str:
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, Enum):
        return _canonicalize(value.value)
    if isinstance(value, float):
        return repr(value)
    if isinstance(value, (int, Decimal, UUID)):
        return str(value)
    if isinstance(value, str):
        return value
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return _canonicalize(dataclasses.asdict(value))
    if isinstance(value, Mapping):
        items = sorted(value.items(), key=lambda kv: str(kv[0]))
        return "{" + ",".join(f"{k}:{_canonicalize(v)}" for k, v in items) + "}"
    if isinstance(value, (list, tuple)):
        return "[" + ",".join(_canonicalize(v) for v in value) + "]"
    return str(value)


def compute_input_fingerprint(
    fingerprint_fields: tuple[str, ...],
    arguments: Mapping[str, Any],
) -> str:
    """
    SHA-256 prefix (16 hex chars) over ``field=value`` pairs.

    Fields absent from ``arguments`` are recorded as "null".
    """
    canonical = "|".join(
        f"{name}={_canonicalize(arguments.get(name))}" for name in fingerprint_fields
    )
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()[:16]


def traced_engine(
    engine_name: str,
    engine_version: str,
    fingerprint_fields: tuple[str, ...] = (),
) -> Callable:
    """Decorator emitting STOCK_ENGINE_TRACE for each successful call."""

    def decorator(func: Callable) -> Callable:
        signature = inspect.signature(func)

        @functools.wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            fingerprint = ""
            if fingerprint_fields:
                bound = signature.bind(*args, **kwargs)
                bound.apply_defaults()
                fingerprint = compute_input_fingerprint(fingerprint_fields, bound.arguments)

            started = time.monotonic()
            result = func(*args, **kwargs)
            duration_ms = round((time.monotonic() - started) * 1000, 2)

            _logger.info(
                TRACE_TYPE,
                extra={
                    "trace_type": TRACE_TYPE,
                    "engine_name": engine_name,
                    "engine_version": engine_version,
                    "input_fingerprint": fingerprint,
                    "duration_ms": duration_ms,
                    "function": func.__qualname__,
                },
            )
            return result

        return wrapper

    return decorator
