"""
vending_engines.tracer -- ENGINE_TRACE records for pure engine calls.

``@traced_engine`` logs one INFO record after every successful call: engine
name and version, the wrapped function, wall time, and whatever counters
``describe`` extracts from the result. Failed calls log nothing here; the
exception reaches the caller unchanged.

Usage:
    from vending_engines.tracer import traced_engine

    @traced_engine("reconciliation", "1.0", describe=lambda r: {"items": len(r.items)})
    def build_report(items):
        ...
"""

from __future__ import annotations

import functools
import time
from collections.abc import Callable, Mapping
from typing import Any, TypeVar

from vending_kernel.logging_config import get_logger

_logger = get_logger("engines.tracer")

F = TypeVar("F", bound=Callable[..., Any])

# Result -> extra log fields; keys must not collide with LogRecord attributes
ResultDescriber = Callable[[Any], Mapping[str, Any]]


def traced_engine(
    engine_name: str,
    engine_version: str,
    describe: ResultDescriber | None = None,
) -> Callable[[F], F]:
    """Decorator that logs ENGINE_TRACE for each successful invocation."""

    def decorator(func: F) -> F:
        @functools.wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            started = time.perf_counter()
            result = func(*args, **kwargs)
            elapsed_ms = round((time.perf_counter() - started) * 1000, 2)

            fields: dict[str, Any] = dict(describe(result)) if describe is not None else {}
            fields.update(
                trace_type="ENGINE_TRACE",
                engine_name=engine_name,
                engine_version=engine_version,
                function=func.__qualname__,
                duration_ms=elapsed_ms,
            )
            _logger.info("ENGINE_TRACE", extra=fields)
            return result

        return wrapper  # type: ignore[return-value]

    return decorator
