"""Timing for calls that cross a process or network boundary.

``@timed`` wraps plain functions (cec-client writes) and ``@timed_async``
coroutines (MQTT publishes). A call slower than CEC_PROXY_PERF_THRESHOLD_MS
is logged as a warning, anything faster at debug level.
CEC_PROXY_PERF_TRACKING=0 turns measurement off.
"""

from __future__ import annotations

import functools
import time
from collections.abc import Awaitable, Callable
from typing import ParamSpec, TypeVar

from cec_proxy import const
from cec_proxy.logging_abstraction import get_logger

__all__ = ["measure_time", "timed", "timed_async"]

P = ParamSpec("P")
T = TypeVar("T")

logger = get_logger(__name__)


def measure_time(start_time: float) -> float:
    """Milliseconds since ``start_time``, a ``time.perf_counter()`` reading."""
    return (time.perf_counter() - start_time) * 1000


def _report(operation: str, start_time: float) -> None:
    elapsed_ms = measure_time(start_time)
    threshold_ms = const.CEC_PROXY_PERF_THRESHOLD_MS
    context = {"operation": operation, "duration_ms": round(elapsed_ms, 2), "threshold_ms": threshold_ms}
    if elapsed_ms > threshold_ms:
        logger.warning("[%s] took %.1fms (threshold: %dms)", operation, elapsed_ms, threshold_ms, extra=context)
    else:
        logger.debug("[%s] took %.1fms", operation, elapsed_ms, extra=context)


def timed(operation_name: str | None = None) -> Callable[[Callable[P, T]], Callable[P, T]]:
    def decorator(func: Callable[P, T]) -> Callable[P, T]:
        operation = operation_name or func.__name__

        @functools.wraps(func)
        def wrapper(*args: P.args, **kwargs: P.kwargs) -> T:
            if not const.CEC_PROXY_PERF_TRACKING:
                return func(*args, **kwargs)
            start_time = time.perf_counter()
            try:
                return func(*args, **kwargs)
            finally:
                _report(operation, start_time)

        return wrapper

    return decorator


def timed_async(
    operation_name: str | None = None,
) -> Callable[[Callable[P, Awaitable[T]]], Callable[P, Awaitable[T]]]:
    def decorator(func: Callable[P, Awaitable[T]]) -> Callable[P, Awaitable[T]]:
        operation = operation_name or func.__name__

        @functools.wraps(func)
        async def wrapper(*args: P.args, **kwargs: P.kwargs) -> T:
            if not const.CEC_PROXY_PERF_TRACKING:
                return await func(*args, **kwargs)
            start_time = time.perf_counter()
            try:
                return await func(*args, **kwargs)
            finally:
                _report(operation, start_time)

        return wrapper

    return decorator
