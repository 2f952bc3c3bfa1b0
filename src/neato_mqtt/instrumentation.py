"""
Timing of device round-trips.

Nucleo calls go over the internet to the robot and back; ``timed_async``
records how long each one took and warns when it exceeds the configured
threshold. Disabled with ``NEATO_PERF_TRACKING=false``.
"""

from __future__ import annotations

import functools
import time
from collections.abc import Awaitable, Callable
from typing import ParamSpec, TypeVar

from neato_mqtt.logging_abstraction import NeatoLogger

__all__ = [
    "measure_time",
    "timed_async",
]

P = ParamSpec("P")
T = TypeVar("T")


def measure_time(start_time: float) -> float:
    """Milliseconds elapsed since ``start_time`` (a ``time.perf_counter()`` value)."""
    return (time.perf_counter() - start_time) * 1000


def timed_async(
    operation_name: str | None = None,
) -> Callable[[Callable[P, Awaitable[T]]], Callable[P, Awaitable[T]]]:
    """
    Decorator for timing coroutine functions.

    Args:
        operation_name: Name for the operation (defaults to function name)

    Example:
        @timed_async("nucleo_request")
        async def send_command(self, cmd): ...
    """

    def decorator(func: Callable[P, Awaitable[T]]) -> Callable[P, Awaitable[T]]:
        @functools.wraps(func)
        async def wrapper(*args: P.args, **kwargs: P.kwargs) -> T:
            from neato_mqtt.const import NEATO_PERF_THRESHOLD_MS, NEATO_PERF_TRACKING
            from neato_mqtt.logging_abstraction import get_logger

            if not NEATO_PERF_TRACKING:
                return await func(*args, **kwargs)

            start_time = time.perf_counter()
            try:
                return await func(*args, **kwargs)
            finally:
                _log_timing(
                    get_logger(__name__),
                    operation_name or func.__name__,
                    measure_time(start_time),
                    NEATO_PERF_THRESHOLD_MS,
                )

        return wrapper

    return decorator


def _log_timing(logger: NeatoLogger, operation_name: str, elapsed_ms: float, threshold_ms: int) -> None:
    context = {
        "operation": operation_name,
        "duration_ms": round(elapsed_ms, 2),
        "threshold_ms": threshold_ms,
        "exceeded_threshold": elapsed_ms > threshold_ms,
    }
    if elapsed_ms > threshold_ms:
        logger.warning(
            "[%s] completed in %.1fms (threshold: %dms)",
            operation_name,
            elapsed_ms,
            threshold_ms,
            extra=context,
        )
    else:
        logger.debug("[%s] completed in %.1fms", operation_name, elapsed_ms, extra=context)
