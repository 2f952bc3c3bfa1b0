"""
Correlation IDs for tracing one command or refresh through the bridge.

Every inbound MQTT command and every timer refresh runs inside its own
correlation context, so the log lines of the device call, the refresh and the
publishes it causes share one ID even when several run concurrently.
"""

from __future__ import annotations

import contextvars
import uuid
from collections.abc import Generator
from contextlib import contextmanager

__all__ = [
    "correlation_context",
    "ensure_correlation_id",
    "generate_correlation_id",
    "get_correlation_id",
    "set_correlation_id",
]

_correlation_id: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "neato_correlation_id",
    default=None,
)


def generate_correlation_id() -> str:
    """Return a new UUID4 hex correlation ID."""
    return uuid.uuid4().hex


def get_correlation_id() -> str | None:
    return _correlation_id.get()


def set_correlation_id(correlation_id: str | None) -> None:
    _correlation_id.set(correlation_id)


@contextmanager
def correlation_context(correlation_id: str | None = None) -> Generator[str]:
    """
    Scope a correlation ID to a block, restoring the previous one on exit.

    Args:
        correlation_id: ID to use; a new one is generated when None

    Yields:
        The correlation ID active inside the block
    """
    previous_id = get_correlation_id()
    active_id = correlation_id or generate_correlation_id()
    set_correlation_id(active_id)
    try:
        yield active_id
    finally:
        set_correlation_id(previous_id)


def ensure_correlation_id() -> str:
    """Return the current correlation ID, creating one if none is set."""
    current_id = get_correlation_id()
    if current_id is None:
        current_id = generate_correlation_id()
        set_correlation_id(current_id)
    return current_id
