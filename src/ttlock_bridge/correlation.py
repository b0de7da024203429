"""
Correlation IDs for following one lock event or MQTT command through the logs.

Each inbound command and each lock manager event opens its own scope, so every
line logged by a retry loop (possibly ten attempts spread over ten seconds)
carries the same ID even while other locks are being handled concurrently.
"""

from __future__ import annotations

import contextvars
import uuid
from collections.abc import Generator
from contextlib import contextmanager

__all__ = [
    "correlation_context",
    "get_correlation_id",
    "new_correlation_id",
]

_correlation_id: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "ttlock_correlation_id",
    default=None,
)


def new_correlation_id(origin: str | None = None) -> str:
    """Return a fresh ID, optionally tagged with where the work originated (e.g. ``cmd``, ``evt``)."""
    short = uuid.uuid4().hex[:12]
    return f"{origin}-{short}" if origin else short


def get_correlation_id() -> str | None:
    return _correlation_id.get()


@contextmanager
def correlation_context(origin: str | None = None, correlation_id: str | None = None) -> Generator[str]:
    """
    Scope a correlation ID to the enclosed block.

    Args:
        origin: Tag prepended to a generated ID
        correlation_id: Use this ID instead of generating one

    Yields:
        The ID active inside the block; the previous one is restored on exit
    """
    corr_id = correlation_id or new_correlation_id(origin)
    token = _correlation_id.set(corr_id)
    try:
        yield corr_id
    finally:
        _correlation_id.reset(token)
