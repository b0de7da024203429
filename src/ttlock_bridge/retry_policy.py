"""Bounded retry for lock manager operations.

BLE round-trips to a lock fail often (lock asleep, link busy, out of range), so
every command is retried a fixed number of times with a fixed pause in between.
There is no backoff and no cancellation: a started loop always runs to success
or exhaustion.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from ttlock_bridge.const import COMMAND_RETRY_ATTEMPTS, COMMAND_RETRY_DELAY
from ttlock_bridge.logging_abstraction import get_logger

logger = get_logger(__name__)

Sleep = Callable[[float], Awaitable[object]]


class RetryPolicy:
    """Fixed attempt budget with a fixed delay between attempts."""

    def __init__(
        self,
        max_attempts: int = COMMAND_RETRY_ATTEMPTS,
        delay_seconds: float = COMMAND_RETRY_DELAY,
    ):
        """Initialize retry policy.

        Args:
            max_attempts: Total attempts including the first one (default: 10)
            delay_seconds: Pause between two attempts (default: 1.0s)
        """
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if delay_seconds < 0:
            raise ValueError("delay_seconds must not be negative")
        self.max_attempts = max_attempts
        self.delay_seconds = delay_seconds

    def get_delay(self, attempt: int) -> float:
        """Delay after the given (1-indexed) failed attempt. Always ``delay_seconds``."""
        del attempt
        return self.delay_seconds

    def __repr__(self) -> str:
        return f"RetryPolicy(max_attempts={self.max_attempts}, delay={self.delay_seconds}s)"


@dataclass(frozen=True, slots=True)
class RetryOutcome:
    succeeded: bool
    attempts: int


async def retry_until_success(
    operation: Callable[[], Awaitable[object]],
    policy: RetryPolicy,
    *,
    description: str = "operation",
    sleep: Sleep | None = None,
) -> RetryOutcome:
    """Await ``operation`` until it returns a truthy value or the policy is exhausted.

    A falsy result and a raised exception are the same thing here: a failed
    attempt. Nothing is raised on exhaustion. ``sleep`` defaults to
    :func:`asyncio.sleep`.
    """
    pause = sleep or asyncio.sleep
    attempt = 0
    while attempt < policy.max_attempts:
        attempt += 1
        try:
            result = await operation()
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.debug("%s attempt %d/%d raised: %r", description, attempt, policy.max_attempts, e)
            result = False
        if result:
            if attempt > 1:
                logger.debug("%s succeeded on attempt %d", description, attempt)
            return RetryOutcome(succeeded=True, attempts=attempt)
        if attempt < policy.max_attempts:
            await pause(policy.get_delay(attempt))
    return RetryOutcome(succeeded=False, attempts=attempt)
