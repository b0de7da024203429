"""Lock lifecycle event bus.

Lock manager implementations subclass (or own) :class:`LockEventEmitter` and
call :meth:`LockEventEmitter.emit` whenever a lock pairs, connects, locks,
unlocks or reports a new battery level. Every handler runs as its own task so
the emitter (usually a BLE callback) is never blocked. Handlers for the same
lock run one after another in emit order; handlers for different locks
interleave freely.
"""

from __future__ import annotations

import asyncio
from collections import defaultdict

from ttlock_bridge.correlation import correlation_context
from ttlock_bridge.logging_abstraction import get_logger
from ttlock_bridge.structs import LockDeviceProtocol, LockEvent, LockEventHandler

__all__ = ["LockEventEmitter"]

logger = get_logger(__name__)


class LockEventEmitter:
    """Closed-set event emitter with per-lock serialization."""

    lp: str = "events:"

    def __init__(self) -> None:
        self._handlers: defaultdict[LockEvent, list[LockEventHandler]] = defaultdict(list)
        self._device_locks: dict[str, asyncio.Lock] = {}
        self._tasks: set[asyncio.Task[None]] = set()

    def on(self, event: LockEvent, handler: LockEventHandler) -> None:
        """Register ``handler`` for ``event``."""
        self._handlers[LockEvent(event)].append(handler)

    def off(self, event: LockEvent, handler: LockEventHandler) -> None:
        """Unregister ``handler``; unknown handlers are ignored."""
        handlers = self._handlers[LockEvent(event)]
        if handler in handlers:
            handlers.remove(handler)

    def listener_count(self, event: LockEvent) -> int:
        return len(self._handlers[LockEvent(event)])

    def emit(self, event: LockEvent, lock: LockDeviceProtocol) -> list[asyncio.Task[None]]:
        """Schedule every handler of ``event`` for ``lock``. Must be called from the event loop."""
        event = LockEvent(event)
        if self.listener_count(event) == 0:
            logger.debug("%s No listeners for %s (%s)", self.lp, event.value, lock.address)
            return []
        tasks: list[asyncio.Task[None]] = []
        for handler in list(self._handlers[event]):
            task = asyncio.create_task(
                self._run_handler(event, handler, lock),
                name=f"{event.value}:{lock.address}",
            )
            self._tasks.add(task)
            task.add_done_callback(self._tasks.discard)
            tasks.append(task)
        return tasks

    async def drain(self) -> None:
        """Wait for every handler scheduled so far."""
        while self._tasks:
            _ = await asyncio.gather(*list(self._tasks), return_exceptions=True)

    def _device_lock(self, address: str) -> asyncio.Lock:
        device_lock = self._device_locks.get(address)
        if device_lock is None:
            device_lock = self._device_locks[address] = asyncio.Lock()
        return device_lock

    async def _run_handler(self, event: LockEvent, handler: LockEventHandler, lock: LockDeviceProtocol) -> None:
        lp = f"{self.lp}{event.value}:"
        async with self._device_lock(lock.address):
            with correlation_context("evt"):
                try:
                    await handler(lock)
                except asyncio.CancelledError:
                    raise
                except Exception:
                    logger.exception(
                        "%s Handler failed",
                        lp,
                        extra={"address": lock.address, "handler": getattr(handler, "__name__", repr(handler))},
                    )
