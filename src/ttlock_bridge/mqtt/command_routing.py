"""MQTT command routing for lock commands.

Commands arrive as plain text on ``ttlock/<id>/set``::

    LOCK
    UNLOCK
    AUTOLOCK 30
    AUDIO ON | AUDIO OFF

The command channel is fire-and-forget: nothing is ever reported back to the
publisher. Each command is retried against the lock manager until it succeeds
or the retry policy runs out.
"""

from __future__ import annotations

import re
from collections.abc import Awaitable, Callable
from typing import TYPE_CHECKING, NamedTuple

from ttlock_bridge.correlation import correlation_context
from ttlock_bridge.exceptions import InvalidTopicError, OperationError
from ttlock_bridge.logging_abstraction import get_logger
from ttlock_bridge.retry_policy import RetryPolicy, Sleep, retry_until_success
from ttlock_bridge.topics import parse_command_topic

if TYPE_CHECKING:
    from ttlock_bridge.mqtt.client import TTLockBridge

logger = get_logger(__name__)

_LEADING_INT = re.compile(r"[+-]?\d+")


class LockCommand(NamedTuple):
    verb: str
    argument: str | None = None


def parse_command(payload: str) -> LockCommand | None:
    """Split a command body into verb and optional argument; None for an empty body.

    Verbs are case-sensitive: ``unlock`` is not ``UNLOCK`` and is ignored.
    """
    tokens = payload.split()
    if not tokens:
        return None
    return LockCommand(tokens[0], tokens[1] if len(tokens) > 1 else None)


class CommandRouter:
    """Maps command messages to lock manager calls and retries them."""

    def __init__(self, bridge: TTLockBridge, retry_policy: RetryPolicy | None = None) -> None:
        self.bridge = bridge
        self.retry_policy = retry_policy or RetryPolicy()
        self.sleep: Sleep | None = None

    def _operation_for(self, address: str, command: LockCommand, lp: str) -> Callable[[], Awaitable[bool]] | None:
        """Manager call for a command, or None when there is nothing to send to the lock."""
        manager = self.bridge.manager
        verb, argument = command

        if verb == "LOCK":
            return lambda: manager.lock_lock(address)
        if verb == "UNLOCK":
            return lambda: manager.unlock_lock(address)
        if verb == "AUTOLOCK":
            if argument is None:
                return None
            # leading integer only: "30.0" from a number entity means 30
            match = _LEADING_INT.match(argument)
            if match is None:
                logger.warning("%s Ignoring AUTOLOCK with non-integer argument: %r", lp, argument)
                return None
            seconds = int(match.group())
            return lambda: manager.set_auto_lock(address, seconds)
        if verb == "AUDIO":
            if argument is None:
                return None
            on = argument == "ON"
            return lambda: manager.set_audio(address, on)

        logger.debug("%s Unknown command verb %r, ignoring", lp, verb)
        return None

    async def dispatch(self, address: str, payload: str) -> bool:
        """Run one command against the lock at ``address``.

        Returns whether the command ended in success; ignored and empty
        commands count as successful. Never raises for a failing lock.
        """
        lp = f"{self.bridge.lp}cmd:"
        command = parse_command(payload)
        if command is None:
            logger.debug("%s Empty command for %s, skipping", lp, address)
            return True

        operation = self._operation_for(address, command, lp)
        if operation is None:
            return True

        outcome = await retry_until_success(
            operation,
            self.retry_policy,
            description=f"{command.verb} {address}",
            sleep=self.sleep,
        )
        if not outcome.succeeded:
            logger.warning("%s Giving up: %s", lp, OperationError(command.verb, address, outcome.attempts))
            return False

        logger.info(
            "%s %s done",
            lp,
            command.verb,
            extra={"address": address, "argument": command.argument, "attempts": outcome.attempts},
        )
        return True

    async def handle_message(self, topic: str, payload: str) -> bool:
        """Route one inbound message; malformed topics are dropped."""
        lp = f"{self.bridge.lp}rcv:"
        with correlation_context("cmd"):
            try:
                address = parse_command_topic(topic)
            except InvalidTopicError:
                logger.debug("%s Topic: %s Message: %s", lp, topic, payload)
                return False

            if self.bridge.env.mqtt_debug:
                logger.info("%s MQTT command: %s %s", lp, address, payload)
            return await self.dispatch(address, payload)
