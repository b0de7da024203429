"""Exception hierarchy for the TTLock bridge."""

from __future__ import annotations


class TTLockBridgeError(Exception):
    """Base class for all bridge errors."""


class InvalidAddressError(TTLockBridgeError):
    """Hardware address is not six colon-separated hex octets.

    Attributes:
        address: The rejected value

    """

    def __init__(self, address: str) -> None:
        self.address: str = address
        super().__init__(f"Invalid lock address: {address!r}")


class InvalidTopicError(TTLockBridgeError):
    """Topic (or topic segment) does not identify a lock.

    Raised when:
    - The device ID segment is not exactly 12 hex characters
    - A command topic is not shaped ``ttlock/<id>/set``

    Attributes:
        topic: The rejected topic or segment

    """

    def __init__(self, topic: str) -> None:
        self.topic: str = topic
        super().__init__(f"Invalid lock topic: {topic!r}")


class PublishError(TTLockBridgeError):
    """Broker refused a publish, or the bridge is not connected.

    Attributes:
        topic: Topic that was being published
        reason: Specific failure reason

    """

    def __init__(self, topic: str, reason: str) -> None:
        self.topic: str = topic
        self.reason: str = reason
        super().__init__(f"Publish to {topic} failed: {reason}")


class OperationError(TTLockBridgeError):
    """Lock manager operation did not succeed within its attempt budget.

    Attributes:
        verb: Command verb (LOCK, UNLOCK, ...)
        address: Lock address
        attempts: Number of attempts made

    """

    def __init__(self, verb: str, address: str, attempts: int) -> None:
        self.verb: str = verb
        self.address: str = address
        self.attempts: int = attempts
        super().__init__(f"{verb} on {address} failed after {attempts} attempts")


class ConfigError(TTLockBridgeError):
    """Invalid bridge settings (bad broker URL, unreadable options file, ...)."""

    def __init__(self, reason: str) -> None:
        self.reason: str = reason
        super().__init__(f"Configuration error: {reason}")
