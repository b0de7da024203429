"""Mapping between lock addresses and MQTT topics.

A lock with address ``E1:58:1B:3A:60:5C`` has device ID ``e1581b3a605c``, its
state on ``ttlock/e1581b3a605c`` and receives commands on
``ttlock/e1581b3a605c/set``.
"""

from __future__ import annotations

import re

from ttlock_bridge.const import TTLOCK_SET_SUFFIX, TTLOCK_TOPIC
from ttlock_bridge.exceptions import InvalidAddressError, InvalidTopicError
from ttlock_bridge.structs import LockInfo

__all__ = [
    "COMMAND_TOPIC_FILTER",
    "address_from_topic",
    "command_topic",
    "device_id",
    "discovery_topics",
    "parse_command_topic",
    "state_topic",
]

COMMAND_TOPIC_FILTER = f"{TTLOCK_TOPIC}/+/{TTLOCK_SET_SUFFIX}"

_ADDRESS_RE = re.compile(r"^[0-9A-Fa-f]{2}(?::[0-9A-Fa-f]{2}){5}$")
_DEVICE_ID_RE = re.compile(r"^[0-9A-Fa-f]{12}$")


def device_id(address: str) -> str:
    """Lowercase, colon-free hex of a lock address."""
    if not isinstance(address, str) or not _ADDRESS_RE.match(address):
        raise InvalidAddressError(str(address))
    return address.replace(":", "").lower()


def address_from_topic(segment: str) -> str:
    """Inverse of :func:`device_id`: ``e1581b3a605c`` -> ``E1:58:1B:3A:60:5C``."""
    if not _DEVICE_ID_RE.match(segment):
        raise InvalidTopicError(segment)
    return ":".join(segment[i : i + 2] for i in range(0, 12, 2)).upper()


def state_topic(lock_id: str) -> str:
    return f"{TTLOCK_TOPIC}/{lock_id}"


def command_topic(lock_id: str) -> str:
    return f"{TTLOCK_TOPIC}/{lock_id}/{TTLOCK_SET_SUFFIX}"


def parse_command_topic(topic: str) -> str:
    """Return the lock address addressed by a ``ttlock/<id>/set`` topic."""
    parts = topic.split("/")
    if len(parts) != 3 or parts[0] != TTLOCK_TOPIC or parts[2] != TTLOCK_SET_SUFFIX:
        raise InvalidTopicError(topic)
    return address_from_topic(parts[1])


def discovery_topics(discovery_prefix: str, lock_id: str, info: LockInfo) -> dict[str, str]:
    """Discovery config topic per entity kind a lock must publish, in publish order."""
    topics = {
        "lock": f"{discovery_prefix}/lock/{lock_id}/lock/config",
        "battery": f"{discovery_prefix}/sensor/{lock_id}/battery/config",
        "rssi": f"{discovery_prefix}/sensor/{lock_id}/rssi/config",
    }
    if info.has_autolock:
        topics["autolock"] = f"{discovery_prefix}/number/{lock_id}/autolock/config"
    if info.has_lock_sound:
        topics["audio"] = f"{discovery_prefix}/switch/{lock_id}/audio/config"
    return topics
