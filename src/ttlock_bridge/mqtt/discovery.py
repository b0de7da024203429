"""Home Assistant MQTT discovery for TTLock locks.

Every lock gets a lock entity, a battery sensor and a signal strength sensor.
Locks that support auto-lock also get a number entity for the auto-lock delay,
and locks with a configurable sound get an audio switch. All documents share
one device block so Home Assistant groups them under a single device.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from ttlock_bridge.const import (
    PAYLOAD_AUDIO_OFF,
    PAYLOAD_AUDIO_ON,
    PAYLOAD_LOCK,
    PAYLOAD_UNLOCK,
    TTLOCK_ID_PREFIX,
)
from ttlock_bridge.logging_abstraction import get_logger
from ttlock_bridge.structs import LockInfo
from ttlock_bridge.topics import command_topic, device_id, discovery_topics, state_topic

if TYPE_CHECKING:
    from ttlock_bridge.mqtt.client import TTLockBridge
    from ttlock_bridge.structs import LockDeviceProtocol

logger = get_logger(__name__)


def device_registry_struct(lock_id: str, info: LockInfo) -> dict[str, Any]:
    """Device block shared by all entities of one lock."""
    return {
        "identifiers": [f"{TTLOCK_ID_PREFIX}{lock_id}"],
        "name": info.name,
        "manufacturer": info.manufacturer,
        "model": info.model,
        "sw_version": info.firmware,
    }


def build_discovery_documents(info: LockInfo, discovery_prefix: str) -> list[tuple[str, dict[str, Any]]]:
    """(topic, document) pairs for a lock, in publish order."""
    lock_id = device_id(info.address)
    unique_id = f"{TTLOCK_ID_PREFIX}{lock_id}"
    name = info.name
    device = device_registry_struct(lock_id, info)
    state = state_topic(lock_id)
    command = command_topic(lock_id)
    topics = discovery_topics(discovery_prefix, lock_id, info)

    documents: dict[str, dict[str, Any]] = {
        "lock": {
            "unique_id": unique_id,
            "name": name,
            "device": device,
            "state_topic": state,
            "command_topic": command,
            "payload_lock": PAYLOAD_LOCK,
            "payload_unlock": PAYLOAD_UNLOCK,
            "state_locked": PAYLOAD_LOCK,
            "state_unlocked": PAYLOAD_UNLOCK,
            "value_template": "{{ value_json.state }}",
            "optimistic": False,
            "retain": False,
        },
        "battery": {
            "unique_id": f"{unique_id}_battery",
            "name": f"{name} Battery",
            "device": device,
            "device_class": "battery",
            "unit_of_measurement": "%",
            "state_topic": state,
            "value_template": "{{ value_json.battery }}",
        },
        "rssi": {
            "unique_id": f"{unique_id}_rssi",
            "name": f"{name} RSSI",
            "device": device,
            "device_class": "signal_strength",
            "unit_of_measurement": "dB",
            "state_topic": state,
            "value_template": "{{ value_json.rssi }}",
        },
        "autolock": {
            "unique_id": f"{unique_id}_autolock",
            "name": f"{name} AutoLock Time",
            "device": device,
            "unit_of_measurement": "s",
            "icon": "mdi:clock",
            "state_topic": state,
            "value_template": "{{ value_json.autolock }}",
            "min": 0,
            "max": 60,
            "command_topic": command,
            "command_template": "AUTOLOCK {{ value }}",
        },
        "audio": {
            "unique_id": f"{unique_id}_audio",
            "name": f"{name} Audio",
            "device": device,
            "icon": "mdi:speaker",
            "state_topic": state,
            "value_template": "{{ value_json.audio }}",
            "command_topic": command,
            "payload_on": PAYLOAD_AUDIO_ON,
            "payload_off": PAYLOAD_AUDIO_OFF,
        },
    }
    # discovery_topics only lists the optional kinds the lock supports
    return [(topic, documents[kind]) for kind, topic in topics.items()]


class DiscoveryHelper:
    """Publishes discovery documents once per lock for the lifetime of the bridge."""

    def __init__(self, bridge: TTLockBridge) -> None:
        self.bridge = bridge
        self.configured_locks: set[str] = set()

    def is_configured(self, address: str) -> bool:
        return address in self.configured_locks

    def forget_lock(self, address: str) -> None:
        """Drop a lock from the configured set so its next event re-publishes discovery."""
        self.configured_locks.discard(address)

    async def register_lock(self, lock: LockDeviceProtocol) -> bool:
        """Publish all discovery documents for ``lock``.

        Returns False without publishing when the bridge is not connected or
        the lock was already configured. A :class:`PublishError` propagates and
        leaves the lock unconfigured; documents published before the failure
        stay on the broker.
        """
        lp = f"{self.bridge.lp}discovery:"
        if not self.bridge.is_connected:
            logger.debug("%s Not connected, skipping discovery for %s", lp, lock.address)
            return False
        address = lock.address
        if self.is_configured(address):
            return False

        info = self.bridge.lock_info(lock)
        documents = build_discovery_documents(info, self.bridge.discovery_prefix)
        for topic, document in documents:
            await self.bridge.publish(topic, document, retain=True)

        self.configured_locks.add(address)
        logger.info(
            "%s Registered lock '%s'",
            lp,
            info.name,
            extra={"address": address, "entities": len(documents)},
        )
        return True
