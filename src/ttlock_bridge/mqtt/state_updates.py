"""Lock state publishing.

The whole state of a lock lives in one retained JSON document on
``ttlock/<id>``; every entity's ``value_template`` picks its own key out of it.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from ttlock_bridge.const import PAYLOAD_LOCK, PAYLOAD_UNLOCK
from ttlock_bridge.logging_abstraction import get_logger
from ttlock_bridge.structs import AudioManage, LockedStatus, LockState
from ttlock_bridge.topics import device_id, state_topic

if TYPE_CHECKING:
    from ttlock_bridge.mqtt.client import TTLockBridge
    from ttlock_bridge.structs import LockDeviceProtocol, LockInfo

logger = get_logger(__name__)


async def read_lock_state(lock: LockDeviceProtocol, info: LockInfo) -> LockState:
    """Query the lock for everything its entities display.

    An unknown lock status leaves ``state`` out instead of guessing.
    """
    status = await lock.get_lock_status()
    battery = await lock.get_battery()
    rssi = await lock.get_rssi()

    lock_state: str | None = None
    if status is not None and status != LockedStatus.UNKNOWN:
        lock_state = PAYLOAD_LOCK if status == LockedStatus.LOCKED else PAYLOAD_UNLOCK

    audio: bool | None = None
    if info.has_lock_sound:
        audio = (await lock.get_lock_sound()) == AudioManage.TURN_ON

    autolock: int | None = None
    if info.has_autolock:
        autolock = await lock.get_autolock_time()

    return LockState(battery=battery, rssi=rssi, state=lock_state, audio=audio, autolock=autolock)


class StateUpdateHelper:
    """Helper class for publishing lock state to MQTT."""

    def __init__(self, bridge: TTLockBridge) -> None:
        self.bridge = bridge

    async def publish_lock_state(self, lock: LockDeviceProtocol) -> bool:
        """Read and publish the retained state document of ``lock``.

        Returns False when the bridge is not connected. :class:`PublishError`
        propagates.
        """
        lp = f"{self.bridge.lp}state:"
        if not self.bridge.is_connected:
            logger.debug("%s Not connected, skipping state for %s", lp, lock.address)
            return False

        info = self.bridge.lock_info(lock)
        lock_state = await read_lock_state(lock, info)
        await self.bridge.publish(state_topic(device_id(info.address)), lock_state.to_payload(), retain=True)
        logger.debug("%s Published state of '%s': %s", lp, info.name, lock_state.to_payload())
        return True
