"""MQTT client core for the TTLock bridge.

Owns the broker session, listens to the lock manager's lifecycle events and
hands inbound command messages to the :class:`CommandRouter`.
"""

from __future__ import annotations

import asyncio
import json
import uuid
from typing import TYPE_CHECKING, Any

import aiomqtt

from ttlock_bridge.exceptions import PublishError, TTLockBridgeError
from ttlock_bridge.logging_abstraction import get_logger
from ttlock_bridge.mqtt.command_routing import CommandRouter
from ttlock_bridge.mqtt.discovery import DiscoveryHelper
from ttlock_bridge.mqtt.state_updates import StateUpdateHelper
from ttlock_bridge.structs import BridgeEnv, LockEvent, LockInfo
from ttlock_bridge.topics import COMMAND_TOPIC_FILTER

if TYPE_CHECKING:
    from ttlock_bridge.retry_policy import RetryPolicy
    from ttlock_bridge.structs import LockDeviceProtocol, LockManagerProtocol

logger = get_logger(__name__)


class TTLockBridge:
    """Bridge between a lock manager and an MQTT broker."""

    lp: str = "mqtt:"

    def __init__(
        self,
        manager: LockManagerProtocol,
        env: BridgeEnv | None = None,
        *,
        retry_policy: RetryPolicy | None = None,
    ) -> None:
        self.manager: LockManagerProtocol = manager
        self.env: BridgeEnv = env or BridgeEnv.from_env()
        self.discovery_prefix: str = self.env.discovery_prefix
        self.client: aiomqtt.Client | None = None
        self.client_id: str = f"ttlock_bridge_{uuid.uuid4().hex[:8]}"
        self._connected: bool = False
        self.known_locks: dict[str, LockInfo] = {}
        self.command_tasks: set[asyncio.Task[bool]] = set()

        self.discovery = DiscoveryHelper(self)
        self.state_updates = StateUpdateHelper(self)
        self.command_router = CommandRouter(self, retry_policy)

        manager.on(LockEvent.PAIRED, self._on_lock_paired)
        manager.on(LockEvent.CONNECTED, self._on_lock_connected)
        manager.on(LockEvent.UNLOCK, self._on_lock_unlock)
        manager.on(LockEvent.LOCK, self._on_lock_lock)
        manager.on(LockEvent.BATTERY_UPDATED, self._on_lock_battery_updated)

    @property
    def is_connected(self) -> bool:
        return self._connected

    @property
    def configured_locks(self) -> set[str]:
        return self.discovery.configured_locks

    def lock_info(self, lock: LockDeviceProtocol) -> LockInfo:
        """Capability set of ``lock``, read from the handle the first time the lock is seen."""
        info = self.known_locks.get(lock.address)
        if info is None:
            info = self.known_locks[lock.address] = LockInfo.from_lock(lock)
        return info

    async def connect(self) -> None:
        """Connect and subscribe to lock commands. No-op when already connected.

        Connection errors (``aiomqtt.MqttError``) propagate to the caller.
        """
        lp = f"{self.lp}connect:"
        if self._connected:
            return
        broker = self.env.broker
        logger.debug("%s Connecting to MQTT broker %s:%s...", lp, broker.hostname, broker.port)
        client = aiomqtt.Client(
            hostname=broker.hostname,
            port=broker.port,
            username=self.env.mqtt_user,
            password=self.env.mqtt_pass,
            identifier=self.client_id,
            tls_params=aiomqtt.TLSParameters() if broker.tls else None,
        )
        _ = await client.__aenter__()
        try:
            await client.subscribe(COMMAND_TOPIC_FILTER)
        except aiomqtt.MqttError:
            logger.exception("%s Subscribing to %s failed", lp, COMMAND_TOPIC_FILTER)
            await client.__aexit__(None, None, None)
            raise
        self.client = client
        self._connected = True
        logger.info("%s MQTT connected", lp, extra={"host": broker.hostname, "port": broker.port})

    async def stop(self) -> None:
        """Disconnect from the broker. Command retry loops already running are left to finish."""
        lp = f"{self.lp}stop:"
        if not self._connected or self.client is None:
            return
        self._connected = False
        try:
            await self.client.__aexit__(None, None, None)
        except aiomqtt.MqttError as e:
            logger.warning("%s MQTT disconnect failed: %s", lp, e)
        else:
            logger.info("%s Disconnected from MQTT broker", lp)

    async def publish(self, topic: str, payload: dict[str, Any] | str | bytes, *, retain: bool = False) -> None:
        """Publish ``payload`` (dicts are sent as JSON). Raises :class:`PublishError`."""
        lp = f"{self.lp}publish:"
        if not self._connected or self.client is None:
            raise PublishError(topic, "not connected")
        if isinstance(payload, dict):
            data = json.dumps(payload).encode()
        elif isinstance(payload, str):
            data = payload.encode()
        else:
            data = payload
        if self.env.mqtt_debug:
            logger.info("%s MQTT Publish %s %s", lp, topic, data.decode(errors="replace"))
        try:
            await self.client.publish(topic, data, qos=0, retain=retain)
        except aiomqtt.MqttError as e:
            logger.warning("%s [MqttError] -> %s", lp, e)
            raise PublishError(topic, str(e)) from e

    def route_message(self, topic: str, payload: bytes | bytearray | str | None) -> asyncio.Task[bool] | None:
        """Schedule handling of one inbound message as its own task.

        Commands are not serialized or cancelled: a newer command for a lock
        may finish before an older one that is still retrying.
        """
        if not payload:
            logger.debug("%s Received empty payload for topic: %s, skipping...", self.lp, topic)
            return None
        text = payload if isinstance(payload, str) else bytes(payload).decode("utf-8", errors="replace")
        task = asyncio.create_task(self.command_router.handle_message(topic, text), name=f"cmd:{topic}")
        self.command_tasks.add(task)
        task.add_done_callback(self.command_tasks.discard)
        return task

    async def start_receiver_task(self) -> None:
        """Listen for command messages until the session ends."""
        lp = f"{self.lp}rcv:"
        assert self.client is not None, "client must be connected"
        logger.debug("%s Waiting for MQTT messages on %s...", lp, COMMAND_TOPIC_FILTER)
        async for message in self.client.messages:
            payload = message.payload
            if payload is not None and not isinstance(payload, (bytes, bytearray, str)):
                payload = str(payload)
            _ = self.route_message(message.topic.value, payload)

    async def start(self) -> None:
        """Connect, then process commands until cancelled or the broker drops the session."""
        lp = f"{self.lp}start:"
        await self.connect()
        try:
            await self.start_receiver_task()
        except asyncio.CancelledError:
            logger.debug("%s Receiver cancelled", lp)
            raise
        except aiomqtt.MqttError as e:
            logger.warning("%s MQTT error: %s", lp, e)
            self._connected = False
            raise

    async def _publish_discovery(self, lock: LockDeviceProtocol) -> None:
        try:
            _ = await self.discovery.register_lock(lock)
        except TTLockBridgeError as e:
            logger.warning("%s Discovery for %s failed: %s", self.lp, lock.address, e)

    async def _publish_state(self, lock: LockDeviceProtocol) -> None:
        try:
            _ = await self.state_updates.publish_lock_state(lock)
        except TTLockBridgeError as e:
            logger.warning("%s State update for %s failed: %s", self.lp, lock.address, e)

    async def _on_lock_paired(self, lock: LockDeviceProtocol) -> None:
        await self._publish_discovery(lock)

    async def _on_lock_connected(self, lock: LockDeviceProtocol) -> None:
        await self._publish_discovery(lock)
        await self._publish_state(lock)

    async def _on_lock_unlock(self, lock: LockDeviceProtocol) -> None:
        await self._publish_state(lock)

    async def _on_lock_lock(self, lock: LockDeviceProtocol) -> None:
        await self._publish_state(lock)

    async def _on_lock_battery_updated(self, lock: LockDeviceProtocol) -> None:
        await self._publish_state(lock)
