"""
Unit tests for TTLockBridge.

Tests the broker session lifecycle, publishing, message routing and the
lock manager lifecycle listeners.
"""

import asyncio
from unittest.mock import AsyncMock, MagicMock, patch

import aiomqtt
import pytest
from lock_helpers import LOCK_ADDRESS, make_lock, published

from ttlock_bridge.exceptions import PublishError
from ttlock_bridge.mqtt.client import TTLockBridge
from ttlock_bridge.structs import BridgeEnv, LockEvent

pytestmark = pytest.mark.filterwarnings("ignore:There is no current event loop:DeprecationWarning:aiomqtt.client")


def _mock_session():
    session = MagicMock()
    session.__aenter__ = AsyncMock(return_value=session)
    session.__aexit__ = AsyncMock(return_value=None)
    session.subscribe = AsyncMock()
    session.publish = AsyncMock()
    return session


def _message(topic: str, payload):
    msg = MagicMock()
    msg.topic = MagicMock()
    msg.topic.value = topic
    msg.payload = payload
    return msg


class TestInitialization:
    """Tests for TTLockBridge construction"""

    def test_registers_lifecycle_listeners(self, mock_manager, bridge_env):
        bridge = TTLockBridge(mock_manager, bridge_env)

        registered = {c.args[0]: c.args[1] for c in mock_manager.on.call_args_list}
        assert set(registered) == set(LockEvent)
        assert registered[LockEvent.PAIRED] == bridge._on_lock_paired
        assert registered[LockEvent.BATTERY_UPDATED] == bridge._on_lock_battery_updated

    def test_starts_disconnected(self, mock_manager, bridge_env):
        bridge = TTLockBridge(mock_manager, bridge_env)

        assert bridge.is_connected is False
        assert bridge.configured_locks == set()
        assert bridge.discovery_prefix == "homeassistant"

    def test_env_defaults_from_environment(self, mock_manager, monkeypatch):
        monkeypatch.setenv("TTLOCK_DISCOVERY_PREFIX", "ha_test")

        bridge = TTLockBridge(mock_manager)

        assert bridge.discovery_prefix == "ha_test"


class TestConnect:
    """Tests for connect()/stop()"""

    @pytest.mark.asyncio
    async def test_connect_subscribes_to_commands(self, mock_manager, bridge_env):
        session = _mock_session()
        with patch("ttlock_bridge.mqtt.client.aiomqtt.Client", return_value=session) as client_cls:
            bridge = TTLockBridge(mock_manager, bridge_env)
            await bridge.connect()

        kwargs = client_cls.call_args.kwargs
        assert kwargs["hostname"] == "broker.local"
        assert kwargs["port"] == 1883
        assert kwargs["username"] == "user"
        assert kwargs["password"] == "pass"
        assert kwargs["tls_params"] is None
        session.subscribe.assert_awaited_once_with("ttlock/+/set")
        assert bridge.is_connected is True

    @pytest.mark.asyncio
    async def test_connect_is_idempotent(self, mock_manager, bridge_env):
        session = _mock_session()
        with patch("ttlock_bridge.mqtt.client.aiomqtt.Client", return_value=session) as client_cls:
            bridge = TTLockBridge(mock_manager, bridge_env)
            await bridge.connect()
            await bridge.connect()

        assert client_cls.call_count == 1
        assert session.subscribe.await_count == 1

    @pytest.mark.asyncio
    async def test_tls_url(self, mock_manager):
        env = BridgeEnv(mqtt_url="mqtts://secure.broker")
        with patch("ttlock_bridge.mqtt.client.aiomqtt.Client", return_value=_mock_session()) as client_cls:
            await TTLockBridge(mock_manager, env).connect()

        kwargs = client_cls.call_args.kwargs
        assert kwargs["port"] == 8883
        assert kwargs["tls_params"] is not None

    @pytest.mark.asyncio
    async def test_connect_failure_propagates(self, mock_manager, bridge_env):
        session = _mock_session()
        session.__aenter__ = AsyncMock(side_effect=aiomqtt.MqttError("[Errno 111] Connection refused"))
        with patch("ttlock_bridge.mqtt.client.aiomqtt.Client", return_value=session):
            bridge = TTLockBridge(mock_manager, bridge_env)
            with pytest.raises(aiomqtt.MqttError):
                await bridge.connect()

        assert bridge.is_connected is False

    @pytest.mark.asyncio
    async def test_subscribe_failure_closes_session(self, mock_manager, bridge_env):
        session = _mock_session()
        session.subscribe = AsyncMock(side_effect=aiomqtt.MqttError("not authorized"))
        with patch("ttlock_bridge.mqtt.client.aiomqtt.Client", return_value=session):
            bridge = TTLockBridge(mock_manager, bridge_env)
            with pytest.raises(aiomqtt.MqttError):
                await bridge.connect()

        session.__aexit__.assert_awaited_once()
        assert bridge.is_connected is False

    @pytest.mark.asyncio
    async def test_stop_disconnects(self, bridge):
        bridge.client.__aexit__ = AsyncMock(return_value=None)

        await bridge.stop()

        bridge.client.__aexit__.assert_awaited_once()
        assert bridge.is_connected is False

    @pytest.mark.asyncio
    async def test_stop_swallows_disconnect_error(self, bridge):
        bridge.client.__aexit__ = AsyncMock(side_effect=aiomqtt.MqttError("already gone"))

        await bridge.stop()

        assert bridge.is_connected is False


class TestPublish:
    """Tests for publish()"""

    @pytest.mark.asyncio
    async def test_dict_payload_is_json(self, bridge):
        await bridge.publish("ttlock/abc", {"battery": 50}, retain=True)

        bridge.client.publish.assert_awaited_once_with("ttlock/abc", b'{"battery": 50}', qos=0, retain=True)

    @pytest.mark.asyncio
    async def test_str_payload(self, bridge):
        await bridge.publish("some/topic", "hello")

        bridge.client.publish.assert_awaited_once_with("some/topic", b"hello", qos=0, retain=False)

    @pytest.mark.asyncio
    async def test_not_connected_raises(self, bridge):
        bridge._connected = False

        with pytest.raises(PublishError, match="not connected"):
            await bridge.publish("ttlock/abc", {})

    @pytest.mark.asyncio
    async def test_broker_error_raises_publish_error(self, bridge):
        bridge.client.publish = AsyncMock(side_effect=aiomqtt.MqttCodeError(128, "quota"))

        with pytest.raises(PublishError):
            await bridge.publish("ttlock/abc", {})

    @pytest.mark.asyncio
    async def test_mqtt_debug_logs_publish(self, bridge, caplog):
        bridge.env.mqtt_debug = True

        await bridge.publish("ttlock/abc", {"rssi": -60})

        assert 'MQTT Publish ttlock/abc {"rssi": -60}' in caplog.text


class TestMessageRouting:
    """Tests for route_message() and the receiver loop"""

    @pytest.mark.asyncio
    async def test_route_message_runs_command(self, bridge, mock_manager):
        task = bridge.route_message("ttlock/e1581b3a605c/set", b"UNLOCK")

        assert task is not None
        assert await task is True
        mock_manager.unlock_lock.assert_awaited_once_with(LOCK_ADDRESS)

    @pytest.mark.asyncio
    async def test_empty_payload_is_skipped(self, bridge):
        assert bridge.route_message("ttlock/e1581b3a605c/set", b"") is None
        assert bridge.route_message("ttlock/e1581b3a605c/set", None) is None

    @pytest.mark.asyncio
    async def test_commands_run_concurrently(self, bridge, mock_manager):
        release = asyncio.Event()

        async def slow_lock(_address):
            await release.wait()
            return True

        mock_manager.lock_lock = AsyncMock(side_effect=slow_lock)

        first = bridge.route_message("ttlock/e1581b3a605c/set", b"LOCK")
        second = bridge.route_message("ttlock/e1581b3a605c/set", b"AUDIO OFF")
        assert await second is True
        assert not first.done()

        release.set()
        assert await first is True
        assert bridge.command_tasks == set()

    @pytest.mark.asyncio
    async def test_receiver_routes_every_message(self, bridge, mock_manager):
        async def messages():
            yield _message("ttlock/e1581b3a605c/set", b"LOCK")
            yield _message("ttlock/aabbccddeeff/set", b"AUTOLOCK 10")
            yield _message("ttlock/garbage/set", b"LOCK")

        bridge.client.messages = messages()

        await bridge.start_receiver_task()
        await asyncio.gather(*list(bridge.command_tasks))

        mock_manager.lock_lock.assert_awaited_once_with(LOCK_ADDRESS)
        mock_manager.set_auto_lock.assert_awaited_once_with("AA:BB:CC:DD:EE:FF", 10)


class TestLifecycleListeners:
    """Tests for the lock manager event handlers"""

    @pytest.mark.asyncio
    async def test_paired_publishes_discovery_only(self, bridge, mock_lock):
        await bridge._on_lock_paired(mock_lock)

        topics = [t for t, _, _ in published(bridge)]
        assert len(topics) == 5
        assert "ttlock/e1581b3a605c" not in topics

    @pytest.mark.asyncio
    async def test_connected_publishes_discovery_then_state(self, bridge, mock_lock):
        await bridge._on_lock_connected(mock_lock)

        topics = [t for t, _, _ in published(bridge)]
        assert topics[0] == "homeassistant/lock/e1581b3a605c/lock/config"
        assert topics[-1] == "ttlock/e1581b3a605c"
        assert len(topics) == 6

    @pytest.mark.asyncio
    async def test_connected_twice_only_discovers_once(self, bridge, mock_lock):
        await bridge._on_lock_connected(mock_lock)
        await bridge._on_lock_connected(mock_lock)

        topics = [t for t, _, _ in published(bridge)]
        assert topics.count("homeassistant/lock/e1581b3a605c/lock/config") == 1
        assert topics.count("ttlock/e1581b3a605c") == 2

    @pytest.mark.asyncio
    @pytest.mark.parametrize("handler", ["_on_lock_lock", "_on_lock_unlock", "_on_lock_battery_updated"])
    async def test_state_events_publish_state_only(self, bridge, mock_lock, handler):
        await getattr(bridge, handler)(mock_lock)

        assert [t for t, _, _ in published(bridge)] == ["ttlock/e1581b3a605c"]

    @pytest.mark.asyncio
    async def test_publish_failure_does_not_raise(self, bridge, mock_lock, caplog):
        bridge.client.publish = AsyncMock(side_effect=aiomqtt.MqttError("gone"))

        await bridge._on_lock_connected(mock_lock)

        assert LOCK_ADDRESS not in bridge.configured_locks
        assert "Discovery for E1:58:1B:3A:60:5C failed" in caplog.text
        assert "State update for E1:58:1B:3A:60:5C failed" in caplog.text

    @pytest.mark.asyncio
    async def test_not_connected_publishes_nothing(self, bridge, mock_lock):
        bridge._connected = False

        await bridge._on_lock_connected(make_lock())

        bridge.client.publish.assert_not_called()
