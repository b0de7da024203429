"""
Shared fixtures for unit tests.

Locks and the lock manager are MagicMocks shaped like the protocols in
ttlock_bridge.structs; the MQTT session is a MagicMock with an AsyncMock publish.
"""

from unittest.mock import AsyncMock, MagicMock

import pytest
from lock_helpers import make_lock

from ttlock_bridge.mqtt.client import TTLockBridge
from ttlock_bridge.structs import BridgeEnv


@pytest.fixture
def mock_lock():
    """Lock supporting both auto-lock and sound."""
    return make_lock()


@pytest.fixture
def basic_lock():
    """Lock without optional features."""
    return make_lock(autolock=False, sound=False)


@pytest.fixture
def mock_manager():
    """Mock lock manager; every operation succeeds."""
    manager = MagicMock()
    manager.on = MagicMock()
    manager.lock_lock = AsyncMock(return_value=True)
    manager.unlock_lock = AsyncMock(return_value=True)
    manager.set_auto_lock = AsyncMock(return_value=True)
    manager.set_audio = AsyncMock(return_value=True)
    return manager


@pytest.fixture
def bridge_env():
    return BridgeEnv(mqtt_url="mqtt://broker.local:1883", mqtt_user="user", mqtt_pass="pass")


@pytest.fixture
def bridge(mock_manager, bridge_env):
    """Bridge that believes it is connected, with a mock MQTT session and no real sleeping."""
    b = TTLockBridge(mock_manager, bridge_env)
    b.client = MagicMock()
    b.client.publish = AsyncMock()
    b._connected = True
    b.command_router.sleep = AsyncMock()
    return b
