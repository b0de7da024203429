from __future__ import annotations

import os
from collections.abc import Awaitable, Callable
from enum import IntEnum, StrEnum
from pathlib import Path
from typing import Any, NamedTuple, Protocol, Self, runtime_checkable
from urllib.parse import urlsplit

import yaml
from pydantic import BaseModel, ConfigDict, field_validator

from ttlock_bridge.const import (
    DEFAULT_DISCOVERY_PREFIX,
    DEFAULT_MQTT_URL,
    MQTT_DEFAULT_PORT,
    MQTT_DEFAULT_TLS_PORT,
    YES_ANSWER,
)
from ttlock_bridge.exceptions import ConfigError

__all__ = [
    "AudioManage",
    "BridgeEnv",
    "BrokerAddress",
    "LockDeviceProtocol",
    "LockEvent",
    "LockEventHandler",
    "LockInfo",
    "LockManagerProtocol",
    "LockState",
    "LockedStatus",
]


class LockedStatus(IntEnum):
    UNKNOWN = -1
    UNLOCKED = 0
    LOCKED = 1


class AudioManage(IntEnum):
    UNKNOWN = -1
    QUERY = 1
    TURN_OFF = 2
    TURN_ON = 3


class LockEvent(StrEnum):
    """Lifecycle events emitted by the lock manager."""

    PAIRED = "lockPaired"
    CONNECTED = "lockConnected"
    UNLOCK = "lockUnlock"
    LOCK = "lockLock"
    BATTERY_UPDATED = "lockBatteryUpdated"


@runtime_checkable
class LockDeviceProtocol(Protocol):
    """Lock handle carried by every lifecycle event."""

    @property
    def address(self) -> str: ...

    @property
    def name(self) -> str: ...

    @property
    def manufacturer(self) -> str: ...

    @property
    def model(self) -> str: ...

    @property
    def firmware(self) -> str: ...

    def has_autolock(self) -> bool: ...

    def has_lock_sound(self) -> bool: ...

    async def get_lock_status(self) -> LockedStatus: ...

    async def get_battery(self) -> int: ...

    async def get_rssi(self) -> int: ...

    async def get_lock_sound(self) -> AudioManage: ...

    async def get_autolock_time(self) -> int: ...


LockEventHandler = Callable[[LockDeviceProtocol], Awaitable[None]]


@runtime_checkable
class LockManagerProtocol(Protocol):
    """Operations the bridge needs from the lock manager, keyed by lock address."""

    def on(self, event: LockEvent, handler: LockEventHandler) -> None: ...

    async def lock_lock(self, address: str) -> bool: ...

    async def unlock_lock(self, address: str) -> bool: ...

    async def set_auto_lock(self, address: str, seconds: int) -> bool: ...

    async def set_audio(self, address: str, on: bool) -> bool: ...


class LockInfo(BaseModel):
    """Identity and capability set of a lock, read once when first seen."""

    model_config = ConfigDict(frozen=True)

    address: str
    name: str
    manufacturer: str
    model: str
    firmware: str
    has_autolock: bool = False
    has_lock_sound: bool = False

    @classmethod
    def from_lock(cls, lock: LockDeviceProtocol) -> Self:
        return cls(
            address=lock.address,
            name=lock.name,
            manufacturer=lock.manufacturer,
            model=lock.model,
            firmware=lock.firmware,
            has_autolock=lock.has_autolock(),
            has_lock_sound=lock.has_lock_sound(),
        )


class LockState(BaseModel):
    """Retained state document published on ``ttlock/<id>``.

    Optional fields left as None are dropped from the JSON entirely.
    """

    battery: int
    rssi: int
    state: str | None = None
    audio: bool | None = None
    autolock: int | None = None

    def to_payload(self) -> dict[str, Any]:
        return self.model_dump(exclude_none=True)


class BrokerAddress(NamedTuple):
    hostname: str
    port: int
    tls: bool


class BridgeEnv(BaseModel):
    """Bridge settings.

    Defaults come from the environment; an add-on options file may override them.
    """

    mqtt_url: str = DEFAULT_MQTT_URL
    mqtt_user: str | None = None
    mqtt_pass: str | None = None
    discovery_prefix: str = DEFAULT_DISCOVERY_PREFIX
    mqtt_debug: bool = False

    @field_validator("mqtt_url")
    @classmethod
    def _check_url(cls, value: str) -> str:
        parts = urlsplit(value)
        if parts.scheme not in ("mqtt", "mqtts", "tcp", "ssl") or not parts.hostname:
            msg = f"unsupported broker URL {value!r}, expected mqtt://host[:port] or mqtts://host[:port]"
            raise ValueError(msg)
        return value

    @field_validator("discovery_prefix")
    @classmethod
    def _strip_prefix(cls, value: str) -> str:
        value = value.strip().strip("/")
        return value or DEFAULT_DISCOVERY_PREFIX

    @property
    def broker(self) -> BrokerAddress:
        parts = urlsplit(self.mqtt_url)
        tls = parts.scheme in ("mqtts", "ssl")
        port = parts.port or (MQTT_DEFAULT_TLS_PORT if tls else MQTT_DEFAULT_PORT)
        assert parts.hostname is not None
        return BrokerAddress(parts.hostname, port, tls)

    @classmethod
    def from_env(cls) -> Self:
        """Read settings from the current environment (not the values frozen in const at import)."""
        try:
            return cls(
                mqtt_url=os.environ.get("TTLOCK_MQTT_URL", DEFAULT_MQTT_URL),
                mqtt_user=os.environ.get("TTLOCK_MQTT_USER") or None,
                mqtt_pass=os.environ.get("TTLOCK_MQTT_PASS") or None,
                discovery_prefix=os.environ.get("TTLOCK_DISCOVERY_PREFIX", DEFAULT_DISCOVERY_PREFIX),
                mqtt_debug=os.environ.get("MQTT_DEBUG", "0").casefold() in YES_ANSWER,
            )
        except ValueError as e:
            raise ConfigError(str(e)) from e

    def with_options_file(self, path: Path) -> Self:
        """Overlay values from a YAML (or JSON) add-on options file.

        Both ``snake_case`` and the add-on's ``camelCase`` keys are accepted.
        """
        try:
            with path.open() as f:
                options = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as e:
            raise ConfigError(f"cannot read options file {path}: {e}") from e
        if not isinstance(options, dict):
            raise ConfigError(f"options file {path} must contain a mapping")

        aliases = {
            "mqtt_url": ("mqtt_url", "mqttUrl"),
            "mqtt_user": ("mqtt_user", "mqttUser"),
            "mqtt_pass": ("mqtt_pass", "mqttPass"),
            "discovery_prefix": ("discovery_prefix", "discoveryPrefix"),
            "mqtt_debug": ("mqtt_debug", "mqttDebug"),
        }
        update: dict[str, Any] = {}
        for field, keys in aliases.items():
            for key in keys:
                if options.get(key) not in (None, ""):
                    update[field] = options[key]
                    break
        try:
            return type(self).model_validate({**self.model_dump(), **update})
        except ValueError as e:
            raise ConfigError(str(e)) from e
