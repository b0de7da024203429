"""MQTT side of the TTLock bridge.

- client.py: TTLockBridge, broker session and lifecycle event listeners
- discovery.py: Home Assistant discovery documents
- state_updates.py: retained lock state documents
- command_routing.py: ``ttlock/<id>/set`` command parsing and retry
"""

from .client import TTLockBridge
from .command_routing import CommandRouter, LockCommand, parse_command
from .discovery import DiscoveryHelper, build_discovery_documents
from .state_updates import StateUpdateHelper, read_lock_state

__all__ = [
    "CommandRouter",
    "DiscoveryHelper",
    "LockCommand",
    "StateUpdateHelper",
    "TTLockBridge",
    "build_discovery_documents",
    "parse_command",
    "read_lock_state",
]
