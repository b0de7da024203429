"""TTLock to MQTT bridge with Home Assistant discovery."""

__version__ = "0.3.0"
