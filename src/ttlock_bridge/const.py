import os

from ttlock_bridge import __version__

__all__ = [
    "COMMAND_RETRY_ATTEMPTS",
    "COMMAND_RETRY_DELAY",
    "DEFAULT_DISCOVERY_PREFIX",
    "DEFAULT_MQTT_URL",
    "MQTT_DEFAULT_PORT",
    "MQTT_DEFAULT_TLS_PORT",
    "PAYLOAD_AUDIO_OFF",
    "PAYLOAD_AUDIO_ON",
    "PAYLOAD_LOCK",
    "PAYLOAD_UNLOCK",
    "TTLOCK_DEBUG",
    "TTLOCK_ID_PREFIX",
    "TTLOCK_LOG_FORMAT",
    "TTLOCK_LOG_HUMAN_OUTPUT",
    "TTLOCK_LOG_JSON_FILE",
    "TTLOCK_SET_SUFFIX",
    "TTLOCK_TOPIC",
    "TTLOCK_VERSION",
    "YES_ANSWER",
]

YES_ANSWER = ("true", "1", "yes", "y", "t", 1, "on", "o")
TTLOCK_VERSION: str = __version__

# Wire contract, must not change
TTLOCK_TOPIC: str = "ttlock"
TTLOCK_SET_SUFFIX: str = "set"
TTLOCK_ID_PREFIX: str = "ttlock_"
PAYLOAD_LOCK: str = "LOCK"
PAYLOAD_UNLOCK: str = "UNLOCK"
PAYLOAD_AUDIO_ON: str = "AUDIO ON"
PAYLOAD_AUDIO_OFF: str = "AUDIO OFF"

# Broker settings themselves are read by BridgeEnv.from_env()
DEFAULT_MQTT_URL: str = "mqtt://localhost:1883"
DEFAULT_DISCOVERY_PREFIX: str = "homeassistant"
MQTT_DEFAULT_PORT: int = 1883
MQTT_DEFAULT_TLS_PORT: int = 8883

# Command retry loop: fixed budget, fixed delay between attempts
COMMAND_RETRY_ATTEMPTS: int = 10
COMMAND_RETRY_DELAY: float = 1.0

TTLOCK_DEBUG: bool = os.environ.get("TTLOCK_DEBUG", "0").casefold() in YES_ANSWER

# Logging Configuration
TTLOCK_LOG_FORMAT: str = os.environ.get("TTLOCK_LOG_FORMAT", "human")  # "json", "human", or "both"
_json_file = os.environ.get("TTLOCK_LOG_JSON_FILE")
TTLOCK_LOG_JSON_FILE: str | None = _json_file if _json_file else None
TTLOCK_LOG_HUMAN_OUTPUT: str = os.environ.get("TTLOCK_LOG_HUMAN_OUTPUT", "stdout")  # "stdout", "stderr", or file path
