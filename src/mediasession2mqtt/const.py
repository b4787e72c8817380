import os
import platform

from mediasession2mqtt import __version__

__all__ = [
    "APPLICATION_ID_SUB_TOPIC",
    "DEFAULT_DEVICE_ID",
    "DEFAULT_QOS_LEVEL",
    "DEVICE_MANUFACTURER",
    "DEVICE_MODEL",
    "DEVICE_NAME",
    "HASS_DISCOVERY_TOPIC",
    "MEDIASESSION_DATA_DIR",
    "MEDIASESSION_DEBUG",
    "MEDIASESSION_LOG_FORMAT",
    "MEDIASESSION_LOG_HUMAN_OUTPUT",
    "MEDIASESSION_LOG_JSON_FILE",
    "MEDIASESSION_MQTT_CONN_TIMEOUT",
    "MEDIASESSION_SETTINGS_FILE",
    "MEDIASESSION_SETTINGS_POLL_INTERVAL",
    "MEDIASESSION_UUID_PATH",
    "MEDIASESSION_VERSION",
    "MEDIA_TITLE_SUB_TOPIC",
    "PLAYBACK_STATE_SUB_TOPIC",
    "ROOT_TOPIC",
    "WORKER_START_TASK_NAME",
    "YES_ANSWER",
]

YES_ANSWER = ("true", "1", "yes", "y", "t", "on")
MEDIASESSION_VERSION: str = __version__

# Topic layout: mediaSession/{device_id}/{sub_topic}
ROOT_TOPIC: str = "mediaSession"
APPLICATION_ID_SUB_TOPIC: str = "applicationId"
PLAYBACK_STATE_SUB_TOPIC: str = "playbackState"
MEDIA_TITLE_SUB_TOPIC: str = "mediaTitle"
HASS_DISCOVERY_TOPIC: str = "homeassistant"

DEVICE_NAME: str = "MediaSession2MQTT"
DEVICE_MANUFACTURER: str = os.environ.get("MEDIASESSION_DEVICE_MANUFACTURER") or platform.system() or "Unknown"
DEVICE_MODEL: str = os.environ.get("MEDIASESSION_DEVICE_MODEL") or platform.machine() or "Unknown"

DEFAULT_QOS_LEVEL: int = 0
DEFAULT_DEVICE_ID: int = 0

WORKER_START_TASK_NAME: str = "MainWorker_START"

MEDIASESSION_DEBUG: bool = os.environ.get("MEDIASESSION_DEBUG", "0").casefold() in YES_ANSWER

MEDIASESSION_DATA_DIR: str = os.environ.get("MEDIASESSION_DATA_DIR", "~/.config/mediasession2mqtt")
MEDIASESSION_SETTINGS_FILE: str = os.environ.get(
    "MEDIASESSION_SETTINGS_FILE",
    f"{MEDIASESSION_DATA_DIR}/settings.yaml",
)
MEDIASESSION_UUID_PATH: str = f"{MEDIASESSION_DATA_DIR}/uuid.txt"

_poll_interval = os.environ.get("MEDIASESSION_SETTINGS_POLL_INTERVAL", "2")
try:
    _poll_interval_value: float = float(_poll_interval)
except ValueError:
    _poll_interval_value = 2.0
MEDIASESSION_SETTINGS_POLL_INTERVAL: float = _poll_interval_value if _poll_interval_value > 0 else 2.0

_conn_timeout = os.environ.get("MEDIASESSION_MQTT_CONN_TIMEOUT", "10")
try:
    _conn_timeout_value: float = float(_conn_timeout)
except ValueError:
    _conn_timeout_value = 10.0
MEDIASESSION_MQTT_CONN_TIMEOUT: float = _conn_timeout_value if _conn_timeout_value > 0 else 10.0

# Logging configuration
MEDIASESSION_LOG_FORMAT: str = os.environ.get("MEDIASESSION_LOG_FORMAT", "human")  # "json", "human", or "both"
MEDIASESSION_LOG_JSON_FILE: str | None = os.environ.get("MEDIASESSION_LOG_JSON_FILE") or None
MEDIASESSION_LOG_HUMAN_OUTPUT: str = os.environ.get("MEDIASESSION_LOG_HUMAN_OUTPUT", "stdout")  # "stdout", "stderr", or file path
