"""MQTT publishing for MediaSession2MQTT.

- client.py: MQTTPublishClient, one reconnect-on-demand broker connection
- discovery.py: Home Assistant sensor discovery payloads and topic layout
"""

from .client import MQTTPublishClient
from .discovery import SENSORS, DiscoveryHelper, discovery_topic, sensor_key, value_topic

__all__ = [
    "SENSORS",
    "DiscoveryHelper",
    "MQTTPublishClient",
    "discovery_topic",
    "sensor_key",
    "value_topic",
]
