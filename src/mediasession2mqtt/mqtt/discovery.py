"""Home Assistant MQTT discovery for the media session sensors."""

from __future__ import annotations

from mediasession2mqtt.const import (
    APPLICATION_ID_SUB_TOPIC,
    DEVICE_MANUFACTURER,
    DEVICE_MODEL,
    DEVICE_NAME,
    HASS_DISCOVERY_TOPIC,
    MEDIA_TITLE_SUB_TOPIC,
    PLAYBACK_STATE_SUB_TOPIC,
    ROOT_TOPIC,
)
from mediasession2mqtt.structs import DeviceInfo, SensorDiscoveryConfig

# Sensor display name -> value sub topic
SENSORS: dict[str, str] = {
    "Application ID": APPLICATION_ID_SUB_TOPIC,
    "Playback state": PLAYBACK_STATE_SUB_TOPIC,
    "Media title": MEDIA_TITLE_SUB_TOPIC,
}


def sensor_key(name: str) -> str:
    """'Playback state' -> 'playback_state'"""
    return name.lower().replace(" ", "_")


def value_topic(device_id: int, sub_topic: str) -> str:
    return f"{ROOT_TOPIC}/{device_id}/{sub_topic}"


def discovery_topic(device_id: int, key: str) -> str:
    return f"{HASS_DISCOVERY_TOPIC}/sensor/{device_id}/{key}/config"


class DiscoveryHelper:
    """Builds the discovery payloads announcing this host's sensors."""

    def __init__(
        self,
        serial_number: str,
        manufacturer: str = DEVICE_MANUFACTURER,
        model: str = DEVICE_MODEL,
    ) -> None:
        self.serial_number: str = serial_number
        self.device_info: DeviceInfo = DeviceInfo(
            name=DEVICE_NAME,
            manufacturer=manufacturer,
            model=model,
            identifiers=[serial_number],
            serial_number=serial_number,
        )

    def unique_id(self, key: str) -> str:
        return f"{ROOT_TOPIC}_{self.serial_number}_{key}"

    def sensor_configs(self, device_id: int) -> list[tuple[str, SensorDiscoveryConfig]]:
        """(discovery topic, payload) for every sensor, in display order."""
        configs: list[tuple[str, SensorDiscoveryConfig]] = []
        for name, sub_topic in SENSORS.items():
            key = sensor_key(name)
            config = SensorDiscoveryConfig(
                name=name,
                state_topic=value_topic(device_id, sub_topic),
                unique_id=self.unique_id(key),
                device=self.device_info,
            )
            configs.append((discovery_topic(device_id, key), config))
        return configs

    def discovery_messages(self, device_id: int) -> list[tuple[str, str]]:
        """(discovery topic, JSON payload) for every sensor."""
        return [(topic, config.model_dump_json()) for topic, config in self.sensor_configs(device_id)]
