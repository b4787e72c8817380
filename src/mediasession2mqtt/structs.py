"""Core data structures and typing protocols for MediaSession2MQTT."""

from __future__ import annotations

from enum import IntEnum, StrEnum
from typing import TYPE_CHECKING, ClassVar, Protocol
from urllib.parse import urlsplit

from pydantic import BaseModel, ConfigDict, Field, field_validator

from mediasession2mqtt.exceptions import InvalidBrokerURIError

if TYPE_CHECKING:
    from collections.abc import AsyncIterator


class QoSLevel(IntEnum):
    """MQTT quality of service."""

    AT_MOST_ONCE = 0
    AT_LEAST_ONCE = 1
    EXACTLY_ONCE = 2


class PlaybackState(StrEnum):
    """Canonical playback state published to the broker."""

    IDLE = "idle"
    PLAYING = "playing"
    PAUSED = "paused"
    STOPPED = "stopped"
    BUFFERING = "buffering"
    ERROR = "error"


class ConnectionSettings(BaseModel):
    """Broker endpoint and credentials.

    ``None`` in place of a ConnectionSettings means "do not connect"; it is a
    valid configuration state, not an error.
    """

    model_config = ConfigDict(frozen=True)

    TLS_SCHEMES: ClassVar[tuple[str, ...]] = ("ssl", "mqtts")
    PLAIN_SCHEMES: ClassVar[tuple[str, ...]] = ("tcp", "mqtt")

    broker_uri: str
    client_id: str = "mediasession2mqtt"
    username: str | None = None
    password: str | None = Field(default=None, repr=False)

    @field_validator("broker_uri")
    @classmethod
    def _check_broker_uri(cls, value: str) -> str:
        value = value.strip()
        parts = urlsplit(value)
        if parts.scheme not in cls.TLS_SCHEMES + cls.PLAIN_SCHEMES:
            raise InvalidBrokerURIError(value, f"unsupported scheme {parts.scheme!r}")
        if not parts.hostname:
            raise InvalidBrokerURIError(value, "missing host")
        _ = parts.port  # raises ValueError on an out of range port
        return value

    @property
    def use_tls(self) -> bool:
        return urlsplit(self.broker_uri).scheme in self.TLS_SCHEMES

    @property
    def hostname(self) -> str:
        hostname = urlsplit(self.broker_uri).hostname
        assert hostname is not None, "validated broker_uri always has a host"
        return hostname

    @property
    def port(self) -> int:
        port = urlsplit(self.broker_uri).port
        if port is not None:
            return port
        return 8883 if self.use_tls else 1883


class MessageSettings(BaseModel):
    """QoS and device id shared by the three publish loops of one generation."""

    model_config = ConfigDict(frozen=True)

    qos_level: QoSLevel = QoSLevel.AT_MOST_ONCE
    device_id: int = 0


class DeviceInfo(BaseModel):
    """`device` block of a Home Assistant discovery payload."""

    name: str
    manufacturer: str
    model: str
    identifiers: list[str]
    serial_number: str


class SensorDiscoveryConfig(BaseModel):
    """Home Assistant MQTT sensor discovery payload."""

    name: str
    state_topic: str
    unique_id: str
    device: DeviceInfo


class PublishClientProtocol(Protocol):
    """What the worker needs from a broker connection."""

    async def try_connect_and_publish(self, qos_level: QoSLevel, topic: str, payload: str) -> bool:
        """Connect if needed and publish; never raises on broker failures."""
        ...

    async def disconnect_quietly(self) -> None:
        """Release the connection, discarding any failure."""
        ...


class PublishClientFactoryProtocol(Protocol):
    def create(self, connection_settings: ConnectionSettings) -> PublishClientProtocol: ...


class SettingsSourceProtocol(Protocol):
    """Live configuration consumed by the worker."""

    def connection_settings_stream(self) -> AsyncIterator[ConnectionSettings | None]: ...

    def message_settings_stream(self) -> AsyncIterator[MessageSettings]: ...


class RuntimeEnv(BaseModel):
    """Environment driven settings re-read at startup (after an optional ``.env`` file was loaded)."""

    settings_file: str
    uuid_path: str
    settings_poll_interval: float
    mqtt_conn_timeout: float
    device_manufacturer: str
    device_model: str

    @classmethod
    def from_environ(cls) -> RuntimeEnv:
        import os

        from mediasession2mqtt import const

        data_dir = os.environ.get("MEDIASESSION_DATA_DIR", const.MEDIASESSION_DATA_DIR)
        return cls(
            settings_file=os.environ.get("MEDIASESSION_SETTINGS_FILE", f"{data_dir}/settings.yaml"),
            uuid_path=f"{data_dir}/uuid.txt",
            settings_poll_interval=_positive_float(
                os.environ.get("MEDIASESSION_SETTINGS_POLL_INTERVAL"),
                const.MEDIASESSION_SETTINGS_POLL_INTERVAL,
            ),
            mqtt_conn_timeout=_positive_float(
                os.environ.get("MEDIASESSION_MQTT_CONN_TIMEOUT"),
                const.MEDIASESSION_MQTT_CONN_TIMEOUT,
            ),
            device_manufacturer=os.environ.get("MEDIASESSION_DEVICE_MANUFACTURER") or const.DEVICE_MANUFACTURER,
            device_model=os.environ.get("MEDIASESSION_DEVICE_MODEL") or const.DEVICE_MODEL,
        )


def _positive_float(raw: str | None, default: float) -> float:
    if not raw:
        return default
    try:
        value = float(raw)
    except ValueError:
        return default
    return value if value > 0 else default
