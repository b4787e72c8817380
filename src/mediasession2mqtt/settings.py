"""Persisted, live-updating settings.

Settings live in a YAML file::

    connection:
      broker_uri: tcp://homeassistant.local:1883
      client_id: mediasession2mqtt
      username: user
      password: secret
    message:
      qos: 1
      device_id: 7

A missing or null ``connection`` section means "not configured". The file is
polled for modifications, so edits made by hand or by another process reach
the running worker without a restart.
"""

from __future__ import annotations

import asyncio
import os
import tempfile
from collections.abc import AsyncIterator
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from mediasession2mqtt.const import (
    DEFAULT_DEVICE_ID,
    DEFAULT_QOS_LEVEL,
    MEDIASESSION_SETTINGS_FILE,
    MEDIASESSION_SETTINGS_POLL_INTERVAL,
)
from mediasession2mqtt.exceptions import SettingsError
from mediasession2mqtt.flows import StateStream
from mediasession2mqtt.logging_abstraction import get_logger
from mediasession2mqtt.structs import ConnectionSettings, MessageSettings, QoSLevel

logger = get_logger(__name__)

DEFAULT_MESSAGE_SETTINGS = MessageSettings(qos_level=QoSLevel(DEFAULT_QOS_LEVEL), device_id=DEFAULT_DEVICE_ID)


def parse_connection_settings(data: Any) -> ConnectionSettings | None:
    """``connection`` section -> settings; ``None``/empty/blank broker means not configured."""
    if not data:
        return None
    if not isinstance(data, dict):
        msg = f"expected a mapping, got {type(data).__name__}"
        raise TypeError(msg)
    if not str(data.get("broker_uri") or "").strip():
        return None
    return ConnectionSettings.model_validate(data)


def parse_message_settings(data: Any) -> MessageSettings:
    """``message`` section -> settings, defaults for missing keys."""
    if not data:
        return DEFAULT_MESSAGE_SETTINGS
    if not isinstance(data, dict):
        msg = f"expected a mapping, got {type(data).__name__}"
        raise TypeError(msg)
    return MessageSettings(
        qos_level=data.get("qos", DEFAULT_MESSAGE_SETTINGS.qos_level),
        device_id=data.get("device_id", DEFAULT_MESSAGE_SETTINGS.device_id),
    )


class SettingsProvider:
    """Exposes connection and message settings as live streams backed by a YAML file."""

    lp: str = "settings:"

    def __init__(
        self,
        path: str | Path = MEDIASESSION_SETTINGS_FILE,
        poll_interval: float = MEDIASESSION_SETTINGS_POLL_INTERVAL,
    ) -> None:
        self.path: Path = Path(path).expanduser()
        self.poll_interval: float = poll_interval
        self._connection: StateStream[ConnectionSettings | None] = StateStream(None)
        self._message: StateStream[MessageSettings] = StateStream(DEFAULT_MESSAGE_SETTINGS)
        self._mtime_ns: int | None = None

    @property
    def connection_settings(self) -> ConnectionSettings | None:
        return self._connection.value

    @property
    def message_settings(self) -> MessageSettings:
        return self._message.value

    def connection_settings_stream(self) -> AsyncIterator[ConnectionSettings | None]:
        return self._connection.stream()

    def message_settings_stream(self) -> AsyncIterator[MessageSettings]:
        return self._message.stream()

    def _read_document(self) -> dict[str, Any]:
        try:
            with self.path.open() as f:
                document = yaml.safe_load(f)
        except FileNotFoundError:
            return {}
        except (OSError, yaml.YAMLError) as e:
            raise SettingsError(self.path, str(e)) from e
        if document is None:
            return {}
        if not isinstance(document, dict):
            raise SettingsError(self.path, "top level must be a mapping")
        return document

    def _stat_mtime(self) -> int | None:
        try:
            return self.path.stat().st_mtime_ns
        except FileNotFoundError:
            return None

    def load(self) -> bool:
        """(Re)read the file and publish changed values.

        Each section is applied independently: an invalid section is logged
        and keeps its previous value. Returns False if the file could not be
        read at all.
        """
        lp = f"{self.lp}load:"
        self._mtime_ns = self._stat_mtime()
        try:
            document = self._read_document()
        except SettingsError:
            logger.exception("%s Failed to read settings file", lp)
            return False

        try:
            connection = parse_connection_settings(document.get("connection"))
        except (ValidationError, TypeError) as e:
            logger.warning("%s Ignoring invalid 'connection' section: %s", lp, e, extra={"path": str(self.path)})
        else:
            if self._connection.set(connection):
                logger.info(
                    "%s Connection settings changed",
                    lp,
                    extra={"broker": connection.broker_uri if connection else None},
                )

        try:
            message = parse_message_settings(document.get("message"))
        except (ValidationError, TypeError) as e:
            logger.warning("%s Ignoring invalid 'message' section: %s", lp, e, extra={"path": str(self.path)})
        else:
            if self._message.set(message):
                logger.info(
                    "%s Message settings changed",
                    lp,
                    extra={"qos": message.qos_level.name, "device_id": message.device_id},
                )
        return True

    async def watch(self) -> None:
        """Reload whenever the file's modification time changes. Runs until cancelled."""
        lp = f"{self.lp}watch:"
        logger.debug("%s Watching %s every %ss", lp, self.path, self.poll_interval)
        while True:
            await asyncio.sleep(self.poll_interval)
            if self._stat_mtime() != self._mtime_ns:
                logger.debug("%s Settings file changed, reloading", lp)
                _ = self.load()

    def _document(self) -> dict[str, Any]:
        connection = self._connection.value
        message = self._message.value
        return {
            "connection": connection.model_dump() if connection else None,
            "message": {"qos": int(message.qos_level), "device_id": message.device_id},
        }

    def _write(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(dir=self.path.parent, prefix=f".{self.path.name}.")
        try:
            with os.fdopen(fd, "w") as f:
                yaml.safe_dump(self._document(), f, sort_keys=False)
            Path(tmp_name).replace(self.path)
        except OSError as e:
            Path(tmp_name).unlink(missing_ok=True)
            raise SettingsError(self.path, str(e)) from e
        self._mtime_ns = self._stat_mtime()

    def update_connection_settings(self, connection_settings: ConnectionSettings | None) -> None:
        """Persist and publish new connection settings (``None`` disconnects)."""
        _ = self._connection.set(connection_settings)
        self._write()

    def update_message_settings(self, message_settings: MessageSettings) -> None:
        _ = self._message.set(message_settings)
        self._write()
