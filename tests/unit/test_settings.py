"""
Unit tests for the YAML-backed SettingsProvider.
"""

import asyncio
import os

import pytest
import yaml
from pydantic import ValidationError

from mediasession2mqtt.settings import (
    DEFAULT_MESSAGE_SETTINGS,
    SettingsProvider,
    parse_connection_settings,
    parse_message_settings,
)
from mediasession2mqtt.structs import ConnectionSettings, MessageSettings, QoSLevel
from tests.helpers.fakes import BROKER_A, collect_into, wait_until

VALID_DOCUMENT = """\
connection:
  broker_uri: tcp://broker.local:1883
  client_id: test-client
  username: user
  password: secret
message:
  qos: 1
  device_id: 7
"""


@pytest.fixture
def settings_path(tmp_path):
    return tmp_path / "settings.yaml"


class TestParsing:
    """Tests for the section parsers"""

    @pytest.mark.parametrize("data", [None, {}, {"broker_uri": ""}, {"broker_uri": "   "}])
    def test_unconfigured_connection(self, data):
        assert parse_connection_settings(data) is None

    def test_connection_section(self):
        settings = parse_connection_settings({"broker_uri": "mqtts://broker.local", "client_id": "x"})

        assert settings.hostname == "broker.local"
        assert settings.port == 8883
        assert settings.use_tls

    def test_bad_scheme_is_rejected(self):
        with pytest.raises(ValidationError):
            _ = parse_connection_settings({"broker_uri": "http://broker.local"})

    def test_non_mapping_section_is_rejected(self):
        with pytest.raises(TypeError):
            _ = parse_connection_settings(["tcp://broker.local"])

    def test_message_defaults(self):
        assert parse_message_settings(None) == DEFAULT_MESSAGE_SETTINGS
        assert parse_message_settings({"device_id": 4}) == MessageSettings(device_id=4)

    def test_invalid_qos(self):
        with pytest.raises(ValidationError):
            _ = parse_message_settings({"qos": 5})


class TestLoad:
    """Tests for SettingsProvider.load"""

    def test_missing_file_means_unconfigured(self, settings_path):
        provider = SettingsProvider(settings_path)

        assert provider.load() is True
        assert provider.connection_settings is None
        assert provider.message_settings == DEFAULT_MESSAGE_SETTINGS

    def test_load_values(self, settings_path):
        _ = settings_path.write_text(VALID_DOCUMENT)
        provider = SettingsProvider(settings_path)

        assert provider.load() is True
        assert provider.connection_settings.broker_uri == "tcp://broker.local:1883"
        assert provider.connection_settings.password == "secret"
        assert provider.message_settings == MessageSettings(qos_level=QoSLevel.AT_LEAST_ONCE, device_id=7)

    def test_unparseable_file_keeps_previous_values(self, settings_path):
        _ = settings_path.write_text(VALID_DOCUMENT)
        provider = SettingsProvider(settings_path)
        _ = provider.load()

        _ = settings_path.write_text("connection: [unclosed")

        assert provider.load() is False
        assert provider.connection_settings.broker_uri == "tcp://broker.local:1883"

    def test_invalid_section_keeps_previous_value_of_that_section_only(self, settings_path):
        _ = settings_path.write_text(VALID_DOCUMENT)
        provider = SettingsProvider(settings_path)
        _ = provider.load()

        _ = settings_path.write_text("connection:\n  broker_uri: ftp://nope\nmessage:\n  qos: 2\n  device_id: 3\n")
        _ = provider.load()

        assert provider.connection_settings.broker_uri == "tcp://broker.local:1883"
        assert provider.message_settings == MessageSettings(qos_level=QoSLevel.EXACTLY_ONCE, device_id=3)

    def test_password_is_hidden_from_repr(self):
        settings = ConnectionSettings(broker_uri="tcp://broker.local", password="secret")

        assert "secret" not in repr(settings)


class TestUpdate:
    """Tests for persisting updates"""

    def test_update_persists_and_reloads(self, settings_path):
        provider = SettingsProvider(settings_path)
        provider.update_connection_settings(BROKER_A)
        provider.update_message_settings(MessageSettings(qos_level=QoSLevel.EXACTLY_ONCE, device_id=2))

        document = yaml.safe_load(settings_path.read_text())
        assert document["connection"]["broker_uri"] == BROKER_A.broker_uri
        assert document["message"] == {"qos": 2, "device_id": 2}

        reloaded = SettingsProvider(settings_path)
        _ = reloaded.load()
        assert reloaded.connection_settings == BROKER_A
        assert reloaded.message_settings == provider.message_settings

    def test_clearing_connection_settings(self, settings_path):
        provider = SettingsProvider(settings_path)
        provider.update_connection_settings(BROKER_A)

        provider.update_connection_settings(None)

        assert yaml.safe_load(settings_path.read_text())["connection"] is None
        assert provider.connection_settings is None


class TestWatch:
    """Tests for live reloading"""

    @pytest.mark.asyncio
    async def test_streams_emit_current_then_changes(self, settings_path):
        _ = settings_path.write_text(VALID_DOCUMENT)
        provider = SettingsProvider(settings_path, poll_interval=0.01)
        _ = provider.load()
        seen = []
        collector = asyncio.create_task(collect_into(provider.message_settings_stream(), seen))
        watcher = asyncio.create_task(provider.watch())

        await wait_until(lambda: len(seen) == 1)
        _ = settings_path.write_text(VALID_DOCUMENT.replace("device_id: 7", "device_id: 8"))
        # Make sure the modification time moves even on coarse-grained filesystems
        stat = settings_path.stat()
        os.utime(settings_path, ns=(stat.st_atime_ns, stat.st_mtime_ns + 1_000_000_000))

        await wait_until(lambda: len(seen) == 2)
        assert [s.device_id for s in seen] == [7, 8]

        for task in (collector, watcher):
            task.cancel()
        _ = await asyncio.gather(collector, watcher, return_exceptions=True)

    @pytest.mark.asyncio
    async def test_unchanged_file_does_not_emit(self, settings_path):
        _ = settings_path.write_text(VALID_DOCUMENT)
        provider = SettingsProvider(settings_path, poll_interval=0.01)
        _ = provider.load()
        seen = []
        collector = asyncio.create_task(collect_into(provider.connection_settings_stream(), seen))
        watcher = asyncio.create_task(provider.watch())

        await asyncio.sleep(0.05)
        os.utime(settings_path)
        await asyncio.sleep(0.05)

        assert len(seen) == 1
        for task in (collector, watcher):
            task.cancel()
        _ = await asyncio.gather(collector, watcher, return_exceptions=True)
