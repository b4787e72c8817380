"""
Shared fixtures for unit tests.

Wires a MainWorker to in-memory collaborators: a tracker, a recording client
factory and a settings source the test drives directly.
"""

import pytest
import pytest_asyncio

from mediasession2mqtt.media.projector import ValueProjector
from mediasession2mqtt.media.tracker import MediaSourceTracker
from mediasession2mqtt.mqtt.discovery import DiscoveryHelper
from mediasession2mqtt.structs import MessageSettings, QoSLevel
from mediasession2mqtt.worker import MainWorker
from tests.helpers.fakes import BROKER_A, TEST_SERIAL, RecordingClientFactory, StaticSettingsSource


@pytest.fixture
def tracker():
    return MediaSourceTracker()


@pytest.fixture
def projector(tracker):
    return ValueProjector(tracker)


@pytest.fixture
def discovery():
    return DiscoveryHelper(TEST_SERIAL, manufacturer="TestOS", model="x86_64")


@pytest.fixture
def client_factory():
    return RecordingClientFactory()


@pytest.fixture
def settings_source():
    return StaticSettingsSource(
        connection=BROKER_A,
        message=MessageSettings(qos_level=QoSLevel.AT_LEAST_ONCE, device_id=7),
    )


@pytest.fixture
def worker(projector, settings_source, client_factory, discovery):
    return MainWorker(
        projector=projector,
        settings_provider=settings_source,
        mqtt_client_factory=client_factory,
        discovery=discovery,
    )


@pytest_asyncio.fixture
async def running_worker(worker):
    """Worker started in the background, stopped after the test."""
    _ = worker.start()
    yield worker
    await worker.stop()
