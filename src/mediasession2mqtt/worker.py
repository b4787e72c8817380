"""Settings-driven publication pipeline.

:class:`MainWorker` keeps one publish pipeline in line with the current
settings:

- every connection settings value starts a connection generation with its own
  client (``None`` starts nothing); the previous generation is torn down and
  its client disconnected first
- every message settings value starts a publish generation of three loops
  (application id, playback state, media title) on the generation's client;
  the previous three loops are cancelled first
"""

from __future__ import annotations

import asyncio
from collections.abc import Coroutine
from typing import Any

from mediasession2mqtt.const import (
    APPLICATION_ID_SUB_TOPIC,
    MEDIA_TITLE_SUB_TOPIC,
    PLAYBACK_STATE_SUB_TOPIC,
    WORKER_START_TASK_NAME,
)
from mediasession2mqtt.correlation import correlation_context
from mediasession2mqtt.flows import cancel_and_wait, collect_latest
from mediasession2mqtt.logging_abstraction import get_logger
from mediasession2mqtt.media.projector import ValueProjector
from mediasession2mqtt.mqtt.discovery import DiscoveryHelper, value_topic
from mediasession2mqtt.structs import (
    ConnectionSettings,
    MessageSettings,
    PublishClientFactoryProtocol,
    PublishClientProtocol,
    QoSLevel,
    SettingsSourceProtocol,
)

logger = get_logger(__name__)


class MainWorker:
    lp: str = "worker:"

    def __init__(
        self,
        projector: ValueProjector,
        settings_provider: SettingsSourceProtocol,
        mqtt_client_factory: PublishClientFactoryProtocol,
        discovery: DiscoveryHelper,
    ) -> None:
        self.projector: ValueProjector = projector
        self.settings_provider: SettingsSourceProtocol = settings_provider
        self.mqtt_client_factory: PublishClientFactoryProtocol = mqtt_client_factory
        self.discovery: DiscoveryHelper = discovery
        self.start_task: asyncio.Task[None] | None = None

    @property
    def is_running(self) -> bool:
        return self.start_task is not None and not self.start_task.done()

    def start(self) -> asyncio.Task[None]:
        """Launch :meth:`monitor_settings` in the background (idempotent)."""
        if self.start_task is None or self.start_task.done():
            self.start_task = asyncio.create_task(self.monitor_settings(), name=WORKER_START_TASK_NAME)
        return self.start_task

    async def stop(self) -> None:
        """Cancel the pipeline and wait until the live client is disconnected."""
        lp = f"{self.lp}stop:"
        if self.start_task is None:
            return
        logger.info("%s Stopping publish pipeline...", lp)
        await cancel_and_wait(self.start_task)
        self.start_task = None
        logger.info("%s Publish pipeline stopped", lp)

    async def monitor_settings(self) -> None:
        """Reconcile the pipeline with the connection settings until cancelled."""
        await collect_latest(
            self.settings_provider.connection_settings_stream(),
            self._run_connection,
            name="connection",
        )

    async def _run_connection(self, connection_settings: ConnectionSettings | None) -> None:
        lp = f"{self.lp}connection:"
        if connection_settings is None:
            logger.info("%s No connection settings, publishing is paused", lp)
            return

        with correlation_context(prefix="conn"):
            client = self.mqtt_client_factory.create(connection_settings)
            logger.info("%s Starting connection generation", lp, extra={"broker": connection_settings.broker_uri})
            try:
                await collect_latest(
                    self.settings_provider.message_settings_stream(),
                    lambda message_settings: self._run_publishers(client, message_settings),
                    name="publishers",
                )
            finally:
                # Runs to completion even when this generation is cancelled
                await asyncio.shield(client.disconnect_quietly())
                logger.info("%s Connection generation ended", lp)

    async def _run_publishers(self, client: PublishClientProtocol, message_settings: MessageSettings) -> None:
        lp = f"{self.lp}publishers:"
        qos_level = message_settings.qos_level
        device_id = message_settings.device_id
        with correlation_context(prefix="pub"):
            logger.info(
                "%s Starting publish loops",
                lp,
                extra={"qos": qos_level.name, "device_id": device_id},
            )
            async with asyncio.TaskGroup() as tg:
                _ = tg.create_task(
                    self._supervise("application_id", self.publish_application_id(client, qos_level, device_id)),
                )
                _ = tg.create_task(
                    self._supervise("playback_state", self.publish_playback_state(client, qos_level, device_id)),
                )
                _ = tg.create_task(
                    self._supervise("media_title", self.publish_media_title(client, qos_level, device_id)),
                )

    async def _supervise(self, loop_name: str, coro: Coroutine[Any, Any, None]) -> None:
        """Run one publish loop; its failure must not cancel the sibling loops."""
        lp = f"{self.lp}supervise:"
        try:
            await coro
        except asyncio.CancelledError:
            logger.debug("%s %s loop cancelled", lp, loop_name)
            raise
        except Exception:
            logger.exception("%s %s loop failed, the other loops keep running", lp, loop_name)
        else:
            logger.debug("%s %s loop finished", lp, loop_name)

    async def publish_hass_configuration(
        self,
        client: PublishClientProtocol,
        qos_level: QoSLevel,
        device_id: int,
    ) -> None:
        """Announce the three sensors to Home Assistant."""
        for topic, payload in self.discovery.discovery_messages(device_id):
            _ = await client.try_connect_and_publish(qos_level, topic, payload)

    async def publish_application_id(self, client: PublishClientProtocol, qos_level: QoSLevel, device_id: int) -> None:
        topic = value_topic(device_id, APPLICATION_ID_SUB_TOPIC)
        async for application_id in self.projector.application_ids():
            # A new generation has no record of earlier announcements, so announce on every change
            await self.publish_hass_configuration(client, qos_level, device_id)
            _ = await client.try_connect_and_publish(qos_level, topic, application_id)

    async def publish_playback_state(self, client: PublishClientProtocol, qos_level: QoSLevel, device_id: int) -> None:
        topic = value_topic(device_id, PLAYBACK_STATE_SUB_TOPIC)
        async for playback_state in self.projector.playback_states():
            _ = await client.try_connect_and_publish(qos_level, topic, playback_state.value)

    async def publish_media_title(self, client: PublishClientProtocol, qos_level: QoSLevel, device_id: int) -> None:
        topic = value_topic(device_id, MEDIA_TITLE_SUB_TOPIC)
        async for media_title in self.projector.media_titles():
            _ = await client.try_connect_and_publish(qos_level, topic, media_title)
