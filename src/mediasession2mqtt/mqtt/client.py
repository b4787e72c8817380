"""MQTT publish client.

One logical broker connection per :class:`ConnectionSettings` value. The
connection is opened lazily by the first publish and re-opened by the next
publish after a failure, so a broker outage only costs the messages published
while it lasts.
"""

from __future__ import annotations

import asyncio
import ssl

import aiomqtt

from mediasession2mqtt.const import MEDIASESSION_MQTT_CONN_TIMEOUT
from mediasession2mqtt.logging_abstraction import get_logger
from mediasession2mqtt.structs import ConnectionSettings, QoSLevel

logger = get_logger(__name__)


class MQTTPublishClient:
    """Connect-on-demand publisher shared by the publish loops of one generation."""

    lp: str = "mqtt:"

    class Factory:
        """Creates one client per connection settings generation."""

        def __init__(self, timeout: float = MEDIASESSION_MQTT_CONN_TIMEOUT) -> None:
            self.timeout: float = timeout

        def create(self, connection_settings: ConnectionSettings) -> MQTTPublishClient:
            return MQTTPublishClient(connection_settings, timeout=self.timeout)

    def __init__(
        self,
        connection_settings: ConnectionSettings,
        timeout: float = MEDIASESSION_MQTT_CONN_TIMEOUT,
    ) -> None:
        self.connection_settings: ConnectionSettings = connection_settings
        self.timeout: float = timeout
        self.client: aiomqtt.Client | None = None
        self._connected: bool = False
        # The three publish loops share this client; only one may connect at a time
        self._connect_lock: asyncio.Lock = asyncio.Lock()

    @property
    def is_connected(self) -> bool:
        return self._connected

    def _build_client(self) -> aiomqtt.Client:
        settings = self.connection_settings
        return aiomqtt.Client(
            hostname=settings.hostname,
            port=settings.port,
            username=settings.username,
            password=settings.password,
            identifier=settings.client_id or None,
            tls_context=ssl.create_default_context() if settings.use_tls else None,
            timeout=self.timeout,
        )

    async def connect(self) -> None:
        """Open the connection unless it is already open.

        Raises:
            aiomqtt.MqttError: the broker could not be reached in time or refused us

        """
        lp = f"{self.lp}connect:"
        async with self._connect_lock:
            if self._connected:
                return
            settings = self.connection_settings
            logger.debug("%s Connecting to MQTT broker %s:%s...", lp, settings.hostname, settings.port)
            client = self._build_client()
            try:
                async with asyncio.timeout(self.timeout):
                    _ = await client.__aenter__()
            except BaseException as e:
                # aiomqtt keeps the socket and its reader tasks when the handshake is interrupted
                await asyncio.shield(self._abort_connect(client))
                if isinstance(e, TimeoutError):
                    msg = f"Connecting to {settings.hostname}:{settings.port} timed out after {self.timeout}s"
                    raise aiomqtt.MqttError(msg) from e
                if isinstance(e, OSError):
                    raise aiomqtt.MqttError(str(e)) from e
                raise
            self.client = client
            self._connected = True
            logger.info("%s Connected to MQTT broker: %s port: %s", lp, settings.hostname, settings.port)

    async def connect_and_publish(self, qos_level: QoSLevel, topic: str, payload: str) -> None:
        """Connect if needed, then publish ``payload`` (UTF-8) to ``topic``.

        A failed publish drops the connection so the next call reconnects.

        Raises:
            aiomqtt.MqttError: connecting or publishing failed

        """
        await self.connect()
        client = self.client
        assert client is not None, "client must be connected"
        try:
            await client.publish(topic, payload.encode(), qos=int(qos_level), retain=False)
        except (aiomqtt.MqttError, TimeoutError, OSError) as e:
            await self._drop_connection(client)
            if isinstance(e, aiomqtt.MqttError):
                raise
            raise aiomqtt.MqttError(str(e)) from e

    async def try_connect_and_publish(self, qos_level: QoSLevel, topic: str, payload: str) -> bool:
        """Best-effort :meth:`connect_and_publish`; returns False instead of raising."""
        lp = f"{self.lp}publish:"
        try:
            await self.connect_and_publish(qos_level, topic, payload)
        except aiomqtt.MqttCodeError as mqtt_code_exc:
            logger.warning("%s [MqttCodeError] %s -> %s", lp, topic, mqtt_code_exc)
        except aiomqtt.MqttError as mqtt_err:
            logger.warning("%s [MqttError] %s -> %s", lp, topic, mqtt_err)
        except Exception as e:
            logger.warning("%s [Exception] %s -> %s", lp, topic, e)
        else:
            logger.debug("%s %s <- %r", lp, topic, payload)
            return True
        return False

    async def _drop_connection(self, client: aiomqtt.Client) -> None:
        # Another loop may already have replaced the broken client
        if self.client is client:
            self.client = None
            self._connected = False
        await self._close_quietly(client)

    async def disconnect_quietly(self) -> None:
        """Close the connection; failures are logged and discarded."""
        lp = f"{self.lp}disconnect:"
        client = self.client
        self.client = None
        self._connected = False
        if client is None:
            logger.debug("%s Not connected, nothing to disconnect", lp)
            return
        if await self._close_quietly(client):
            logger.info("%s Disconnected from MQTT broker", lp)

    async def _abort_connect(self, client: aiomqtt.Client) -> None:
        lp = f"{self.lp}abort:"
        try:
            async with asyncio.timeout(self.timeout):
                await client.__aexit__(None, None, None)
        except Exception as e:
            logger.debug("%s Cleanup after failed connect: %s", lp, e)

    async def _close_quietly(self, client: aiomqtt.Client) -> bool:
        lp = f"{self.lp}close:"
        try:
            async with asyncio.timeout(self.timeout):
                await client.__aexit__(None, None, None)
        except aiomqtt.MqttError as ce:
            logger.warning("%s MQTT disconnect failed: %s", lp, ce)
        except Exception as e:
            logger.warning("%s MQTT disconnect failed: %s", lp, e)
        else:
            return True
        return False
