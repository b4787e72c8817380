from __future__ import annotations

import argparse
import asyncio
import logging
import os
import signal
import sys
from pathlib import Path

import dotenv
import uvloop

from mediasession2mqtt.const import MEDIASESSION_VERSION, YES_ANSWER
from mediasession2mqtt.correlation import correlation_context, ensure_correlation_id
from mediasession2mqtt.flows import cancel_and_wait
from mediasession2mqtt.logging_abstraction import (
    configure_from_environ,
    configure_third_party_loggers,
    get_logger,
    set_package_level,
)
from mediasession2mqtt.media.feed import JsonLinesMediaFeed, open_feed_lines, open_pipe_lines
from mediasession2mqtt.media.projector import ValueProjector
from mediasession2mqtt.media.tracker import MediaSourceTracker
from mediasession2mqtt.mqtt.client import MQTTPublishClient
from mediasession2mqtt.mqtt.discovery import DiscoveryHelper
from mediasession2mqtt.settings import SettingsProvider
from mediasession2mqtt.structs import RuntimeEnv
from mediasession2mqtt.utils import check_for_uuid, check_python_version
from mediasession2mqtt.worker import MainWorker

logger = get_logger(__name__)
configure_third_party_loggers()


class MediaSessionController:
    """Wires the feed, settings and worker together and runs them until stopped."""

    lp: str = "controller:"

    def __init__(
        self,
        env: RuntimeEnv,
        settings_path: Path | None = None,
        feed_path: Path | None = None,
    ) -> None:
        self.env: RuntimeEnv = env
        self.feed_path: Path | None = feed_path
        self.tracker: MediaSourceTracker = MediaSourceTracker()
        self.feed: JsonLinesMediaFeed = JsonLinesMediaFeed(self.tracker)
        self.settings_provider: SettingsProvider = SettingsProvider(
            settings_path or env.settings_file,
            poll_interval=env.settings_poll_interval,
        )
        serial_number = str(check_for_uuid(env.uuid_path))
        self.worker: MainWorker = MainWorker(
            projector=ValueProjector(self.tracker),
            settings_provider=self.settings_provider,
            mqtt_client_factory=MQTTPublishClient.Factory(timeout=env.mqtt_conn_timeout),
            discovery=DiscoveryHelper(serial_number, env.device_manufacturer, env.device_model),
        )
        self._stop_event: asyncio.Event | None = None

    async def start(self) -> None:
        """Run until :meth:`request_stop` is called."""
        lp = f"{self.lp}start:"
        _ = ensure_correlation_id()
        self._stop_event = asyncio.Event()

        if not self.settings_provider.load():
            logger.warning("%s Settings could not be loaded, waiting for a valid file", lp)
        logger.info("%s Settings file", lp, extra={"path": str(self.settings_provider.path)})

        background = [
            asyncio.create_task(self.settings_provider.watch(), name="settings_watch"),
            asyncio.create_task(self._run_feed(), name="media_feed"),
        ]
        _ = self.worker.start()
        try:
            _ = await self._stop_event.wait()
        finally:
            await self.worker.stop()
            for task in background:
                await cancel_and_wait(task)
            logger.info("%s Stopped", lp)

    async def _run_feed(self) -> None:
        lp = f"{self.lp}feed:"
        try:
            if self.feed_path is not None:
                lines = await open_feed_lines(self.feed_path)
            else:
                lines = await open_pipe_lines(sys.stdin)
        except (OSError, ValueError):
            logger.exception("%s Media feed unavailable, media state will not change", lp)
            return
        await self.feed.run(lines)

    def request_stop(self, signum: int | None = None) -> None:
        if signum is not None:
            logger.info("%s Intercepted signal: %s (%s)", self.lp, signal.Signals(signum).name, signum)
        if self._stop_event is not None:
            self._stop_event.set()


def parse_cli(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Publish the active media session to MQTT")
    _ = parser.add_argument("-D", "--debug", action="store_true", help="Enable debug mode")
    _ = parser.add_argument("--env", help="Path to an environment file", default=None, type=Path)
    _ = parser.add_argument("--settings", help="Path to the settings YAML file", default=None, type=Path)
    _ = parser.add_argument(
        "--feed",
        help="Path to a JSON-lines media event file or FIFO (default: stdin)",
        default=None,
        type=Path,
    )
    _ = parser.add_argument("--version", action="version", version=f"%(prog)s {MEDIASESSION_VERSION}")
    return parser.parse_args(argv)


def load_env_file(env_file: Path) -> bool:
    env_path = env_file.expanduser().resolve()
    if not env_path.exists():
        logger.error("Environment file not found", extra={"path": str(env_path)})
        return False
    if dotenv.load_dotenv(env_path, override=True):
        logger.info("Environment variables loaded", extra={"source": str(env_path)})
        return True
    logger.warning("No environment variables loaded from file", extra={"path": str(env_path)})
    return False


def debug_from_environ() -> bool:
    """`MEDIASESSION_DEBUG`, read again so an env file loaded at startup can set it."""
    return os.environ.get("MEDIASESSION_DEBUG", "0").casefold() in YES_ANSWER


def main(argv: list[str] | None = None) -> None:
    """Entry point of the ``mediasession2mqtt`` console script."""
    with correlation_context():
        logger.info("Starting MediaSession2MQTT", extra={"version": MEDIASESSION_VERSION})
        args = parse_cli(argv)
        if args.env and load_env_file(args.env):
            configure_from_environ()
        if args.debug or debug_from_environ():
            set_package_level(logging.DEBUG)
            logger.info("Debug logging enabled")

        check_python_version()
        controller = MediaSessionController(RuntimeEnv.from_environ(), args.settings, args.feed)

        loop = uvloop.new_event_loop()
        asyncio.set_event_loop(loop)
        for signum in (signal.SIGINT, signal.SIGTERM):
            loop.add_signal_handler(signum, controller.request_stop, signum)

        try:
            loop.run_until_complete(controller.start())
        except asyncio.CancelledError:
            logger.info("MediaSession2MQTT cancelled, shutting down...")
        except Exception:
            logger.exception("Fatal error in main loop")
        else:
            logger.info("MediaSession2MQTT stopped gracefully")
        finally:
            if not loop.is_closed():
                loop.close()
            logger.info("MediaSession2MQTT shutdown complete")


if __name__ == "__main__":
    main()
