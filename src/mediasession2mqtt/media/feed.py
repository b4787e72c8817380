"""JSON-lines media feed.

Bridges any external media session watcher to the tracker. Each line is one
JSON object::

    {"application_id": "com.example.player", "playback_state": 3, "metadata": {"title": "Song X"}}
    {"application_id": null}

A new ``application_id`` replaces the current source, the same id updates the
current source, ``null`` or ``""`` clears it. Omitted keys leave the value
unchanged.
"""

from __future__ import annotations

import asyncio
import os
import stat
from collections.abc import AsyncIterable
from pathlib import Path
from typing import IO, Any

from pydantic import BaseModel, ValidationError

from mediasession2mqtt.flows import flow_of
from mediasession2mqtt.logging_abstraction import get_logger
from mediasession2mqtt.media.tracker import MediaSource, MediaSourceTracker

logger = get_logger(__name__)


class MediaEvent(BaseModel):
    application_id: str | None
    playback_state: int | None = None
    metadata: dict[str, Any] | None = None


class JsonLinesMediaFeed:
    """Applies JSON-lines media events to a tracker."""

    lp: str = "feed:"

    def __init__(self, tracker: MediaSourceTracker) -> None:
        self.tracker: MediaSourceTracker = tracker

    def apply_line(self, line: str | bytes) -> bool:
        """Apply one line; returns False if it was blank or invalid."""
        lp = f"{self.lp}apply:"
        if isinstance(line, bytes):
            line = line.decode(errors="replace")
        line = line.strip()
        if not line:
            return False
        try:
            event = MediaEvent.model_validate_json(line)
        except ValidationError as e:
            logger.warning("%s Skipping invalid media event: %s", lp, e.errors(include_url=False))
            return False
        self.apply_event(event)
        return True

    def apply_event(self, event: MediaEvent) -> None:
        if not event.application_id:
            self.tracker.set_current(None)
            return

        current = self.tracker.current
        if current is None or current.application_id != event.application_id:
            self.tracker.set_current(
                MediaSource(event.application_id, event.playback_state, event.metadata),
            )
            return

        if "playback_state" in event.model_fields_set:
            current.update_playback_state(event.playback_state)
        if "metadata" in event.model_fields_set:
            current.update_metadata(event.metadata)

    async def run(self, lines: AsyncIterable[str | bytes]) -> None:
        """Apply every line until the input ends."""
        lp = f"{self.lp}run:"
        logger.info("%s Reading media events", lp)
        count = 0
        async for line in lines:
            if self.apply_line(line):
                count += 1
        logger.info("%s Media feed ended after %d events", lp, count)


async def open_pipe_lines(pipe: IO[Any]) -> AsyncIterable[bytes]:
    """Lines of a pipe, tty or FIFO, read without blocking the event loop."""
    loop = asyncio.get_running_loop()
    reader = asyncio.StreamReader()
    _ = await loop.connect_read_pipe(lambda: asyncio.StreamReaderProtocol(reader), pipe)
    return reader


async def open_feed_lines(path: str | Path) -> AsyncIterable[str | bytes]:
    """Lines of a feed path: FIFOs are streamed, regular files are read at once.

    A FIFO is held open for writing as well, so it never reports end of file
    and watchers may disconnect and reconnect while the service keeps running.
    """
    feed_path = Path(path).expanduser()
    if stat.S_ISFIFO(feed_path.stat().st_mode):
        fd = os.open(feed_path, os.O_RDWR | os.O_NONBLOCK)
        return await open_pipe_lines(os.fdopen(fd, "rb"))
    return flow_of(*feed_path.read_text().splitlines())
