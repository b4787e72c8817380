"""
Unit tests for the JSON-lines media feed.
"""

import asyncio
import contextlib
import os

import pytest

from mediasession2mqtt.flows import flow_of
from mediasession2mqtt.media.feed import JsonLinesMediaFeed, open_feed_lines, open_pipe_lines
from mediasession2mqtt.media.playback import NativePlaybackState
from tests.helpers.fakes import wait_until


@pytest.fixture
def feed(tracker):
    return JsonLinesMediaFeed(tracker)


class TestApplyLine:
    """Tests for JsonLinesMediaFeed.apply_line"""

    def test_new_application_creates_source(self, feed, tracker):
        assert feed.apply_line('{"application_id": "com.example.player", "playback_state": 3}')

        assert tracker.current.application_id == "com.example.player"
        assert tracker.current.playback_state == NativePlaybackState.PLAYING
        assert tracker.current.metadata is None

    def test_same_application_updates_in_place(self, feed, tracker):
        _ = feed.apply_line('{"application_id": "com.example.player", "playback_state": 3, "metadata": {"title": "A"}}')
        source = tracker.current

        _ = feed.apply_line(b'{"application_id": "com.example.player", "playback_state": 2}')

        assert tracker.current is source
        assert source.playback_state == NativePlaybackState.PAUSED
        # Omitted keys are left alone
        assert source.metadata == {"title": "A"}

    def test_other_application_replaces_source(self, feed, tracker):
        _ = feed.apply_line('{"application_id": "com.example.one", "playback_state": 3}')
        first = tracker.current

        _ = feed.apply_line('{"application_id": "com.example.two"}')

        assert tracker.current is not first
        assert tracker.current.application_id == "com.example.two"
        assert tracker.current.playback_state is None

    @pytest.mark.parametrize("line", ['{"application_id": null}', '{"application_id": ""}'])
    def test_empty_application_clears_source(self, feed, tracker, line):
        _ = feed.apply_line('{"application_id": "com.example.player"}')

        assert feed.apply_line(line)
        assert tracker.current is None

    @pytest.mark.parametrize("line", ["", "   ", "not json", "{}", '{"application_id": 5}', "[1, 2]"])
    def test_blank_or_invalid_lines_are_skipped(self, feed, tracker, line):
        _ = feed.apply_line('{"application_id": "com.example.player"}')
        source = tracker.current

        assert feed.apply_line(line) is False
        assert tracker.current is source


class TestRun:
    """Tests for JsonLinesMediaFeed.run"""

    @pytest.mark.asyncio
    async def test_run_applies_every_line(self, feed, tracker):
        await feed.run(
            flow_of(
                '{"application_id": "com.example.player", "playback_state": 3}',
                "garbage",
                '{"application_id": "com.example.player", "metadata": {"title": "Song X"}}',
            ),
        )

        assert tracker.current.playback_state == NativePlaybackState.PLAYING
        assert tracker.current.metadata == {"title": "Song X"}

    @pytest.mark.asyncio
    async def test_regular_file_feed(self, feed, tracker, tmp_path):
        feed_file = tmp_path / "events.jsonl"
        _ = feed_file.write_text('{"application_id": "com.example.player", "playback_state": 2}\n\n')

        await feed.run(await open_feed_lines(feed_file))

        assert tracker.current.playback_state == NativePlaybackState.PAUSED

    @pytest.mark.asyncio
    async def test_missing_feed_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            _ = await open_feed_lines(tmp_path / "missing.jsonl")


def write_once(path, line):
    """One watcher connection: open, write a line, hang up."""
    fd = os.open(path, os.O_WRONLY | os.O_NONBLOCK)
    try:
        _ = os.write(fd, f"{line}\n".encode())
    finally:
        os.close(fd)


class TestPipeFeeds:
    """Tests for reading events from pipes and FIFOs"""

    @pytest.mark.asyncio
    async def test_pipe_lines_until_end_of_file(self, feed, tracker):
        read_fd, write_fd = os.pipe()
        with os.fdopen(write_fd, "wb") as writer:
            _ = writer.write(b'{"application_id": "com.example.player", "playback_state": 6}\n')

        with os.fdopen(read_fd, "rb") as reader:
            await asyncio.wait_for(feed.run(await open_pipe_lines(reader)), timeout=2.0)

        assert tracker.current.playback_state == NativePlaybackState.BUFFERING

    @pytest.mark.asyncio
    async def test_fifo_survives_writers_hanging_up(self, feed, tracker, tmp_path):
        """A watcher that restarts can keep feeding the same FIFO"""
        fifo = tmp_path / "events.fifo"
        os.mkfifo(fifo)
        task = asyncio.create_task(feed.run(await open_feed_lines(fifo)))

        write_once(fifo, '{"application_id": "com.example.one"}')
        await wait_until(lambda: tracker.current is not None)
        await asyncio.sleep(0.02)
        assert not task.done()

        write_once(fifo, '{"application_id": "com.example.two"}')
        await wait_until(lambda: tracker.current.application_id == "com.example.two")

        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task
