"""Derive the three published value streams from the current media source."""

from __future__ import annotations

from collections.abc import AsyncIterable, AsyncIterator

from mediasession2mqtt.flows import (
    distinct_until_changed,
    filter_not_none,
    flat_map_latest,
    flow_of,
    map_values,
)
from mediasession2mqtt.media.playback import to_media_title, to_playback_state_or_none
from mediasession2mqtt.media.tracker import MediaSource, MediaSourceTracker
from mediasession2mqtt.structs import PlaybackState


class ValueProjector:
    """Cold, deduplicated value streams over a :class:`MediaSourceTracker`.

    Every call subscribes to the tracker anew, so each consumer starts from
    the current source. Playback state and title follow the latest source
    only: switching sources drops whatever the previous source had pending.
    """

    def __init__(self, tracker: MediaSourceTracker) -> None:
        self.tracker: MediaSourceTracker = tracker

    def application_ids(self) -> AsyncIterator[str]:
        return distinct_until_changed(
            map_values(self.tracker.current_source_stream(), _application_id_of),
        )

    def playback_states(self) -> AsyncIterator[PlaybackState]:
        return distinct_until_changed(
            flat_map_latest(self.tracker.current_source_stream(), _playback_states_of),
        )

    def media_titles(self) -> AsyncIterator[str]:
        return distinct_until_changed(
            flat_map_latest(self.tracker.current_source_stream(), _media_titles_of),
        )


def _application_id_of(source: MediaSource | None) -> str:
    return source.application_id if source is not None else ""


def _playback_states_of(source: MediaSource | None) -> AsyncIterable[PlaybackState]:
    if source is None:
        return flow_of(PlaybackState.IDLE)
    return filter_not_none(map_values(source.playback_state_stream(), to_playback_state_or_none))


def _media_titles_of(source: MediaSource | None) -> AsyncIterable[str]:
    if source is None:
        return flow_of("")
    return map_values(source.metadata_stream(), to_media_title)
