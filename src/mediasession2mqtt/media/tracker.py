"""Tracking of the single "current" media source.

Platform bindings (a media session listener, the JSON-lines feed in
:mod:`mediasession2mqtt.media.feed`, tests) drive a :class:`MediaSourceTracker`
by calling :meth:`MediaSourceTracker.set_current` and by updating the
per-source streams of :class:`MediaSource`.
"""

from __future__ import annotations

from collections.abc import AsyncIterator, Mapping

from mediasession2mqtt.flows import StateStream
from mediasession2mqtt.logging_abstraction import get_logger

logger = get_logger(__name__)

Metadata = Mapping[str, object]


class MediaSource:
    """A media producing application and its live playback state and metadata.

    Two sources are equal only if they are the same object: a new session of
    the same application is a new source.
    """

    lp: str = "media_source:"

    def __init__(
        self,
        application_id: str,
        playback_state: int | None = None,
        metadata: Metadata | None = None,
    ) -> None:
        self.application_id: str = application_id
        self._playback_state: StateStream[int | None] = StateStream(playback_state)
        self._metadata: StateStream[Metadata | None] = StateStream(metadata)

    def __repr__(self) -> str:
        return f"MediaSource(application_id={self.application_id!r}, playback_state={self._playback_state.value!r})"

    @property
    def playback_state(self) -> int | None:
        """Latest native playback state code."""
        return self._playback_state.value

    @property
    def metadata(self) -> Metadata | None:
        return self._metadata.value

    def update_playback_state(self, native_code: int | None) -> None:
        if self._playback_state.set(native_code):
            logger.debug("%s %s playback state -> %s", self.lp, self.application_id, native_code)

    def update_metadata(self, metadata: Metadata | None) -> None:
        if self._metadata.set(metadata):
            logger.debug("%s %s metadata updated", self.lp, self.application_id)

    def playback_state_stream(self) -> AsyncIterator[int | None]:
        return self._playback_state.stream()

    def metadata_stream(self) -> AsyncIterator[Metadata | None]:
        return self._metadata.stream()


class MediaSourceTracker:
    """Holds the current media source, ``None`` while nothing is playing."""

    lp: str = "tracker:"

    def __init__(self, initial: MediaSource | None = None) -> None:
        self._current: StateStream[MediaSource | None] = StateStream(initial)

    @property
    def current(self) -> MediaSource | None:
        return self._current.value

    def set_current(self, source: MediaSource | None) -> None:
        if self._current.set(source):
            logger.info(
                "%s Current media source changed",
                self.lp,
                extra={"application_id": source.application_id if source else None},
            )

    def current_source_stream(self) -> AsyncIterator[MediaSource | None]:
        """Current source, then every change."""
        return self._current.stream()
