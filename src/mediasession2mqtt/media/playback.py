"""Projection of native media session values onto published values."""

from __future__ import annotations

from collections.abc import Mapping
from enum import IntEnum

from mediasession2mqtt.structs import PlaybackState


class NativePlaybackState(IntEnum):
    """Native playback state codes (media session numbering)."""

    NONE = 0
    STOPPED = 1
    PAUSED = 2
    PLAYING = 3
    FAST_FORWARDING = 4
    REWINDING = 5
    BUFFERING = 6
    ERROR = 7
    CONNECTING = 8
    SKIPPING_TO_PREVIOUS = 9
    SKIPPING_TO_NEXT = 10
    SKIPPING_TO_QUEUE_ITEM = 11


# Skipping states are transient and have no canonical counterpart.
_NATIVE_TO_PLAYBACK_STATE: dict[int, PlaybackState] = {
    NativePlaybackState.NONE: PlaybackState.IDLE,
    NativePlaybackState.STOPPED: PlaybackState.STOPPED,
    NativePlaybackState.PAUSED: PlaybackState.PAUSED,
    NativePlaybackState.PLAYING: PlaybackState.PLAYING,
    NativePlaybackState.FAST_FORWARDING: PlaybackState.PLAYING,
    NativePlaybackState.REWINDING: PlaybackState.PLAYING,
    NativePlaybackState.BUFFERING: PlaybackState.BUFFERING,
    NativePlaybackState.ERROR: PlaybackState.ERROR,
    NativePlaybackState.CONNECTING: PlaybackState.BUFFERING,
}

TITLE_KEYS: tuple[str, ...] = ("title", "display_title")


def to_playback_state_or_none(native_code: int | None) -> PlaybackState | None:
    """Map a native code to a :class:`PlaybackState`, ``None`` if it has no mapping."""
    if native_code is None:
        return None
    return _NATIVE_TO_PLAYBACK_STATE.get(native_code)


def to_media_title(metadata: Mapping[str, object] | None) -> str:
    """Title of the playing item, ``""`` when unknown."""
    if not metadata:
        return ""
    for key in TITLE_KEYS:
        value = metadata.get(key)
        if isinstance(value, str) and value:
            return value
    return ""
