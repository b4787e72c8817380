"""Media source tracking and projection onto publishable values."""

from .playback import to_media_title, to_playback_state_or_none
from .projector import ValueProjector
from .tracker import MediaSource, MediaSourceTracker

__all__ = [
    "MediaSource",
    "MediaSourceTracker",
    "ValueProjector",
    "to_media_title",
    "to_playback_state_or_none",
]
