"""
Unit tests for projecting native media session values.
"""

import pytest

from mediasession2mqtt.media.playback import NativePlaybackState, to_media_title, to_playback_state_or_none
from mediasession2mqtt.structs import PlaybackState


class TestPlaybackStateProjection:
    """Tests for to_playback_state_or_none"""

    @pytest.mark.parametrize(
        ("native", "expected"),
        [
            (NativePlaybackState.NONE, PlaybackState.IDLE),
            (NativePlaybackState.STOPPED, PlaybackState.STOPPED),
            (NativePlaybackState.PAUSED, PlaybackState.PAUSED),
            (NativePlaybackState.PLAYING, PlaybackState.PLAYING),
            (NativePlaybackState.FAST_FORWARDING, PlaybackState.PLAYING),
            (NativePlaybackState.REWINDING, PlaybackState.PLAYING),
            (NativePlaybackState.BUFFERING, PlaybackState.BUFFERING),
            (NativePlaybackState.CONNECTING, PlaybackState.BUFFERING),
            (NativePlaybackState.ERROR, PlaybackState.ERROR),
        ],
    )
    def test_mapped_codes(self, native, expected):
        assert to_playback_state_or_none(native) is expected

    @pytest.mark.parametrize(
        "native",
        [
            NativePlaybackState.SKIPPING_TO_PREVIOUS,
            NativePlaybackState.SKIPPING_TO_NEXT,
            NativePlaybackState.SKIPPING_TO_QUEUE_ITEM,
            42,
            -1,
            None,
        ],
    )
    def test_unmapped_codes_are_dropped(self, native):
        assert to_playback_state_or_none(native) is None

    def test_plain_int_codes_are_accepted(self):
        """Feeds deliver plain ints, not enum members"""
        assert to_playback_state_or_none(3) is PlaybackState.PLAYING

    def test_published_names(self):
        """The canonical name is what ends up on the wire"""
        assert [state.value for state in PlaybackState] == [
            "idle",
            "playing",
            "paused",
            "stopped",
            "buffering",
            "error",
        ]


class TestMediaTitle:
    """Tests for to_media_title"""

    def test_title(self):
        assert to_media_title({"title": "Song X", "display_title": "Other"}) == "Song X"

    def test_display_title_fallback(self):
        assert to_media_title({"title": "", "display_title": "Shown"}) == "Shown"

    @pytest.mark.parametrize("metadata", [None, {}, {"artist": "Someone"}, {"title": 12}, {"title": None}])
    def test_missing_or_malformed_is_empty(self, metadata):
        assert to_media_title(metadata) == ""
