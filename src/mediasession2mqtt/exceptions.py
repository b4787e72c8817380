"""Exception hierarchy for MediaSession2MQTT."""

from __future__ import annotations

from pathlib import Path


class MediaSessionError(Exception):
    """Base class for all errors raised by this package."""


class SettingsError(MediaSessionError):
    """The persisted settings file could not be read, parsed or written.

    Attributes:
        path: Settings file involved
        reason: Specific failure reason

    """

    def __init__(self, path: Path, reason: str) -> None:
        self.path: Path = path
        self.reason: str = reason
        super().__init__(f"Settings error in {path}: {reason}")


class InvalidBrokerURIError(MediaSessionError, ValueError):
    """Broker URI has an unsupported scheme or no host."""

    def __init__(self, uri: str, reason: str) -> None:
        self.uri: str = uri
        super().__init__(f"Invalid broker URI {uri!r}: {reason}")
