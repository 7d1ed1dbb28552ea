"""Platform media abstraction for receipt capture backends.

A backend plays the role of the platform camera API: it reports whether
cameras are available at all, enumerates devices, and hands out live
streams made of video tracks. Backends report failures as
``PlatformMediaError`` carrying a platform error name; the session maps
those names to ``CameraErrorKind`` at the boundary.
"""

from __future__ import annotations

import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import List, Optional, Union

import numpy as np

CameraSource = Union[int, str]

FACING_ENVIRONMENT = "environment"
FACING_USER = "user"


@dataclass(frozen=True)
class StreamConstraints:
    """Requested stream properties.

    ``ideal_*`` values are best effort; ``min_*`` values are hard limits and
    a backend that cannot meet them raises ``OverconstrainedError``.
    """

    facing_mode: str = FACING_ENVIRONMENT
    ideal_width: int = 1920
    ideal_height: int = 1080
    min_width: Optional[int] = None
    min_height: Optional[int] = None
    audio: bool = False


@dataclass(frozen=True)
class TrackSettings:
    width: int
    height: int
    facing_mode: Optional[str] = None


@dataclass(frozen=True)
class DeviceInfo:
    device_id: str
    label: str
    kind: str = "videoinput"


class PlatformMediaError(Exception):
    """Raw failure reported by a media backend.

    Args:
        name: Platform error name (e.g. "NotAllowedError")
        message: Platform-provided detail, may be empty
    """

    def __init__(self, name: str, message: str = ""):
        self.name = name
        self.detail = message
        super().__init__(f"{name}: {message}" if message else name)


class VideoTrack(ABC):
    """A single live video track of a media stream."""

    kind = "video"

    @property
    @abstractmethod
    def ready_state(self) -> str:
        """Return "live" while frames can be read, "ended" once stopped."""

    @abstractmethod
    def read(self) -> Optional[np.ndarray]:
        """Return the newest frame, or None while the camera warms up."""

    @abstractmethod
    def get_settings(self) -> TrackSettings:
        """Return the negotiated track settings."""

    @abstractmethod
    def stop(self) -> None:
        """Stop the track and release the underlying hardware. Idempotent."""


class MediaStream:
    """Live stream handle made of one or more tracks."""

    def __init__(self, tracks: List[VideoTrack], source: CameraSource) -> None:
        self.id = uuid.uuid4().hex
        self.source = source
        self._tracks = list(tracks)

    def get_tracks(self) -> List[VideoTrack]:
        return list(self._tracks)

    def get_video_tracks(self) -> List[VideoTrack]:
        return [track for track in self._tracks if track.kind == "video"]

    @property
    def active(self) -> bool:
        return any(track.ready_state == "live" for track in self._tracks)

    def stop(self) -> None:
        """Stop every track of the stream."""
        for track in self._tracks:
            track.stop()

    def __repr__(self) -> str:
        return f"MediaStream(id={self.id[:8]}, source={self.source!r}, active={self.active})"


class MediaBackend(ABC):
    """Platform camera API."""

    name = "abstract"

    @abstractmethod
    def is_supported(self) -> bool:
        """Return True if the platform exposes any camera capability."""

    @abstractmethod
    def enumerate_devices(self) -> List[DeviceInfo]:
        """List available video input devices."""

    @abstractmethod
    def get_user_media(self, source: CameraSource, constraints: StreamConstraints) -> MediaStream:
        """Acquire a live stream.

        Raises:
            PlatformMediaError: If the stream cannot be acquired
        """
