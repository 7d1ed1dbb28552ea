"""Renderable video surface bound to a live stream."""

from __future__ import annotations

import threading
from typing import Optional

import numpy as np

from .media_backend import MediaStream


class VideoSurface:
    """Holds the most recent frame of an attached stream.

    Like a video element, the surface has no intrinsic size until the first
    frame arrives; ``video_width`` and ``video_height`` stay 0 until then.
    Frames are pulled with ``refresh()``, typically from a UI timer.
    """

    def __init__(self) -> None:
        self._stream: Optional[MediaStream] = None
        self._frame: Optional[np.ndarray] = None
        self._lock = threading.Lock()

    @property
    def is_attached(self) -> bool:
        return self._stream is not None

    @property
    def video_width(self) -> int:
        frame = self._frame
        return int(frame.shape[1]) if frame is not None else 0

    @property
    def video_height(self) -> int:
        frame = self._frame
        return int(frame.shape[0]) if frame is not None else 0

    def attach(self, stream: MediaStream) -> None:
        with self._lock:
            self._stream = stream
            self._frame = None

    def detach(self) -> None:
        with self._lock:
            self._stream = None
            self._frame = None

    def refresh(self) -> bool:
        """Pull the newest frame from the stream.

        Returns:
            True if a new frame was received
        """
        with self._lock:
            stream = self._stream
        if stream is None:
            return False

        tracks = stream.get_video_tracks()
        if not tracks:
            return False
        frame = tracks[0].read()
        if frame is None:
            return False

        with self._lock:
            # Stream may have been detached while reading
            if self._stream is stream:
                self._frame = frame
                return True
        return False

    def current_frame(self) -> Optional[np.ndarray]:
        return self._frame
