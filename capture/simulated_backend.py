"""Simulated media backend for demos and tests."""

from __future__ import annotations

import threading
import time
from typing import List, Optional

import numpy as np

from .media_backend import (
    CameraSource,
    DeviceInfo,
    MediaBackend,
    MediaStream,
    PlatformMediaError,
    StreamConstraints,
    TrackSettings,
    VideoTrack,
)


class SimulatedVideoTrack(VideoTrack):
    """Track producing synthetic BGR frames.

    The first ``warmup_frames`` reads return None, mimicking a camera whose
    surface has no intrinsic size yet.
    """

    def __init__(
        self,
        backend: "SimulatedMediaBackend",
        width: int,
        height: int,
        facing_mode: Optional[str],
        warmup_frames: int = 0,
    ) -> None:
        self._backend = backend
        self._width = width
        self._height = height
        self._facing_mode = facing_mode
        self._warmup_remaining = warmup_frames
        self._frame_index = 0
        self._live = True

    @property
    def ready_state(self) -> str:
        return "live" if self._live else "ended"

    def read(self) -> Optional[np.ndarray]:
        if not self._live:
            return None
        if self._warmup_remaining > 0:
            self._warmup_remaining -= 1
            return None

        self._frame_index += 1
        image = np.zeros((self._height, self._width, 3), dtype=np.uint8)
        image[:, :, 0] = 40  # Blue channel
        image[:, :, 1] = (30 + self._frame_index * 37) % 256  # Green varies per frame
        image[:, :, 2] = 20  # Red channel
        # Paper-coloured "receipt" in the middle of the frame
        top, bottom = self._height // 4, 3 * self._height // 4
        left, right = self._width // 3, 2 * self._width // 3
        image[top:bottom, left:right] = 235
        return image

    def get_settings(self) -> TrackSettings:
        return TrackSettings(width=self._width, height=self._height, facing_mode=self._facing_mode)

    def stop(self) -> None:
        if not self._live:
            return
        self._live = False
        self._backend._record_stop()


class SimulatedMediaBackend(MediaBackend):
    """In-process camera with scriptable failures.

    Args:
        supported: Report camera capability (False simulates a platform without cameras)
        width: Frame width handed out when no constraint overrides it
        height: Frame height
        warmup_frames: Reads returning no frame after each open
        fail_with: Platform error name raised by every ``get_user_media`` call
        open_delay_s: Artificial latency of ``get_user_media``
    """

    name = "sim"

    def __init__(
        self,
        supported: bool = True,
        width: int = 1920,
        height: int = 1080,
        warmup_frames: int = 0,
        fail_with: Optional[str] = None,
        open_delay_s: float = 0.0,
    ) -> None:
        self.supported = supported
        self.width = width
        self.height = height
        self.warmup_frames = warmup_frames
        self.fail_with = fail_with
        self.open_delay_s = open_delay_s
        self._lock = threading.Lock()
        self.open_count = 0
        self.stop_count = 0

    @property
    def live_streams(self) -> int:
        with self._lock:
            return self.open_count - self.stop_count

    def _record_stop(self) -> None:
        with self._lock:
            self.stop_count += 1

    def is_supported(self) -> bool:
        return self.supported

    def enumerate_devices(self) -> List[DeviceInfo]:
        if not self.supported:
            return []
        return [DeviceInfo(device_id="sim", label="Simulated rear camera")]

    def get_user_media(self, source: CameraSource, constraints: StreamConstraints) -> MediaStream:
        if self.open_delay_s > 0:
            time.sleep(self.open_delay_s)
        if self.fail_with:
            raise PlatformMediaError(self.fail_with, "simulated failure")

        width = min(self.width, constraints.ideal_width) if constraints.ideal_width else self.width
        height = min(self.height, constraints.ideal_height) if constraints.ideal_height else self.height
        if (constraints.min_width and width < constraints.min_width) or (
            constraints.min_height and height < constraints.min_height
        ):
            raise PlatformMediaError("OverconstrainedError", f"{width}x{height} below minimum")

        track = SimulatedVideoTrack(
            self,
            width=width,
            height=height,
            facing_mode=constraints.facing_mode,
            warmup_frames=self.warmup_frames,
        )
        with self._lock:
            self.open_count += 1
        return MediaStream([track], source=source)
