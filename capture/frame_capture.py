"""Still image capture from a live video surface."""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Optional, Protocol

import cv2
import numpy as np

from exceptions import CameraErrorKind
from log_config.logger import get_logger, log_performance

from .errors import make_camera_error

logger = get_logger(__name__)

# Proof photos, not archival scans: fixed JPEG policy
JPEG_MIME_TYPE = "image/jpeg"
JPEG_QUALITY = 0.95
FILENAME_PREFIX = "receipt"


class FrameSource(Protocol):
    video_width: int
    video_height: int

    def current_frame(self) -> Optional[np.ndarray]:
        ...


@dataclass(frozen=True)
class CapturedImage:
    """An encoded receipt photo.

    Attributes:
        payload: JPEG bytes
        filename: ``receipt-<epoch_ms>.jpg``
        width: Pixel width of the encoded image
        height: Pixel height of the encoded image
        created_at_ms: Capture time, milliseconds since the epoch
    """

    payload: bytes
    filename: str
    width: int
    height: int
    created_at_ms: int
    mime_type: str = JPEG_MIME_TYPE
    quality: float = JPEG_QUALITY

    @property
    def size(self) -> int:
        return len(self.payload)

    def save(self, directory: Path) -> Path:
        """Write the image into ``directory`` under its own file name."""
        directory = Path(directory)
        directory.mkdir(parents=True, exist_ok=True)
        path = directory / self.filename
        path.write_bytes(self.payload)
        return path

    def __repr__(self) -> str:
        return (f"CapturedImage(filename={self.filename!r}, size={self.size}, "
                f"{self.width}x{self.height})")


def capture_filename(created_at_ms: int) -> str:
    return f"{FILENAME_PREFIX}-{created_at_ms}.jpg"


class FrameCapture:
    """Freezes the current frame of a surface into a JPEG.

    Args:
        clock: Returns seconds since the epoch; file names derive from it
    """

    def __init__(self, clock: Callable[[], float] = time.time) -> None:
        self._clock = clock
        self._last_ms = 0
        self._lock = threading.Lock()

    def _next_timestamp_ms(self) -> int:
        # File names must stay unique even for two captures within one millisecond
        with self._lock:
            now_ms = int(self._clock() * 1000)
            if now_ms <= self._last_ms:
                now_ms = self._last_ms + 1
            self._last_ms = now_ms
            return now_ms

    def capture(self, surface: FrameSource) -> CapturedImage:
        """Encode the surface's current frame.

        Raises:
            NotReadyError: If the surface has no intrinsic size yet
            EncodeFailedError: If the encoder produced no output
        """
        width = int(surface.video_width)
        height = int(surface.video_height)
        frame = surface.current_frame()
        if width == 0 or height == 0 or frame is None:
            logger.warning(f"Capture attempted before camera warm-up ({width}x{height})")
            raise make_camera_error(CameraErrorKind.NOT_READY)

        start = time.perf_counter()
        raster = self._draw(frame, width, height)

        try:
            ok, encoded = cv2.imencode(
                ".jpg", raster, [int(cv2.IMWRITE_JPEG_QUALITY), int(round(JPEG_QUALITY * 100))]
            )
        except cv2.error as e:
            logger.error(f"JPEG encoder failed: {e}")
            raise make_camera_error(CameraErrorKind.ENCODE_FAILED) from e

        if not ok or encoded is None or encoded.size == 0:
            logger.error("JPEG encoder returned no data")
            raise make_camera_error(CameraErrorKind.ENCODE_FAILED)

        log_performance("JPEG encode", (time.perf_counter() - start) * 1000.0)

        created_at_ms = self._next_timestamp_ms()
        image = CapturedImage(
            payload=encoded.tobytes(),
            filename=capture_filename(created_at_ms),
            width=width,
            height=height,
            created_at_ms=created_at_ms,
        )
        logger.info(f"Image captured: {image.filename} ({image.size} bytes, {width}x{height})")
        return image

    @staticmethod
    def _draw(frame: np.ndarray, width: int, height: int) -> np.ndarray:
        """Copy ``frame`` into an off-screen BGR buffer of the surface's size."""
        raster = np.empty((height, width, 3), dtype=np.uint8)

        if frame.ndim == 2:
            frame = cv2.cvtColor(frame, cv2.COLOR_GRAY2BGR)
        elif frame.shape[2] == 4:
            frame = cv2.cvtColor(frame, cv2.COLOR_BGRA2BGR)

        if frame.shape[0] != height or frame.shape[1] != width:
            cv2.resize(frame, (width, height), dst=raster, interpolation=cv2.INTER_AREA)
        else:
            np.copyto(raster, frame)
        return raster
