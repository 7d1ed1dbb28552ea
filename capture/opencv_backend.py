"""OpenCV-based media backend."""

from __future__ import annotations

import os
import sys
import threading
from pathlib import Path
from typing import List, Optional

import cv2
import numpy as np

from log_config.logger import get_logger

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

logger = get_logger(__name__)

MAX_PROBE_INDEX = 4


def _api_preference() -> int:
    # DirectShow opens noticeably faster than MSMF on Windows
    if sys.platform == "win32":
        return cv2.CAP_DSHOW
    return cv2.CAP_ANY


def _device_node(index: int) -> Optional[Path]:
    if sys.platform.startswith("linux"):
        return Path(f"/dev/video{index}")
    return None


def parse_source(source: CameraSource) -> CameraSource:
    """Normalize a source: digit strings become device indices."""
    if isinstance(source, str) and source.strip().isdigit():
        return int(source.strip())
    return source


class OpenCVVideoTrack(VideoTrack):
    """Video track backed by a ``cv2.VideoCapture``."""

    def __init__(self, capture: cv2.VideoCapture, label: str, facing_mode: Optional[str]) -> None:
        self._capture: Optional[cv2.VideoCapture] = capture
        self._label = label
        self._facing_mode = facing_mode
        self._lock = threading.Lock()
        self._settings = TrackSettings(
            width=int(capture.get(cv2.CAP_PROP_FRAME_WIDTH)),
            height=int(capture.get(cv2.CAP_PROP_FRAME_HEIGHT)),
            facing_mode=facing_mode,
        )

    @property
    def label(self) -> str:
        return self._label

    @property
    def ready_state(self) -> str:
        return "live" if self._capture is not None else "ended"

    def read(self) -> Optional[np.ndarray]:
        with self._lock:
            if self._capture is None:
                return None
            ok, frame = self._capture.read()
        if not ok or frame is None or frame.size == 0:
            return None
        return frame

    def get_settings(self) -> TrackSettings:
        return self._settings

    def stop(self) -> None:
        """Release the capture device. Idempotent."""
        with self._lock:
            if self._capture is None:
                logger.debug(f"Track {self._label}: Already stopped")
                return
            capture, self._capture = self._capture, None
        try:
            capture.release()
            logger.info(f"Track {self._label}: Stopped")
        except cv2.error as e:
            logger.error(f"Track {self._label}: Error during release: {e}")


class OpenCVMediaBackend(MediaBackend):
    """Camera access through OpenCV's video I/O module.

    Sources are device indices (``0``, ``"1"``) or stream URLs
    (``rtsp://...``, ``http://.../video``).
    """

    name = "opencv"

    def is_supported(self) -> bool:
        registry = getattr(cv2, "videoio_registry", None)
        if registry is None:
            return False
        try:
            return len(registry.getCameraBackends()) > 0
        except cv2.error as e:
            logger.warning(f"Unable to query OpenCV camera backends: {e}")
            return False

    def enumerate_devices(self) -> List[DeviceInfo]:
        devices: List[DeviceInfo] = []
        for index in range(MAX_PROBE_INDEX):
            node = _device_node(index)
            if node is not None and not node.exists():
                continue
            capture = cv2.VideoCapture(index, _api_preference())
            try:
                if capture.isOpened():
                    devices.append(DeviceInfo(device_id=str(index), label=f"Camera {index}"))
            finally:
                capture.release()
        logger.debug(f"Enumerated {len(devices)} OpenCV camera(s)")
        return devices

    def get_user_media(self, source: CameraSource, constraints: StreamConstraints) -> MediaStream:
        source = parse_source(source)
        logger.info(f"Opening OpenCV camera source {source!r}")

        if constraints.facing_mode:
            logger.debug(
                f"Facing mode '{constraints.facing_mode}' is advisory for OpenCV sources; "
                "select the rear camera by index or URL"
            )

        if isinstance(source, int):
            capture = self._open_device(source)
        else:
            capture = self._open_url(source)

        capture.set(cv2.CAP_PROP_FRAME_WIDTH, constraints.ideal_width)
        capture.set(cv2.CAP_PROP_FRAME_HEIGHT, constraints.ideal_height)

        actual_width = int(capture.get(cv2.CAP_PROP_FRAME_WIDTH))
        actual_height = int(capture.get(cv2.CAP_PROP_FRAME_HEIGHT))
        if actual_width != constraints.ideal_width or actual_height != constraints.ideal_height:
            logger.warning(
                f"Camera {source!r}: Requested {constraints.ideal_width}x{constraints.ideal_height} "
                f"but got {actual_width}x{actual_height}"
            )

        too_narrow = constraints.min_width is not None and 0 < actual_width < constraints.min_width
        too_short = constraints.min_height is not None and 0 < actual_height < constraints.min_height
        if too_narrow or too_short:
            capture.release()
            raise PlatformMediaError(
                "OverconstrainedError",
                f"{actual_width}x{actual_height} is below the required "
                f"{constraints.min_width}x{constraints.min_height}",
            )

        track = OpenCVVideoTrack(capture, label=str(source), facing_mode=constraints.facing_mode)
        return MediaStream([track], source=source)

    def _open_device(self, index: int) -> cv2.VideoCapture:
        node = _device_node(index)
        if node is not None:
            if not node.exists():
                raise PlatformMediaError("NotFoundError", f"{node} does not exist")
            if not os.access(node, os.R_OK | os.W_OK):
                raise PlatformMediaError("NotAllowedError", f"No read/write access to {node}")

        try:
            capture = cv2.VideoCapture(index, _api_preference())
        except cv2.error as e:
            raise PlatformMediaError("AbortError", str(e)) from e

        if not capture.isOpened():
            capture.release()
            if node is None:
                # No device node to inspect; an unopenable index usually means no camera there
                raise PlatformMediaError("NotFoundError", f"No camera at index {index}")
            raise PlatformMediaError(
                "NotReadableError", f"Camera index {index} exists but could not be opened"
            )
        return capture

    def _open_url(self, url: str) -> cv2.VideoCapture:
        try:
            capture = cv2.VideoCapture(url)
        except cv2.error as e:
            raise PlatformMediaError("AbortError", str(e)) from e

        if not capture.isOpened():
            capture.release()
            raise PlatformMediaError("NotFoundError", f"Stream {url} is not reachable")
        return capture
