"""Camera stream acquisition and release."""

from __future__ import annotations

import threading
import time
import warnings
from typing import Optional
from urllib.parse import urlparse

from app.events import ErrorCategory, ErrorEventBus, ErrorSeverity, publish_error
from exceptions import CameraError, CameraErrorKind, InsecureContextWarning, UnknownCameraError
from log_config.logger import get_logger, log_performance

from .errors import ACCESS_PREFIX, make_camera_error, map_platform_error, remediation_message
from .media_backend import CameraSource, MediaBackend, MediaStream, PlatformMediaError, StreamConstraints
from .surface import VideoSurface
from .timeout_utils import run_with_timeout

logger = get_logger(__name__)

LOCAL_HOSTS = frozenset({"localhost", "127.0.0.1", "::1"})
INSECURE_SCHEMES = frozenset({"http", "rtsp", "rtmp", "udp", "tcp", "rtp"})


def is_insecure_source(source: CameraSource) -> bool:
    """Return True for network sources reached without TLS on a non-local host.

    Local devices (indices, device paths) are always considered secure.
    """
    if isinstance(source, int):
        return False
    text = str(source).strip()
    if text.isdigit():
        return False
    parsed = urlparse(text)
    if parsed.scheme.lower() not in INSECURE_SCHEMES:
        return False
    return (parsed.hostname or "").lower() not in LOCAL_HOSTS


class MediaDeviceSession:
    """Owns at most one live camera stream.

    ``open()`` acquires the stream and binds it to the video surface;
    ``close()`` stops every track and is safe to call at any time. Use the
    session as a context manager to guarantee release.

    Args:
        backend: Platform media API
        source: Device index or stream URL
        constraints: Requested stream properties
        surface: Surface the stream is rendered into
        open_timeout_s: Give up on a hung ``open()`` after this many seconds
        error_bus: Bus for advisories (defaults to the global bus)
    """

    def __init__(
        self,
        backend: MediaBackend,
        source: CameraSource = 0,
        constraints: Optional[StreamConstraints] = None,
        surface: Optional[VideoSurface] = None,
        open_timeout_s: float = 5.0,
        error_bus: Optional[ErrorEventBus] = None,
    ) -> None:
        self._backend = backend
        self._source = source
        self._constraints = constraints or StreamConstraints()
        self._surface = surface or VideoSurface()
        self._open_timeout_s = open_timeout_s
        self._error_bus = error_bus
        self._stream: Optional[MediaStream] = None
        self._lock = threading.RLock()

    @property
    def source(self) -> CameraSource:
        return self._source

    @property
    def surface(self) -> VideoSurface:
        return self._surface

    @property
    def stream(self) -> Optional[MediaStream]:
        return self._stream

    @property
    def is_open(self) -> bool:
        return self._stream is not None

    def open(self) -> MediaStream:
        """Acquire a live stream and bind it to the surface.

        Returns:
            The live stream

        Raises:
            UnsupportedPlatformError: If the platform has no camera capability
            CameraError: Mapped acquisition failure (permission, not found, busy,
                constraints, security). Any other backend failure is raised as
                UnknownCameraError
            RuntimeError: If a stream is already open
        """
        with self._lock:
            if self._stream is not None:
                raise RuntimeError("Camera session already open.")

        try:
            supported = self._backend.is_supported()
        except Exception as e:
            raise self._unexpected_failure(e) from e
        if not supported:
            logger.error(f"Backend {self._backend.name} reports no camera capability")
            raise make_camera_error(CameraErrorKind.UNSUPPORTED_PLATFORM, camera_id=str(self._source))

        if is_insecure_source(self._source):
            message = remediation_message(CameraErrorKind.INSECURE_CONTEXT)
            warnings.warn(message, InsecureContextWarning, stacklevel=2)
            publish_error(
                category=ErrorCategory.CAMERA,
                severity=ErrorSeverity.WARNING,
                message=message,
                source="MediaDeviceSession",
                bus=self._error_bus,
                kind=CameraErrorKind.INSECURE_CONTEXT.value,
                camera_source=str(self._source),
            )

        logger.info(f"Requesting camera access for source {self._source!r}")
        start = time.perf_counter()
        try:
            stream = run_with_timeout(
                self._backend.get_user_media,
                self._open_timeout_s,
                f"Camera {self._source!r} open timed out",
                self._source,
                self._constraints,
                on_late_result=lambda late: late.stop(),
                camera_id=str(self._source),
            )
        except PlatformMediaError as e:
            logger.error(f"Camera {self._source!r} acquisition failed: {e}")
            raise map_platform_error(e, camera_id=str(self._source)) from e
        except CameraError:
            raise
        except Exception as e:
            raise self._unexpected_failure(e) from e

        log_performance(f"camera open {self._source!r}", (time.perf_counter() - start) * 1000.0, 1000.0)

        with self._lock:
            self._stream = stream
            self._surface.attach(stream)
        logger.info(f"Camera access granted: {stream!r}")
        return stream

    def close(self) -> None:
        """Stop every track and detach the surface.

        Note:
            - Idempotent - safe to call multiple times or with no session
            - Always clears the stream reference, even if a track fails to stop
        """
        with self._lock:
            stream, self._stream = self._stream, None
            if stream is None:
                logger.debug(f"Camera {self._source!r}: No open session")
                return
            self._surface.detach()

        logger.info(f"Camera {self._source!r}: Closing")
        for track in stream.get_tracks():
            try:
                track.stop()
            except Exception as e:
                logger.error(f"Camera {self._source!r}: Error stopping track: {e}")

    def _unexpected_failure(self, error: Exception) -> UnknownCameraError:
        logger.opt(exception=error).error(f"Camera {self._source!r}: Unexpected backend failure: {error}")
        return UnknownCameraError(ACCESS_PREFIX + str(error), camera_id=str(self._source))

    def __enter__(self) -> "MediaDeviceSession":
        self.open()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()
