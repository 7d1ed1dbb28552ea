"""Builds capture workflows from configuration."""

from __future__ import annotations

from typing import Optional

from app.events import ErrorEventBus
from app.events.event_bus import EventBus
from capture import (
    CaptureWorkflow,
    FrameCapture,
    MediaBackend,
    MediaDeviceSession,
    PreviewRegistry,
    SimulatedMediaBackend,
)
from capture.opencv_backend import OpenCVMediaBackend
from capture.workflow import CaptureCallback
from configs.settings import AppConfig, CameraConfig
from log_config.logger import get_logger

logger = get_logger(__name__)


def build_backend(camera: CameraConfig) -> MediaBackend:
    """Build media backend instance based on configuration.

    Returns:
        MediaBackend instance
    """
    if camera.backend == "sim":
        return SimulatedMediaBackend(
            width=camera.ideal_width,
            height=camera.ideal_height,
            warmup_frames=camera.warmup_frames,
        )
    return OpenCVMediaBackend()


def build_workflow(
    config: AppConfig,
    on_capture: Optional[CaptureCallback] = None,
    backend: Optional[MediaBackend] = None,
    previews: Optional[PreviewRegistry] = None,
    event_bus: Optional[EventBus] = None,
    error_bus: Optional[ErrorEventBus] = None,
) -> CaptureWorkflow:
    """Wire a session, encoder and preview registry into a workflow.

    Each workflow gets its own session, so two capture widgets on one form
    never share a camera handle.
    """
    backend = backend or build_backend(config.camera)
    session = MediaDeviceSession(
        backend,
        source=config.camera.source,
        constraints=config.camera.constraints(),
        open_timeout_s=config.camera.open_timeout_s,
        error_bus=error_bus,
    )
    logger.debug(f"Built capture workflow on {backend.name} source {config.camera.source!r}")
    return CaptureWorkflow(
        session,
        frame_capture=FrameCapture(),
        previews=previews,
        on_capture=on_capture,
        event_bus=event_bus,
        error_bus=error_bus,
    )
