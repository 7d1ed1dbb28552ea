"""Capture module."""

from .frame_capture import CapturedImage, FrameCapture
from .media_backend import MediaBackend, MediaStream, PlatformMediaError, StreamConstraints
from .media_session import MediaDeviceSession
from .preview import PreviewRegistry
from .simulated_backend import SimulatedMediaBackend
from .states import WorkflowState
from .surface import VideoSurface
from .workflow import CaptureWorkflow

__all__ = [
    "CaptureWorkflow",
    "CapturedImage",
    "FrameCapture",
    "MediaBackend",
    "MediaDeviceSession",
    "MediaStream",
    "PlatformMediaError",
    "PreviewRegistry",
    "SimulatedMediaBackend",
    "StreamConstraints",
    "VideoSurface",
    "WorkflowState",
]
