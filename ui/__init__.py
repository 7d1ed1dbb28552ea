"""UI module."""

from .capture_widget import CameraCaptureWidget

__all__ = ["CameraCaptureWidget"]
