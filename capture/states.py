"""Capture workflow states."""

from __future__ import annotations

from enum import Enum


class WorkflowState(Enum):
    """Receipt capture workflow state."""

    IDLE = "idle"  # No session, no image
    STARTING = "starting"  # Camera open pending
    STREAMING = "streaming"  # Session open, live preview
    CAPTURED = "captured"  # Session closed, image held for preview
    EMITTED = "emitted"  # Image accepted by the host, terminal
