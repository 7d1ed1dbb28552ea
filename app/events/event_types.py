"""Event types published by the capture workflow.

All events are immutable dataclasses that flow through the EventBus.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from capture.frame_capture import CapturedImage
    from capture.states import WorkflowState


@dataclass(frozen=True)
class WorkflowStateChangedEvent:
    """Published on every capture workflow state transition.

    Attributes:
        previous: State before the transition
        current: State after the transition
    """
    previous: WorkflowState
    current: WorkflowState


@dataclass(frozen=True)
class CameraStartedEvent:
    """Published when a camera stream has been acquired and bound to the surface."""
    source: str
    width: int
    height: int


@dataclass(frozen=True)
class CameraStoppedEvent:
    """Published when a camera stream has been released.

    Attributes:
        source: Camera source the stream came from
        reason: Why the stream was released ("captured", "cancelled", "teardown")
    """
    source: str
    reason: str


@dataclass(frozen=True)
class ReceiptCapturedEvent:
    """Published once per successful capture, after the camera was released.

    Attributes:
        image: The captured JPEG, ownership passes to subscribers
        preview_url: Preview reference held by the workflow until retake/accept/reset
    """
    image: CapturedImage
    preview_url: Optional[str] = None
