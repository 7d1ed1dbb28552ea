"""Receipt capture workflow.

Coordinates the camera session, frame capture and preview references:

    IDLE --start--> STREAMING --capture--> CAPTURED --accept--> EMITTED
      ^                |                      |
      +----cancel------+                      +--retake--> STREAMING

The camera is open only while STREAMING (and transiently while STARTING).
A successful capture closes the camera first, then hands the image to the
host exactly once: pending ``next_capture()`` futures resolve, the
``on_capture`` callback runs and a ``ReceiptCapturedEvent`` is published.
Failures never escape; they are recorded in ``last_error`` and published
on the error bus with a remediation message. Nothing is retried.
"""

from __future__ import annotations

import threading
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Callable, List, Optional

from app.events import ErrorCategory, ErrorEventBus, ErrorSeverity, publish_error
from app.events.event_bus import EventBus
from app.events.event_types import (
    CameraStartedEvent,
    CameraStoppedEvent,
    ReceiptCapturedEvent,
    WorkflowStateChangedEvent,
)
from exceptions import CameraError
from log_config.logger import get_logger

from .frame_capture import CapturedImage, FrameCapture
from .media_session import MediaDeviceSession
from .preview import PreviewRegistry
from .states import WorkflowState

logger = get_logger(__name__)

CaptureCallback = Callable[[CapturedImage], None]

CAMERA_READY_MESSAGE = "Camera ready! Position your document and tap Capture."
CAPTURE_SUCCESS_MESSAGE = "Image captured successfully!"


def _rejected() -> "Future[bool]":
    future: Future = Future()
    future.set_result(False)
    return future


class CaptureWorkflow:
    """State machine for one receipt capture widget.

    Args:
        session: Camera session owned exclusively by this workflow
        frame_capture: JPEG encoder (default: ``FrameCapture()``)
        previews: Preview reference registry (default: private registry)
        on_capture: Called once per successful capture, after the camera closed
        event_bus: Bus for workflow events (default: private bus)
        error_bus: Bus for advisories (default: global error bus)
    """

    def __init__(
        self,
        session: MediaDeviceSession,
        frame_capture: Optional[FrameCapture] = None,
        previews: Optional[PreviewRegistry] = None,
        on_capture: Optional[CaptureCallback] = None,
        event_bus: Optional[EventBus] = None,
        error_bus: Optional[ErrorEventBus] = None,
    ) -> None:
        self._session = session
        self._frame_capture = frame_capture or FrameCapture()
        self._previews = previews or PreviewRegistry()
        self._on_capture = on_capture
        self._events = event_bus or EventBus()
        self._error_bus = error_bus

        self._lock = threading.RLock()
        self._state = WorkflowState.IDLE
        self._image: Optional[CapturedImage] = None
        self._preview_url: Optional[str] = None
        self._last_error: Optional[CameraError] = None
        self._start_pending = False
        self._cancel_requested = False
        self._waiters: List[Future] = []
        self._executor: Optional[ThreadPoolExecutor] = None
        self.handoff_count = 0

    # ------------------------------------------------------------------
    # Read-only state
    # ------------------------------------------------------------------

    @property
    def state(self) -> WorkflowState:
        return self._state

    @property
    def session(self) -> MediaDeviceSession:
        return self._session

    @property
    def events(self) -> EventBus:
        return self._events

    @property
    def previews(self) -> PreviewRegistry:
        return self._previews

    @property
    def image(self) -> Optional[CapturedImage]:
        return self._image

    @property
    def preview_url(self) -> Optional[str]:
        return self._preview_url

    @property
    def last_error(self) -> Optional[CameraError]:
        return self._last_error

    @property
    def is_start_pending(self) -> bool:
        """True while a camera open is in flight; UIs disable their start control."""
        return self._start_pending

    def set_capture_callback(self, callback: Optional[CaptureCallback]) -> None:
        self._on_capture = callback

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def start(self) -> bool:
        """IDLE -> STREAMING.

        Returns:
            True if the camera is streaming
        """
        if not self._begin_start():
            return False
        return self._open_session()

    def start_async(self) -> "Future[bool]":
        """Run ``start()`` with the camera open on a worker thread.

        The start is registered synchronously, so a second call made before
        the first resolves is rejected immediately.
        """
        if not self._begin_start():
            return _rejected()
        return self._submit_open()

    def capture(self) -> Optional[CapturedImage]:
        """STREAMING -> CAPTURED.

        Returns:
            The captured image, or None if the capture failed (the camera
            then stays open and the workflow stays STREAMING)
        """
        with self._lock:
            if self._state is not WorkflowState.STREAMING:
                logger.warning(f"capture() ignored in state {self._state.value}")
                return None

        surface = self._session.surface
        surface.refresh()
        try:
            image = self._frame_capture.capture(surface)
        except CameraError as e:
            self._report(e, ErrorCategory.CAPTURE)
            return None

        with self._lock:
            if self._state is not WorkflowState.STREAMING:
                # Cancelled or torn down while encoding
                logger.info("Discarding capture, workflow left streaming state")
                return None
            self._last_error = None

        self._session.close()
        preview_url = self._previews.create(image.payload, image.mime_type)

        with self._lock:
            self._image = image
            self._preview_url = preview_url
            previous = self._transition(WorkflowState.CAPTURED)
            waiters, self._waiters = self._waiters, []

        self._publish_transition(previous, WorkflowState.CAPTURED)
        self._events.publish(CameraStoppedEvent(source=str(self._session.source), reason="captured"))
        self._handoff(image, preview_url, waiters)
        return image

    def cancel(self) -> bool:
        """STREAMING (or STARTING) -> IDLE, releasing the camera."""
        with self._lock:
            if self._state not in (WorkflowState.STREAMING, WorkflowState.STARTING):
                logger.debug(f"cancel() ignored in state {self._state.value}")
                return False
            if self._start_pending:
                # The pending open closes its stream as soon as it resolves
                self._cancel_requested = True
            previous = self._transition(WorkflowState.IDLE)

        was_open = self._session.is_open
        self._session.close()
        self._publish_transition(previous, WorkflowState.IDLE)
        if was_open:
            self._events.publish(CameraStoppedEvent(source=str(self._session.source), reason="cancelled"))
        logger.info("Capture cancelled")
        return True

    def retake(self) -> bool:
        """CAPTURED -> STREAMING, discarding the held image."""
        if not self._begin_retake():
            return False
        return self._open_session()

    def retake_async(self) -> "Future[bool]":
        """Run ``retake()`` with the camera reopened on a worker thread."""
        if not self._begin_retake():
            return _rejected()
        return self._submit_open()

    def accept(self) -> Optional[CapturedImage]:
        """CAPTURED -> EMITTED, releasing the preview reference.

        Returns:
            The accepted image, or None if there was nothing to accept
        """
        with self._lock:
            if self._state is not WorkflowState.CAPTURED:
                logger.warning(f"accept() ignored in state {self._state.value}")
                return None
            image = self._image
            preview_url = self._preview_url
            self._preview_url = None
            previous = self._transition(WorkflowState.EMITTED)

        self._previews.revoke(preview_url)
        self._publish_transition(previous, WorkflowState.EMITTED)
        return image

    def reset(self) -> None:
        """Return to IDLE from any state, releasing camera and preview."""
        with self._lock:
            if self._start_pending:
                self._cancel_requested = True
            preview_url = self._preview_url
            self._image = None
            self._preview_url = None
            previous = self._transition(WorkflowState.IDLE)

        was_open = self._session.is_open
        self._session.close()
        self._previews.revoke(preview_url)
        self._publish_transition(previous, WorkflowState.IDLE)
        if was_open:
            self._events.publish(CameraStoppedEvent(source=str(self._session.source), reason="teardown"))

    def close(self) -> None:
        """Tear the workflow down: reset, cancel waiters, stop the worker."""
        self.reset()
        with self._lock:
            waiters, self._waiters = self._waiters, []
            executor, self._executor = self._executor, None
        for waiter in waiters:
            waiter.cancel()
        if executor is not None:
            executor.shutdown(wait=False)
        logger.debug("Capture workflow closed")

    def next_capture(self) -> "Future[CapturedImage]":
        """Future resolved with the image of the next successful capture."""
        future: Future = Future()
        with self._lock:
            self._waiters.append(future)
        return future

    def __enter__(self) -> "CaptureWorkflow":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _begin_start(self) -> bool:
        with self._lock:
            if self._start_pending:
                logger.warning("start() ignored, camera open already pending")
                return False
            if self._state is not WorkflowState.IDLE:
                logger.warning(f"start() ignored in state {self._state.value}")
                return False
            self._start_pending = True
            self._cancel_requested = False
            self._last_error = None
            previous = self._transition(WorkflowState.STARTING)
        self._publish_transition(previous, WorkflowState.STARTING)
        return True

    def _begin_retake(self) -> bool:
        with self._lock:
            if self._state is not WorkflowState.CAPTURED or self._start_pending:
                logger.warning(f"retake() ignored in state {self._state.value}")
                return False
            preview_url = self._preview_url
            self._image = None
            self._preview_url = None
            self._start_pending = True
            self._cancel_requested = False
            self._last_error = None
            previous = self._transition(WorkflowState.STARTING)

        self._previews.revoke(preview_url)
        self._publish_transition(previous, WorkflowState.STARTING)
        logger.info("Retaking photo")
        return True

    def _submit_open(self) -> "Future[bool]":
        with self._lock:
            if self._executor is None:
                self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="capture-start")
            executor = self._executor
        return executor.submit(self._open_session)

    def _open_session(self) -> bool:
        """Open the camera for a registered start. Ends STREAMING or IDLE."""
        try:
            self._session.open()
        except CameraError as e:
            with self._lock:
                self._start_pending = False
                cancelled = self._cancel_requested
                previous = self._transition(WorkflowState.IDLE)
            if not cancelled:
                self._publish_transition(previous, WorkflowState.IDLE)
                self._report(e, ErrorCategory.CAMERA)
            return False
        except BaseException:
            with self._lock:
                self._start_pending = False
                self._transition(WorkflowState.IDLE)
            self._session.close()
            raise

        with self._lock:
            self._start_pending = False
            cancelled = self._cancel_requested
            self._cancel_requested = False
            if not cancelled:
                previous = self._transition(WorkflowState.STREAMING)

        if cancelled:
            logger.info("Camera opened after cancellation, releasing it")
            self._session.close()
            self._events.publish(CameraStoppedEvent(source=str(self._session.source), reason="cancelled"))
            return False

        self._publish_transition(previous, WorkflowState.STREAMING)
        settings = None
        stream = self._session.stream
        if stream is not None and stream.get_video_tracks():
            settings = stream.get_video_tracks()[0].get_settings()
        self._events.publish(
            CameraStartedEvent(
                source=str(self._session.source),
                width=settings.width if settings else 0,
                height=settings.height if settings else 0,
            )
        )
        self._notify(CAMERA_READY_MESSAGE)
        return True

    def _handoff(self, image: CapturedImage, preview_url: str, waiters: List[Future]) -> None:
        self.handoff_count += 1
        for waiter in waiters:
            if not waiter.done():
                waiter.set_result(image)

        if self._on_capture is not None:
            try:
                self._on_capture(image)
            except Exception as e:
                logger.opt(exception=e).error(f"Capture callback failed for {image.filename}: {e}")
                publish_error(
                    category=ErrorCategory.SYSTEM,
                    severity=ErrorSeverity.ERROR,
                    message=f"Captured image could not be attached: {e}",
                    source="CaptureWorkflow",
                    exception=e,
                    bus=self._error_bus,
                )

        self._events.publish(ReceiptCapturedEvent(image=image, preview_url=preview_url))
        self._notify(CAPTURE_SUCCESS_MESSAGE)

    def _transition(self, new_state: WorkflowState) -> WorkflowState:
        """Set state; caller holds the lock and publishes afterwards."""
        previous = self._state
        self._state = new_state
        if previous is not new_state:
            logger.debug(f"Capture workflow {previous.value} -> {new_state.value}")
        return previous

    def _publish_transition(self, previous: WorkflowState, current: WorkflowState) -> None:
        if previous is not current:
            self._events.publish(WorkflowStateChangedEvent(previous=previous, current=current))

    def _report(self, error: CameraError, category: ErrorCategory) -> None:
        self._last_error = error
        publish_error(
            category=category,
            severity=ErrorSeverity.ERROR,
            message=error.message,
            source="CaptureWorkflow",
            exception=error,
            bus=self._error_bus,
            kind=error.kind.value,
        )

    def _notify(self, message: str) -> None:
        publish_error(
            category=ErrorCategory.CAMERA,
            severity=ErrorSeverity.INFO,
            message=message,
            source="CaptureWorkflow",
            bus=self._error_bus,
        )
