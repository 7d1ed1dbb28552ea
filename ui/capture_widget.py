"""Camera capture widget for receipt photos."""

from __future__ import annotations

from concurrent.futures import Future
from typing import Optional

from PySide6 import QtCore, QtWidgets

from app.events.event_types import WorkflowStateChangedEvent
from capture import CaptureWorkflow, WorkflowState
from log_config.logger import get_logger
from ui.drawing import frame_to_pixmap, pixmap_from_jpeg

logger = get_logger(__name__)

VERIFY_NOTE = "Note: Please verify the captured information manually before submitting."


class CameraCaptureWidget(QtWidgets.QWidget):
    """Start/capture/cancel/retake controls around a capture workflow.

    Only the controls valid for the workflow state are shown: the start
    button while idle, the live view with Capture/Cancel while streaming,
    and the captured photo with Retake while captured. The start and retake
    buttons stay disabled while a camera open is pending.
    """

    # Workflow events may arrive from the camera-open worker thread
    state_changed = QtCore.Signal(object, object)  # previous, current WorkflowState
    start_finished = QtCore.Signal(bool)

    def __init__(
        self,
        workflow: CaptureWorkflow,
        label: str = "Capture Receipt",
        refresh_hz: int = 30,
        max_preview_width: int = 960,
        parent: Optional[QtWidgets.QWidget] = None,
    ):
        super().__init__(parent)
        self._workflow = workflow
        self._label = label
        self._max_preview_width = max_preview_width

        self._timer = QtCore.QTimer(self)
        self._timer.setInterval(max(1, int(1000 / refresh_hz)))
        self._timer.timeout.connect(self._update_live_view)

        self._build_ui()

        self.state_changed.connect(self._on_state_changed, QtCore.Qt.ConnectionType.QueuedConnection)
        self.start_finished.connect(self._on_start_finished, QtCore.Qt.ConnectionType.QueuedConnection)
        self._workflow.events.subscribe(WorkflowStateChangedEvent, self._on_workflow_event)
        self._sync_ui(self._workflow.state)

    @property
    def workflow(self) -> CaptureWorkflow:
        return self._workflow

    def _build_ui(self) -> None:
        self._start_button = QtWidgets.QPushButton(f"📸 {self._label}")
        self._start_button.setMinimumHeight(48)
        self._start_button.clicked.connect(self.start_camera)

        self._view = QtWidgets.QLabel("Starting camera...")
        self._view.setAlignment(QtCore.Qt.AlignmentFlag.AlignCenter)
        self._view.setMinimumSize(320, 240)
        self._view.setStyleSheet("background-color: #202020; color: #f5f5f5; border-radius: 8px;")

        self._capture_button = QtWidgets.QPushButton("Capture")
        self._capture_button.setStyleSheet("background-color: #16a34a; color: white; font-weight: bold;")
        self._capture_button.clicked.connect(self.capture_photo)

        self._cancel_button = QtWidgets.QPushButton("Cancel")
        self._cancel_button.setStyleSheet("background-color: #dc2626; color: white; font-weight: bold;")
        self._cancel_button.clicked.connect(self.stop_camera)

        self._badge = QtWidgets.QLabel("✓ Captured")
        self._badge.setStyleSheet(
            "background-color: #22c55e; color: white; padding: 2px 10px; border-radius: 10px; font-weight: bold;"
        )

        self._retake_button = QtWidgets.QPushButton("Retake Photo")
        self._retake_button.clicked.connect(self.retake)

        self._note = QtWidgets.QLabel(VERIFY_NOTE)
        self._note.setWordWrap(True)
        self._note.setStyleSheet(
            "color: #a16207; background-color: #fefce8; border: 1px solid #fde68a; padding: 6px; border-radius: 6px;"
        )

        controls = QtWidgets.QHBoxLayout()
        controls.addWidget(self._capture_button)
        controls.addWidget(self._cancel_button)

        layout = QtWidgets.QVBoxLayout(self)
        layout.addWidget(self._start_button)
        layout.addWidget(self._badge, 0, QtCore.Qt.AlignmentFlag.AlignRight)
        layout.addWidget(self._view, 1)
        layout.addLayout(controls)
        layout.addWidget(self._retake_button)
        layout.addWidget(self._note)

    # ------------------------------------------------------------------
    # User actions
    # ------------------------------------------------------------------

    def start_camera(self) -> None:
        self._start_button.setEnabled(False)
        future = self._workflow.start_async()
        future.add_done_callback(self._emit_start_finished)

    def capture_photo(self) -> None:
        self._workflow.capture()

    def stop_camera(self) -> None:
        self._workflow.cancel()

    def retake(self) -> None:
        self._retake_button.setEnabled(False)
        future = self._workflow.retake_async()
        future.add_done_callback(self._emit_start_finished)

    def shutdown(self) -> None:
        """Release the camera and preview; call when the widget goes away."""
        self._timer.stop()
        self._workflow.events.unsubscribe(WorkflowStateChangedEvent, self._on_workflow_event)
        self._workflow.close()

    def closeEvent(self, event) -> None:  # noqa: N802 (Qt override)
        self.shutdown()
        super().closeEvent(event)

    # ------------------------------------------------------------------
    # Workflow callbacks
    # ------------------------------------------------------------------

    def _emit_start_finished(self, future: Future) -> None:
        if future.cancelled():
            self.start_finished.emit(False)
            return
        error = future.exception()
        if error is not None:
            logger.opt(exception=error).error(f"Camera start failed unexpectedly: {error}")
            self.start_finished.emit(False)
            return
        self.start_finished.emit(bool(future.result()))

    def _on_workflow_event(self, event: WorkflowStateChangedEvent) -> None:
        self.state_changed.emit(event.previous, event.current)

    @QtCore.Slot(bool)
    def _on_start_finished(self, started: bool) -> None:
        self._retake_button.setEnabled(True)
        self._sync_ui(self._workflow.state)

    @QtCore.Slot(object, object)
    def _on_state_changed(self, previous: WorkflowState, current: WorkflowState) -> None:
        # Queued delivery may lag; always render the workflow's actual state
        self._sync_ui(self._workflow.state)

    def _sync_ui(self, state: WorkflowState) -> None:
        idle = state is WorkflowState.IDLE
        starting = state is WorkflowState.STARTING
        streaming = state is WorkflowState.STREAMING
        captured = state in (WorkflowState.CAPTURED, WorkflowState.EMITTED)

        self._start_button.setVisible(idle or starting)
        self._start_button.setEnabled(idle and not self._workflow.is_start_pending)
        self._view.setVisible(streaming or captured)
        self._capture_button.setVisible(streaming)
        self._cancel_button.setVisible(streaming)
        self._badge.setVisible(captured)
        self._retake_button.setVisible(state is WorkflowState.CAPTURED)
        self._note.setVisible(captured)

        if streaming:
            self._view.setText("Starting camera...")
            if not self._timer.isActive():
                self._timer.start()
        else:
            self._timer.stop()

        if state is WorkflowState.CAPTURED:
            self._show_captured_image()

    def _update_live_view(self) -> None:
        surface = self._workflow.session.surface
        if not surface.refresh():
            return
        frame = surface.current_frame()
        if frame is not None:
            self._view.setPixmap(frame_to_pixmap(frame, self._max_preview_width))

    def _show_captured_image(self) -> None:
        url = self._workflow.preview_url
        entry = self._workflow.previews.resolve(url) if url else None
        if entry is None:
            return
        self._view.setPixmap(pixmap_from_jpeg(entry.payload, self._max_preview_width))
