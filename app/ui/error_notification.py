"""Notification widget showing capture advisories to the user."""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from PySide6.QtCore import Qt, QTimer, Signal, Slot
from PySide6.QtWidgets import (
    QFrame,
    QHBoxLayout,
    QLabel,
    QPushButton,
    QSizePolicy,
    QVBoxLayout,
    QWidget,
)

from app.events import ErrorEvent, ErrorEventBus, ErrorSeverity, get_error_bus
from log_config.logger import get_logger

logger = get_logger(__name__)

_SEVERITY_ORDER = {
    ErrorSeverity.INFO: 0,
    ErrorSeverity.WARNING: 1,
    ErrorSeverity.ERROR: 2,
}

SEVERITY_COLORS = {
    ErrorSeverity.INFO: "#D1E7DD",  # Light green
    ErrorSeverity.WARNING: "#FFF3CD",  # Light yellow
    ErrorSeverity.ERROR: "#F8D7DA",  # Light red
}


class ErrorNotificationWidget(QWidget):
    """Shows the most recent advisory from the error bus.

    Events may be published from worker threads (the camera opens on one),
    so they are marshaled to the GUI thread through a queued signal.
    INFO notices dismiss themselves after ``info_timeout_ms``.

    Args:
        bus: Error bus to subscribe to (defaults to the global bus)
        min_severity: Lowest severity that is displayed
        info_timeout_ms: Auto-dismiss delay for INFO notices
        parent: Parent widget
    """

    event_received = Signal(object)  # ErrorEvent

    def __init__(
        self,
        bus: Optional[ErrorEventBus] = None,
        min_severity: ErrorSeverity = ErrorSeverity.INFO,
        info_timeout_ms: int = 4000,
        parent: Optional[QWidget] = None,
    ):
        super().__init__(parent)
        self._bus = bus or get_error_bus()
        self._min_severity = min_severity
        self._info_timeout_ms = info_timeout_ms
        self._current_notification: Optional[QFrame] = None
        self._current_event: Optional[ErrorEvent] = None

        self._dismiss_timer = QTimer(self)
        self._dismiss_timer.setSingleShot(True)
        self._dismiss_timer.timeout.connect(self._dismiss_notification)

        self._setup_ui()
        self.event_received.connect(self._show_notification, Qt.ConnectionType.QueuedConnection)
        self._bus.subscribe(self._on_error_event)

    @property
    def current_event(self) -> Optional[ErrorEvent]:
        return self._current_event

    def _setup_ui(self) -> None:
        self.setObjectName("ErrorNotificationWidget")
        self.setSizePolicy(QSizePolicy.Policy.Expanding, QSizePolicy.Policy.Minimum)

        self._layout = QVBoxLayout(self)
        self._layout.setContentsMargins(0, 0, 0, 0)
        self._layout.setSpacing(5)

        # Hidden by default
        self.setVisible(False)

    def _on_error_event(self, event: ErrorEvent) -> None:
        if _SEVERITY_ORDER[event.severity] >= _SEVERITY_ORDER[self._min_severity]:
            self.event_received.emit(event)

    @Slot(object)
    def _show_notification(self, event: ErrorEvent) -> None:
        self._clear_frame()
        self._dismiss_timer.stop()

        frame = QFrame()
        frame.setFrameShape(QFrame.Shape.StyledPanel)
        frame.setFrameShadow(QFrame.Shadow.Raised)
        bg_color = SEVERITY_COLORS.get(event.severity, "#F8F9FA")
        frame.setStyleSheet(f"QFrame {{ background-color: {bg_color}; padding: 8px; border-radius: 5px; }}")

        frame_layout = QHBoxLayout(frame)

        message_layout = QVBoxLayout()
        message_label = QLabel(event.message)
        message_label.setObjectName("notificationMessage")
        message_label.setWordWrap(True)
        message_layout.addWidget(message_label)

        timestamp = datetime.fromtimestamp(event.timestamp).strftime("%H:%M:%S")
        source_label = QLabel(f"{event.category.value.replace('_', ' ').title()} at {timestamp}")
        source_label.setStyleSheet("font-size: 10px; color: #6c757d;")
        message_layout.addWidget(source_label)
        frame_layout.addLayout(message_layout, 1)

        dismiss_btn = QPushButton("✕")
        dismiss_btn.setFixedSize(30, 30)
        dismiss_btn.setStyleSheet(
            "QPushButton { background-color: transparent; border: none; font-size: 16px; font-weight: bold; } "
            "QPushButton:hover { background-color: rgba(0, 0, 0, 0.1); }"
        )
        dismiss_btn.clicked.connect(self._dismiss_notification)
        frame_layout.addWidget(dismiss_btn)

        self._layout.addWidget(frame)
        self._current_notification = frame
        self._current_event = event
        self.setVisible(True)

        if event.severity is ErrorSeverity.INFO and self._info_timeout_ms > 0:
            self._dismiss_timer.start(self._info_timeout_ms)

    def _clear_frame(self) -> None:
        if self._current_notification is not None:
            self._layout.removeWidget(self._current_notification)
            self._current_notification.deleteLater()
            self._current_notification = None

    @Slot()
    def _dismiss_notification(self) -> None:
        self._clear_frame()
        self._current_event = None
        self.setVisible(False)

    def cleanup(self) -> None:
        """Unsubscribe from the error bus."""
        self._dismiss_timer.stop()
        self._bus.unsubscribe(self._on_error_event)
        logger.debug("ErrorNotificationWidget unsubscribed from error events")


__all__ = ["ErrorNotificationWidget"]
