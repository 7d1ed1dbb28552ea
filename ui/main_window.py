"""Expense attachment window with camera capture for receipts."""

from __future__ import annotations

import argparse
import sys
from pathlib import Path
from typing import Dict, List, Optional

from PySide6 import QtWidgets

from app.capture_factory import build_workflow
from app.events import get_error_bus
from app.lifecycle import get_cleanup_manager
from app.ui.error_notification import ErrorNotificationWidget
from attachments import AttachmentSlot, ExpenseAttachments
from configs.settings import AppConfig, apply_overrides, load_config
from exceptions import AttachmentError, ConfigError
from log_config.logger import configure_file_logging, get_logger, set_console_level
from ui.capture_widget import CameraCaptureWidget

logger = get_logger(__name__)

SLOT_TITLES = {
    AttachmentSlot.INVOICE: "Invoice",
    AttachmentSlot.PAYMENT_PROOF: "Payment Proof",
}
UPLOAD_FILTER = "Images and PDF (*.jpg *.jpeg *.png *.webp *.pdf);;All files (*)"


class AttachmentSlotPanel(QtWidgets.QGroupBox):
    """One attachment slot: file upload or camera capture."""

    def __init__(
        self,
        slot: AttachmentSlot,
        attachments: ExpenseAttachments,
        config: AppConfig,
        parent: Optional[QtWidgets.QWidget] = None,
    ):
        super().__init__(SLOT_TITLES[slot], parent)
        self._slot = slot
        self._attachments = attachments

        workflow = build_workflow(config, on_capture=attachments.capture_handler(slot))
        get_cleanup_manager().register_workflow(slot.field_name, workflow)

        self._status = QtWidgets.QLabel("No file attached")
        self._upload_button = QtWidgets.QPushButton("Choose file…")
        self._upload_button.clicked.connect(self._choose_file)
        self._camera_toggle = QtWidgets.QCheckBox("Use camera")
        self._camera_toggle.toggled.connect(self._on_camera_toggled)

        self.capture_widget = CameraCaptureWidget(
            workflow,
            label=f"Capture {SLOT_TITLES[slot]}",
            refresh_hz=config.preview.refresh_hz,
            max_preview_width=config.preview.max_width,
        )
        self.capture_widget.setVisible(False)
        self.capture_widget.state_changed.connect(lambda *_: self._refresh_status())

        top = QtWidgets.QHBoxLayout()
        top.addWidget(self._upload_button)
        top.addWidget(self._camera_toggle)
        top.addStretch(1)

        layout = QtWidgets.QVBoxLayout(self)
        layout.addLayout(top)
        layout.addWidget(self.capture_widget)
        layout.addWidget(self._status)

    def _on_camera_toggled(self, enabled: bool) -> None:
        self.capture_widget.setVisible(enabled)
        self._upload_button.setEnabled(not enabled)
        if not enabled:
            self.capture_widget.workflow.reset()

    def _choose_file(self) -> None:
        path, _ = QtWidgets.QFileDialog.getOpenFileName(self, "Attach file", "", UPLOAD_FILTER)
        if not path:
            return
        try:
            self._attachments.attach_file(self._slot, Path(path))
        except AttachmentError as e:
            logger.warning(f"Attachment rejected: {e}")
        self._refresh_status()

    def _refresh_status(self) -> None:
        attachment = self._attachments.get(self._slot)
        if attachment is None:
            self._status.setText("No file attached")
        else:
            self._status.setText(
                f"Attached {attachment.filename} ({attachment.size / 1024:.0f} KB, {attachment.origin.value})"
            )

    def shutdown(self) -> None:
        self.capture_widget.shutdown()


class ExpenseAttachmentsWindow(QtWidgets.QMainWindow):
    """Attachment section of the expense submission form."""

    def __init__(self, config: AppConfig) -> None:
        super().__init__()
        self.setWindowTitle("Expense Attachments")
        self._config = config
        self.attachments = ExpenseAttachments(max_attachment_mb=config.attachments.max_attachment_mb)

        self._notifications = ErrorNotificationWidget(bus=get_error_bus())
        self.panels: Dict[AttachmentSlot, AttachmentSlotPanel] = {
            slot: AttachmentSlotPanel(slot, self.attachments, config) for slot in AttachmentSlot
        }

        self._gst_checkbox = QtWidgets.QCheckBox("GST invoice")
        self._validate_button = QtWidgets.QPushButton("Check attachments")
        self._validate_button.clicked.connect(self.check_attachments)
        self._validation_label = QtWidgets.QLabel()
        self._validation_label.setWordWrap(True)

        panels_layout = QtWidgets.QHBoxLayout()
        for panel in self.panels.values():
            panels_layout.addWidget(panel)

        footer = QtWidgets.QHBoxLayout()
        footer.addWidget(self._gst_checkbox)
        footer.addStretch(1)
        footer.addWidget(self._validate_button)

        central = QtWidgets.QWidget()
        layout = QtWidgets.QVBoxLayout(central)
        layout.addWidget(self._notifications)
        layout.addLayout(panels_layout, 1)
        layout.addLayout(footer)
        layout.addWidget(self._validation_label)
        self.setCentralWidget(central)

    def check_attachments(self) -> List[str]:
        """Validate the attachments and show errors/warnings.

        Returns:
            The validation errors
        """
        result = self.attachments.validate(has_gst_invoice=self._gst_checkbox.isChecked())
        lines = [f"✗ {error}" for error in result.errors] + [f"! {warning}" for warning in result.warnings]
        self._validation_label.setText("\n".join(lines) if lines else "✓ Attachments ready to submit")
        return result.errors

    def closeEvent(self, event) -> None:  # noqa: N802 (Qt override)
        for panel in self.panels.values():
            panel.shutdown()
        self._notifications.cleanup()
        get_cleanup_manager().cleanup()
        super().closeEvent(event)


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Receipt capture for expense attachments.")
    parser.add_argument("--config", type=Path, default=None)
    parser.add_argument("--backend", default=None, choices=("opencv", "sim"))
    parser.add_argument("--source", default=None, help="Camera index or stream URL")
    return parser.parse_args(argv)

def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)
    try:
        config = apply_overrides(load_config(args.config), args.backend, args.source)
    except ConfigError as e:
        logger.error(f"Cannot start: {e}")
        return 2

    set_console_level(config.logging.level)
    if config.logging.logs_dir:
        configure_file_logging(config.logging.logs_dir)

    app = QtWidgets.QApplication.instance() or QtWidgets.QApplication(sys.argv[:1])
    window = ExpenseAttachmentsWindow(config)
    window.resize(1100, 720)
    window.show()
    return app.exec()


if __name__ == "__main__":
    sys.exit(main())
