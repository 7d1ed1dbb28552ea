"""Attachment slots of an expense submission.

The expense form carries up to two files: an invoice image and a payment
proof. Either slot can be filled by a camera capture or by picking a file.
This module only assembles the multipart file fields; sending them is the
job of whatever HTTP client submits the expense.
"""

from __future__ import annotations

import mimetypes
import threading
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Callable, Dict, List, Optional, Tuple, Union

from app.events import ErrorCategory, ErrorEventBus, ErrorSeverity, publish_error
from capture.frame_capture import CapturedImage
from exceptions import AttachmentError
from log_config.logger import get_logger

logger = get_logger(__name__)

DEFAULT_MAX_ATTACHMENT_MB = 10.0

GST_INVOICE_REQUIRED = "Invoice image is required when GST invoice is selected"
PAYMENT_PROOF_REQUIRED = "Payment proof is required"
INVOICE_RECOMMENDED = "Consider uploading an invoice image for better record keeping"

MultipartFile = Tuple[str, Tuple[str, bytes, str]]


class AttachmentSlot(Enum):
    """Attachment slot, valued by its multipart field name."""

    INVOICE = "invoiceImage"
    PAYMENT_PROOF = "paymentProofImage"

    @property
    def field_name(self) -> str:
        return self.value


class AttachmentOrigin(Enum):
    CAMERA = "camera"
    UPLOAD = "upload"


@dataclass(frozen=True)
class Attachment:
    filename: str
    payload: bytes
    mime_type: str
    origin: AttachmentOrigin

    @property
    def size(self) -> int:
        return len(self.payload)


@dataclass
class AttachmentValidation:
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return not self.errors


class ExpenseAttachments:
    """Holds the files attached to one expense.

    Args:
        max_attachment_mb: Upper bound for uploaded files
        error_bus: Bus for advisories (defaults to the global bus)
    """

    def __init__(
        self,
        max_attachment_mb: float = DEFAULT_MAX_ATTACHMENT_MB,
        error_bus: Optional[ErrorEventBus] = None,
    ) -> None:
        self._max_bytes = int(max_attachment_mb * 1024 * 1024)
        self._error_bus = error_bus
        self._slots: Dict[AttachmentSlot, Attachment] = {}
        self._lock = threading.Lock()

    def get(self, slot: AttachmentSlot) -> Optional[Attachment]:
        with self._lock:
            return self._slots.get(slot)

    def has(self, slot: AttachmentSlot) -> bool:
        return self.get(slot) is not None

    def attach_capture(self, slot: AttachmentSlot, image: CapturedImage) -> Attachment:
        """File a camera capture into ``slot``, replacing what was there."""
        attachment = Attachment(
            filename=image.filename,
            payload=image.payload,
            mime_type=image.mime_type,
            origin=AttachmentOrigin.CAMERA,
        )
        self._store(slot, attachment)
        return attachment

    def capture_handler(self, slot: AttachmentSlot) -> Callable[[CapturedImage], None]:
        """Return an ``on_capture`` callback filing captures into ``slot``."""

        def _on_capture(image: CapturedImage) -> None:
            self.attach_capture(slot, image)

        _on_capture.__name__ = f"attach_{slot.name.lower()}"
        return _on_capture

    def attach_file(self, slot: AttachmentSlot, path: Union[str, Path]) -> Attachment:
        """File an existing image or PDF into ``slot`` (file-upload fallback).

        Raises:
            AttachmentError: If the file is missing, unreadable or too large
        """
        path = Path(path)
        if not path.is_file():
            self._reject(f"Attachment not found: {path}")

        size = path.stat().st_size
        if size == 0:
            self._reject(f"Attachment is empty: {path.name}")
        if size > self._max_bytes:
            self._reject(
                f"Attachment {path.name} is {size / (1024 * 1024):.1f} MB, "
                f"limit is {self._max_bytes / (1024 * 1024):.1f} MB"
            )

        mime_type, _ = mimetypes.guess_type(path.name)
        try:
            payload = path.read_bytes()
        except OSError as e:
            self._reject(f"Unable to read attachment {path.name}: {e}")

        attachment = Attachment(
            filename=path.name,
            payload=payload,
            mime_type=mime_type or "application/octet-stream",
            origin=AttachmentOrigin.UPLOAD,
        )
        self._store(slot, attachment)
        return attachment

    def clear(self, slot: AttachmentSlot) -> bool:
        with self._lock:
            removed = self._slots.pop(slot, None)
        if removed is not None:
            logger.info(f"Cleared {slot.field_name} ({removed.filename})")
        return removed is not None

    def validate(self, has_gst_invoice: bool) -> AttachmentValidation:
        """Check the attachments required by the expense.

        An invoice is mandatory for GST invoices and recommended otherwise;
        payment proof is always mandatory.
        """
        result = AttachmentValidation()
        has_invoice = self.has(AttachmentSlot.INVOICE)

        if has_gst_invoice and not has_invoice:
            result.errors.append(GST_INVOICE_REQUIRED)
        if not self.has(AttachmentSlot.PAYMENT_PROOF):
            result.errors.append(PAYMENT_PROOF_REQUIRED)
        if not has_invoice and not has_gst_invoice:
            result.warnings.append(INVOICE_RECOMMENDED)
        return result

    def multipart_files(self) -> List[MultipartFile]:
        """Build ``(field, (filename, bytes, mime))`` tuples for a multipart upload."""
        with self._lock:
            slots = dict(self._slots)
        files: List[MultipartFile] = []
        for slot in AttachmentSlot:
            attachment = slots.get(slot)
            if attachment is not None:
                files.append((slot.field_name, (attachment.filename, attachment.payload, attachment.mime_type)))
        return files

    def _store(self, slot: AttachmentSlot, attachment: Attachment) -> None:
        with self._lock:
            self._slots[slot] = attachment
        logger.info(
            f"Attached {attachment.filename} to {slot.field_name} "
            f"({attachment.size} bytes, {attachment.origin.value})"
        )

    def _reject(self, message: str) -> None:
        publish_error(
            category=ErrorCategory.ATTACHMENT,
            severity=ErrorSeverity.WARNING,
            message=message,
            source="ExpenseAttachments",
            bus=self._error_bus,
        )
        raise AttachmentError(message)
