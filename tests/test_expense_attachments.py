"""Tests for expense attachment slots."""

from __future__ import annotations

import pytest

from app.events import ErrorCategory, ErrorEventBus
from attachments import AttachmentOrigin, AttachmentSlot, ExpenseAttachments
from attachments.expense_attachments import (
    GST_INVOICE_REQUIRED,
    INVOICE_RECOMMENDED,
    PAYMENT_PROOF_REQUIRED,
)
from capture import CapturedImage
from exceptions import AttachmentError


def _image(name="receipt-1700000000000.jpg"):
    return CapturedImage(payload=b"\xff\xd8data", filename=name, width=4, height=3, created_at_ms=1)


@pytest.fixture
def bus():
    return ErrorEventBus()


@pytest.fixture
def attachments(bus):
    return ExpenseAttachments(max_attachment_mb=1, error_bus=bus)


class TestSlots:
    def test_field_names(self):
        assert AttachmentSlot.INVOICE.field_name == "invoiceImage"
        assert AttachmentSlot.PAYMENT_PROOF.field_name == "paymentProofImage"

    def test_capture_handler_files_into_slot(self, attachments):
        handler = attachments.capture_handler(AttachmentSlot.PAYMENT_PROOF)

        handler(_image())

        attachment = attachments.get(AttachmentSlot.PAYMENT_PROOF)
        assert attachment.filename == "receipt-1700000000000.jpg"
        assert attachment.mime_type == "image/jpeg"
        assert attachment.origin is AttachmentOrigin.CAMERA
        assert not attachments.has(AttachmentSlot.INVOICE)

    def test_new_capture_replaces_previous(self, attachments):
        attachments.attach_capture(AttachmentSlot.INVOICE, _image("receipt-1.jpg"))
        attachments.attach_capture(AttachmentSlot.INVOICE, _image("receipt-2.jpg"))
        assert attachments.get(AttachmentSlot.INVOICE).filename == "receipt-2.jpg"

    def test_clear(self, attachments):
        attachments.attach_capture(AttachmentSlot.INVOICE, _image())
        assert attachments.clear(AttachmentSlot.INVOICE) is True
        assert attachments.clear(AttachmentSlot.INVOICE) is False


class TestAttachFile:
    def test_attach_pdf(self, attachments, tmp_path):
        path = tmp_path / "invoice.pdf"
        path.write_bytes(b"%PDF-1.4 test")

        attachment = attachments.attach_file(AttachmentSlot.INVOICE, path)

        assert attachment.mime_type == "application/pdf"
        assert attachment.origin is AttachmentOrigin.UPLOAD
        assert attachment.payload == b"%PDF-1.4 test"

    def test_unknown_extension_defaults_to_octet_stream(self, attachments, tmp_path):
        path = tmp_path / "scan.receiptdata"
        path.write_bytes(b"data")
        assert attachments.attach_file(AttachmentSlot.INVOICE, path).mime_type == "application/octet-stream"

    def test_missing_file_rejected_and_reported(self, attachments, bus, tmp_path):
        with pytest.raises(AttachmentError, match="not found"):
            attachments.attach_file(AttachmentSlot.INVOICE, tmp_path / "missing.jpg")
        assert bus.get_history(category=ErrorCategory.ATTACHMENT)

    def test_empty_file_rejected(self, attachments, tmp_path):
        path = tmp_path / "empty.jpg"
        path.write_bytes(b"")
        with pytest.raises(AttachmentError, match="empty"):
            attachments.attach_file(AttachmentSlot.INVOICE, path)

    def test_oversized_file_rejected(self, attachments, tmp_path):
        path = tmp_path / "huge.jpg"
        path.write_bytes(b"\0" * (1024 * 1024 + 1))
        with pytest.raises(AttachmentError, match="limit is 1.0 MB"):
            attachments.attach_file(AttachmentSlot.INVOICE, path)
        assert not attachments.has(AttachmentSlot.INVOICE)


class TestValidation:
    def test_nothing_attached_without_gst(self, attachments):
        result = attachments.validate(has_gst_invoice=False)
        assert result.errors == [PAYMENT_PROOF_REQUIRED]
        assert result.warnings == [INVOICE_RECOMMENDED]
        assert not result.is_valid

    def test_gst_requires_invoice(self, attachments):
        attachments.attach_capture(AttachmentSlot.PAYMENT_PROOF, _image())
        result = attachments.validate(has_gst_invoice=True)
        assert result.errors == [GST_INVOICE_REQUIRED]
        assert result.warnings == []

    def test_complete(self, attachments):
        attachments.attach_capture(AttachmentSlot.INVOICE, _image("receipt-1.jpg"))
        attachments.attach_capture(AttachmentSlot.PAYMENT_PROOF, _image("receipt-2.jpg"))
        result = attachments.validate(has_gst_invoice=True)
        assert result.is_valid
        assert result.warnings == []


def test_multipart_files_in_slot_order(attachments):
    attachments.attach_capture(AttachmentSlot.PAYMENT_PROOF, _image("receipt-2.jpg"))
    attachments.attach_capture(AttachmentSlot.INVOICE, _image("receipt-1.jpg"))

    files = attachments.multipart_files()

    assert [field for field, _ in files] == ["invoiceImage", "paymentProofImage"]
    assert files[0][1] == ("receipt-1.jpg", b"\xff\xd8data", "image/jpeg")
