"""Expense attachments module."""

from .expense_attachments import (
    Attachment,
    AttachmentOrigin,
    AttachmentSlot,
    AttachmentValidation,
    ExpenseAttachments,
)

__all__ = [
    "Attachment",
    "AttachmentOrigin",
    "AttachmentSlot",
    "AttachmentValidation",
    "ExpenseAttachments",
]
