"""Custom exception classes for receipt capture."""

from __future__ import annotations

from enum import Enum
from typing import Optional


class CameraErrorKind(Enum):
    """Closed set of camera failure kinds surfaced to the user."""

    UNSUPPORTED_PLATFORM = "unsupported_platform"
    INSECURE_CONTEXT = "insecure_context"
    PERMISSION_DENIED = "permission_denied"
    DEVICE_NOT_FOUND = "device_not_found"
    DEVICE_BUSY = "device_busy"
    CONSTRAINTS_NOT_SATISFIABLE = "constraints_not_satisfiable"
    SECURITY_BLOCKED = "security_blocked"
    NOT_READY = "not_ready"
    ENCODE_FAILED = "encode_failed"
    UNKNOWN = "unknown"


class ReceiptCaptureError(Exception):
    """Base exception for all receipt capture errors."""

    pass


class CameraError(ReceiptCaptureError):
    """Base exception for camera-related errors.

    Every camera error carries a ``kind`` so callers can branch on it
    instead of matching message text.
    """

    kind = CameraErrorKind.UNKNOWN

    def __init__(self, message: str, camera_id: Optional[str] = None):
        self.camera_id = camera_id
        super().__init__(message)

    @property
    def message(self) -> str:
        return str(self)


class UnsupportedPlatformError(CameraError):
    """Raised when the platform exposes no camera capability."""

    kind = CameraErrorKind.UNSUPPORTED_PLATFORM


class PermissionDeniedError(CameraError):
    """Raised when the OS refuses camera access."""

    kind = CameraErrorKind.PERMISSION_DENIED


class DeviceNotFoundError(CameraError):
    """Raised when no matching camera device exists."""

    kind = CameraErrorKind.DEVICE_NOT_FOUND


class DeviceBusyError(CameraError):
    """Raised when the camera exists but cannot be read (in use elsewhere)."""

    kind = CameraErrorKind.DEVICE_BUSY


class ConstraintsNotSatisfiableError(CameraError):
    """Raised when the camera cannot meet the requested stream constraints."""

    kind = CameraErrorKind.CONSTRAINTS_NOT_SATISFIABLE


class SecurityBlockedError(CameraError):
    """Raised when camera access is blocked by a security policy."""

    kind = CameraErrorKind.SECURITY_BLOCKED


class NotReadyError(CameraError):
    """Raised when a capture is attempted before the stream has warmed up."""

    kind = CameraErrorKind.NOT_READY


class EncodeFailedError(CameraError):
    """Raised when the JPEG encoder produces no output."""

    kind = CameraErrorKind.ENCODE_FAILED


class UnknownCameraError(CameraError):
    """Raised for platform failures outside the known taxonomy."""

    kind = CameraErrorKind.UNKNOWN


class InsecureContextWarning(RuntimeWarning):
    """Issued when a network camera is reached over an unencrypted transport."""

    kind = CameraErrorKind.INSECURE_CONTEXT


class ConfigError(ReceiptCaptureError):
    """Base exception for configuration errors."""

    pass


class InvalidConfigError(ConfigError):
    """Raised when configuration file is invalid or corrupted."""

    pass


class ConfigValidationError(ConfigError):
    """Raised when configuration fails schema validation."""

    def __init__(self, message: str, validation_errors: Optional[list] = None):
        self.validation_errors = validation_errors or []
        super().__init__(message)


class AttachmentError(ReceiptCaptureError):
    """Raised when a file cannot be attached to an expense."""

    pass
