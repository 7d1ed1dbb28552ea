"""Mapping from platform media errors to camera error kinds."""

from __future__ import annotations

from typing import Dict, Optional, Type

from exceptions import (
    CameraError,
    CameraErrorKind,
    ConstraintsNotSatisfiableError,
    DeviceBusyError,
    DeviceNotFoundError,
    EncodeFailedError,
    NotReadyError,
    PermissionDeniedError,
    SecurityBlockedError,
    UnknownCameraError,
    UnsupportedPlatformError,
)

from .media_backend import PlatformMediaError

ACCESS_PREFIX = "Unable to access camera. "

PLATFORM_ERROR_KINDS: Dict[str, CameraErrorKind] = {
    "NotAllowedError": CameraErrorKind.PERMISSION_DENIED,
    "PermissionDeniedError": CameraErrorKind.PERMISSION_DENIED,
    "NotFoundError": CameraErrorKind.DEVICE_NOT_FOUND,
    "DevicesNotFoundError": CameraErrorKind.DEVICE_NOT_FOUND,
    "NotReadableError": CameraErrorKind.DEVICE_BUSY,
    "TrackStartError": CameraErrorKind.DEVICE_BUSY,
    "OverconstrainedError": CameraErrorKind.CONSTRAINTS_NOT_SATISFIABLE,
    "SecurityError": CameraErrorKind.SECURITY_BLOCKED,
}

REMEDIATION_MESSAGES: Dict[CameraErrorKind, str] = {
    CameraErrorKind.UNSUPPORTED_PLATFORM: (
        "Camera not supported on this system. Please use file upload instead."
    ),
    CameraErrorKind.INSECURE_CONTEXT: (
        "Camera stream is not encrypted. Please use file upload instead or connect over a secure transport."
    ),
    CameraErrorKind.PERMISSION_DENIED: (
        ACCESS_PREFIX + "Please allow camera permissions in your system settings."
    ),
    CameraErrorKind.DEVICE_NOT_FOUND: (
        ACCESS_PREFIX + "No camera device found. Please use file upload instead."
    ),
    CameraErrorKind.DEVICE_BUSY: (
        ACCESS_PREFIX + "Camera is already in use by another application."
    ),
    CameraErrorKind.CONSTRAINTS_NOT_SATISFIABLE: (
        ACCESS_PREFIX + "Camera doesn't support the required settings."
    ),
    CameraErrorKind.SECURITY_BLOCKED: (
        ACCESS_PREFIX + "Camera access blocked for security reasons. Use a secure connection or file upload."
    ),
    CameraErrorKind.NOT_READY: "Please wait for camera to initialize completely.",
    CameraErrorKind.ENCODE_FAILED: "Failed to capture image. Please try again.",
    CameraErrorKind.UNKNOWN: ACCESS_PREFIX + "Please use file upload instead.",
}

ERROR_CLASSES: Dict[CameraErrorKind, Type[CameraError]] = {
    CameraErrorKind.UNSUPPORTED_PLATFORM: UnsupportedPlatformError,
    CameraErrorKind.PERMISSION_DENIED: PermissionDeniedError,
    CameraErrorKind.DEVICE_NOT_FOUND: DeviceNotFoundError,
    CameraErrorKind.DEVICE_BUSY: DeviceBusyError,
    CameraErrorKind.CONSTRAINTS_NOT_SATISFIABLE: ConstraintsNotSatisfiableError,
    CameraErrorKind.SECURITY_BLOCKED: SecurityBlockedError,
    CameraErrorKind.NOT_READY: NotReadyError,
    CameraErrorKind.ENCODE_FAILED: EncodeFailedError,
    CameraErrorKind.UNKNOWN: UnknownCameraError,
}


def remediation_message(kind: CameraErrorKind) -> str:
    return REMEDIATION_MESSAGES[kind]


def make_camera_error(kind: CameraErrorKind, camera_id: Optional[str] = None) -> CameraError:
    """Build the exception for ``kind`` with its user-facing message."""
    return ERROR_CLASSES[kind](remediation_message(kind), camera_id=camera_id)


def map_platform_error(error: PlatformMediaError, camera_id: Optional[str] = None) -> CameraError:
    """Translate a backend failure into a typed camera error.

    Unknown platform names map to ``CameraErrorKind.UNKNOWN`` and keep the
    platform detail in the message, since there is no better advice to give.
    """
    kind = PLATFORM_ERROR_KINDS.get(error.name, CameraErrorKind.UNKNOWN)
    if kind is CameraErrorKind.UNKNOWN and error.detail:
        return UnknownCameraError(ACCESS_PREFIX + error.detail, camera_id=camera_id)
    return make_camera_error(kind, camera_id=camera_id)


__all__ = [
    "PLATFORM_ERROR_KINDS",
    "REMEDIATION_MESSAGES",
    "make_camera_error",
    "map_platform_error",
    "remediation_message",
]
