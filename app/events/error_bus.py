"""Centralized error event bus for user-facing advisories.

Components report camera, capture and attachment problems here; the UI
subscribes and turns them into notifications. Informational notices
(e.g. "camera ready") travel on the same bus with INFO severity.
"""

from __future__ import annotations

import threading
import time
from collections import deque
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Deque, Dict, List, Optional, Tuple

from log_config.logger import get_logger

logger = get_logger(__name__)


class ErrorSeverity(Enum):
    """How loudly an advisory is shown."""

    INFO = "info"  # Status notice, auto-dismissed
    WARNING = "warning"  # Camera still usable
    ERROR = "error"  # Operation failed, workflow stays usable


class ErrorCategory(Enum):
    """Which part of the capture flow raised the advisory."""

    CAMERA = "camera"
    CAPTURE = "capture"
    ATTACHMENT = "attachment"
    SYSTEM = "system"


ErrorCallback = Callable[["ErrorEvent"], None]


@dataclass
class ErrorEvent:
    """One advisory with the context it was raised in."""

    category: ErrorCategory
    severity: ErrorSeverity
    message: str
    source: str
    timestamp: float = field(default_factory=time.time)
    exception: Optional[Exception] = None
    metadata: Dict[str, Any] = field(default_factory=dict)

    def __str__(self) -> str:
        exc_info = f" ({self.exception.__class__.__name__})" if self.exception else ""
        return f"[{self.severity.value.upper()}] {self.category.value}/{self.source}: {self.message}{exc_info}"


class ErrorEventBus:
    """Publish-subscribe channel for advisories.

    Subscribers either receive every event or only one category. A bounded
    history of recent events is kept for late subscribers and diagnostics.
    """

    def __init__(self, max_history: int = 100):
        self._subscribers: List[Tuple[ErrorCallback, Optional[ErrorCategory]]] = []
        self._history: Deque[ErrorEvent] = deque(maxlen=max_history)
        self._lock = threading.Lock()

    def subscribe(self, callback: ErrorCallback, category: Optional[ErrorCategory] = None) -> None:
        """Register ``callback`` for ``category``, or for every event if None."""
        with self._lock:
            self._subscribers.append((callback, category))
        scope = category.value if category else "all"
        logger.debug(f"Subscribed to {scope} advisories: {getattr(callback, '__name__', repr(callback))}")

    def unsubscribe(self, callback: ErrorCallback, category: Optional[ErrorCategory] = None) -> None:
        with self._lock:
            if (callback, category) in self._subscribers:
                self._subscribers.remove((callback, category))

    def publish(self, event: ErrorEvent) -> None:
        """Log ``event`` and deliver it to matching subscribers.

        A failing subscriber is logged and skipped; the others still run.
        """
        with self._lock:
            self._history.append(event)
            targets = [cb for cb, category in self._subscribers if category in (None, event.category)]

        logger.opt(exception=event.exception).log(event.severity.name, str(event))

        # Delivered outside the lock so subscribers may publish in turn
        for callback in targets:
            try:
                callback(event)
            except Exception as e:
                callback_name = getattr(callback, "__name__", repr(callback))
                logger.opt(exception=e).error(f"Error in advisory subscriber {callback_name}: {e}")

    def get_history(self, category: Optional[ErrorCategory] = None) -> List[ErrorEvent]:
        """Recent events, oldest first, optionally for one category."""
        with self._lock:
            history = list(self._history)
        if category is not None:
            history = [e for e in history if e.category is category]
        return history


_error_bus: Optional[ErrorEventBus] = None
_bus_lock = threading.Lock()


def get_error_bus() -> ErrorEventBus:
    """Get the process-wide error bus."""
    global _error_bus
    if _error_bus is None:
        with _bus_lock:
            if _error_bus is None:
                _error_bus = ErrorEventBus()
    return _error_bus


def publish_error(
    category: ErrorCategory,
    severity: ErrorSeverity,
    message: str,
    source: str,
    exception: Optional[Exception] = None,
    bus: Optional[ErrorEventBus] = None,
    **metadata: Any,
) -> ErrorEvent:
    """Build an ``ErrorEvent`` and publish it.

    Args:
        category: Part of the capture flow the advisory concerns
        severity: Error severity
        message: User-facing message
        source: Reporting component
        exception: Underlying exception, logged with its traceback
        bus: Bus to publish on (defaults to the global bus)
        **metadata: Extra context, e.g. ``kind`` for camera errors

    Returns:
        The published event
    """
    event = ErrorEvent(
        category=category,
        severity=severity,
        message=message,
        source=source,
        exception=exception,
        metadata=metadata,
    )
    (bus or get_error_bus()).publish(event)
    return event


__all__ = [
    "ErrorSeverity",
    "ErrorCategory",
    "ErrorEvent",
    "ErrorEventBus",
    "get_error_bus",
    "publish_error",
]
