"""Timeout utilities for camera operations."""

from __future__ import annotations

from concurrent.futures import Future, ThreadPoolExecutor, TimeoutError as FutureTimeoutError
from typing import Any, Callable, Optional, TypeVar

from exceptions import CameraErrorKind
from log_config.logger import get_logger

from .errors import make_camera_error

logger = get_logger(__name__)

T = TypeVar("T")


def run_with_timeout(
    func: Callable[..., T],
    timeout_seconds: float,
    error_message: str = "Operation timed out",
    *args: Any,
    on_late_result: Optional[Callable[[T], None]] = None,
    camera_id: Optional[str] = None,
    **kwargs: Any,
) -> T:
    """Run function with timeout, raise DeviceBusyError if exceeded.

    The worker is not joined on timeout, so a hung driver call cannot block
    the caller. If the call eventually succeeds, ``on_late_result`` receives
    its result so the caller can release whatever was acquired.

    Args:
        func: Function to run
        timeout_seconds: Timeout in seconds
        error_message: Logged if the timeout occurs
        *args: Positional arguments for func
        on_late_result: Cleanup for a result that arrives after the timeout
        camera_id: Camera the operation belongs to
        **kwargs: Keyword arguments for func

    Returns:
        Result of func

    Raises:
        DeviceBusyError: If operation times out
        Exception: Any exception raised by func
    """
    executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="camera-timeout")
    future = executor.submit(func, *args, **kwargs)
    try:
        return future.result(timeout=timeout_seconds)

    except FutureTimeoutError:
        logger.error(f"{error_message} after {timeout_seconds}s")
        if on_late_result is not None:
            future.add_done_callback(lambda done: _release_late_result(done, on_late_result))
        raise make_camera_error(CameraErrorKind.DEVICE_BUSY, camera_id=camera_id)

    finally:
        executor.shutdown(wait=False)


def _release_late_result(future: Future, cleanup: Callable[[Any], None]) -> None:
    if future.cancelled() or future.exception() is not None:
        return
    logger.warning("Releasing result of timed-out camera operation")
    try:
        cleanup(future.result())
    except Exception as e:
        logger.error(f"Failed to release late result: {e}")


__all__ = ["run_with_timeout"]
