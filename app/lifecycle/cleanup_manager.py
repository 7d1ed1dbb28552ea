"""Cleanup manager for graceful shutdown of capture workflows."""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass
from typing import Callable, Iterable, List, Optional, Tuple

from capture.workflow import CaptureWorkflow
from log_config.logger import get_logger

logger = get_logger(__name__)


@dataclass
class CleanupTask:
    """Task to execute during cleanup."""

    name: str
    callback: Callable[[], None]
    timeout: float = 5.0
    critical: bool = False  # If True, failure marks the shutdown as unclean


class CleanupManager:
    """Runs registered teardown callbacks, each under a timeout.

    Windows hosting capture widgets register their workflows here so the
    camera is released even when the window is closed mid-stream.
    """

    def __init__(self, default_timeout: float = 10.0):
        self._tasks: List[CleanupTask] = []
        self._default_timeout = default_timeout
        self._lock = threading.Lock()
        self._cleanup_in_progress = False

    def register_cleanup(
        self,
        name: str,
        callback: Callable[[], None],
        timeout: Optional[float] = None,
        critical: bool = False,
    ) -> None:
        """Register cleanup task.

        Args:
            name: Task name
            callback: Cleanup callback function
            timeout: Timeout for this task (uses default if None)
            critical: Whether task is critical
        """
        with self._lock:
            task = CleanupTask(
                name=name,
                callback=callback,
                timeout=timeout or self._default_timeout,
                critical=critical,
            )
            self._tasks.append(task)
            logger.debug(f"Registered cleanup task: {name}")

    def register_workflow(self, name: str, workflow: CaptureWorkflow) -> None:
        """Register a capture workflow; its camera is a critical resource."""
        self.register_cleanup(f"workflow:{name}", workflow.close, timeout=5.0, critical=True)

    def unregister_cleanup(self, name: str) -> bool:
        """Unregister cleanup task.

        Returns:
            True if task was found and removed
        """
        with self._lock:
            for i, task in enumerate(self._tasks):
                if task.name == name:
                    self._tasks.pop(i)
                    logger.debug(f"Unregistered cleanup task: {name}")
                    return True
        return False

    @property
    def task_names(self) -> List[str]:
        with self._lock:
            return [task.name for task in self._tasks]

    def cleanup(self) -> bool:
        """Execute all cleanup tasks in registration order.

        Returns:
            True if all critical tasks succeeded
        """
        with self._lock:
            if self._cleanup_in_progress:
                logger.warning("Cleanup already in progress")
                return False
            self._cleanup_in_progress = True
            tasks = self._tasks.copy()

        logger.info("Starting cleanup...")
        all_critical_succeeded = True
        start_time = time.time()

        for task in tasks:
            task_start = time.time()
            logger.info(f"Executing cleanup task: {task.name}")

            try:
                success = self._run_with_timeout(task.callback, task.timeout)

                if success:
                    elapsed = time.time() - task_start
                    logger.info(f"Cleanup task '{task.name}' completed in {elapsed:.2f}s")
                else:
                    logger.error(f"Cleanup task '{task.name}' timed out after {task.timeout}s")
                    if task.critical:
                        all_critical_succeeded = False

            except Exception as e:
                logger.opt(exception=e).error(f"Cleanup task '{task.name}' failed: {e}")
                if task.critical:
                    all_critical_succeeded = False

        logger.info(f"Cleanup completed in {time.time() - start_time:.2f}s")

        with self._lock:
            self._cleanup_in_progress = False
        return all_critical_succeeded

    def _run_with_timeout(self, callback: Callable[[], None], timeout: float) -> bool:
        """Run callback with timeout.

        Returns:
            True if completed before timeout
        """
        result = {"completed": False, "exception": None}

        def wrapper():
            try:
                callback()
                result["completed"] = True
            except Exception as e:
                result["exception"] = e

        thread = threading.Thread(target=wrapper, name="cleanup-task")
        thread.daemon = False
        thread.start()
        thread.join(timeout=timeout)

        if result["exception"]:
            raise result["exception"]

        return result["completed"]


def verify_released(workflows: Iterable[CaptureWorkflow]) -> Tuple[bool, List[str]]:
    """Check that torn-down workflows hold no camera or preview reference.

    Returns:
        Tuple of (success, list_of_issues)
    """
    issues = []
    for workflow in workflows:
        if workflow.session.is_open:
            issues.append(f"Camera {workflow.session.source!r} still open")
        if workflow.previews.active_count:
            issues.append(
                f"{workflow.previews.active_count} preview reference(s) not revoked "
                f"for camera {workflow.session.source!r}"
            )

    if issues:
        logger.error(f"Teardown verification failed: {len(issues)} issues found")
        for issue in issues:
            logger.error(f"  - {issue}")
        return False, issues

    logger.info("Teardown verification passed")
    return True, []


# Global cleanup manager instance
_cleanup_manager: Optional[CleanupManager] = None
_manager_lock = threading.Lock()


def get_cleanup_manager() -> CleanupManager:
    """Get global cleanup manager instance."""
    global _cleanup_manager
    if _cleanup_manager is None:
        with _manager_lock:
            if _cleanup_manager is None:
                _cleanup_manager = CleanupManager()
                logger.debug("Created global cleanup manager")
    return _cleanup_manager


__all__ = [
    "CleanupTask",
    "CleanupManager",
    "get_cleanup_manager",
    "verify_released",
]
