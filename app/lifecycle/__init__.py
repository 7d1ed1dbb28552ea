"""Lifecycle management for application shutdown and cleanup."""

from app.lifecycle.cleanup_manager import (
    CleanupManager,
    CleanupTask,
    get_cleanup_manager,
    verify_released,
)

__all__ = [
    "CleanupManager",
    "CleanupTask",
    "get_cleanup_manager",
    "verify_released",
]
