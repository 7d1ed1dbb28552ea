"""Unit tests for the cleanup manager."""

import time
import unittest
from unittest.mock import Mock

from app.events import ErrorEventBus
from app.lifecycle import CleanupManager, CleanupTask, get_cleanup_manager, verify_released
from capture import CaptureWorkflow, MediaDeviceSession, SimulatedMediaBackend


def _workflow(backend):
    session = MediaDeviceSession(backend, error_bus=ErrorEventBus())
    return CaptureWorkflow(session, error_bus=ErrorEventBus())


class TestCleanupTask(unittest.TestCase):
    def test_cleanup_task_defaults(self):
        task = CleanupTask(name="test", callback=Mock())

        self.assertEqual(task.timeout, 5.0)
        self.assertFalse(task.critical)


class TestCleanupManager(unittest.TestCase):
    def setUp(self):
        self.manager = CleanupManager(default_timeout=2.0)

    def test_cleanup_calls_tasks_in_order(self):
        calls = []
        self.manager.register_cleanup("task1", lambda: calls.append(1))
        self.manager.register_cleanup("task2", lambda: calls.append(2))

        self.assertTrue(self.manager.cleanup())
        self.assertEqual(calls, [1, 2])

    def test_unregister(self):
        callback = Mock()
        self.manager.register_cleanup("task", callback)

        self.assertTrue(self.manager.unregister_cleanup("task"))
        self.assertFalse(self.manager.unregister_cleanup("task"))
        self.manager.cleanup()
        callback.assert_not_called()

    def test_failing_task_does_not_stop_others(self):
        callback = Mock()
        self.manager.register_cleanup("broken", Mock(side_effect=RuntimeError("boom")))
        self.manager.register_cleanup("ok", callback)

        self.assertTrue(self.manager.cleanup())
        callback.assert_called_once()

    def test_critical_failure_reported(self):
        self.manager.register_cleanup("broken", Mock(side_effect=RuntimeError("boom")), critical=True)
        self.assertFalse(self.manager.cleanup())

    def test_critical_timeout_reported(self):
        self.manager.register_cleanup("slow", lambda: time.sleep(0.5), timeout=0.05, critical=True)
        self.assertFalse(self.manager.cleanup())

    def test_register_workflow_releases_camera(self):
        backend = SimulatedMediaBackend()
        workflow = _workflow(backend)
        workflow.start()

        self.manager.register_workflow("invoiceImage", workflow)
        self.assertIn("workflow:invoiceImage", self.manager.task_names)
        self.assertTrue(self.manager.cleanup())

        self.assertEqual(backend.live_streams, 0)
        self.assertEqual(verify_released([workflow]), (True, []))

    def test_global_manager_singleton(self):
        self.assertIs(get_cleanup_manager(), get_cleanup_manager())


class TestVerifyReleased(unittest.TestCase):
    def test_open_session_reported(self):
        workflow = _workflow(SimulatedMediaBackend())
        workflow.start()

        ok, issues = verify_released([workflow])

        self.assertFalse(ok)
        self.assertEqual(len(issues), 1)
        self.assertIn("still open", issues[0])
        workflow.close()

    def test_live_preview_reported(self):
        workflow = _workflow(SimulatedMediaBackend())
        workflow.start()
        workflow.capture()

        ok, issues = verify_released([workflow])

        self.assertFalse(ok)
        self.assertIn("preview reference", issues[0])
        workflow.close()
        self.assertTrue(verify_released([workflow])[0])


if __name__ == "__main__":
    unittest.main()
