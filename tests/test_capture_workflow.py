"""Tests for the receipt capture workflow state machine.

All tests run against the simulated backend; ``live_streams`` and the
preview registry's ``active_count`` are the leak detectors.
"""

from __future__ import annotations

import re
import time
import threading
import unittest
from unittest.mock import Mock

from app.events import ErrorCategory, ErrorEventBus, ErrorSeverity
from app.events.event_types import (
    CameraStartedEvent,
    CameraStoppedEvent,
    ReceiptCapturedEvent,
    WorkflowStateChangedEvent,
)
from app.lifecycle import verify_released
from capture import CaptureWorkflow, MediaDeviceSession, SimulatedMediaBackend, WorkflowState
from capture.workflow import CAMERA_READY_MESSAGE, CAPTURE_SUCCESS_MESSAGE
from exceptions import CameraErrorKind


class CrashingBackend(SimulatedMediaBackend):
    """Backend whose driver fails with an exception outside the platform error set."""

    def get_user_media(self, source, constraints):
        raise RuntimeError("driver crashed")


def make_workflow(backend=None, on_capture=None):
    backend = backend or SimulatedMediaBackend(width=1920, height=1080)
    bus = ErrorEventBus()
    session = MediaDeviceSession(backend, source=0, open_timeout_s=2.0, error_bus=bus)
    workflow = CaptureWorkflow(session, on_capture=on_capture, error_bus=bus)
    return workflow, backend, bus


class TestStart(unittest.TestCase):
    def test_start_streams_and_announces_ready(self):
        workflow, backend, bus = make_workflow()
        started = []
        workflow.events.subscribe(CameraStartedEvent, started.append)

        self.assertTrue(workflow.start())

        self.assertEqual(workflow.state, WorkflowState.STREAMING)
        self.assertTrue(workflow.session.is_open)
        self.assertEqual(backend.live_streams, 1)
        self.assertEqual((started[0].width, started[0].height), (1920, 1080))
        notices = [e.message for e in bus.get_history() if e.severity is ErrorSeverity.INFO]
        self.assertIn(CAMERA_READY_MESSAGE, notices)
        workflow.close()

    def test_permission_denied_stays_idle(self):
        workflow, backend, bus = make_workflow(SimulatedMediaBackend(fail_with="NotAllowedError"))

        self.assertFalse(workflow.start())

        self.assertEqual(workflow.state, WorkflowState.IDLE)
        self.assertFalse(workflow.session.is_open)
        self.assertEqual(workflow.last_error.kind, CameraErrorKind.PERMISSION_DENIED)
        self.assertIn("permissions", workflow.last_error.message)
        errors = bus.get_history(category=ErrorCategory.CAMERA)
        self.assertTrue(any("permissions" in e.message and e.severity is ErrorSeverity.ERROR for e in errors))

    def test_unsupported_platform_stays_idle(self):
        workflow, backend, _ = make_workflow(SimulatedMediaBackend(supported=False))

        self.assertFalse(workflow.start())

        self.assertEqual(workflow.last_error.kind, CameraErrorKind.UNSUPPORTED_PLATFORM)
        self.assertEqual(backend.open_count, 0)

    def test_start_rejected_unless_idle(self):
        workflow, backend, _ = make_workflow()
        workflow.start()

        self.assertFalse(workflow.start())

        self.assertEqual(backend.open_count, 1)
        workflow.close()

    def test_no_automatic_retry(self):
        workflow, backend, _ = make_workflow(SimulatedMediaBackend(fail_with="NotReadableError"))

        workflow.start()

        self.assertEqual(workflow.last_error.kind, CameraErrorKind.DEVICE_BUSY)
        self.assertEqual(workflow.state, WorkflowState.IDLE)


    def test_unexpected_driver_failure_is_reported_as_unknown(self):
        workflow, _, bus = make_workflow(CrashingBackend())

        self.assertFalse(workflow.start())

        self.assertEqual(workflow.state, WorkflowState.IDLE)
        self.assertFalse(workflow.session.is_open)
        self.assertIs(workflow.last_error.kind, CameraErrorKind.UNKNOWN)
        self.assertIn("driver crashed", workflow.last_error.message)
        errors = [e for e in bus.get_history() if e.severity is ErrorSeverity.ERROR]
        self.assertEqual(len(errors), 1)
        self.assertEqual(errors[0].metadata["kind"], "unknown")

    def test_capability_check_failure_is_reported_as_unknown(self):
        backend = SimulatedMediaBackend()
        backend.is_supported = Mock(side_effect=RuntimeError("capability query failed"))
        workflow, _, _ = make_workflow(backend)

        self.assertFalse(workflow.start())

        self.assertIs(workflow.last_error.kind, CameraErrorKind.UNKNOWN)
        self.assertEqual(backend.open_count, 0)


class TestCapture(unittest.TestCase):
    def test_capture_closes_camera_before_handoff(self):
        observed = []
        workflow, backend, _ = make_workflow()

        def on_capture(image):
            observed.append((workflow.session.is_open, backend.live_streams, workflow.state, image))

        workflow.set_capture_callback(on_capture)
        workflow.start()
        image = workflow.capture()

        self.assertIsNotNone(image)
        self.assertEqual(len(observed), 1)
        is_open, live, state, handed = observed[0]
        self.assertFalse(is_open)
        self.assertEqual(live, 0)
        self.assertEqual(state, WorkflowState.CAPTURED)
        self.assertIs(handed, image)
        self.assertEqual(backend.stop_count, 1)
        workflow.close()

    def test_captured_image_properties(self):
        workflow, _, _ = make_workflow()
        workflow.start()
        image = workflow.capture()

        self.assertRegex(image.filename, re.compile(r"^receipt-\d+\.jpg$"))
        self.assertEqual((image.width, image.height), (1920, 1080))
        self.assertGreater(image.size, 0)
        self.assertEqual(image.mime_type, "image/jpeg")
        self.assertIs(workflow.image, image)
        self.assertIn(workflow.preview_url, workflow.previews)
        workflow.close()

    def test_handoff_order(self):
        order = []
        workflow, _, bus = make_workflow()
        waiter = workflow.next_capture()
        workflow.set_capture_callback(lambda image: order.append(("callback", waiter.done())))
        workflow.events.subscribe(ReceiptCapturedEvent, lambda event: order.append(("event", None)))
        workflow.events.subscribe(
            CameraStoppedEvent, lambda event: order.append(("stopped", event.reason))
        )

        workflow.start()
        workflow.capture()

        self.assertEqual(order, [("stopped", "captured"), ("callback", True), ("event", None)])
        self.assertEqual(workflow.handoff_count, 1)
        notices = [e.message for e in bus.get_history() if e.severity is ErrorSeverity.INFO]
        self.assertIn(CAPTURE_SUCCESS_MESSAGE, notices)
        workflow.close()

    def test_not_ready_keeps_streaming(self):
        backend = SimulatedMediaBackend(warmup_frames=5)
        on_capture = Mock()
        workflow, _, bus = make_workflow(backend, on_capture=on_capture)
        workflow.start()

        self.assertIsNone(workflow.capture())

        self.assertEqual(workflow.state, WorkflowState.STREAMING)
        self.assertTrue(workflow.session.is_open)
        self.assertEqual(workflow.last_error.kind, CameraErrorKind.NOT_READY)
        on_capture.assert_not_called()
        capture_errors = bus.get_history(category=ErrorCategory.CAPTURE)
        self.assertEqual(capture_errors[-1].message, "Please wait for camera to initialize completely.")
        workflow.close()

    def test_capture_ignored_when_not_streaming(self):
        on_capture = Mock()
        workflow, _, _ = make_workflow(on_capture=on_capture)

        self.assertIsNone(workflow.capture())

        self.assertEqual(workflow.state, WorkflowState.IDLE)
        on_capture.assert_not_called()

    def test_callback_failure_is_isolated(self):
        workflow, _, _ = make_workflow(on_capture=Mock(side_effect=RuntimeError("disk full")))
        received = []
        workflow.events.subscribe(ReceiptCapturedEvent, received.append)
        workflow.start()

        image = workflow.capture()

        self.assertIsNotNone(image)
        self.assertEqual(workflow.state, WorkflowState.CAPTURED)
        self.assertEqual(len(received), 1)
        workflow.close()

    def test_two_cycles_give_two_files_and_two_open_close_pairs(self):
        images = []
        workflow, backend, _ = make_workflow(on_capture=images.append)

        for _ in range(2):
            self.assertTrue(workflow.start())
            workflow.capture()
            workflow.reset()

        self.assertEqual(len(images), 2)
        self.assertNotEqual(images[0].filename, images[1].filename)
        self.assertEqual(backend.open_count, 2)
        self.assertEqual(backend.stop_count, 2)
        self.assertEqual(workflow.previews.active_count, 0)


class TestCancelRetakeAccept(unittest.TestCase):
    def test_cancel_releases_camera(self):
        workflow, backend, _ = make_workflow()
        stopped = []
        workflow.events.subscribe(CameraStoppedEvent, stopped.append)
        workflow.start()

        self.assertTrue(workflow.cancel())

        self.assertEqual(workflow.state, WorkflowState.IDLE)
        self.assertEqual(backend.live_streams, 0)
        self.assertEqual([e.reason for e in stopped], ["cancelled"])
        self.assertFalse(workflow.cancel())

    def test_retake_revokes_preview_and_reopens(self):
        workflow, backend, _ = make_workflow()
        workflow.start()
        workflow.capture()
        first_preview = workflow.preview_url

        self.assertTrue(workflow.retake())

        self.assertNotIn(first_preview, workflow.previews)
        self.assertIsNone(workflow.image)
        self.assertEqual(workflow.state, WorkflowState.STREAMING)
        self.assertEqual(backend.open_count, 2)
        self.assertEqual(backend.live_streams, 1)
        workflow.close()
        self.assertEqual(workflow.previews.active_count, 0)

    def test_retake_failure_returns_to_idle(self):
        backend = SimulatedMediaBackend()
        workflow, _, _ = make_workflow(backend)
        workflow.start()
        workflow.capture()
        backend.fail_with = "NotReadableError"

        self.assertFalse(workflow.retake())

        self.assertEqual(workflow.state, WorkflowState.IDLE)
        self.assertEqual(workflow.last_error.kind, CameraErrorKind.DEVICE_BUSY)
        self.assertEqual(workflow.previews.active_count, 0)

    def test_retake_ignored_unless_captured(self):
        workflow, backend, _ = make_workflow()
        self.assertFalse(workflow.retake())
        self.assertEqual(backend.open_count, 0)

    def test_accept_releases_preview(self):
        workflow, _, _ = make_workflow()
        workflow.start()
        image = workflow.capture()

        self.assertIs(workflow.accept(), image)

        self.assertEqual(workflow.state, WorkflowState.EMITTED)
        self.assertIsNone(workflow.preview_url)
        self.assertEqual(workflow.previews.active_count, 0)
        self.assertIsNone(workflow.accept())
        self.assertFalse(workflow.start())

    def test_state_transitions_are_published(self):
        workflow, _, _ = make_workflow()
        transitions = []
        workflow.events.subscribe(
            WorkflowStateChangedEvent, lambda e: transitions.append((e.previous, e.current))
        )

        workflow.start()
        workflow.capture()
        workflow.accept()

        self.assertEqual(
            transitions,
            [
                (WorkflowState.IDLE, WorkflowState.STARTING),
                (WorkflowState.STARTING, WorkflowState.STREAMING),
                (WorkflowState.STREAMING, WorkflowState.CAPTURED),
                (WorkflowState.CAPTURED, WorkflowState.EMITTED),
            ],
        )


class TestTeardown(unittest.TestCase):
    def test_reset_from_captured(self):
        workflow, _, _ = make_workflow()
        workflow.start()
        workflow.capture()

        workflow.reset()

        self.assertEqual(workflow.state, WorkflowState.IDLE)
        self.assertIsNone(workflow.image)
        self.assertEqual(workflow.previews.active_count, 0)

    def test_close_while_streaming_releases_everything(self):
        workflow, backend, _ = make_workflow()
        workflow.start()

        workflow.close()

        self.assertEqual(backend.live_streams, 0)
        ok, issues = verify_released([workflow])
        self.assertTrue(ok, issues)

    def test_context_manager_closes(self):
        backend = SimulatedMediaBackend()
        with make_workflow(backend)[0] as workflow:
            workflow.start()
        self.assertEqual(backend.live_streams, 0)

    def test_close_cancels_pending_waiters(self):
        workflow, _, _ = make_workflow()
        waiter = workflow.next_capture()

        workflow.close()

        self.assertTrue(waiter.cancelled())


class TestAsyncStart(unittest.TestCase):
    def test_overlapping_start_is_rejected(self):
        backend = SimulatedMediaBackend(open_delay_s=0.2)
        workflow, _, _ = make_workflow(backend)

        first = workflow.start_async()
        self.assertTrue(workflow.is_start_pending)
        second = workflow.start_async()

        self.assertFalse(second.result(timeout=1.0))
        self.assertTrue(first.result(timeout=2.0))
        self.assertFalse(workflow.is_start_pending)
        self.assertEqual(backend.open_count, 1)
        workflow.close()

    def test_cancel_during_pending_open_releases_stream(self):
        backend = SimulatedMediaBackend(open_delay_s=0.2)
        workflow, _, _ = make_workflow(backend)
        stopped = []
        workflow.events.subscribe(CameraStoppedEvent, stopped.append)

        future = workflow.start_async()
        self.assertTrue(workflow.cancel())
        self.assertEqual(workflow.state, WorkflowState.IDLE)

        self.assertFalse(future.result(timeout=2.0))
        self.assertEqual(workflow.state, WorkflowState.IDLE)
        self.assertFalse(workflow.session.is_open)
        self.assertEqual(backend.open_count, 1)
        self.assertEqual(backend.live_streams, 0)
        self.assertEqual([e.reason for e in stopped], ["cancelled"])
        workflow.close()

    def test_async_start_with_crashing_driver_resolves_false(self):
        workflow, _, _ = make_workflow(CrashingBackend())

        self.assertFalse(workflow.start_async().result(timeout=2.0))

        self.assertEqual(workflow.state, WorkflowState.IDLE)
        self.assertIs(workflow.last_error.kind, CameraErrorKind.UNKNOWN)
        workflow.close()

    def test_retake_async_does_not_block_caller(self):
        backend = SimulatedMediaBackend()
        workflow, _, _ = make_workflow(backend)
        workflow.start()
        first_image = workflow.capture()
        backend.open_delay_s = 0.5

        begun = time.perf_counter()
        future = workflow.retake_async()
        elapsed = time.perf_counter() - begun

        self.assertLess(elapsed, 0.25)
        self.assertEqual(workflow.state, WorkflowState.STARTING)
        self.assertTrue(workflow.is_start_pending)
        self.assertFalse(workflow.retake_async().result(timeout=1.0))
        self.assertEqual(workflow.previews.active_count, 0)

        self.assertTrue(future.result(timeout=2.0))
        self.assertEqual(workflow.state, WorkflowState.STREAMING)
        self.assertEqual(backend.open_count, 2)
        self.assertIsNot(workflow.capture(), first_image)
        workflow.close()
        self.assertEqual(backend.live_streams, 0)

    def test_next_capture_future_resolves_from_worker(self):
        workflow, _, _ = make_workflow()
        waiter = workflow.next_capture()
        result = {}

        def consumer():
            result["image"] = waiter.result(timeout=2.0)

        thread = threading.Thread(target=consumer)
        thread.start()
        self.assertTrue(workflow.start_async().result(timeout=2.0))
        image = workflow.capture()
        thread.join(timeout=2.0)

        self.assertIs(result["image"], image)
        workflow.close()


if __name__ == "__main__":
    unittest.main()
