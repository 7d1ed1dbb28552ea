"""Unit tests for the error event bus."""

import unittest
from unittest.mock import Mock

from app.events import (
    ErrorCategory,
    ErrorEvent,
    ErrorEventBus,
    ErrorSeverity,
    get_error_bus,
    publish_error,
)


def _event(category=ErrorCategory.CAMERA, severity=ErrorSeverity.ERROR, message="Test"):
    return ErrorEvent(category=category, severity=severity, message=message, source="Test")


class TestErrorEvent(unittest.TestCase):
    """Test ErrorEvent dataclass."""

    def test_error_event_creation(self):
        event = ErrorEvent(
            category=ErrorCategory.CAPTURE,
            severity=ErrorSeverity.ERROR,
            message="Failed to capture image. Please try again.",
            source="CaptureWorkflow",
            exception=ValueError("test"),
            metadata={"kind": "encode_failed"},
        )

        self.assertEqual(event.category, ErrorCategory.CAPTURE)
        self.assertEqual(event.severity, ErrorSeverity.ERROR)
        self.assertEqual(event.source, "CaptureWorkflow")
        self.assertIsInstance(event.exception, ValueError)
        self.assertEqual(event.metadata, {"kind": "encode_failed"})
        self.assertIsInstance(event.timestamp, float)

    def test_error_event_string_representation(self):
        event = ErrorEvent(
            category=ErrorCategory.CAMERA,
            severity=ErrorSeverity.WARNING,
            message="Camera stream is not encrypted",
            source="MediaDeviceSession",
        )

        str_repr = str(event)
        self.assertIn("WARNING", str_repr)
        self.assertIn("camera", str_repr)
        self.assertIn("Camera stream is not encrypted", str_repr)
        self.assertIn("MediaDeviceSession", str_repr)


class TestErrorEventBus(unittest.TestCase):
    """Test ErrorEventBus functionality."""

    def setUp(self):
        self.bus = ErrorEventBus()

    def test_subscribe_to_all_errors(self):
        callback = Mock()
        self.bus.subscribe(callback)

        event = _event()
        self.bus.publish(event)

        callback.assert_called_once_with(event)

    def test_subscribe_to_specific_category(self):
        callback = Mock()
        self.bus.subscribe(callback, category=ErrorCategory.ATTACHMENT)

        matching = _event(category=ErrorCategory.ATTACHMENT, severity=ErrorSeverity.WARNING)
        self.bus.publish(matching)
        self.bus.publish(_event(category=ErrorCategory.CAMERA))

        callback.assert_called_once_with(matching)

    def test_unsubscribe(self):
        callback = Mock()
        self.bus.subscribe(callback)
        self.bus.publish(_event(message="before"))

        self.bus.unsubscribe(callback)
        self.bus.publish(_event(message="after"))

        self.assertEqual(callback.call_count, 1)

    def test_unsubscribe_unknown_callback_is_noop(self):
        self.bus.unsubscribe(Mock())
        self.bus.unsubscribe(Mock(), category=ErrorCategory.CAMERA)

    def test_info_notices_share_the_bus(self):
        """Camera-ready notices travel with INFO severity."""
        callback = Mock()
        self.bus.subscribe(callback, category=ErrorCategory.CAMERA)

        self.bus.publish(_event(severity=ErrorSeverity.INFO, message="Camera ready!"))

        self.assertEqual(callback.call_args[0][0].severity, ErrorSeverity.INFO)

    def test_event_history_is_chronological(self):
        for i in range(5):
            self.bus.publish(_event(message=f"Error {i}"))

        history = self.bus.get_history()
        self.assertEqual([e.message for e in history], [f"Error {i}" for i in range(5)])

    def test_history_filtered_by_category(self):
        for category in (ErrorCategory.CAMERA, ErrorCategory.CAPTURE, ErrorCategory.ATTACHMENT):
            self.bus.publish(_event(category=category))

        camera_history = self.bus.get_history(category=ErrorCategory.CAMERA)
        self.assertEqual(len(camera_history), 1)
        self.assertEqual(camera_history[0].category, ErrorCategory.CAMERA)

    def test_history_limit(self):
        bus = ErrorEventBus(max_history=10)
        for i in range(25):
            bus.publish(_event(severity=ErrorSeverity.INFO, message=f"Event {i}"))

        history = bus.get_history()
        self.assertEqual(len(history), 10)
        self.assertEqual(history[0].message, "Event 15")
        self.assertEqual(history[-1].message, "Event 24")

    def test_unsubscribe_matches_category(self):
        callback = Mock()
        self.bus.subscribe(callback, category=ErrorCategory.CAMERA)

        self.bus.unsubscribe(callback)
        self.bus.publish(_event(category=ErrorCategory.CAMERA))
        self.assertEqual(callback.call_count, 1)

        self.bus.unsubscribe(callback, category=ErrorCategory.CAMERA)
        self.bus.publish(_event(category=ErrorCategory.CAMERA))
        self.assertEqual(callback.call_count, 1)

    def test_subscriber_may_publish(self):
        bus = self.bus
        seen = []

        def escalate(event):
            seen.append(event.message)
            if event.severity is ErrorSeverity.ERROR:
                bus.publish(_event(category=ErrorCategory.SYSTEM, severity=ErrorSeverity.INFO, message="follow-up"))

        bus.subscribe(escalate)
        bus.publish(_event(message="first"))

        self.assertEqual(seen, ["first", "follow-up"])

    def test_subscriber_exception_does_not_crash(self):
        def failing_callback(event):
            raise RuntimeError("Subscriber failed")

        normal_callback = Mock()
        self.bus.subscribe(failing_callback)
        self.bus.subscribe(normal_callback)

        event = _event()
        self.bus.publish(event)

        normal_callback.assert_called_once_with(event)


class TestPublishError(unittest.TestCase):
    """Test global error bus functions."""

    def test_get_error_bus_singleton(self):
        self.assertIs(get_error_bus(), get_error_bus())

    def test_publish_error_on_explicit_bus(self):
        bus = ErrorEventBus()
        callback = Mock()
        bus.subscribe(callback)

        returned = publish_error(
            category=ErrorCategory.CAMERA,
            severity=ErrorSeverity.WARNING,
            message="Test warning",
            source="TestSource",
            bus=bus,
            kind="insecure_context",
        )

        callback.assert_called_once_with(returned)
        self.assertEqual(returned.message, "Test warning")
        self.assertEqual(returned.metadata["kind"], "insecure_context")

    def test_publish_error_defaults_to_global_bus(self):
        callback = Mock()
        bus = get_error_bus()
        bus.subscribe(callback)
        try:
            publish_error(
                category=ErrorCategory.SYSTEM,
                severity=ErrorSeverity.INFO,
                message="Global notice",
                source="TestSource",
            )
        finally:
            bus.unsubscribe(callback)

        callback.assert_called_once()
        self.assertEqual(callback.call_args[0][0].message, "Global notice")


if __name__ == "__main__":
    unittest.main()
