"""Tests for logging processors."""

from taskloom.infrastructure.logger import MAX_LOGGED_VALUE_LENGTH, truncate_long_values


class TestTruncateLongValues:
    def test_long_value_truncated(self):
        event = truncate_long_values(None, "info", {"event": "Outbound message", "text": "x" * 2000})
        assert event["text"].startswith("x" * MAX_LOGGED_VALUE_LENGTH + "...")
        assert event["text"].endswith("(2000 chars)")

    def test_short_values_untouched(self):
        event = {"event": "Task created", "task_id": "task-1", "count": 3}
        assert truncate_long_values(None, "info", dict(event)) == event

    def test_event_never_truncated(self):
        message = "m" * 1000
        assert truncate_long_values(None, "info", {"event": message})["event"] == message
