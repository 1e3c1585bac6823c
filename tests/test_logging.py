"""Tests for JSON log records and span context."""

import json
from datetime import datetime, timezone
from types import SimpleNamespace

import pytest

from pitchmatch.logging import clear_request_context, serialize, set_request_context
from pitchmatch.telemetry import add_span_attributes, sync_logging_context_to_span


def _record(**extra):
    return {
        "time": datetime(2024, 1, 15, 10, 30, tzinfo=timezone.utc),
        "level": SimpleNamespace(name="WARNING"),
        "message": "⚠️  send_message rejected: CONNECTION_NOT_ACCEPTED",
        "module": "metrics",
        "function": "wrapper",
        "line": 1,
        "extra": extra,
        "exception": None,
    }


@pytest.fixture(autouse=True)
def clean_context():
    clear_request_context()
    yield
    clear_request_context()


class TestSerialize:
    """Tests for the JSON sink format."""

    def test_context_and_extras(self):
        set_request_context(request_id="req-1", profile_id=42, operation="send_message")

        line = json.loads(serialize(_record(error_code="CONNECTION_NOT_ACCEPTED")))

        assert line["level"] == "WARNING"
        assert line["request_id"] == "req-1"
        assert line["profile_id"] == 42
        assert line["operation"] == "send_message"
        assert line["error_code"] == "CONNECTION_NOT_ACCEPTED"
        assert "exception" not in line

    def test_unset_context_is_omitted(self):
        line = json.loads(serialize(_record()))
        assert {"request_id", "profile_id", "operation"}.isdisjoint(line)


class TestSpanContext:
    """Tests for copying log context onto spans."""

    def test_sync_skips_unset_values(self, mocker):
        span = mocker.Mock()
        set_request_context(profile_id=7)

        sync_logging_context_to_span(span)

        span.set_attribute.assert_called_once_with("profile_id", 7)

    def test_collections_are_stringified(self, mocker):
        span = mocker.Mock()
        add_span_attributes(span, {"fields": ["role"], "limit": 10})
        span.set_attribute.assert_any_call("fields", "['role']")
        span.set_attribute.assert_any_call("limit", 10)
