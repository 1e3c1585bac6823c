"""Unit tests for utility helpers."""

from datetime import datetime, timedelta, timezone

import pytest

from pitchmatch.errors import InvalidIdError, InvalidInputError
from pitchmatch.utils import (
    clamp_limit,
    clamp_offset,
    clean_text,
    format_iso,
    like_pattern,
    paginate,
    parse_datetime,
    parse_id,
    utc_now_iso,
)


class TestTimestamps:
    """Tests for timestamp parsing and formatting."""

    def test_format_iso_is_fixed_width(self):
        """Microseconds are always written."""
        dt = datetime(2024, 1, 15, 10, 30, tzinfo=timezone.utc)
        assert format_iso(dt) == "2024-01-15T10:30:00.000000Z"

    def test_format_iso_naive_is_utc(self):
        """Naive datetimes are treated as UTC."""
        assert format_iso(datetime(2024, 1, 15)) == "2024-01-15T00:00:00.000000Z"

    def test_format_iso_converts_offsets(self):
        """Aware datetimes are converted to UTC."""
        dt = datetime(2024, 1, 15, 12, 0, tzinfo=timezone(timedelta(hours=2)))
        assert format_iso(dt) == "2024-01-15T10:00:00.000000Z"

    def test_format_iso_none(self):
        assert format_iso(None) is None

    def test_lexical_order_is_chronological(self):
        """Stored timestamps sort correctly as strings."""
        earlier = format_iso(datetime(2024, 1, 15, 10, 0, 0, 5, tzinfo=timezone.utc))
        later = format_iso(datetime(2024, 1, 15, 10, 0, 0, 500000, tzinfo=timezone.utc))
        assert earlier < later  # type: ignore[operator]

    def test_parse_datetime_round_trip(self):
        """Formatted timestamps parse back to the same instant."""
        now = utc_now_iso()
        assert format_iso(parse_datetime(now)) == now

    def test_parse_datetime_invalid(self):
        assert parse_datetime(None) is None
        with pytest.raises(ValueError):
            parse_datetime("not a date")


class TestParseId:
    """Tests for identifier parsing."""

    @pytest.mark.parametrize("value,expected", [(1, 1), ("42", 42), (" 7 ", 7)])
    def test_valid_ids(self, value, expected):
        assert parse_id(value) == expected

    @pytest.mark.parametrize("value", [0, -3, "abc", "", "1.5", None, True, 2.0, "²", "①", "٣"])
    def test_invalid_ids(self, value):
        """Non-positive or non-integer ids raise INVALID_ID."""
        with pytest.raises(InvalidIdError) as exc_info:
            parse_id(value, "connection_id")
        assert exc_info.value.code == "INVALID_ID"
        assert "connection_id" in exc_info.value.message


class TestPagination:
    """Tests for limit and offset handling."""

    def test_default_limit(self):
        assert clamp_limit(None) == 10
        assert clamp_limit(None, default=50) == 50

    def test_limit_is_capped(self):
        assert clamp_limit(500) == 100

    @pytest.mark.parametrize("limit", [0, -1, "10", True])
    def test_invalid_limit(self, limit):
        with pytest.raises(InvalidInputError) as exc_info:
            clamp_limit(limit)
        assert exc_info.value.code == "INVALID_LIMIT"

    def test_offset(self):
        assert clamp_offset(None) == 0
        assert clamp_offset(5) == 5

    def test_negative_offset(self):
        with pytest.raises(InvalidInputError) as exc_info:
            clamp_offset(-1)
        assert exc_info.value.code == "INVALID_OFFSET"

    def test_paginate(self):
        assert paginate([1, 2, 3, 4, 5], limit=2, offset=1) == [2, 3]
        assert paginate([1, 2], limit=5, offset=4) == []


class TestText:
    """Tests for text helpers."""

    def test_clean_text(self):
        assert clean_text("  Fintech ") == "Fintech"
        assert clean_text("   ") is None
        assert clean_text(None) is None

    def test_like_pattern_escapes_wildcards(self):
        """LIKE wildcards in user input match literally."""
        assert like_pattern("50%") == "%50\\%%"
        assert like_pattern("a_b") == "%a\\_b%"
