"""Utility functions for PitchMatch.

This module provides common helpers for timestamp handling, identifier
parsing, pagination and text normalization.
"""

from datetime import UTC, datetime
from typing import Any, Optional

from dateutil import parser as dateutil_parser  # type: ignore[import-untyped]

from pitchmatch.config import settings
from pitchmatch.errors import InvalidIdError, InvalidInputError

ISO_FORMAT = "%Y-%m-%dT%H:%M:%S.%fZ"


def parse_datetime(value: str | datetime | None) -> datetime | None:
    """Parse ISO8601 timestamp string into timezone-aware UTC datetime.

    Args:
        value: ISO8601 timestamp string, datetime object, or None

    Returns:
        Parsed timezone-aware datetime in UTC, or None if input is None

    Raises:
        ValueError: If timestamp format is invalid

    Example:
        >>> dt = parse_datetime("2024-01-15T10:30:00Z")
        >>> dt.tzinfo
        datetime.timezone.utc
    """
    if value is None:
        return None

    if isinstance(value, datetime):
        if value.tzinfo is None:
            value = value.replace(tzinfo=UTC)
        return value.astimezone(UTC)

    dt = dateutil_parser.isoparse(value)

    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=UTC)

    return dt.astimezone(UTC)


def utc_now() -> datetime:
    """Get current UTC timestamp as timezone-aware datetime."""
    return datetime.now(UTC)


def format_iso(dt: datetime | None) -> str | None:
    """Format datetime as fixed-width ISO8601 string with 'Z' suffix.

    Microseconds are always written, so stored timestamps compare
    lexically in chronological order.

    Args:
        dt: Datetime object or None

    Returns:
        ISO8601 formatted string or None if input is None

    Example:
        >>> dt = datetime(2024, 1, 15, 10, 30, tzinfo=UTC)
        >>> format_iso(dt)
        '2024-01-15T10:30:00.000000Z'
    """
    if dt is None:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=UTC)
    return dt.astimezone(UTC).strftime(ISO_FORMAT)


def utc_now_iso() -> str:
    """Get current UTC timestamp as fixed-width ISO8601 string.

    Example:
        >>> utc_now_iso().endswith("Z")
        True
    """
    return format_iso(utc_now())  # type: ignore[return-value]


def parse_id(value: Any, field: str = "id") -> int:
    """Parse an entity identifier into a positive integer.

    Args:
        value: Identifier as int or ASCII decimal string
        field: Name used in the error message

    Returns:
        Parsed identifier

    Raises:
        InvalidIdError: If the value is not a positive integer

    Example:
        >>> parse_id("42")
        42
        >>> parse_id(" 7 ")
        7
    """
    if isinstance(value, bool):
        raise InvalidIdError(f"Invalid {field}: {value!r}")
    if isinstance(value, int):
        parsed = value
    elif isinstance(value, str) and value.strip().isascii() and value.strip().isdigit():
        parsed = int(value.strip())
    else:
        raise InvalidIdError(f"Invalid {field}: {value!r}")
    if parsed < 1:
        raise InvalidIdError(f"Invalid {field}: {value!r}")
    return parsed


def clamp_limit(limit: Optional[int], default: Optional[int] = None) -> int:
    """Resolve a list limit against the configured default and cap.

    Args:
        limit: Requested limit, or None for the default
        default: Operation-specific default (falls back to settings)

    Returns:
        Effective limit, never above ``settings.max_page_size``

    Raises:
        InvalidInputError: If the limit is not a positive integer

    Example:
        >>> clamp_limit(500)
        100
        >>> clamp_limit(None, default=20)
        20
    """
    if limit is None:
        limit = default if default is not None else settings.default_page_size
    if isinstance(limit, bool) or not isinstance(limit, int) or limit < 1:
        raise InvalidInputError(f"Invalid limit: {limit!r}", code="INVALID_LIMIT")
    return min(limit, settings.max_page_size)


def clamp_offset(offset: Optional[int]) -> int:
    """Resolve a list offset.

    Raises:
        InvalidInputError: If the offset is negative or not an integer
    """
    if offset is None:
        return 0
    if isinstance(offset, bool) or not isinstance(offset, int) or offset < 0:
        raise InvalidInputError(f"Invalid offset: {offset!r}", code="INVALID_OFFSET")
    return offset


def clean_text(value: str | None) -> str | None:
    """Strip surrounding whitespace, mapping blank strings to None.

    Example:
        >>> clean_text("  Fintech ")
        'Fintech'
        >>> clean_text("   ") is None
        True
    """
    if value is None:
        return None
    value = value.strip()
    return value or None


def like_pattern(term: str) -> str:
    """Build a case-insensitive substring LIKE pattern, escaping wildcards.

    Example:
        >>> like_pattern("50%")
        '%50\\\\%%'
    """
    escaped = term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{escaped}%"


def paginate(items: list[Any], limit: int, offset: int) -> list[Any]:
    """Slice an already-sorted list.

    Example:
        >>> paginate([1, 2, 3, 4, 5], limit=2, offset=1)
        [2, 3]
    """
    return items[offset : offset + limit]
