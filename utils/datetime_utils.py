"""
Datetime utilities for consistent date and time handling across the application.

Slots live in a ``date`` column plus a ``time`` column, and the store may hand
times back with or without seconds. Everything that compares slot times goes
through the helpers here.
"""

import re
from datetime import date, datetime, timezone
from typing import Optional, Union

_DAY_NAMES = (
    "monday",
    "tuesday",
    "wednesday",
    "thursday",
    "friday",
    "saturday",
    "sunday",
)

_TZ_SUFFIX = re.compile(r"(Z|[+-]\d{2}(:?\d{2})?)$")


def utc_now() -> datetime:
    """
    Get current UTC time as timezone-aware datetime.

    Returns:
        Current UTC datetime with timezone info
    """
    return datetime.now(timezone.utc)


def parse_iso_datetime(iso_string: str) -> datetime:
    """
    Parse ISO format datetime string to timezone-aware datetime.
    Handles both 'Z' suffix and '+00:00' timezone formats.

    Args:
        iso_string: ISO format datetime string

    Returns:
        Timezone-aware datetime object

    Raises:
        ValueError: If datetime string cannot be parsed
    """
    normalized = iso_string.replace("Z", "+00:00")

    try:
        dt = datetime.fromisoformat(normalized)
        if dt.tzinfo is None:
            dt = dt.replace(tzinfo=timezone.utc)
        return dt
    except ValueError as e:
        raise ValueError(f"Invalid datetime string: {iso_string}") from e


def to_iso_string(dt: datetime) -> str:
    """
    Convert datetime to ISO format string.
    Naive datetimes are treated as UTC.
    """
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)

    return dt.isoformat()


def clean_date(value: Union[str, date, datetime]) -> date:
    """
    Reduce a date-ish value to a calendar day.

    Accepts ``date`` objects, ``datetime`` objects and strings in either
    ``YYYY-MM-DD`` or full ISO datetime form (the time part is dropped).

    Raises:
        ValueError: If the string is not a valid date
    """
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value

    text = str(value).strip().split("T")[0]
    try:
        return date.fromisoformat(text)
    except ValueError as e:
        raise ValueError(f"Invalid date string: {value}") from e


def time_hhmm(value: Optional[str]) -> str:
    """
    Extract ``HH:MM`` from a stored or requested time.

    Handles ``HH:MM:SS``, ``H:MM``, values carrying a timezone offset
    (``10:00:00+00``) and full ISO datetimes (``2025-12-01T10:00:00-05:00``).
    Returns an empty string for empty input.
    """
    if not value:
        return ""

    text = str(value).strip()
    if "T" in text:
        text = text.split("T", 1)[1]
    text = _TZ_SUFFIX.sub("", text)

    parts = text.split(":")
    if len(parts) >= 2 and parts[0].isdigit() and parts[1][:2].isdigit():
        return f"{parts[0].zfill(2)}:{parts[1][:2].zfill(2)}"

    return text[:5]


def normalize_time(value: str) -> str:
    """
    Canonicalize a time to ``HH:MM:SS``.

    ``"9:00"`` and ``"09:00"`` both become ``"09:00:00"``; a value that already
    carries seconds keeps them (zero padded). Values without a colon are
    returned unchanged.
    """
    text = str(value).strip()
    if "T" in text:
        text = _TZ_SUFFIX.sub("", text.split("T", 1)[1])
    if ":" not in text:
        return text

    parts = text.split(":")
    if len(parts) == 2:
        return f"{parts[0].zfill(2)}:{parts[1].zfill(2)}:00"
    return f"{parts[0].zfill(2)}:{parts[1].zfill(2)}:{parts[2][:2].zfill(2)}"


def day_of_week(day: date) -> str:
    """Lower-case English weekday label for a calendar day."""
    return _DAY_NAMES[day.weekday()]


def add_minutes(hhmmss: str, minutes: int) -> str:
    """Add minutes to an ``HH:MM:SS`` value, returning ``HH:MM:SS``."""
    hours, mins = (int(part) for part in hhmmss.split(":")[:2])
    total = hours * 60 + mins + minutes
    return f"{total // 60:02d}:{total % 60:02d}:00"
