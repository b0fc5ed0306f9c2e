"""Date utilities for ledgerscope.

Pure functions for parsing ledger dates and times.
"""

import re
from datetime import date, datetime, time

DATE_SEPARATORS = "-/."

_DATE_RE = re.compile(r"^(\d{4})([-/.])(\d{1,2})\2(\d{1,2})$")
_TIME_RE = re.compile(r"^(\d{1,2}):(\d{2})(?::(\d{2}))?$")


def parse_date(text: str) -> date:
    """Parse a ledger date.

    Args:
        text: Date as YYYY-MM-DD, YYYY/MM/DD or YYYY.MM.DD.

    Returns:
        Parsed date.

    Raises:
        ValueError: If the text is not a valid calendar date.
    """
    match = _DATE_RE.match(text)
    if not match:
        raise ValueError(f"Invalid date {text!r}")
    year, _, month, day = match.groups()
    return date(int(year), int(month), int(day))


def parse_time(text: str) -> time:
    """Parse a price time as HH:MM or HH:MM:SS.

    Raises:
        ValueError: If the text is not a valid time of day.
    """
    match = _TIME_RE.match(text)
    if not match:
        raise ValueError(f"Invalid time {text!r}")
    hour, minute, second = match.groups()
    return time(int(hour), int(minute), int(second or 0))


def end_of_day(day: date) -> datetime:
    """Latest instant of a day, so same-day prices apply to that day's transactions."""
    return datetime.combine(day, time.max)


def as_timestamp(value: date | datetime) -> datetime:
    """Normalize a query time: datetimes pass through, dates mean end of day."""
    if isinstance(value, datetime):
        return value
    return end_of_day(value)
