"""
Timestamp helpers.

All timestamps are stored as ISO-8601 UTC strings in the same shape
JavaScript's ``Date.toISOString()`` produces (``2025-01-03T10:15:00.000Z``),
so values written by older clients and by this service sort and compare the
same way.
"""
import re
from datetime import datetime, timezone
from typing import Optional, Union

# Matches an explicit "+HH:MM" / "-HH:MM" / "+HHMM" offset after the time part
_OFFSET_PATTERN = re.compile(r"[T ]\d{2}:\d{2}(:\d{2}(\.\d+)?)?[+-]\d{2}:?\d{2}$")


def utcnow() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def to_iso(value: datetime) -> str:
    """Format a datetime as a millisecond-precision ISO string ending in ``Z``."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    value = value.astimezone(timezone.utc)
    return value.strftime("%Y-%m-%dT%H:%M:%S.") + f"{value.microsecond // 1000:03d}Z"


def normalize_timestamp(value: str) -> str:
    """
    Append ``Z`` to a timestamp that carries neither ``Z`` nor an offset.

    Rows written without a zone are UTC; parsing them as naive local time
    shifts every duration by the server's offset.
    """
    value = value.strip()
    if value.endswith("Z") or value.endswith("z") or _OFFSET_PATTERN.search(value):
        return value
    return value + "Z"


def parse_timestamp(value: Union[str, datetime, None]) -> Optional[datetime]:
    """
    Parse a stored timestamp into an aware UTC datetime.

    Args:
        value: ISO string, datetime or None

    Returns:
        datetime or None when no value is stored

    Raises:
        ValueError: If the string is not an ISO-8601 timestamp
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)

    normalized = normalize_timestamp(value)
    if normalized[-1] in "Zz":
        normalized = normalized[:-1] + "+00:00"
    return datetime.fromisoformat(normalized).astimezone(timezone.utc)
