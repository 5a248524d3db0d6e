"""
Timezone utilities for the studio booking store.

Timestamps are persisted as ISO-8601 text in the studio's wall-clock time
(``YYYY-MM-DDTHH:MM:SS``). Text in that shape sorts chronologically, which
keeps range filters on the booking date a plain indexed comparison.
"""

from datetime import date, datetime
from typing import Any, Optional

import pytz

from .config import settings

TIMESTAMP_FORMAT_LENGTH = len("YYYY-MM-DDTHH:MM:SS")


def get_studio_timezone() -> pytz.BaseTzInfo:
    return pytz.timezone(settings.studio_timezone)


def to_studio_wall_time(value: datetime) -> datetime:
    """
    Convert a datetime to naive studio wall-clock time.

    Naive values are assumed to already be studio wall time.
    """
    if value.tzinfo is None:
        return value
    return value.astimezone(get_studio_timezone()).replace(tzinfo=None)


def studio_now() -> datetime:
    """Current studio wall-clock time, truncated to whole seconds."""
    return datetime.now(get_studio_timezone()).replace(tzinfo=None, microsecond=0)


def parse_timestamp(value: Any) -> Optional[datetime]:
    """
    Parse a stored or user-supplied timestamp.

    Returns None for empty or unparseable input instead of raising.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        return to_studio_wall_time(value)
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    text = str(value).strip()
    if not text:
        return None
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return None
    return to_studio_wall_time(parsed)


def format_timestamp(value: Any) -> Optional[str]:
    """Render a timestamp in the canonical stored form."""
    parsed = parse_timestamp(value)
    if parsed is None:
        return None
    return parsed.replace(microsecond=0).isoformat(timespec="seconds")


def start_of_day(value: date) -> str:
    return datetime(value.year, value.month, value.day).isoformat(timespec="seconds")
