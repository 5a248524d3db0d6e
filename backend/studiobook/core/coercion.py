"""
Defensive value coercion for rows read back from the database.

Legacy rows can hold NULLs, numbers stored as text or text where numbers
belong. A dashboard listing hundreds of bookings should degrade per field
rather than fail on a single bad row, so these helpers never raise.
"""

import json
import logging
from typing import Any, Optional

from .enums import BookingStatus

logger = logging.getLogger(__name__)

_TRUTHY = {"true", "1", "yes", "on"}


def safe_string(value: Any, fallback: str = "") -> str:
    if value is None:
        return fallback
    if isinstance(value, str):
        return value
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="replace")
    return str(value)


def optional_string(value: Any) -> Optional[str]:
    """Like ``safe_string`` but maps empty values to None."""
    text = safe_string(value)
    return text or None


def safe_int(value: Any, fallback: int = 0) -> int:
    if value is None or isinstance(value, bool):
        return fallback
    if isinstance(value, int):
        return value
    try:
        number = float(value)
    except (TypeError, ValueError):
        return fallback
    if number != number or number in (float("inf"), float("-inf")):
        return fallback
    return int(round(number))


def optional_int(value: Any) -> Optional[int]:
    if value is None:
        return None
    return safe_int(value)


def safe_float(value: Any, fallback: float = 0.0) -> float:
    if value is None or isinstance(value, bool):
        return fallback
    try:
        number = float(value)
    except (TypeError, ValueError):
        return fallback
    return fallback if number != number else number


def safe_bool(value: Any, fallback: bool = False) -> bool:
    if value is None:
        return fallback
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return value != 0
    if isinstance(value, str):
        return value.strip().lower() in _TRUTHY
    return fallback


def safe_json(value: Any, fallback: Any = None) -> Any:
    if value is None or value == "":
        return fallback
    if not isinstance(value, str):
        return value
    try:
        return json.loads(value)
    except ValueError:
        logger.warning("Discarding malformed JSON value: %.60s", value)
        return fallback


def normalize_booking_status(value: Any) -> BookingStatus:
    status = BookingStatus.normalize(value)
    if status is BookingStatus.UNKNOWN:
        logger.warning("Unrecognised booking status %r normalised to UNKNOWN", value)
    return status
