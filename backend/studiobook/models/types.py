# backend/studiobook/models/types.py
"""
Custom SQLAlchemy column types for the SQLite booking store.
"""

import json
from typing import TYPE_CHECKING, Any

from sqlalchemy import Text, TypeDecorator

from ..core.coercion import safe_json
from ..core.timezone_utils import format_timestamp, parse_timestamp

if TYPE_CHECKING:
    from sqlalchemy.sql.type_api import TypeDecorator as _TypeDecorator

    TypeDecoratorProtocol = _TypeDecorator[Any]
else:
    TypeDecoratorProtocol = TypeDecorator


class StudioTimestamp(TypeDecoratorProtocol):
    """
    Timestamp stored as ``YYYY-MM-DDTHH:MM:SS`` text in studio wall time.

    Binds datetimes, dates and ISO strings; timezone-aware values are
    converted to the studio timezone first. Values that cannot be parsed
    (legacy rows) read back as None instead of failing the whole result.
    """

    impl = Text
    cache_ok = True

    def process_bind_param(self, value: Any, dialect: Any) -> Any:
        if value is None:
            return None
        formatted = format_timestamp(value)
        if formatted is None:
            raise ValueError(f"Invalid timestamp value: {value!r}")
        return formatted

    def process_result_value(self, value: Any, dialect: Any) -> Any:
        return parse_timestamp(value)


class JSONText(TypeDecoratorProtocol):
    """JSON document stored as text; malformed stored JSON reads back as None."""

    impl = Text
    cache_ok = True

    def process_bind_param(self, value: Any, dialect: Any) -> Any:
        if value is None:
            return None
        return json.dumps(value)

    def process_result_value(self, value: Any, dialect: Any) -> Any:
        return safe_json(value)
