"""Timestamp helpers for cell values.

Rows store timestamps as ISO-8601 strings in local time. Rows edited by hand
in a spreadsheet may hold other date formats, so reading goes through
dateutil.
"""
from datetime import datetime
from typing import Any, Optional

from dateutil import parser as date_parser


def now() -> datetime:
    return datetime.now().replace(microsecond=0)


def to_iso(value: datetime) -> str:
    return value.isoformat()


def parse_timestamp(value: Any) -> Optional[datetime]:
    """Parse a cell value into a naive local datetime, or None if it is not one."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        dt = value
    else:
        try:
            dt = date_parser.parse(str(value))
        except (ValueError, OverflowError):
            return None
    if dt.tzinfo is not None:
        dt = dt.astimezone().replace(tzinfo=None)
    return dt


def start_of_day(value: datetime) -> datetime:
    return value.replace(hour=0, minute=0, second=0, microsecond=0)


def isoformat_fields(record: dict, columns) -> dict:
    """Copy of ``record`` with the timestamp ``columns`` rendered as ISO-8601."""
    out = dict(record)
    for column in columns:
        parsed = parse_timestamp(out.get(column))
        if parsed is not None:
            out[column] = parsed.isoformat()
    return out
