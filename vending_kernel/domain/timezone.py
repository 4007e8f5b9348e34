"""
Business-day boundaries for date filters.

The business operates on a fixed UTC offset (Asia/Tashkent, UTC+5, no DST).
Callers pass either a bare date ("2025-02-10"), meaning a whole local
business day, or a full timestamp, which is used verbatim.  Naive
timestamps are business-local time.  All results are timezone-aware UTC.

Every date-range filter in the system (sales listing, aggregation views,
reconciliation) resolves its bounds through lower_bound/upper_bound so the
numbers stay consistent between views.
"""

from __future__ import annotations

import re
from datetime import date, datetime, time, timedelta, timezone, tzinfo

DEFAULT_UTC_OFFSET_HOURS = 5

_FULL_TIMESTAMP_RE = re.compile(r"\d{4}-\d{2}-\d{2}\s+\d{2}:\d{2}")

DateBound = str | date | datetime


def business_timezone(utc_offset_hours: float = DEFAULT_UTC_OFFSET_HOURS) -> timezone:
    """Fixed-offset timezone for the business."""
    return timezone(timedelta(hours=utc_offset_hours))


BUSINESS_TZ = business_timezone()


def is_full_timestamp(value: str) -> bool:
    """
    True if the string carries a time component.

    "2025-01-30" -> False; "2025-01-30T13:40:00Z" and "2025-01-30 13:40" -> True.
    """
    return "T" in value or bool(_FULL_TIMESTAMP_RE.search(value))


def localize(value: datetime, tz: tzinfo = BUSINESS_TZ) -> datetime:
    """Attach the business timezone to a naive datetime and convert to UTC."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=tz)
    return value.astimezone(timezone.utc)


def parse_timestamp(value: str, tz: tzinfo = BUSINESS_TZ) -> datetime:
    """
    Parse an ISO-8601 timestamp string; naive values are business-local.

    Raises:
        ValueError: if the string is not ISO-8601.
    """
    return localize(datetime.fromisoformat(value.strip().replace("Z", "+00:00")), tz)


def _as_date(value: str | date) -> date:
    if isinstance(value, date):
        return value
    return date.fromisoformat(value.strip()[:10])


def start_of_day(value: str | date, tz: tzinfo = BUSINESS_TZ) -> datetime:
    """
    Start of a business-local day, as UTC.

    "2025-02-10" -> 2025-02-10 00:00 local -> 2025-02-09T19:00:00+00:00
    """
    return datetime.combine(_as_date(value), time.min, tzinfo=tz).astimezone(timezone.utc)


def end_of_day(value: str | date, tz: tzinfo = BUSINESS_TZ) -> datetime:
    """
    Last instant of a business-local day, as UTC.

    "2025-02-10" -> 2025-02-10 23:59:59.999999 local -> 2025-02-10T18:59:59.999999+00:00
    """
    return datetime.combine(_as_date(value), time.max, tzinfo=tz).astimezone(timezone.utc)


def lower_bound(value: DateBound | None, tz: tzinfo = BUSINESS_TZ) -> datetime | None:
    """Inclusive lower bound for a date filter, or None when not given."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return localize(value, tz)
    if isinstance(value, date):
        return start_of_day(value, tz)
    if is_full_timestamp(value):
        return parse_timestamp(value, tz)
    return start_of_day(value, tz)


def upper_bound(value: DateBound | None, tz: tzinfo = BUSINESS_TZ) -> datetime | None:
    """Inclusive upper bound for a date filter, or None when not given."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return localize(value, tz)
    if isinstance(value, date):
        return end_of_day(value, tz)
    if is_full_timestamp(value):
        return parse_timestamp(value, tz)
    return end_of_day(value, tz)


def business_date(value: datetime, tz: tzinfo = BUSINESS_TZ) -> date:
    """Calendar date of an instant as seen in the business timezone."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(tz).date()
