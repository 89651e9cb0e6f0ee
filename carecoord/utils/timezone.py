"""Authoritative clock helpers.

Every timestamp the service stores is a naive datetime on one wall clock,
the one of ``CARE_TIMEZONE``. Aware datetimes coming from callers are
converted into it at the API boundary.
"""
from datetime import date, datetime, time, timedelta
import pytz

from carecoord import config

CARE_TZ = pytz.timezone(config.CARE_TIMEZONE)


def now() -> datetime:
    """Current time on the authoritative clock (naive)."""
    return datetime.now(CARE_TZ).replace(tzinfo=None)


def today() -> date:
    return now().date()


def to_care_clock(dt: datetime | None) -> datetime | None:
    """
    Convert a datetime to the naive authoritative clock.

    Naive inputs are assumed to already be on that clock.
    """
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt
    return dt.astimezone(CARE_TZ).replace(tzinfo=None)


def parse_time_of_day(value: str) -> time:
    """Parse an ``HH:MM`` string."""
    return datetime.strptime(value, "%H:%M").time()


def combine(day: date, time_of_day: str) -> datetime:
    return datetime.combine(day, parse_time_of_day(time_of_day))


def day_bounds(day: date) -> tuple[datetime, datetime]:
    """Half-open ``[00:00, next day 00:00)`` window for a calendar day."""
    start = datetime.combine(day, time.min)
    return start, start + timedelta(days=1)


def days_touched(start: datetime, end: datetime) -> list[date]:
    """Calendar days a half-open ``[start, end)`` window overlaps."""
    last = (end - timedelta(microseconds=1)).date() if end > start else start.date()
    days = []
    current = start.date()
    while current <= last:
        days.append(current)
        current += timedelta(days=1)
    return days
