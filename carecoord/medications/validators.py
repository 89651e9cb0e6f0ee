"""Validation logic for medications"""
import re
from datetime import date
from typing import Iterable, List, Optional

from carecoord.medications.exceptions import (
    InvalidDateWindowException,
    InvalidQuantityException,
    InvalidScheduledTimesException,
)

TIME_OF_DAY = re.compile(r"^([01]\d|2[0-3]):[0-5]\d$")


def normalize_scheduled_times(times: Iterable[str]) -> List[str]:
    """Validate HH:MM entries, reject duplicates, return them sorted"""
    times = list(times)
    for value in times:
        if not isinstance(value, str) or not TIME_OF_DAY.match(value):
            raise InvalidScheduledTimesException(f"'{value}' is not a HH:MM time")
    duplicates = sorted({t for t in times if times.count(t) > 1})
    if duplicates:
        raise InvalidScheduledTimesException(f"duplicate times {', '.join(duplicates)}")
    return sorted(times)


def validate_date_window(start_date: Optional[date], end_date: Optional[date]) -> None:
    if start_date and end_date and end_date < start_date:
        raise InvalidDateWindowException()


def validate_non_negative(field: str, value: Optional[int]) -> None:
    if value is not None and value < 0:
        raise InvalidQuantityException(field)


def validate_refill_quantity(quantity: int) -> None:
    if quantity < 1:
        raise InvalidQuantityException("quantity", "must be at least 1")
