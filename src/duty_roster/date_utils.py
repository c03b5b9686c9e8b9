"""
Date helpers for the roster calendar.

All schedule dates travel as ISO strings (YYYY-MM-DD); months are
partitioned by their YYYY-MM key.
"""

from datetime import date, datetime, timedelta
from typing import List, Union
import calendar

# Custom views longer than this collapse to their first day
MAX_RANGE_DAYS = 365

DateLike = Union[str, date]


def to_iso_date(value: DateLike) -> str:
    """Normalize a date or ISO string to YYYY-MM-DD"""
    if isinstance(value, datetime):
        value = value.date()
    if isinstance(value, date):
        return value.strftime("%Y-%m-%d")
    return parse_iso_date(value).strftime("%Y-%m-%d")


def parse_iso_date(date_str: str) -> date:
    """Parse YYYY-MM-DD, raising ValueError on anything else"""
    return datetime.strptime(date_str, "%Y-%m-%d").date()


def month_key(date_str: str) -> str:
    """Month partition key of an ISO date"""
    return date_str[:7]


def days_in_month(year: int, month: int) -> List[date]:
    last_day = calendar.monthrange(year, month)[1]
    return [date(year, month, day) for day in range(1, last_day + 1)]


def days_in_range(start: DateLike, end: DateLike) -> List[date]:
    """Inclusive list of days between start and end"""
    start_date = parse_iso_date(to_iso_date(start))
    end_date = parse_iso_date(to_iso_date(end))

    if abs((end_date - start_date).days) > MAX_RANGE_DAYS:
        return [start_date]

    days = []
    current = start_date
    while current <= end_date:
        days.append(current)
        current += timedelta(days=1)
    return days
