"""
Calendar helpers shared by periods, trends and forecasts.

Weeks start on Sunday. Month arithmetic clamps to the last valid day
(Jan 31 + 1 month -> Feb 28/29).
"""
from calendar import monthrange
from datetime import date, datetime, timedelta

# date.weekday(): Monday == 0 ... Sunday == 6
WEEK_START_WEEKDAY = 6


def as_day(value: date) -> date:
    """Truncate a datetime to its calendar day; dates pass through."""
    if isinstance(value, datetime):
        return value.date()
    return value


def start_of_week(value: date) -> date:
    day = as_day(value)
    offset = (day.weekday() - WEEK_START_WEEKDAY) % 7
    return day - timedelta(days=offset)


def end_of_week(value: date) -> date:
    return start_of_week(value) + timedelta(days=6)


def start_of_month(value: date) -> date:
    day = as_day(value)
    return date(day.year, day.month, 1)


def end_of_month(value: date) -> date:
    day = as_day(value)
    _, last_day = monthrange(day.year, day.month)
    return date(day.year, day.month, last_day)


def is_month_end(value: date) -> bool:
    return as_day(value) == end_of_month(value)


def add_months(value: date, months: int) -> date:
    """Shift by whole calendar months, clamping the day to the target month."""
    day = as_day(value)
    index = day.year * 12 + (day.month - 1) + months
    year, month = divmod(index, 12)
    month += 1
    _, last_day = monthrange(year, month)
    return date(year, month, min(day.day, last_day))


def start_of_quarter(value: date) -> date:
    day = as_day(value)
    first_month = ((day.month - 1) // 3) * 3 + 1
    return date(day.year, first_month, 1)


def end_of_quarter(value: date) -> date:
    return end_of_month(add_months(start_of_quarter(value), 2))


def start_of_year(value: date) -> date:
    return date(as_day(value).year, 1, 1)


def end_of_year(value: date) -> date:
    return date(as_day(value).year, 12, 31)


def days_inclusive(start: date, end: date) -> int:
    """Number of calendar days in [start, end]"""
    return (as_day(end) - as_day(start)).days + 1
