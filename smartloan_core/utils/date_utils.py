"""Date manipulation utilities"""

import calendar
from datetime import date, datetime
from typing import Optional

# Formats seen on identity documents and in model answers, tried in order
DATE_FORMATS = (
    "%d.%m.%Y",
    "%d/%m/%Y",
    "%Y-%m-%d",
    "%d-%m-%Y",
)

MONTH_NAMES = (
    "January",
    "February",
    "March",
    "April",
    "May",
    "June",
    "July",
    "August",
    "September",
    "October",
    "November",
    "December",
)


def add_months(from_date: date, months: int) -> date:
    """Shift a date by whole months, clamping the day to the target month's length"""
    month_index = from_date.month - 1 + months
    year = from_date.year + month_index // 12
    month = month_index % 12 + 1
    day = min(from_date.day, calendar.monthrange(year, month)[1])
    return from_date.replace(year=year, month=month, day=day)


def parse_date(value: str) -> Optional[date]:
    """Parse a date trying each of DATE_FORMATS; None if none fits"""
    value = (value or "").strip()
    for fmt in DATE_FORMATS:
        try:
            return datetime.strptime(value, fmt).date()
        except ValueError:
            continue
    return None


def parse_year_month(value: str) -> Optional[date]:
    """Parse a "YYYY-MM" pay period into the first day of that month"""
    parts = (value or "").strip().split("-")
    if len(parts) != 2:
        return None
    try:
        return date(int(parts[0]), int(parts[1]), 1)
    except (ValueError, OverflowError):
        return None


def years_between(start: date, end: date) -> int:
    """Whole years elapsed from start to end (an age calculation)"""
    return end.year - start.year - ((end.month, end.day) < (start.month, start.day))
