"""Date manipulation utilities"""

import calendar
from datetime import date, datetime, timezone, timedelta
from typing import List


def add_months(from_date: date, months: int) -> date:
    """Add calendar months, clamping to the last day of shorter months (Jan 31 + 1 -> Feb 28/29)"""
    month_index = from_date.month - 1 + months
    year = from_date.year + month_index // 12
    month = month_index % 12 + 1
    day = min(from_date.day, calendar.monthrange(year, month)[1])
    return date(year, month, day)


def monthly_due_dates(start: date, periods: int) -> List[date]:
    """Due dates one month apart, the first one month after start"""
    return [add_months(start, i) for i in range(1, periods + 1)]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def today() -> date:
    return utc_now().date()


def days_from(from_date: date, days: int) -> date:
    return from_date + timedelta(days=days)


def as_utc(moment: datetime) -> datetime:
    """Treat naive datetimes (SQLite drops tzinfo) as UTC"""
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc)


def start_of_day(day: date) -> datetime:
    return datetime(day.year, day.month, day.day, tzinfo=timezone.utc)
