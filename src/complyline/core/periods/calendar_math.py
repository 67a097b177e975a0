# Copyright 2024-2025 David Gordon Nix
# SPDX-License-Identifier: Apache-2.0

"""Calendar arithmetic shared by the deriver, the due-date calculator and the fiscal-year helper."""

from __future__ import annotations

import calendar
from datetime import date, datetime, timedelta

FISCAL_YEAR_START_MONTH = 4  # April


def fiscal_start_year(year: int, month: int) -> int:
    """Start year of the April-March fiscal year containing (year, month)."""
    return year if month >= FISCAL_YEAR_START_MONTH else year - 1


def fiscal_month_index(month: int) -> int:
    """Position of `month` in fiscal order (April=0 ... March=11)."""
    return (month - FISCAL_YEAR_START_MONTH) % 12


def calendar_year_in_fiscal_year(fy_start: int, month: int) -> int:
    """Calendar year in which `month` falls inside the fiscal year starting `fy_start`."""
    return fy_start if month >= FISCAL_YEAR_START_MONTH else fy_start + 1


def last_day_of_month(year: int, month: int) -> int:
    return calendar.monthrange(year, month)[1]


def clamp_day(year: int, month: int, day: int) -> date:
    """`date(year, month, day)` with `day` clamped to the month's last day."""
    return date(year, month, min(day, last_day_of_month(year, month)))


def sunday_weekday(d: date) -> int:
    """Weekday with Sunday=0 ... Saturday=6."""
    return (d.weekday() + 1) % 7


def week_start(d: date) -> date:
    """The Sunday on or before `d`."""
    if isinstance(d, datetime):
        d = d.date()
    return d - timedelta(days=sunday_weekday(d))


def week_number(start: date) -> int:
    """
    Week-of-year for a Sunday-started week, counted in the week start's year.

    Week 1 is the week containing 1 January; a week that straddles the new
    year keeps the number (and year) of its starting Sunday.
    """
    jan1 = date(start.year, 1, 1)
    days = (start - jan1).days
    return (days + sunday_weekday(jan1) + 1 + 6) // 7


def week_start_from_number(year: int, number: int) -> date:
    """Inverse of `week_number` for a week identified as (year, number)."""
    jan1 = date(year, 1, 1)
    return jan1 - timedelta(days=sunday_weekday(jan1)) + timedelta(weeks=number - 1)


def month_starts(start: date, end: date):
    """Yield the first day of every month overlapping [start, end]."""
    cursor = date(start.year, start.month, 1)
    while cursor <= end:
        yield cursor
        if cursor.month == 12:
            cursor = date(cursor.year + 1, 1, 1)
        else:
            cursor = date(cursor.year, cursor.month + 1, 1)
