# Copyright 2024-2025 David Gordon Nix
# SPDX-License-Identifier: Apache-2.0

"""
Period derivation.

Turns a frequency, its configuration and a point in time into canonical
period identifiers:

| Frequency | Identifier        | Unit                                        |
|-----------|-------------------|---------------------------------------------|
| Hourly    | `YYYY-MM-DD-HH`   | interval bucket counted from midnight       |
| Daily     | `YYYY-MM-DD`      | calendar day                                |
| Weekly    | `YYYY-Www`        | Sunday-started week (year of its Sunday)    |
| Monthly   | `MonthName-YYYY`  | calendar month                              |
| Quarterly | `Qn-YYYY`         | calendar block, numbered by the mapping     |
| Yearly    | `YYYY` / `YYYY-MonthName` | April-March fiscal year (start year) |

All functions are pure and read only the wall-clock fields of the datetimes
they are given; callers convert instants to the business time zone first.
Missing or invalid configuration raises `FrequencyConfigError`; supplying
defaults is the caller's job.
"""

from __future__ import annotations

from datetime import date, datetime, time, timedelta
from typing import Any, List, Tuple, Union

from ...exceptions import FrequencyConfigError
from ..primitives.enums import FrequencyEnum, MonthEnum
from ..primitives.frequency import (
    HourlyConfig,
    QuarterlyConfig,
    WeeklyConfig,
    YearlyConfig,
    parse_frequency_config,
)
from .calendar_math import (
    calendar_year_in_fiscal_year,
    fiscal_month_index,
    fiscal_start_year,
    month_starts,
    week_number,
    week_start,
)
from .quarters import REGISTER_QUARTERS, QuarterMapping, get_quarter_mapping

Instant = Union[datetime, date]


def _as_datetime(value: Instant) -> datetime:
    if isinstance(value, datetime):
        return value
    return datetime.combine(value, time(0, 0))


def _hour_bucket(moment: datetime, interval: int) -> datetime:
    hour = moment.hour // interval * interval
    return moment.replace(hour=hour, minute=0, second=0, microsecond=0)


def _next_hour_bucket(bucket: datetime, interval: int) -> datetime:
    candidate = bucket + timedelta(hours=interval)
    if candidate.date() != bucket.date():
        # Buckets restart at midnight when 24 is not a multiple of the interval
        return datetime.combine(bucket.date() + timedelta(days=1), time(0, 0))
    return candidate


def hourly_period(moment: datetime, interval: int = 1) -> str:
    bucket = _hour_bucket(moment, interval)
    return f"{bucket:%Y-%m-%d}-{bucket.hour:02d}"


def daily_period(day: date) -> str:
    return f"{day:%Y-%m-%d}"


def weekly_period(day: date) -> str:
    start = week_start(day)
    return f"{start.year}-W{week_number(start):02d}"


def monthly_period(year: int, month: int) -> str:
    return f"{MonthEnum.from_number(month).value}-{year}"


def quarterly_period(
    year: int, month: int, quarter_mapping: QuarterMapping = REGISTER_QUARTERS
) -> str:
    return f"Q{quarter_mapping.quarter_of_month(month)}-{year}"


def yearly_period(fy_start: int, config: YearlyConfig, month: MonthEnum | None = None) -> str:
    if not config.is_multi_month:
        return str(fy_start)
    return f"{fy_start}-{(month or fiscal_ordered_months(config)[0]).value}"


def fiscal_ordered_months(config: YearlyConfig) -> Tuple[MonthEnum, ...]:
    """Configured months sorted April-first."""
    return tuple(sorted(config.months, key=lambda m: fiscal_month_index(m.number)))


def _yearly_month_for(config: YearlyConfig, month: int) -> MonthEnum:
    ordered = fiscal_ordered_months(config)
    position = fiscal_month_index(month)
    for candidate in ordered:
        if fiscal_month_index(candidate.number) >= position:
            return candidate
    return ordered[-1]


def derive_period(
    frequency: FrequencyEnum | str,
    config: Any,
    reference: Instant,
    quarter_mapping: QuarterMapping | str = REGISTER_QUARTERS,
) -> str:
    """
    Return the canonical period identifier for the unit containing `reference`.

    Args:
        frequency: Recurring frequency of the obligation.
        config: Typed or raw frequency configuration.
        reference: Point in time, in business-local wall-clock time.
        quarter_mapping: Quarter numbering for Quarterly periods.

    Raises:
        FrequencyConfigError: If the configuration is missing or invalid.

    Example:
        ```python
        derive_period("Quarterly", quarterly_config, datetime(2025, 9, 12))
        # 'Q1-2025'
        ```
    """
    cfg = parse_frequency_config(frequency, config)
    mapping = get_quarter_mapping(quarter_mapping)
    moment = _as_datetime(reference)

    if isinstance(cfg, HourlyConfig):
        return hourly_period(moment, cfg.interval)
    if cfg.frequency == FrequencyEnum.DAILY:
        return daily_period(moment.date())
    if cfg.frequency == FrequencyEnum.WEEKLY:
        return weekly_period(moment.date())
    if cfg.frequency == FrequencyEnum.MONTHLY:
        return monthly_period(moment.year, moment.month)
    if cfg.frequency == FrequencyEnum.QUARTERLY:
        return quarterly_period(moment.year, moment.month, mapping)
    if isinstance(cfg, YearlyConfig):
        fy_start = fiscal_start_year(moment.year, moment.month)
        return yearly_period(fy_start, cfg, _yearly_month_for(cfg, moment.month))
    raise FrequencyConfigError(f"No period derivation for {cfg.frequency.value}")


def derive_periods(
    frequency: FrequencyEnum | str,
    config: Any,
    start: Instant,
    end: Instant,
    quarter_mapping: QuarterMapping | str = REGISTER_QUARTERS,
) -> List[str]:
    """
    Return every period identifier that occurs in the window [start, end].

    Hourly, daily and weekly windows are stepped unit by unit; a week is
    included only when one of its configured weekdays falls inside the window.
    Monthly, quarterly and yearly windows are walked month by month so each
    qualifying month contributes at most one period: every overlapped month
    for Monthly, and for Quarterly and Yearly only the configured months.
    Identifiers are returned in chronological order without repeats.
    """
    cfg = parse_frequency_config(frequency, config)
    mapping = get_quarter_mapping(quarter_mapping)
    start_dt = _as_datetime(start)
    end_dt = _as_datetime(end)
    if end_dt < start_dt:
        return []

    periods: List[str] = []

    def _add(period: str) -> None:
        if period not in periods:
            periods.append(period)

    if isinstance(cfg, HourlyConfig):
        cursor = _hour_bucket(start_dt, cfg.interval)
        while cursor <= end_dt:
            _add(hourly_period(cursor, cfg.interval))
            cursor = _next_hour_bucket(cursor, cfg.interval)
        return periods

    start_day, end_day = start_dt.date(), end_dt.date()

    if cfg.frequency == FrequencyEnum.DAILY:
        day = start_day
        while day <= end_day:
            _add(daily_period(day))
            day += timedelta(days=1)
        return periods

    if isinstance(cfg, WeeklyConfig):
        sunday = week_start(start_day)
        while sunday <= end_day:
            occurrences = (sunday + timedelta(days=d.offset) for d in cfg.weekdays)
            if any(start_day <= day <= end_day for day in occurrences):
                _add(weekly_period(sunday))
            sunday += timedelta(weeks=1)
        return periods

    for first in month_starts(start_day, end_day):
        if cfg.frequency == FrequencyEnum.MONTHLY:
            _add(monthly_period(first.year, first.month))
        elif isinstance(cfg, QuarterlyConfig):
            if MonthEnum.from_number(first.month) in cfg.months:
                _add(quarterly_period(first.year, first.month, mapping))
        elif isinstance(cfg, YearlyConfig):
            month = MonthEnum.from_number(first.month)
            if month in cfg.months:
                fy_start = fiscal_start_year(first.year, first.month)
                _add(yearly_period(fy_start, cfg, month))
    return periods


def current_window(
    frequency: FrequencyEnum | str, reference: Instant
) -> Tuple[datetime, datetime]:
    """
    The calendar unit of `frequency` containing `reference`, as an inclusive window.

    Hourly passes cover the reference hour, daily passes the day, weekly the
    Sunday-Saturday week, monthly the month, quarterly the 3-month calendar
    block and yearly the April-March fiscal year.
    """
    frequency = FrequencyEnum(frequency)
    moment = _as_datetime(reference)
    day = moment.date()
    midnight = time(0, 0)

    if frequency == FrequencyEnum.HOURLY:
        start = moment.replace(minute=0, second=0, microsecond=0)
        return start, start + timedelta(hours=1) - timedelta(microseconds=1)
    if frequency == FrequencyEnum.DAILY:
        start_day, next_day = day, day + timedelta(days=1)
    elif frequency == FrequencyEnum.WEEKLY:
        start_day = week_start(day)
        next_day = start_day + timedelta(weeks=1)
    elif frequency == FrequencyEnum.MONTHLY:
        start_day = date(day.year, day.month, 1)
        next_day = _add_months(start_day, 1)
    elif frequency == FrequencyEnum.QUARTERLY:
        start_day = date(day.year, (day.month - 1) // 3 * 3 + 1, 1)
        next_day = _add_months(start_day, 3)
    elif frequency == FrequencyEnum.YEARLY:
        fy_start = fiscal_start_year(day.year, day.month)
        start_day = date(fy_start, 4, 1)
        next_day = date(calendar_year_in_fiscal_year(fy_start, 3), 4, 1)
    else:
        raise FrequencyConfigError(f"{frequency.value} frequency does not recur")

    end = datetime.combine(next_day, midnight) - timedelta(microseconds=1)
    return datetime.combine(start_day, midnight), end


def _add_months(first: date, months: int) -> date:
    index = first.month - 1 + months
    return date(first.year + index // 12, index % 12 + 1, 1)
