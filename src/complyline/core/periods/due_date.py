# Copyright 2024-2025 David Gordon Nix
# SPDX-License-Identifier: Apache-2.0

"""
Due-date calculation.

`calculate_due_date` parses a period identifier back into its calendar unit
and combines it with the configured day and time of day. Quarter numbers are
resolved through the same `QuarterMapping` the deriver uses, so the two
functions cannot disagree on which months make up a quarter.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Any, Optional
from zoneinfo import ZoneInfo

from ...exceptions import PeriodFormatError
from ..primitives.enums import FrequencyEnum, MonthEnum
from ..primitives.frequency import (
    FrequencyConfigBase,
    HourlyConfig,
    QuarterlyConfig,
    WeeklyConfig,
    YearlyConfig,
    parse_frequency_config,
)
from ..primitives.settings import DEFAULT_TIMEZONE
from .calendar_math import (
    calendar_year_in_fiscal_year,
    clamp_day,
    week_start_from_number,
)
from .deriver import fiscal_ordered_months
from .quarters import REGISTER_QUARTERS, QuarterMapping, get_quarter_mapping

logger = logging.getLogger(__name__)

_MONTH_NAMES = "|".join(m.value for m in MonthEnum)

_PATTERNS = {
    FrequencyEnum.HOURLY: re.compile(r"^(\d{4})-(\d{2})-(\d{2})-(\d{2})$"),
    FrequencyEnum.DAILY: re.compile(r"^(\d{4})-(\d{2})-(\d{2})$"),
    FrequencyEnum.WEEKLY: re.compile(r"^(\d{4})-W(\d{2})$"),
    FrequencyEnum.MONTHLY: re.compile(rf"^({_MONTH_NAMES})-(\d{{4}})$"),
    FrequencyEnum.QUARTERLY: re.compile(r"^Q([1-4])-(\d{4})$"),
    # "2024", "2024-March" or the legacy "2024-2025"
    FrequencyEnum.YEARLY: re.compile(rf"^(\d{{4}})(?:-({_MONTH_NAMES}|\d{{4}}))?$"),
}


@dataclass(frozen=True, slots=True)
class ParsedPeriod:
    """
    Calendar fields recovered from a period identifier.

    Only the fields meaningful for `frequency` are set. For Yearly periods
    `year` is the fiscal start year and `month` is set only for the
    month-qualified form.
    """

    frequency: FrequencyEnum
    year: int
    month: Optional[int] = None
    day: Optional[int] = None
    hour: Optional[int] = None
    week: Optional[int] = None
    quarter: Optional[int] = None


def parse_period(frequency: FrequencyEnum | str, period: str) -> ParsedPeriod:
    """
    Parse `period` for `frequency`.

    Raises:
        PeriodFormatError: If the identifier does not have the shape used for
            `frequency`, or names an impossible date.
    """
    frequency = FrequencyEnum(frequency)
    pattern = _PATTERNS.get(frequency)
    text = (period or "").strip()
    match = pattern.match(text) if pattern else None
    if not match:
        raise PeriodFormatError(f"Invalid {frequency.value} period {period!r}")

    groups = match.groups()
    try:
        if frequency == FrequencyEnum.HOURLY:
            y, m, d, h = (int(g) for g in groups)
            datetime(y, m, d, h)
            return ParsedPeriod(frequency, y, month=m, day=d, hour=h)
        if frequency == FrequencyEnum.DAILY:
            y, m, d = (int(g) for g in groups)
            date(y, m, d)
            return ParsedPeriod(frequency, y, month=m, day=d)
        if frequency == FrequencyEnum.WEEKLY:
            y, w = int(groups[0]), int(groups[1])
            if not 1 <= w <= 54:
                raise ValueError(f"week {w} out of range")
            return ParsedPeriod(frequency, y, week=w)
        if frequency == FrequencyEnum.MONTHLY:
            return ParsedPeriod(frequency, int(groups[1]), month=MonthEnum(groups[0]).number)
        if frequency == FrequencyEnum.QUARTERLY:
            return ParsedPeriod(frequency, int(groups[1]), quarter=int(groups[0]))
    except ValueError as e:
        raise PeriodFormatError(f"Invalid {frequency.value} period {period!r}: {e}") from e

    start_year, suffix = int(groups[0]), groups[1]
    if suffix and suffix.isdigit():
        if int(suffix) != start_year + 1:
            raise PeriodFormatError(f"Invalid Yearly period {period!r}: years must be consecutive")
        suffix = None
    return ParsedPeriod(
        frequency, start_year, month=MonthEnum(suffix).number if suffix else None
    )


def calculate_due_date(
    frequency: FrequencyEnum | str | None,
    config: Any,
    period: str,
    quarter_mapping: QuarterMapping | str = REGISTER_QUARTERS,
    today: Optional[date] = None,
) -> datetime:
    """
    Compute the due date/time of `period`.

    Args:
        frequency: Recurring frequency of the obligation.
        config: Typed or raw frequency configuration.
        period: Identifier produced by `derive_period`/`derive_periods`.
        quarter_mapping: Quarter numbering used to resolve `Qn`.
        today: Business-local date for the no-configuration fallback;
            defaults to today in the default business time zone.

    Returns:
        Naive datetime in business-local wall-clock time.

    Raises:
        FrequencyConfigError: If a configuration is present but invalid.
        PeriodFormatError: If `period` cannot be parsed for `frequency`.

    Example:
        ```python
        calculate_due_date("Monthly", {"monthlyDay": 20}, "April-2024")
        # datetime(2024, 4, 20, 0, 0)
        ```
    """
    if frequency is None or config is None:
        # Degraded path kept for legacy records without configuration
        today = today or datetime.now(ZoneInfo(DEFAULT_TIMEZONE)).date()
        fallback = datetime(today.year, today.month, 1)
        logger.warning(
            f"No frequency configuration for period {period!r} "
            f"(frequency={frequency}); falling back to {fallback.date()}"
        )
        return fallback

    cfg = parse_frequency_config(frequency, config)
    mapping = get_quarter_mapping(quarter_mapping)
    parsed = parse_period(cfg.frequency, period)
    return _due_date(cfg, parsed, mapping)


def _due_date(
    cfg: FrequencyConfigBase, parsed: ParsedPeriod, mapping: QuarterMapping
) -> datetime:
    at = cfg.time_of_day

    if isinstance(cfg, HourlyConfig):
        return datetime(parsed.year, parsed.month, parsed.day, parsed.hour)
    if cfg.frequency == FrequencyEnum.DAILY:
        return datetime.combine(date(parsed.year, parsed.month, parsed.day), at)
    if isinstance(cfg, WeeklyConfig):
        sunday = week_start_from_number(parsed.year, parsed.week)
        return datetime.combine(sunday + timedelta(days=cfg.weekdays[0].offset), at)
    if cfg.frequency == FrequencyEnum.MONTHLY:
        return datetime.combine(clamp_day(parsed.year, parsed.month, cfg.day), at)
    if isinstance(cfg, QuarterlyConfig):
        month = cfg.month_in_block(mapping.block_start_month(parsed.quarter))
        return datetime.combine(clamp_day(parsed.year, month.number, cfg.day), at)
    if isinstance(cfg, YearlyConfig):
        month = parsed.month or fiscal_ordered_months(cfg)[0].number
        year = calendar_year_in_fiscal_year(parsed.year, month)
        return datetime.combine(clamp_day(year, month, cfg.day), at)
    raise PeriodFormatError(f"No due date rule for {cfg.frequency.value}")
