# Copyright 2024-2025 David Gordon Nix
# SPDX-License-Identifier: Apache-2.0

"""
April-March financial-year helpers.

Used by backfill and cleanup tooling to name a fiscal year, to find the
current and previous one, and to enumerate the period identifiers that belong
to it for each frequency class.
"""

from __future__ import annotations

from datetime import date, datetime, time
from typing import Any, Dict, List, Optional

import pandas as pd

from ..primitives.enums import FrequencyEnum, MonthEnum
from ..primitives.frequency import parse_frequency_config
from ..primitives.model import Model
from .calendar_math import FISCAL_YEAR_START_MONTH, fiscal_start_year
from .deriver import derive_periods, fiscal_ordered_months, monthly_period, quarterly_period
from .quarters import REGISTER_QUARTERS, QuarterMapping, get_quarter_mapping


class FinancialYear(Model):
    """
    A financial year identified by the calendar year it starts in.

    Example:
        ```python
        fy = FinancialYear.containing(date(2025, 2, 10))
        fy.label         # '2024-2025'
        fy.start, fy.end # (date(2024, 4, 1), date(2025, 3, 31))
        ```
    """

    start_year: int

    @classmethod
    def containing(cls, day: date) -> "FinancialYear":
        return cls(start_year=fiscal_start_year(day.year, day.month))

    @classmethod
    def parse(cls, value: Any) -> "FinancialYear":
        """Accept a start year (2024, "2024") or a label ("2024-2025")."""
        if isinstance(value, FinancialYear):
            return value
        text = str(value).strip()
        head, sep, tail = text.partition("-")
        if not head.isdigit() or (sep and (not tail.isdigit() or int(tail) != int(head) + 1)):
            raise ValueError(f"Invalid financial year {value!r}")
        return cls(start_year=int(head))

    @property
    def end_year(self) -> int:
        return self.start_year + 1

    @property
    def label(self) -> str:
        return f"{self.start_year}-{self.end_year}"

    @property
    def start(self) -> date:
        return date(self.start_year, FISCAL_YEAR_START_MONTH, 1)

    @property
    def end(self) -> date:
        return (pd.Timestamp(self.start) + pd.DateOffset(years=1) - pd.Timedelta(days=1)).date()

    @property
    def previous(self) -> "FinancialYear":
        return FinancialYear(start_year=self.start_year - 1)

    def contains(self, day: date) -> bool:
        if isinstance(day, datetime):
            day = day.date()
        return self.start <= day <= self.end

    def months(self) -> pd.PeriodIndex:
        """The twelve calendar months of the year, April first."""
        return pd.period_range(start=f"{self.start_year}-{FISCAL_YEAR_START_MONTH:02d}", periods=12, freq="M")

    def __str__(self) -> str:
        return self.label


def current_financial_year(today: Optional[date] = None) -> FinancialYear:
    return FinancialYear.containing(today or date.today())


def previous_financial_year(today: Optional[date] = None) -> FinancialYear:
    """The year before the current one: April-December of Y gives Y-1, January-March gives Y-2."""
    return current_financial_year(today).previous


def periods_for_fiscal_year(
    frequency: FrequencyEnum | str,
    fiscal_year: FinancialYear | int | str,
    config: Any = None,
    quarter_mapping: QuarterMapping | str = REGISTER_QUARTERS,
) -> List[str]:
    """
    Period identifiers of `frequency` that belong to `fiscal_year`, in order.

    Monthly and Quarterly need no configuration. Yearly without configuration
    (or with one month) gives the single `YYYY` period; a multi-month
    configuration gives one `YYYY-MonthName` per configured month. Hourly,
    Daily and Weekly require configuration and enumerate the whole window.
    """
    frequency = FrequencyEnum(frequency)
    fy = FinancialYear.parse(fiscal_year)
    mapping = get_quarter_mapping(quarter_mapping)
    months = fy.months()

    if frequency == FrequencyEnum.MONTHLY:
        return [monthly_period(p.year, p.month) for p in months]
    if frequency == FrequencyEnum.QUARTERLY:
        labels = [quarterly_period(p.year, p.month, mapping) for p in months]
        return list(dict.fromkeys(labels))
    if frequency == FrequencyEnum.YEARLY:
        if config is None:
            return [str(fy.start_year)]
        cfg = parse_frequency_config(frequency, config)
        if not cfg.is_multi_month:
            return [str(fy.start_year)]
        return [f"{fy.start_year}-{m.value}" for m in fiscal_ordered_months(cfg)]

    end = datetime.combine(fy.end, time(23, 59, 59))
    return derive_periods(frequency, config, fy.start, end, mapping)


def all_periods_for_fiscal_year(
    fiscal_year: FinancialYear | int | str,
    quarter_mapping: QuarterMapping | str = REGISTER_QUARTERS,
) -> Dict[FrequencyEnum, List[str]]:
    """
    Every Monthly, Quarterly and Yearly identifier that can name an occurrence in `fiscal_year`.

    Yearly includes the plain `YYYY` form, each `YYYY-MonthName` form and the
    legacy `YYYY-YYYY` label so purges catch records written by older versions.
    """
    fy = FinancialYear.parse(fiscal_year)
    fiscal_months = [MonthEnum.from_number(p.month) for p in fy.months()]
    return {
        FrequencyEnum.MONTHLY: periods_for_fiscal_year(FrequencyEnum.MONTHLY, fy),
        FrequencyEnum.QUARTERLY: periods_for_fiscal_year(
            FrequencyEnum.QUARTERLY, fy, quarter_mapping=quarter_mapping
        ),
        FrequencyEnum.YEARLY: [
            str(fy.start_year),
            fy.label,
            *(f"{fy.start_year}-{m.value}" for m in fiscal_months),
        ],
    }
