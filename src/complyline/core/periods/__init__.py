# Copyright 2024-2025 David Gordon Nix
# SPDX-License-Identifier: Apache-2.0

"""
Complyline Period Math

Pure functions for period identifiers, due dates, quarter numbering and
April-March financial years.
"""

from .calendar_math import FISCAL_YEAR_START_MONTH, week_number, week_start
from .deriver import current_window, derive_period, derive_periods
from .due_date import ParsedPeriod, calculate_due_date, parse_period
from .fiscal_year import (
    FinancialYear,
    all_periods_for_fiscal_year,
    current_financial_year,
    periods_for_fiscal_year,
    previous_financial_year,
)
from .quarters import (
    CALENDAR_QUARTERS,
    REGISTER_QUARTERS,
    QuarterMapping,
    get_quarter_mapping,
)

__all__ = [
    "FISCAL_YEAR_START_MONTH",
    "week_number",
    "week_start",
    "current_window",
    "derive_period",
    "derive_periods",
    "ParsedPeriod",
    "calculate_due_date",
    "parse_period",
    "FinancialYear",
    "all_periods_for_fiscal_year",
    "current_financial_year",
    "periods_for_fiscal_year",
    "previous_financial_year",
    "CALENDAR_QUARTERS",
    "REGISTER_QUARTERS",
    "QuarterMapping",
    "get_quarter_mapping",
]
