# Copyright 2024-2025 David Gordon Nix
# SPDX-License-Identifier: Apache-2.0

"""Unit tests for period parsing and due-date calculation."""

from __future__ import annotations

import logging
from datetime import date, datetime
from zoneinfo import ZoneInfo

import pytest

from complyline.core.periods import (
    CALENDAR_QUARTERS,
    REGISTER_QUARTERS,
    calculate_due_date,
    derive_period,
    parse_period,
)
from complyline.core.primitives import FrequencyEnum
from complyline.exceptions import FrequencyConfigError, PeriodFormatError

QUARTERLY = {"quarterlyMonths": ["April", "July", "October", "January"], "quarterlyDay": 15}


class TestParsePeriod:
    """Round-tripping identifiers back into calendar fields."""

    def test_quarterly_strips_whitespace(self):
        parsed = parse_period("Quarterly", " Q2-2024 ")
        assert (parsed.quarter, parsed.year) == (2, 2024)

    def test_yearly_forms(self):
        assert parse_period("Yearly", "2024").month is None
        assert parse_period("Yearly", "2024-March").month == 3
        legacy = parse_period("Yearly", "2024-2025")
        assert (legacy.year, legacy.month) == (2024, None)

    @pytest.mark.parametrize(
        "frequency, period",
        [
            ("Yearly", "2024-2026"),
            ("Monthly", "Apr-2024"),
            ("Daily", "2024-13-01"),
            ("Daily", "2023-02-29"),
            ("Hourly", "2025-03-10-24"),
            ("Weekly", "2025-W60"),
            ("Quarterly", "Q5-2024"),
            ("Monthly", ""),
        ],
    )
    def test_invalid_identifiers(self, frequency, period):
        with pytest.raises(PeriodFormatError):
            parse_period(frequency, period)


class TestCalculateDueDate:
    """Due date of each frequency's identifiers."""

    def test_monthly_day(self):
        assert calculate_due_date("Monthly", {"monthlyDay": 20}, "April-2024") == datetime(2024, 4, 20)

    def test_monthly_day_clamped_to_month_end(self):
        assert calculate_due_date("Monthly", {"monthlyDay": 31}, "February-2024") == datetime(2024, 2, 29)

    def test_monthly_time_of_day(self):
        due = calculate_due_date("Monthly", {"monthlyDay": 1, "monthlyTime": "9:00 AM"}, "May-2024")
        assert due == datetime(2024, 5, 1, 9, 0)

    def test_quarterly_register(self):
        """Q1 is July-September, Q3 is January-March."""
        assert calculate_due_date("Quarterly", QUARTERLY, "Q1-2025") == datetime(2025, 7, 15)
        assert calculate_due_date("Quarterly", QUARTERLY, "Q3-2025") == datetime(2025, 1, 15)
        assert calculate_due_date("Quarterly", QUARTERLY, "Q4-2024") == datetime(2024, 4, 15)

    def test_quarterly_calendar(self):
        due = calculate_due_date("Quarterly", QUARTERLY, "Q1-2025", CALENDAR_QUARTERS)
        assert due == datetime(2025, 1, 15)

    @pytest.mark.parametrize("mapping", [REGISTER_QUARTERS, CALENDAR_QUARTERS])
    def test_quarter_due_date_stays_in_the_derived_block(self, mapping):
        """Whatever the mapping, a quarter's due date falls in the block it was derived from."""
        for month in range(1, 13):
            period = derive_period("Quarterly", QUARTERLY, datetime(2025, month, 5), mapping)
            due = calculate_due_date("Quarterly", QUARTERLY, period, mapping)
            assert (due.month - 1) // 3 == (month - 1) // 3
            assert due.year == 2025

    def test_yearly_early_calendar_month_lands_in_next_year(self):
        config = {"yearlyMonth": "February", "yearlyDate": 10}
        assert calculate_due_date("Yearly", config, "2024") == datetime(2025, 2, 10)
        assert calculate_due_date("Yearly", config, "2024-2025") == datetime(2025, 2, 10)

    def test_yearly_single_month(self):
        config = {"yearlyMonth": "July", "yearlyDate": 31}
        assert calculate_due_date("Yearly", config, "2024") == datetime(2024, 7, 31)

    def test_yearly_multi_month(self):
        config = {"yearlyMonths": ["March", "September"], "yearlyDate": 30}
        assert calculate_due_date("Yearly", config, "2024-September") == datetime(2024, 9, 30)
        assert calculate_due_date("Yearly", config, "2024-March") == datetime(2025, 3, 30)
        # Plain year picks the first configured month in fiscal order
        assert calculate_due_date("Yearly", config, "2024") == datetime(2024, 9, 30)

    def test_weekly_earliest_weekday(self):
        config = {"weeklyDays": ["Wednesday", "Monday"], "weeklyTime": "10:00"}
        assert calculate_due_date("Weekly", config, "2025-W11") == datetime(2025, 3, 10, 10, 0)

    def test_daily_and_hourly(self):
        assert calculate_due_date("Daily", {"dailyTime": "17:30"}, "2025-03-10") == datetime(2025, 3, 10, 17, 30)
        assert calculate_due_date("Hourly", {"hourlyInterval": 4}, "2025-03-10-08") == datetime(2025, 3, 10, 8)

    @pytest.mark.parametrize(
        "frequency, config, reference",
        [
            ("Daily", {"dailyTime": "9:00"}, datetime(2025, 3, 10, 15)),
            ("Weekly", {"weeklyDays": ["Monday"], "weeklyTime": "10:00"}, datetime(2025, 3, 13)),
            ("Monthly", {"monthlyDay": 31}, datetime(2024, 2, 3)),
            ("Quarterly", QUARTERLY, datetime(2025, 11, 2)),
            ("Yearly", {"yearlyMonth": "February", "yearlyDate": 10}, datetime(2024, 6, 1)),
        ],
    )
    def test_due_date_derives_back_to_its_period(self, frequency, config, reference):
        period = derive_period(frequency, config, reference)
        due = calculate_due_date(frequency, config, period)
        assert derive_period(frequency, config, due) == period

    def test_period_for_other_frequency(self):
        with pytest.raises(PeriodFormatError):
            calculate_due_date("Monthly", {"monthlyDay": 1}, "Q1-2025")

    def test_invalid_config(self):
        with pytest.raises(FrequencyConfigError):
            calculate_due_date("Monthly", {"monthlyDay": 0}, "April-2024")

    def test_missing_config_falls_back_to_first_of_month(self, caplog):
        """Records without configuration fall back to the first of the current month."""
        with caplog.at_level(logging.WARNING, logger="complyline"):
            due = calculate_due_date(None, None, "April-2024", today=date(2025, 6, 18))
        assert due == datetime(2025, 6, 1)
        assert "falling back" in caplog.text

    def test_fallback_today_is_business_local(self):
        business = ZoneInfo("Asia/Kolkata")
        before = datetime.now(business).date().replace(day=1)
        due = calculate_due_date(None, None, "April-2024")
        after = datetime.now(business).date().replace(day=1)
        assert due.date() in {before, after}

    def test_missing_config_with_frequency(self):
        due = calculate_due_date(FrequencyEnum.MONTHLY, None, "April-2024", today=date(2025, 6, 18))
        assert due == datetime(2025, 6, 1)
