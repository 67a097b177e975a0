# Copyright 2024-2025 David Gordon Nix
# SPDX-License-Identifier: Apache-2.0

from __future__ import annotations

import logging
from datetime import time

import pytest

from complyline.core.primitives import MonthEnum, MonthlyConfig, YearlyConfig
from complyline.exceptions import FrequencyConfigError
from complyline.services import DEFAULT_POLICY, DefaultsPolicy, is_jurisdiction_scoped


def test_explicit_config_wins():
    cfg = DEFAULT_POLICY.resolve("Monthly", {"monthlyDay": 20}, "GSTR-3B")
    assert cfg.day == 20


def test_missing_monthly_config_uses_default(caplog):
    """Monthly obligations without configuration fall due on the 1st at 9:00 AM."""
    with caplog.at_level(logging.WARNING, logger="complyline"):
        cfg = DEFAULT_POLICY.resolve("Monthly", None, "Payroll")
    assert isinstance(cfg, MonthlyConfig)
    assert (cfg.day, cfg.time_of_day) == (1, time(9, 0))
    assert "Using default Monthly configuration" in caplog.text


def test_partial_quarterly_config_is_completed():
    cfg = DEFAULT_POLICY.resolve("Quarterly", {"quarterlyDay": 20}, "TDS Return")
    assert cfg.day == 20
    assert [m.number for m in cfg.months] == [1, 4, 7, 10]


@pytest.mark.parametrize(
    "name, month, day",
    [
        ("Income Tax Return", MonthEnum.JULY, 31),
        ("  income tax return ", MonthEnum.JULY, 31),
        ("Statutory Audit", MonthEnum.SEPTEMBER, 30),
        ("Tax Audit", MonthEnum.SEPTEMBER, 30),
        ("Legal Litigation", MonthEnum.MARCH, 31),
        ("Annual Return", MonthEnum.MARCH, 31),
    ],
)
def test_named_yearly_defaults(name, month, day):
    cfg = DEFAULT_POLICY.resolve("Yearly", {}, name)
    assert cfg.months == (month,)
    assert cfg.day == day


def test_named_override_for_other_frequency_is_ignored():
    cfg = DEFAULT_POLICY.resolve("Monthly", None, "Income Tax Return")
    assert cfg.day == 1


def test_invalid_explicit_value_is_not_papered_over():
    """A day of 45 is an error in the data, not a gap a default may fill."""
    with pytest.raises(FrequencyConfigError, match="day"):
        DEFAULT_POLICY.resolve("Monthly", {"monthlyDay": 45}, "Payroll")


def test_typed_config_of_another_frequency_is_rejected():
    wrong = YearlyConfig(months=(MonthEnum.MARCH,), day=31)
    with pytest.raises(FrequencyConfigError, match="given for Monthly"):
        DEFAULT_POLICY.resolve("Monthly", wrong, "Payroll")


def test_frequency_without_default():
    with pytest.raises(FrequencyConfigError):
        DEFAULT_POLICY.resolve("Daily", None, "Cash Book")


def test_policy_without_yearly_default():
    with pytest.raises(FrequencyConfigError):
        DefaultsPolicy(yearly=None, named={}).resolve("Yearly", None, "Anything")


def test_jurisdiction_scope_heuristic():
    assert is_jurisdiction_scoped("GST Return")
    assert is_jurisdiction_scoped("GSTR-1")
    assert not is_jurisdiction_scoped("Payroll")
    assert is_jurisdiction_scoped("Monthly Filing", field_names=["GSTIN"])
    assert not is_jurisdiction_scoped("GST Return", explicit=False)
    assert is_jurisdiction_scoped("Payroll", explicit=True)
    assert DefaultsPolicy(jurisdiction_keywords=("vat",)).is_jurisdiction_scoped("VAT Return")
