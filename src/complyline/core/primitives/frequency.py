# Copyright 2024-2025 David Gordon Nix
# SPDX-License-Identifier: Apache-2.0

"""
Frequency configuration models.

Each recurring frequency has its own configuration model carrying only the
fields that frequency needs, combined into the discriminated union
`AnyFrequencyConfig`. A Quarterly configuration without a day-of-month is
therefore a validation error at the boundary instead of a null check deep
inside the period and due-date math.

`parse_frequency_config` also accepts the flat legacy shape stored with older
activities (`monthlyDay`, `quarterlyMonths`, `yearlyMonth`, ...).
"""

from __future__ import annotations

import re
from datetime import time as dt_time
from typing import Any, Literal, Mapping, Optional, Tuple, Union

from pydantic import Field, TypeAdapter, ValidationError, field_validator
from typing_extensions import Annotated

from ...exceptions import FrequencyConfigError
from .enums import FrequencyEnum, MonthEnum, WeekdayEnum
from .model import Model
from .types import DayOfMonth, HourInterval

_TIME_PATTERN = re.compile(
    r"^\s*(\d{1,2}):(\d{2})(?::(\d{2}))?\s*([AaPp][Mm])?\s*$"
)


def parse_time_of_day(value: Any) -> Optional[dt_time]:
    """
    Parse a time of day from the formats used by activity configuration.

    Accepts `datetime.time`, 12-hour strings ("9:00 AM", "12:30 pm") and
    24-hour strings ("17:30", "07:05:00"). Empty values return None.

    Raises:
        ValueError: If the string is not a recognisable time of day.
    """
    if value is None or value == "":
        return None
    if isinstance(value, dt_time):
        return value
    if not isinstance(value, str):
        raise ValueError(f"Unsupported time of day: {value!r}")

    match = _TIME_PATTERN.match(value)
    if not match:
        raise ValueError(f"Unrecognised time of day: {value!r}")

    hours = int(match.group(1))
    minutes = int(match.group(2))
    seconds = int(match.group(3) or 0)
    meridiem = (match.group(4) or "").upper()

    if meridiem:
        if not 1 <= hours <= 12:
            raise ValueError(f"Hour out of range for 12-hour time: {value!r}")
        if meridiem == "PM" and hours != 12:
            hours += 12
        if meridiem == "AM" and hours == 12:
            hours = 0

    return dt_time(hours, minutes, seconds)


class FrequencyConfigBase(Model):
    """Common behaviour for every frequency configuration."""

    frequency: FrequencyEnum

    @property
    def time_of_day(self) -> dt_time:
        """Configured time of day, midnight when not configured."""
        return getattr(self, "time", None) or dt_time(0, 0)


class _TimedConfig(FrequencyConfigBase):
    @field_validator("time", mode="before", check_fields=False)
    @classmethod
    def _parse_time(cls, v: Any) -> Optional[dt_time]:
        return parse_time_of_day(v)


class HourlyConfig(FrequencyConfigBase):
    """Recurs every `interval` hours, aligned to midnight."""

    frequency: Literal[FrequencyEnum.HOURLY] = FrequencyEnum.HOURLY
    interval: HourInterval


class DailyConfig(_TimedConfig):
    frequency: Literal[FrequencyEnum.DAILY] = FrequencyEnum.DAILY
    time: dt_time


class WeeklyConfig(_TimedConfig):
    """Recurs on the given weekdays; the earliest one in a week sets the due date."""

    frequency: Literal[FrequencyEnum.WEEKLY] = FrequencyEnum.WEEKLY
    weekdays: Tuple[WeekdayEnum, ...] = Field(min_length=1)
    time: dt_time

    @field_validator("weekdays", mode="before")
    @classmethod
    def _coerce_weekdays(cls, v: Any) -> Any:
        if isinstance(v, str):
            return (v,)
        return v

    @field_validator("weekdays")
    @classmethod
    def _sort_weekdays(cls, v: Tuple[WeekdayEnum, ...]) -> Tuple[WeekdayEnum, ...]:
        return tuple(sorted(set(v), key=lambda day: day.offset))


class MonthlyConfig(_TimedConfig):
    """Due on `day` of every month (clamped to the month's last day)."""

    frequency: Literal[FrequencyEnum.MONTHLY] = FrequencyEnum.MONTHLY
    day: DayOfMonth
    time: Optional[dt_time] = None


class QuarterlyConfig(_TimedConfig):
    """
    Due on `day` of one configured month in each quarter.

    Exactly one month must fall in each calendar block (Jan-Mar, Apr-Jun,
    Jul-Sep, Oct-Dec). The blocks are the same under every quarter mapping;
    only their Q-numbers differ.
    """

    frequency: Literal[FrequencyEnum.QUARTERLY] = FrequencyEnum.QUARTERLY
    months: Tuple[MonthEnum, ...]
    day: DayOfMonth
    time: Optional[dt_time] = None

    @field_validator("months")
    @classmethod
    def _one_month_per_block(cls, v: Tuple[MonthEnum, ...]) -> Tuple[MonthEnum, ...]:
        unique = sorted(set(v), key=lambda month: month.number)
        blocks = [(month.number - 1) // 3 for month in unique]
        if len(unique) != 4 or sorted(blocks) != [0, 1, 2, 3]:
            raise ValueError(
                "Quarterly months must name exactly one month in each quarter block, "
                f"got {[m.value for m in v]}"
            )
        return tuple(unique)

    def month_in_block(self, block_start_month: int) -> MonthEnum:
        """Return the configured month inside the 3-month block starting at `block_start_month`."""
        for month in self.months:
            if block_start_month <= month.number < block_start_month + 3:
                return month
        raise ValueError(f"No configured month in block starting {block_start_month}")


class YearlyConfig(_TimedConfig):
    """Due on `day` of each configured month, once per fiscal year."""

    frequency: Literal[FrequencyEnum.YEARLY] = FrequencyEnum.YEARLY
    months: Tuple[MonthEnum, ...] = Field(min_length=1)
    day: DayOfMonth
    time: Optional[dt_time] = None

    @field_validator("months", mode="before")
    @classmethod
    def _coerce_months(cls, v: Any) -> Any:
        if isinstance(v, str):
            return (v,)
        return v

    @field_validator("months")
    @classmethod
    def _dedupe_months(cls, v: Tuple[MonthEnum, ...]) -> Tuple[MonthEnum, ...]:
        return tuple(dict.fromkeys(v))

    @property
    def is_multi_month(self) -> bool:
        return len(self.months) > 1


AnyFrequencyConfig = Annotated[
    Union[
        HourlyConfig,
        DailyConfig,
        WeeklyConfig,
        MonthlyConfig,
        QuarterlyConfig,
        YearlyConfig,
    ],
    Field(discriminator="frequency"),
]

_CONFIG_ADAPTER: TypeAdapter = TypeAdapter(AnyFrequencyConfig)

# (canonical field, legacy keys) per frequency
_LEGACY_KEYS: dict[FrequencyEnum, tuple[tuple[str, tuple[str, ...]], ...]] = {
    FrequencyEnum.HOURLY: (("interval", ("hourlyInterval",)),),
    FrequencyEnum.DAILY: (("time", ("dailyTime",)),),
    FrequencyEnum.WEEKLY: (
        ("weekdays", ("weeklyDays",)),
        ("time", ("weeklyTime",)),
    ),
    FrequencyEnum.MONTHLY: (
        ("day", ("monthlyDay",)),
        ("time", ("monthlyTime",)),
    ),
    FrequencyEnum.QUARTERLY: (
        ("months", ("quarterlyMonths",)),
        ("day", ("quarterlyDay",)),
        ("time", ("quarterlyTime",)),
    ),
    FrequencyEnum.YEARLY: (
        ("months", ("yearlyMonth", "yearlyMonths")),
        ("day", ("yearlyDate", "yearlyDay")),
        ("time", ("yearlyTime",)),
    ),
}


def normalize_config_mapping(
    frequency: FrequencyEnum, raw: Mapping[str, Any]
) -> dict[str, Any]:
    """
    Translate a raw configuration mapping into canonical field names.

    Canonical names win over legacy ones; empty values are dropped so that a
    missing field is reported as missing rather than as invalid.
    """
    normalized: dict[str, Any] = {}
    for field_name, legacy_names in _LEGACY_KEYS.get(frequency, ()):
        for key in (field_name, *legacy_names):
            value = raw.get(key)
            if value is None or value == "" or value == []:
                continue
            normalized[field_name] = value
            break
    return normalized


def parse_frequency_config(
    frequency: FrequencyEnum | str, raw: Any
) -> FrequencyConfigBase:
    """
    Build the typed configuration for `frequency` from `raw`.

    Args:
        frequency: Frequency the configuration must belong to.
        raw: A typed config, a canonical mapping, or a legacy flat mapping.

    Returns:
        The matching member of `AnyFrequencyConfig`.

    Raises:
        FrequencyConfigError: If the frequency is not recurring, the
            configuration is absent, belongs to another frequency, or fails
            validation.
    """
    try:
        frequency = FrequencyEnum(frequency)
    except ValueError as e:
        raise FrequencyConfigError(f"Unknown frequency {frequency!r}") from e

    if not frequency.is_recurring:
        raise FrequencyConfigError(f"{frequency.value} frequency does not recur")
    if raw is None:
        raise FrequencyConfigError(f"{frequency.value} frequency requires a configuration")

    if isinstance(raw, FrequencyConfigBase):
        if raw.frequency != frequency:
            raise FrequencyConfigError(
                f"Configuration for {raw.frequency.value} given for {frequency.value} frequency"
            )
        return raw

    if not isinstance(raw, Mapping):
        raise FrequencyConfigError(
            f"{frequency.value} configuration must be a mapping, got {type(raw).__name__}"
        )

    payload = normalize_config_mapping(frequency, raw)
    payload["frequency"] = frequency
    try:
        return _CONFIG_ADAPTER.validate_python(payload)
    except ValidationError as e:
        problems = "; ".join(
            f"{'.'.join(str(p) for p in err['loc'][1:]) or 'config'}: {err['msg']}"
            for err in e.errors()
        )
        raise FrequencyConfigError(
            f"Invalid {frequency.value} configuration: {problems}"
        ) from e
