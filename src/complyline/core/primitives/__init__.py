# Copyright 2024-2025 David Gordon Nix
# SPDX-License-Identifier: Apache-2.0

"""
Complyline Core Primitives

Building blocks shared by every layer: the frozen model base, enums,
per-frequency configuration models and engine settings.
"""

from .enums import (
    AssignmentStatusEnum,
    FrequencyEnum,
    MonthEnum,
    QuarterMappingEnum,
    RecordStatusEnum,
    TimelineTypeEnum,
    UpsertOutcome,
    WeekdayEnum,
    enum_to_string,
)
from .frequency import (
    AnyFrequencyConfig,
    DailyConfig,
    FrequencyConfigBase,
    HourlyConfig,
    MonthlyConfig,
    QuarterlyConfig,
    WeeklyConfig,
    YearlyConfig,
    normalize_config_mapping,
    parse_frequency_config,
    parse_time_of_day,
)
from .model import Model
from .settings import DEFAULT_TIMEZONE, EngineSettings, ScheduleSettings
from .types import DayOfMonth, HourInterval, MonthNumber, PositiveInt

__all__ = [
    # Enums
    "AssignmentStatusEnum",
    "FrequencyEnum",
    "MonthEnum",
    "QuarterMappingEnum",
    "RecordStatusEnum",
    "TimelineTypeEnum",
    "UpsertOutcome",
    "WeekdayEnum",
    "enum_to_string",
    # Frequency configuration
    "AnyFrequencyConfig",
    "DailyConfig",
    "FrequencyConfigBase",
    "HourlyConfig",
    "MonthlyConfig",
    "QuarterlyConfig",
    "WeeklyConfig",
    "YearlyConfig",
    "normalize_config_mapping",
    "parse_frequency_config",
    "parse_time_of_day",
    # Model and settings
    "Model",
    "DEFAULT_TIMEZONE",
    "EngineSettings",
    "ScheduleSettings",
    # Types
    "DayOfMonth",
    "HourInterval",
    "MonthNumber",
    "PositiveInt",
]
