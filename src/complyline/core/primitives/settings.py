# Copyright 2024-2025 David Gordon Nix
# SPDX-License-Identifier: Apache-2.0

"""
Engine settings.

All knobs live on one frozen `EngineSettings` model. Values come from code,
or from `COMPLYLINE_*` environment variables through `EngineSettings.from_env`.
"""

from __future__ import annotations

import os
from typing import Literal, Mapping, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import Field, field_validator

from .enums import FrequencyEnum, QuarterMappingEnum
from .model import Model
from .types import PositiveInt

ENV_PREFIX = "COMPLYLINE_"
DEFAULT_TIMEZONE = "Asia/Kolkata"


class ScheduleSettings(Model):
    """Cron expressions (five fields, business timezone) per frequency class."""

    hourly: str = Field(default="5 * * * *", description="Five past every hour.")
    daily: str = Field(default="0 1 * * *", description="01:00 every day.")
    weekly: str = Field(default="30 0 * * 0", description="00:30 every Sunday.")
    monthly: str = Field(default="0 2 1 * *", description="02:00 on the 1st.")
    quarterly: str = Field(
        default="0 3 1 1,4,7,10 *",
        description="03:00 on the 1st of January, April, July and October.",
    )
    yearly: str = Field(default="0 4 1 4 *", description="04:00 on 1 April.")

    @field_validator("*")
    @classmethod
    def _five_fields(cls, v: str) -> str:
        if len(v.split()) != 5:
            raise ValueError(f"Cron expression must have five fields, got {v!r}")
        return v

    def for_frequency(self, frequency: FrequencyEnum) -> str:
        return getattr(self, frequency.value.lower())


class EngineSettings(Model):
    """
    Configuration for timeline generation.

    Usage Examples:
        # Defaults: India business calendar, in-memory store
        settings = EngineSettings()

        # Calendar quarters and a file-backed store
        settings = EngineSettings(
            quarter_mapping=QuarterMappingEnum.CALENDAR,
            database="/var/lib/complyline/records.duckdb",
        )
    """

    timezone: str = Field(
        default=DEFAULT_TIMEZONE,
        description="IANA timezone in which periods, due dates and cron triggers are evaluated.",
    )
    database: str = Field(
        default=":memory:",
        description="DuckDB database path; ':memory:' keeps records for the process lifetime.",
    )
    quarter_mapping: QuarterMappingEnum = Field(
        default=QuarterMappingEnum.REGISTER,
        description="How calendar months are numbered into quarters Q1-Q4.",
    )
    uniqueness_key_version: Literal[1, 2] = Field(
        default=2,
        description=(
            "Uniqueness key enforced on new stores: 1 = client/activity/subactivity/period, "
            "2 = the same plus jurisdiction."
        ),
    )
    batch_size: PositiveInt = Field(
        default=100,
        description="Assignments between progress log lines in a generation pass.",
    )
    check_duplicates_after_run: bool = Field(
        default=True,
        description="Log a warning when a generation run leaves duplicate groups behind.",
    )
    schedules: ScheduleSettings = Field(default_factory=ScheduleSettings)

    @field_validator("timezone")
    @classmethod
    def _known_timezone(cls, v: str) -> str:
        try:
            ZoneInfo(v)
        except (ZoneInfoNotFoundError, ValueError) as e:
            raise ValueError(f"Unknown timezone {v!r}") from e
        return v

    @property
    def tz(self) -> ZoneInfo:
        return ZoneInfo(self.timezone)

    @classmethod
    def from_env(
        cls, environ: Optional[Mapping[str, str]] = None, **overrides
    ) -> "EngineSettings":
        """
        Build settings from `COMPLYLINE_*` variables.

        Recognised: TIMEZONE, DATABASE, QUARTER_MAPPING, UNIQUENESS_KEY_VERSION,
        BATCH_SIZE, CHECK_DUPLICATES_AFTER_RUN. Keyword overrides win over the
        environment; unset variables fall back to defaults.
        """
        environ = os.environ if environ is None else environ
        values = {}
        for field_name in (
            "timezone",
            "database",
            "quarter_mapping",
            "uniqueness_key_version",
            "batch_size",
            "check_duplicates_after_run",
        ):
            raw = environ.get(f"{ENV_PREFIX}{field_name.upper()}")
            if raw not in (None, ""):
                values[field_name] = raw.strip()
        if "quarter_mapping" in values:
            values["quarter_mapping"] = values["quarter_mapping"].lower()
        for int_field in ("uniqueness_key_version", "batch_size"):
            if int_field in values:
                values[int_field] = int(values[int_field])
        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**values)
