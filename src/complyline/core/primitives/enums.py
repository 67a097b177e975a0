# Copyright 2024-2025 David Gordon Nix
# SPDX-License-Identifier: Apache-2.0

from __future__ import annotations

from enum import Enum
from typing import Optional


class FrequencyEnum(str, Enum):
    """
    How often an obligation recurs.

    NONE and ONE_TIME are carried for completeness of the activity catalogue
    but never produce recurring work records.
    """

    NONE = "None"
    ONE_TIME = "OneTime"
    HOURLY = "Hourly"
    DAILY = "Daily"
    WEEKLY = "Weekly"
    MONTHLY = "Monthly"
    QUARTERLY = "Quarterly"
    YEARLY = "Yearly"

    @property
    def is_recurring(self) -> bool:
        return self not in (FrequencyEnum.NONE, FrequencyEnum.ONE_TIME)

    @classmethod
    def recurring(cls) -> tuple["FrequencyEnum", ...]:
        """Recurring frequencies in generation order (shortest period first)."""
        return (
            cls.HOURLY,
            cls.DAILY,
            cls.WEEKLY,
            cls.MONTHLY,
            cls.QUARTERLY,
            cls.YEARLY,
        )


class MonthEnum(str, Enum):
    """Calendar months by their English names (the period identifier spelling)."""

    JANUARY = "January"
    FEBRUARY = "February"
    MARCH = "March"
    APRIL = "April"
    MAY = "May"
    JUNE = "June"
    JULY = "July"
    AUGUST = "August"
    SEPTEMBER = "September"
    OCTOBER = "October"
    NOVEMBER = "November"
    DECEMBER = "December"

    @property
    def number(self) -> int:
        """1-based month number (January=1)."""
        return list(MonthEnum).index(self) + 1

    @classmethod
    def from_number(cls, number: int) -> "MonthEnum":
        if not 1 <= number <= 12:
            raise ValueError(f"Month number must be between 1 and 12, got {number}")
        return list(cls)[number - 1]


class WeekdayEnum(str, Enum):
    """Weekdays, ordered Sunday-first to match the week numbering."""

    SUNDAY = "Sunday"
    MONDAY = "Monday"
    TUESDAY = "Tuesday"
    WEDNESDAY = "Wednesday"
    THURSDAY = "Thursday"
    FRIDAY = "Friday"
    SATURDAY = "Saturday"

    @property
    def offset(self) -> int:
        """Days after Sunday (Sunday=0 ... Saturday=6)."""
        return list(WeekdayEnum).index(self)


class RecordStatusEnum(str, Enum):
    """Lifecycle status of a recurring work record."""

    PENDING = "pending"
    ONGOING = "ongoing"
    DELAYED = "delayed"
    COMPLETED = "completed"


class TimelineTypeEnum(str, Enum):
    ONE_TIME = "oneTime"
    RECURRING = "recurring"


class AssignmentStatusEnum(str, Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"


class QuarterMappingEnum(str, Enum):
    """
    Named quarter-to-month mappings.

    REGISTER numbers quarters the way regulatory registers do (July starts
    Q1); CALENDAR is the plain January-first numbering.
    """

    REGISTER = "register"
    CALENDAR = "calendar"


class UpsertOutcome(str, Enum):
    """What an idempotent insert did."""

    CREATED = "created"
    EXISTING = "existing"  # Identity already stored; nothing written
    CONFLICT = "conflict"  # Lost a concurrent race; the winner's record stands
    PLANNED = "planned"  # Dry run; nothing written


def enum_to_string(value: Optional[Enum | str]) -> Optional[str]:
    """Return the string value of an enum member, passing strings through."""
    if value is None:
        return None
    if isinstance(value, Enum):
        return value.value
    return str(value)
