# Copyright 2024-2025 David Gordon Nix
# SPDX-License-Identifier: Apache-2.0

"""
Record structures for the recurring record store.

Plain frozen dataclasses: they are created in bulk by the generator and read
back in bulk by cleanup tooling, so they carry no validation beyond
normalising the identity fields.
"""

from __future__ import annotations

import datetime
from dataclasses import dataclass, field
from typing import Any, Mapping, Optional

from ..primitives.enums import (
    FrequencyEnum,
    RecordStatusEnum,
    TimelineTypeEnum,
    UpsertOutcome,
)


@dataclass(frozen=True, slots=True)
class RecordIdentity:
    """
    The natural key of a recurring work record.

    `jurisdiction` is the empty string for obligations that are not scoped to
    a state registration. Surrounding whitespace in `period` is dropped so
    `" April-2024"` and `"April-2024"` name the same occurrence.
    """

    client_id: str
    activity_id: str
    subactivity_id: str
    period: str
    jurisdiction: str = ""

    def __post_init__(self) -> None:
        object.__setattr__(self, "period", self.period.strip())
        object.__setattr__(self, "jurisdiction", (self.jurisdiction or "").strip())

    def as_row(self) -> dict[str, str]:
        return {
            "client_id": self.client_id,
            "activity_id": self.activity_id,
            "subactivity_id": self.subactivity_id,
            "period": self.period,
            "jurisdiction": self.jurisdiction,
        }

    def __str__(self) -> str:
        scope = f"/{self.jurisdiction}" if self.jurisdiction else ""
        return f"{self.client_id}:{self.activity_id}:{self.subactivity_id}:{self.period}{scope}"


@dataclass(frozen=True, slots=True)
class RecordAttributes:
    """Values written only when a record is created; never overwritten."""

    due_date: datetime.datetime
    frequency: FrequencyEnum
    branch_id: Optional[str] = None
    financial_year: Optional[str] = None
    subactivity_name: Optional[str] = None
    status: RecordStatusEnum = RecordStatusEnum.PENDING
    metadata: Mapping[str, Any] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class RecurringRecord:
    """A stored recurring work record."""

    record_id: str
    client_id: str
    activity_id: str
    subactivity_id: str
    period: str
    jurisdiction: str
    frequency: FrequencyEnum
    due_date: datetime.datetime
    created_at: datetime.datetime
    seq: int
    branch_id: Optional[str] = None
    financial_year: Optional[str] = None
    subactivity_name: Optional[str] = None
    status: RecordStatusEnum = RecordStatusEnum.PENDING
    timeline_type: TimelineTypeEnum = TimelineTypeEnum.RECURRING
    metadata: Mapping[str, Any] = field(default_factory=dict)

    @property
    def identity(self) -> RecordIdentity:
        return RecordIdentity(
            client_id=self.client_id,
            activity_id=self.activity_id,
            subactivity_id=self.subactivity_id,
            period=self.period,
            jurisdiction=self.jurisdiction,
        )


@dataclass(frozen=True, slots=True)
class UpsertResult:
    """Outcome of one insert-if-absent call."""

    outcome: UpsertOutcome
    identity: RecordIdentity
    record_id: Optional[str] = None

    @property
    def created(self) -> bool:
        return self.outcome == UpsertOutcome.CREATED
