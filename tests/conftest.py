# Copyright 2024-2025 David Gordon Nix
# SPDX-License-Identifier: Apache-2.0

"""
Shared fixtures for Complyline tests.

Stores are in-memory DuckDB databases, one per test. The generator clock is
pinned to 15 April 2025, 12:00 IST so window-based passes are deterministic.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Iterable, Optional

import pytest

from complyline.core.primitives import EngineSettings, FrequencyEnum
from complyline.core.store import RecordAttributes, RecordIdentity, TimelineStore
from complyline.jobs import (
    Activity,
    Client,
    InMemoryAssignmentSource,
    ObligationAssignment,
    Registration,
    Subactivity,
    TimelineGenerator,
)

# 12:00 in Asia/Kolkata
FIXED_NOW = datetime(2025, 4, 15, 6, 30, tzinfo=timezone.utc)


def make_assignment(
    client_id: str = "C1",
    activity_id: str = "A1",
    subactivity_id: str = "S1",
    name: str = "Monthly Return",
    frequency: FrequencyEnum = FrequencyEnum.MONTHLY,
    config: Any = None,
    registrations: Iterable[Registration] = (),
    field_names: Iterable[str] = (),
    jurisdiction_scoped: Optional[bool] = None,
    branch_id: Optional[str] = "B1",
) -> ObligationAssignment:
    """Create a single-obligation assignment for testing."""
    sub = Subactivity(
        subactivity_id=subactivity_id,
        name=name,
        frequency=frequency,
        frequency_config=config,
        field_names=tuple(field_names),
        jurisdiction_scoped=jurisdiction_scoped,
    )
    return ObligationAssignment(
        client=Client(
            client_id=client_id,
            name=f"Client {client_id}",
            branch_id=branch_id,
            registrations=tuple(registrations),
        ),
        activity=Activity(activity_id=activity_id, name=f"Activity {activity_id}", subactivities=(sub,)),
    )


def make_identity(period: str = "April-2024", jurisdiction: str = "", **kwargs) -> RecordIdentity:
    values = {"client_id": "C1", "activity_id": "A1", "subactivity_id": "S1"}
    values.update(kwargs)
    return RecordIdentity(period=period, jurisdiction=jurisdiction, **values)


def make_attributes(
    due_date: datetime = datetime(2024, 4, 20),
    frequency: FrequencyEnum = FrequencyEnum.MONTHLY,
    **kwargs,
) -> RecordAttributes:
    return RecordAttributes(due_date=due_date, frequency=frequency, **kwargs)


@pytest.fixture
def store():
    """In-memory store enforcing the jurisdiction-aware key."""
    store = TimelineStore()
    yield store
    store.close()


@pytest.fixture
def bare_store():
    """In-memory store without any unique index (holds duplicates)."""
    store = TimelineStore(uniqueness_key=None)
    yield store
    store.close()


@pytest.fixture
def settings() -> EngineSettings:
    return EngineSettings()


@pytest.fixture
def fixed_clock():
    return lambda: FIXED_NOW


@pytest.fixture
def make_generator(store, settings, fixed_clock):
    """Factory for generators over `store` with the pinned clock."""

    def _make(assignments, target_store=None, **kwargs) -> TimelineGenerator:
        return TimelineGenerator(
            target_store if target_store is not None else store,
            InMemoryAssignmentSource(assignments),
            settings=kwargs.pop("settings", settings),
            clock=fixed_clock,
            **kwargs,
        )

    return _make


@pytest.fixture
def assignment_factory():
    return make_assignment


@pytest.fixture
def identity_factory():
    return make_identity


@pytest.fixture
def attributes_factory():
    return make_attributes
