# Copyright 2024-2025 David Gordon Nix
# SPDX-License-Identifier: Apache-2.0

"""
Complyline Jobs

Timeline generation passes, fiscal-year backfill, and the cron scheduler that
drives them.
"""

from .assignments import (
    Activity,
    AssignmentSource,
    Client,
    InMemoryAssignmentSource,
    ObligationAssignment,
    Registration,
    Subactivity,
    load_assignments,
)
from .generator import BACKFILL_FREQUENCIES, PassResult, PlannedRecord, TimelineGenerator
from .scheduler import ScheduledEntry, Scheduler

__all__ = [
    "Activity",
    "AssignmentSource",
    "Client",
    "InMemoryAssignmentSource",
    "ObligationAssignment",
    "Registration",
    "Subactivity",
    "load_assignments",
    "BACKFILL_FREQUENCIES",
    "PassResult",
    "PlannedRecord",
    "TimelineGenerator",
    "ScheduledEntry",
    "Scheduler",
]
