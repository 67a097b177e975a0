# Copyright 2024-2025 David Gordon Nix
# SPDX-License-Identifier: Apache-2.0

"""
Client-obligation assignments as read by the generator.

Clients, activities and their assignments are owned by other systems; this
module only defines the shape the generator reads and an `AssignmentSource`
protocol for supplying it. `InMemoryAssignmentSource` backs tests and the
CLI, which loads assignments from a JSON export.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Dict, Iterable, Iterator, List, Optional, Protocol, Tuple, Union

from pydantic import Field, TypeAdapter

from ..core.primitives.enums import AssignmentStatusEnum, FrequencyEnum
from ..core.primitives.model import Model

logger = logging.getLogger(__name__)


class Registration(Model):
    """A client's registration in one jurisdiction (e.g. a state GST number)."""

    number: str
    state: str
    user_id: Optional[str] = None
    registration_id: Optional[str] = None

    def metadata(self) -> Dict[str, Any]:
        return {
            "registration_number": self.number,
            "registration_state": self.state,
            "registration_user_id": self.user_id,
            "registration_id": self.registration_id,
        }


class Client(Model):
    client_id: str
    name: str
    branch_id: Optional[str] = None
    status: AssignmentStatusEnum = AssignmentStatusEnum.ACTIVE
    registrations: Tuple[Registration, ...] = ()


class Subactivity(Model):
    """
    One obligation inside an activity.

    `frequency_config` is kept as supplied (typed config, canonical mapping or
    legacy flat mapping) and only validated at generation time, so one bad
    configuration fails one obligation rather than the whole load.
    """

    subactivity_id: str
    name: str
    frequency: FrequencyEnum = FrequencyEnum.NONE
    frequency_config: Optional[Any] = None
    field_names: Tuple[str, ...] = ()
    jurisdiction_scoped: Optional[bool] = Field(
        default=None,
        description="Recurs once per client registration; None defers to the name heuristic.",
    )


class Activity(Model):
    activity_id: str
    name: str
    subactivities: Tuple[Subactivity, ...] = ()


class ObligationAssignment(Model):
    """A client assigned to an activity, optionally narrowed to one subactivity."""

    client: Client
    activity: Activity
    subactivity_id: Optional[str] = None
    status: AssignmentStatusEnum = AssignmentStatusEnum.ACTIVE

    @property
    def is_active(self) -> bool:
        return (
            self.status == AssignmentStatusEnum.ACTIVE
            and self.client.status == AssignmentStatusEnum.ACTIVE
        )

    def obligations(self, frequency: Optional[FrequencyEnum] = None) -> List[Subactivity]:
        """
        Recurring subactivities this assignment generates records for.

        An assignment narrowed to one subactivity yields only that one;
        otherwise every recurring subactivity of the activity.
        """
        selected = []
        for sub in self.activity.subactivities:
            if self.subactivity_id is not None and sub.subactivity_id != self.subactivity_id:
                continue
            if not sub.frequency.is_recurring:
                continue
            if frequency is not None and sub.frequency != frequency:
                continue
            selected.append(sub)
        return selected


class AssignmentSource(Protocol):
    """Supplies assignments to the generator."""

    def active_assignments(self) -> Iterable[ObligationAssignment]: ...


class InMemoryAssignmentSource:
    """Assignments held in a list; yields only active ones."""

    def __init__(self, assignments: Iterable[ObligationAssignment] = ()):
        self.assignments: List[ObligationAssignment] = list(assignments)

    def active_assignments(self) -> Iterator[ObligationAssignment]:
        return (a for a in self.assignments if a.is_active)

    def __len__(self) -> int:
        return len(self.assignments)


_ASSIGNMENTS_ADAPTER = TypeAdapter(List[ObligationAssignment])


def load_assignments(path: Union[str, Path]) -> InMemoryAssignmentSource:
    """
    Load assignments from a JSON file holding a list of assignment objects.

    Raises:
        pydantic.ValidationError: If the file does not match the assignment shape.
    """
    data = Path(path).read_bytes()
    assignments = _ASSIGNMENTS_ADAPTER.validate_json(data)
    logger.info(f"Loaded {len(assignments)} assignments from {path}")
    return InMemoryAssignmentSource(assignments)
