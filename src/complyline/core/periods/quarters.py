# Copyright 2024-2025 David Gordon Nix
# SPDX-License-Identifier: Apache-2.0

"""
Quarter-to-month mappings.

Both mappings cut the calendar into the same four 3-month blocks (Jan-Mar,
Apr-Jun, Jul-Sep, Oct-Dec) and differ only in which block is called Q1. The
year in a `Qn-YYYY` period is always the calendar year of the block's months.
"""

from __future__ import annotations

from typing import Union

from pydantic import Field, field_validator

from ..primitives.enums import QuarterMappingEnum
from ..primitives.model import Model


class QuarterMapping(Model):
    """
    A named numbering of the four calendar blocks.

    Example:
        ```python
        REGISTER_QUARTERS.quarter_of_month(9)    # 1 (July-September)
        REGISTER_QUARTERS.block_start_month(3)   # 1 (January)
        CALENDAR_QUARTERS.quarter_of_month(9)    # 3
        ```
    """

    name: QuarterMappingEnum
    q1_start_month: int = Field(ge=1, le=10, description="First calendar month of Q1.")

    @field_validator("q1_start_month")
    @classmethod
    def _block_aligned(cls, v: int) -> int:
        if v not in (1, 4, 7, 10):
            raise ValueError(f"Q1 must start a calendar block (1, 4, 7 or 10), got {v}")
        return v

    def quarter_of_month(self, month: int) -> int:
        """Quarter number (1-4) containing calendar `month` (1-12)."""
        if not 1 <= month <= 12:
            raise ValueError(f"Month must be between 1 and 12, got {month}")
        return (month - self.q1_start_month) % 12 // 3 + 1

    def block_start_month(self, quarter: int) -> int:
        """First calendar month (1-12) of `quarter`."""
        if not 1 <= quarter <= 4:
            raise ValueError(f"Quarter must be between 1 and 4, got {quarter}")
        return (self.q1_start_month - 1 + (quarter - 1) * 3) % 12 + 1

    def months_of_quarter(self, quarter: int) -> tuple[int, int, int]:
        first = self.block_start_month(quarter)
        return (first, first + 1, first + 2)


REGISTER_QUARTERS = QuarterMapping(name=QuarterMappingEnum.REGISTER, q1_start_month=7)
CALENDAR_QUARTERS = QuarterMapping(name=QuarterMappingEnum.CALENDAR, q1_start_month=1)

_MAPPINGS = {
    QuarterMappingEnum.REGISTER: REGISTER_QUARTERS,
    QuarterMappingEnum.CALENDAR: CALENDAR_QUARTERS,
}


def get_quarter_mapping(
    mapping: Union[QuarterMapping, QuarterMappingEnum, str],
) -> QuarterMapping:
    """Resolve a mapping instance from an instance, enum member or name."""
    if isinstance(mapping, QuarterMapping):
        return mapping
    return _MAPPINGS[QuarterMappingEnum(mapping)]
