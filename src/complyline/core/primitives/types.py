# Copyright 2024-2025 David Gordon Nix
# SPDX-License-Identifier: Apache-2.0

from __future__ import annotations

from pydantic import Field
from typing_extensions import Annotated

PositiveInt = Annotated[int, Field(strict=True, gt=0)]
DayOfMonth = Annotated[int, Field(ge=1, le=31)]
HourInterval = Annotated[int, Field(ge=1, le=24)]
MonthNumber = Annotated[int, Field(ge=1, le=12)]
