# Copyright 2024-2025 David Gordon Nix
# SPDX-License-Identifier: Apache-2.0

"""
Complyline Core

Primitives (models, enums, frequency configurations, settings), pure period
math, and the recurring record store.
"""

from .periods import (
    FinancialYear,
    QuarterMapping,
    calculate_due_date,
    current_window,
    derive_period,
    derive_periods,
    get_quarter_mapping,
)
from .primitives import (
    EngineSettings,
    FrequencyEnum,
    Model,
    QuarterMappingEnum,
    parse_frequency_config,
)
from .store import RecordAttributes, RecordIdentity, TimelineStore, UpsertResult

__all__ = [
    "FinancialYear",
    "QuarterMapping",
    "calculate_due_date",
    "current_window",
    "derive_period",
    "derive_periods",
    "get_quarter_mapping",
    "EngineSettings",
    "FrequencyEnum",
    "Model",
    "QuarterMappingEnum",
    "parse_frequency_config",
    "RecordAttributes",
    "RecordIdentity",
    "TimelineStore",
    "UpsertResult",
]
