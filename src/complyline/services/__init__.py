# Copyright 2024-2025 David Gordon Nix
# SPDX-License-Identifier: Apache-2.0

"""
Complyline Services

Idempotent record creation, duplicate cleanup and the configuration-defaults
policy shared by generation and repair tooling.
"""

from .cleanup import (
    CleanupService,
    DedupeReport,
    DeletionReport,
    DuplicateGroup,
    check_duplicates,
)
from .defaults import DEFAULT_POLICY, DefaultsPolicy, is_jurisdiction_scoped
from .upsert import RecurrenceUpsertService, upsert_recurring_record

__all__ = [
    "CleanupService",
    "DedupeReport",
    "DeletionReport",
    "DuplicateGroup",
    "check_duplicates",
    "DEFAULT_POLICY",
    "DefaultsPolicy",
    "is_jurisdiction_scoped",
    "RecurrenceUpsertService",
    "upsert_recurring_record",
]
