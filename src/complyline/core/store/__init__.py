# Copyright 2024-2025 David Gordon Nix
# SPDX-License-Identifier: Apache-2.0

"""
Recurring record store.

DuckDB-backed storage for recurring work records, the versioned uniqueness
keys that protect it, and the explicit migrations between them.
"""

from .migrations import (
    KeyMigrationReport,
    PeriodChange,
    RemapReport,
    detect_legacy_index,
    migrate_uniqueness_key,
    remap_quarter_periods,
)
from .records import RecordAttributes, RecordIdentity, RecurringRecord, UpsertResult
from .schema import (
    JURISDICTION_KEY,
    LEGACY_KEY,
    TABLE_NAME,
    UniquenessKey,
    key_for_version,
)
from .store import IndexInfo, TimelineStore

__all__ = [
    "KeyMigrationReport",
    "PeriodChange",
    "RemapReport",
    "detect_legacy_index",
    "migrate_uniqueness_key",
    "remap_quarter_periods",
    "RecordAttributes",
    "RecordIdentity",
    "RecurringRecord",
    "UpsertResult",
    "JURISDICTION_KEY",
    "LEGACY_KEY",
    "TABLE_NAME",
    "UniquenessKey",
    "key_for_version",
    "IndexInfo",
    "TimelineStore",
]
