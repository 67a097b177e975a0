# Copyright 2024-2025 David Gordon Nix
# SPDX-License-Identifier: Apache-2.0

"""
Duplicate detection and administrative cleanup of recurring records.

All destructive operations take `dry_run`; a dry run computes exactly the
set of record ids the real run would delete, so its report can be reviewed
before anything is removed. Every operation is safe to re-run.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Iterable, List, Optional

import pandas as pd

from ..core.periods.fiscal_year import FinancialYear, all_periods_for_fiscal_year
from ..core.periods.quarters import REGISTER_QUARTERS, QuarterMapping
from ..core.store.migrations import detect_legacy_index
from ..core.store.schema import JURISDICTION_KEY, UniquenessKey
from ..core.store.store import TimelineStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DuplicateGroup:
    """Records sharing one identity; the first created is kept."""

    key: tuple
    keep_id: str
    delete_ids: tuple

    @property
    def size(self) -> int:
        return 1 + len(self.delete_ids)


@dataclass
class DedupeReport:
    dry_run: bool
    groups: List[DuplicateGroup] = field(default_factory=list)
    deleted_ids: List[str] = field(default_factory=list)

    @property
    def deleted_count(self) -> int:
        return len(self.deleted_ids)


@dataclass
class DeletionReport:
    """Records removed (or, on a dry run, selected) by an administrative purge."""

    dry_run: bool
    reason: str
    record_ids: List[str] = field(default_factory=list)

    @property
    def count(self) -> int:
        return len(self.record_ids)


class CleanupService:
    """
    Finds and removes duplicate recurring records.

    Duplicates are records whose identity under `key` (whitespace-trimmed
    period) is shared; within a group the earliest `created_at` survives, with
    insertion order breaking ties.

    Example:
        ```python
        cleanup = CleanupService(store)
        preview = cleanup.remove_duplicates(dry_run=True)
        applied = cleanup.remove_duplicates()
        assert applied.deleted_ids == preview.deleted_ids
        ```
    """

    def __init__(self, store: TimelineStore, key: UniquenessKey = JURISDICTION_KEY):
        self.store = store
        self.key = key
        self._legacy_warned = False

    def check_legacy_index(self) -> bool:
        """Warn (once per service) when the store still has a jurisdiction-blind unique index."""
        legacy = detect_legacy_index(self.store)
        if legacy is not None and not self._legacy_warned:
            logger.warning(
                f"Legacy unique index {legacy.name} on {legacy.columns} ignores jurisdiction "
                f"and will reject per-state records; run the uniqueness key migration"
            )
            self._legacy_warned = True
        return legacy is not None

    def find_duplicates(self) -> List[DuplicateGroup]:
        self.check_legacy_index()
        rows = self.store.duplicate_rows(self.key)
        return _groups_from_rows(rows, self.key)

    def remove_duplicates(self, dry_run: bool = False) -> DedupeReport:
        groups = self.find_duplicates()
        report = DedupeReport(dry_run=dry_run, groups=groups)
        planned = [record_id for group in groups for record_id in group.delete_ids]

        if dry_run:
            report.deleted_ids = planned
            logger.info(
                f"[dry run] {len(planned)} duplicate records in {len(groups)} groups would be deleted"
            )
            return report

        deleted = set(self.store.delete_records(planned))
        report.deleted_ids = [record_id for record_id in planned if record_id in deleted]
        logger.info(f"Deleted {report.deleted_count} duplicate records in {len(groups)} groups")
        return report

    def purge_fiscal_year(
        self,
        fiscal_year: FinancialYear | int | str,
        dry_run: bool = False,
        quarter_mapping: QuarterMapping | str = REGISTER_QUARTERS,
    ) -> DeletionReport:
        """
        Delete Monthly, Quarterly and Yearly records whose period belongs to `fiscal_year`.

        Used before regenerating a year whose records were built with a wrong
        configuration or quarter mapping.
        """
        fy = FinancialYear.parse(fiscal_year)
        ids: List[str] = []
        for frequency, periods in all_periods_for_fiscal_year(fy, quarter_mapping).items():
            ids.extend(r.record_id for r in self.store.records(frequency=frequency, periods=periods))
        return self._delete(ids, dry_run, reason=f"fiscal year {fy.label}")

    def remove_unscoped_records(
        self, activity_ids: Iterable[str], dry_run: bool = False
    ) -> DeletionReport:
        """
        Delete records of jurisdiction-scoped activities that carry no jurisdiction.

        Such records predate per-state generation and shadow nothing once the
        per-state records exist.
        """
        ids: List[str] = []
        for activity_id in dict.fromkeys(activity_ids):
            ids.extend(
                r.record_id for r in self.store.records(activity_id=activity_id) if not r.jurisdiction
            )
        return self._delete(ids, dry_run, reason="unscoped records of scoped activities")

    def _delete(self, ids: List[str], dry_run: bool, reason: str) -> DeletionReport:
        report = DeletionReport(dry_run=dry_run, reason=reason)
        if dry_run:
            report.record_ids = ids
            logger.info(f"[dry run] {len(ids)} records would be deleted ({reason})")
            return report
        report.record_ids = self.store.delete_records(ids)
        logger.info(f"Deleted {report.count} records ({reason})")
        return report


def _groups_from_rows(rows: pd.DataFrame, key: UniquenessKey) -> List[DuplicateGroup]:
    if rows.empty:
        return []
    group_columns = [("group_period" if c == "period" else c) for c in key.columns]
    groups: List[DuplicateGroup] = []
    for group_key, frame in rows.groupby(group_columns, sort=False):
        ordered = frame.sort_values("keep_rank")
        ids = ordered["record_id"].tolist()
        groups.append(
            DuplicateGroup(
                key=group_key if isinstance(group_key, tuple) else (group_key,),
                keep_id=ids[0],
                delete_ids=tuple(ids[1:]),
            )
        )
    return groups


def check_duplicates(store: TimelineStore, key: Optional[UniquenessKey] = None) -> List[DuplicateGroup]:
    """Post-run consistency check: log a warning per duplicate group found."""
    groups = CleanupService(store, key or JURISDICTION_KEY).find_duplicates()
    for group in groups:
        logger.warning(f"Duplicate records for {group.key}: keeping {group.keep_id}, extra {group.delete_ids}")
    return groups
