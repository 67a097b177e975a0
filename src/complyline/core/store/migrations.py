# Copyright 2024-2025 David Gordon Nix
# SPDX-License-Identifier: Apache-2.0

"""
Explicit, audited schema and data migrations for the record store.

Nothing here runs implicitly: operators invoke these through the CLI (or
code) with `dry_run=True` first, then for real. Every applied migration
writes a row to the `schema_migrations` table.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

from ...exceptions import DuplicateRecordError
from ..periods.deriver import quarterly_period
from ..periods.quarters import QuarterMapping, get_quarter_mapping
from ..primitives.enums import FrequencyEnum, QuarterMappingEnum
from .records import RecordIdentity
from .schema import UniquenessKey
from .store import IndexInfo, TimelineStore

logger = logging.getLogger(__name__)


@dataclass
class KeyMigrationReport:
    """What `migrate_uniqueness_key` did, or would do on a dry run."""

    dry_run: bool
    target: UniquenessKey
    previous: Optional[UniquenessKey]
    dropped_indexes: List[str] = field(default_factory=list)
    created_index: Optional[str] = None
    duplicate_ids: List[str] = field(default_factory=list)

    @property
    def duplicates_removed(self) -> int:
        return len(self.duplicate_ids)


@dataclass(frozen=True)
class PeriodChange:
    record_id: str
    old_period: str
    new_period: str


@dataclass
class RemapReport:
    """Quarterly periods re-derived from due dates under one mapping."""

    dry_run: bool
    mapping: QuarterMappingEnum
    examined: int = 0
    changes: List[PeriodChange] = field(default_factory=list)
    collisions: List[PeriodChange] = field(default_factory=list)

    @property
    def updated(self) -> int:
        return 0 if self.dry_run else len(self.changes)


def detect_legacy_index(store: TimelineStore) -> Optional[IndexInfo]:
    """A unique index on the records table that ignores jurisdiction, if any."""
    for index in store.unique_indexes():
        if "jurisdiction" not in index.columns and "period" in index.columns:
            return index
    return None


def migrate_uniqueness_key(
    store: TimelineStore, target: UniquenessKey, dry_run: bool = False
) -> KeyMigrationReport:
    """
    Move the store to `target`: dedupe under it, build its index, drop the others.

    Duplicates under the target key are removed first (oldest record kept) so
    the new unique index can be built. The new index is created before the old
    ones are dropped, so the table is never left unprotected.
    """
    indexes = store.unique_indexes()
    previous = store.active_uniqueness_key()
    duplicates = store.duplicate_rows(target)
    report = KeyMigrationReport(
        dry_run=dry_run,
        target=target,
        previous=previous,
        dropped_indexes=[i.name for i in indexes if i.name != target.index_name],
        created_index=(
            None if any(i.name == target.index_name for i in indexes) else target.index_name
        ),
        duplicate_ids=duplicates.loc[duplicates["keep_rank"] > 1, "record_id"].tolist(),
    )

    if dry_run:
        logger.info(
            f"[dry run] Key migration {previous} -> {target}: would remove "
            f"{report.duplicates_removed} duplicates, drop {report.dropped_indexes}, "
            f"create {report.created_index}"
        )
        return report

    removed = store.delete_records(report.duplicate_ids)
    if report.created_index:
        store.create_unique_index(target)
    for name in report.dropped_indexes:
        store.drop_index(name)

    store.record_migration(
        operation="uniqueness_key",
        from_version=previous.version if previous else None,
        to_version=target.version,
        dropped_index=",".join(report.dropped_indexes) or None,
        created_index=report.created_index,
        duplicates_removed=len(removed),
    )
    logger.info(
        f"Key migration {previous} -> {target} applied: removed {len(removed)} duplicates, "
        f"dropped {report.dropped_indexes}, created {report.created_index}"
    )
    return report


def remap_quarter_periods(
    store: TimelineStore,
    mapping: QuarterMapping | QuarterMappingEnum | str,
    dry_run: bool = False,
) -> RemapReport:
    """
    Re-derive every Quarterly period from its due date under `mapping`.

    A record whose corrected identity is already taken (by a record that is
    not moving, or by another record being moved to the same period) is
    reported as a collision and left unchanged.
    """
    mapping = get_quarter_mapping(mapping)
    records = store.records(frequency=FrequencyEnum.QUARTERLY)
    report = RemapReport(dry_run=dry_run, mapping=mapping.name, examined=len(records))

    current = {r.identity for r in records}
    moving = {}
    for record in records:
        corrected = quarterly_period(record.due_date.year, record.due_date.month, mapping)
        if corrected != record.period:
            moving[record.record_id] = (record, corrected)

    vacated = {record.identity for record, _ in moving.values()}
    claimed: set[RecordIdentity] = set()
    planned: List[Tuple[PeriodChange, RecordIdentity]] = []
    for record, corrected in moving.values():
        change = PeriodChange(record.record_id, record.period, corrected)
        target = _with_period(record.identity, corrected)
        occupied = target in current and target not in vacated
        if occupied or target in claimed:
            report.collisions.append(change)
            continue
        claimed.add(target)
        planned.append((change, target))

    if dry_run:
        report.changes = [change for change, _ in planned]
        logger.info(
            f"[dry run] Quarter remap ({mapping.name.value}): {len(report.changes)} changes, "
            f"{len(report.collisions)} collisions out of {report.examined} records"
        )
        return report

    for change, _ in planned:
        try:
            store.update_period(change.record_id, change.new_period)
        except DuplicateRecordError:
            report.collisions.append(change)
            continue
        report.changes.append(change)
        logger.debug(f"{change.record_id}: {change.old_period} -> {change.new_period}")

    store.record_migration(
        operation="remap_quarter_periods",
        details=(
            f"mapping={mapping.name.value} updated={len(report.changes)} "
            f"collisions={len(report.collisions)}"
        ),
    )
    logger.info(
        f"Quarter remap ({mapping.name.value}) applied: {len(report.changes)} updated, "
        f"{len(report.collisions)} collisions"
    )
    return report


def _with_period(identity: RecordIdentity, period: str) -> RecordIdentity:
    return RecordIdentity(
        client_id=identity.client_id,
        activity_id=identity.activity_id,
        subactivity_id=identity.subactivity_id,
        period=period,
        jurisdiction=identity.jurisdiction,
    )
