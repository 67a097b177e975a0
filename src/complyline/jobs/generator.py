# Copyright 2024-2025 David Gordon Nix
# SPDX-License-Identifier: Apache-2.0

"""
Timeline generator.

One pass per frequency class. For each active assignment a pass resolves the
obligation's configuration, derives the periods of its window, computes each
due date and hands the record to the upsert service:

    LOAD_ASSIGNMENTS -> DERIVE_PERIODS -> COMPUTE_DUE_DATE -> UPSERT -> RECORD_RESULT

Failure handling inside a pass:

- Configuration and period errors skip that obligation (logged with client,
  activity, subactivity and frequency) and the pass continues.
- `LegacyConstraintError` is counted, with a warning on first occurrence.
- Other record-level store errors are logged and counted as failed.
- `StoreUnavailableError` aborts the pass and propagates to the caller.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, Dict, Iterable, List, Optional, Sequence, Tuple

from ..core.periods.deriver import current_window, derive_periods
from ..core.periods.due_date import calculate_due_date
from ..core.periods.fiscal_year import FinancialYear
from ..core.periods.quarters import get_quarter_mapping
from ..core.primitives.enums import FrequencyEnum, UpsertOutcome
from ..core.primitives.frequency import FrequencyConfigBase
from ..core.primitives.settings import EngineSettings
from ..core.store.records import RecordAttributes, RecordIdentity
from ..core.store.store import TimelineStore
from ..exceptions import (
    FrequencyConfigError,
    LegacyConstraintError,
    PeriodFormatError,
    RecordStoreError,
    StoreUnavailableError,
)
from ..services.cleanup import check_duplicates
from ..services.defaults import DEFAULT_POLICY, DefaultsPolicy
from ..services.upsert import RecurrenceUpsertService
from .assignments import AssignmentSource, ObligationAssignment, Subactivity

logger = logging.getLogger(__name__)

BACKFILL_FREQUENCIES: Tuple[FrequencyEnum, ...] = (
    FrequencyEnum.MONTHLY,
    FrequencyEnum.QUARTERLY,
    FrequencyEnum.YEARLY,
)


@dataclass(frozen=True)
class PlannedRecord:
    """A record a dry run would have upserted."""

    identity: RecordIdentity
    attributes: RecordAttributes


@dataclass
class PassResult:
    """Counters for one generation pass over one frequency class."""

    frequency: FrequencyEnum
    window_start: datetime
    window_end: datetime
    dry_run: bool = False
    processed: int = 0
    created: int = 0
    existing: int = 0
    conflicts: int = 0
    skipped: int = 0
    failed: int = 0
    legacy_conflicts: int = 0
    stopped: bool = False
    planned: List[PlannedRecord] = field(default_factory=list)

    def as_dict(self) -> Dict[str, int]:
        summary = {
            "processed": self.processed,
            "created": self.created,
            "existing": self.existing,
            "conflicts": self.conflicts,
            "skipped": self.skipped,
            "failed": self.failed,
            "legacy_conflicts": self.legacy_conflicts,
        }
        if self.dry_run:
            summary["planned"] = len(self.planned)
        return summary


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class TimelineGenerator:
    """
    Generates recurring work records for active assignments.

    Example:
        ```python
        generator = TimelineGenerator(store, source, settings=EngineSettings())
        generator.run_pass(FrequencyEnum.MONTHLY).as_dict()
        # {'processed': 12, 'created': 12, 'existing': 0, ...}
        generator.backfill_fiscal_year(2024, dry_run=True)
        ```
    """

    def __init__(
        self,
        store: TimelineStore,
        source: AssignmentSource,
        settings: Optional[EngineSettings] = None,
        policy: DefaultsPolicy = DEFAULT_POLICY,
        clock: Callable[[], datetime] = _utc_now,
        upsert_service: Optional[RecurrenceUpsertService] = None,
    ):
        self.store = store
        self.source = source
        self.settings = settings or EngineSettings()
        self.policy = policy
        self.clock = clock
        self.upsert_service = upsert_service or RecurrenceUpsertService(store)
        self.quarter_mapping = get_quarter_mapping(self.settings.quarter_mapping)
        self._legacy_warned = False

    def local_now(self, now: Optional[datetime] = None) -> datetime:
        """`now` (default: the clock) as naive wall-clock time in the business time zone."""
        moment = now or self.clock()
        if moment.tzinfo is None:
            return moment
        return moment.astimezone(self.settings.tz).replace(tzinfo=None)

    # Passes

    def run_pass(
        self,
        frequency: FrequencyEnum | str,
        now: Optional[datetime] = None,
        dry_run: bool = False,
    ) -> PassResult:
        """Generate records of `frequency` for the calendar unit containing `now`."""
        frequency = FrequencyEnum(frequency)
        start, end = current_window(frequency, self.local_now(now))
        return self._run(frequency, start, end, dry_run=dry_run)

    def generate_all(
        self,
        now: Optional[datetime] = None,
        frequencies: Optional[Sequence[FrequencyEnum]] = None,
        dry_run: bool = False,
    ) -> Dict[str, Dict[str, int]]:
        """
        Run every frequency pass for `now` and return per-class summaries.

        Returns:
            `{"daily": {"processed": ..., "created": ...}, "monthly": {...}, ...}`
        """
        reference = now or self.clock()
        summary: Dict[str, Dict[str, int]] = {}
        for frequency in frequencies or FrequencyEnum.recurring():
            result = self.run_pass(frequency, now=reference, dry_run=dry_run)
            summary[frequency.value.lower()] = result.as_dict()
        if self.settings.check_duplicates_after_run and not dry_run:
            groups = check_duplicates(self.store)
            if groups:
                logger.warning(f"Generation left {len(groups)} duplicate groups behind")
        return summary

    def backfill_fiscal_year(
        self,
        fiscal_year: FinancialYear | int | str,
        dry_run: bool = False,
        frequencies: Iterable[FrequencyEnum] = BACKFILL_FREQUENCIES,
        obligation_names: Optional[Iterable[str]] = None,
        stop_event: Optional[threading.Event] = None,
    ) -> Dict[str, PassResult]:
        """
        Generate every period of `fiscal_year` for the given frequency classes.

        Args:
            fiscal_year: Start year, `FinancialYear`, or label such as "2024-2025".
            dry_run: Compute identical periods and due dates without writing.
            frequencies: Frequency classes to backfill.
            obligation_names: Restrict to subactivities with these names
                (case-insensitive), e.g. `["Income Tax Return"]`.
            stop_event: When set, the backfill stops before the next
                assignment. Every upsert is independent, so a stopped backfill
                can simply be run again.
        """
        fy = FinancialYear.parse(fiscal_year)
        start = datetime.combine(fy.start, datetime.min.time())
        end = datetime.combine(fy.end, datetime.max.time())
        names = {n.strip().lower() for n in obligation_names} if obligation_names else None

        logger.info(
            f"{'[dry run] ' if dry_run else ''}Backfilling financial year {fy.label}"
            + (f" for {sorted(names)}" if names else "")
        )
        results: Dict[str, PassResult] = {}
        for frequency in frequencies:
            frequency = FrequencyEnum(frequency)
            result = self._run(
                frequency,
                start,
                end,
                dry_run=dry_run,
                obligation_names=names,
                stop_event=stop_event,
            )
            results[frequency.value.lower()] = result
            if result.stopped:
                break
        return results

    # Internals

    def _run(
        self,
        frequency: FrequencyEnum,
        start: datetime,
        end: datetime,
        dry_run: bool = False,
        obligation_names: Optional[set] = None,
        stop_event: Optional[threading.Event] = None,
    ) -> PassResult:
        result = PassResult(frequency, start, end, dry_run=dry_run)
        prefix = "[dry run] " if dry_run else ""
        logger.info(f"{prefix}Processing {frequency.value} timelines for {start} .. {end}")

        for count, assignment in enumerate(self.source.active_assignments(), start=1):
            if stop_event is not None and stop_event.is_set():
                result.stopped = True
                logger.warning(f"{frequency.value} pass stopped after {count - 1} assignments")
                break
            for sub in assignment.obligations(frequency):
                if obligation_names is not None and sub.name.strip().lower() not in obligation_names:
                    continue
                result.processed += 1
                self._process(assignment, sub, start, end, result)
            if count % self.settings.batch_size == 0:
                logger.debug(f"{frequency.value} pass: {count} assignments processed")

        logger.info(
            f"{prefix}{frequency.value} processing complete: {result.processed} processed, "
            f"{result.created} created, {result.skipped} skipped, {result.failed} failed"
        )
        return result

    def _process(
        self,
        assignment: ObligationAssignment,
        sub: Subactivity,
        start: datetime,
        end: datetime,
        result: PassResult,
    ) -> None:
        client, activity = assignment.client, assignment.activity
        context = (
            f"client={client.client_id} activity={activity.activity_id} "
            f"subactivity={sub.subactivity_id} ({sub.name}) frequency={sub.frequency.value}"
        )
        try:
            config = self.policy.resolve(sub.frequency, sub.frequency_config, sub.name)
            planned = [
                (period, self._due_date(sub, config, period))
                for period in derive_periods(
                    sub.frequency, config, start, end, self.quarter_mapping
                )
            ]
        except (FrequencyConfigError, PeriodFormatError) as e:
            result.skipped += 1
            logger.warning(f"Skipping {context}: {e}")
            return

        scoped = self.policy.is_jurisdiction_scoped(
            sub.name, sub.jurisdiction_scoped, sub.field_names
        )
        registrations = client.registrations if scoped else ()

        for period, due_date in planned:
            attributes = RecordAttributes(
                due_date=due_date,
                frequency=sub.frequency,
                branch_id=client.branch_id,
                financial_year=FinancialYear.containing(due_date).label,
                subactivity_name=sub.name,
            )
            if not registrations:
                identity = RecordIdentity(
                    client.client_id, activity.activity_id, sub.subactivity_id, period
                )
                self._write(identity, attributes, result, context)
                continue
            for registration in registrations:
                identity = RecordIdentity(
                    client.client_id,
                    activity.activity_id,
                    sub.subactivity_id,
                    period,
                    jurisdiction=registration.state,
                )
                scoped_attributes = RecordAttributes(
                    due_date=attributes.due_date,
                    frequency=attributes.frequency,
                    branch_id=attributes.branch_id,
                    financial_year=attributes.financial_year,
                    subactivity_name=attributes.subactivity_name,
                    metadata=registration.metadata(),
                )
                self._write(identity, scoped_attributes, result, context)

    def _due_date(self, sub: Subactivity, config: FrequencyConfigBase, period: str) -> datetime:
        return calculate_due_date(
            sub.frequency, config, period, self.quarter_mapping, today=self.local_now().date()
        )

    def _write(
        self,
        identity: RecordIdentity,
        attributes: RecordAttributes,
        result: PassResult,
        context: str,
    ) -> None:
        if result.dry_run:
            result.planned.append(PlannedRecord(identity, attributes))
            return
        try:
            outcome = self.upsert_service.upsert(identity, attributes)
        except StoreUnavailableError:
            logger.error(f"Record store unavailable; aborting {result.frequency.value} pass")
            raise
        except LegacyConstraintError as e:
            result.legacy_conflicts += 1
            if not self._legacy_warned:
                logger.warning(
                    f"Legacy unique index {e.index_names} blocked {identity}; "
                    f"migrate the uniqueness key to allow per-jurisdiction records"
                )
                self._legacy_warned = True
            return
        except RecordStoreError as e:
            result.failed += 1
            logger.error(f"Failed to write {identity} ({context}): {e}")
            return

        if outcome.outcome == UpsertOutcome.CREATED:
            result.created += 1
            logger.info(f"Created {attributes.frequency.value} record {identity} due {attributes.due_date}")
        elif outcome.outcome == UpsertOutcome.EXISTING:
            result.existing += 1
        elif outcome.outcome == UpsertOutcome.CONFLICT:
            result.conflicts += 1
