# Copyright 2024-2025 David Gordon Nix
# SPDX-License-Identifier: Apache-2.0

"""
Operator command line.

Every destructive command accepts `--dry-run`; results are printed as JSON.

Usage:
    complyline --assignments clients.json generate --frequency Monthly
    complyline --assignments clients.json backfill --previous --obligation "Income Tax Return" --dry-run
    complyline --database records.duckdb dedupe --dry-run
    complyline --database records.duckdb migrate-index --to-version 2
    complyline --assignments clients.json schedule
"""

from __future__ import annotations

import argparse
import json
import logging
import signal
import sys
import threading
from contextlib import contextmanager
from dataclasses import asdict, is_dataclass
from datetime import date, datetime
from enum import Enum
from typing import Any, Iterator, List, Optional

from .core.periods.fiscal_year import FinancialYear, previous_financial_year
from .core.primitives.enums import FrequencyEnum, QuarterMappingEnum
from .core.primitives.settings import EngineSettings
from .core.store.migrations import migrate_uniqueness_key, remap_quarter_periods
from .core.store.schema import key_for_version
from .core.store.store import TimelineStore
from .jobs.assignments import InMemoryAssignmentSource, load_assignments
from .jobs.generator import BACKFILL_FREQUENCIES, TimelineGenerator
from .jobs.scheduler import Scheduler
from .services.cleanup import CleanupService

logger = logging.getLogger("complyline.cli")

_RECURRING = [f.value for f in FrequencyEnum.recurring()]


def _to_jsonable(obj: Any) -> Any:
    """Recursively convert reports to JSON-serializable structures."""
    if is_dataclass(obj) and not isinstance(obj, type):
        data = asdict(obj)
        for name in ("deleted_count", "count", "duplicates_removed", "updated"):
            if hasattr(obj, name):
                data[name] = getattr(obj, name)
        return _to_jsonable(data)
    if isinstance(obj, dict):
        return {str(_to_jsonable(k)): _to_jsonable(v) for k, v in obj.items()}
    if isinstance(obj, (list, tuple, set)):
        return [_to_jsonable(v) for v in obj]
    if isinstance(obj, Enum):
        return obj.value
    if isinstance(obj, (datetime, date)):
        return obj.isoformat()
    if isinstance(obj, (str, int, float, bool)) or obj is None:
        return obj
    return str(obj)


def _emit(payload: Any) -> None:
    print(json.dumps(_to_jsonable(payload), indent=2))


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="complyline", description="Recurring compliance timeline engine."
    )
    parser.add_argument("--log-level", default="INFO", choices=["DEBUG", "INFO", "WARNING", "ERROR"])
    parser.add_argument("--database", default=None, help="DuckDB path (default: settings/env)")
    parser.add_argument("--timezone", default=None, help="Business time zone (default: settings/env)")
    parser.add_argument(
        "--quarter-mapping",
        default=None,
        choices=[m.value for m in QuarterMappingEnum],
        help="Quarter numbering (default: settings/env)",
    )
    parser.add_argument("--assignments", default=None, help="JSON file of client-obligation assignments")
    sub = parser.add_subparsers(dest="command", required=True)

    gen = sub.add_parser("generate", help="Run generation passes for now")
    gen.add_argument("--frequency", action="append", choices=_RECURRING, help="Repeatable; default all")
    gen.add_argument("--now", default=None, help="ISO reference instant (default: current time)")
    gen.add_argument("--dry-run", action="store_true")

    backfill = sub.add_parser("backfill", help="Generate every period of a financial year")
    which = backfill.add_mutually_exclusive_group(required=True)
    which.add_argument("--fiscal-year", type=FinancialYear.parse, help="Start year or label, e.g. 2024 or 2024-2025")
    which.add_argument("--previous", action="store_true", help="The financial year before the current one")
    backfill.add_argument("--frequency", action="append", choices=_RECURRING)
    backfill.add_argument("--obligation", action="append", help="Restrict to subactivity names (repeatable)")
    backfill.add_argument("--purge-first", action="store_true", help="Delete the year's records before regenerating")
    backfill.add_argument("--dry-run", action="store_true")

    dedupe = sub.add_parser("dedupe", help="Report or remove duplicate records")
    dedupe.add_argument("--key-version", type=int, choices=[1, 2], default=2)
    dedupe.add_argument("--dry-run", action="store_true")

    purge = sub.add_parser("purge-fy", help="Delete a financial year's Monthly/Quarterly/Yearly records")
    purge.add_argument("--fiscal-year", type=FinancialYear.parse, required=True)
    purge.add_argument("--dry-run", action="store_true")

    unscoped = sub.add_parser("remove-unscoped", help="Delete jurisdiction-less records of scoped activities")
    unscoped.add_argument("--activity", action="append", required=True, help="Activity id (repeatable)")
    unscoped.add_argument("--dry-run", action="store_true")

    remap = sub.add_parser("remap-quarters", help="Re-derive Quarterly periods from due dates")
    remap.add_argument("--dry-run", action="store_true")

    migrate = sub.add_parser("migrate-index", help="Move the store to another uniqueness key")
    migrate.add_argument("--to-version", type=int, choices=[1, 2], default=2)
    migrate.add_argument("--dry-run", action="store_true")

    schedule = sub.add_parser("schedule", help="Run the cron scheduler until interrupted")
    schedule.add_argument("--run-now", action="append", choices=[f.lower() for f in _RECURRING])
    schedule.add_argument("--status", action="store_true", help="Print trigger status and exit")
    return parser


def _settings(args: argparse.Namespace) -> EngineSettings:
    return EngineSettings.from_env(
        database=args.database,
        timezone=args.timezone,
        quarter_mapping=args.quarter_mapping,
    )


def _generator(args: argparse.Namespace, store: TimelineStore, settings: EngineSettings) -> TimelineGenerator:
    source = load_assignments(args.assignments) if args.assignments else InMemoryAssignmentSource()
    if not args.assignments:
        logger.warning("No --assignments file given; nothing will be generated")
    return TimelineGenerator(store, source, settings=settings)


@contextmanager
def _stop_on_signal() -> Iterator[threading.Event]:
    """An event set by SIGINT or SIGTERM; previous handlers are restored on exit."""
    stop = threading.Event()

    def _handler(signum, frame):
        logger.warning(f"Received signal {signum}; stopping")
        stop.set()

    previous = {sig: signal.signal(sig, _handler) for sig in (signal.SIGINT, signal.SIGTERM)}
    try:
        yield stop
    finally:
        for sig, handler in previous.items():
            signal.signal(sig, handler)


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    settings = _settings(args)
    store = TimelineStore.from_settings(settings)
    try:
        return _dispatch(args, store, settings)
    finally:
        store.close()


def _dispatch(args: argparse.Namespace, store: TimelineStore, settings: EngineSettings) -> int:
    command = args.command

    if command == "generate":
        generator = _generator(args, store, settings)
        frequencies = [FrequencyEnum(f) for f in args.frequency] if args.frequency else None
        now = datetime.fromisoformat(args.now) if args.now else None
        _emit(generator.generate_all(now=now, frequencies=frequencies, dry_run=args.dry_run))
        return 0

    if command == "backfill":
        fy = previous_financial_year() if args.previous else FinancialYear.parse(args.fiscal_year)
        output = {"fiscal_year": fy.label}
        if args.purge_first:
            output["purged"] = CleanupService(store).purge_fiscal_year(
                fy, dry_run=args.dry_run, quarter_mapping=settings.quarter_mapping
            )
        generator = _generator(args, store, settings)
        frequencies = [FrequencyEnum(f) for f in args.frequency] if args.frequency else BACKFILL_FREQUENCIES
        with _stop_on_signal() as stop:
            results = generator.backfill_fiscal_year(
                fy,
                dry_run=args.dry_run,
                frequencies=frequencies,
                obligation_names=args.obligation,
                stop_event=stop,
            )
        output["results"] = {name: result.as_dict() for name, result in results.items()}
        if args.dry_run:
            output["planned"] = [
                {"identity": planned.identity, "due_date": planned.attributes.due_date}
                for result in results.values()
                for planned in result.planned
            ]
        _emit(output)
        return 0

    if command == "dedupe":
        report = CleanupService(store, key_for_version(args.key_version)).remove_duplicates(
            dry_run=args.dry_run
        )
        _emit(report)
        return 0

    if command == "purge-fy":
        report = CleanupService(store).purge_fiscal_year(
            args.fiscal_year, dry_run=args.dry_run, quarter_mapping=settings.quarter_mapping
        )
        _emit(report)
        return 0

    if command == "remove-unscoped":
        _emit(CleanupService(store).remove_unscoped_records(args.activity, dry_run=args.dry_run))
        return 0

    if command == "remap-quarters":
        _emit(remap_quarter_periods(store, settings.quarter_mapping, dry_run=args.dry_run))
        return 0

    if command == "migrate-index":
        _emit(migrate_uniqueness_key(store, key_for_version(args.to_version), dry_run=args.dry_run))
        return 0

    if command == "schedule":
        scheduler = Scheduler.for_generator(_generator(args, store, settings), settings)
        for name in args.run_now or ():
            scheduler.run_now(name)
        if args.status:
            _emit(scheduler.status())
            return 0
        with _stop_on_signal() as stop:
            scheduler.start()
            try:
                stop.wait()
            finally:
                scheduler.stop()
        return 0

    raise ValueError(f"Unknown command {command!r}")


if __name__ == "__main__":
    sys.exit(main())
