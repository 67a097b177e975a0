# Copyright 2024-2025 David Gordon Nix
# SPDX-License-Identifier: Apache-2.0

"""
Cron orchestration of generation passes.

`Scheduler` owns a set of named entries (`name`, cron trigger, handler) and an
APScheduler `BackgroundScheduler` that fires them in the business time zone.
It is built once at process start and handed to whatever needs to query its
status; there is no module-level registry.

A pass never overlaps itself: APScheduler runs each job with
`max_instances=1`, and every entry also holds a non-blocking lock so a manual
`run_now` that collides with a scheduled tick is skipped rather than queued.
A handler that raises is logged and recorded in `status()`; its trigger stays
registered for the next tick.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional
from zoneinfo import ZoneInfo

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.cron import CronTrigger

from ..core.primitives.enums import FrequencyEnum
from ..core.primitives.settings import DEFAULT_TIMEZONE, EngineSettings
from .generator import TimelineGenerator

logger = logging.getLogger(__name__)


@dataclass
class ScheduledEntry:
    """One named trigger and the handler it fires."""

    name: str
    cron: str
    trigger: CronTrigger
    handler: Callable[[], Any]
    lock: threading.Lock = field(default_factory=threading.Lock, repr=False)
    runs: int = 0
    failures: int = 0
    overlaps_skipped: int = 0
    last_started: Optional[datetime] = None
    last_finished: Optional[datetime] = None
    last_result: Any = None
    last_error: Optional[str] = None

    @property
    def executing(self) -> bool:
        return self.lock.locked()


class Scheduler:
    """
    Named cron triggers over a background scheduler.

    Example:
        ```python
        scheduler = Scheduler.for_generator(generator, settings)
        scheduler.start()
        scheduler.status()["jobs"]["monthly"]["next_run_time"]
        scheduler.run_now("monthly")   # manual trigger, same overlap guard
        scheduler.stop()
        ```
    """

    def __init__(self, timezone: str = DEFAULT_TIMEZONE):
        self.timezone = timezone
        self.tz = ZoneInfo(timezone)
        self._entries: Dict[str, ScheduledEntry] = {}
        self._scheduler: Optional[BackgroundScheduler] = None

    @classmethod
    def for_generator(
        cls,
        generator: TimelineGenerator,
        settings: Optional[EngineSettings] = None,
        frequencies: Optional[List[FrequencyEnum]] = None,
    ) -> "Scheduler":
        """One entry per frequency class, each running that class's pass."""
        settings = settings or generator.settings
        scheduler = cls(timezone=settings.timezone)
        for frequency in frequencies or FrequencyEnum.recurring():
            scheduler.add(
                frequency.value.lower(),
                settings.schedules.for_frequency(frequency),
                _pass_handler(generator, frequency),
            )
        return scheduler

    def add(self, name: str, cron: str, handler: Callable[[], Any]) -> ScheduledEntry:
        """Register `handler` under `name` on a five-field cron expression."""
        if name in self._entries:
            raise ValueError(f"A scheduled entry named {name!r} already exists")
        entry = ScheduledEntry(
            name=name,
            cron=cron,
            trigger=CronTrigger.from_crontab(cron, timezone=self.tz),
            handler=handler,
        )
        self._entries[name] = entry
        if self._scheduler is not None:
            self._add_job(self._scheduler, entry)
        logger.debug(f"Registered {name} on '{cron}' ({self.timezone})")
        return entry

    @property
    def running(self) -> bool:
        return self._scheduler is not None and self._scheduler.running

    def start(self) -> None:
        if self._scheduler is not None:
            logger.info("Scheduler already started; ignoring duplicate start.")
            return
        scheduler = BackgroundScheduler(timezone=self.tz)
        for entry in self._entries.values():
            self._add_job(scheduler, entry)
        scheduler.start()
        self._scheduler = scheduler
        logger.info(f"Scheduler started with {len(self._entries)} jobs: {sorted(self._entries)}")

    def stop(self, wait: bool = False) -> None:
        if self._scheduler is None:
            return
        try:
            self._scheduler.shutdown(wait=wait)
            logger.info("Scheduler stopped.")
        finally:
            self._scheduler = None

    def restart(self) -> None:
        """Stop and start again so every entry is re-registered from scratch."""
        logger.info("Restarting scheduler")
        self.stop()
        self.start()

    def next_run_time(self, name: str, now: Optional[datetime] = None) -> Optional[datetime]:
        """When `name` fires next, in the business time zone."""
        entry = self._entry(name)
        if self._scheduler is not None and now is None:
            job = self._scheduler.get_job(name)
            return getattr(job, "next_run_time", None)
        reference = now or datetime.now(self.tz)
        if reference.tzinfo is None:
            reference = reference.replace(tzinfo=self.tz)
        return entry.trigger.get_next_fire_time(None, reference)

    def status(self) -> Dict[str, Any]:
        jobs = {}
        for name, entry in self._entries.items():
            jobs[name] = {
                "cron": entry.cron,
                "next_run_time": self.next_run_time(name),
                "executing": entry.executing,
                "runs": entry.runs,
                "failures": entry.failures,
                "overlaps_skipped": entry.overlaps_skipped,
                "last_started": entry.last_started,
                "last_finished": entry.last_finished,
                "last_result": entry.last_result,
                "last_error": entry.last_error,
            }
        return {"running": self.running, "timezone": self.timezone, "jobs": jobs}

    def run_now(self, name: str) -> Any:
        """Run `name` synchronously; returns the handler's result, or None if skipped or failed."""
        return self._execute(self._entry(name))

    def _entry(self, name: str) -> ScheduledEntry:
        try:
            return self._entries[name]
        except KeyError:
            raise KeyError(f"No scheduled entry named {name!r}") from None

    def _add_job(self, scheduler: BackgroundScheduler, entry: ScheduledEntry) -> None:
        scheduler.add_job(
            self._execute,
            trigger=entry.trigger,
            args=(entry,),
            id=entry.name,
            name=entry.name,
            replace_existing=True,
            coalesce=True,
            max_instances=1,
            misfire_grace_time=3600,
        )

    def _execute(self, entry: ScheduledEntry) -> Any:
        if not entry.lock.acquire(blocking=False):
            entry.overlaps_skipped += 1
            logger.warning(f"{entry.name} is still running; skipping this trigger")
            return None
        entry.last_started = datetime.now(self.tz)
        try:
            result = entry.handler()
        except Exception as e:
            entry.failures += 1
            entry.last_error = f"{type(e).__name__}: {e}"
            logger.exception(f"{entry.name} failed; trigger stays registered")
            return None
        else:
            entry.runs += 1
            entry.last_result = result
            entry.last_error = None
            logger.info(f"{entry.name} finished: {result}")
            return result
        finally:
            entry.last_finished = datetime.now(self.tz)
            entry.lock.release()


def _pass_handler(generator: TimelineGenerator, frequency: FrequencyEnum) -> Callable[[], Dict[str, int]]:
    def handler() -> Dict[str, int]:
        return generator.run_pass(frequency).as_dict()

    handler.__name__ = f"run_{frequency.value.lower()}_pass"
    return handler
