# Copyright 2024-2025 David Gordon Nix
# SPDX-License-Identifier: Apache-2.0

"""Unit tests for the cron scheduler."""

from __future__ import annotations

import threading
from datetime import datetime
from zoneinfo import ZoneInfo

import pytest

from complyline.core.primitives import EngineSettings, ScheduleSettings
from complyline.jobs import Scheduler

IST = ZoneInfo("Asia/Kolkata")


@pytest.fixture
def scheduler(make_generator, assignment_factory):
    scheduler = Scheduler.for_generator(make_generator([assignment_factory(config={"monthlyDay": 20})]))
    yield scheduler
    scheduler.stop()


class TestTriggers:
    """Cron expressions evaluated in the business time zone."""

    def test_one_entry_per_frequency(self, scheduler):
        assert list(scheduler.status()["jobs"]) == ["hourly", "daily", "weekly", "monthly", "quarterly", "yearly"]
        assert scheduler.status()["timezone"] == "Asia/Kolkata"

    def test_next_monthly_run(self, scheduler):
        nxt = scheduler.next_run_time("monthly", now=datetime(2025, 1, 15, 10, 0, tzinfo=IST))
        assert nxt == datetime(2025, 2, 1, 2, 0, tzinfo=IST)
        assert nxt.utcoffset().total_seconds() == 5.5 * 3600

    def test_next_quarterly_and_yearly_runs(self, scheduler):
        now = datetime(2025, 1, 15, 10, 0, tzinfo=IST)
        assert scheduler.next_run_time("quarterly", now=now) == datetime(2025, 4, 1, 3, 0, tzinfo=IST)
        assert scheduler.next_run_time("yearly", now=now) == datetime(2025, 4, 1, 4, 0, tzinfo=IST)

    def test_naive_reference_is_business_time(self, scheduler):
        assert scheduler.next_run_time("daily", now=datetime(2025, 1, 15, 0, 30)) == datetime(
            2025, 1, 15, 1, 0, tzinfo=IST
        )

    def test_custom_schedules(self, make_generator):
        settings = EngineSettings(timezone="UTC", schedules=ScheduleSettings(daily="15 6 * * *"))
        scheduler = Scheduler.for_generator(make_generator([]), settings)
        now = datetime(2025, 1, 15, 7, 0, tzinfo=ZoneInfo("UTC"))
        assert scheduler.next_run_time("daily", now=now) == datetime(2025, 1, 16, 6, 15, tzinfo=ZoneInfo("UTC"))

    def test_duplicate_and_invalid_entries(self, scheduler):
        with pytest.raises(ValueError, match="already exists"):
            scheduler.add("monthly", "0 2 1 * *", lambda: None)
        with pytest.raises(ValueError):
            scheduler.add("broken", "every day", lambda: None)

    def test_unknown_entry(self, scheduler):
        with pytest.raises(KeyError):
            scheduler.run_now("fortnightly")


class TestExecution:
    """Manual runs, failure isolation and overlap protection."""

    def test_run_now_runs_the_pass(self, scheduler, store):
        result = scheduler.run_now("monthly")
        assert result["created"] == 1
        assert len(store) == 1
        status = scheduler.status()["jobs"]["monthly"]
        assert status["runs"] == 1
        assert status["last_result"] == result
        assert status["last_finished"] is not None

    def test_failure_is_isolated(self):
        """A failing handler is recorded and the entry stays usable."""
        calls = []

        def flaky():
            calls.append(1)
            if len(calls) == 1:
                raise RuntimeError("database locked")
            return "ok"

        scheduler = Scheduler()
        scheduler.add("flaky", "*/5 * * * *", flaky)

        assert scheduler.run_now("flaky") is None
        entry = scheduler.status()["jobs"]["flaky"]
        assert entry["failures"] == 1
        assert entry["last_error"] == "RuntimeError: database locked"

        assert scheduler.run_now("flaky") == "ok"
        entry = scheduler.status()["jobs"]["flaky"]
        assert (entry["runs"], entry["failures"], entry["last_error"]) == (1, 1, None)

    def test_overlapping_run_is_skipped(self):
        started, release = threading.Event(), threading.Event()

        def slow():
            started.set()
            release.wait(timeout=5)
            return "done"

        scheduler = Scheduler()
        scheduler.add("slow", "0 * * * *", slow)
        worker = threading.Thread(target=scheduler.run_now, args=("slow",))
        worker.start()
        assert started.wait(timeout=5)

        assert scheduler.status()["jobs"]["slow"]["executing"]
        assert scheduler.run_now("slow") is None
        release.set()
        worker.join(timeout=5)

        entry = scheduler.status()["jobs"]["slow"]
        assert (entry["runs"], entry["overlaps_skipped"], entry["executing"]) == (1, 1, False)

    def test_start_and_stop(self, scheduler):
        scheduler.start()
        assert scheduler.running
        assert scheduler.status()["jobs"]["monthly"]["next_run_time"] is not None
        scheduler.start()
        scheduler.stop()
        assert not scheduler.running

    def test_restart(self, scheduler):
        scheduler.restart()
        assert scheduler.running
        scheduler.restart()
        assert scheduler.running
        assert len(scheduler.status()["jobs"]) == 6
