# Copyright 2024-2025 David Gordon Nix
# SPDX-License-Identifier: Apache-2.0

"""Unit tests for uniqueness key migration and quarter period remapping."""

from __future__ import annotations

from datetime import datetime

import pytest

from complyline.core.primitives import FrequencyEnum, QuarterMappingEnum
from complyline.core.store import (
    JURISDICTION_KEY,
    LEGACY_KEY,
    TimelineStore,
    detect_legacy_index,
    migrate_uniqueness_key,
    remap_quarter_periods,
)


@pytest.fixture
def legacy_store():
    store = TimelineStore(uniqueness_key=LEGACY_KEY)
    yield store
    store.close()


class TestUniquenessKeyMigration:
    """Moving a store from the legacy key to the jurisdiction-aware key."""

    def test_detect_legacy_index(self, legacy_store, store):
        legacy = detect_legacy_index(legacy_store)
        assert legacy.name == LEGACY_KEY.index_name
        assert legacy.key == LEGACY_KEY
        assert detect_legacy_index(store) is None

    def test_dry_run_changes_nothing(self, legacy_store, identity_factory, attributes_factory):
        legacy_store.insert(identity_factory(jurisdiction="Karnataka"), attributes_factory())
        report = migrate_uniqueness_key(legacy_store, JURISDICTION_KEY, dry_run=True)

        assert report.dry_run
        assert report.previous == LEGACY_KEY
        assert report.created_index == JURISDICTION_KEY.index_name
        assert report.dropped_indexes == [LEGACY_KEY.index_name]
        assert report.duplicates_removed == 0
        assert legacy_store.active_uniqueness_key() == LEGACY_KEY
        assert legacy_store.migrations().empty

    def test_migration_allows_per_jurisdiction_records(
        self, legacy_store, identity_factory, attributes_factory
    ):
        legacy_store.insert(identity_factory(jurisdiction="Karnataka"), attributes_factory())
        report = migrate_uniqueness_key(legacy_store, JURISDICTION_KEY)

        assert not report.dry_run
        assert [i.name for i in legacy_store.unique_indexes()] == [JURISDICTION_KEY.index_name]
        assert detect_legacy_index(legacy_store) is None
        legacy_store.insert(identity_factory(jurisdiction="Maharashtra"), attributes_factory())
        assert len(legacy_store) == 2

        audit = legacy_store.migrations()
        assert audit["operation"].tolist() == ["uniqueness_key"]
        assert audit["from_version"].tolist() == [1]
        assert audit["to_version"].tolist() == [2]

    def test_migration_removes_duplicates_keeping_oldest(
        self, bare_store, identity_factory, attributes_factory
    ):
        older = bare_store.insert(identity_factory(), attributes_factory(), created_at=datetime(2024, 4, 1))
        newer = bare_store.insert(identity_factory(), attributes_factory(), created_at=datetime(2024, 4, 2))

        report = migrate_uniqueness_key(bare_store, JURISDICTION_KEY)

        assert report.previous is None
        assert report.duplicate_ids == [newer]
        assert bare_store.get(older) is not None
        assert bare_store.get(newer) is None
        assert bare_store.active_uniqueness_key() == JURISDICTION_KEY

    def test_migration_is_repeatable(self, store):
        report = migrate_uniqueness_key(store, JURISDICTION_KEY)
        assert report.created_index is None
        assert report.dropped_indexes == []
        assert store.active_uniqueness_key() == JURISDICTION_KEY


class TestQuarterRemap:
    """Re-deriving Quarterly periods from due dates."""

    def _quarterly(self, store, identity_factory, attributes_factory, period, due):
        return store.insert(
            identity_factory(period),
            attributes_factory(due_date=due, frequency=FrequencyEnum.QUARTERLY),
        )

    def test_remap_calendar_periods_to_register(self, store, identity_factory, attributes_factory):
        # Written under calendar numbering: January is Q1
        record_id = self._quarterly(store, identity_factory, attributes_factory, "Q1-2025", datetime(2025, 1, 15))

        preview = remap_quarter_periods(store, "register", dry_run=True)
        assert [(c.old_period, c.new_period) for c in preview.changes] == [("Q1-2025", "Q3-2025")]
        assert preview.updated == 0
        assert store.get(record_id).period == "Q1-2025"

        applied = remap_quarter_periods(store, QuarterMappingEnum.REGISTER)
        assert applied.updated == 1
        assert store.get(record_id).period == "Q3-2025"
        assert store.migrations()["operation"].tolist() == ["remap_quarter_periods"]

        assert remap_quarter_periods(store, "register").changes == []

    def test_remap_reports_collisions(self, store, identity_factory, attributes_factory):
        wrong = self._quarterly(store, identity_factory, attributes_factory, "Q1-2025", datetime(2025, 1, 15))
        self._quarterly(store, identity_factory, attributes_factory, "Q3-2025", datetime(2025, 1, 15))

        report = remap_quarter_periods(store, "register")

        assert report.examined == 2
        assert [c.record_id for c in report.collisions] == [wrong]
        assert report.changes == []
        assert store.get(wrong).period == "Q1-2025"

    def test_remap_ignores_other_frequencies(self, store, identity_factory, attributes_factory):
        store.insert(identity_factory("January-2025"), attributes_factory(due_date=datetime(2025, 1, 20)))
        assert remap_quarter_periods(store, "register").examined == 0
