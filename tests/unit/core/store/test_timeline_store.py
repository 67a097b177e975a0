# Copyright 2024-2025 David Gordon Nix
# SPDX-License-Identifier: Apache-2.0

"""Unit tests for the DuckDB record store."""

from __future__ import annotations

from datetime import datetime

import pytest

from complyline.core.primitives import EngineSettings, FrequencyEnum, RecordStatusEnum, TimelineTypeEnum
from complyline.core.store import (
    JURISDICTION_KEY,
    LEGACY_KEY,
    RecordIdentity,
    TimelineStore,
)
from complyline.exceptions import DuplicateRecordError, StoreUnavailableError


class TestIdentity:
    def test_period_and_jurisdiction_are_trimmed(self):
        identity = RecordIdentity("C1", "A1", "S1", " April-2024 ", jurisdiction=" Karnataka ")
        assert identity.period == "April-2024"
        assert identity.jurisdiction == "Karnataka"
        assert identity == RecordIdentity("C1", "A1", "S1", "April-2024", "Karnataka")

    def test_str(self):
        assert str(RecordIdentity("C1", "A1", "S1", "Q1-2025")) == "C1:A1:S1:Q1-2025"
        assert str(RecordIdentity("C1", "A1", "S1", "Q1-2025", "Goa")) == "C1:A1:S1:Q1-2025/Goa"


class TestInsertAndFind:
    """Writes and reads through the unique index."""

    def test_insert_then_find(self, store, identity_factory, attributes_factory):
        identity = identity_factory()
        attributes = attributes_factory(
            branch_id="B1",
            financial_year="2024-2025",
            subactivity_name="GSTR-1",
            metadata={"registration_state": "Goa"},
        )
        record_id = store.insert(identity, attributes)

        record = store.find(identity)
        assert record.record_id == record_id
        assert record.identity == identity
        assert record.due_date == datetime(2024, 4, 20)
        assert record.frequency == FrequencyEnum.MONTHLY
        assert record.status == RecordStatusEnum.PENDING
        assert record.timeline_type == TimelineTypeEnum.RECURRING
        assert record.financial_year == "2024-2025"
        assert record.metadata == {"registration_state": "Goa"}
        assert store.get(record_id) == record

    def test_duplicate_identity_rejected(self, store, identity_factory, attributes_factory):
        store.insert(identity_factory(), attributes_factory())
        with pytest.raises(DuplicateRecordError):
            store.insert(identity_factory(), attributes_factory())
        assert len(store) == 1

    def test_jurisdictions_are_distinct_under_current_key(self, store, identity_factory, attributes_factory):
        store.insert(identity_factory(jurisdiction="Karnataka"), attributes_factory())
        store.insert(identity_factory(jurisdiction="Maharashtra"), attributes_factory())
        store.insert(identity_factory(), attributes_factory())
        assert len(store) == 3

    def test_legacy_key_ignores_jurisdiction(self, identity_factory, attributes_factory):
        store = TimelineStore(uniqueness_key=LEGACY_KEY)
        store.insert(identity_factory(jurisdiction="Karnataka"), attributes_factory())
        with pytest.raises(DuplicateRecordError):
            store.insert(identity_factory(jurisdiction="Maharashtra"), attributes_factory())
        store.close()

    def test_find_missing(self, store, identity_factory):
        assert store.find(identity_factory()) is None
        assert store.get("no-such-id") is None

    def test_find_by_key_trims_stored_period(self, bare_store, identity_factory, attributes_factory):
        record_id = bare_store.insert(identity_factory("May-2024"), attributes_factory())
        bare_store.update_period(record_id, " May-2024 ")
        matches = bare_store.find_by_key(identity_factory("May-2024"), JURISDICTION_KEY)
        assert [m.record_id for m in matches] == [record_id]


class TestQueries:
    def test_filters(self, store, identity_factory, attributes_factory):
        store.insert(identity_factory("April-2024"), attributes_factory())
        store.insert(identity_factory("May-2024"), attributes_factory())
        store.insert(
            identity_factory("Q1-2024"),
            attributes_factory(frequency=FrequencyEnum.QUARTERLY),
        )
        store.insert(identity_factory("April-2024", client_id="C2"), attributes_factory())

        assert store.count() == 4
        assert store.count(client_id="C2") == 1
        assert store.count(frequency=FrequencyEnum.QUARTERLY) == 1
        monthly = store.records(frequency="Monthly", periods=["April-2024", " May-2024"])
        assert sorted((r.client_id, r.period) for r in monthly) == [
            ("C1", "April-2024"),
            ("C1", "May-2024"),
            ("C2", "April-2024"),
        ]

    def test_empty_store_is_truthy(self):
        legacy = TimelineStore(uniqueness_key=LEGACY_KEY)
        assert len(legacy) == 0
        assert legacy
        legacy.close()

    def test_to_dataframe(self, store, identity_factory, attributes_factory):
        store.insert(identity_factory(), attributes_factory())
        frame = store.to_dataframe()
        assert len(frame) == 1
        assert {"record_id", "period", "jurisdiction", "due_date", "seq"} <= set(frame.columns)

    def test_delete_records(self, store, identity_factory, attributes_factory):
        first = store.insert(identity_factory("April-2024"), attributes_factory())
        store.insert(identity_factory("May-2024"), attributes_factory())
        assert store.delete_records([first, "unknown", first]) == [first]
        assert store.delete_records([]) == []
        assert len(store) == 1

    def test_duplicate_rows_ranked_oldest_first(self, bare_store, identity_factory, attributes_factory):
        newer = bare_store.insert(identity_factory(), attributes_factory(), created_at=datetime(2024, 5, 2))
        older = bare_store.insert(identity_factory(), attributes_factory(), created_at=datetime(2024, 5, 1))
        bare_store.insert(identity_factory("May-2024"), attributes_factory())

        rows = bare_store.duplicate_rows(JURISDICTION_KEY)
        assert rows["record_id"].tolist() == [older, newer]
        assert rows["keep_rank"].tolist() == [1, 2]
        assert set(rows["group_size"]) == {2}


class TestIndexes:
    """Unique index bookkeeping."""

    def test_default_store_enforces_jurisdiction_key(self, store):
        indexes = store.unique_indexes()
        assert [i.name for i in indexes] == [JURISDICTION_KEY.index_name]
        assert set(indexes[0].columns) == set(JURISDICTION_KEY.columns)
        assert store.active_uniqueness_key() == JURISDICTION_KEY

    def test_bare_store_has_no_index(self, bare_store):
        assert bare_store.unique_indexes() == []
        assert bare_store.active_uniqueness_key() is None

    def test_from_settings_uses_configured_key(self):
        store = TimelineStore.from_settings(EngineSettings(uniqueness_key_version=1))
        assert store.active_uniqueness_key() == LEGACY_KEY
        store.close()

    def test_existing_database_keeps_its_index(self, tmp_path):
        path = str(tmp_path / "records.duckdb")
        TimelineStore(path, uniqueness_key=LEGACY_KEY).close()
        reopened = TimelineStore(path)
        assert reopened.active_uniqueness_key() == LEGACY_KEY
        reopened.close()

    def test_duplicates_block_index_on_open(self, tmp_path, identity_factory, attributes_factory, caplog):
        """A database already holding duplicates opens without an index."""
        path = str(tmp_path / "records.duckdb")
        bare = TimelineStore(path, uniqueness_key=None)
        bare.insert(identity_factory(), attributes_factory())
        bare.insert(identity_factory(), attributes_factory())
        bare.close()

        reopened = TimelineStore(path)
        assert reopened.unique_indexes() == []
        assert "without a unique index" in caplog.text
        reopened.close()

    def test_migration_audit(self, store):
        store.record_migration("uniqueness_key", from_version=1, to_version=2, duplicates_removed=3)
        audit = store.migrations()
        assert audit["operation"].tolist() == ["uniqueness_key"]
        assert audit["duplicates_removed"].tolist() == [3]


def test_unreachable_database(tmp_path):
    with pytest.raises(StoreUnavailableError):
        TimelineStore(str(tmp_path / "missing" / "records.duckdb"))
