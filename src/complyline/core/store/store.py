# Copyright 2024-2025 David Gordon Nix
# SPDX-License-Identifier: Apache-2.0

"""
DuckDB-backed store for recurring work records.

The store owns one DuckDB database (in memory by default) holding the
`recurring_records` table and the unique index of the active uniqueness key.
That index is the only coordination point between concurrent generators:
inserts are plain `INSERT` statements and a rejected insert surfaces as a
typed exception for the upsert service to classify.

Every operation runs on its own cursor, so one store instance can be shared
across threads (scheduler jobs, manual triggers, backfills).
"""

from __future__ import annotations

import json
import logging
import uuid
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Iterable, Iterator, List, Optional, Sequence, Tuple

import duckdb
import pandas as pd

from ...exceptions import (
    DuplicateRecordError,
    RecordStoreError,
    StoreUnavailableError,
    WriteConflictError,
)
from ..primitives.enums import (
    FrequencyEnum,
    RecordStatusEnum,
    TimelineTypeEnum,
    enum_to_string,
)
from ..primitives.settings import EngineSettings
from .records import RecordAttributes, RecordIdentity, RecurringRecord
from .schema import (
    CREATE_MIGRATIONS_SQL,
    CREATE_SEQUENCE_SQL,
    CREATE_TABLE_SQL,
    JURISDICTION_KEY,
    MIGRATIONS_TABLE,
    RECORD_COLUMNS,
    TABLE_NAME,
    UniquenessKey,
    index_columns_from_sql,
    key_for_columns,
    key_for_version,
)

logger = logging.getLogger(__name__)

_UNSET = object()


@dataclass(frozen=True)
class IndexInfo:
    """A unique index found on the records table."""

    name: str
    columns: Tuple[str, ...]

    @property
    def key(self) -> Optional[UniquenessKey]:
        return key_for_columns(self.columns)


class TimelineStore:
    """
    Recurring record store with an enforced uniqueness key.

    Example:
        ```python
        store = TimelineStore()                        # in memory, key v2
        legacy = TimelineStore(uniqueness_key=LEGACY_KEY)
        bare = TimelineStore(uniqueness_key=None)      # no unique index

        record_id = store.insert(identity, attributes)
        store.find(identity).due_date
        ```
    """

    def __init__(
        self,
        database: str = ":memory:",
        uniqueness_key: Optional[UniquenessKey] | object = _UNSET,
    ):
        """
        Open (or create) the store.

        Args:
            database: DuckDB database path, or ":memory:".
            uniqueness_key: Key to enforce when the table has no unique index
                yet. Defaults to the jurisdiction-aware key; `None` creates no
                index. An existing database keeps whatever index it has, and
                one whose rows already violate the key opens unindexed.
        """
        self.database = database
        try:
            self.con = duckdb.connect(database=database, read_only=False)
        except (duckdb.IOException, duckdb.ConnectionException) as e:
            raise StoreUnavailableError(f"Cannot open record store {database!r}: {e}") from e

        self.con.execute(CREATE_SEQUENCE_SQL)
        self.con.execute(CREATE_TABLE_SQL)
        self.con.execute(CREATE_MIGRATIONS_SQL)

        key = JURISDICTION_KEY if uniqueness_key is _UNSET else uniqueness_key
        if key is not None and self.active_uniqueness_key() is None:
            try:
                self.create_unique_index(key)
            except DuplicateRecordError as e:
                # Stored duplicates block the index; dedupe, then migrate-index
                logger.warning(
                    f"Opened {database!r} without a unique index: existing duplicates "
                    f"violate {key} ({e})"
                )
        logger.debug(f"Record store opened on {database!r}")

    @classmethod
    def from_settings(cls, settings: EngineSettings) -> "TimelineStore":
        return cls(
            database=settings.database,
            uniqueness_key=key_for_version(settings.uniqueness_key_version),
        )

    @contextmanager
    def cursor(self) -> Iterator[duckdb.DuckDBPyConnection]:
        """A fresh cursor with DuckDB errors translated into store errors."""
        try:
            cur = self.con.cursor()
        except duckdb.ConnectionException as e:
            raise StoreUnavailableError(f"Record store connection lost: {e}") from e
        try:
            yield cur
        except duckdb.ConstraintException as e:
            raise DuplicateRecordError(str(e)) from e
        except duckdb.TransactionException as e:
            raise WriteConflictError(str(e)) from e
        except (duckdb.IOException, duckdb.ConnectionException) as e:
            raise StoreUnavailableError(str(e)) from e
        finally:
            cur.close()

    def close(self) -> None:
        self.con.close()

    # Writes

    def insert(
        self,
        identity: RecordIdentity,
        attributes: RecordAttributes,
        created_at: Optional[datetime] = None,
    ) -> str:
        """
        Insert one record.

        `created_at` defaults to now; imports of historical records pass their
        original creation time so duplicate cleanup keeps the oldest one.

        Returns:
            The new record id.

        Raises:
            DuplicateRecordError: A unique index already holds the key.
            WriteConflictError: A concurrent transaction wrote the key first.
            StoreUnavailableError: The database cannot be reached.
        """
        record_id = str(uuid.uuid4())
        row = {
            "record_id": record_id,
            **identity.as_row(),
            "subactivity_name": attributes.subactivity_name,
            "frequency": enum_to_string(attributes.frequency),
            "branch_id": attributes.branch_id,
            "financial_year": attributes.financial_year,
            "due_date": attributes.due_date,
            "status": enum_to_string(attributes.status),
            "timeline_type": TimelineTypeEnum.RECURRING.value,
            "metadata": json.dumps(dict(attributes.metadata), sort_keys=True, default=str),
            "created_at": created_at or datetime.now(),
        }
        columns = ", ".join(row)
        placeholders = ", ".join("?" for _ in row)
        with self.cursor() as cur:
            cur.execute(
                f"INSERT INTO {TABLE_NAME} ({columns}) VALUES ({placeholders})",
                list(row.values()),
            )
        return record_id

    def delete_records(self, record_ids: Iterable[str]) -> List[str]:
        """Delete the given records; returns the ids actually deleted."""
        ids = list(dict.fromkeys(record_ids))
        if not ids:
            return []
        with self.cursor() as cur:
            rows = cur.execute(
                f"DELETE FROM {TABLE_NAME} WHERE list_contains(?, record_id) RETURNING record_id",
                [ids],
            ).fetchall()
        return [row[0] for row in rows]

    def update_period(self, record_id: str, period: str) -> None:
        with self.cursor() as cur:
            cur.execute(
                f"UPDATE {TABLE_NAME} SET period = ? WHERE record_id = ?",
                [period, record_id],
            )

    # Reads

    def find(self, identity: RecordIdentity) -> Optional[RecurringRecord]:
        """The record with exactly this identity (jurisdiction included), if stored."""
        matches = self.find_by_key(identity, JURISDICTION_KEY)
        return matches[0] if matches else None

    def find_by_key(
        self, identity: RecordIdentity, key: UniquenessKey
    ) -> List[RecurringRecord]:
        """Records that collide with `identity` under `key` (oldest first)."""
        values = identity.as_row()
        where = " AND ".join(
            "TRIM(period) = ?" if column == "period" else f"{column} = ?"
            for column in key.columns
        )
        return self._select(
            f"WHERE {where} ORDER BY created_at, seq", [values[c] for c in key.columns]
        )

    def get(self, record_id: str) -> Optional[RecurringRecord]:
        matches = self._select("WHERE record_id = ?", [record_id])
        return matches[0] if matches else None

    def records(
        self,
        client_id: Optional[str] = None,
        activity_id: Optional[str] = None,
        frequency: Optional[FrequencyEnum | str] = None,
        periods: Optional[Sequence[str]] = None,
    ) -> List[RecurringRecord]:
        """Records matching every filter given, in creation order."""
        clauses, params = self._filters(client_id, activity_id, frequency, periods)
        where = f"WHERE {' AND '.join(clauses)} " if clauses else ""
        return self._select(f"{where}ORDER BY created_at, seq", params)

    def count(self, **filters: Any) -> int:
        clauses, params = self._filters(**filters)
        where = f" WHERE {' AND '.join(clauses)}" if clauses else ""
        with self.cursor() as cur:
            return cur.execute(f"SELECT COUNT(*) FROM {TABLE_NAME}{where}", params).fetchone()[0]

    def __len__(self) -> int:
        return self.count()

    def __bool__(self) -> bool:
        # An open store is truthy even when it holds no records
        return True

    def to_dataframe(self) -> pd.DataFrame:
        """All records as a DataFrame, in creation order."""
        with self.cursor() as cur:
            return cur.execute(
                f"SELECT {', '.join(RECORD_COLUMNS)} FROM {TABLE_NAME} ORDER BY created_at, seq"
            ).df()

    def duplicate_rows(self, key: UniquenessKey) -> pd.DataFrame:
        """
        Every record whose identity under `key` is shared with another record.

        Periods are compared after trimming whitespace. Rows are ranked within
        their group by creation time, with the insertion sequence breaking
        ties; `keep_rank` 1 is the record to keep.
        """
        partition = ", ".join(
            "TRIM(period)" if column == "period" else column for column in key.columns
        )
        sql = f"""
        WITH ranked AS (
            SELECT
                record_id, {', '.join(key.columns)}, created_at, seq,
                TRIM(period) AS group_period,
                ROW_NUMBER() OVER (PARTITION BY {partition} ORDER BY created_at, seq) AS keep_rank,
                COUNT(*) OVER (PARTITION BY {partition}) AS group_size
            FROM {TABLE_NAME}
        )
        SELECT * FROM ranked
        WHERE group_size > 1
        ORDER BY {', '.join(c for c in key.columns if c != 'period')}, group_period, keep_rank
        """
        with self.cursor() as cur:
            return cur.execute(sql).df()

    # Index management

    def unique_indexes(self) -> List[IndexInfo]:
        with self.cursor() as cur:
            rows = cur.execute(
                "SELECT index_name, sql FROM duckdb_indexes() "
                "WHERE table_name = ? AND is_unique ORDER BY index_name",
                [TABLE_NAME],
            ).fetchall()
        return [IndexInfo(name, index_columns_from_sql(sql)) for name, sql in rows]

    def active_uniqueness_key(self) -> Optional[UniquenessKey]:
        """The known key enforced by the table's unique index(es); widest wins."""
        keys = [index.key for index in self.unique_indexes() if index.key is not None]
        return max(keys, key=lambda k: len(k.columns)) if keys else None

    def create_unique_index(self, key: UniquenessKey) -> None:
        with self.cursor() as cur:
            cur.execute(key.create_index_sql())
        logger.info(f"Created unique index {key.index_name} on {key}")

    def drop_index(self, name: str) -> None:
        with self.cursor() as cur:
            cur.execute(f'DROP INDEX IF EXISTS "{name}"')
        logger.info(f"Dropped index {name}")

    def record_migration(
        self,
        operation: str,
        from_version: Optional[int] = None,
        to_version: Optional[int] = None,
        dropped_index: Optional[str] = None,
        created_index: Optional[str] = None,
        duplicates_removed: int = 0,
        details: Optional[str] = None,
    ) -> None:
        with self.cursor() as cur:
            cur.execute(
                f"INSERT INTO {MIGRATIONS_TABLE} VALUES (?, ?, ?, ?, ?, ?, ?, ?)",
                [
                    datetime.now(),
                    operation,
                    from_version,
                    to_version,
                    dropped_index,
                    created_index,
                    duplicates_removed,
                    details,
                ],
            )

    def migrations(self) -> pd.DataFrame:
        """The migration audit trail, oldest first."""
        with self.cursor() as cur:
            return cur.execute(f"SELECT * FROM {MIGRATIONS_TABLE} ORDER BY applied_at").df()

    # Internals

    @staticmethod
    def _filters(
        client_id: Optional[str] = None,
        activity_id: Optional[str] = None,
        frequency: Optional[FrequencyEnum | str] = None,
        periods: Optional[Sequence[str]] = None,
    ) -> Tuple[List[str], List[Any]]:
        clauses: List[str] = []
        params: List[Any] = []
        for column, value in (("client_id", client_id), ("activity_id", activity_id)):
            if value is not None:
                clauses.append(f"{column} = ?")
                params.append(value)
        if frequency is not None:
            clauses.append("frequency = ?")
            params.append(enum_to_string(frequency))
        if periods is not None:
            clauses.append("list_contains(?, TRIM(period))")
            params.append([p.strip() for p in periods])
        return clauses, params

    def _select(self, tail: str, params: List[Any]) -> List[RecurringRecord]:
        sql = f"SELECT {', '.join(RECORD_COLUMNS)} FROM {TABLE_NAME} {tail}"
        with self.cursor() as cur:
            rows = cur.execute(sql, params).fetchall()
        return [self._to_record(dict(zip(RECORD_COLUMNS, row))) for row in rows]

    @staticmethod
    def _to_record(row: dict) -> RecurringRecord:
        try:
            metadata = json.loads(row["metadata"]) if row["metadata"] else {}
        except json.JSONDecodeError as e:
            raise RecordStoreError(
                f"Record {row['record_id']} has unreadable metadata: {e}"
            ) from e
        return RecurringRecord(
            record_id=row["record_id"],
            client_id=row["client_id"],
            activity_id=row["activity_id"],
            subactivity_id=row["subactivity_id"],
            period=row["period"],
            jurisdiction=row["jurisdiction"],
            frequency=FrequencyEnum(row["frequency"]),
            due_date=row["due_date"],
            created_at=row["created_at"],
            seq=row["seq"],
            branch_id=row["branch_id"],
            financial_year=row["financial_year"],
            subactivity_name=row["subactivity_name"],
            status=RecordStatusEnum(row["status"]),
            timeline_type=TimelineTypeEnum(row["timeline_type"]),
            metadata=metadata,
        )
