# Copyright 2024-2025 David Gordon Nix
# SPDX-License-Identifier: Apache-2.0

"""
Record store schema and versioned uniqueness keys.

The uniqueness key is configuration, not a constant: version 1 is the
historical key without jurisdiction, version 2 adds it. Moving a store from
one to the other is an explicit migration (see `migrations.py`).
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Optional, Tuple

TABLE_NAME = "recurring_records"
MIGRATIONS_TABLE = "schema_migrations"
SEQUENCE_NAME = "recurring_records_seq"

CREATE_SEQUENCE_SQL = f"CREATE SEQUENCE IF NOT EXISTS {SEQUENCE_NAME} START 1;"

CREATE_TABLE_SQL = f"""
CREATE TABLE IF NOT EXISTS {TABLE_NAME} (
    record_id VARCHAR NOT NULL,                     -- uuid4 string
    client_id VARCHAR NOT NULL,
    activity_id VARCHAR NOT NULL,
    subactivity_id VARCHAR NOT NULL,
    subactivity_name VARCHAR,
    frequency VARCHAR NOT NULL,
    period VARCHAR NOT NULL,
    jurisdiction VARCHAR NOT NULL DEFAULT '',       -- '' = not state scoped
    branch_id VARCHAR,
    financial_year VARCHAR,                         -- e.g. '2024-2025'
    due_date TIMESTAMP NOT NULL,                    -- business-local wall time
    status VARCHAR NOT NULL DEFAULT 'pending',
    timeline_type VARCHAR NOT NULL DEFAULT 'recurring',
    metadata VARCHAR,                               -- JSON text
    created_at TIMESTAMP NOT NULL,
    seq BIGINT NOT NULL DEFAULT nextval('{SEQUENCE_NAME}')
);
"""

CREATE_MIGRATIONS_SQL = f"""
CREATE TABLE IF NOT EXISTS {MIGRATIONS_TABLE} (
    applied_at TIMESTAMP NOT NULL,
    operation VARCHAR NOT NULL,
    from_version INTEGER,
    to_version INTEGER,
    dropped_index VARCHAR,
    created_index VARCHAR,
    duplicates_removed INTEGER NOT NULL DEFAULT 0,
    details VARCHAR
);
"""

RECORD_COLUMNS: Tuple[str, ...] = (
    "record_id",
    "client_id",
    "activity_id",
    "subactivity_id",
    "subactivity_name",
    "frequency",
    "period",
    "jurisdiction",
    "branch_id",
    "financial_year",
    "due_date",
    "status",
    "timeline_type",
    "metadata",
    "created_at",
    "seq",
)


@dataclass(frozen=True)
class UniquenessKey:
    """A versioned set of identity columns enforced by one unique index."""

    version: int
    columns: Tuple[str, ...]

    @property
    def index_name(self) -> str:
        return f"uq_{TABLE_NAME}_identity_v{self.version}"

    def create_index_sql(self) -> str:
        return f"CREATE UNIQUE INDEX {self.index_name} ON {TABLE_NAME} ({', '.join(self.columns)});"

    def __str__(self) -> str:
        return f"v{self.version}({', '.join(self.columns)})"


LEGACY_KEY = UniquenessKey(
    version=1,
    columns=("client_id", "activity_id", "subactivity_id", "period"),
)
JURISDICTION_KEY = UniquenessKey(
    version=2,
    columns=("client_id", "activity_id", "subactivity_id", "period", "jurisdiction"),
)

UNIQUENESS_KEYS = {key.version: key for key in (LEGACY_KEY, JURISDICTION_KEY)}
IDENTITY_COLUMNS = JURISDICTION_KEY.columns


def key_for_version(version: int) -> UniquenessKey:
    try:
        return UNIQUENESS_KEYS[int(version)]
    except KeyError as e:
        raise ValueError(f"Unknown uniqueness key version {version!r}") from e


def key_for_columns(columns: Tuple[str, ...]) -> Optional[UniquenessKey]:
    """The known key enforcing exactly `columns` (order-insensitive), if any."""
    wanted = set(columns)
    for key in UNIQUENESS_KEYS.values():
        if set(key.columns) == wanted:
            return key
    return None


_INDEX_COLUMNS = re.compile(r"\(([^()]*)\)\s*;?\s*$")


def index_columns_from_sql(sql: str) -> Tuple[str, ...]:
    """Column names from a `CREATE [UNIQUE] INDEX ... ON table(col, ...)` statement."""
    match = _INDEX_COLUMNS.search(sql or "")
    if not match:
        return ()
    return tuple(part.strip().strip('"') for part in match.group(1).split(",") if part.strip())
