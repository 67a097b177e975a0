# Copyright 2024-2025 David Gordon Nix
# SPDX-License-Identifier: Apache-2.0

"""
Idempotent creation of recurring work records.

`RecurrenceUpsertService.upsert` is an insert-if-absent built on a single
`INSERT` guarded by the store's unique index. There is no read-before-write:
when the index rejects the insert, the service looks the identity up only to
classify the outcome.

| Store response                          | Outcome    | created |
|-----------------------------------------|------------|---------|
| insert succeeded                        | CREATED    | True    |
| unique index hit, identity stored       | EXISTING   | False   |
| lost a concurrent write-write race      | CONFLICT   | False   |
| unique index hit, identity not stored   | CONFLICT, or `LegacyConstraintError` when a narrower legacy index holds a record for another jurisdiction |
"""

from __future__ import annotations

import logging
from typing import Optional

from ..core.primitives.enums import UpsertOutcome
from ..core.store.migrations import detect_legacy_index
from ..core.store.records import RecordAttributes, RecordIdentity, UpsertResult
from ..core.store.schema import JURISDICTION_KEY, LEGACY_KEY
from ..core.store.store import TimelineStore
from ..exceptions import DuplicateRecordError, LegacyConstraintError, WriteConflictError

logger = logging.getLogger(__name__)


class RecurrenceUpsertService:
    """
    Concurrency-safe insert-if-absent for recurring records.

    Safe to call from many threads (or processes sharing the database): the
    unique index decides, so repeated or overlapping calls for one identity
    converge to one stored record with exactly one `created=True` result.
    """

    def __init__(self, store: TimelineStore):
        self.store = store

    def upsert(self, identity: RecordIdentity, attributes: RecordAttributes) -> UpsertResult:
        """
        Create the record for `identity` unless one exists.

        Attributes are written only on creation; an existing record is never
        modified.

        Raises:
            LegacyConstraintError: The insert was rejected by a unique index
                that ignores jurisdiction while no record with this full
                identity exists.
            StoreUnavailableError: The store cannot be reached.
        """
        try:
            record_id = self.store.insert(identity, attributes)
        except WriteConflictError as e:
            logger.debug(f"Concurrent insert won for {identity}: {e}")
            return UpsertResult(UpsertOutcome.CONFLICT, identity)
        except DuplicateRecordError as e:
            existing = self.store.find(identity)
            if existing is not None:
                return UpsertResult(UpsertOutcome.EXISTING, identity, existing.record_id)
            legacy = detect_legacy_index(self.store)
            blockers = (
                self.store.find_by_key(identity, legacy.key or LEGACY_KEY)
                if legacy is not None
                else []
            )
            if not blockers:
                # The winning insert is not visible yet
                logger.debug(f"Concurrent insert won for {identity}: {e}")
                return UpsertResult(UpsertOutcome.CONFLICT, identity)
            raise LegacyConstraintError(
                f"Insert of {identity} rejected by unique index {legacy.name} "
                f"{legacy.columns}, narrower than {JURISDICTION_KEY}; migrate the uniqueness key",
                index_names=(legacy.name,),
            ) from e

        logger.debug(f"Created record {record_id} for {identity}")
        return UpsertResult(UpsertOutcome.CREATED, identity, record_id)


def upsert_recurring_record(
    store: TimelineStore,
    identity: RecordIdentity,
    attributes: RecordAttributes,
    service: Optional[RecurrenceUpsertService] = None,
) -> UpsertResult:
    """Functional shortcut for `RecurrenceUpsertService(store).upsert(...)`."""
    return (service or RecurrenceUpsertService(store)).upsert(identity, attributes)
