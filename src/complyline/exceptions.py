# Copyright 2024-2025 David Gordon Nix
# SPDX-License-Identifier: Apache-2.0

"""
Exception hierarchy for timeline generation.

Configuration problems are recoverable per assignment, store availability
problems abort a pass, and index-shape problems (legacy constraints) are kept
distinct so operators can tell a schema migration apart from a data fix.
"""

from __future__ import annotations


class ComplylineError(Exception):
    """Base class for all errors raised by complyline."""


class FrequencyConfigError(ComplylineError, ValueError):
    """Frequency configuration is missing, incomplete or of the wrong shape."""


class PeriodFormatError(ComplylineError, ValueError):
    """A period identifier could not be parsed for the given frequency."""


class RecordStoreError(ComplylineError):
    """Base class for record store failures."""


class StoreUnavailableError(RecordStoreError):
    """The store could not be reached or its storage failed."""


class DuplicateRecordError(RecordStoreError):
    """A unique index rejected an insert."""


class WriteConflictError(RecordStoreError):
    """A concurrent transaction wrote the same key first."""


class LegacyConstraintError(RecordStoreError):
    """
    An insert was rejected by a unique index narrower than the identity in use.

    Raised when no record with the full identity (including jurisdiction)
    exists, which means the rejection came from an old index that ignores the
    jurisdiction column. The fix is an index migration, not a data cleanup.
    """

    def __init__(self, message: str, index_names: tuple[str, ...] = ()):
        super().__init__(message)
        self.index_names = index_names
