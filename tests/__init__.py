# Copyright 2024-2025 David Gordon Nix
# SPDX-License-Identifier: Apache-2.0

"""
Complyline test suite.

Unit tests cover period math, the record store, services and jobs in
isolation; integration tests drive whole generation runs against an
in-memory DuckDB store.
"""
