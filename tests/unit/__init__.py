# Copyright 2024-2025 David Gordon Nix
# SPDX-License-Identifier: Apache-2.0

"""
Unit tests for Complyline components.

Each test builds its own in-memory store, so tests never share records.
"""
