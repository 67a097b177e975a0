# Copyright 2024-2025 David Gordon Nix
# SPDX-License-Identifier: Apache-2.0

"""
Integration tests for Complyline.

End-to-end generation runs, reruns and concurrent writers against one store.
"""
