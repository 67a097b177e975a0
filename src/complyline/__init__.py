# Copyright 2024-2025 David Gordon Nix
# SPDX-License-Identifier: Apache-2.0

"""
Complyline - Recurring Compliance Timeline Engine

Decides which recurring work records must exist for every active
client-obligation assignment, computes when each one is due, and writes each
one exactly once no matter how often (or how concurrently) generation runs.

Key Entry Points:
- complyline.core.periods - period derivation, due dates, fiscal-year helpers
- complyline.core.store - DuckDB-backed record store and index migrations
- complyline.services - idempotent upsert, duplicate cleanup, config defaults
- complyline.jobs - timeline generator passes and the cron scheduler

Example Usage:
    ```python
    from complyline.core.store import TimelineStore
    from complyline.jobs import InMemoryAssignmentSource, TimelineGenerator

    store = TimelineStore()
    generator = TimelineGenerator(store, InMemoryAssignmentSource(assignments))
    summary = generator.generate_all()
    print(summary["monthly"])  # {'processed': 12, 'created': 12, ...}
    ```
"""

import importlib
import logging

# Libraries should not configure handlers; applications decide where logs go.
logging.getLogger(__name__).addHandler(logging.NullHandler())

__version__ = "0.3.0"

__all__ = [  # noqa: F822 - lazy loading
    "core",
    "jobs",
    "services",
]


_LAZY_MODULES = {
    "core": "complyline.core",
    "jobs": "complyline.jobs",
    "services": "complyline.services",
}


def __getattr__(name: str):
    module_path = _LAZY_MODULES.get(name)
    if module_path is None:
        raise AttributeError(f"module 'complyline' has no attribute '{name}'")
    module = importlib.import_module(module_path)
    globals()[name] = module
    return module
