"""Domain modules for sync business rules.

This package centralizes business logic for the sync system:
- changes: Tagged variants for commit-compare entries

Architecture:
    domain/ contains pure business logic without I/O.
    Network and filesystem work stays in the planner and executor.
"""

from texsync.client.sync.domain.changes import (
    Added,
    ChangeEntry,
    Modified,
    Removed,
    Renamed,
    parse_change,
    reroot,
)

__all__ = [
    "Added",
    "ChangeEntry",
    "Modified",
    "Removed",
    "Renamed",
    "parse_change",
    "reroot",
]
