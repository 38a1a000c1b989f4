"""Shared types for texsync.

This module defines enums used by the engine and the CLI.
"""

from __future__ import annotations

from enum import Enum


class SyncStage(str, Enum):
    """Stage tag carried by every progress notification.

    Stages are strictly ordered within one execution:
    PREPARING -> (DOWNLOADING | MOVING)* -> CLEANUP -> COMPLETE.
    """

    PREPARING = "preparing"
    DOWNLOADING = "downloading"
    MOVING = "moving"
    CLEANUP = "cleanup"
    COMPLETE = "complete"


class SyncMode(str, Enum):
    """How a ChangeSet was planned."""

    INCREMENTAL = "incremental"
    FULL = "full"
