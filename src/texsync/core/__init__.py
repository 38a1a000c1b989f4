"""Core module - Shared configuration, enums, and content hashing."""

from texsync.core.config import (
    DEFAULT_DISABLE_MARKER,
    DEFAULT_EXCLUSION_NAME,
    RemoteConfig,
    TreeConfig,
)
from texsync.core.hashing import blob_sha, compute_blob_sha
from texsync.core.types import SyncMode, SyncStage

__all__ = [
    # Config
    "DEFAULT_DISABLE_MARKER",
    "DEFAULT_EXCLUSION_NAME",
    "RemoteConfig",
    "TreeConfig",
    # Hashing
    "blob_sha",
    "compute_blob_sha",
    # Types
    "SyncMode",
    "SyncStage",
]
