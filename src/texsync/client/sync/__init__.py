"""Reconciliation engine for the managed texture folder.

Architecture:
    DiffPlanner → ChangeSet → SyncExecutor → SyncResult

Components:
- **PathCodec**: Canonical path ↔ local name (disable marker, exclusion subtree)
- **Snapshots**: Local walk with lazy content hashes, remote tree listing
- **DiffPlanner**: Incremental plan from the commit compare, full plan from hashes
- **SyncExecutor**: Deletes, moves, downloads on a WorkerPool, cleanup
- **VerificationChecker**: Status check and file count drift check
- **SyncEngine**: Facade with precondition checks and full-mode fallback
"""

from texsync.client.sync.cleanup import is_junk_file, remove_empty_dirs
from texsync.client.sync.domain import (
    Added,
    ChangeEntry,
    Modified,
    Removed,
    Renamed,
    parse_change,
    reroot,
)
from texsync.client.sync.engine import SyncEngine
from texsync.client.sync.executor import SyncExecutor
from texsync.client.sync.paths import PathClass, PathCodec, PathKind
from texsync.client.sync.planner import DiffPlanner
from texsync.client.sync.retry import (
    DEFAULT_BACKOFF_MULTIPLIER,
    DEFAULT_INITIAL_BACKOFF,
    DEFAULT_MAX_BACKOFF,
    DEFAULT_MAX_RETRIES,
    NETWORK_EXCEPTIONS,
    is_transient,
    retry_with_backoff,
)
from texsync.client.sync.snapshot import (
    LocalFile,
    LocalSnapshot,
    local_snapshot,
    remote_snapshot,
)
from texsync.client.sync.types import (
    BatchFatalError,
    ChangeSet,
    CountSnapshot,
    IncrementalPlanningError,
    ManagedRootError,
    MissingCredentialError,
    PlannedFile,
    PlannedRename,
    PlanningError,
    PreconditionError,
    ProgressCallback,
    ProgressOrderError,
    ProgressReporter,
    RemoteUnavailableError,
    SyncError,
    SyncProgress,
    SyncResult,
    SyncStatus,
    TransferError,
    UnknownChangeStatusError,
)
from texsync.client.sync.verification import VerificationChecker
from texsync.client.sync.workers import WorkerPool

__all__ = [
    # Engine
    "SyncEngine",
    "DiffPlanner",
    "SyncExecutor",
    "VerificationChecker",
    # Paths
    "PathClass",
    "PathCodec",
    "PathKind",
    # Snapshots
    "LocalFile",
    "LocalSnapshot",
    "local_snapshot",
    "remote_snapshot",
    # Compare variants
    "Added",
    "ChangeEntry",
    "Modified",
    "Removed",
    "Renamed",
    "parse_change",
    "reroot",
    # Cleanup
    "is_junk_file",
    "remove_empty_dirs",
    # Retry
    "DEFAULT_BACKOFF_MULTIPLIER",
    "DEFAULT_INITIAL_BACKOFF",
    "DEFAULT_MAX_BACKOFF",
    "DEFAULT_MAX_RETRIES",
    "NETWORK_EXCEPTIONS",
    "is_transient",
    "retry_with_backoff",
    # Workers
    "WorkerPool",
    # Types
    "BatchFatalError",
    "ChangeSet",
    "CountSnapshot",
    "IncrementalPlanningError",
    "ManagedRootError",
    "MissingCredentialError",
    "PlannedFile",
    "PlannedRename",
    "PlanningError",
    "PreconditionError",
    "ProgressCallback",
    "ProgressOrderError",
    "ProgressReporter",
    "RemoteUnavailableError",
    "SyncError",
    "SyncProgress",
    "SyncResult",
    "SyncStatus",
    "TransferError",
    "UnknownChangeStatusError",
]
