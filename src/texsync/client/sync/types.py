"""Shared types and dataclasses for sync operations.

This module provides:
- SyncError and its subclasses: Precondition, connectivity, planning,
  transfer and batch-fatal errors
- PlannedFile, PlannedRename, ChangeSet: The sync plan
- SyncResult: Outcome of applying a plan
- SyncStatus, CountSnapshot: Cheap status and drift checks
- SyncProgress, ProgressReporter: Stage-tagged progress notifications
- Type aliases for callbacks
"""

from __future__ import annotations

import threading
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

from texsync.core.types import SyncMode, SyncStage


class SyncError(Exception):
    """Base exception for sync errors.

    Carries a human-readable message plus the raw underlying cause string.
    """

    def __init__(self, message: str, cause: str | BaseException | None = None) -> None:
        self.message = message
        self.cause = str(cause) if cause is not None else None
        super().__init__(f"{message}: {self.cause}" if self.cause else message)


class PreconditionError(SyncError):
    """A precondition failed before any remote call or local mutation."""


class MissingCredentialError(PreconditionError):
    """No access token configured."""


class ManagedRootError(PreconditionError):
    """Managed root missing, not a directory, or not accessible."""


class PlanningError(SyncError):
    """Incremental planning data cannot be trusted."""


class IncrementalPlanningError(PlanningError):
    """Compare data is unusable (unknown base, truncated, diverged history)."""


class UnknownChangeStatusError(PlanningError):
    """Compare entry with a status this engine does not recognize."""


class RemoteUnavailableError(SyncError):
    """The remote could not be reached while checking or planning."""


class TransferError(SyncError):
    """Failed to fetch or write a single file."""


class BatchFatalError(SyncError):
    """Fault that aborts the rest of the batch.

    Attributes:
        result: What had been applied before the abort.
    """

    def __init__(
        self,
        message: str,
        cause: str | BaseException | None = None,
        result: SyncResult | None = None,
    ) -> None:
        super().__init__(message, cause)
        self.result = result


class ProgressOrderError(SyncError):
    """Progress went backwards (stage regression or decreasing counter)."""


# =============================================================================
# Plan Types
# =============================================================================


@dataclass(frozen=True)
class PlannedFile:
    """A canonical path in a plan, with the local representation to target.

    Attributes:
        path: Canonical path.
        disabled: Write the disabled representation.
        sha: Remote blob sha, when known. Lets execution skip files that
            already hold the target content.
    """

    path: str
    disabled: bool = False
    sha: str | None = None


@dataclass(frozen=True)
class PlannedRename:
    """A pure rename executed as a local move (no download)."""

    old_path: str
    new_path: str
    disabled: bool = False


@dataclass
class ChangeSet:
    """The sync plan.

    A ChangeSet is only valid against the local snapshot it was built from.
    If the managed root changes before execution, plan again.

    Attributes:
        commit: Remote commit the plan targets.
        mode: How the plan was computed.
        to_add: Present remotely, absent locally.
        to_replace: Present on both sides with differing content.
        to_delete: Present locally, absent remotely (both local variants).
        to_rename: Local moves replacing a delete + add pair.
    """

    commit: str
    mode: SyncMode
    to_add: list[PlannedFile] = field(default_factory=list)
    to_replace: list[PlannedFile] = field(default_factory=list)
    to_delete: list[str] = field(default_factory=list)
    to_rename: list[PlannedRename] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        """Check if the plan has nothing to do."""
        return self.operation_count == 0

    @property
    def has_destructive_changes(self) -> bool:
        """Check if applying the plan overwrites or removes local files."""
        return bool(self.to_replace or self.to_delete)

    @property
    def operation_count(self) -> int:
        """Total number of file operations in the plan."""
        return (
            len(self.to_add)
            + len(self.to_replace)
            + len(self.to_delete)
            + len(self.to_rename)
        )

    def to_dict(self) -> dict[str, Any]:
        """Serialize for JSON output."""
        return {
            "commit": self.commit,
            "mode": self.mode.value,
            "to_add": [_file_dict(f) for f in self.to_add],
            "to_replace": [_file_dict(f) for f in self.to_replace],
            "to_delete": list(self.to_delete),
            "to_rename": [
                {"old_path": r.old_path, "new_path": r.new_path, "disabled": r.disabled}
                for r in self.to_rename
            ],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ChangeSet:
        """Create from a dictionary produced by to_dict()."""
        return cls(
            commit=data["commit"],
            mode=SyncMode(data["mode"]),
            to_add=[_planned_file(f) for f in data.get("to_add", [])],
            to_replace=[_planned_file(f) for f in data.get("to_replace", [])],
            to_delete=list(data.get("to_delete", [])),
            to_rename=[
                PlannedRename(r["old_path"], r["new_path"], r.get("disabled", False))
                for r in data.get("to_rename", [])
            ],
        )


def _file_dict(planned: PlannedFile) -> dict[str, Any]:
    data: dict[str, Any] = {"path": planned.path, "disabled": planned.disabled}
    if planned.sha:
        data["sha"] = planned.sha
    return data


def _planned_file(data: dict[str, Any]) -> PlannedFile:
    return PlannedFile(data["path"], data.get("disabled", False), data.get("sha"))


# =============================================================================
# Result Types
# =============================================================================


@dataclass
class SyncResult:
    """Result of applying a ChangeSet.

    Attributes:
        commit: Commit the applied plan targeted (the next baseline).
        downloaded: Files fetched and written.
        deleted: Logical files removed.
        renamed: Files moved locally.
        skipped: Files whose fetch or write failed.
        unchanged: Planned writes whose target already held the content.
        cancelled: True if execution stopped on a cancellation request.
        errors: "path: cause" for each skipped file.
    """

    commit: str
    downloaded: int = 0
    deleted: int = 0
    renamed: int = 0
    skipped: int = 0
    unchanged: int = 0
    cancelled: bool = False
    errors: list[str] = field(default_factory=list)

    @property
    def is_complete(self) -> bool:
        """Check if every planned operation was applied."""
        return not self.cancelled and self.skipped == 0

    @property
    def changed_count(self) -> int:
        """Number of files changed on disk."""
        return self.downloaded + self.deleted + self.renamed


@dataclass
class SyncStatus:
    """Result of a metadata-only status check."""

    has_changes: bool
    latest_commit: str
    latest_commit_date: str
    last_synced_commit: str | None = None


@dataclass
class CountSnapshot:
    """Local vs remote file counts under the managed root."""

    local_count: int
    remote_count: int

    @property
    def counts_match(self) -> bool:
        """Check if both sides hold the same number of logical files."""
        return self.local_count == self.remote_count


# =============================================================================
# Progress Types
# =============================================================================

STAGE_ORDER = {
    SyncStage.PREPARING: 0,
    SyncStage.DOWNLOADING: 1,
    SyncStage.MOVING: 1,
    SyncStage.CLEANUP: 2,
    SyncStage.COMPLETE: 3,
}


@dataclass(frozen=True)
class SyncProgress:
    """A stage-tagged progress notification."""

    stage: SyncStage
    current: int
    total: int
    message: str = ""
    path: str | None = None

    @property
    def percent(self) -> float:
        """Get progress percentage within the stage."""
        if self.total == 0:
            return 100.0
        return (self.current / self.total) * 100


# Type alias for progress callback
ProgressCallback = Callable[[SyncProgress], None]


class ProgressReporter:
    """Emits progress notifications and enforces their ordering.

    Within a stage `current` never decreases. Stages never move backwards;
    DOWNLOADING and MOVING share a rank and may alternate.
    """

    def __init__(self, callback: ProgressCallback | None = None) -> None:
        self._callback = callback
        self._lock = threading.Lock()
        self._stage: SyncStage | None = None
        self._current = 0
        self._total = 0

    @property
    def stage(self) -> SyncStage | None:
        """Stage of the last notification."""
        return self._stage

    def begin(self, stage: SyncStage, total: int, message: str = "") -> None:
        """Enter a stage and announce its total."""
        with self._lock:
            if self._stage is not None and STAGE_ORDER[stage] < STAGE_ORDER[self._stage]:
                raise ProgressOrderError(
                    f"Stage {stage.value} cannot follow {self._stage.value}"
                )
            self._stage = stage
            self._current = 0
            self._total = total
            self._emit(SyncProgress(stage, 0, total, message))

    def advance(self, message: str = "", path: str | None = None, step: int = 1) -> None:
        """Move the current stage forward."""
        with self._lock:
            if self._stage is None:
                raise ProgressOrderError("advance() called before begin()")
            if step < 0:
                raise ProgressOrderError("Progress cannot decrease")
            self._current += step
            self._emit(SyncProgress(self._stage, self._current, self._total, message, path))

    def _emit(self, progress: SyncProgress) -> None:
        if self._callback:
            self._callback(progress)
