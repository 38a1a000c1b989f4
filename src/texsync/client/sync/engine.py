"""Sync engine facade.

This module provides:
- SyncEngine: Entry point used by the CLI. Checks preconditions, then
  delegates to DiffPlanner, SyncExecutor and VerificationChecker.

The engine holds no sync state of its own. The last synced commit is passed
in by the caller and the new one is returned in SyncResult.commit.
"""

from __future__ import annotations

import logging
import os
import threading
from collections.abc import Iterator
from contextlib import contextmanager

from texsync.client.api import GitHubClient
from texsync.client.sync.executor import SyncExecutor
from texsync.client.sync.planner import DiffPlanner
from texsync.client.sync.retry import NETWORK_EXCEPTIONS
from texsync.client.sync.types import (
    ChangeSet,
    CountSnapshot,
    ManagedRootError,
    MissingCredentialError,
    PlanningError,
    ProgressCallback,
    RemoteUnavailableError,
    SyncResult,
    SyncStatus,
)
from texsync.client.sync.verification import VerificationChecker
from texsync.client.sync.workers import DEFAULT_MAX_WORKERS
from texsync.core.config import RemoteConfig, TreeConfig

logger = logging.getLogger(__name__)


class SyncEngine:
    """Reconciles a managed root with the reference repository."""

    def __init__(
        self,
        client: GitHubClient,
        remote: RemoteConfig,
        tree: TreeConfig,
        max_workers: int = DEFAULT_MAX_WORKERS,
    ) -> None:
        """Initialize the engine.

        Args:
            client: API client.
            remote: Remote repository configuration.
            tree: Managed root configuration.
            max_workers: Concurrent downloads during execution.
        """
        self._client = client
        self._remote = remote
        self._tree = tree
        self._planner = DiffPlanner(client, remote, tree)
        self._executor = SyncExecutor(client, remote, tree, max_workers=max_workers)
        self._checker = VerificationChecker(client, remote, tree)

    @property
    def planner(self) -> DiffPlanner:
        """The planner."""
        return self._planner

    @property
    def executor(self) -> SyncExecutor:
        """The executor."""
        return self._executor

    def _require_credential(self) -> None:
        if not self._remote.has_token:
            raise MissingCredentialError(
                "An access token is required",
                "run 'texsync init' to configure one",
            )

    def _require_root(self) -> None:
        root = self._tree.root
        if not root.exists():
            raise ManagedRootError("Managed root does not exist", str(root))
        if not root.is_dir():
            raise ManagedRootError("Managed root is not a directory", str(root))
        if not os.access(root, os.R_OK | os.W_OK | os.X_OK):
            raise ManagedRootError("Managed root is not readable and writable", str(root))

    @contextmanager
    def _remote_call(self, action: str) -> Iterator[None]:
        """Report transport failures as RemoteUnavailableError."""
        try:
            yield
        except NETWORK_EXCEPTIONS as e:
            logger.warning(f"Remote unreachable while {action}: {e}")
            raise RemoteUnavailableError(
                f"Cannot reach the remote repository while {action}", e
            ) from e

    def check_status(self, last_synced_commit: str | None) -> SyncStatus:
        """Check whether the remote moved past the last synced commit."""
        self._require_credential()
        with self._remote_call("checking status"):
            return self._checker.check_status(last_synced_commit)

    def plan_incremental(self, last_synced_commit: str, head: str | None = None) -> ChangeSet:
        """Plan from the commit compare. See DiffPlanner.plan_incremental."""
        self._require_credential()
        self._require_root()
        with self._remote_call("planning"):
            return self._planner.plan_incremental(last_synced_commit, head)

    def plan_full(
        self,
        head: str | None = None,
        progress_callback: ProgressCallback | None = None,
    ) -> ChangeSet:
        """Plan by content hash. See DiffPlanner.plan_full."""
        self._require_credential()
        self._require_root()
        with self._remote_call("planning"):
            return self._planner.plan_full(head, progress_callback)

    def plan(
        self,
        last_synced_commit: str | None = None,
        progress_callback: ProgressCallback | None = None,
    ) -> ChangeSet:
        """Plan incrementally when possible, fully otherwise.

        Args:
            last_synced_commit: Baseline. None forces a full plan.
            progress_callback: Receives hashing progress of a full plan.

        Returns:
            ChangeSet in whichever mode was usable.
        """
        self._require_credential()
        self._require_root()
        with self._remote_call("planning"):
            head = self._client.get_latest_commit(self._remote.ref).sha
            if last_synced_commit:
                try:
                    return self._planner.plan_incremental(last_synced_commit, head)
                except PlanningError as e:
                    logger.warning(f"Incremental sync not possible, falling back to full sync: {e}")
            return self._planner.plan_full(head, progress_callback)

    def execute(
        self,
        changeset: ChangeSet,
        progress_callback: ProgressCallback | None = None,
        cancel_event: threading.Event | None = None,
    ) -> SyncResult:
        """Apply a ChangeSet. See SyncExecutor.execute."""
        self._require_credential()
        self._require_root()
        return self._executor.execute(changeset, progress_callback, cancel_event)

    def quick_count(self, remote_head: str | None = None) -> CountSnapshot:
        """Count local and remote files. See VerificationChecker.quick_count."""
        self._require_credential()
        self._require_root()
        with self._remote_call("counting files"):
            return self._checker.quick_count(remote_head)
