"""Apply a ChangeSet to the managed root.

This module provides:
- SyncExecutor: Runs deletes, renames, downloads and cleanup, in that order

Failure handling:
- A single file that cannot be fetched or written is skipped and recorded
  in the result.
- Authentication loss, rate limiting, an unreachable remote or a vanished
  managed root abort the batch with BatchFatalError. Files already applied
  stay applied.
- Cancellation is checked between files, never during a write.
"""

from __future__ import annotations

import logging
import os
import threading
from pathlib import Path

from texsync.client.api import APIError, AuthenticationError, GitHubClient, RateLimitError
from texsync.client.sync.cleanup import remove_empty_dirs
from texsync.client.sync.paths import PathCodec
from texsync.client.sync.retry import (
    DEFAULT_INITIAL_BACKOFF,
    DEFAULT_MAX_RETRIES,
    NETWORK_EXCEPTIONS,
    retry_with_backoff,
)
from texsync.client.sync.types import (
    BatchFatalError,
    ChangeSet,
    ManagedRootError,
    PlannedFile,
    PlannedRename,
    ProgressCallback,
    ProgressReporter,
    SyncResult,
    TransferError,
)
from texsync.client.sync.workers import DEFAULT_MAX_WORKERS, WorkerPool
from texsync.core.config import RemoteConfig, TreeConfig
from texsync.core.hashing import compute_blob_sha
from texsync.core.types import SyncStage

logger = logging.getLogger(__name__)


class SyncExecutor:
    """Applies ChangeSets to a managed root."""

    def __init__(
        self,
        client: GitHubClient,
        remote: RemoteConfig,
        tree: TreeConfig,
        max_workers: int = DEFAULT_MAX_WORKERS,
        max_retries: int = DEFAULT_MAX_RETRIES,
        initial_backoff: float = DEFAULT_INITIAL_BACKOFF,
    ) -> None:
        """Initialize the executor.

        Args:
            client: API client used to fetch blobs.
            remote: Remote repository configuration.
            tree: Managed root configuration.
            max_workers: Concurrent downloads.
            max_retries: Retries per blob on transient errors.
            initial_backoff: First retry delay in seconds.
        """
        self._client = client
        self._remote = remote
        self._tree = tree
        self._codec = PathCodec(tree.exclusion_name, tree.disable_marker)
        self._max_workers = max_workers
        self._max_retries = max_retries
        self._initial_backoff = initial_backoff
        self._lock = threading.Lock()

    @property
    def root(self) -> Path:
        """The managed root."""
        return self._tree.root

    def execute(
        self,
        changeset: ChangeSet,
        progress_callback: ProgressCallback | None = None,
        cancel_event: threading.Event | None = None,
    ) -> SyncResult:
        """Apply a ChangeSet.

        Args:
            changeset: Plan to apply. Must have been built against the
                current state of the managed root.
            progress_callback: Receives stage-tagged notifications.
            cancel_event: When set, stops before the next file operation.

        Returns:
            SyncResult of the applied subset.

        Raises:
            ManagedRootError: If the managed root is not a directory.
            BatchFatalError: If the batch had to be aborted.
        """
        if not self.root.is_dir():
            raise ManagedRootError("Managed root is not a directory", str(self.root))

        cancel_event = cancel_event or threading.Event()
        progress = ProgressReporter(progress_callback)
        result = SyncResult(commit=changeset.commit)
        logger.info(
            f"Applying {changeset.mode.value} plan for {changeset.commit[:7]}: "
            f"{changeset.operation_count} operations"
        )

        progress.begin(SyncStage.PREPARING, len(changeset.to_delete), "Removing files")
        for path in changeset.to_delete:
            if cancel_event.is_set():
                return self._cancelled(result)
            self._delete(path, result)
            progress.advance(f"Removed {path}", path)

        pending: list[PlannedFile] = []
        if changeset.to_rename:
            progress.begin(SyncStage.MOVING, len(changeset.to_rename), "Moving files")
            for rename in changeset.to_rename:
                if cancel_event.is_set():
                    return self._cancelled(result)
                if not self._rename(rename, result):
                    pending.append(PlannedFile(rename.new_path, rename.disabled))
                progress.advance(f"Moved {rename.old_path} to {rename.new_path}", rename.new_path)

        writes = [*changeset.to_add, *changeset.to_replace, *pending]
        progress.begin(SyncStage.DOWNLOADING, len(writes), "Downloading files")
        self._download_all(changeset.commit, writes, result, progress, cancel_event)
        if cancel_event.is_set():
            return self._cancelled(result)

        progress.begin(SyncStage.CLEANUP, 1, "Removing empty folders")
        removed = remove_empty_dirs(self.root, self._codec)
        progress.advance(f"Removed {removed} empty folders")

        progress.begin(
            SyncStage.COMPLETE,
            0,
            f"Downloaded {result.downloaded}, deleted {result.deleted}, "
            f"renamed {result.renamed}, skipped {result.skipped}",
        )
        logger.info(
            f"Sync to {changeset.commit[:7]} finished: {result.downloaded} downloaded, "
            f"{result.deleted} deleted, {result.renamed} renamed, {result.skipped} skipped"
        )
        return result

    def _cancelled(self, result: SyncResult) -> SyncResult:
        result.cancelled = True
        logger.info(f"Sync cancelled after {result.changed_count} changes")
        return result

    def _fatal_os_error(self, action: str, error: OSError, result: SyncResult) -> BatchFatalError:
        return BatchFatalError(f"Managed root became inaccessible while {action}", error, result)

    def _check_root(self, action: str, result: SyncResult) -> None:
        """Abort the batch if the managed root is gone.

        Parent folders are created on demand, so without this check a
        vanished root would be silently rebuilt.
        """
        if not self.root.is_dir():
            raise BatchFatalError(
                f"Managed root became inaccessible while {action}", str(self.root), result
            )

    # === Deletes ===

    def _delete(self, path: str, result: SyncResult) -> None:
        """Remove both local representations of a canonical path."""
        classified = self._codec.classify(path)
        if not classified.is_managed or classified.disabled:
            logger.warning(f"Refusing to delete unmanaged path: {path}")
            self._skip(result, path, "not a managed path")
            return

        self._check_root("deleting", result)
        removed = False
        for local_path in self._codec.variants(path):
            target = self.root / local_path
            try:
                if target.is_file() or target.is_symlink():
                    target.unlink()
                    removed = True
                    logger.debug(f"Deleted {local_path}")
            except OSError as e:
                if not self.root.is_dir():
                    raise self._fatal_os_error("deleting", e, result) from e
                logger.warning(f"Failed to delete {local_path}: {e}")
                self._skip(result, path, e)
                return
        if removed:
            result.deleted += 1

    # === Renames ===

    def _rename(self, rename: PlannedRename, result: SyncResult) -> bool:
        """Move a file locally, keeping its disabled state.

        Returns:
            False if the source is gone and the target must be downloaded.
        """
        self._check_root("moving", result)
        source_rel = self._codec.to_local(rename.old_path, rename.disabled)
        target_rel = self._codec.to_local(rename.new_path, rename.disabled)
        source = self.root / source_rel
        target = self.root / target_rel

        if not source.is_file():
            if target.is_file():
                logger.debug(f"Already moved: {target_rel}")
                return True
            logger.info(f"Rename source {source_rel} missing, downloading {rename.new_path}")
            return False

        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            os.replace(source, target)
            # The old path is gone remotely; drop its other representation too
            for leftover in self._codec.variants(rename.old_path):
                leftover_path = self.root / leftover
                if leftover_path.is_file():
                    leftover_path.unlink()
        except OSError as e:
            if not self.root.is_dir():
                raise self._fatal_os_error("moving", e, result) from e
            logger.warning(f"Failed to move {source_rel} to {target_rel}: {e}")
            self._skip(result, rename.new_path, e)
            return True

        logger.debug(f"Moved {source_rel} -> {target_rel}")
        result.renamed += 1
        return True

    # === Downloads ===

    def _download_all(
        self,
        commit: str,
        writes: list[PlannedFile],
        result: SyncResult,
        progress: ProgressReporter,
        cancel_event: threading.Event,
    ) -> None:
        """Fetch and write files on the worker pool."""
        if not writes:
            return

        def on_complete(planned: PlannedFile, written: bool) -> None:
            with self._lock:
                if written:
                    result.downloaded += 1
                else:
                    result.unchanged += 1
            verb = "Downloaded" if written else "Up to date:"
            progress.advance(f"{verb} {planned.path}", planned.path)

        def on_error(planned: PlannedFile, error: Exception) -> None:
            with self._lock:
                self._skip(result, planned.path, error)
            progress.advance(f"Skipped {planned.path}", planned.path)

        with WorkerPool(self._max_workers, cancel_check=cancel_event.is_set) as pool:
            for planned in writes:
                pool.submit(
                    planned.path,
                    lambda p=planned: self._write_file(commit, p, result),
                    on_complete=lambda written, p=planned: on_complete(p, written),
                    on_error=lambda error, p=planned: on_error(p, error),
                )
            pool.wait()

        if pool.fatal_error is not None:
            error = pool.fatal_error
            logger.error(f"Sync aborted: {error}")
            raise BatchFatalError(error.message, error.cause, result) from error

    def _write_file(self, commit: str, planned: PlannedFile, result: SyncResult) -> bool:
        """Fetch one blob and write it to its local representation.

        Returns:
            True if written, False if the target already held the content.

        Raises:
            TransferError: The file is skipped.
            BatchFatalError: The batch must stop.
        """
        target_rel = self._codec.to_local(planned.path, planned.disabled)
        target = self.root / target_rel
        self._check_root("writing", result)

        if planned.sha and target.is_file():
            try:
                if compute_blob_sha(target) == planned.sha:
                    logger.debug(f"Already up to date: {target_rel}")
                    self._remove_opposite(planned)
                    return False
            except OSError as e:
                logger.debug(f"Cannot hash {target_rel}, downloading: {e}")

        content = self._fetch(commit, planned.path, result)
        # The root may have vanished while the blob was in flight
        self._check_root("writing", result)
        try:
            self._write_atomic(target, content)
            self._remove_opposite(planned)
        except OSError as e:
            if not self.root.is_dir():
                raise self._fatal_os_error("writing", e, result) from e
            raise TransferError(f"Failed to write {target_rel}", e) from e

        logger.debug(f"Wrote {target_rel} ({len(content)} bytes)")
        return True

    def _fetch(self, commit: str, path: str, result: SyncResult) -> bytes:
        """Download a blob, retrying transient failures."""
        repo_path = self._remote.repo_path(path)
        try:
            return retry_with_backoff(
                lambda: self._client.get_blob(commit, repo_path),
                max_retries=self._max_retries,
                initial_backoff=self._initial_backoff,
            )
        except (AuthenticationError, RateLimitError) as e:
            raise BatchFatalError("Remote refused access", e, result) from e
        except NETWORK_EXCEPTIONS as e:
            if not self._client.health_check():
                raise BatchFatalError("Lost connection to the remote", e, result) from e
            raise TransferError(f"Failed to download {path}", e) from e
        except APIError as e:
            raise TransferError(f"Failed to download {path}", e) from e

    def _remove_opposite(self, planned: PlannedFile) -> None:
        """Delete the representation the plan does not target."""
        enabled, disabled = self._codec.variants(planned.path)
        opposite = self.root / (enabled if planned.disabled else disabled)
        if opposite.is_file():
            opposite.unlink()
            logger.debug(f"Removed other copy {opposite.name} of {planned.path}")

    def _write_atomic(self, target: Path, content: bytes) -> None:
        """Write through a temporary sibling, then rename into place."""
        target.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = target.with_name(f".{target.name}.tmp")
        try:
            with open(tmp_path, "wb") as f:
                f.write(content)
            os.replace(tmp_path, target)
        except OSError:
            if tmp_path.exists():
                tmp_path.unlink()
            raise

    def _skip(self, result: SyncResult, path: str, cause: object) -> None:
        result.skipped += 1
        result.errors.append(f"{path}: {cause}")
