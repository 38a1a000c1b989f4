"""Sync planning: compute the ChangeSet that reconciles the managed root.

This module provides:
- DiffPlanner: Incremental (commit compare) and full (content hash) planning

Incremental planning trusts the last synced commit as a description of
what is on disk and only looks at local existence, never at local content.
Full planning hashes every local file and is immune to out-of-band edits.
"""

from __future__ import annotations

import logging

from texsync.client.api import (
    APIError,
    AuthenticationError,
    GitHubClient,
    NotFoundError,
    RateLimitError,
)
from texsync.client.sync.domain import (
    Added,
    ChangeEntry,
    Modified,
    Removed,
    Renamed,
    parse_change,
    reroot,
)
from texsync.client.sync.paths import PathCodec
from texsync.client.sync.snapshot import LocalSnapshot, local_snapshot, remote_snapshot
from texsync.client.sync.types import (
    ChangeSet,
    IncrementalPlanningError,
    PlannedFile,
    PlannedRename,
    ProgressCallback,
    ProgressReporter,
)
from texsync.core.config import RemoteConfig, TreeConfig
from texsync.core.types import SyncMode, SyncStage

logger = logging.getLogger(__name__)

# Compare statuses meaning the base is an ancestor of the head
USABLE_COMPARE_STATUSES = frozenset({"ahead", "identical"})


class _PlanBuilder:
    """Accumulates plan buckets keyed by canonical path.

    A later decision about a path overrides an earlier one, so the buckets
    stay disjoint whatever order compare entries arrive in.
    """

    def __init__(self, local: LocalSnapshot) -> None:
        self._local = local
        self._writes: dict[str, PlannedFile] = {}
        self._deletes: dict[str, None] = {}
        self._renames: dict[str, PlannedRename] = {}

    def _forget(self, path: str) -> None:
        self._writes.pop(path, None)
        self._deletes.pop(path, None)
        self._renames.pop(path, None)

    def write(self, path: str, disabled: bool | None = None, sha: str | None = None) -> None:
        self._forget(path)
        if disabled is None:
            disabled = self._local.is_disabled(path)
        self._writes[path] = PlannedFile(path, disabled, sha)

    def delete(self, path: str) -> None:
        self._forget(path)
        # A rename reading from this path keeps it alive until the move runs
        if any(r.old_path == path for r in self._renames.values()):
            return
        if path in self._local:
            self._deletes[path] = None

    def rename(self, old_path: str, new_path: str, disabled: bool) -> None:
        self._forget(new_path)
        self._deletes.pop(old_path, None)
        self._renames[new_path] = PlannedRename(old_path, new_path, disabled)

    def build(self, commit: str, mode: SyncMode) -> ChangeSet:
        to_add: list[PlannedFile] = []
        to_replace: list[PlannedFile] = []
        for path, planned in self._writes.items():
            # Existence on disk decides add vs replace
            (to_replace if path in self._local else to_add).append(planned)
        return ChangeSet(
            commit=commit,
            mode=mode,
            to_add=to_add,
            to_replace=to_replace,
            to_delete=list(self._deletes),
            to_rename=list(self._renames.values()),
        )


class DiffPlanner:
    """Computes ChangeSets for a managed root against a remote commit."""

    def __init__(
        self,
        client: GitHubClient,
        remote: RemoteConfig,
        tree: TreeConfig,
    ) -> None:
        """Initialize the planner.

        Args:
            client: API client.
            remote: Remote repository configuration.
            tree: Managed root configuration.
        """
        self._client = client
        self._remote = remote
        self._tree = tree
        self._codec = PathCodec(tree.exclusion_name, tree.disable_marker)

    @property
    def codec(self) -> PathCodec:
        """Path codec used for classification."""
        return self._codec

    def _resolve_head(self, head: str | None) -> str:
        if head:
            return head
        return self._client.get_latest_commit(self._remote.ref).sha

    def plan_incremental(
        self,
        last_synced_commit: str,
        head: str | None = None,
    ) -> ChangeSet:
        """Plan from the commit-compare between the baseline and the head.

        Args:
            last_synced_commit: Commit the managed root was last synced to.
            head: Target commit. Defaults to the latest commit on the ref.

        Returns:
            ChangeSet in INCREMENTAL mode.

        Raises:
            IncrementalPlanningError: If compare data cannot be trusted.
            UnknownChangeStatusError: If a compare entry has an unknown status.
        """
        head = self._resolve_head(head)
        if head == last_synced_commit:
            logger.info(f"Already at {head[:7]}, nothing to plan")
            return ChangeSet(commit=head, mode=SyncMode.INCREMENTAL)

        try:
            comparison = self._client.compare_commits(last_synced_commit, head)
        except NotFoundError as e:
            raise IncrementalPlanningError(
                f"Last synced commit {last_synced_commit[:7]} is unknown to the remote", e
            ) from e
        except (AuthenticationError, RateLimitError):
            raise
        except APIError as e:
            raise IncrementalPlanningError("Compare data is unusable", e) from e

        if comparison.truncated:
            raise IncrementalPlanningError(
                "Too many changes for an incremental sync",
                f"compare returned {len(comparison.files)} files",
            )
        if comparison.status not in USABLE_COMPARE_STATUSES:
            raise IncrementalPlanningError(
                f"Last synced commit {last_synced_commit[:7]} is not an ancestor of {head[:7]}",
                f"compare status {comparison.status!r}",
            )

        local = local_snapshot(self._tree.root, self._codec)
        builder = _PlanBuilder(local)
        for raw in comparison.files:
            entry = reroot(parse_change(raw), self._remote.subpath)
            if entry is None:
                continue
            self._apply_entry(builder, local, entry, raw.get("sha"))

        changeset = builder.build(head, SyncMode.INCREMENTAL)
        logger.info(
            f"Incremental plan {last_synced_commit[:7]}..{head[:7]}: "
            f"{len(changeset.to_add)} add, {len(changeset.to_replace)} replace, "
            f"{len(changeset.to_delete)} delete, {len(changeset.to_rename)} rename"
        )
        return changeset

    def _canonical(self, path: str) -> str | None:
        canonical = self._codec.canonical_from_remote(path)
        if canonical is None:
            logger.warning(f"Ignoring remote change to unmanageable path: {path}")
        return canonical

    def _apply_entry(
        self,
        builder: _PlanBuilder,
        local: LocalSnapshot,
        entry: ChangeEntry,
        sha: str | None,
    ) -> None:
        """Fold one compare entry into the plan."""
        if isinstance(entry, (Added, Modified)):
            path = self._canonical(entry.path)
            if path is not None:
                logger.debug(f"{type(entry).__name__.lower()}: {path}")
                builder.write(path, sha=sha)
            return

        if isinstance(entry, Removed):
            path = self._canonical(entry.path)
            if path is not None:
                logger.debug(f"removed: {path}")
                builder.delete(path)
            return

        if isinstance(entry, Renamed):
            old_path = self._canonical(entry.old_path)
            new_path = self._canonical(entry.path)
            if new_path is None:
                if old_path is not None:
                    builder.delete(old_path)
                return
            if old_path is None or old_path not in local:
                logger.debug(f"renamed, source missing locally: {new_path}")
                builder.write(new_path, sha=sha)
                return

            disabled = local[old_path].disabled
            if not entry.content_changed and new_path not in local:
                logger.debug(f"renamed: {old_path} -> {new_path}")
                builder.rename(old_path, new_path, disabled)
                return

            logger.debug(f"renamed with changes: {old_path} -> {new_path}")
            builder.delete(old_path)
            if new_path in local:
                builder.write(new_path, sha=sha)
            else:
                builder.write(new_path, disabled=disabled, sha=sha)

    def plan_full(
        self,
        head: str | None = None,
        progress_callback: ProgressCallback | None = None,
    ) -> ChangeSet:
        """Plan by comparing content hashes of every file.

        Args:
            head: Target commit. Defaults to the latest commit on the ref.
            progress_callback: Receives PREPARING notifications while local
                files are hashed.

        Returns:
            ChangeSet in FULL mode.
        """
        head = self._resolve_head(head)
        remote = remote_snapshot(self._client, self._remote, self._codec, head)
        local = local_snapshot(self._tree.root, self._codec)

        to_add: list[PlannedFile] = []
        to_replace: list[PlannedFile] = []
        to_delete: list[str] = []

        progress = ProgressReporter(progress_callback)
        progress.begin(SyncStage.PREPARING, len(local), "Comparing local files")
        for path in sorted(local):
            entry = local[path]
            remote_sha = remote.get(path)
            if remote_sha is None:
                to_delete.append(path)
            elif entry.content_hash != remote_sha:
                to_replace.append(PlannedFile(path, entry.disabled, remote_sha))
            progress.advance("Comparing local files", path)

        for path in sorted(remote):
            if path not in local:
                to_add.append(PlannedFile(path, False, remote[path]))

        changeset = ChangeSet(
            commit=head,
            mode=SyncMode.FULL,
            to_add=to_add,
            to_replace=to_replace,
            to_delete=to_delete,
        )
        logger.info(
            f"Full plan at {head[:7]}: {len(to_add)} add, {len(to_replace)} replace, "
            f"{len(to_delete)} delete ({len(local)} local, {len(remote)} remote)"
        )
        return changeset
