"""Cheap checks that need no tree diff and no downloads.

This module provides:
- VerificationChecker: Status check against the last synced commit and
  a local vs remote file count
"""

from __future__ import annotations

import logging

from texsync.client.api import GitHubClient
from texsync.client.sync.paths import PathCodec
from texsync.client.sync.snapshot import local_snapshot, remote_snapshot
from texsync.client.sync.types import CountSnapshot, SyncStatus
from texsync.core.config import RemoteConfig, TreeConfig

logger = logging.getLogger(__name__)


class VerificationChecker:
    """Status and drift checks for a managed root."""

    def __init__(self, client: GitHubClient, remote: RemoteConfig, tree: TreeConfig) -> None:
        self._client = client
        self._remote = remote
        self._tree = tree
        self._codec = PathCodec(tree.exclusion_name, tree.disable_marker)

    def check_status(self, last_synced_commit: str | None) -> SyncStatus:
        """Compare the last synced commit with the remote head.

        One commit lookup, no tree listing. Without a baseline there is
        always something to sync.
        """
        latest = self._client.get_latest_commit(self._remote.ref)
        has_changes = last_synced_commit is None or last_synced_commit != latest.sha
        logger.debug(
            f"Remote head {latest.sha[:7]}, last synced "
            f"{last_synced_commit[:7] if last_synced_commit else 'never'}"
        )
        return SyncStatus(
            has_changes=has_changes,
            latest_commit=latest.sha,
            latest_commit_date=latest.date,
            last_synced_commit=last_synced_commit,
        )

    def quick_count(self, remote_head: str | None = None) -> CountSnapshot:
        """Count logical files on both sides.

        A file present both enabled and disabled counts once. The exclusion
        subtree is not counted. Nothing is hashed.

        Args:
            remote_head: Commit to count. Defaults to the latest commit.

        Returns:
            CountSnapshot of both counts.
        """
        head = remote_head or self._client.get_latest_commit(self._remote.ref).sha
        remote_count = len(remote_snapshot(self._client, self._remote, self._codec, head))
        local_count = len(local_snapshot(self._tree.root, self._codec))
        snapshot = CountSnapshot(local_count=local_count, remote_count=remote_count)
        if not snapshot.counts_match:
            logger.warning(
                f"File count mismatch: {local_count} local, {remote_count} remote at {head[:7]}"
            )
        return snapshot
