"""Canonical views of the local managed root and the remote tree.

This module provides:
- LocalFile: One logical file found under the managed root
- LocalSnapshot: Read-only mapping of canonical path to LocalFile
- local_snapshot: Walk the managed root
- remote_snapshot: List the remote subtree at a commit
"""

from __future__ import annotations

import logging
import os
from collections.abc import Iterator, Mapping
from dataclasses import dataclass, field
from pathlib import Path

from texsync.client.api import GitHubClient
from texsync.client.sync.paths import PathCodec, PathKind
from texsync.core.config import RemoteConfig
from texsync.core.hashing import compute_blob_sha

logger = logging.getLogger(__name__)


@dataclass
class LocalFile:
    """A logical file present under the managed root.

    Attributes:
        canonical: Canonical path.
        disabled: True if the primary representation carries the marker.
        local_path: Primary representation, relative to the root.
        root: The managed root.
        other_variant: The opposite representation, when both exist.
    """

    canonical: str
    disabled: bool
    local_path: str
    root: Path
    other_variant: str | None = None
    _hash: str | None = field(default=None, init=False, repr=False)
    _hashed: bool = field(default=False, init=False, repr=False)

    @property
    def absolute_path(self) -> Path:
        """Absolute path of the primary representation."""
        return self.root / self.local_path

    @property
    def local_paths(self) -> list[str]:
        """Every representation present on disk."""
        if self.other_variant:
            return [self.local_path, self.other_variant]
        return [self.local_path]

    @property
    def content_hash(self) -> str | None:
        """Git blob SHA of the primary representation.

        Computed on first access. None when the file cannot be read, which
        callers treat as differing from any remote hash.
        """
        if not self._hashed:
            try:
                self._hash = compute_blob_sha(self.absolute_path)
            except OSError as e:
                logger.warning(f"Cannot read {self.local_path}, treating as changed: {e}")
                self._hash = None
            self._hashed = True
        return self._hash


class LocalSnapshot(Mapping[str, LocalFile]):
    """Managed files under a root, keyed by canonical path."""

    def __init__(self, root: Path, files: dict[str, LocalFile]) -> None:
        self._root = root
        self._files = files

    @property
    def root(self) -> Path:
        """The managed root this snapshot was taken from."""
        return self._root

    def __getitem__(self, canonical: str) -> LocalFile:
        return self._files[canonical]

    def __iter__(self) -> Iterator[str]:
        return iter(self._files)

    def __len__(self) -> int:
        return len(self._files)

    def is_disabled(self, canonical: str) -> bool:
        """Check if a path is present locally in disabled form only."""
        entry = self._files.get(canonical)
        return entry is not None and entry.disabled


def local_snapshot(root: Path, codec: PathCodec) -> LocalSnapshot:
    """Walk the managed root and collect managed files.

    Excluded and hidden directories are pruned without being listed.
    Symlinks are skipped. No file content is read here.

    Args:
        root: Managed root directory.
        codec: Path codec for classification.

    Returns:
        LocalSnapshot of the root.
    """
    root = Path(root)
    files: dict[str, LocalFile] = {}

    def on_error(error: OSError) -> None:
        logger.warning(f"Cannot list {error.filename}: {error.strerror}")

    for dirpath, dirnames, filenames in os.walk(root, onerror=on_error):
        current = Path(dirpath)
        dirnames[:] = sorted(
            d
            for d in dirnames
            if not codec.is_excluded_dir(d)
            and not d.startswith(".")
            and not (current / d).is_symlink()
        )

        for name in sorted(filenames):
            full_path = current / name
            if full_path.is_symlink():
                continue
            rel_path = full_path.relative_to(root).as_posix()
            result = codec.classify(rel_path)
            if result.kind is not PathKind.MANAGED:
                continue

            canonical = result.canonical
            existing = files.get(canonical)
            if existing is None:
                files[canonical] = LocalFile(canonical, result.disabled, rel_path, root)
                continue

            # Both representations exist; the enabled copy wins
            if existing.disabled and not result.disabled:
                files[canonical] = LocalFile(
                    canonical, False, rel_path, root, other_variant=existing.local_path
                )
            else:
                existing.other_variant = rel_path
            logger.debug(f"Both enabled and disabled copies of {canonical} exist")

    logger.debug(f"Local snapshot of {root}: {len(files)} files")
    return LocalSnapshot(root, files)


def remote_snapshot(
    client: GitHubClient,
    remote: RemoteConfig,
    codec: PathCodec,
    commit: str,
) -> dict[str, str]:
    """List the managed subtree at a commit.

    Args:
        client: API client.
        remote: Remote configuration (subtree path).
        codec: Path codec used to validate remote paths.
        commit: Commit sha.

    Returns:
        Mapping of canonical path to blob sha.
    """
    tree = client.list_tree(commit, remote.subpath)
    files: dict[str, str] = {}
    for path, sha in tree.items():
        canonical = codec.canonical_from_remote(path)
        if canonical is None:
            logger.warning(f"Skipping remote path that cannot be managed: {path}")
            continue
        files[canonical] = sha
    return files
