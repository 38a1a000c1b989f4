"""Mapping between canonical paths and local on-disk names.

This module provides:
- PathKind: Classification of a local path
- PathClass: Result of classifying a path
- PathCodec: Encodes canonical paths to local names and classifies local paths

A canonical path is a file's logical identity: relative to the managed root,
POSIX separators, final segment in enabled form. Locally the same file may
appear disabled, with the disable marker prefixed to its final segment.
Everything below a folder named like the exclusion subtree belongs to the
user and is invisible to the engine.

Classification is a pure function of the path string. Nothing here touches
the filesystem.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum, auto

from texsync.core.config import DEFAULT_DISABLE_MARKER, DEFAULT_EXCLUSION_NAME


class PathKind(Enum):
    """Classification of a local path."""

    MANAGED = auto()
    EXCLUDED = auto()
    UNMANAGED = auto()


@dataclass(frozen=True)
class PathClass:
    """Result of PathCodec.classify().

    Attributes:
        kind: Managed, excluded or unmanaged.
        canonical: Canonical path (managed paths only).
        disabled: True if the local name carries the disable marker.
    """

    kind: PathKind
    canonical: str | None = None
    disabled: bool = False

    @property
    def is_managed(self) -> bool:
        """Check if the path is tracked by the engine."""
        return self.kind is PathKind.MANAGED


EXCLUDED = PathClass(PathKind.EXCLUDED)
UNMANAGED = PathClass(PathKind.UNMANAGED)


def normalize(path: str) -> str:
    """Normalize separators to '/'."""
    return path.replace("\\", "/")


def split_name(path: str) -> tuple[str, str]:
    """Split a POSIX path into (directory prefix with trailing '/', name)."""
    head, sep, name = path.rpartition("/")
    return (head + sep, name)


class PathCodec:
    """Encodes and classifies paths relative to the managed root."""

    def __init__(
        self,
        exclusion_name: str = DEFAULT_EXCLUSION_NAME,
        disable_marker: str = DEFAULT_DISABLE_MARKER,
    ) -> None:
        """Initialize the codec.

        Args:
            exclusion_name: Folder name whose contents are never touched.
            disable_marker: Prefix marking a disabled file name.
        """
        self._exclusion_name = exclusion_name
        self._marker = disable_marker

    @property
    def exclusion_name(self) -> str:
        """Name of the exclusion folder."""
        return self._exclusion_name

    @property
    def disable_marker(self) -> str:
        """The disable marker."""
        return self._marker

    def to_local(self, canonical_path: str, disabled: bool = False) -> str:
        """Map a canonical path to its local representation.

        Args:
            canonical_path: Canonical path.
            disabled: Whether to produce the disabled name.

        Returns:
            Local path relative to the managed root.
        """
        path = normalize(canonical_path)
        if not disabled:
            return path
        directory, name = split_name(path)
        return f"{directory}{self._marker}{name}"

    def variants(self, canonical_path: str) -> tuple[str, str]:
        """Both possible local names: (enabled, disabled)."""
        return (
            self.to_local(canonical_path, disabled=False),
            self.to_local(canonical_path, disabled=True),
        )

    def is_excluded_dir(self, name: str) -> bool:
        """Check if a directory name is the exclusion folder."""
        return name == self._exclusion_name

    def classify(self, local_path: str) -> PathClass:
        """Classify a path relative to the managed root.

        Args:
            local_path: Path relative to the managed root.

        Returns:
            PathClass describing the path.
        """
        path = normalize(local_path)
        if not path or path.startswith("/"):
            return UNMANAGED

        parts = path.split("/")
        # Exclusion wins over every other rule, including hidden names
        if any(self.is_excluded_dir(p) for p in parts[:-1]):
            return EXCLUDED
        if any(p in ("", ".", "..") or p.startswith(".") for p in parts):
            return UNMANAGED

        name = parts[-1]
        if not name.startswith(self._marker):
            return PathClass(PathKind.MANAGED, path, disabled=False)

        enabled_name = name[len(self._marker):]
        if not enabled_name or enabled_name.startswith("."):
            return UNMANAGED
        directory, _ = split_name(path)
        return PathClass(PathKind.MANAGED, f"{directory}{enabled_name}", disabled=True)

    def canonical_from_remote(self, remote_path: str) -> str | None:
        """Validate a remote path as a canonical path.

        Returns:
            The normalized path, or None if it cannot be represented
            canonically (excluded, hidden, or already carrying the marker).
        """
        result = self.classify(remote_path)
        if not result.is_managed or result.disabled:
            return None
        return result.canonical
