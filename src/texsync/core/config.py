"""Shared configuration classes for texsync.

This module defines the configuration handed to the reconciliation engine.
Nothing here is read from disk; the CLI loads its settings and builds these.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

DEFAULT_EXCLUSION_NAME = "user-customs"
DEFAULT_DISABLE_MARKER = "-"


@dataclass
class RemoteConfig:
    """Configuration for reaching the reference texture repository.

    Used by GitHubClient for every request, and by the planner and executor
    to re-root repository paths onto the managed root.

    Attributes:
        owner: Repository owner (user or organization).
        repo: Repository name.
        token: Access token. Required for every planning and execution call.
        ref: Branch or tag whose head is the sync target.
        subpath: Path inside the repository that maps to the managed root.
        api_url: Base URL of the hosting REST API.
        raw_url: Base URL serving raw file content.
        timeout: Request timeout in seconds.
    """

    owner: str
    repo: str
    token: str | None = None
    ref: str = "main"
    subpath: str = "textures/SLUS-21214"
    api_url: str = "https://api.github.com"
    raw_url: str = "https://raw.githubusercontent.com"
    timeout: float = 30.0

    def __post_init__(self) -> None:
        """Normalize URLs and the subtree path."""
        self.api_url = self.api_url.rstrip("/")
        self.raw_url = self.raw_url.rstrip("/")
        self.subpath = self.subpath.replace("\\", "/").strip("/")

    @property
    def repo_url(self) -> str:
        """Human-facing URL of the repository."""
        return f"https://github.com/{self.owner}/{self.repo}"

    @property
    def has_token(self) -> bool:
        """Check if a non-blank access token is configured."""
        return bool(self.token and self.token.strip())

    @property
    def target_folder(self) -> str:
        """Last segment of the subtree path (the folder name on disk)."""
        return self.subpath.rsplit("/", 1)[-1]

    def repo_path(self, canonical_path: str) -> str:
        """Map a managed-root-relative path to a repository path."""
        if not self.subpath:
            return canonical_path
        return f"{self.subpath}/{canonical_path}"


@dataclass
class TreeConfig:
    """Configuration of the local managed root.

    Attributes:
        root: The managed root directory.
        exclusion_name: Folder name that the engine never reads or mutates.
        disable_marker: Single character prefixed to a file name to disable it.
    """

    root: Path
    exclusion_name: str = DEFAULT_EXCLUSION_NAME
    disable_marker: str = DEFAULT_DISABLE_MARKER

    def __post_init__(self) -> None:
        """Validate the marker and exclusion name."""
        self.root = Path(self.root)
        if len(self.disable_marker) != 1 or self.disable_marker in "/\\.":
            raise ValueError(
                f"Disable marker must be a single non-separator character, "
                f"got {self.disable_marker!r}"
            )
        if (
            not self.exclusion_name
            or "/" in self.exclusion_name
            or "\\" in self.exclusion_name
            or self.exclusion_name in (".", "..")
        ):
            raise ValueError(
                f"Exclusion name must be a single path segment, got {self.exclusion_name!r}"
            )
