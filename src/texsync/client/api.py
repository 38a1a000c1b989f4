"""HTTP client for the reference repository's hosting API.

This module provides:
- GitHubClient: HTTP client for the GitHub REST API and raw content host
- Commit lookup, commit comparison, recursive tree listing, blob download
- Exception classes mapped from HTTP status codes
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

import httpx

from texsync.core.config import RemoteConfig

logger = logging.getLogger(__name__)

USER_AGENT = "texsync"

# The compare endpoint never returns more than this many files
COMPARE_FILE_LIMIT = 300


class APIError(Exception):
    """Base exception for API errors."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class AuthenticationError(APIError):
    """Token missing, invalid, revoked, or lacking access."""


class RateLimitError(APIError):
    """API rate limit exhausted."""


class NotFoundError(APIError):
    """Resource not found."""


@dataclass
class CommitInfo:
    """Commit metadata from the API."""

    sha: str
    date: str

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> CommitInfo:
        """Create from API response dictionary."""
        return cls(
            sha=data["sha"],
            date=data["commit"]["committer"]["date"],
        )


@dataclass
class TreeEntry:
    """One entry of a git tree listing."""

    path: str
    entry_type: str  # blob, tree, commit
    sha: str

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> TreeEntry:
        """Create from API response dictionary."""
        return cls(path=data["path"], entry_type=data["type"], sha=data["sha"])


@dataclass
class CompareResult:
    """Result of comparing two commits.

    Attributes:
        status: ahead, behind, identical or diverged.
        files: Raw per-file records, in API order.
        truncated: True if the file list hit the API limit and is incomplete.
    """

    status: str
    files: list[dict[str, Any]]
    truncated: bool


class GitHubClient:
    """HTTP client for the GitHub REST API."""

    def __init__(self, config: RemoteConfig) -> None:
        """Initialize the client.

        Args:
            config: Remote repository configuration.
        """
        self._config = config
        headers = {
            "Accept": "application/vnd.github+json",
            "User-Agent": USER_AGENT,
        }
        if config.has_token:
            headers["Authorization"] = f"Bearer {config.token}"
        self._client = httpx.Client(
            base_url=config.api_url,
            timeout=config.timeout,
            headers=headers,
            follow_redirects=True,
        )

    @property
    def config(self) -> RemoteConfig:
        """Remote configuration this client talks to."""
        return self._config

    def close(self) -> None:
        """Close the HTTP client."""
        self._client.close()

    def __enter__(self) -> GitHubClient:
        """Context manager entry."""
        return self

    def __exit__(self, *args: object) -> None:
        """Context manager exit."""
        self.close()

    def _repo(self, suffix: str) -> str:
        return f"/repos/{self._config.owner}/{self._config.repo}/{suffix}"

    def _handle_response(self, response: httpx.Response) -> httpx.Response:
        """Handle API response and raise appropriate exceptions."""
        if response.status_code < 400:
            return response

        detail = _error_detail(response)
        if response.status_code == 401:
            raise AuthenticationError(f"Invalid or expired token: {detail}", 401)
        if response.status_code in (403, 429):
            if (
                response.status_code == 429
                or response.headers.get("x-ratelimit-remaining") == "0"
                or "rate limit" in detail.lower()
            ):
                raise RateLimitError(f"API rate limit exceeded: {detail}", response.status_code)
            raise AuthenticationError(f"Access denied: {detail}", 403)
        if response.status_code == 404:
            raise NotFoundError(f"Not found: {detail}", 404)
        raise APIError(f"API error {response.status_code}: {detail}", response.status_code)

    # === Health check ===

    def health_check(self) -> bool:
        """Check if the API is reachable.

        Returns:
            True if the API answered.
        """
        try:
            response = self._client.get("/rate_limit")
            return response.status_code == 200
        except httpx.HTTPError:
            return False

    # === Commits ===

    def get_latest_commit(self, ref: str | None = None) -> CommitInfo:
        """Get the commit a ref currently points at.

        Args:
            ref: Branch, tag or sha. Defaults to the configured ref.

        Returns:
            Commit sha and committer date.
        """
        response = self._handle_response(
            self._client.get(self._repo(f"commits/{ref or self._config.ref}"))
        )
        return CommitInfo.from_dict(response.json())

    def compare_commits(self, base: str, head: str) -> CompareResult:
        """Compare two commits.

        Args:
            base: Older commit sha.
            head: Newer commit sha.

        Returns:
            CompareResult with per-file records.

        Raises:
            NotFoundError: If either commit is unknown.
            APIError: If the response has no file list.
        """
        response = self._handle_response(
            self._client.get(self._repo(f"compare/{base}...{head}"))
        )
        data = response.json()
        files = data.get("files")
        if not isinstance(files, list):
            raise APIError(f"Compare {base[:7]}...{head[:7]} returned no file list")
        return CompareResult(
            status=data.get("status", ""),
            files=files,
            truncated=len(files) >= COMPARE_FILE_LIMIT,
        )

    # === Trees ===

    def _fetch_tree(self, tree_sha: str, recursive: bool) -> tuple[list[TreeEntry], bool]:
        params = {"recursive": "1"} if recursive else None
        response = self._handle_response(
            self._client.get(self._repo(f"git/trees/{tree_sha}"), params=params)
        )
        data = response.json()
        entries = [TreeEntry.from_dict(e) for e in data.get("tree", [])]
        return entries, bool(data.get("truncated", False))

    def _subtree_sha(self, commit: str, subpath: str) -> str:
        """Walk from a commit's root tree down to a subtree, one level at a time."""
        current = commit
        for part in [p for p in subpath.split("/") if p]:
            entries, _ = self._fetch_tree(current, recursive=False)
            match = next(
                (e for e in entries if e.path == part and e.entry_type == "tree"),
                None,
            )
            if match is None:
                raise NotFoundError(f"Path component '{part}' not found in repository", 404)
            current = match.sha
        return current

    def _collect_blobs(self, tree_sha: str, prefix: str, files: dict[str, str]) -> None:
        entries, truncated = self._fetch_tree(tree_sha, recursive=True)
        if not truncated:
            for entry in entries:
                if entry.entry_type == "blob":
                    files[f"{prefix}{entry.path}"] = entry.sha
            return

        # Listing was cut short; descend one directory at a time instead
        logger.debug(f"Tree {tree_sha[:7]} truncated, listing {prefix or '/'} per directory")
        entries, _ = self._fetch_tree(tree_sha, recursive=False)
        for entry in entries:
            if entry.entry_type == "blob":
                files[f"{prefix}{entry.path}"] = entry.sha
            elif entry.entry_type == "tree":
                self._collect_blobs(entry.sha, f"{prefix}{entry.path}/", files)

    def list_tree(self, commit: str, subpath: str = "") -> dict[str, str]:
        """List every file under a subtree at a commit.

        Args:
            commit: Commit sha.
            subpath: Directory inside the repository ("" for the root).

        Returns:
            Mapping of path (relative to subpath) to blob sha.
        """
        tree_sha = self._subtree_sha(commit, subpath)
        files: dict[str, str] = {}
        self._collect_blobs(tree_sha, "", files)
        logger.debug(f"Listed {len(files)} files under {subpath or '/'} at {commit[:7]}")
        return files

    # === Content ===

    def get_blob(self, commit: str, path: str) -> bytes:
        """Download the content of a file at a commit.

        Args:
            commit: Commit sha.
            path: Repository path of the file.

        Returns:
            Raw file content.
        """
        url = (
            f"{self._config.raw_url}/{self._config.owner}/{self._config.repo}/"
            f"{commit}/{path}"
        )
        response = self._handle_response(self._client.get(url))
        return response.content


def _error_detail(response: httpx.Response) -> str:
    """Extract the API's error message, falling back to the reason phrase."""
    try:
        data = response.json()
    except ValueError:
        return response.reason_phrase or "Unknown error"
    if isinstance(data, dict) and data.get("message"):
        return str(data["message"])
    return response.reason_phrase or "Unknown error"
