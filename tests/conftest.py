"""Shared fixtures for texsync tests.

This module provides an in-memory stand-in for the GitHub client so the
planner, executor and engine can be exercised against real temporary
directories without any HTTP traffic.
"""

from __future__ import annotations

import threading
from collections.abc import Callable
from pathlib import Path

import pytest

from texsync.client.api import CommitInfo, CompareResult, NotFoundError
from texsync.client.sync import SyncEngine
from texsync.core.config import RemoteConfig, TreeConfig
from texsync.core.hashing import blob_sha

SUBPATH = "textures/SLUS-21214"
COMMIT_DATE = "2026-01-15T12:00:00Z"


class FakeRepository:
    """In-memory repository with the GitHubClient read operations.

    Files are given relative to the managed subtree; the fake stores them
    under SUBPATH like the real repository does.
    """

    def __init__(self, subpath: str = SUBPATH) -> None:
        self.subpath = subpath
        self.commits: dict[str, dict[str, bytes]] = {}
        self.order: list[str] = []
        self.renames: dict[tuple[str, str], dict[str, str]] = {}
        self.head: str | None = None
        self.blob_requests: list[str] = []
        self.blob_failures: dict[str, Exception] = {}
        self.reachable = True
        self.compare_calls = 0
        self._lock = threading.Lock()

    # === Test setup ===

    def _repo_path(self, path: str) -> str:
        return f"{self.subpath}/{path}" if self.subpath else path

    def commit(
        self,
        files: dict[str, bytes],
        renames: dict[str, str] | None = None,
        extra: dict[str, bytes] | None = None,
    ) -> str:
        """Record a commit.

        Args:
            files: Content under the managed subtree.
            renames: old -> new paths reported as renames by compare.
            extra: Content outside the managed subtree (repository paths).
        """
        sha = f"{len(self.order) + 1:040x}"
        tree = {self._repo_path(p): c for p, c in files.items()}
        tree.update(extra or {})
        if self.head is not None and renames:
            self.renames[(self.head, sha)] = {
                self._repo_path(old): self._repo_path(new) for old, new in renames.items()
            }
        self.commits[sha] = tree
        self.order.append(sha)
        self.head = sha
        return sha

    # === GitHubClient interface ===

    def health_check(self) -> bool:
        return self.reachable

    def get_latest_commit(self, ref: str | None = None) -> CommitInfo:
        assert self.head is not None
        return CommitInfo(sha=self.head, date=COMMIT_DATE)

    def compare_commits(self, base: str, head: str) -> CompareResult:
        self.compare_calls += 1
        if base not in self.commits:
            raise NotFoundError("Not found: No commit found for SHA", 404)
        old, new = self.commits[base], self.commits[head]
        renames = self.renames.get((base, head), {})
        renamed_new = set(renames.values())

        files: list[dict[str, object]] = []
        for old_path, new_path in renames.items():
            files.append({
                "filename": new_path,
                "previous_filename": old_path,
                "status": "renamed",
                "sha": blob_sha(new[new_path]),
                "changes": 0 if old[old_path] == new[new_path] else 3,
            })
        for path in sorted(new):
            if path in renamed_new:
                continue
            if path not in old:
                files.append({"filename": path, "status": "added", "sha": blob_sha(new[path])})
            elif old[path] != new[path]:
                files.append({"filename": path, "status": "modified", "sha": blob_sha(new[path])})
        for path in sorted(old):
            if path not in new and path not in renames:
                files.append({"filename": path, "status": "removed"})

        ahead = self.order.index(base) < self.order.index(head)
        return CompareResult(
            status="ahead" if ahead else "behind",
            files=files,
            truncated=False,
        )

    def list_tree(self, commit: str, subpath: str = "") -> dict[str, str]:
        prefix = f"{subpath}/" if subpath else ""
        return {
            path[len(prefix):]: blob_sha(content)
            for path, content in self.commits[commit].items()
            if path.startswith(prefix)
        }

    def get_blob(self, commit: str, path: str) -> bytes:
        with self._lock:
            self.blob_requests.append(path)
        failure = self.blob_failures.get(path)
        if failure is not None:
            raise failure
        return self.commits[commit][path]


def write_files(root: Path, files: dict[str, bytes]) -> None:
    """Create files under a root."""
    for rel, content in files.items():
        path = root / rel
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(content)


def read_tree(root: Path) -> dict[str, bytes]:
    """Read every file under a root, keyed by POSIX relative path."""
    return {
        p.relative_to(root).as_posix(): p.read_bytes()
        for p in sorted(root.rglob("*"))
        if p.is_file()
    }


@pytest.fixture
def repo() -> FakeRepository:
    """Empty in-memory repository."""
    return FakeRepository()


@pytest.fixture
def root(tmp_path: Path) -> Path:
    """Empty managed root."""
    managed = tmp_path / "textures" / "SLUS-21214"
    managed.mkdir(parents=True)
    return managed


@pytest.fixture
def remote_config() -> RemoteConfig:
    """Remote configuration pointing at the fake repository."""
    return RemoteConfig(owner="ncaanext", repo="ncaa-next-26", token="test-token", subpath=SUBPATH)


@pytest.fixture
def tree_config(root: Path) -> TreeConfig:
    """Managed root configuration."""
    return TreeConfig(root=root)


@pytest.fixture
def engine(
    repo: FakeRepository, remote_config: RemoteConfig, tree_config: TreeConfig
) -> SyncEngine:
    """Engine wired to the fake repository, with a single worker."""
    return SyncEngine(repo, remote_config, tree_config, max_workers=1)  # type: ignore[arg-type]


@pytest.fixture
def put_files() -> Callable[[Path, dict[str, bytes]], None]:
    """Helper creating files under a root."""
    return write_files


@pytest.fixture
def tree_of() -> Callable[[Path], dict[str, bytes]]:
    """Helper reading every file under a root."""
    return read_tree
