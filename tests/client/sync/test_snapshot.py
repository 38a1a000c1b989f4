"""Tests for local and remote snapshots."""

from __future__ import annotations

import os
from pathlib import Path
from unittest.mock import patch

import pytest

from texsync.client.sync.paths import PathCodec
from texsync.client.sync.snapshot import local_snapshot, remote_snapshot
from texsync.core.config import RemoteConfig
from texsync.core.hashing import blob_sha


class TestLocalSnapshot:
    """Tests for local_snapshot."""

    def test_collects_enabled_and_disabled(self, root: Path, put_files) -> None:  # type: ignore[no-untyped-def]
        """Should key files by canonical path and record the disabled flag."""
        put_files(root, {"A.png": b"a", "ui/-C.png": b"c"})

        snapshot = local_snapshot(root, PathCodec())

        assert sorted(snapshot) == ["A.png", "ui/C.png"]
        assert snapshot["A.png"].disabled is False
        assert snapshot["ui/C.png"].disabled is True
        assert snapshot["ui/C.png"].local_path == "ui/-C.png"
        assert snapshot.is_disabled("ui/C.png") is True
        assert snapshot.is_disabled("missing.png") is False

    def test_skips_exclusion_hidden_and_unmanaged(self, root: Path, put_files) -> None:  # type: ignore[no-untyped-def]
        """Should never list the exclusion subtree or hidden entries."""
        put_files(root, {
            "A.png": b"a",
            "user-customs/A.png": b"mine",
            "menus/user-customs/B.png": b"mine",
            ".git/config": b"x",
            "ui/.DS_Store": b"x",
            "ui/-": b"x",
        })

        snapshot = local_snapshot(root, PathCodec())

        assert list(snapshot) == ["A.png"]

    def test_never_lists_exclusion_subtree(self, root: Path, put_files) -> None:  # type: ignore[no-untyped-def]
        """Should prune the exclusion folder without listing it."""
        put_files(root, {"A.png": b"a", "user-customs/deep/B.png": b"b"})
        listed: list[str] = []
        real_walk = os.walk

        def spying_walk(top, **kwargs):  # type: ignore[no-untyped-def]
            for dirpath, dirnames, filenames in real_walk(top, **kwargs):
                listed.append(Path(dirpath).name)
                yield dirpath, dirnames, filenames

        with patch("texsync.client.sync.snapshot.os.walk", spying_walk):
            local_snapshot(root, PathCodec())

        assert "user-customs" not in listed
        assert "deep" not in listed

    def test_both_variants_count_once(self, root: Path, put_files) -> None:  # type: ignore[no-untyped-def]
        """Should keep the enabled copy as primary when both exist."""
        put_files(root, {"-x.png": b"old", "x.png": b"new"})

        snapshot = local_snapshot(root, PathCodec())

        assert len(snapshot) == 1
        entry = snapshot["x.png"]
        assert entry.disabled is False
        assert entry.local_path == "x.png"
        assert entry.other_variant == "-x.png"
        assert entry.local_paths == ["x.png", "-x.png"]

    @pytest.mark.skipif(not hasattr(os, "symlink"), reason="symlinks unavailable")
    def test_skips_symlinks(self, root: Path, tmp_path: Path, put_files) -> None:  # type: ignore[no-untyped-def]
        """Should not follow or list symlinks."""
        outside = tmp_path / "outside"
        put_files(outside, {"secret.png": b"s"})
        put_files(root, {"A.png": b"a"})
        (root / "link.png").symlink_to(outside / "secret.png")
        (root / "linkdir").symlink_to(outside, target_is_directory=True)

        snapshot = local_snapshot(root, PathCodec())

        assert list(snapshot) == ["A.png"]

    def test_hash_is_lazy_and_cached(self, root: Path, put_files) -> None:  # type: ignore[no-untyped-def]
        """Should hash on first access only."""
        put_files(root, {"A.png": b"a"})
        snapshot = local_snapshot(root, PathCodec())

        with patch(
            "texsync.client.sync.snapshot.compute_blob_sha", return_value="h1"
        ) as mock_hash:
            entry = snapshot["A.png"]
            mock_hash.assert_not_called()
            assert entry.content_hash == "h1"
            assert entry.content_hash == "h1"

        mock_hash.assert_called_once()

    def test_unreadable_file_hash_is_none(self, root: Path, put_files) -> None:  # type: ignore[no-untyped-def]
        """Should downgrade read errors to an unknown hash."""
        put_files(root, {"A.png": b"a"})
        snapshot = local_snapshot(root, PathCodec())

        with patch(
            "texsync.client.sync.snapshot.compute_blob_sha",
            side_effect=PermissionError("denied"),
        ):
            assert snapshot["A.png"].content_hash is None

    def test_hash_matches_git(self, root: Path, put_files) -> None:  # type: ignore[no-untyped-def]
        """Should hash like the remote tree listing."""
        put_files(root, {"A.png": b"\x89PNG\x00data"})
        snapshot = local_snapshot(root, PathCodec())
        assert snapshot["A.png"].content_hash == blob_sha(b"\x89PNG\x00data")


class TestRemoteSnapshot:
    """Tests for remote_snapshot."""

    def test_filters_through_codec(self, repo, remote_config: RemoteConfig) -> None:  # type: ignore[no-untyped-def]
        """Should drop remote paths that cannot be managed."""
        head = repo.commit(
            {"A.png": b"a", "ui/-weird.png": b"w", "ui/.gitkeep": b""},
            extra={"README.md": b"readme"},
        )

        snapshot = remote_snapshot(repo, remote_config, PathCodec(), head)

        assert snapshot == {"A.png": blob_sha(b"a")}
