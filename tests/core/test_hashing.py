"""Tests for git-compatible content hashing."""

from __future__ import annotations

import hashlib
from pathlib import Path

import pytest

from texsync.core.hashing import (
    TEXT_SNIFF_SIZE,
    blob_sha,
    compute_blob_sha,
    is_text_content,
    normalize_line_endings,
)


class TestBlobSha:
    """Tests for blob_sha."""

    def test_empty_blob(self) -> None:
        """Should match git's well-known empty blob id."""
        assert blob_sha(b"") == "e69de29bb2d1d6434b8b29ae775ad8c2e48c5391"

    def test_hello_world(self) -> None:
        """Should match `git hash-object` output."""
        assert blob_sha(b"hello world\n") == "3b18e512dba79e4c8300dd08aeb37f8e728b8dad"


class TestTextDetection:
    """Tests for is_text_content and normalize_line_endings."""

    def test_text_without_nul(self) -> None:
        """Should treat content without NUL as text."""
        assert is_text_content(b"plain text\r\n") is True

    def test_binary_with_nul(self) -> None:
        """Should treat content with a NUL byte as binary."""
        assert is_text_content(b"\x89PNG\r\n\x1a\n\x00\x00") is False

    def test_nul_after_sniff_window(self) -> None:
        """Should only look at the first 8 KiB."""
        content = b"a" * TEXT_SNIFF_SIZE + b"\x00"
        assert is_text_content(content) is True

    def test_normalize_crlf_and_cr(self) -> None:
        """Should convert CRLF and lone CR to LF."""
        assert normalize_line_endings(b"a\r\nb\rc\n") == b"a\nb\nc\n"


class TestComputeBlobSha:
    """Tests for compute_blob_sha."""

    def test_text_file_with_crlf(self, tmp_path: Path) -> None:
        """Should hash a CRLF checkout like the LF repository content."""
        path = tmp_path / "notes.txt"
        path.write_bytes(b"hello world\r\n")
        assert compute_blob_sha(path) == blob_sha(b"hello world\n")

    def test_binary_file_not_normalized(self, tmp_path: Path) -> None:
        """Should hash binary content byte for byte."""
        content = b"\x89PNG\x00\r\n" * 5000
        path = tmp_path / "tex.png"
        path.write_bytes(content)

        expected = hashlib.sha1(f"blob {len(content)}\0".encode() + content).hexdigest()
        assert compute_blob_sha(path) == expected

    def test_missing_file(self, tmp_path: Path) -> None:
        """Should raise OSError for unreadable files."""
        with pytest.raises(OSError):
            compute_blob_sha(tmp_path / "missing.png")
