"""Content hashing compatible with git blob identifiers.

The remote tree listing identifies each file by its git blob SHA-1, so local
files are hashed the same way to compare content without downloading.
"""

from __future__ import annotations

import hashlib
from pathlib import Path

# Git treats content as binary when a NUL byte shows up in the first 8 KiB
TEXT_SNIFF_SIZE = 8192
READ_BLOCK_SIZE = 65536


def is_text_content(head: bytes) -> bool:
    """Check if content looks like text (no NUL byte in the sniffed prefix)."""
    return b"\0" not in head[:TEXT_SNIFF_SIZE]


def normalize_line_endings(content: bytes) -> bytes:
    """Convert CRLF and lone CR line endings to LF."""
    return content.replace(b"\r\n", b"\n").replace(b"\r", b"\n")


def blob_sha(content: bytes) -> str:
    """Compute the git blob SHA-1 of in-memory content.

    Args:
        content: Raw bytes, already in repository form.

    Returns:
        Hexadecimal SHA-1 string.
    """
    hasher = hashlib.sha1()
    hasher.update(f"blob {len(content)}\0".encode())
    hasher.update(content)
    return hasher.hexdigest()


def compute_blob_sha(path: Path) -> str:
    """Compute the git blob SHA-1 of a file on disk.

    Text files have their line endings normalized first so a checkout made
    with CRLF conversion still matches the repository. Binary files (all
    real textures) are streamed in blocks.

    Args:
        path: Path to the file to hash.

    Returns:
        Hexadecimal SHA-1 string.

    Raises:
        OSError: If the file cannot be read.
    """
    with open(path, "rb") as f:
        head = f.read(TEXT_SNIFF_SIZE)
        if is_text_content(head):
            return blob_sha(normalize_line_endings(head + f.read()))

        size = path.stat().st_size
        hasher = hashlib.sha1()
        hasher.update(f"blob {size}\0".encode())
        hasher.update(head)
        for block in iter(lambda: f.read(READ_BLOCK_SIZE), b""):
            hasher.update(block)
    return hasher.hexdigest()
