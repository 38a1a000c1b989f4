"""Empty-directory cleanup after a sync.

Deleting and moving textures leaves empty folders behind. They are removed
bottom-up. A folder holding nothing but OS junk files (thumbnail caches,
folder settings, hidden dotfiles) counts as empty.
"""

from __future__ import annotations

import logging
from pathlib import Path

from texsync.client.sync.paths import PathCodec

logger = logging.getLogger(__name__)

JUNK_FILE_NAMES = frozenset({"thumbs.db", "desktop.ini", "ehthumbs.db"})


def is_junk_file(name: str) -> bool:
    """Check if a file name is OS clutter safe to delete."""
    return name.startswith(".") or name.lower() in JUNK_FILE_NAMES


def remove_empty_dirs(root: Path, codec: PathCodec) -> int:
    """Remove empty directories below the managed root.

    The root itself and the exclusion subtree are never touched. Symlinked
    directories are not followed.

    Args:
        root: Managed root directory.
        codec: Path codec (for the exclusion folder name).

    Returns:
        Number of directories removed.
    """
    return _cleanup(Path(root), codec, is_root=True)


def _cleanup(directory: Path, codec: PathCodec, is_root: bool) -> int:
    removed = 0
    try:
        children = list(directory.iterdir())
    except OSError as e:
        logger.warning(f"Cannot list {directory}: {e}")
        return 0

    for child in children:
        if child.is_dir() and not child.is_symlink() and not codec.is_excluded_dir(child.name):
            removed += _cleanup(child, codec, is_root=False)

    if is_root:
        return removed

    try:
        remaining = list(directory.iterdir())
    except OSError as e:
        logger.warning(f"Cannot list {directory}: {e}")
        return removed

    if not all(p.is_file() and not p.is_symlink() and is_junk_file(p.name) for p in remaining):
        return removed

    try:
        for junk in remaining:
            junk.unlink()
            logger.debug(f"Removed junk file {junk}")
        directory.rmdir()
    except OSError as e:
        logger.warning(f"Failed to remove {directory}: {e}")
        return removed

    logger.debug(f"Removed empty directory {directory}")
    return removed + 1
