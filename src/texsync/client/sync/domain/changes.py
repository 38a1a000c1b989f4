"""Tagged variants for commit-compare entries.

The compare API returns loosely typed records. Each record is validated
once, here, and becomes one of a closed set of variants:

| API status          | Variant  |
|---------------------|----------|
| added               | Added    |
| modified, changed   | Modified |
| removed             | Removed  |
| renamed             | Renamed  |
| anything else       | rejected (UnknownChangeStatusError) |
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Union

from texsync.client.sync.types import UnknownChangeStatusError


@dataclass(frozen=True)
class Added:
    """File created at path."""

    path: str


@dataclass(frozen=True)
class Modified:
    """File content changed at path."""

    path: str


@dataclass(frozen=True)
class Removed:
    """File deleted at path."""

    path: str


@dataclass(frozen=True)
class Renamed:
    """File moved from old_path to path, possibly with content changes."""

    old_path: str
    path: str
    content_changed: bool = False


ChangeEntry = Union[Added, Modified, Removed, Renamed]


def parse_change(data: dict[str, Any]) -> ChangeEntry:
    """Validate one compare record.

    Args:
        data: Raw record with filename, status and, for renames,
            previous_filename and changes.

    Returns:
        The matching variant.

    Raises:
        UnknownChangeStatusError: On unknown status or missing fields.
    """
    filename = data.get("filename")
    status = data.get("status")
    if not isinstance(filename, str) or not filename:
        raise UnknownChangeStatusError("Compare entry has no filename", repr(data))

    if status == "added":
        return Added(filename)
    if status in ("modified", "changed"):
        return Modified(filename)
    if status == "removed":
        return Removed(filename)
    if status == "renamed":
        previous = data.get("previous_filename")
        if not isinstance(previous, str) or not previous:
            raise UnknownChangeStatusError(
                f"Rename of {filename} has no previous filename", repr(data)
            )
        return Renamed(previous, filename, content_changed=bool(data.get("changes", 0)))

    raise UnknownChangeStatusError(f"Unrecognized change status for {filename}", repr(status))


def _strip(path: str, prefix: str) -> str | None:
    if not prefix:
        return path
    if path.startswith(prefix):
        return path[len(prefix):] or None
    return None


def reroot(entry: ChangeEntry, subpath: str) -> ChangeEntry | None:
    """Re-root an entry onto the managed subtree.

    Renames that cross the subtree boundary become an Added (moved in) or a
    Removed (moved out).

    Args:
        entry: Entry with repository paths.
        subpath: Repository directory mapped to the managed root.

    Returns:
        Entry with paths relative to subpath, or None if outside it.
    """
    prefix = f"{subpath.strip('/')}/" if subpath.strip("/") else ""

    if isinstance(entry, Renamed):
        old = _strip(entry.old_path, prefix)
        new = _strip(entry.path, prefix)
        if old is not None and new is not None:
            return Renamed(old, new, entry.content_changed)
        if new is not None:
            return Added(new)
        if old is not None:
            return Removed(old)
        return None

    path = _strip(entry.path, prefix)
    if path is None:
        return None
    return type(entry)(path)
