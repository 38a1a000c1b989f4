"""Configuration utilities for the texsync CLI.

This module provides shared configuration functions used across CLI commands.
Settings live in a JSON file; the sync engine never reads it directly.
"""

from __future__ import annotations

import json
from datetime import datetime, timezone
from pathlib import Path

from texsync.core.config import RemoteConfig, TreeConfig

DEFAULT_REPO_OWNER = "ncaanext"
DEFAULT_REPO_NAME = "ncaa-next-26"
DEFAULT_REF = "main"
DEFAULT_SUBPATH = "textures/SLUS-21214"


def get_config_dir() -> Path:
    """Get the configuration directory for texsync.

    Returns:
        Path to ~/.texsync.
    """
    return Path.home() / ".texsync"


def get_config_file() -> Path:
    """Get the path to the config file."""
    return get_config_dir() / "config.json"


def load_config() -> dict[str, str]:
    """Load configuration from config file."""
    config_file = get_config_file()
    if config_file.exists():
        return dict(json.loads(config_file.read_text()))
    return {}


def save_config(config: dict[str, str]) -> None:
    """Save configuration to config file."""
    config_file = get_config_file()
    config_file.parent.mkdir(parents=True, exist_ok=True)
    config_file.write_text(json.dumps(config, indent=2))


def build_remote_config(config: dict[str, str]) -> RemoteConfig:
    """Build the remote configuration from saved settings."""
    return RemoteConfig(
        owner=config.get("repo_owner") or DEFAULT_REPO_OWNER,
        repo=config.get("repo_name") or DEFAULT_REPO_NAME,
        token=config.get("github_token") or None,
        ref=config.get("ref") or DEFAULT_REF,
        subpath=config.get("subpath") or DEFAULT_SUBPATH,
    )


def get_managed_root(config: dict[str, str]) -> Path | None:
    """Get the managed root: the target folder inside the textures directory.

    Returns:
        Path to the managed root, or None if no textures directory is set.
    """
    textures_dir = config.get("textures_dir")
    if not textures_dir:
        return None
    folder = build_remote_config(config).target_folder
    return Path(textures_dir).expanduser().resolve() / folder


def build_tree_config(config: dict[str, str]) -> TreeConfig | None:
    """Build the managed root configuration from saved settings."""
    root = get_managed_root(config)
    if root is None:
        return None
    return TreeConfig(root=root)


def record_sync(config: dict[str, str], commit: str) -> None:
    """Store a new baseline commit and save the settings."""
    config["last_sync_commit"] = commit
    config["last_sync_timestamp"] = datetime.now(timezone.utc).isoformat()
    save_config(config)


def mask_token(token: str | None) -> str:
    """Mask an access token for display."""
    if not token:
        return "(not set)"
    if len(token) <= 8:
        return "****"
    return f"{token[:4]}...{token[-4:]}"
