"""Sync commands for the texsync CLI.

Commands:
- init: Configure the textures directory and access token
- status: Check whether the reference repository has new commits
- sync: Plan and apply changes to the managed folder
- verify: Compare local and remote file counts
"""

from __future__ import annotations

import dataclasses
import json
import sys
import threading
from pathlib import Path
from typing import Any, NoReturn

import click

from texsync.client.cli.config import (
    build_remote_config,
    build_tree_config,
    get_config_file,
    load_config,
    mask_token,
    record_sync,
    save_config,
)
from texsync.client.sync.types import ChangeSet, SyncProgress, SyncResult
from texsync.client.sync.workers import DEFAULT_MAX_WORKERS
from texsync.core.config import RemoteConfig, TreeConfig

# Files listed before asking to confirm a destructive full sync
CONFIRM_LIST_LIMIT = 100


def _fail(message: str) -> NoReturn:
    click.echo(f"Error: {message}", err=True)
    sys.exit(1)


def _load_settings() -> tuple[dict[str, str], RemoteConfig, TreeConfig]:
    """Load saved settings, exiting if texsync is not set up."""
    config = load_config()
    tree = build_tree_config(config)
    if tree is None:
        _fail("texsync is not initialized. Run 'texsync init' first.")
    remote = build_remote_config(config)
    if not remote.has_token:
        _fail("No access token configured. Run 'texsync init' first.")
    return config, remote, tree


class ProgressPrinter:
    """Renders progress notifications as one status line per stage."""

    def __init__(self, enabled: bool = True, width: int = 80) -> None:
        self._enabled = enabled
        self._width = width
        self._lock = threading.Lock()
        self._stage: str | None = None
        self._last_len = 0

    def __call__(self, progress: SyncProgress) -> None:
        if not self._enabled:
            return
        with self._lock:
            if self._stage is not None and progress.stage.value != self._stage:
                sys.stdout.write("\n")
                self._last_len = 0
            self._stage = progress.stage.value

            if progress.total:
                line = f"  {self._stage}: {progress.current}/{progress.total} {progress.message}"
            else:
                line = f"  {self._stage}: {progress.message}"
            if len(line) > self._width - 3:
                line = line[: self._width - 6] + "..."
            padding = " " * max(0, self._last_len - len(line))
            sys.stdout.write(f"\r{line}{padding}")
            sys.stdout.flush()
            self._last_len = len(line)

    def finish(self) -> None:
        """End the current status line."""
        with self._lock:
            if self._enabled and self._stage is not None:
                sys.stdout.write("\n")
                sys.stdout.flush()
            self._stage = None


@click.command()
@click.option(
    "--textures-dir",
    type=click.Path(file_okay=False, path_type=Path),
    help="Emulator textures directory (the parent of the game folder).",
)
@click.option("--token", help="GitHub access token.")
def init(textures_dir: Path | None, token: str | None) -> None:
    """Configure the textures directory and access token."""
    config = load_config()

    if textures_dir is None:
        textures_dir = Path(
            click.prompt(
                "Textures directory",
                default=config.get("textures_dir") or None,
                type=click.Path(file_okay=False),
            )
        )
    textures_dir = textures_dir.expanduser().resolve()
    if not textures_dir.is_dir():
        _fail(f"Directory does not exist: {textures_dir}")

    if token is None:
        token = click.prompt(
            "GitHub access token",
            default=config.get("github_token") or None,
            hide_input=True,
            show_default=False,
        )
    if not token or not token.strip():
        _fail("An access token is required.")

    if config.get("textures_dir") and Path(config["textures_dir"]) != textures_dir:
        # A different folder has its own sync history
        config.pop("last_sync_commit", None)
        config.pop("last_sync_timestamp", None)

    config["textures_dir"] = str(textures_dir)
    config["github_token"] = token.strip()
    managed_root = textures_dir / build_remote_config(config).target_folder
    if not managed_root.exists():
        managed_root.mkdir(parents=True)
        click.echo(f"Created {managed_root}")

    save_config(config)
    click.echo(f"Managed folder: {managed_root}")
    click.echo(f"Token: {mask_token(config['github_token'])}")
    click.echo(f"Configuration saved to {get_config_file()}")


@click.command()
def status() -> None:
    """Check whether the reference repository has new commits."""
    from texsync.client.api import APIError, GitHubClient
    from texsync.client.sync import SyncEngine, SyncError

    config, remote, tree = _load_settings()
    with GitHubClient(remote) as client:
        engine = SyncEngine(client, remote, tree)
        try:
            result = engine.check_status(config.get("last_sync_commit"))
        except (SyncError, APIError) as e:
            _fail(str(e))

    click.echo(f"Repository:  {remote.repo_url}")
    click.echo(f"Latest:      {result.latest_commit[:7]} ({result.latest_commit_date})")
    if result.last_synced_commit:
        synced_at = config.get("last_sync_timestamp", "unknown time")
        click.echo(f"Last synced: {result.last_synced_commit[:7]} ({synced_at})")
    else:
        click.echo("Last synced: never")

    if result.has_changes:
        click.echo(click.style("Updates available. Run 'texsync sync'.", fg="yellow"))
    else:
        click.echo(click.style("Up to date.", fg="green"))


def _describe_plan(changeset: ChangeSet) -> None:
    click.echo(
        f"{changeset.mode.value.capitalize()} sync to {changeset.commit[:7]}: "
        f"{len(changeset.to_add)} to add, {len(changeset.to_replace)} to replace, "
        f"{len(changeset.to_delete)} to delete, {len(changeset.to_rename)} to move"
    )


def _affected_files(changeset: ChangeSet, tree: TreeConfig) -> list[tuple[str, str]]:
    """Local names a destructive plan overwrites or removes, with an action label."""
    from texsync.client.sync import PathCodec

    codec = PathCodec(tree.exclusion_name, tree.disable_marker)
    affected = [
        ("replace", codec.to_local(f.path, f.disabled)) for f in changeset.to_replace
    ]
    for path in changeset.to_delete:
        present = [p for p in codec.variants(path) if (tree.root / p).is_file()]
        affected.extend(("delete", p) for p in present or [path])
    return affected


def _confirm_destructive(changeset: ChangeSet, tree: TreeConfig) -> bool:
    affected = _affected_files(changeset, tree)
    click.echo(click.style("\nThis sync will overwrite or delete local files:", fg="yellow"))
    for action, path in affected[:CONFIRM_LIST_LIMIT]:
        click.echo(f"  {action:<8} {path}")
    if len(affected) > CONFIRM_LIST_LIMIT:
        click.echo(f"  ... and {len(affected) - CONFIRM_LIST_LIMIT} more")
    click.echo(f"Files in '{tree.exclusion_name}' are never touched.")
    return click.confirm("Continue?", default=False)


def _result_dict(result: SyncResult) -> dict[str, Any]:
    data = dataclasses.asdict(result)
    data["is_complete"] = result.is_complete
    return data


@click.command()
@click.option("--full", is_flag=True, help="Compare every file by content hash.")
@click.option("--yes", "-y", is_flag=True, help="Do not ask before overwriting or deleting.")
@click.option(
    "--workers",
    type=click.IntRange(min=1, max=16),
    default=DEFAULT_MAX_WORKERS,
    show_default=True,
    help="Concurrent downloads.",
)
@click.option("--dry-run", is_flag=True, help="Show the plan without applying it.")
@click.option("--json", "json_output", is_flag=True, help="Print the plan or result as JSON.")
@click.option("--no-progress", is_flag=True, help="Disable the progress line.")
def sync(
    full: bool,
    yes: bool,
    workers: int,
    dry_run: bool,
    json_output: bool,
    no_progress: bool,
) -> None:
    """Download texture changes from the reference repository.

    Uses the fast incremental mode when a previous sync is recorded and
    falls back to a full comparison when it cannot be trusted.
    """
    from texsync.client.api import APIError, GitHubClient
    from texsync.client.sync import BatchFatalError, SyncEngine, SyncError
    from texsync.core.types import SyncMode

    config, remote, tree = _load_settings()
    printer = ProgressPrinter(enabled=not (no_progress or json_output))

    with GitHubClient(remote) as client:
        engine = SyncEngine(client, remote, tree, max_workers=workers)

        try:
            if full:
                changeset = engine.plan_full(progress_callback=printer)
            else:
                changeset = engine.plan(config.get("last_sync_commit"), progress_callback=printer)
        except (SyncError, APIError) as e:
            printer.finish()
            _fail(str(e))
        printer.finish()

        if dry_run:
            if json_output:
                click.echo(json.dumps(changeset.to_dict(), indent=2))
            else:
                _describe_plan(changeset)
            return

        if not json_output:
            _describe_plan(changeset)

        if changeset.is_empty:
            record_sync(config, changeset.commit)
            if json_output:
                click.echo(json.dumps(_result_dict(SyncResult(commit=changeset.commit)), indent=2))
            else:
                click.echo("Everything is up to date.")
            return

        if (
            changeset.mode is SyncMode.FULL
            and changeset.has_destructive_changes
            and not yes
            and not _confirm_destructive(changeset, tree)
        ):
            click.echo("Sync cancelled.")
            return

        cancel_event = threading.Event()
        outcome: dict[str, Any] = {}

        def run() -> None:
            try:
                outcome["result"] = engine.execute(changeset, printer, cancel_event)
            except Exception as e:
                # Handed to the main thread, which reports or re-raises it
                outcome["error"] = e

        worker = threading.Thread(target=run, name="texsync-execute", daemon=True)
        worker.start()
        try:
            while worker.is_alive():
                worker.join(timeout=0.2)
        except KeyboardInterrupt:
            printer.finish()
            click.echo("\nCancelling after the current file...", err=True)
            cancel_event.set()
            worker.join()
        printer.finish()

        error = outcome.get("error")
        if isinstance(error, BatchFatalError):
            if error.result is not None:
                _show_result(error.result, json_output)
            _fail(f"Sync aborted: {error}")
        elif isinstance(error, (SyncError, APIError)):
            _fail(str(error))
        elif error is not None:
            raise error
        if "result" not in outcome:
            _fail("Sync stopped before producing a result.")

        result: SyncResult = outcome["result"]
        _show_result(result, json_output)

        if not result.is_complete:
            if not json_output:
                click.echo("Sync incomplete. Run 'texsync sync' again to finish.")
            return

        record_sync(config, result.commit)

        try:
            counts = engine.quick_count(result.commit)
        except (SyncError, APIError) as e:
            click.echo(f"Warning: file count check failed: {e}", err=True)
            return
        if not counts.counts_match and not json_output:
            click.echo(
                click.style(
                    f"File counts differ: {counts.local_count} local, "
                    f"{counts.remote_count} remote. Run 'texsync sync --full'.",
                    fg="yellow",
                )
            )


def _show_result(result: SyncResult, json_output: bool) -> None:
    if json_output:
        click.echo(json.dumps(_result_dict(result), indent=2))
        return

    if result.errors:
        click.echo(click.style("\nErrors:", fg="red"))
        for error in result.errors:
            click.echo(f"  ✗ {error}")

    summary = (
        f"{result.downloaded} downloaded, {result.deleted} deleted, "
        f"{result.renamed} moved, {result.skipped} skipped"
    )
    if result.cancelled:
        click.echo(f"\nSync cancelled: {summary}")
    else:
        click.echo(f"\nSync complete: {summary}")


@click.command()
def verify() -> None:
    """Compare local and remote file counts."""
    from texsync.client.api import APIError, GitHubClient
    from texsync.client.sync import SyncEngine, SyncError

    _, remote, tree = _load_settings()
    with GitHubClient(remote) as client:
        engine = SyncEngine(client, remote, tree)
        try:
            counts = engine.quick_count()
        except (SyncError, APIError) as e:
            _fail(str(e))

    click.echo(f"Local files:  {counts.local_count}")
    click.echo(f"Remote files: {counts.remote_count}")
    if counts.counts_match:
        click.echo(click.style("Counts match.", fg="green"))
    else:
        click.echo(
            click.style("Counts differ. Run 'texsync sync --full' to repair.", fg="yellow")
        )
