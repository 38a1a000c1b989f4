"""Tests for CLI commands - init, status, sync, verify."""

import json
import logging
from collections.abc import Iterator
from pathlib import Path
from unittest.mock import MagicMock, patch

import httpx
import pytest
from click.testing import CliRunner

from texsync.client.api import AuthenticationError
from texsync.client.cli import cli
from texsync.client.sync import SyncEngine


@pytest.fixture
def runner() -> CliRunner:
    """Create a CLI test runner."""
    return CliRunner()


@pytest.fixture
def config_dir(tmp_path: Path) -> Iterator[Path]:
    """Point the CLI at a temporary config directory."""
    config = tmp_path / "config"
    with patch("texsync.client.cli.config.get_config_dir", return_value=config):
        yield config


@pytest.fixture(autouse=True)
def reset_logging() -> Iterator[None]:
    """Drop handlers bound to the runner's captured streams."""
    yield
    texsync_logger = logging.getLogger("texsync")
    for handler in texsync_logger.handlers[:]:
        texsync_logger.removeHandler(handler)
    texsync_logger.setLevel(logging.NOTSET)


@pytest.fixture
def client(repo) -> Iterator[MagicMock]:  # type: ignore[no-untyped-def]
    """Make every command talk to the in-memory repository."""
    with patch("texsync.client.api.GitHubClient") as mock_cls:
        mock_cls.return_value.__enter__.return_value = repo
        yield mock_cls


def write_config(config_dir: Path, **settings: str) -> None:
    config_dir.mkdir(parents=True, exist_ok=True)
    (config_dir / "config.json").write_text(json.dumps(settings))


def read_config(config_dir: Path) -> dict[str, str]:
    return dict(json.loads((config_dir / "config.json").read_text()))


@pytest.fixture
def initialized(config_dir: Path, root: Path) -> Path:
    """Saved settings for the managed root fixture."""
    write_config(config_dir, textures_dir=str(root.parent), github_token="ghp_testtoken1234")
    return config_dir


class TestInitCommand:
    """Tests for 'texsync init' command."""

    def test_init_saves_settings(self, runner: CliRunner, config_dir: Path, tmp_path: Path) -> None:
        """Init should create the managed folder and save the settings."""
        textures = tmp_path / "textures"
        textures.mkdir()

        result = runner.invoke(
            cli, ["init", "--textures-dir", str(textures), "--token", "ghp_abcdefgh1234"]
        )

        assert result.exit_code == 0, result.output
        assert (textures / "SLUS-21214").is_dir()
        config = read_config(config_dir)
        assert config["textures_dir"] == str(textures.resolve())
        assert config["github_token"] == "ghp_abcdefgh1234"
        assert "ghp_...1234" in result.output
        assert "ghp_abcdefgh1234" not in result.output

    def test_init_prompts(self, runner: CliRunner, config_dir: Path, tmp_path: Path) -> None:
        """Init should prompt for missing values."""
        textures = tmp_path / "textures"
        textures.mkdir()

        result = runner.invoke(cli, ["init"], input=f"{textures}\nghp_prompted99\n")

        assert result.exit_code == 0, result.output
        assert read_config(config_dir)["github_token"] == "ghp_prompted99"

    def test_init_rejects_missing_directory(self, runner: CliRunner, config_dir: Path, tmp_path: Path) -> None:
        """Init should fail if the textures directory does not exist."""
        result = runner.invoke(
            cli, ["init", "--textures-dir", str(tmp_path / "nope"), "--token", "t"]
        )

        assert result.exit_code == 1
        assert "does not exist" in result.output
        assert not (config_dir / "config.json").exists()

    def test_init_rejects_blank_token(self, runner: CliRunner, config_dir: Path, tmp_path: Path) -> None:
        result = runner.invoke(cli, ["init", "--textures-dir", str(tmp_path), "--token", "  "])

        assert result.exit_code == 1
        assert "token is required" in result.output

    def test_new_directory_clears_baseline(self, runner: CliRunner, config_dir: Path, tmp_path: Path) -> None:
        """Init should forget the last sync when the folder changes."""
        old, new = tmp_path / "old", tmp_path / "new"
        old.mkdir()
        new.mkdir()
        write_config(config_dir, textures_dir=str(old), github_token="t", last_sync_commit="a" * 40)

        result = runner.invoke(cli, ["init", "--textures-dir", str(new), "--token", "t"])

        assert result.exit_code == 0, result.output
        assert "last_sync_commit" not in read_config(config_dir)


class TestStatusCommand:
    """Tests for 'texsync status' command."""

    def test_not_initialized(self, runner: CliRunner, config_dir: Path) -> None:
        result = runner.invoke(cli, ["status"])

        assert result.exit_code == 1
        assert "not initialized" in result.output

    def test_updates_available(self, runner: CliRunner, initialized: Path, client: MagicMock, repo) -> None:  # type: ignore[no-untyped-def]
        repo.commit({"A.png": b"a"})

        result = runner.invoke(cli, ["status"])

        assert result.exit_code == 0, result.output
        assert "never" in result.output
        assert "Updates available" in result.output

    def test_up_to_date(self, runner: CliRunner, initialized: Path, client: MagicMock, repo) -> None:  # type: ignore[no-untyped-def]
        head = repo.commit({"A.png": b"a"})
        config = read_config(initialized)
        write_config(initialized, **config, last_sync_commit=head)

        result = runner.invoke(cli, ["status"])

        assert result.exit_code == 0, result.output
        assert "Up to date." in result.output


class TestSyncCommand:
    """Tests for 'texsync sync' command."""

    def test_first_sync_asks_before_overwriting(self, runner: CliRunner, initialized: Path, client: MagicMock, repo, root: Path, put_files, tree_of) -> None:  # type: ignore[no-untyped-def]
        """A full sync that replaces files should ask, and apply on yes."""
        head = repo.commit({"A.png": b"a2", "ui/B.png": b"b", "ui/C.png": b"c2"})
        put_files(root, {"A.png": b"a1", "ui/-C.png": b"c1"})

        result = runner.invoke(cli, ["sync", "--no-progress"], input="y\n")

        assert result.exit_code == 0, result.output
        assert "replace  A.png" in result.output
        assert "replace  ui/-C.png" in result.output
        assert "Sync complete: 3 downloaded" in result.output
        assert tree_of(root) == {"A.png": b"a2", "ui/B.png": b"b", "ui/-C.png": b"c2"}
        assert read_config(initialized)["last_sync_commit"] == head

    def test_declined_confirmation_changes_nothing(self, runner: CliRunner, initialized: Path, client: MagicMock, repo, root: Path, put_files, tree_of) -> None:  # type: ignore[no-untyped-def]
        repo.commit({"A.png": b"a2"})
        put_files(root, {"A.png": b"a1", "stale.png": b"s"})

        result = runner.invoke(cli, ["sync", "--no-progress"], input="n\n")

        assert result.exit_code == 0, result.output
        assert "delete   stale.png" in result.output
        assert "Sync cancelled." in result.output
        assert tree_of(root) == {"A.png": b"a1", "stale.png": b"s"}
        assert "last_sync_commit" not in read_config(initialized)

    def test_yes_skips_confirmation(self, runner: CliRunner, initialized: Path, client: MagicMock, repo, root: Path, put_files, tree_of) -> None:  # type: ignore[no-untyped-def]
        repo.commit({"A.png": b"a2"})
        put_files(root, {"A.png": b"a1"})

        result = runner.invoke(cli, ["sync", "--yes", "--no-progress"])

        assert result.exit_code == 0, result.output
        assert "Continue?" not in result.output
        assert tree_of(root) == {"A.png": b"a2"}

    def test_incremental_sync_does_not_ask(self, runner: CliRunner, initialized: Path, client: MagicMock, repo, root: Path, put_files, tree_of) -> None:  # type: ignore[no-untyped-def]
        first = repo.commit({"A.png": b"a", "B.png": b"b"})
        put_files(root, {"A.png": b"a", "B.png": b"b"})
        config = read_config(initialized)
        write_config(initialized, **config, last_sync_commit=first)
        second = repo.commit({"A.png": b"a2"})

        result = runner.invoke(cli, ["sync", "--no-progress"])

        assert result.exit_code == 0, result.output
        assert "Incremental sync" in result.output
        assert tree_of(root) == {"A.png": b"a2"}
        assert read_config(initialized)["last_sync_commit"] == second

    def test_nothing_to_do_records_baseline(self, runner: CliRunner, initialized: Path, client: MagicMock, repo, root: Path, put_files) -> None:  # type: ignore[no-untyped-def]
        head = repo.commit({"A.png": b"a"})
        put_files(root, {"A.png": b"a"})

        result = runner.invoke(cli, ["sync", "--no-progress"])

        assert result.exit_code == 0, result.output
        assert "Everything is up to date." in result.output
        assert read_config(initialized)["last_sync_commit"] == head

    def test_dry_run_json(self, runner: CliRunner, initialized: Path, client: MagicMock, repo, root: Path, put_files, tree_of) -> None:  # type: ignore[no-untyped-def]
        """A dry run should print the plan and leave the folder alone."""
        head = repo.commit({"A.png": b"a"})
        put_files(root, {"old.png": b"o"})

        result = runner.invoke(cli, ["sync", "--dry-run", "--json"])

        assert result.exit_code == 0, result.output
        plan = json.loads(result.output)
        assert plan["commit"] == head
        assert plan["mode"] == "full"
        assert [f["path"] for f in plan["to_add"]] == ["A.png"]
        assert plan["to_delete"] == ["old.png"]
        assert tree_of(root) == {"old.png": b"o"}
        assert "last_sync_commit" not in read_config(initialized)

    def test_skipped_file_keeps_baseline(self, runner: CliRunner, initialized: Path, client: MagicMock, repo, root: Path) -> None:  # type: ignore[no-untyped-def]
        """An incomplete sync should not move the baseline."""
        from texsync.client.api import NotFoundError

        repo.commit({"A.png": b"a", "B.png": b"b"})
        repo.blob_failures["textures/SLUS-21214/A.png"] = NotFoundError("Not found", 404)

        result = runner.invoke(cli, ["sync", "--no-progress"])

        assert result.exit_code == 0, result.output
        assert "1 skipped" in result.output
        assert "Sync incomplete" in result.output
        assert (root / "B.png").is_file()
        assert "last_sync_commit" not in read_config(initialized)

    def test_revoked_token_aborts(self, runner: CliRunner, initialized: Path, client: MagicMock, repo) -> None:  # type: ignore[no-untyped-def]
        repo.commit({"A.png": b"a"})
        repo.blob_failures["textures/SLUS-21214/A.png"] = AuthenticationError("Bad credentials", 401)

        result = runner.invoke(cli, ["sync", "--no-progress"])

        assert result.exit_code == 1
        assert "Sync aborted" in result.output
        assert "Bad credentials" in result.output
        assert "last_sync_commit" not in read_config(initialized)

    def test_missing_managed_root(self, runner: CliRunner, config_dir: Path, client: MagicMock, repo, tmp_path: Path) -> None:  # type: ignore[no-untyped-def]
        repo.commit({"A.png": b"a"})
        write_config(config_dir, textures_dir=str(tmp_path / "gone"), github_token="t")

        result = runner.invoke(cli, ["sync", "--no-progress"])

        assert result.exit_code == 1
        assert "Managed root does not exist" in result.output

    def test_missing_token(self, runner: CliRunner, config_dir: Path, root: Path) -> None:
        write_config(config_dir, textures_dir=str(root.parent))

        result = runner.invoke(cli, ["sync"])

        assert result.exit_code == 1
        assert "No access token" in result.output

    def test_json_result(self, runner: CliRunner, initialized: Path, client: MagicMock, repo) -> None:  # type: ignore[no-untyped-def]
        head = repo.commit({"A.png": b"a"})

        result = runner.invoke(cli, ["sync", "--json"])

        assert result.exit_code == 0, result.output
        data = json.loads(result.output)
        assert data["commit"] == head
        assert data["downloaded"] == 1
        assert data["is_complete"] is True

    def test_rejects_bad_worker_count(self, runner: CliRunner, initialized: Path) -> None:
        result = runner.invoke(cli, ["sync", "--workers", "0"])
        assert result.exit_code == 2


class TestVerifyCommand:
    """Tests for 'texsync verify' command."""

    def test_counts_match(self, runner: CliRunner, initialized: Path, client: MagicMock, repo, root: Path, put_files) -> None:  # type: ignore[no-untyped-def]
        repo.commit({"A.png": b"a", "ui/B.png": b"b"})
        put_files(root, {"A.png": b"a", "ui/-B.png": b"b", "user-customs/X.png": b"x"})

        result = runner.invoke(cli, ["verify"])

        assert result.exit_code == 0, result.output
        assert "Local files:  2" in result.output
        assert "Counts match." in result.output

    def test_counts_differ(self, runner: CliRunner, initialized: Path, client: MagicMock, repo, root: Path, put_files) -> None:  # type: ignore[no-untyped-def]
        repo.commit({"A.png": b"a"})
        put_files(root, {"A.png": b"a", "extra.png": b"e"})

        result = runner.invoke(cli, ["verify"])

        assert result.exit_code == 0, result.output
        assert "Counts differ" in result.output


class TestRemoteUnavailable:
    """Tests for commands run while the remote cannot be reached."""

    @pytest.mark.parametrize("args", [["status"], ["sync", "--no-progress"], ["verify"]])
    def test_connection_error_is_reported(self, runner: CliRunner, initialized: Path, client: MagicMock, repo, args: list[str]) -> None:  # type: ignore[no-untyped-def]
        repo.commit({"A.png": b"a"})

        with patch.object(repo, "get_latest_commit", side_effect=httpx.ConnectError("Connection refused")):
            result = runner.invoke(cli, args)

        assert result.exit_code == 1
        assert "Error: Cannot reach the remote repository" in result.output
        assert "Connection refused" in result.output
        assert "last_sync_commit" not in read_config(initialized)

    def test_unexpected_execute_error_propagates(self, runner: CliRunner, initialized: Path, client: MagicMock, repo) -> None:  # type: ignore[no-untyped-def]
        """An unexpected failure should surface as itself, not as a missing result."""
        repo.commit({"A.png": b"a"})

        with patch.object(SyncEngine, "execute", side_effect=RuntimeError("boom")):
            result = runner.invoke(cli, ["sync", "--no-progress"])

        assert result.exit_code != 0
        assert isinstance(result.exception, RuntimeError)
        assert "last_sync_commit" not in read_config(initialized)
