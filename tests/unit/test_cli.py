"""
Tests for configsync.cli.main module.
"""

import json
from datetime import datetime, timezone
from pathlib import Path

import pytest
from click.testing import CliRunner

from configsync.cli.main import cli
from configsync.core.config import ConfigSyncConfig
from configsync.core.models import STORE_FILE


@pytest.fixture
def runner() -> CliRunner:
    return CliRunner()


@pytest.fixture
def config_path(sample_config: ConfigSyncConfig, temp_dir: Path) -> Path:
    path = temp_dir / "config.json"
    sample_config.save(path)
    return path


def _invoke(runner: CliRunner, config_path: Path, *args: str):
    return runner.invoke(cli, ["--config", str(config_path), *args], obj={})


class TestConfigCommands:
    """Tests for the config subcommands."""

    def test_init_writes_file(self, runner: CliRunner, temp_dir: Path) -> None:
        path = temp_dir / "new" / "config.json"
        result = runner.invoke(
            cli,
            [
                "--config",
                str(path),
                "config",
                "init",
                "--sync-dir",
                str(temp_dir / "shared"),
                "--device-name",
                "studio",
            ],
            obj={},
        )
        assert result.exit_code == 0, result.output
        loaded = ConfigSyncConfig.load(path)
        assert loaded.sync.device_name == "studio"
        assert loaded.sync.provider.sync_directory == temp_dir / "shared"

    def test_init_refuses_overwrite(self, runner: CliRunner, config_path: Path) -> None:
        result = _invoke(runner, config_path, "config", "init")
        assert result.exit_code == 1

    def test_init_hosted_requires_credentials(self, runner: CliRunner, temp_dir: Path) -> None:
        result = runner.invoke(
            cli,
            ["--config", str(temp_dir / "c.json"), "config", "init", "--provider", "hosted"],
            obj={},
        )
        assert result.exit_code == 1
        assert not (temp_dir / "c.json").exists()

    def test_show_masks_api_key(self, runner: CliRunner, temp_dir: Path) -> None:
        path = temp_dir / "config.json"
        runner.invoke(
            cli,
            [
                "--config",
                str(path),
                "config",
                "init",
                "--provider",
                "hosted",
                "--api-url",
                "https://sync.example",
                "--api-key",
                "top-secret",
            ],
            obj={},
        )
        data = json.loads(path.read_text())
        data["logging"]["file_enabled"] = False
        data["logging"]["console_enabled"] = False
        data["sync"]["backup_directory"] = str(temp_dir / "backups")
        path.write_text(json.dumps(data))

        result = runner.invoke(cli, ["--config", str(path), "config", "show"], obj={})

        assert result.exit_code == 0, result.output
        assert "top-secret" not in result.output
        assert json.loads(result.output)["sync"]["provider"]["api_key"] == "***"


class TestSyncCommands:
    """Tests for sync, push and pull."""

    def test_sync_pushes_local_store(
        self, runner: CliRunner, config_path: Path, sample_config: ConfigSyncConfig, write_store
    ) -> None:
        write_store(sample_config.sync.store_directory)

        result = _invoke(runner, config_path, "--json", "sync")

        assert result.exit_code == 0, result.output
        data = json.loads(result.output)
        assert data["outcome"] == "pushed"
        assert (sample_config.sync.provider.sync_directory / STORE_FILE).exists()

    def test_sync_nothing_anywhere(self, runner: CliRunner, config_path: Path) -> None:
        result = _invoke(runner, config_path, "--json", "sync")
        assert result.exit_code == 0
        assert json.loads(result.output)["reason"] == "no-local-store"

    def test_pull_without_remote(self, runner: CliRunner, config_path: Path) -> None:
        result = _invoke(runner, config_path, "pull")
        assert result.exit_code == 0
        assert "no-remote-store" in result.output

    def test_push_reports_provider_errors(
        self, runner: CliRunner, config_path: Path, sample_config: ConfigSyncConfig, write_store
    ) -> None:
        write_store(sample_config.sync.store_directory)
        # A directory where the blob should go makes the atomic replace fail.
        (sample_config.sync.provider.sync_directory / STORE_FILE).mkdir()

        result = _invoke(runner, config_path, "push")

        assert result.exit_code == 1
        assert "✗" in result.output


class TestBackupCommands:
    """Tests for backup management commands."""

    def test_backup_and_list(
        self, runner: CliRunner, config_path: Path, sample_config: ConfigSyncConfig, write_store
    ) -> None:
        write_store(sample_config.sync.store_directory)

        created = _invoke(runner, config_path, "--json", "backup", "--label", "before-update")
        assert created.exit_code == 0, created.output
        name = json.loads(created.output)["name"]
        assert name.startswith("before-update-")

        listed = _invoke(runner, config_path, "--json", "backups")
        assert [e["name"] for e in json.loads(listed.output)] == [name]

        table = _invoke(runner, config_path, "backups")
        assert "before-update" in table.output

    def test_backup_without_store(self, runner: CliRunner, config_path: Path) -> None:
        result = _invoke(runner, config_path, "backup")
        assert result.exit_code == 1

    def test_restore(
        self,
        runner: CliRunner,
        config_path: Path,
        sample_config: ConfigSyncConfig,
        write_store,
        store_blob: bytes,
    ) -> None:
        store_dir = sample_config.sync.store_directory
        write_store(store_dir, db=store_blob + b"v1")
        created = _invoke(runner, config_path, "--json", "backup")
        name = json.loads(created.output)["name"]
        write_store(store_dir, db=store_blob + b"v2")

        result = _invoke(runner, config_path, "restore", name, "--yes")

        assert result.exit_code == 0, result.output
        assert (store_dir / STORE_FILE).read_bytes() == store_blob + b"v1"

    def test_restore_declined(
        self, runner: CliRunner, config_path: Path, sample_config: ConfigSyncConfig, write_store
    ) -> None:
        write_store(sample_config.sync.store_directory)
        result = runner.invoke(
            cli, ["--config", str(config_path), "restore", "anything"], obj={}, input="n\n"
        )
        assert result.exit_code == 1

    def test_restore_unknown(self, runner: CliRunner, config_path: Path) -> None:
        result = _invoke(runner, config_path, "restore", "missing", "--yes")
        assert result.exit_code == 1
        assert "not found" in result.output


class TestStatusCommand:
    """Tests for the status command."""

    def test_status_json(
        self, runner: CliRunner, config_path: Path, sample_config: ConfigSyncConfig, write_store
    ) -> None:
        modified = datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)
        write_store(sample_config.sync.store_directory, modified=modified)

        result = _invoke(runner, config_path, "--json", "status")

        assert result.exit_code == 0, result.output
        data = json.loads(result.output)
        assert data["local_modified"] == modified.isoformat()
        assert data["remote"] is None
        assert {c["name"] for c in data["checks"]} >= {"Store Directory", "Owner Process"}

    def test_status_table(self, runner: CliRunner, config_path: Path) -> None:
        result = _invoke(runner, config_path, "status")
        assert result.exit_code == 0, result.output
        assert "ConfigSync Status" in result.output
        assert "No remote config yet" in result.output
