"""Unit tests for the vaultsync CLI commands."""

import json
from unittest.mock import Mock, patch

import pytest
from click.testing import CliRunner

from vaultsync.cli import _conflict_prompter, main
from vaultsync.exceptions import ConfigError, PullRequiredError
from vaultsync.models import RemoteObject
from vaultsync.sync import ConflictInfo, ConflictResolution, SyncDiff, SyncResult, SyncStatus


@pytest.fixture
def runner():
    """Provide a Click CLI test runner."""
    return CliRunner()


@pytest.fixture
def config_file(tmp_path, monkeypatch):
    for name in ("VAULTSYNC_REFRESH_TOKEN", "VAULTSYNC_VAULT_ID", "VAULTSYNC_VAULT_PATH"):
        monkeypatch.delenv(name, raising=False)
    return tmp_path / "config.json"


@pytest.fixture
def engine():
    """Patch engine construction and return the mock engine."""
    mock_engine = Mock()
    with patch("vaultsync.cli._build_engine", return_value=mock_engine):
        yield mock_engine


def invoke(runner, config_file, *args, **kwargs):
    return runner.invoke(main, ["--config", str(config_file), *args], **kwargs)


def conflict(path="a.md", remote_deleted=False):
    return ConflictInfo(path, "t1", "t2", "h1", "" if remote_deleted else "h2", remote_deleted)


class TestMainGroup:
    """Tests for the main CLI group."""

    def test_main_help(self, runner):
        result = runner.invoke(main, ["--help"])
        assert result.exit_code == 0
        for command in ("init", "push", "pull", "push-all", "pull-all", "status", "untracked", "temp"):
            assert command in result.output

    def test_broken_config_file(self, runner, config_file):
        config_file.write_text("{broken")
        result = invoke(runner, config_file, "status")
        assert result.exit_code == 1
        assert "Failed to read config file" in result.output


class TestPushPull:
    """Tests for push and pull."""

    def test_push_summary(self, runner, config_file, engine):
        engine.push.return_value = SyncResult("push", uploaded=["a.md", "b.md"])

        result = invoke(runner, config_file, "push")

        assert result.exit_code == 0
        assert "push complete" in result.output
        assert "Uploaded" in result.output

    def test_push_blocked_exits_with_error(self, runner, config_file, engine):
        engine.push.return_value = SyncResult("push", status=SyncStatus.BLOCKED)

        result = invoke(runner, config_file, "push")

        assert result.exit_code == 1
        assert "vaultsync pull" in result.output

    def test_push_pull_required(self, runner, config_file, engine):
        engine.push.side_effect = PullRequiredError("Pull first.")

        result = invoke(runner, config_file, "push")

        assert result.exit_code == 1
        assert "Pull first." in result.output

    def test_pull_json_output(self, runner, config_file, engine):
        engine.pull.return_value = SyncResult("pull", downloaded=["a.md"], committed=True)

        result = invoke(runner, config_file, "--json", "pull")

        assert result.exit_code == 0
        data = json.loads(result.output)
        assert data["downloaded"] == ["a.md"]
        assert data["status"] == "completed"
        assert engine.pull.call_args.kwargs["tracker"] is None

    def test_pull_keep_remote_resolves_everything(self, runner, config_file, engine):
        engine.pull.return_value = SyncResult("pull", status=SyncStatus.UP_TO_DATE)

        result = invoke(runner, config_file, "-q", "pull", "--keep", "remote")

        assert result.exit_code == 0
        callback = engine.pull.call_args.kwargs["resolve_conflicts"]
        assert callback([conflict("a.md"), conflict("b.md")]) == {
            "a.md": ConflictResolution.REMOTE,
            "b.md": ConflictResolution.REMOTE,
        }

    def test_failures_exit_with_error(self, runner, config_file, engine):
        engine.pull.return_value = SyncResult("pull", failures={"a.md": "disk full"})

        result = invoke(runner, config_file, "pull")

        assert result.exit_code == 1
        assert "disk full" in result.output

    def test_missing_configuration(self, runner, config_file):
        with patch("vaultsync.cli._build_engine", side_effect=ConfigError("No vault path")):
            result = invoke(runner, config_file, "push")
        assert result.exit_code == 1
        assert "No vault path" in result.output


class TestConflictPrompt:
    """Tests for the interactive conflict prompt."""

    def test_prompt_per_conflict(self):
        out = Mock()
        resolve = _conflict_prompter(out, None)
        with patch("vaultsync.cli.click.prompt", side_effect=["local", "remote"]):
            resolutions = resolve([conflict("a.md"), conflict("b.md", remote_deleted=True)])
        assert resolutions == {
            "a.md": ConflictResolution.LOCAL,
            "b.md": ConflictResolution.REMOTE,
        }

    def test_cancel_returns_none(self):
        resolve = _conflict_prompter(Mock(), None)
        with patch("vaultsync.cli.click.prompt", side_effect=["local", "cancel"]):
            assert resolve([conflict("a.md"), conflict("b.md")]) is None


class TestFullSync:
    """Tests for push-all and pull-all confirmation."""

    def test_push_all_declined(self, runner, config_file, engine):
        result = invoke(runner, config_file, "push-all", input="n\n")

        assert result.exit_code == 0
        assert "cancelled" in result.output
        engine.push_all.assert_not_called()

    def test_pull_all_with_yes(self, runner, config_file, engine):
        engine.pull_all.return_value = SyncResult("pull_all", downloaded=["a.md"])

        result = invoke(runner, config_file, "pull-all", "--yes")

        assert result.exit_code == 0
        engine.pull_all.assert_called_once()


class TestStatusAndMaintenance:
    """Tests for status, untracked, excluded and temp commands."""

    def test_status_in_sync(self, runner, config_file, engine):
        engine.compute_diff.return_value = SyncDiff()

        result = invoke(runner, config_file, "status")

        assert "Everything is in sync" in result.output

    def test_status_json(self, runner, config_file, engine):
        engine.compute_diff.return_value = SyncDiff(to_upload=["a.md"], conflicts=[conflict()])

        result = invoke(runner, config_file, "--json", "status")

        data = json.loads(result.output)
        assert data["toUpload"] == ["a.md"]
        assert data["conflicts"][0]["path"] == "a.md"

    def test_untracked_list_json(self, runner, config_file, engine):
        engine.get_untracked_files.return_value = [RemoteObject(id="1", name="a_old.md")]

        result = invoke(runner, config_file, "--json", "untracked")

        assert json.loads(result.output)[0]["name"] == "a_old.md"

    def test_untracked_restore_all(self, runner, config_file, engine):
        objects = [RemoteObject(id="1", name="a.md"), RemoteObject(id="2", name="b.md")]
        engine.get_untracked_files.return_value = objects
        engine.restore_untracked_files.return_value = ["a.md", "b.md"]

        result = invoke(runner, config_file, "untracked", "--restore-all")

        assert result.exit_code == 0
        engine.restore_untracked_files.assert_called_once_with(objects)
        assert "Restored 2 file(s)" in result.output

    def test_untracked_delete(self, runner, config_file, engine):
        engine.get_untracked_files.return_value = []
        engine.delete_untracked_files.return_value = 1

        result = invoke(runner, config_file, "untracked", "--delete", "1")

        engine.delete_untracked_files.assert_called_once_with(["1"])
        assert "Deleted 1 file(s)" in result.output

    def test_excluded_delete(self, runner, config_file, engine):
        engine.get_excluded_remote_files.return_value = [
            RemoteObject(id="9", name=".obsidian/app.json")
        ]
        engine.delete_remote_files.return_value = 1

        result = invoke(runner, config_file, "excluded", "--delete")

        engine.delete_remote_files.assert_called_once_with(["9"])
        assert "Deleted 1 excluded file(s)" in result.output

    def test_temp_upload(self, runner, config_file, engine):
        result = invoke(runner, config_file, "temp", "upload", "notes/a.md")

        assert result.exit_code == 0
        engine.temp_upload.assert_called_once_with("notes/a.md")

    def test_temp_delete(self, runner, config_file, engine):
        engine.delete_temp_files.return_value = 2

        result = invoke(runner, config_file, "temp", "delete", "1", "2")

        engine.delete_temp_files.assert_called_once_with(["1", "2"])
        assert "Deleted 2 file(s)" in result.output


class TestInitCommand:
    """Tests for the init command."""

    @patch("vaultsync.cli.DriveClient")
    @patch("vaultsync.cli.TokenManager")
    def test_init_saves_config(self, mock_tokens, mock_client_cls, runner, config_file, tmp_path):
        client = mock_client_cls.return_value.__enter__.return_value
        client.ensure_vault_folder.return_value = "vault-id"
        vault = tmp_path / "MyVault"
        vault.mkdir()

        result = invoke(
            runner,
            config_file,
            "init",
            "--refresh-token",
            "secret",
            "--refresh-url",
            "https://example.test/token",
            "--vault-path",
            str(vault),
        )

        assert result.exit_code == 0, result.output
        client.ensure_vault_folder.assert_called_once_with("MyVault")
        saved = json.loads(config_file.read_text())
        assert saved["vault_id"] == "vault-id"
        assert saved["refresh_token"] == "secret"
        assert saved["vault_path"] == str(vault)
