"""Tests for the CLI interface."""

import json
from unittest.mock import patch

import pytest
from click.testing import CliRunner

from ccprof.cli import cli, format_bytes
from ccprof.components import SETTINGS
from ccprof.fs import classify


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def invoke(runner, home):
    """Run the CLI against the isolated home directory."""

    def run(*args, **kwargs):
        return runner.invoke(cli, list(args), env={"CCPROF_HOME": str(home)}, **kwargs)

    return run


class TestVersion:
    def test_version_flag(self, invoke):
        result = invoke("--version")
        assert result.exit_code == 0
        assert "ccprof" in result.output


class TestProfiles:
    def test_list_empty(self, invoke):
        result = invoke("list")
        assert result.exit_code == 0
        assert "No profiles found" in result.output

    def test_add_and_list(self, invoke, live_dir):
        result = invoke("add", "work", "--components", "settings,agents")
        assert result.exit_code == 0, result.output
        assert "Created profile 'work'" in result.output

        result = invoke("list")
        assert "work" in result.output
        assert "settings,agents" in result.output

    def test_add_prompts_for_components(self, invoke, live_dir):
        result = invoke("add", "work", input="commands\n")
        assert result.exit_code == 0, result.output
        assert "Commands" in result.output

    def test_add_invalid_name(self, invoke, live_dir):
        result = invoke("add", "bad name", "-c", "settings")
        assert result.exit_code == 1
        assert "Invalid profile name" in result.output

    def test_add_unknown_component(self, invoke, live_dir):
        result = invoke("add", "work", "-c", "plugins")
        assert result.exit_code == 1
        assert "Valid components are" in result.output

    def test_inspect(self, invoke, live_dir):
        invoke("add", "work", "-c", "settings")
        result = invoke("inspect", "work")
        assert result.exit_code == 0
        assert "Settings" in result.output

    def test_inspect_unknown(self, invoke):
        result = invoke("inspect", "nope")
        assert result.exit_code == 1
        assert "does not exist" in result.output

    def test_edit_track(self, invoke, live_dir):
        invoke("add", "work", "-c", "settings")
        result = invoke("edit", "work", "--track", "settings,hooks")
        assert result.exit_code == 0, result.output
        assert "settings, hooks" in result.output

    def test_edit_warns_on_invalid_json(self, invoke, paths, live_dir):
        invoke("add", "work", "-c", "settings")

        def fake_edit(filename):
            with open(filename, "w") as f:
                f.write("{oops")

        with patch("ccprof.cli.click.edit", side_effect=fake_edit):
            result = invoke("edit", "work")
        assert result.exit_code == 0
        assert "Invalid JSON" in result.output

    def test_rename(self, invoke, live_dir):
        invoke("add", "work", "-c", "settings")
        invoke("use", "work")
        result = invoke("rename", "work", "job")
        assert result.exit_code == 0, result.output
        assert "symlinks updated" in result.output
        assert "job" in invoke("current").output


class TestSwitching:
    def test_use_and_current(self, invoke, paths, live_dir):
        invoke("add", "work", "-c", "settings")
        result = invoke("use", "work")
        assert result.exit_code == 0, result.output
        assert "Active profile: work" in result.output
        assert "backup settings." in result.output
        assert classify(paths.live_path(SETTINGS)).target == paths.profile_path("work", SETTINGS)

        result = invoke("current")
        assert "Selected profile: work" in result.output
        assert "symlink -> work" in result.output

    def test_use_incomplete_exits_nonzero(self, invoke, paths, live_dir):
        invoke("add", "work", "-c", "settings")
        paths.profile_path("work", SETTINGS).unlink()
        result = invoke("use", "work")
        assert result.exit_code == 1
        assert "incomplete" in result.output

    def test_remove_active_refused(self, invoke, live_dir):
        invoke("add", "work", "-c", "settings")
        invoke("use", "work")
        result = invoke("remove", "work", "--yes")
        assert result.exit_code == 1
        assert "currently active" in result.output

    def test_remove_confirmation(self, invoke, paths, live_dir):
        invoke("add", "work", "-c", "settings")
        result = invoke("remove", "work", input="n\n")
        assert "cancelled" in result.output
        assert paths.profile_dir("work").is_dir()

        result = invoke("remove", "work", input="y\n")
        assert result.exit_code == 0
        assert not paths.profile_dir("work").exists()


class TestInspection:
    def test_diff_settings(self, invoke, live_dir):
        invoke("add", "work", "-c", "settings")
        invoke("add", "home", "-c", "settings", "--empty")
        result = invoke("diff", "work", "home")
        assert result.exit_code == 0, result.output
        assert "a: 1 -> (missing)" in result.output

    def test_doctor_clean(self, invoke, live_dir):
        result = invoke("doctor")
        assert result.exit_code == 0
        assert "No problems found" in result.output

    def test_doctor_reports_errors(self, invoke, paths, live_dir):
        invoke("add", "work", "-c", "settings")
        paths.profile_path("work", SETTINGS).write_text("{")
        result = invoke("doctor")
        assert result.exit_code == 1
        assert "[invalid JSON]" in result.output


class TestBackups:
    def test_list_empty(self, invoke):
        result = invoke("backup", "list")
        assert "No backups found" in result.output

    def test_list_and_restore(self, invoke, paths, live_dir):
        invoke("add", "work", "-c", "settings", "--empty")
        invoke("use", "work")

        result = invoke("backup", "list")
        assert "1 backup(s) found" in result.output
        backup_id = next(p.name for p in paths.backups_dir.iterdir())

        result = invoke("backup", "restore", backup_id, "--yes")
        assert result.exit_code == 0, result.output
        assert json.loads(paths.live_path(SETTINGS).read_text()) == {"a": 1}

    def test_restore_unknown(self, invoke):
        result = invoke("backup", "restore", "settings.20240101T000000000000Z.bak", "--yes")
        assert result.exit_code == 1
        assert "not found" in result.output

    def test_clean(self, invoke, live_dir):
        invoke("add", "work", "-c", "settings", "--empty")
        invoke("use", "work")
        result = invoke("backup", "clean", "--keep", "0")
        assert "Removed 1 old backup(s)" in result.output


class TestFormatBytes:
    def test_units(self):
        assert format_bytes(10) == "10 B"
        assert format_bytes(2048) == "2.0 KB"
        assert format_bytes(5 * 1024 * 1024) == "5.0 MB"


class TestConfig:
    def test_show_defaults(self, invoke, paths):
        result = invoke("config")
        assert result.exit_code == 0
        assert "Backup retention:   10 per component" in result.output
        assert not paths.config_file.exists()

    def test_save_settings(self, invoke, paths, live_dir):
        result = invoke("config", "--retention", "3", "--default-components", "agents,settings")
        assert result.exit_code == 0, result.output
        data = json.loads(paths.config_file.read_text())
        assert data["backupRetention"] == 3
        assert data["defaultComponents"] == ["settings", "agents"]

        assert "3 per component" in invoke("config").output

    def test_rejects_unknown_component(self, invoke, paths):
        result = invoke("config", "--default-components", "plugins")
        assert result.exit_code == 1
        assert not paths.config_file.exists()

    def test_rejects_zero_retention(self, invoke):
        assert invoke("config", "--retention", "0").exit_code == 2


class TestValidation:
    def test_clean_rejects_negative_keep(self, invoke):
        result = invoke("backup", "clean", "--keep", "-1")
        assert result.exit_code == 2
        assert "Traceback" not in result.output

    def test_list_marks_legacy_profile(self, invoke, paths):
        legacy = paths.profile_dir("old")
        legacy.mkdir(parents=True)
        (legacy / "settings.json").write_text("{}")

        result = invoke("list")
        assert "legacy" in result.output
        assert "legacy profile" in invoke("inspect", "old").output
