"""Shared test fixtures."""

import json

import pytest

from ccprof.backups import BackupStore
from ccprof.config import Settings
from ccprof.manager import ProfileManager
from ccprof.paths import resolve_paths
from ccprof.profiles import ProfileStore


@pytest.fixture
def home(tmp_path):
    """An isolated home directory."""
    home = tmp_path / "home"
    home.mkdir()
    return home


@pytest.fixture
def paths(home):
    return resolve_paths(home)


@pytest.fixture
def live_dir(paths):
    """Populate ~/.claude with a settings file and two component directories."""
    live = paths.live_dir
    live.mkdir()

    (live / "settings.json").write_text(json.dumps({"a": 1}) + "\n")

    agents = live / "agents"
    agents.mkdir()
    (agents / "reviewer.md").write_text("review carefully\n")

    commands = live / "commands"
    commands.mkdir()
    (commands / "commit.md").write_text("commit instructions\n")
    nested = commands / "git"
    nested.mkdir()
    (nested / "push.md").write_text("push instructions\n")

    return live


@pytest.fixture
def store(paths):
    return ProfileStore(paths)


@pytest.fixture
def backups(paths):
    return BackupStore(paths.backups_dir)


@pytest.fixture
def manager(paths):
    return ProfileManager(paths, Settings())
