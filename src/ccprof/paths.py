"""Canonical filesystem locations used by ccprof."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from ccprof.components import Component
from ccprof.exceptions import PathResolutionError

HOME_ENV_VAR = "CCPROF_HOME"
BASE_DIR_NAME = ".claude-profiles"
LIVE_DIR_NAME = ".claude"


@dataclass(frozen=True)
class Paths:
    """All paths derived from one home directory.

    Nothing here touches the disk; stores create their directories lazily.
    """

    home: Path
    base_dir: Path
    profiles_dir: Path
    backups_dir: Path
    state_file: Path
    config_file: Path
    live_dir: Path

    def profile_dir(self, name: str) -> Path:
        return self.profiles_dir / name

    def profile_path(self, name: str, component: Component) -> Path:
        return self.profile_dir(name) / component.relative_path

    def live_path(self, component: Component) -> Path:
        return self.live_dir / component.relative_path

    def profile_for_target(self, target: Path) -> str | None:
        """Return the profile name a symlink target lives under, if any."""
        try:
            rel = target.relative_to(self.profiles_dir)
        except ValueError:
            return None
        return rel.parts[0] if rel.parts else None


def resolve_paths(home: Path | None = None) -> Paths:
    """Compute every ccprof location from a home directory.

    Uses ``$CCPROF_HOME`` when set, otherwise the platform home directory.
    """
    if home is None:
        override = os.environ.get(HOME_ENV_VAR)
        if override:
            home = Path(override)
        else:
            try:
                home = Path.home()
            except (RuntimeError, KeyError) as e:
                raise PathResolutionError("Could not determine the home directory") from e

    home = Path(os.path.abspath(home))
    base_dir = home / BASE_DIR_NAME
    return Paths(
        home=home,
        base_dir=base_dir,
        profiles_dir=base_dir / "profiles",
        backups_dir=base_dir / "backups",
        state_file=base_dir / "state.json",
        config_file=base_dir / "config.json",
        live_dir=home / LIVE_DIR_NAME,
    )
