"""High-level profile operations used by the CLI.

``ProfileManager`` ties the stores and the switch engine together. Every
operation loads the state it needs from disk, acts, and writes the state back;
nothing is cached between calls.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import datetime, timezone

from ccprof.backups import BackupRecord
from ccprof.backups import BackupStore
from ccprof.components import COMPONENTS
from ccprof.components import Component
from ccprof.components import get_component
from ccprof.components import in_registry_order
from ccprof.components import parse_components
from ccprof.config import Settings
from ccprof.config import load_settings
from ccprof.diff import KeyChange
from ccprof.diff import TreeDiff
from ccprof.diff import diff_json
from ccprof.diff import diff_trees
from ccprof.doctor import DiagnosticReport
from ccprof.doctor import run_diagnostics
from ccprof.exceptions import ActiveProfileRemovalError
from ccprof.exceptions import SourceMissingError
from ccprof.fs import LiveEntry
from ccprof.fs import classify
from ccprof.fs import os_errors
from ccprof.paths import Paths
from ccprof.profiles import ComponentSource
from ccprof.profiles import Profile
from ccprof.profiles import ProfileStore
from ccprof.state import ActiveState
from ccprof.state import StateStore
from ccprof.switch import SwitchReport
from ccprof.switch import switch_components

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LiveStatus:
    component: Component
    entry: LiveEntry
    profile: str | None


def _as_components(components: Iterable[Component | str]) -> frozenset[Component]:
    return frozenset(c if isinstance(c, Component) else get_component(c) for c in components)


def _as_component(component: Component | str) -> Component:
    return component if isinstance(component, Component) else get_component(component)


class ProfileManager:
    """Profile operations over one resolved set of paths.

    Args:
        paths: Locations from ``resolve_paths``
        settings: Overrides ``config.json`` when given
    """

    def __init__(self, paths: Paths, settings: Settings | None = None):
        self.paths = paths
        self.settings = settings if settings is not None else load_settings(paths.config_file)
        self.profiles = ProfileStore(paths)
        self.backups = BackupStore(paths.backups_dir)
        self.state = StateStore(paths.state_file)

    # ===== Profiles =====

    def list_profiles(self) -> list[Profile]:
        return self.profiles.list()

    def read_profile(self, name: str) -> Profile:
        return self.profiles.read(name)

    def create_profile(
        self,
        name: str,
        components: Iterable[Component | str] | None = None,
        source: ComponentSource = ComponentSource.LIVE,
    ) -> Profile:
        """Create a profile; ``components`` defaults to the configured default set."""
        if components is None:
            selected = parse_components(self.settings.default_components)
        else:
            selected = _as_components(components)
        return self.profiles.create(name, selected, source)

    def set_tracked_components(self, name: str, components: Iterable[Component | str]) -> Profile:
        return self.profiles.set_components(name, _as_components(components))

    def rename_profile(self, old: str, new: str) -> SwitchReport | None:
        """Rename a profile, re-pointing live links and state if it is active.

        Order: directory, then links, then state. The state is only updated
        when every link was re-pointed; otherwise the returned report lists the
        failures and ``switch_to(new)`` repairs the rest. Returns None when the
        profile was not active.
        """
        state = self.state.read()
        was_active = state.active_profile == old

        self.profiles.rename(old, new)
        if not was_active:
            return None

        old_dir = self.paths.profile_dir(old)
        profile = self.profiles.read(new)
        stale = []
        for component in profile.components:
            live = self.paths.live_path(component)
            with os_errors("inspect", live):
                entry = classify(live)
            if entry.is_symlink and entry.target is not None and entry.target.is_relative_to(old_dir):
                stale.append(component)

        report = self._switch(new, stale)
        if report.ok:
            state.active_profile = new
            self.state.write(state)
        else:
            logger.warning(f"Renamed '{old}' to '{new}' but {len(report.failed)} link(s) still point at the old name")
        return report

    def remove_profile(self, name: str, force: bool = False) -> None:
        """Delete a profile. The active profile is only removed with ``force``,
        which also clears the active state."""
        self.profiles.read(name)
        state = self.state.read()
        is_active = state.active_profile == name
        if is_active and not force:
            raise ActiveProfileRemovalError(
                f"Cannot remove '{name}' because it is the currently active profile. "
                "Switch to another profile first."
            )

        self.profiles.remove(name)
        if is_active:
            state.active_profile = None
            self.state.write(state)

    # ===== Switching =====

    def switch_to(self, name: str) -> SwitchReport:
        """Point every tracked live component at profile ``name``.

        Per-component failures are reported, not raised. The active state is
        written only when all components switched.
        """
        profile = self.profiles.read(name)
        metadata = self.profiles.read_metadata(profile.path)
        report = self._switch(name, in_registry_order(metadata.components))

        if report.ok:
            self.state.write(ActiveState(active_profile=name, last_switched_at=datetime.now(timezone.utc)))
        else:
            failed = ", ".join(r.component.name for r in report.failed)
            logger.warning(f"Switch to '{name}' incomplete; failed components: {failed}")
        return report

    def _switch(self, name: str, components: list[Component]) -> SwitchReport:
        report = switch_components(
            components,
            {c: self.paths.live_path(c) for c in components},
            {c: self.paths.profile_path(name, c) for c in components},
            self.backups,
            name,
        )
        for component in {b.component for b in report.backups}:
            self.backups.rotate(component, self.settings.backup_retention)
        return report

    def deactivate(self) -> None:
        """Forget the active profile. Live links are left untouched."""
        state = self.state.read()
        state.active_profile = None
        self.state.write(state)

    def read_active_state(self) -> ActiveState:
        return self.state.read()

    def live_status(self) -> list[LiveStatus]:
        statuses = []
        for component in COMPONENTS:
            live = self.paths.live_path(component)
            with os_errors("inspect", live):
                entry = classify(live)
            owner = self.paths.profile_for_target(entry.target) if entry.target else None
            statuses.append(LiveStatus(component, entry, owner))
        return statuses

    # ===== Backups =====

    def list_backups(self, component: Component | str | None = None) -> list[BackupRecord]:
        return self.backups.list(_as_component(component) if component is not None else None)

    def restore_backup(self, record_id: str, overwrite: bool = False) -> BackupRecord | None:
        """Restore a backup to its live path; returns the safety backup taken, if any."""
        record = self.backups.get(record_id)
        return self.backups.restore(record_id, self.paths.live_path(record.component), overwrite)

    def delete_backup(self, record_id: str) -> None:
        self.backups.delete(record_id)

    def rotate_backups(self, component: Component | str | None = None, keep: int | None = None) -> list[BackupRecord]:
        """Keep the newest ``keep`` backups (default: configured retention) per component."""
        keep = self.settings.backup_retention if keep is None else keep
        targets = [_as_component(component)] if component is not None else list(COMPONENTS)
        removed = []
        for target in targets:
            removed.extend(self.backups.rotate(target, keep))
        return removed

    # ===== Inspection =====

    def run_diagnostics(self) -> DiagnosticReport:
        return run_diagnostics(self.paths)

    def diff_profiles(self, left: str, right: str, component: Component | str) -> list[KeyChange] | TreeDiff:
        """JSON key changes for the settings file, a TreeDiff for directories."""
        component = _as_component(component)
        paths = []
        for name in (left, right):
            profile = self.profiles.read(name)
            path = profile.component_path(component)
            if not path.exists():
                raise SourceMissingError(f"Component '{component.name}' not found in profile '{name}'")
            paths.append(path)

        if component.is_json:
            return diff_json(paths[0], paths[1])
        return diff_trees(paths[0], paths[1], left, right)
