"""Read-only consistency checks over profiles, live links, state and backups.

Every check runs regardless of what earlier checks found, and I/O errors are
reported as findings rather than raised.
"""

from __future__ import annotations

import json
import logging
from collections import Counter
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path

from ccprof.backups import BackupStore
from ccprof.components import COMPONENTS
from ccprof.exceptions import InvalidJsonError
from ccprof.exceptions import ProfileError
from ccprof.fs import Disposition
from ccprof.fs import classify
from ccprof.paths import Paths
from ccprof.profiles import Profile
from ccprof.profiles import ProfileStore
from ccprof.profiles import check_component_content
from ccprof.state import ActiveState
from ccprof.state import StateStore

logger = logging.getLogger(__name__)


class Severity(Enum):
    ERROR = "error"
    WARNING = "warning"


class FindingKind(Enum):
    BROKEN_SYMLINK = "broken symlink"
    EXTERNAL_SYMLINK = "symlink outside profiles"
    INVALID_JSON = "invalid JSON"
    INVALID_METADATA = "invalid metadata"
    LEGACY_PROFILE = "legacy profile"
    MISSING_COMPONENT = "missing component"
    MISSING_ACTIVE_PROFILE = "missing active profile"
    UNREADABLE_STATE = "unreadable state"
    PARTIAL_SWITCH = "partial switch"
    ORPHANED_BACKUP = "orphaned backup"
    UNREADABLE = "unreadable"


@dataclass(frozen=True)
class Finding:
    kind: FindingKind
    message: str
    path: Path | None = None
    severity: Severity = Severity.ERROR


@dataclass
class DiagnosticReport:
    findings: list[Finding] = field(default_factory=list)
    profiles_checked: int = 0

    @property
    def ok(self) -> bool:
        return not any(f.severity is Severity.ERROR for f in self.findings)

    def of_kind(self, kind: FindingKind) -> list[Finding]:
        return [f for f in self.findings if f.kind is kind]

    def add(self, kind: FindingKind, message: str, path: Path | None = None, severity: Severity = Severity.ERROR):
        self.findings.append(Finding(kind, message, path, severity))


def run_diagnostics(paths: Paths) -> DiagnosticReport:
    report = DiagnosticReport()
    state = _check_state(paths, report)
    profiles = _check_profiles(paths, report)
    _check_live_links(paths, report, state, profiles)
    _check_backups(paths, report)
    logger.debug(f"Diagnostics finished with {len(report.findings)} finding(s)")
    return report


def _check_state(paths: Paths, report: DiagnosticReport) -> ActiveState | None:
    try:
        state = StateStore(paths.state_file).read()
    except ProfileError as e:
        report.add(FindingKind.UNREADABLE_STATE, str(e), paths.state_file)
        return None

    if state.active_profile and not paths.profile_dir(state.active_profile).is_dir():
        report.add(
            FindingKind.MISSING_ACTIVE_PROFILE,
            f"State says '{state.active_profile}' is active but that profile does not exist",
            paths.state_file,
        )
    return state


def _check_profiles(paths: Paths, report: DiagnosticReport) -> dict[str, Profile]:
    try:
        profiles = ProfileStore(paths).list()
    except ProfileError as e:
        report.add(FindingKind.UNREADABLE, str(e), paths.profiles_dir)
        return {}

    report.profiles_checked = len(profiles)
    for profile in profiles:
        if profile.metadata is None:
            report.add(FindingKind.INVALID_METADATA, f"{profile.name}: {profile.problems[0]}", profile.path)
            continue
        if profile.legacy:
            report.add(
                FindingKind.LEGACY_PROFILE,
                f"{profile.name}: no metadata.json, treated as tracking settings only",
                profile.path,
                Severity.WARNING,
            )
        for component in profile.components:
            path = profile.component_path(component)
            try:
                check_component_content(path, component)
            except InvalidJsonError as e:
                report.add(FindingKind.INVALID_JSON, f"{profile.name}: {e}", path)
            except ProfileError as e:
                report.add(FindingKind.MISSING_COMPONENT, f"{profile.name}: {e}", path)

    return {p.name: p for p in profiles}


def _check_live_links(
    paths: Paths,
    report: DiagnosticReport,
    state: ActiveState | None,
    profiles: dict[str, Profile],
) -> None:
    owners: dict[str, str | None] = {}

    for component in COMPONENTS:
        live = paths.live_path(component)
        try:
            entry = classify(live)
        except OSError as e:
            report.add(FindingKind.UNREADABLE, f"Cannot inspect {live}: {e}", live)
            continue

        if entry.disposition is Disposition.BROKEN_SYMLINK:
            report.add(FindingKind.BROKEN_SYMLINK, f"{live} points to missing {entry.target}", live)
        if entry.is_symlink and entry.target is not None:
            owner = paths.profile_for_target(entry.target)
            owners[component.name] = owner
            if owner is None:
                report.add(
                    FindingKind.EXTERNAL_SYMLINK,
                    f"{live} points outside the profile store: {entry.target}",
                    live,
                    Severity.WARNING,
                )
        else:
            owners[component.name] = None

        if component.is_json and entry.disposition in (Disposition.REGULAR, Disposition.VALID_SYMLINK):
            _check_live_json(live, report, profiles, owners[component.name])

    if state is None or not state.active_profile:
        return
    active = profiles.get(state.active_profile)
    if active is None or active.metadata is None:
        return

    tracked = active.components
    pointing = [c for c in tracked if owners.get(c.name) == active.name]
    if len(pointing) < len(tracked):
        elsewhere = Counter(owners.get(c.name) or "(not a profile link)" for c in tracked if c not in pointing)
        detail = ", ".join(f"{n} at {where}" for where, n in elsewhere.items())
        report.add(
            FindingKind.PARTIAL_SWITCH,
            f"{len(pointing)} of {len(tracked)} components point at profile '{active.name}' ({detail})",
        )


def _check_live_json(live: Path, report: DiagnosticReport, profiles: dict[str, Profile], owner: str | None) -> None:
    # A link into a profile is already covered by that profile's own check.
    if owner is not None and owner in profiles:
        return
    try:
        json.loads(live.read_text(encoding="utf-8"))
    except ValueError as e:
        report.add(FindingKind.INVALID_JSON, f"Invalid JSON in {live}: {e}", live)
    except OSError as e:
        report.add(FindingKind.UNREADABLE, f"Cannot read {live}: {e}", live)


def _check_backups(paths: Paths, report: DiagnosticReport) -> None:
    try:
        orphans = BackupStore(paths.backups_dir).orphans()
    except OSError as e:
        report.add(FindingKind.UNREADABLE, f"Cannot list backups: {e}", paths.backups_dir)
        return
    for orphan in orphans:
        report.add(
            FindingKind.ORPHANED_BACKUP,
            f"{orphan.name} does not belong to any known component",
            orphan,
            Severity.WARNING,
        )
