"""Switch engine: drive one live entry to a symlink into a profile.

For a single component the transition is chosen from the live entry's
disposition:

========================  ==================================================
absent                    create the link
regular file/directory    back it up, then replace it with the link
symlink to the profile    nothing to do
symlink elsewhere         replace the link (no backup, a link holds no data)
broken symlink            replace the link
========================  ==================================================

Afterwards the live path is probed again and must be a symlink to the desired
path, otherwise SwitchVerificationError is raised. Components are independent:
a failure on one never undoes another.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from enum import Enum
from pathlib import Path

from ccprof.backups import BackupRecord
from ccprof.backups import BackupStore
from ccprof.components import Component
from ccprof.exceptions import ProfileError
from ccprof.exceptions import SourceMissingError
from ccprof.exceptions import SwitchVerificationError
from ccprof.fs import Disposition
from ccprof.fs import classify
from ccprof.fs import os_errors
from ccprof.fs import place_symlink
from ccprof.fs import read_json

logger = logging.getLogger(__name__)


class Action(Enum):
    LINKED = "linked"
    BACKED_UP_AND_LINKED = "backed up and linked"
    RELINKED = "relinked"
    REPAIRED = "repaired broken link"
    UNCHANGED = "already linked"


@dataclass
class SwitchResult:
    component: Component
    action: Action | None = None
    backup: BackupRecord | None = None
    error: ProfileError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class SwitchReport:
    """Per-component outcome of switching to a profile, in switch order."""

    profile: str
    results: list[SwitchResult]

    @property
    def ok(self) -> bool:
        return all(r.ok for r in self.results)

    @property
    def succeeded(self) -> list[SwitchResult]:
        return [r for r in self.results if r.ok]

    @property
    def failed(self) -> list[SwitchResult]:
        return [r for r in self.results if not r.ok]

    @property
    def backups(self) -> list[BackupRecord]:
        return [r.backup for r in self.results if r.backup is not None]


def check_source(component: Component, source: Path) -> None:
    """Fail before touching the live path if the profile's copy is unusable."""
    if component.is_dir:
        present = source.is_dir()
    else:
        present = source.is_file()
    if not present:
        raise SourceMissingError(f"Profile has no {component.name} content at {source}")
    if component.is_json:
        with os_errors("read", source):
            read_json(source)


def switch_component(
    component: Component,
    live_path: Path,
    source: Path,
    backups: BackupStore,
) -> SwitchResult:
    """Make ``live_path`` a symlink to ``source``. Raises ProfileError on failure."""
    source = Path(os.path.normpath(source))
    check_source(component, source)

    with os_errors("inspect", live_path):
        entry = classify(live_path)
    result = SwitchResult(component)

    with os_errors("switch", live_path):
        if entry.disposition is Disposition.ABSENT:
            place_symlink(live_path, source, component.is_dir)
            result.action = Action.LINKED
        elif entry.disposition is Disposition.REGULAR:
            result.backup = backups.snapshot(component, entry)
            place_symlink(live_path, source, component.is_dir)
            result.action = Action.BACKED_UP_AND_LINKED
        elif entry.disposition is Disposition.VALID_SYMLINK and entry.target == source:
            result.action = Action.UNCHANGED
        elif entry.disposition is Disposition.VALID_SYMLINK:
            place_symlink(live_path, source, component.is_dir)
            result.action = Action.RELINKED
        else:
            place_symlink(live_path, source, component.is_dir)
            result.action = Action.REPAIRED

    verify_link(live_path, source)
    logger.info(f"{component.name}: {result.action.value} {live_path} -> {source}")
    return result


def verify_link(live_path: Path, source: Path) -> None:
    with os_errors("inspect", live_path):
        entry = classify(live_path)
    if entry.disposition is not Disposition.VALID_SYMLINK or entry.target != source:
        raise SwitchVerificationError(
            f"{live_path} should link to {source} but is {entry.disposition.value}"
            + (f" -> {entry.target}" if entry.target else "")
        )


def switch_components(
    components: list[Component],
    live_paths: dict[Component, Path],
    sources: dict[Component, Path],
    backups: BackupStore,
    profile: str,
) -> SwitchReport:
    """Switch each component in order, collecting failures instead of stopping."""
    report = SwitchReport(profile, [])
    for component in components:
        try:
            result = switch_component(component, live_paths[component], sources[component], backups)
        except ProfileError as e:
            logger.warning(f"{component.name}: switch to '{profile}' failed: {e}")
            result = SwitchResult(component, error=e)
        report.results.append(result)
    return report
