"""On-disk profile store.

Each profile is a directory under ``profiles/`` holding a ``metadata.json``
and one copy of every component it tracks, at the component's relative path.
New profiles are assembled in a hidden staging directory and published with a
single rename, so a failed creation never leaves a half-built profile behind.
"""

from __future__ import annotations

import logging
import os
import re
import shutil
import tempfile
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any

from ccprof.components import SETTINGS
from ccprof.components import Component
from ccprof.components import get_component
from ccprof.components import in_registry_order
from ccprof.exceptions import DuplicateProfileError
from ccprof.exceptions import EmptyComponentSetError
from ccprof.exceptions import InvalidJsonError
from ccprof.exceptions import InvalidNameError
from ccprof.exceptions import ProfileError
from ccprof.exceptions import ProfileNotFoundError
from ccprof.fs import Disposition
from ccprof.fs import classify
from ccprof.fs import copy_entry
from ccprof.fs import os_errors
from ccprof.fs import read_json
from ccprof.fs import remove_entry
from ccprof.fs import write_json
from ccprof.paths import Paths

logger = logging.getLogger(__name__)

SCHEMA_VERSION = 1
METADATA_FILE = "metadata.json"
MAX_NAME_LENGTH = 64
_NAME_RE = re.compile(r"^[A-Za-z0-9_-]+$")


def validate_profile_name(name: str) -> None:
    """Only ASCII letters, digits, hyphens and underscores are allowed."""
    if not name:
        raise InvalidNameError("Profile name cannot be empty")
    if len(name) > MAX_NAME_LENGTH:
        raise InvalidNameError(f"Profile name cannot be longer than {MAX_NAME_LENGTH} characters")
    if not _NAME_RE.match(name):
        raise InvalidNameError(
            f"Invalid profile name '{name}'. "
            "Only alphanumeric characters, hyphens (-), and underscores (_) are allowed."
        )


class ComponentSource(Enum):
    """Where a new profile's component content comes from."""

    LIVE = "live"
    EMPTY = "empty"


@dataclass
class ProfileMetadata:
    schema_version: int
    created_at: datetime
    components: frozenset[Component]
    updated_at: datetime | None = None
    legacy: bool = False

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "schemaVersion": self.schema_version,
            "createdAt": self.created_at.isoformat(),
            "components": [c.name for c in in_registry_order(self.components)],
        }
        if self.updated_at:
            data["updatedAt"] = self.updated_at.isoformat()
        return data

    @classmethod
    def from_dict(cls, data: Any) -> ProfileMetadata:
        """Parse metadata; unknown component names are rejected, not ignored."""
        if not isinstance(data, dict):
            raise InvalidJsonError("Profile metadata must be a JSON object")
        try:
            names = data["components"]
            created_at = datetime.fromisoformat(data["createdAt"])
            updated = data.get("updatedAt")
            updated_at = datetime.fromisoformat(updated) if updated else None
            schema_version = int(data.get("schemaVersion", SCHEMA_VERSION))
        except (KeyError, TypeError, ValueError) as e:
            raise InvalidJsonError(f"Malformed profile metadata: {e}") from e
        if not isinstance(names, list):
            raise InvalidJsonError("Profile metadata 'components' must be a list")
        return cls(
            schema_version=schema_version,
            created_at=created_at,
            components=frozenset(get_component(str(n)) for n in names),
            updated_at=updated_at,
        )


@dataclass
class Profile:
    """A profile as found on disk.

    ``valid`` is False when the metadata is unreadable or a tracked component
    is missing or unparseable; ``problems`` says why.
    """

    name: str
    path: Path
    metadata: ProfileMetadata | None
    problems: list[str] = field(default_factory=list)

    @property
    def valid(self) -> bool:
        return self.metadata is not None and not self.problems

    @property
    def legacy(self) -> bool:
        return self.metadata is not None and self.metadata.legacy

    @property
    def components(self) -> list[Component]:
        if self.metadata is None:
            return []
        return in_registry_order(self.metadata.components)

    def component_path(self, component: Component) -> Path:
        return self.path / component.relative_path


def _now() -> datetime:
    return datetime.now(timezone.utc)


def check_component_content(path: Path, component: Component) -> None:
    """Raise ProfileError if a profile's copy of ``component`` is unusable."""
    if component.is_dir:
        if not path.is_dir():
            raise ProfileError(f"{component.display_name} directory is missing: {path}")
        return
    if not path.is_file():
        raise ProfileError(f"{component.display_name} file is missing: {path}")
    if component.is_json:
        with os_errors("read", path):
            read_json(path)


class ProfileStore:
    """CRUD over ``<base>/profiles``."""

    def __init__(self, paths: Paths):
        self.paths = paths

    @property
    def root(self) -> Path:
        return self.paths.profiles_dir

    def exists(self, name: str) -> bool:
        return self.paths.profile_dir(name).is_dir()

    def _require(self, name: str) -> Path:
        validate_profile_name(name)
        profile_dir = self.paths.profile_dir(name)
        if not profile_dir.is_dir():
            raise ProfileNotFoundError(f"Profile '{name}' does not exist")
        return profile_dir

    # ===== Reading =====

    def read(self, name: str) -> Profile:
        """Load one profile. Raises ProfileNotFoundError if it does not exist."""
        return self._load(name, self._require(name))

    def list(self) -> list[Profile]:
        """All profiles ordered by name.

        A corrupt profile is returned with ``valid=False`` instead of aborting
        the listing. Hidden entries (staging directories) are skipped.
        """
        if not self.root.is_dir():
            return []
        profiles = []
        with os_errors("list", self.root):
            entries = sorted(p for p in self.root.iterdir() if p.is_dir() and not p.name.startswith("."))
        for entry in entries:
            profiles.append(self._load(entry.name, entry))
        return profiles

    def _load(self, name: str, profile_dir: Path) -> Profile:
        metadata_path = profile_dir / METADATA_FILE
        try:
            metadata = self.read_metadata(profile_dir)
        except ProfileError as e:
            return Profile(name, profile_dir, None, [str(e)])
        except OSError as e:
            return Profile(name, profile_dir, None, [f"Cannot read {metadata_path}: {e}"])

        profile = Profile(name, profile_dir, metadata)
        for component in profile.components:
            try:
                check_component_content(profile.component_path(component), component)
            except ProfileError as e:
                profile.problems.append(str(e))
        return profile

    @staticmethod
    def read_metadata(profile_dir: Path) -> ProfileMetadata:
        """Read a profile's metadata.

        Profiles from before metadata existed hold only ``settings.json``; they
        are read as tracking settings alone and flagged ``legacy``.
        """
        path = profile_dir / METADATA_FILE
        if not path.exists():
            settings = profile_dir / SETTINGS.relative_path
            if settings.is_file():
                with os_errors("read", settings):
                    created_at = datetime.fromtimestamp(settings.stat().st_mtime, timezone.utc)
                return ProfileMetadata(SCHEMA_VERSION, created_at, frozenset({SETTINGS}), legacy=True)
            raise ProfileError(f"Missing {METADATA_FILE} in {profile_dir}")
        return ProfileMetadata.from_dict(read_json(path))

    # ===== Mutation =====

    def create(
        self,
        name: str,
        components: Iterable[Component],
        source: ComponentSource = ComponentSource.LIVE,
    ) -> Profile:
        """Create a profile tracking ``components``.

        With ``ComponentSource.LIVE`` each component is copied from the live
        directory (following symlinks); a component that is absent or a broken
        link there gets an empty default instead, as does every component with
        ``ComponentSource.EMPTY``.
        """
        validate_profile_name(name)
        components = frozenset(components)
        if not components:
            raise EmptyComponentSetError("A profile must track at least one component")
        final_dir = self.paths.profile_dir(name)
        if final_dir.exists():
            raise DuplicateProfileError(f"Profile '{name}' already exists")

        with os_errors("create", self.root):
            self.root.mkdir(parents=True, exist_ok=True)
            staging = Path(tempfile.mkdtemp(prefix=f".{name}.", suffix=".staging", dir=self.root))

        try:
            for component in in_registry_order(components):
                self._populate(staging, component, source)
            now = _now()
            metadata = ProfileMetadata(SCHEMA_VERSION, now, components)
            with os_errors("write metadata in", staging):
                write_json(staging / METADATA_FILE, metadata.to_dict())
            if final_dir.exists():
                raise DuplicateProfileError(f"Profile '{name}' already exists")
            with os_errors("publish", final_dir):
                staging.rename(final_dir)
        except BaseException:
            logger.debug(f"Discarding staging directory {staging}")
            shutil.rmtree(staging, ignore_errors=True)
            raise

        logger.info(f"Created profile '{name}' with {', '.join(c.name for c in in_registry_order(components))}")
        return self._load(name, final_dir)

    def _populate(self, profile_dir: Path, component: Component, source: ComponentSource) -> None:
        target = profile_dir / component.relative_path
        live = self.paths.live_path(component)

        if source is ComponentSource.LIVE:
            entry = classify(live)
            if entry.disposition in (Disposition.REGULAR, Disposition.VALID_SYMLINK):
                with os_errors("copy", live):
                    copy_entry(live, target)
                if component.is_json:
                    read_json(target)
                logger.debug(f"Copied {live} -> {target}")
                return

        write_empty_default(target, component)

    def set_components(self, name: str, components: Iterable[Component]) -> Profile:
        """Change which components a profile tracks.

        Newly tracked components the profile has no content for are copied from
        the live directory, or created empty. Content of dropped components is
        left on disk so re-tracking later restores it.
        """
        profile_dir = self._require(name)
        components = frozenset(components)
        if not components:
            raise EmptyComponentSetError("A profile must track at least one component")

        metadata = self.read_metadata(profile_dir)
        for component in in_registry_order(components - metadata.components):
            if not (profile_dir / component.relative_path).exists():
                self._populate(profile_dir, component, ComponentSource.LIVE)

        metadata.components = components
        metadata.updated_at = _now()
        with os_errors("write metadata in", profile_dir):
            write_json(profile_dir / METADATA_FILE, metadata.to_dict())
        logger.info(f"Profile '{name}' now tracks {', '.join(c.name for c in in_registry_order(components))}")
        return self._load(name, profile_dir)

    def rename(self, old: str, new: str) -> None:
        """Rename the profile directory. State and live links are the caller's job."""
        old_dir = self._require(old)
        validate_profile_name(new)
        new_dir = self.paths.profile_dir(new)
        if new_dir.exists():
            raise DuplicateProfileError(f"Profile '{new}' already exists")
        with os_errors("rename", old_dir):
            old_dir.rename(new_dir)
        logger.info(f"Renamed profile directory '{old}' -> '{new}'")

    def remove(self, name: str) -> None:
        profile_dir = self._require(name)
        with os_errors("remove", profile_dir):
            shutil.rmtree(profile_dir)
        logger.info(f"Removed profile '{name}'")


def write_empty_default(target: Path, component: Component) -> None:
    """Create the empty form of a component: ``{}`` for JSON, an empty dir otherwise."""
    with os_errors("create", target):
        if os.path.lexists(target):
            remove_entry(target)
        if component.is_dir:
            target.mkdir(parents=True)
        else:
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_text("{}\n" if component.is_json else "")
