"""Timestamped snapshots of live content replaced by a switch."""

from __future__ import annotations

import logging
import os
import re
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from pathlib import Path

from ccprof.components import Component
from ccprof.components import get_component
from ccprof.exceptions import BackupNotFoundError
from ccprof.exceptions import RestoreConflictError
from ccprof.exceptions import UnknownComponentError
from ccprof.fs import Disposition
from ccprof.fs import LiveEntry
from ccprof.fs import classify
from ccprof.fs import content_equal
from ccprof.fs import copy_entry
from ccprof.fs import os_errors
from ccprof.fs import remove_entry

logger = logging.getLogger(__name__)

TIMESTAMP_FORMAT = "%Y%m%dT%H%M%S%fZ"
_NAME_RE = re.compile(r"^(?P<component>[a-z]+)\.(?P<stamp>\d{8}T\d{12}Z)\.bak(?P<dir>\.dir)?$")


@dataclass(frozen=True)
class BackupRecord:
    component: Component
    timestamp: datetime
    path: Path

    @property
    def id(self) -> str:
        return self.path.name

    @property
    def is_dir(self) -> bool:
        return self.path.name.endswith(".dir")

    @property
    def size(self) -> int:
        if not self.is_dir:
            return self.path.stat().st_size
        return sum(f.stat().st_size for f in self.path.rglob("*") if f.is_file())


def backup_name(component: Component, timestamp: datetime, is_dir: bool) -> str:
    suffix = ".bak.dir" if is_dir else ".bak"
    return f"{component.name}.{timestamp.strftime(TIMESTAMP_FORMAT)}{suffix}"


def parse_backup_name(path: Path) -> BackupRecord | None:
    """Parse a backup file name, or return None if it is not one of ours."""
    match = _NAME_RE.match(path.name)
    if not match:
        return None
    try:
        component = get_component(match["component"])
    except UnknownComponentError:
        return None
    timestamp = datetime.strptime(match["stamp"], TIMESTAMP_FORMAT).replace(tzinfo=timezone.utc)
    return BackupRecord(component, timestamp, path)


class BackupStore:
    """Append-only backup directory with per-component rotation."""

    def __init__(self, backups_dir: Path):
        self.backups_dir = backups_dir

    def snapshot(self, component: Component, entry: LiveEntry) -> BackupRecord:
        """Copy real live content into a new backup.

        Symlinks are never snapshotted: what they point at is the data, and it
        lives elsewhere.
        """
        if entry.disposition is not Disposition.REGULAR:
            raise ValueError(f"Only regular content can be backed up, got {entry.disposition.value}")

        with os_errors("back up", entry.path):
            self.backups_dir.mkdir(parents=True, exist_ok=True)
            timestamp = datetime.now(timezone.utc)
            final = self.backups_dir / backup_name(component, timestamp, entry.is_dir)
            while os.path.lexists(final):
                timestamp += timedelta(microseconds=1)
                final = self.backups_dir / backup_name(component, timestamp, entry.is_dir)

            staged = self.backups_dir / f".tmp-{final.name}"
            try:
                copy_entry(entry.path, staged)
                staged.rename(final)
            except BaseException:
                if os.path.lexists(staged):
                    remove_entry(staged)
                raise

        logger.info(f"Backed up {entry.path} to {final}")
        return BackupRecord(component, timestamp, final)

    def list(self, component: Component | None = None) -> list[BackupRecord]:
        """Backups oldest first, optionally for one component."""
        if not self.backups_dir.is_dir():
            return []
        records = []
        with os_errors("list", self.backups_dir):
            for path in self.backups_dir.iterdir():
                record = parse_backup_name(path)
                if record is None:
                    continue
                if component is None or record.component == component:
                    records.append(record)
        return sorted(records, key=lambda r: (r.timestamp, r.component.name))

    def orphans(self) -> list[Path]:
        """Entries in the backup dir that do not belong to any known component."""
        if not self.backups_dir.is_dir():
            return []
        return sorted(
            p for p in self.backups_dir.iterdir() if not p.name.startswith(".") and parse_backup_name(p) is None
        )

    def get(self, record_id: str) -> BackupRecord:
        path = self.backups_dir / record_id
        record = parse_backup_name(path) if path.parent == self.backups_dir else None
        if record is None or not os.path.lexists(path):
            raise BackupNotFoundError(f"Backup '{record_id}' not found")
        return record

    def restore(self, record_id: str, live_path: Path, overwrite: bool = False) -> BackupRecord | None:
        """Write a backup's content back to ``live_path``.

        A symlink or nothing at ``live_path`` is simply replaced. Real content
        that differs from the backup raises RestoreConflictError unless
        ``overwrite`` is set, in which case it is itself backed up first and
        that new backup is returned.
        """
        record = self.get(record_id)
        entry = classify(live_path)
        safety = None

        if entry.disposition is Disposition.REGULAR:
            if content_equal(live_path, record.path):
                logger.info(f"{live_path} already matches backup {record.id}")
                return None
            if not overwrite:
                raise RestoreConflictError(
                    f"{live_path} contains content that differs from backup '{record.id}'; "
                    "restore with overwrite to replace it"
                )
            safety = self.snapshot(record.component, entry)

        with os_errors("restore", live_path):
            staged = live_path.with_name(f".{live_path.name}.ccprof-restore")
            if os.path.lexists(staged):
                remove_entry(staged)
            copy_entry(record.path, staged)
            if os.path.lexists(live_path):
                remove_entry(live_path)
            staged.rename(live_path)

        logger.info(f"Restored backup {record.id} to {live_path}")
        return safety

    def delete(self, record_id: str) -> None:
        record = self.get(record_id)
        with os_errors("delete", record.path):
            remove_entry(record.path)
        logger.info(f"Deleted backup {record.id}")

    def rotate(self, component: Component, keep: int) -> list[BackupRecord]:
        """Delete all but the newest ``keep`` backups of ``component``, oldest first."""
        if keep < 0:
            raise ValueError("keep must not be negative")
        records = self.list(component)
        doomed = records[: max(len(records) - keep, 0)]
        for record in doomed:
            with os_errors("delete", record.path):
                remove_entry(record.path)
            logger.debug(f"Rotated out backup {record.id}")
        if doomed:
            logger.info(f"Removed {len(doomed)} old {component.name} backup(s), keeping {keep}")
        return doomed
