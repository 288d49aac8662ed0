"""Filesystem primitives: live entry classification, copying, atomic writes."""

from __future__ import annotations

import filecmp
import json
import logging
import os
import shutil
import stat
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any

from ccprof.exceptions import FilesystemError
from ccprof.exceptions import InvalidJsonError
from ccprof.exceptions import PermissionDeniedError

logger = logging.getLogger(__name__)


class Disposition(Enum):
    ABSENT = "absent"
    REGULAR = "regular"
    VALID_SYMLINK = "symlink"
    BROKEN_SYMLINK = "broken symlink"


@dataclass(frozen=True)
class LiveEntry:
    """What was found at a path, observed without following the final symlink."""

    path: Path
    disposition: Disposition
    target: Path | None = None
    is_dir: bool = False

    @property
    def is_symlink(self) -> bool:
        return self.disposition in (Disposition.VALID_SYMLINK, Disposition.BROKEN_SYMLINK)


@contextmanager
def os_errors(operation: str, path: Path) -> Iterator[None]:
    """Translate OSError raised inside the block into ccprof exceptions."""
    try:
        yield
    except PermissionError as e:
        raise PermissionDeniedError(f"Permission denied: cannot {operation} {path}") from e
    except OSError as e:
        raise FilesystemError(operation, path, e) from e


def link_target(link: Path, raw: str) -> Path:
    """Absolute, normalised form of a symlink's stored target."""
    target = Path(raw)
    if not target.is_absolute():
        target = link.parent / target
    return Path(os.path.normpath(target))


def classify(path: Path) -> LiveEntry:
    """Classify ``path`` into one of the four dispositions.

    Only ``lstat`` and ``readlink`` look at the entry itself, so a symlink to a
    directory is reported as a symlink, never as regular content.
    """
    try:
        st = os.lstat(path)
    except (FileNotFoundError, NotADirectoryError):
        return LiveEntry(path, Disposition.ABSENT)

    if not stat.S_ISLNK(st.st_mode):
        return LiveEntry(path, Disposition.REGULAR, is_dir=stat.S_ISDIR(st.st_mode))

    try:
        target = link_target(path, os.readlink(path))
    except OSError:
        return LiveEntry(path, Disposition.BROKEN_SYMLINK)

    if os.path.exists(path):
        return LiveEntry(path, Disposition.VALID_SYMLINK, target=target, is_dir=os.path.isdir(path))
    return LiveEntry(path, Disposition.BROKEN_SYMLINK, target=target)


def copy_entry(src: Path, dst: Path) -> None:
    """Copy a file or directory tree to ``dst``, following symlinks at any level.

    Broken symlinks inside a tree are skipped.
    """
    dst.parent.mkdir(parents=True, exist_ok=True)
    if src.is_dir():
        _copy_dir(src, dst)
    else:
        shutil.copy2(src, dst)


def _copy_dir(src: Path, dst: Path) -> None:
    dst.mkdir(parents=True, exist_ok=True)

    for item in src.iterdir():
        item_dst = dst / item.name

        if item.is_symlink():
            real = item.resolve()
            if real.is_dir():
                shutil.copytree(real, item_dst)
            elif real.is_file():
                shutil.copy2(real, item_dst)
        elif item.is_dir():
            _copy_dir(item, item_dst)
        elif item.is_file():
            shutil.copy2(item, item_dst)


def remove_entry(path: Path) -> None:
    """Remove whatever is at ``path``; symlinks are unlinked, never followed."""
    if path.is_symlink() or not path.is_dir():
        path.unlink()
    else:
        shutil.rmtree(path)


def content_equal(a: Path, b: Path) -> bool:
    """Byte-for-byte comparison of two files or two directory trees."""
    if a.is_dir() != b.is_dir():
        return False
    if not a.is_dir():
        return filecmp.cmp(a, b, shallow=False)

    cmp = filecmp.dircmp(a, b, ignore=[], hide=[])
    return _trees_equal(cmp)


def _trees_equal(cmp: filecmp.dircmp) -> bool:
    if cmp.left_only or cmp.right_only or cmp.funny_files:
        return False
    _, mismatch, errors = filecmp.cmpfiles(cmp.left, cmp.right, cmp.common_files, shallow=False)
    if mismatch or errors:
        return False
    return all(_trees_equal(sub) for sub in cmp.subdirs.values())


def atomic_write_text(path: Path, content: str) -> None:
    """Write ``content`` to a temp file beside ``path`` and rename it into place."""
    path.parent.mkdir(parents=True, exist_ok=True)
    temp_path = path.with_name(f".{path.name}.tmp")
    try:
        with open(temp_path, "w", encoding="utf-8") as f:
            f.write(content)
            f.flush()
            os.fsync(f.fileno())
        temp_path.replace(path)
        logger.debug(f"Wrote {path}")
    except BaseException:
        if temp_path.exists():
            temp_path.unlink()
        raise


def write_json(path: Path, data: Any) -> None:
    atomic_write_text(path, json.dumps(data, indent=2) + "\n")


def read_json(path: Path) -> Any:
    """Parse a JSON file, raising InvalidJsonError with the path on bad content."""
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise InvalidJsonError(f"Invalid JSON in {path}: {e}") from e


def place_symlink(link: Path, target: Path, target_is_directory: bool) -> None:
    """Make ``link`` a symlink to ``target``, replacing whatever is there.

    The new link is created beside ``link`` and renamed over it, so the path
    holds either the old entry or the new link at every instant. A real
    directory cannot be renamed over, so it is moved aside first and deleted
    once the link is in place.
    """
    link.parent.mkdir(parents=True, exist_ok=True)
    staged = link.with_name(f".{link.name}.ccprof-link")
    if os.path.lexists(staged):
        staged.unlink()
    os.symlink(target, staged, target_is_directory=target_is_directory)

    aside = None
    try:
        if not link.is_symlink() and link.is_dir():
            aside = link.with_name(f".{link.name}.ccprof-old")
            if os.path.lexists(aside):
                remove_entry(aside)
            link.rename(aside)
        staged.replace(link)
    except BaseException:
        if aside is not None and not os.path.lexists(link):
            aside.rename(link)
        if os.path.lexists(staged):
            staged.unlink()
        raise

    if aside is not None:
        shutil.rmtree(aside)
