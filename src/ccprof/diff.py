"""Compare one component between two profiles."""

from __future__ import annotations

import difflib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from ccprof.fs import read_json

MISSING: Any = object()


@dataclass(frozen=True)
class KeyChange:
    """A dotted JSON key whose value differs. MISSING marks an absent side."""

    key: str
    left: Any
    right: Any


def diff_json(left: Path, right: Path) -> list[KeyChange]:
    """Key-level differences between two JSON documents, sorted by key."""
    changes: list[KeyChange] = []
    _compare(read_json(left), read_json(right), "", changes)
    return sorted(changes, key=lambda c: c.key)


def _compare(a: Any, b: Any, prefix: str, changes: list[KeyChange]) -> None:
    if isinstance(a, dict) and isinstance(b, dict):
        for key in a.keys() | b.keys():
            path = f"{prefix}.{key}" if prefix else key
            if key not in b:
                changes.append(KeyChange(path, a[key], MISSING))
            elif key not in a:
                changes.append(KeyChange(path, MISSING, b[key]))
            else:
                _compare(a[key], b[key], path, changes)
    elif a != b:
        changes.append(KeyChange(prefix, a, b))


def format_value(value: Any, limit: int = 50) -> str:
    if value is MISSING:
        return "(missing)"
    if isinstance(value, str):
        text = f'"{value}"'
    elif isinstance(value, list):
        text = f"[{len(value)} items]"
    elif isinstance(value, dict):
        text = f"{{...}} ({len(value)} keys)"
    elif value is None:
        text = "null"
    elif isinstance(value, bool):
        text = "true" if value else "false"
    else:
        text = str(value)
    if len(text) > limit:
        return text[: limit - 3] + "..."
    return text


def collect_files(base_dir: Path) -> dict[str, str]:
    """Collect all files under base_dir.

    Returns {relative_path: content} for text files.
    """
    files = {}
    for f in sorted(base_dir.rglob("*")):
        if f.is_file():
            rel = f.relative_to(base_dir).as_posix()
            try:
                files[rel] = f.read_text()
            except (UnicodeDecodeError, PermissionError):
                files[rel] = "<binary>"
    return files


@dataclass
class TreeDiff:
    only_left: list[str] = field(default_factory=list)
    only_right: list[str] = field(default_factory=list)
    changed: list[str] = field(default_factory=list)
    patches: list[str] = field(default_factory=list)

    @property
    def identical(self) -> bool:
        return not (self.only_left or self.only_right or self.changed)


def diff_trees(
    left: Path,
    right: Path,
    left_label: str = "left",
    right_label: str = "right",
) -> TreeDiff:
    """File-level comparison of two directories with unified diffs for changed files."""
    left_files = collect_files(left)
    right_files = collect_files(right)
    result = TreeDiff()

    for path in sorted(set(left_files) | set(right_files)):
        if path not in right_files:
            result.only_left.append(path)
            continue
        if path not in left_files:
            result.only_right.append(path)
            continue

        left_content = left_files[path]
        right_content = right_files[path]
        if left_content == right_content:
            continue

        result.changed.append(path)
        diff_lines = difflib.unified_diff(
            left_content.splitlines(keepends=True),
            right_content.splitlines(keepends=True),
            fromfile=f"{left_label}/{path}",
            tofile=f"{right_label}/{path}",
        )
        diff_text = "".join(diff_lines)
        if diff_text:
            result.patches.append(diff_text)

    return result
