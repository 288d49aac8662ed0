"""User settings for ccprof, stored beside the profile store."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from ccprof.components import parse_components
from ccprof.exceptions import EmptyComponentSetError
from ccprof.exceptions import InvalidJsonError
from ccprof.fs import read_json
from ccprof.fs import write_json

SETTINGS_VERSION = 1
DEFAULT_BACKUP_RETENTION = 10


@dataclass
class Settings:
    """Root settings object."""

    version: int = SETTINGS_VERSION
    backup_retention: int = DEFAULT_BACKUP_RETENTION
    default_components: list[str] = field(default_factory=lambda: ["settings"])

    def __post_init__(self) -> None:
        if self.backup_retention < 1:
            raise ValueError("backupRetention must be at least 1")
        if not parse_components(self.default_components):
            raise EmptyComponentSetError("defaultComponents must name at least one component")


def load_settings(path: Path) -> Settings:
    """Load settings from disk. Returns defaults if the file doesn't exist."""
    if not path.exists():
        return Settings()

    data = read_json(path)
    if not isinstance(data, dict):
        raise InvalidJsonError(f"{path} must contain a JSON object")

    try:
        return Settings(
            version=data.get("version", SETTINGS_VERSION),
            backup_retention=int(data.get("backupRetention", DEFAULT_BACKUP_RETENTION)),
            default_components=list(data.get("defaultComponents", ["settings"])),
        )
    except (TypeError, ValueError) as e:
        raise InvalidJsonError(f"Invalid settings in {path}: {e}") from e


def save_settings(settings: Settings, path: Path) -> None:
    """Save settings to disk."""
    data: dict[str, Any] = {
        "version": settings.version,
        "backupRetention": settings.backup_retention,
        "defaultComponents": settings.default_components,
    }
    write_json(path, data)
