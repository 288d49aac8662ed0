"""Persistent record of which profile is active."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Any

from ccprof.exceptions import InvalidJsonError
from ccprof.fs import os_errors
from ccprof.fs import read_json
from ccprof.fs import write_json

logger = logging.getLogger(__name__)


@dataclass
class ActiveState:
    """Contents of ``state.json``."""

    active_profile: str | None = None
    last_switched_at: datetime | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "activeProfile": self.active_profile,
            "lastSwitchedAt": self.last_switched_at.isoformat() if self.last_switched_at else None,
        }

    @classmethod
    def from_dict(cls, data: Any) -> ActiveState:
        if not isinstance(data, dict):
            raise InvalidJsonError("State file must contain a JSON object")
        active = data.get("activeProfile")
        switched = data.get("lastSwitchedAt")
        if active is not None and not isinstance(active, str):
            raise InvalidJsonError("activeProfile must be a string or null")
        try:
            switched_at = datetime.fromisoformat(switched) if switched else None
        except (TypeError, ValueError) as e:
            raise InvalidJsonError(f"lastSwitchedAt is not an ISO 8601 timestamp: {switched!r}") from e
        return cls(active_profile=active, last_switched_at=switched_at)


class StateStore:
    """Reads and atomically writes the active state file.

    There is no cross-process lock: concurrent writers race and the last
    rename wins, but a reader never sees a half-written file.
    """

    def __init__(self, path: Path):
        self.path = path

    def read(self) -> ActiveState:
        """Return the stored state, or an empty state if the file is absent."""
        if not self.path.exists():
            return ActiveState()
        with os_errors("read", self.path):
            if not self.path.read_bytes().strip():
                return ActiveState()
            data = read_json(self.path)
        return ActiveState.from_dict(data)

    def write(self, state: ActiveState) -> None:
        with os_errors("write", self.path):
            write_json(self.path, state.to_dict())
        logger.info(f"Active profile recorded as {state.active_profile!r}")
