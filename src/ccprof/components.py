"""Built-in registry of the configuration components a profile can track."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from enum import Enum

from ccprof.exceptions import UnknownComponentError


class Kind(Enum):
    FILE = "file"
    DIRECTORY = "directory"


@dataclass(frozen=True)
class Component:
    """A trackable entry under the live config directory."""

    name: str
    relative_path: str
    kind: Kind
    is_json: bool = False

    @property
    def display_name(self) -> str:
        return self.name.capitalize()

    @property
    def is_dir(self) -> bool:
        return self.kind is Kind.DIRECTORY


SETTINGS = Component("settings", "settings.json", Kind.FILE, is_json=True)
AGENTS = Component("agents", "agents", Kind.DIRECTORY)
HOOKS = Component("hooks", "hooks", Kind.DIRECTORY)
COMMANDS = Component("commands", "commands", Kind.DIRECTORY)

# Declaration order is the order components are switched in.
COMPONENTS: tuple[Component, ...] = (SETTINGS, AGENTS, HOOKS, COMMANDS)

_ALIASES = {c.relative_path: c for c in COMPONENTS}


def get_component(name: str) -> Component:
    """Look up a component by name or relative path (case-insensitive)."""
    key = name.strip().lower()
    for component in COMPONENTS:
        if component.name == key:
            return component
    if key in _ALIASES:
        return _ALIASES[key]
    valid = ", ".join(c.name for c in COMPONENTS)
    raise UnknownComponentError(f"Unknown component '{name}'. Valid components are: {valid}")


def parse_components(names: Iterable[str]) -> frozenset[Component]:
    """Turn a list of names into a component set, rejecting unknown names."""
    return frozenset(get_component(n) for n in names if n.strip())


def in_registry_order(components: Iterable[Component]) -> list[Component]:
    wanted = set(components)
    return [c for c in COMPONENTS if c in wanted]
