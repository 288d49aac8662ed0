"""ccprof: switch between Claude Code configuration profiles.

Profiles live under ``~/.claude-profiles/profiles/<name>``. Activating one
replaces each tracked entry in ``~/.claude`` with a symlink into the profile,
backing up any real content it displaces.

Example:
    ```python
    from ccprof import ProfileManager, resolve_paths

    manager = ProfileManager(resolve_paths())
    manager.create_profile("work", ["settings", "agents"])
    report = manager.switch_to("work")
    for result in report.failed:
        print(result.component.name, result.error)
    ```
"""

from .components import COMPONENTS
from .components import Component
from .components import get_component
from .exceptions import ProfileError
from .manager import ProfileManager
from .paths import Paths
from .paths import resolve_paths
from .profiles import ComponentSource

__version__ = "0.1.0"

__all__ = [
    "COMPONENTS",
    "Component",
    "ComponentSource",
    "Paths",
    "ProfileError",
    "ProfileManager",
    "get_component",
    "resolve_paths",
]
