"""Exceptions for ccprof."""

from __future__ import annotations

from pathlib import Path


class ProfileError(Exception):
    """Base exception for profile management errors."""

    pass


class InvalidNameError(ProfileError):
    """Profile name is empty, too long, or uses characters outside [A-Za-z0-9_-]."""

    pass


class DuplicateProfileError(ProfileError):
    """A profile with the requested name already exists."""

    pass


class ProfileNotFoundError(ProfileError):
    """The named profile does not exist in the store."""

    pass


class ActiveProfileRemovalError(ProfileError):
    """Refused to remove the currently active profile."""

    pass


class EmptyComponentSetError(ProfileError):
    """A profile must track at least one component."""

    pass


class UnknownComponentError(ProfileError):
    """Component name is not in the registry."""

    pass


class SourceMissingError(ProfileError):
    """The target profile has no content for a component it should provide."""

    pass


class PermissionDeniedError(ProfileError):
    """The operating system refused access to a path."""

    pass


class SwitchVerificationError(ProfileError):
    """A live path did not point at the profile after switching."""

    pass


class RestoreConflictError(ProfileError):
    """The live path holds real content that differs from the backup."""

    pass


class BackupNotFoundError(ProfileError):
    """No backup exists with the given id."""

    pass


class InvalidJsonError(ProfileError):
    """A JSON document (settings, metadata or state) failed to parse."""

    pass


class PathResolutionError(ProfileError):
    """The home directory could not be determined."""

    pass


class FilesystemError(ProfileError):
    """Unexpected OS failure, wrapped with the operation and path involved."""

    def __init__(self, operation: str, path: Path, cause: OSError):
        self.operation = operation
        self.path = path
        self.cause = cause
        reason = cause.strerror or str(cause)
        super().__init__(f"Failed to {operation} {path}: {reason}")
