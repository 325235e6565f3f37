"""Error taxonomy for sync operations.

Parse errors are collected, not raised, by the store. Lock timeouts and
primary fetch failures abort an operation before any local mutation.
"""

from pathlib import Path


class SyncError(Exception):
    """Base class for errors raised by sync operations."""

    pass


class NotInitializedError(SyncError):
    """Raised when the store has no config (``issuesync init`` not run)."""

    pass


class ConfigError(SyncError):
    """Raised when the config file cannot be read or has invalid values."""

    pass


class NotFoundError(SyncError):
    """Raised when an identifier or path matches no local issue."""

    pass


class LockTimeoutError(SyncError):
    """Raised when the sync lock is held by another process past the timeout."""

    pass


class SyncCancelled(SyncError):
    """Raised when the caller's cancel event is set mid-operation."""

    pass


class IssueParseError(SyncError):
    """A single issue file could not be parsed."""

    def __init__(self, path: Path | str, cause: Exception | str, number: str | None = None) -> None:
        self.path = str(path)
        self.cause = cause
        self.number = number
        super().__init__(f"{self.path}: {cause}")
