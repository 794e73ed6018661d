"""Error taxonomy for workspace operations.

Operation-level failures propagate to callers as these types so the display
layer can report them. Background failures are logged, never raised.
"""

from __future__ import annotations


class WorkspaceError(Exception):
    """Base class for all workspace failures."""


class NoWorkspaceError(WorkspaceError):
    """No root directory has been selected for this session."""

    def __init__(self, message: str = "no workspace folder has been selected") -> None:
        super().__init__(message)


class PathNotFoundError(WorkspaceError, FileNotFoundError):
    """A path segment is missing or is not the expected kind."""

    def __init__(self, path: str, reason: str = "not found") -> None:
        self.path = path
        self.reason = reason
        super().__init__(f"{path}: {reason}")

    def __str__(self) -> str:
        return f"{self.path}: {self.reason}"


class WorkspacePermissionError(WorkspaceError, PermissionError):
    """Access to a path was denied or has been revoked."""

    def __init__(self, path: str) -> None:
        self.path = path
        super().__init__(f"{path}: permission denied")

    def __str__(self) -> str:
        return f"{self.path}: permission denied"


class FormatDecodeError(WorkspaceError):
    """A word-processor file could not be decoded, not even as plain text."""


class PersistenceError(WorkspaceError):
    """The handle persistence backend could not be read or written."""


__all__ = [
    "WorkspaceError",
    "NoWorkspaceError",
    "PathNotFoundError",
    "WorkspacePermissionError",
    "FormatDecodeError",
    "PersistenceError",
]
