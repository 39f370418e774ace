from __future__ import annotations

from pathlib import Path
from typing import Optional


class WorkflowError(Exception):
    """Base class for failures that abort a workflow run."""

    def __init__(self, message: str, *, path: Optional[Path] = None) -> None:
        super().__init__(message)
        self.path = path


class ManifestError(WorkflowError):
    """The manifest could not be used to drive a run."""


class ManifestParseError(ManifestError):
    """The manifest file is unreadable or is neither valid YAML nor TOML."""


class ManifestValidationError(ManifestError):
    """The manifest parsed but violates a load-time invariant."""


class WorkingDirectoryError(WorkflowError):
    """A ticket's resolved working directory does not exist."""

    def __init__(self, message: str, *, path: Path, ticket_id: str) -> None:
        super().__init__(message, path=path)
        self.ticket_id = ticket_id


class WorkflowStateError(WorkflowError):
    """The persisted state file is missing, unreadable, or malformed."""


class WorkflowIOError(WorkflowError):
    """A directory, log, or state file could not be written."""

    def __init__(self, message: str, *, path: Path, operation: str) -> None:
        super().__init__(message, path=path)
        self.operation = operation


class SessionLaunchError(WorkflowError):
    """The session executable could not be started."""


__all__ = [
    "ManifestError",
    "ManifestParseError",
    "ManifestValidationError",
    "SessionLaunchError",
    "WorkflowError",
    "WorkflowIOError",
    "WorkflowStateError",
    "WorkingDirectoryError",
]
