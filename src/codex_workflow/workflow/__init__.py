"""Manifest-driven worker/review workflows over `codex exec` sessions.

A manifest lists tickets; each ticket is handed to a worker session and then
to a review session. Progress is persisted to `state.json` under the
workflow's artifacts root so interrupted runs can be resumed.
"""

from .errors import (
    ManifestError,
    ManifestParseError,
    ManifestValidationError,
    SessionLaunchError,
    WorkflowError,
    WorkflowIOError,
    WorkflowStateError,
    WorkingDirectoryError,
)
from .layout import WorkflowLayout, sanitize_ticket_id
from .manifest import TicketSpec, WorkflowManifest, load_manifest
from .orchestrator import (
    WorkflowRunOptions,
    WorkflowStatusReport,
    load_status,
    run_workflow,
)
from .session import SessionLauncher, SessionRequest, SessionResult
from .state import TicketRunState, TicketStatus, WorkflowState

__all__ = [
    "ManifestError",
    "ManifestParseError",
    "ManifestValidationError",
    "SessionLaunchError",
    "SessionLauncher",
    "SessionRequest",
    "SessionResult",
    "TicketRunState",
    "TicketSpec",
    "TicketStatus",
    "WorkflowError",
    "WorkflowIOError",
    "WorkflowLayout",
    "WorkflowManifest",
    "WorkflowRunOptions",
    "WorkflowState",
    "WorkflowStateError",
    "WorkflowStatusReport",
    "WorkingDirectoryError",
    "load_manifest",
    "load_status",
    "run_workflow",
    "sanitize_ticket_id",
]
