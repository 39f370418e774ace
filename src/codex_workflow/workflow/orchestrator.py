"""Sequential worker/review driver for workflow tickets.

Each ticket goes through at most two sessions per run: a worker session and,
if that succeeds, a review session. State is saved right after a step is
marked running and again right after it finishes, so a resumed run can tell
where it stopped and never repeats a worker step that already succeeded.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional

from ..core.config import (
    WorkflowConfig,
    load_workflow_config,
    merge_config_overrides,
)
from ..core.logging_utils import log_event
from ..core.utils import resolve_executable
from .errors import WorkingDirectoryError
from .layout import WorkflowLayout, default_artifacts_root
from .manifest import TicketSpec, WorkflowManifest, load_manifest
from .prompts import review_prompt_for, worker_prompt_for
from .session import SessionLauncher, SessionRequest
from .state import TicketRunState, TicketStatus, WorkflowState

logger = logging.getLogger(__name__)

DEFAULT_CODEX_BINARY = "codex"
WORKER_SUCCESS_NOTE = "Worker completed successfully"
REVIEW_SUCCESS_NOTE = "Review passed"


@dataclass
class WorkflowRunOptions:
    manifest_path: Path
    artifacts_dir: Optional[Path] = None
    resume: bool = False
    codex_bin: Optional[Path] = None
    config_overrides: list[str] = field(default_factory=list)
    worker_model: Optional[str] = None
    reviewer_model: Optional[str] = None


@dataclass
class WorkflowStatusReport:
    workflow_name: str
    state_path: Path
    tickets: list[TicketRunState]

    @classmethod
    def from_state(
        cls, state: WorkflowState, state_path: Path
    ) -> "WorkflowStatusReport":
        return cls(
            workflow_name=state.workflow_name,
            state_path=state_path,
            tickets=list(state.tickets.values()),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "workflow_name": self.workflow_name,
            "state_path": str(self.state_path),
            "tickets": [ticket.to_dict() for ticket in self.tickets],
        }


def resolve_artifacts_dir(
    manifest: WorkflowManifest, override_dir: Optional[Path] = None
) -> Path:
    if override_dir is not None:
        return override_dir
    return default_artifacts_root(manifest.manifest_dir(), manifest.workflow_name())


def resolve_codex_bin(
    override: Optional[Path], config: Optional[WorkflowConfig] = None
) -> Path:
    if override is not None:
        return override
    if config is not None and config.codex_bin:
        return Path(config.codex_bin)
    found = resolve_executable(DEFAULT_CODEX_BINARY)
    return Path(found) if found else Path(DEFAULT_CODEX_BINARY)


class WorkflowRun:
    """Owns the mutable state of one run invocation."""

    def __init__(
        self,
        manifest: WorkflowManifest,
        layout: WorkflowLayout,
        state: WorkflowState,
        launcher: SessionLauncher,
        *,
        worker_model: Optional[str] = None,
        reviewer_model: Optional[str] = None,
        wrap_width: int,
        durable: bool = False,
    ) -> None:
        self.manifest = manifest
        self.layout = layout
        self.state = state
        self.launcher = launcher
        self.worker_model = worker_model
        self.reviewer_model = reviewer_model or worker_model
        self.wrap_width = wrap_width
        self.durable = durable
        self.state_path = layout.state_file()

    def checkpoint(self) -> None:
        self.state.save(self.state_path, durable=self.durable)

    def execute(self) -> WorkflowStatusReport:
        for ticket in self.manifest.tickets:
            self.process_ticket(ticket)
        self.checkpoint()
        return WorkflowStatusReport.from_state(self.state, self.state_path)

    def process_ticket(self, ticket: TicketSpec) -> None:
        entry = self.state.ticket(ticket.id)
        if entry is None:
            return
        if entry.status.is_terminal:
            log_event(
                logger,
                logging.INFO,
                "workflow.ticket.skip",
                ticket_id=ticket.id,
                status=entry.status.value,
            )
            return
        if not entry.status.in_review:
            self.run_worker(ticket, entry)
        self.run_review(ticket, entry)

    def _require_working_dir(self, ticket: TicketSpec) -> Path:
        working_dir = ticket.resolved_working_dir(self.manifest.manifest_dir())
        if not working_dir.exists():
            raise WorkingDirectoryError(
                f"working directory {working_dir} does not exist "
                f"for ticket {ticket.id}",
                path=working_dir,
                ticket_id=ticket.id,
            )
        return working_dir

    def run_worker(self, ticket: TicketSpec, entry: TicketRunState) -> None:
        working_dir = self._require_working_dir(ticket)
        self.layout.ensure_ticket_dir(ticket.id)
        self.layout.ensure_patch_dir(ticket.id)
        worker_log = self.layout.worker_log_path(ticket.id)
        request = SessionRequest(
            prompt=worker_prompt_for(
                self.manifest, ticket, self.layout, width=self.wrap_width
            ),
            working_dir=working_dir,
            log_path=worker_log,
            model=self.worker_model,
        )

        entry.set_worker_log(worker_log)
        entry.mark_running(TicketStatus.RUNNING_WORKER)
        self.checkpoint()
        log_event(
            logger,
            logging.INFO,
            "workflow.step.start",
            ticket_id=ticket.id,
            step="worker",
        )

        result = self.launcher.run(request)
        if result.success:
            entry.mark_paused(TicketStatus.NEEDS_REVIEW, WORKER_SUCCESS_NOTE)
        else:
            entry.mark_finished(
                TicketStatus.FAILED,
                f"Worker failed with status {result.status_code}",
            )
        self.checkpoint()
        log_event(
            logger,
            logging.INFO,
            "workflow.step.finish",
            ticket_id=ticket.id,
            step="worker",
            status=entry.status.value,
            status_code=result.status_code,
        )

    def run_review(self, ticket: TicketSpec, entry: TicketRunState) -> None:
        if not entry.status.in_review:
            return

        working_dir = self._require_working_dir(ticket)
        self.layout.ensure_ticket_dir(ticket.id)
        review_log = self.layout.review_log_path(ticket.id)
        request = SessionRequest(
            prompt=review_prompt_for(
                self.manifest, ticket, self.layout, width=self.wrap_width
            ),
            working_dir=working_dir,
            log_path=review_log,
            model=self.reviewer_model,
        )

        entry.set_review_log(review_log)
        entry.mark_running(TicketStatus.RUNNING_REVIEW)
        self.checkpoint()
        log_event(
            logger,
            logging.INFO,
            "workflow.step.start",
            ticket_id=ticket.id,
            step="review",
        )

        result = self.launcher.run(request)
        if result.success:
            entry.mark_finished(TicketStatus.COMPLETE, REVIEW_SUCCESS_NOTE)
        else:
            entry.mark_finished(
                TicketStatus.FAILED,
                f"Review failed with status {result.status_code}",
            )
        self.checkpoint()
        log_event(
            logger,
            logging.INFO,
            "workflow.step.finish",
            ticket_id=ticket.id,
            step="review",
            status=entry.status.value,
            status_code=result.status_code,
        )


def _initial_state(
    manifest: WorkflowManifest, state_path: Path, resume: bool
) -> WorkflowState:
    if resume and state_path.exists():
        state = WorkflowState.load(state_path)
        added = state.sync_with_manifest(manifest)
        if added:
            log_event(
                logger,
                logging.INFO,
                "workflow.state.synced",
                path=state_path,
                added=added,
            )
        return state
    return WorkflowState.initialize(manifest)


def run_workflow(
    opts: WorkflowRunOptions,
    *,
    config: Optional[WorkflowConfig] = None,
    launcher: Optional[SessionLauncher] = None,
) -> WorkflowStatusReport:
    """Drive every ticket of the manifest and return the final report.

    Configuration faults (bad manifest, missing working directory), I/O
    failures, and spawn failures raise and abort the run. A session that
    exits non-zero only marks its ticket `failed`.
    """
    manifest = load_manifest(opts.manifest_path)
    if config is None:
        config = load_workflow_config(manifest.manifest_dir())
    layout = WorkflowLayout(resolve_artifacts_dir(manifest, opts.artifacts_dir))
    layout.ensure_root()
    state_path = layout.state_file()
    state = _initial_state(manifest, state_path, opts.resume)

    if launcher is None:
        launcher = SessionLauncher(
            resolve_codex_bin(opts.codex_bin, config),
            merge_config_overrides(config.config_overrides, opts.config_overrides),
        )

    log_event(
        logger,
        logging.INFO,
        "workflow.run.start",
        workflow=manifest.workflow_name(),
        manifest=opts.manifest_path,
        artifacts_root=layout.root,
        resume=opts.resume,
        tickets=len(manifest.tickets),
    )
    run = WorkflowRun(
        manifest,
        layout,
        state,
        launcher,
        worker_model=opts.worker_model or config.worker_model,
        reviewer_model=opts.reviewer_model or config.reviewer_model,
        wrap_width=config.wrap_width,
        durable=config.durable_writes,
    )
    report = run.execute()
    log_event(
        logger,
        logging.INFO,
        "workflow.run.finish",
        workflow=report.workflow_name,
        statuses={ticket.ticket_id: ticket.status.value for ticket in report.tickets},
    )
    return report


def load_status(
    manifest_path: Path, artifacts_dir: Optional[Path] = None
) -> Optional[WorkflowStatusReport]:
    """Return the persisted report, or None when no state file exists yet.

    The state file is read as a snapshot; a concurrent run may already be
    past what it shows.
    """
    manifest = load_manifest(manifest_path)
    layout = WorkflowLayout(resolve_artifacts_dir(manifest, artifacts_dir))
    state_path = layout.state_file()
    if not state_path.exists():
        return None
    state = WorkflowState.load(state_path)
    return WorkflowStatusReport.from_state(state, state_path)


__all__ = [
    "WorkflowRun",
    "WorkflowRunOptions",
    "WorkflowStatusReport",
    "load_status",
    "resolve_artifacts_dir",
    "resolve_codex_bin",
    "run_workflow",
]
