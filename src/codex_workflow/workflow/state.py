"""Persisted, resumable run state for a workflow.

The state file is the single source of truth for progress. It is rewritten in
full on every checkpoint via `atomic_write`, so a crash mid-save leaves either
the previous document or the new one on disk.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Optional

from ..core.logging_utils import log_event
from ..core.time_utils import now_iso
from ..core.utils import atomic_write
from .errors import WorkflowIOError, WorkflowStateError
from .manifest import WorkflowManifest

logger = logging.getLogger(__name__)


class TicketStatus(str, Enum):
    PENDING = "pending"
    RUNNING_WORKER = "running_worker"
    NEEDS_REVIEW = "needs_review"
    RUNNING_REVIEW = "running_review"
    COMPLETE = "complete"
    FAILED = "failed"
    # Never assigned by the orchestrator; honoured when set in the state file.
    BLOCKED = "blocked"

    @property
    def is_terminal(self) -> bool:
        return self in _TERMINAL_STATUSES

    @property
    def in_review(self) -> bool:
        return self in (TicketStatus.NEEDS_REVIEW, TicketStatus.RUNNING_REVIEW)

    @property
    def label(self) -> str:
        return "".join(part.capitalize() for part in self.value.split("_"))


_TERMINAL_STATUSES = frozenset(
    {TicketStatus.COMPLETE, TicketStatus.FAILED, TicketStatus.BLOCKED}
)
_OPTIONAL_FIELDS = ("worker_log", "review_log", "note", "started_at", "finished_at")


def _path_text(path: Optional[Path]) -> Optional[str]:
    return str(path) if path is not None else None


@dataclass
class TicketRunState:
    ticket_id: str
    status: TicketStatus = TicketStatus.PENDING
    worker_log: Optional[Path] = None
    review_log: Optional[Path] = None
    note: Optional[str] = None
    started_at: Optional[str] = None
    finished_at: Optional[str] = None

    def mark_running(self, status: TicketStatus) -> None:
        self.status = status
        if self.started_at is None:
            self.started_at = now_iso()
        self.note = None

    def mark_paused(self, status: TicketStatus, note: Optional[str]) -> None:
        """Record a step that ended without finishing the ticket."""
        self.status = status
        self.note = note

    def mark_finished(self, status: TicketStatus, note: Optional[str]) -> None:
        self.status = status
        self.note = note
        self.finished_at = now_iso()

    def set_worker_log(self, log_path: Path) -> None:
        self.worker_log = log_path

    def set_review_log(self, log_path: Path) -> None:
        self.review_log = log_path

    def to_dict(self) -> dict[str, Any]:
        return {
            "ticket_id": self.ticket_id,
            "status": self.status.value,
            "worker_log": _path_text(self.worker_log),
            "review_log": _path_text(self.review_log),
            "note": self.note,
            "started_at": self.started_at,
            "finished_at": self.finished_at,
        }

    @classmethod
    def from_dict(cls, key: str, payload: Any) -> "TicketRunState":
        if not isinstance(payload, dict):
            raise ValueError(f"tickets.{key} must be an object")
        ticket_id = payload.get("ticket_id")
        if not isinstance(ticket_id, str):
            raise ValueError(f"tickets.{key}.ticket_id must be a string")
        raw_status = payload.get("status")
        try:
            status = TicketStatus(raw_status)
        except ValueError:
            raise ValueError(
                f"tickets.{key}.status has unknown value {raw_status!r}"
            ) from None

        optional: dict[str, Optional[str]] = {}
        for name in _OPTIONAL_FIELDS:
            value = payload.get(name)
            if value is not None and not isinstance(value, str):
                raise ValueError(f"tickets.{key}.{name} must be a string or null")
            optional[name] = value

        worker_log = optional["worker_log"]
        review_log = optional["review_log"]
        return cls(
            ticket_id=ticket_id,
            status=status,
            worker_log=Path(worker_log) if worker_log is not None else None,
            review_log=Path(review_log) if review_log is not None else None,
            note=optional["note"],
            started_at=optional["started_at"],
            finished_at=optional["finished_at"],
        )


@dataclass
class WorkflowState:
    workflow_name: str
    tickets: dict[str, TicketRunState] = field(default_factory=dict)

    @classmethod
    def initialize(cls, manifest: WorkflowManifest) -> "WorkflowState":
        return cls(
            workflow_name=manifest.workflow_name(),
            tickets={
                ticket.id: TicketRunState(ticket_id=ticket.id)
                for ticket in manifest.tickets
            },
        )

    def sync_with_manifest(self, manifest: WorkflowManifest) -> list[str]:
        """Add `Pending` entries for tickets the state has not seen yet.

        Existing entries, including ones for tickets no longer in the
        manifest, are left untouched. Returns the ids that were added.
        """
        added: list[str] = []
        for ticket in manifest.tickets:
            if ticket.id in self.tickets:
                continue
            self.tickets[ticket.id] = TicketRunState(ticket_id=ticket.id)
            added.append(ticket.id)
        return added

    def ticket(self, ticket_id: str) -> Optional[TicketRunState]:
        return self.tickets.get(ticket_id)

    def to_dict(self) -> dict[str, Any]:
        return {
            "workflow_name": self.workflow_name,
            "tickets": {key: entry.to_dict() for key, entry in self.tickets.items()},
        }

    @classmethod
    def from_dict(cls, payload: Any) -> "WorkflowState":
        if not isinstance(payload, dict):
            raise ValueError("state must be a JSON object")
        workflow_name = payload.get("workflow_name")
        if not isinstance(workflow_name, str):
            raise ValueError("workflow_name must be a string")
        tickets_raw = payload.get("tickets")
        if not isinstance(tickets_raw, dict):
            raise ValueError("tickets must be an object")
        tickets = {
            key: TicketRunState.from_dict(key, entry)
            for key, entry in tickets_raw.items()
        }
        return cls(workflow_name=workflow_name, tickets=tickets)

    @classmethod
    def load(cls, path: Path) -> "WorkflowState":
        try:
            data = path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as exc:
            raise WorkflowStateError(
                f"Failed to read workflow state {path}: {exc}", path=path
            ) from exc
        try:
            return cls.from_dict(json.loads(data))
        except ValueError as exc:
            # json.JSONDecodeError is a ValueError as well.
            raise WorkflowStateError(
                f"Invalid workflow state {path}: {exc}", path=path
            ) from exc

    def save(self, path: Path, *, durable: bool = False) -> None:
        payload = json.dumps(self.to_dict(), indent=2) + "\n"
        try:
            atomic_write(path, payload, durable=durable)
        except OSError as exc:
            raise WorkflowIOError(
                f"Failed to persist workflow state {path}: {exc}",
                path=path,
                operation="save_state",
            ) from exc
        log_event(
            logger,
            logging.DEBUG,
            "workflow.state.saved",
            path=path,
            tickets=len(self.tickets),
        )


__all__ = ["TicketRunState", "TicketStatus", "WorkflowState"]
