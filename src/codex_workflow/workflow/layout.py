from __future__ import annotations

import re
from pathlib import Path

from .errors import WorkflowIOError

STATE_FILENAME = "state.json"
WORKER_LOG_FILENAME = "worker.log"
REVIEW_LOG_FILENAME = "review.log"
PATCH_DIRNAME = "patches"
TICKET_DIR_PREFIX = "ticket-"

_UNSAFE_CHARS_RE = re.compile(r"[^A-Za-z0-9_-]")


def sanitize_ticket_id(ticket_id: str) -> str:
    """Replace every character outside ASCII `[A-Za-z0-9_-]` with `_`."""
    return _UNSAFE_CHARS_RE.sub("_", ticket_id)


def default_artifacts_root(manifest_dir: Path, workflow_name: str) -> Path:
    return manifest_dir / ".codex" / "workflows" / workflow_name


def _mkdir(path: Path) -> Path:
    try:
        path.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        raise WorkflowIOError(
            f"Failed to create {path}: {exc}", path=path, operation="mkdir"
        ) from exc
    return path


class WorkflowLayout:
    """Canonical artifact paths for one workflow root."""

    def __init__(self, root: Path) -> None:
        self._root = root

    @property
    def root(self) -> Path:
        return self._root

    def ensure_root(self) -> Path:
        return _mkdir(self._root)

    def state_file(self) -> Path:
        return self._root / STATE_FILENAME

    def ticket_dir(self, ticket_id: str) -> Path:
        return self._root / f"{TICKET_DIR_PREFIX}{sanitize_ticket_id(ticket_id)}"

    def ensure_ticket_dir(self, ticket_id: str) -> Path:
        return _mkdir(self.ticket_dir(ticket_id))

    def ensure_patch_dir(self, ticket_id: str) -> Path:
        return _mkdir(self.patch_dir(ticket_id))

    def worker_log_path(self, ticket_id: str) -> Path:
        return self.ticket_dir(ticket_id) / WORKER_LOG_FILENAME

    def review_log_path(self, ticket_id: str) -> Path:
        return self.ticket_dir(ticket_id) / REVIEW_LOG_FILENAME

    def patch_dir(self, ticket_id: str) -> Path:
        return self.ticket_dir(ticket_id) / PATCH_DIRNAME

    def __repr__(self) -> str:
        return f"WorkflowLayout(root={self._root!s})"
