import os
from pathlib import Path

import pytest

from codex_workflow.workflow.errors import WorkflowIOError
from codex_workflow.workflow.layout import (
    WorkflowLayout,
    default_artifacts_root,
    sanitize_ticket_id,
)


def test_ticket_dirs_are_sanitized() -> None:
    layout = WorkflowLayout(Path("/tmp/workflow"))

    assert layout.ticket_dir("ABC/123").name == "ticket-ABC_123"
    assert layout.worker_log_path("hello world") == Path(
        "/tmp/workflow/ticket-hello_world/worker.log"
    )


def test_paths_derive_from_root() -> None:
    layout = WorkflowLayout(Path("/srv/wf"))

    assert layout.state_file() == Path("/srv/wf/state.json")
    assert layout.review_log_path("T-1") == Path("/srv/wf/ticket-T-1/review.log")
    assert layout.patch_dir("T_1") == Path("/srv/wf/ticket-T_1/patches")


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("plain-id_1", "plain-id_1"),
        ("../escape", "___escape"),
        ("a.b:c", "a_b_c"),
        ("café", "caf_"),
        ("", ""),
    ],
)
def test_sanitize_ticket_id(raw: str, expected: str) -> None:
    assert sanitize_ticket_id(raw) == expected


def test_sanitized_dirs_stay_inside_root(tmp_path: Path) -> None:
    layout = WorkflowLayout(tmp_path)

    ticket_dir = layout.ensure_ticket_dir("../../etc/passwd")

    assert ticket_dir.parent == tmp_path


def test_ensure_dirs_are_idempotent(tmp_path: Path) -> None:
    layout = WorkflowLayout(tmp_path / "root")

    layout.ensure_root()
    layout.ensure_root()
    first = layout.ensure_ticket_dir("T1")
    second = layout.ensure_ticket_dir("T1")
    patches = layout.ensure_patch_dir("T1")

    assert first == second
    assert first.is_dir()
    assert patches.is_dir()


@pytest.mark.skipif(
    hasattr(os, "geteuid") and os.geteuid() == 0,
    reason="root ignores directory permissions",
)
def test_ensure_root_reports_io_errors(tmp_path: Path) -> None:
    locked = tmp_path / "locked"
    locked.mkdir()
    locked.chmod(0o500)
    try:
        layout = WorkflowLayout(locked / "workflow")
        with pytest.raises(WorkflowIOError) as excinfo:
            layout.ensure_root()
    finally:
        locked.chmod(0o700)

    assert excinfo.value.operation == "mkdir"
    assert excinfo.value.path == locked / "workflow"


def test_default_artifacts_root(tmp_path: Path) -> None:
    assert default_artifacts_root(tmp_path, "demo") == (
        tmp_path / ".codex" / "workflows" / "demo"
    )
