import json
from datetime import datetime
from pathlib import Path

import pytest

from codex_workflow.core.time_utils import STATE_TIMESTAMP_FORMAT
from codex_workflow.workflow.errors import WorkflowIOError, WorkflowStateError
from codex_workflow.workflow.manifest import TicketSpec, WorkflowManifest
from codex_workflow.workflow.state import TicketRunState, TicketStatus, WorkflowState


def _manifest(*ids: str) -> WorkflowManifest:
    return WorkflowManifest(
        source_path=Path("workflow.yaml"),
        name="demo",
        tickets=tuple(
            TicketSpec(id=ticket_id, summary=f"Ticket {ticket_id}") for ticket_id in ids
        ),
    )


def test_initializes_state_with_pending_tickets() -> None:
    state = WorkflowState.initialize(_manifest("A", "B"))

    assert state.workflow_name == "demo"
    assert list(state.tickets) == ["A", "B"]
    for ticket_id, entry in state.tickets.items():
        assert entry.ticket_id == ticket_id
        assert entry.status is TicketStatus.PENDING
        assert entry.worker_log is None
        assert entry.review_log is None
        assert entry.note is None
        assert entry.started_at is None
        assert entry.finished_at is None


def test_sync_adds_new_tickets_without_touching_existing() -> None:
    state = WorkflowState.initialize(_manifest("A", "Old"))
    existing = state.tickets["A"]
    existing.set_worker_log(Path("/logs/A/worker.log"))
    existing.mark_running(TicketStatus.RUNNING_WORKER)
    existing.mark_paused(TicketStatus.NEEDS_REVIEW, "Worker completed successfully")
    snapshot = existing.to_dict()

    added = state.sync_with_manifest(_manifest("A", "B"))

    assert added == ["B"]
    assert state.tickets["A"].to_dict() == snapshot
    assert state.tickets["B"].status is TicketStatus.PENDING
    # Tickets dropped from the manifest keep their history.
    assert "Old" in state.tickets


def test_sync_is_a_noop_for_the_same_manifest() -> None:
    manifest = _manifest("A", "B")
    state = WorkflowState.initialize(manifest)

    assert state.sync_with_manifest(manifest) == []
    assert list(state.tickets) == ["A", "B"]


def test_mark_running_keeps_first_start_time_and_clears_note() -> None:
    entry = TicketRunState(
        ticket_id="A", note="stale", started_at="2024-01-01T00:00:00Z"
    )

    entry.mark_running(TicketStatus.RUNNING_REVIEW)

    assert entry.status is TicketStatus.RUNNING_REVIEW
    assert entry.started_at == "2024-01-01T00:00:00Z"
    assert entry.note is None


def test_mark_finished_sets_note_and_finish_time() -> None:
    entry = TicketRunState(ticket_id="A")
    entry.mark_running(TicketStatus.RUNNING_WORKER)

    entry.mark_finished(TicketStatus.FAILED, "Worker failed with status 1")

    assert entry.status is TicketStatus.FAILED
    assert entry.note == "Worker failed with status 1"
    assert entry.started_at is not None
    assert entry.finished_at is not None
    for stamp in (entry.started_at, entry.finished_at):
        assert datetime.strptime(stamp, STATE_TIMESTAMP_FORMAT)


@pytest.mark.parametrize("status", list(TicketStatus))
def test_save_and_load_round_trip_every_status(
    tmp_path: Path, status: TicketStatus
) -> None:
    state = WorkflowState(workflow_name="demo")
    state.tickets["T/1"] = TicketRunState(
        ticket_id="T/1",
        status=status,
        worker_log=tmp_path / "ticket-T_1" / "worker.log",
        review_log=tmp_path / "ticket-T_1" / "review.log",
        note="note with ünïcode",
        started_at="2024-05-01T10:00:00Z",
        finished_at="2024-05-01T10:05:00Z",
    )
    state.tickets["empty"] = TicketRunState(ticket_id="empty")
    path = tmp_path / "state.json"

    state.save(path)
    loaded = WorkflowState.load(path)

    assert loaded == state


def test_state_file_format(tmp_path: Path) -> None:
    state = WorkflowState.initialize(_manifest("A"))
    state.tickets["A"].mark_running(TicketStatus.RUNNING_WORKER)
    path = tmp_path / "state.json"

    state.save(path)

    raw = path.read_text(encoding="utf-8")
    assert raw.endswith("\n")
    payload = json.loads(raw)
    assert payload["workflow_name"] == "demo"
    entry = payload["tickets"]["A"]
    assert entry["status"] == "running_worker"
    assert entry["worker_log"] is None
    assert entry["finished_at"] is None
    assert entry["started_at"].endswith("Z")


def test_save_replaces_atomically_and_leaves_no_temp_file(tmp_path: Path) -> None:
    path = tmp_path / "nested" / "state.json"
    state = WorkflowState.initialize(_manifest("A"))

    state.save(path)
    state.tickets["A"].mark_finished(TicketStatus.COMPLETE, "Review passed")
    state.save(path, durable=True)

    assert WorkflowState.load(path).tickets["A"].status is TicketStatus.COMPLETE
    assert not (path.parent / "state.json.tmp").exists()
    assert sorted(p.name for p in path.parent.iterdir()) == ["state.json"]


def test_interrupted_save_does_not_corrupt_previous_state(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    path = tmp_path / "state.json"
    state = WorkflowState.initialize(_manifest("A"))
    state.save(path)
    before = path.read_text(encoding="utf-8")

    def crash(src, dst):  # type: ignore[no-untyped-def]
        raise OSError("disk on fire")

    monkeypatch.setattr("codex_workflow.core.utils.os.replace", crash)
    state.tickets["A"].mark_finished(TicketStatus.FAILED, "boom")
    with pytest.raises(WorkflowIOError) as excinfo:
        state.save(path)

    assert excinfo.value.operation == "save_state"
    assert path.read_text(encoding="utf-8") == before


def test_load_missing_file(tmp_path: Path) -> None:
    with pytest.raises(WorkflowStateError, match="Failed to read workflow state"):
        WorkflowState.load(tmp_path / "state.json")


@pytest.mark.parametrize(
    "payload, message",
    [
        ("{not json", "Invalid workflow state"),
        ("[]", "state must be a JSON object"),
        ('{"tickets": {}}', "workflow_name must be a string"),
        ('{"workflow_name": "w", "tickets": []}', "tickets must be an object"),
        (
            '{"workflow_name": "w", "tickets": {"A": '
            '{"ticket_id": "A", "status": "done"}}}',
            "unknown value 'done'",
        ),
        (
            '{"workflow_name": "w", "tickets": {"A": {"status": "pending"}}}',
            "ticket_id must be a string",
        ),
        (
            '{"workflow_name": "w", "tickets": {"A": {"ticket_id": "A", '
            '"status": "pending", "note": 5}}}',
            "note must be a string or null",
        ),
    ],
)
def test_load_rejects_invalid_documents(
    tmp_path: Path, payload: str, message: str
) -> None:
    path = tmp_path / "state.json"
    path.write_text(payload, encoding="utf-8")

    with pytest.raises(WorkflowStateError, match=message) as excinfo:
        WorkflowState.load(path)

    assert excinfo.value.path == path


def test_load_accepts_blocked_status_set_out_of_band(tmp_path: Path) -> None:
    path = tmp_path / "state.json"
    path.write_text(
        json.dumps(
            {
                "workflow_name": "w",
                "tickets": {"A": {"ticket_id": "A", "status": "blocked"}},
            }
        ),
        encoding="utf-8",
    )

    entry = WorkflowState.load(path).tickets["A"]

    assert entry.status is TicketStatus.BLOCKED
    assert entry.status.is_terminal
    assert entry.worker_log is None


def test_status_helpers() -> None:
    assert {s for s in TicketStatus if s.is_terminal} == {
        TicketStatus.COMPLETE,
        TicketStatus.FAILED,
        TicketStatus.BLOCKED,
    }
    assert {s for s in TicketStatus if s.in_review} == {
        TicketStatus.NEEDS_REVIEW,
        TicketStatus.RUNNING_REVIEW,
    }
    assert TicketStatus.RUNNING_WORKER.label == "RunningWorker"
    assert TicketStatus.RUNNING_WORKER.value == "running_worker"
