"""`run` and `status` commands for manifest-driven workflows."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Callable, List, NoReturn, Optional

import typer

from ....core.config import ConfigError, merge_config_overrides
from ....workflow import (
    WorkflowError,
    WorkflowRunOptions,
    WorkflowStatusReport,
    load_status,
    run_workflow,
)

NO_NOTE_TEXT = "No status note recorded yet."
MANIFEST_HELP = "Path to the workflow manifest (YAML or TOML)."


def format_report(report: WorkflowStatusReport) -> str:
    lines = [
        f"Workflow: {report.workflow_name}",
        f"State file: {report.state_path}",
    ]
    for ticket in report.tickets:
        note = ticket.note if ticket.note is not None else NO_NOTE_TEXT
        lines.append(f"- {ticket.ticket_id:<12} {ticket.status.label:<15} {note}")
        if ticket.worker_log is not None:
            lines.append(f"    worker log: {ticket.worker_log}")
        if ticket.review_log is not None:
            lines.append(f"    review log: {ticket.review_log}")
    return "\n".join(lines)


def _emit_report(report: WorkflowStatusReport, json_output: bool) -> None:
    if json_output:
        typer.echo(json.dumps(report.to_dict(), indent=2))
    else:
        typer.echo(format_report(report))


def register_workflow_commands(
    app: typer.Typer,
    *,
    raise_exit: Callable[..., NoReturn],
) -> None:
    @app.command("run")
    def run(
        ctx: typer.Context,
        manifest: Path = typer.Argument(
            ..., metavar="MANIFEST", help=MANIFEST_HELP
        ),
        artifacts_dir: Optional[Path] = typer.Option(
            None,
            "--artifacts-dir",
            metavar="DIR",
            help="Directory to store workflow artifacts (logs, patches, state.json).",
        ),
        resume: bool = typer.Option(
            False, "--resume", help="Resume from a previously saved workflow state."
        ),
        codex_bin: Optional[Path] = typer.Option(
            None, "--codex-bin", metavar="PATH", help="Override the Codex binary path."
        ),
        worker_model: Optional[str] = typer.Option(
            None, "--worker-model", metavar="MODEL", help="Model for worker sessions."
        ),
        reviewer_model: Optional[str] = typer.Option(
            None,
            "--reviewer-model",
            metavar="MODEL",
            help="Model for review sessions (defaults to the worker model).",
        ),
        config: List[str] = typer.Option(
            [],
            "-c",
            "--config",
            metavar="KEY=VALUE",
            help="Config override passed to every `codex exec` session.",
        ),
        json_output: bool = typer.Option(False, "--json", help="Emit JSON output"),
    ):
        """Run an orchestrated workflow based on a manifest file."""
        root_overrides = (ctx.obj or {}).get("config_overrides", [])
        options = WorkflowRunOptions(
            manifest_path=manifest,
            artifacts_dir=artifacts_dir,
            resume=resume,
            codex_bin=codex_bin,
            config_overrides=merge_config_overrides(root_overrides, config),
            worker_model=worker_model,
            reviewer_model=reviewer_model,
        )
        try:
            report = run_workflow(options)
        except (WorkflowError, ConfigError) as exc:
            raise_exit(f"Workflow run failed: {exc}", cause=exc)
        _emit_report(report, json_output)

    @app.command("status")
    def status(
        manifest: Path = typer.Argument(
            ..., metavar="MANIFEST", help=MANIFEST_HELP
        ),
        artifacts_dir: Optional[Path] = typer.Option(
            None,
            "--artifacts-dir",
            metavar="DIR",
            help=(
                "Directory that stores workflow artifacts. Defaults to "
                ".codex/workflows/<workflow-name> next to the manifest."
            ),
        ),
        json_output: bool = typer.Option(False, "--json", help="Emit JSON output"),
    ):
        """Display the current status of a workflow."""
        try:
            report = load_status(manifest, artifacts_dir)
        except WorkflowError as exc:
            raise_exit(f"Failed to load workflow status: {exc}", cause=exc)
        if report is None:
            if json_output:
                typer.echo(json.dumps({"state": None, "manifest": str(manifest)}))
            else:
                typer.echo(f"No workflow state found for manifest {manifest}")
            return
        _emit_report(report, json_output)
