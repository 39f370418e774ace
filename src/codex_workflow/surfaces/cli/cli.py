import logging
from typing import List, Optional

import typer

from ...core.logging_utils import configure_logging
from .commands.utils import get_version, raise_exit
from .commands.workflow import register_workflow_commands

logger = logging.getLogger("codex_workflow.cli")

app = typer.Typer(
    add_completion=False,
    help="Orchestrate multi-ticket worker/review workflows over Codex sessions.",
)


def _version_callback(value: bool) -> None:
    if not value:
        return
    typer.echo(f"codex-workflow {get_version()}")
    raise typer.Exit(code=0)


@app.callback()
def _root(
    ctx: typer.Context,
    version: bool = typer.Option(
        False,
        "--version",
        callback=_version_callback,
        is_eager=True,
        help="Show the version and exit.",
    ),
    config: List[str] = typer.Option(
        [],
        "-c",
        "--config",
        metavar="KEY=VALUE",
        help="Config override applied ahead of subcommand overrides.",
    ),
    log_level: Optional[str] = typer.Option(
        None,
        "--log-level",
        help="Logging level (defaults to $CODEX_WORKFLOW_LOG_LEVEL or WARNING).",
    ),
) -> None:
    try:
        configure_logging(log_level)
    except ValueError as exc:
        raise_exit(str(exc), cause=exc)
    ctx.obj = {"config_overrides": list(config)}


def main() -> None:
    """Entrypoint for CLI execution."""
    app()


register_workflow_commands(app, raise_exit=raise_exit)


if __name__ == "__main__":
    app()
