from __future__ import annotations

import logging
from typing import NoReturn, Optional

import typer

logger = logging.getLogger("codex_workflow.cli")


def get_version() -> str:
    import importlib.metadata

    try:
        return importlib.metadata.version("codex-workflow")
    except importlib.metadata.PackageNotFoundError:
        return "unknown"


def raise_exit(message: str, *, cause: Optional[BaseException] = None) -> NoReturn:
    typer.echo(message, err=True)
    if cause is not None:
        raise typer.Exit(code=1) from cause
    raise typer.Exit(code=1)
