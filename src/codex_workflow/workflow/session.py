from __future__ import annotations

import logging
import subprocess
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Sequence

from ..core.logging_utils import log_event
from .errors import SessionLaunchError, WorkflowIOError

logger = logging.getLogger(__name__)

EXEC_SUBCOMMAND = "exec"
SKIP_GIT_REPO_CHECK_FLAG = "--skip-git-repo-check"


@dataclass(frozen=True)
class SessionRequest:
    prompt: str
    working_dir: Path
    log_path: Path
    model: Optional[str] = None


@dataclass(frozen=True)
class SessionResult:
    success: bool
    # None when the child was terminated by a signal.
    status_code: Optional[int]
    stdout: str
    stderr: str


def _exit_status_text(status_code: Optional[int]) -> str:
    return "None" if status_code is None else str(status_code)


def render_session_log(
    prompt: str, status_code: Optional[int], stdout: bytes, stderr: bytes
) -> bytes:
    parts = [
        b"# Prompt\n",
        prompt.encode("utf-8"),
        b"\n\n",
        f"# Exit Status: {_exit_status_text(status_code)}\n\n".encode("utf-8"),
        b"## STDOUT\n",
        stdout,
    ]
    if not stdout.endswith(b"\n"):
        parts.append(b"\n")
    parts.extend([b"\n## STDERR\n", stderr, b"\n"])
    return b"".join(parts)


def write_session_log(
    log_path: Path,
    prompt: str,
    status_code: Optional[int],
    stdout: bytes,
    stderr: bytes,
) -> None:
    try:
        log_path.parent.mkdir(parents=True, exist_ok=True)
        log_path.write_bytes(render_session_log(prompt, status_code, stdout, stderr))
    except OSError as exc:
        raise WorkflowIOError(
            f"Failed to write session log {log_path}: {exc}",
            path=log_path,
            operation="write_log",
        ) from exc


class SessionLauncher:
    """Runs one `codex exec` session to completion and records its output."""

    def __init__(self, codex_bin: Path, config_overrides: Sequence[str] = ()) -> None:
        self.codex_bin = codex_bin
        self.config_overrides = list(config_overrides)

    def build_command(self, request: SessionRequest) -> list[str]:
        cmd = [str(self.codex_bin), EXEC_SUBCOMMAND]
        for override in self.config_overrides:
            cmd.extend(["-c", override])
        cmd.append(SKIP_GIT_REPO_CHECK_FLAG)
        if request.model:
            cmd.extend(["-m", request.model])
        cmd.extend(["-C", str(request.working_dir)])
        cmd.append(request.prompt)
        return cmd

    def run(self, request: SessionRequest) -> SessionResult:
        """Block until the session exits.

        A non-zero exit is reported through `SessionResult.success`; only a
        failure to start the process or to write the log raises.
        """
        cmd = self.build_command(request)
        log_event(
            logger,
            logging.INFO,
            "workflow.session.spawn",
            codex_bin=self.codex_bin,
            working_dir=request.working_dir,
            model=request.model,
            log_path=request.log_path,
        )
        started = time.monotonic()
        try:
            completed = subprocess.run(
                cmd,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                check=False,
            )
        except (OSError, ValueError) as exc:
            # ValueError: arguments the OS cannot pass, such as an embedded NUL.
            raise SessionLaunchError(
                f"Failed to run {self.codex_bin}: {exc}", path=self.codex_bin
            ) from exc

        returncode = completed.returncode
        status_code = returncode if returncode >= 0 else None
        write_session_log(
            request.log_path,
            request.prompt,
            status_code,
            completed.stdout,
            completed.stderr,
        )
        log_event(
            logger,
            logging.INFO,
            "workflow.session.exit",
            returncode=returncode,
            duration_seconds=round(time.monotonic() - started, 3),
            log_path=request.log_path,
        )
        return SessionResult(
            success=returncode == 0,
            status_code=status_code,
            stdout=completed.stdout.decode("utf-8", errors="replace"),
            stderr=completed.stderr.decode("utf-8", errors="replace"),
        )


__all__ = [
    "SessionLauncher",
    "SessionRequest",
    "SessionResult",
    "render_session_log",
    "write_session_log",
]
