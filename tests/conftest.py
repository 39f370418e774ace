"""Test harness configuration.

This repo uses a `src/` layout. In some developer environments an older
installed `codex_workflow` package can shadow the local sources.

Ensure tests always import the in-repo code.
"""

from __future__ import annotations

import json
import sys
import textwrap
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

import pytest

DEFAULT_NON_INTEGRATION_TIMEOUT_SECONDS = 120

_FAKE_CODEX_SOURCE = """\
import json
import os
import sys
from pathlib import Path

here = Path(__file__).resolve().parent
argv = sys.argv[1:]
with (here / "calls.jsonl").open("a", encoding="utf-8") as fh:
    fh.write(json.dumps(argv) + "\\n")

prompt = argv[-1] if argv else ""
rules = json.loads((here / "rules.json").read_text(encoding="utf-8"))
code = 0
for needle, exit_code in rules:
    if needle in prompt:
        code = exit_code
        break
sys.stdout.write("fake stdout for " + prompt.splitlines()[0] + "\\n")
sys.stderr.write("fake stderr\\n")
sys.exit(code)
"""


def pytest_configure() -> None:
    repo_root = Path(__file__).resolve().parents[1]
    src_dir = repo_root / "src"
    src_path = str(src_dir)
    if sys.path[:1] != [src_path] and src_path not in sys.path:
        sys.path.insert(0, src_path)


def pytest_collection_modifyitems(
    session: pytest.Session, config: pytest.Config, items: list[pytest.Item]
) -> None:
    """
    Apply a default per-test timeout to non-integration tests.

    This relies on `pytest-timeout` when installed; if it isn't installed, the
    marker is inert but still documents the intent.
    """
    _ = session, config
    for item in items:
        if item.get_closest_marker("integration") is not None:
            continue
        item.add_marker(pytest.mark.timeout(DEFAULT_NON_INTEGRATION_TIMEOUT_SECONDS))


@dataclass
class FakeCodex:
    """A stand-in `codex` executable that records every invocation."""

    path: Path

    @property
    def calls_path(self) -> Path:
        return self.path.parent / "calls.jsonl"

    def set_rules(self, rules: list[tuple[str, int]]) -> None:
        """Exit with the code of the first rule whose text appears in the prompt."""
        payload = [[needle, code] for needle, code in rules]
        (self.path.parent / "rules.json").write_text(
            json.dumps(payload), encoding="utf-8"
        )

    def calls(self) -> list[list[str]]:
        if not self.calls_path.exists():
            return []
        return [
            json.loads(line)
            for line in self.calls_path.read_text(encoding="utf-8").splitlines()
            if line.strip()
        ]

    def prompts(self) -> list[str]:
        return [argv[-1] for argv in self.calls()]


@pytest.fixture()
def fake_codex(tmp_path: Path) -> FakeCodex:
    bin_dir = tmp_path / "fake-codex"
    bin_dir.mkdir()
    script = bin_dir / "codex"
    script.write_text(f"#!{sys.executable}\n{_FAKE_CODEX_SOURCE}", encoding="utf-8")
    script.chmod(0o755)
    fake = FakeCodex(path=script)
    fake.set_rules([])
    return fake


@pytest.fixture()
def write_manifest(tmp_path: Path):
    """Write a manifest into `tmp_path/project` and return its path."""

    def _write(
        body: str,
        *,
        name: str = "workflow.yaml",
        root: Optional[Path] = None,
    ) -> Path:
        base = root or (tmp_path / "project")
        base.mkdir(parents=True, exist_ok=True)
        path = base / name
        path.write_text(textwrap.dedent(body).lstrip(), encoding="utf-8")
        return path

    return _write


@pytest.fixture(autouse=True)
def _isolate_workflow_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for key in (
        "CODEX_BIN",
        "CODEX_WORKFLOW_WORKER_MODEL",
        "CODEX_WORKFLOW_REVIEWER_MODEL",
        "CODEX_WORKFLOW_LOG_LEVEL",
    ):
        monkeypatch.delenv(key, raising=False)
