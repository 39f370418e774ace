from __future__ import annotations

import os
import shutil
from pathlib import Path
from typing import Optional

TMP_SUFFIX = ".tmp"


def tmp_path_for(path: Path) -> Path:
    """Return the sibling temp path used while `path` is being replaced."""
    return path.with_name(f"{path.name}{TMP_SUFFIX}")


def atomic_write(path: Path, content: str, *, durable: bool = False) -> None:
    """Write `content` to `path` so readers only ever see a complete file.

    The data lands in `<name>.tmp` next to the target and is then renamed over
    it. With `durable=True` the temp file and its directory are fsynced too.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp_path = tmp_path_for(path)
    with tmp_path.open("w", encoding="utf-8") as fh:
        fh.write(content)
        if durable:
            fh.flush()
            os.fsync(fh.fileno())
    os.replace(tmp_path, path)
    if durable:
        dir_fd = os.open(path.parent, os.O_RDONLY)
        try:
            os.fsync(dir_fd)
        finally:
            os.close(dir_fd)


def resolve_executable(binary: str) -> Optional[str]:
    """Return the full path of `binary` on `PATH`, or None."""
    if not binary:
        return None
    return shutil.which(binary)
