from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Any, Optional

LOG_LEVEL_ENV = "CODEX_WORKFLOW_LOG_LEVEL"
DEFAULT_LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def _render_value(value: Any) -> str:
    if isinstance(value, Path):
        value = str(value)
    if isinstance(value, str):
        if value and not any(ch.isspace() for ch in value) and "=" not in value:
            return value
        return json.dumps(value, ensure_ascii=False)
    if isinstance(value, BaseException):
        return json.dumps(f"{type(value).__name__}: {value}", ensure_ascii=False)
    return json.dumps(value, default=str, ensure_ascii=False)


def format_event(event: str, **fields: Any) -> str:
    parts = [event]
    for key, value in fields.items():
        if value is None:
            continue
        parts.append(f"{key}={_render_value(value)}")
    return " ".join(parts)


def log_event(
    logger: logging.Logger,
    level: int,
    event: str,
    *,
    exc: Optional[BaseException] = None,
    **fields: Any,
) -> None:
    """Log a dotted event name followed by `key=value` fields."""
    if not logger.isEnabledFor(level):
        return
    if exc is not None:
        fields["exc"] = exc
    logger.log(level, format_event(event, **fields), extra={"event": event})


def resolve_log_level(value: Optional[str]) -> int:
    raw = value or os.environ.get(LOG_LEVEL_ENV) or "WARNING"
    level = logging.getLevelName(raw.strip().upper())
    if not isinstance(level, int):
        raise ValueError(f"Unknown log level: {raw!r}")
    return level


def configure_logging(level: Optional[str] = None) -> None:
    root = logging.getLogger("codex_workflow")
    root.setLevel(resolve_log_level(level))
    if not any(getattr(h, "_codex_workflow", False) for h in root.handlers):
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(DEFAULT_LOG_FORMAT))
        handler._codex_workflow = True  # type: ignore[attr-defined]
        root.addHandler(handler)
