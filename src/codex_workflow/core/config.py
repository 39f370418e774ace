import dataclasses
import logging
import os
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Sequence

import yaml
from dotenv import dotenv_values

logger = logging.getLogger("codex_workflow.core.config")

CONFIG_FILENAME = "codex-workflow.yml"
DOTENV_FILENAME = ".env"
DEFAULT_WRAP_WIDTH = 100

CODEX_BIN_ENV = "CODEX_BIN"
WORKER_MODEL_ENV = "CODEX_WORKFLOW_WORKER_MODEL"
REVIEWER_MODEL_ENV = "CODEX_WORKFLOW_REVIEWER_MODEL"


class ConfigError(Exception):
    """Raised when workflow configuration is invalid."""

    def __init__(self, message: str, *, path: Optional[Path] = None) -> None:
        super().__init__(message)
        self.path = path


@dataclasses.dataclass(frozen=True)
class WorkflowConfig:
    codex_bin: Optional[str] = None
    config_overrides: tuple[str, ...] = ()
    worker_model: Optional[str] = None
    reviewer_model: Optional[str] = None
    wrap_width: int = DEFAULT_WRAP_WIDTH
    durable_writes: bool = False


def _optional_str(value: Any, key: str, path: Path) -> Optional[str]:
    if value is None:
        return None
    if not isinstance(value, str):
        raise ConfigError(f"{key} must be a string", path=path)
    cleaned = value.strip()
    return cleaned or None


def _section(data: Mapping[str, Any], key: str, path: Path) -> Mapping[str, Any]:
    value = data.get(key)
    if value is None:
        return {}
    if not isinstance(value, Mapping):
        raise ConfigError(f"{key} must be a mapping", path=path)
    return value


def _read_config_file(path: Path) -> Dict[str, Any]:
    if not path.exists():
        return {}
    try:
        loaded = yaml.safe_load(path.read_text(encoding="utf-8"))
    except (OSError, yaml.YAMLError) as exc:
        raise ConfigError(f"Failed to read {path}: {exc}", path=path) from exc
    if loaded is None:
        return {}
    if not isinstance(loaded, dict):
        raise ConfigError(f"{path} must contain a YAML mapping", path=path)
    return loaded


def _parse_config(path: Path, data: Dict[str, Any]) -> WorkflowConfig:
    codex = _section(data, "codex", path)
    models = _section(data, "models", path)
    prompts = _section(data, "prompts", path)

    overrides_raw = codex.get("config_overrides") or []
    if not isinstance(overrides_raw, list) or not all(
        isinstance(item, str) for item in overrides_raw
    ):
        raise ConfigError(
            "codex.config_overrides must be a list of strings", path=path
        )

    wrap_width = prompts.get("wrap_width", DEFAULT_WRAP_WIDTH)
    if isinstance(wrap_width, bool) or not isinstance(wrap_width, int):
        raise ConfigError("prompts.wrap_width must be an integer", path=path)
    if wrap_width < 20:
        raise ConfigError("prompts.wrap_width must be at least 20", path=path)

    durable = data.get("durable_writes", False)
    if not isinstance(durable, bool):
        raise ConfigError("durable_writes must be true or false", path=path)

    return WorkflowConfig(
        codex_bin=_optional_str(codex.get("binary"), "codex.binary", path),
        config_overrides=tuple(overrides_raw),
        worker_model=_optional_str(models.get("worker"), "models.worker", path),
        reviewer_model=_optional_str(models.get("reviewer"), "models.reviewer", path),
        wrap_width=wrap_width,
        durable_writes=durable,
    )


def _env_lookup(key: str, dotenv: Mapping[str, Optional[str]]) -> Optional[str]:
    value = os.environ.get(key)
    if value is None:
        value = dotenv.get(key)
    if value is None:
        return None
    value = value.strip()
    return value or None


def load_workflow_config(root: Path) -> WorkflowConfig:
    """Load settings for workflows whose manifest lives in `root`.

    Precedence, lowest to highest: built-in defaults, `codex-workflow.yml`,
    then environment variables (with `.env` filling in unset keys).
    """
    config_path = root / CONFIG_FILENAME
    config = _parse_config(config_path, _read_config_file(config_path))

    dotenv_path = root / DOTENV_FILENAME
    dotenv: Mapping[str, Optional[str]] = {}
    if dotenv_path.exists():
        dotenv = dotenv_values(dotenv_path)
        logger.debug("Loaded %d values from %s", len(dotenv), dotenv_path)

    updates: Dict[str, Any] = {}
    codex_bin = _env_lookup(CODEX_BIN_ENV, dotenv)
    if codex_bin:
        updates["codex_bin"] = codex_bin
    worker_model = _env_lookup(WORKER_MODEL_ENV, dotenv)
    if worker_model:
        updates["worker_model"] = worker_model
    reviewer_model = _env_lookup(REVIEWER_MODEL_ENV, dotenv)
    if reviewer_model:
        updates["reviewer_model"] = reviewer_model
    if updates:
        config = dataclasses.replace(config, **updates)
    return config


def merge_config_overrides(*groups: Optional[Sequence[str]]) -> List[str]:
    merged: List[str] = []
    for group in groups:
        if group:
            merged.extend(group)
    return merged


__all__ = [
    "CONFIG_FILENAME",
    "ConfigError",
    "WorkflowConfig",
    "load_workflow_config",
    "merge_config_overrides",
]
