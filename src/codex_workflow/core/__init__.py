"""Shared infrastructure for codex-workflow: config, logging, and file helpers."""

from .config import ConfigError, WorkflowConfig, load_workflow_config
from .utils import atomic_write, resolve_executable

__all__ = [
    "ConfigError",
    "WorkflowConfig",
    "atomic_write",
    "load_workflow_config",
    "resolve_executable",
]
