from __future__ import annotations

import tomllib
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Optional

import yaml

from .errors import ManifestParseError, ManifestValidationError

YAML_SUFFIXES = frozenset({"yaml", "yml"})
TOML_SUFFIXES = frozenset({"toml", "tml"})
DEFAULT_WORKFLOW_NAME = "workflow"


@dataclass(frozen=True)
class TicketSpec:
    id: str
    summary: str
    requirements: tuple[str, ...] = ()
    working_dir: Optional[Path] = None
    prompt: Optional[str] = None
    review_prompt: Optional[str] = None

    def resolved_working_dir(self, manifest_dir: Path) -> Path:
        if self.working_dir is None:
            return manifest_dir
        if self.working_dir.is_absolute():
            return self.working_dir
        return manifest_dir / self.working_dir


@dataclass(frozen=True)
class WorkflowManifest:
    """A parsed workflow manifest: ordered tickets plus optional metadata.

    Instances are only produced by `load_manifest` (or built directly in tests) and are
    never mutated during a run.
    """

    source_path: Path
    tickets: tuple[TicketSpec, ...] = ()
    name: Optional[str] = None
    overview: Optional[str] = None

    def manifest_dir(self) -> Path:
        return self.source_path.parent

    def workflow_name(self) -> str:
        if self.name is not None:
            return self.name
        return self.source_path.stem or DEFAULT_WORKFLOW_NAME


def _parse_yaml(text: str) -> Any:
    return yaml.safe_load(text)


def _parse_toml(text: str) -> Any:
    return tomllib.loads(text)


def _decode(text: str, parser: Callable[[str], Any]) -> dict[str, Any]:
    data = parser(text)
    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ValueError(
            f"expected a mapping at top level, got {type(data).__name__}"
        )
    return data


def _decode_manifest(path: Path, text: str) -> dict[str, Any]:
    suffix = path.suffix.lstrip(".").lower()
    if suffix in YAML_SUFFIXES:
        parsers = [("YAML", _parse_yaml)]
    elif suffix in TOML_SUFFIXES:
        parsers = [("TOML", _parse_toml)]
    else:
        parsers = [("YAML", _parse_yaml), ("TOML", _parse_toml)]

    failures: list[str] = []
    for label, parser in parsers:
        try:
            return _decode(text, parser)
        except (yaml.YAMLError, tomllib.TOMLDecodeError, ValueError) as exc:
            failures.append(f"{label}: {exc}")
    formats = " or ".join(label for label, _ in parsers)
    raise ManifestParseError(
        f"Failed to parse workflow manifest {path} as {formats}: "
        + "; ".join(failures),
        path=path,
    )


def _optional_text(
    raw: dict[str, Any], key: str, where: str, path: Path
) -> Optional[str]:
    value = raw.get(key)
    if value is None:
        return None
    if not isinstance(value, str):
        raise ManifestValidationError(f"{where}: {key} must be a string", path=path)
    return value


def _ticket_id(raw: dict[str, Any], where: str, path: Path) -> str:
    value = raw.get("id")
    # Numeric ids are common in YAML (`id: 101`); keep them as their text form.
    if isinstance(value, int) and not isinstance(value, bool):
        value = str(value)
    if not isinstance(value, str) or not value.strip():
        raise ManifestValidationError(
            f"{where}: id is required and must be a non-empty string", path=path
        )
    return value


def _parse_ticket(raw: Any, index: int, path: Path) -> TicketSpec:
    where = f"tickets[{index}]"
    if not isinstance(raw, dict):
        raise ManifestValidationError(f"{where} must be a mapping", path=path)

    ticket_id = _ticket_id(raw, where, path)
    where = f"ticket {ticket_id}"
    summary = raw.get("summary")
    if not isinstance(summary, str):
        raise ManifestValidationError(
            f"{where}: summary is required and must be a string", path=path
        )

    requirements = raw.get("requirements")
    if requirements is None:
        requirements = []
    if not isinstance(requirements, list) or not all(
        isinstance(item, str) for item in requirements
    ):
        raise ManifestValidationError(
            f"{where}: requirements must be a list of strings", path=path
        )

    working_dir_raw = _optional_text(raw, "working_dir", where, path)
    return TicketSpec(
        id=ticket_id,
        summary=summary,
        requirements=tuple(requirements),
        working_dir=Path(working_dir_raw) if working_dir_raw is not None else None,
        prompt=_optional_text(raw, "prompt", where, path),
        review_prompt=_optional_text(raw, "review_prompt", where, path),
    )


def validate_tickets(tickets: tuple[TicketSpec, ...], path: Path) -> None:
    if not tickets:
        raise ManifestValidationError(
            "workflow manifest must contain at least one ticket", path=path
        )
    seen: set[str] = set()
    for ticket in tickets:
        if ticket.id in seen:
            raise ManifestValidationError(f"duplicate ticket id {ticket.id}", path=path)
        seen.add(ticket.id)


def load_manifest(path: Path) -> WorkflowManifest:
    """Read, decode, and validate a workflow manifest.

    The decoder is picked from the file extension; unknown extensions are
    tried as YAML first and TOML second.
    """
    try:
        text = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        raise ManifestParseError(
            f"Failed to read workflow manifest {path}: {exc}", path=path
        ) from exc

    data = _decode_manifest(path, text)

    tickets_raw = data.get("tickets") or []
    if not isinstance(tickets_raw, list):
        raise ManifestValidationError("tickets must be a list", path=path)
    tickets = tuple(
        _parse_ticket(raw, index, path) for index, raw in enumerate(tickets_raw)
    )
    validate_tickets(tickets, path)

    where = "manifest"
    return WorkflowManifest(
        source_path=path,
        tickets=tickets,
        name=_optional_text(data, "name", where, path),
        overview=_optional_text(data, "overview", where, path),
    )


__all__ = [
    "TicketSpec",
    "WorkflowManifest",
    "load_manifest",
    "validate_tickets",
]
