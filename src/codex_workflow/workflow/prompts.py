from __future__ import annotations

import textwrap
from typing import Sequence

from ..core.config import DEFAULT_WRAP_WIDTH
from .layout import WorkflowLayout
from .manifest import TicketSpec, WorkflowManifest


def _bullets(items: Sequence[str]) -> str:
    return "\n".join(f"- {item}" for item in items)


def _overview_section(manifest: WorkflowManifest) -> list[str]:
    if manifest.overview is None:
        return []
    return [f"Workflow overview:\n{manifest.overview}\n"]


def wrap_sections(sections: Sequence[str], width: int = DEFAULT_WRAP_WIDTH) -> str:
    """Join sections with blank lines, wrapping each line to `width` columns.

    Existing line breaks inside a section are kept.
    """
    lines: list[str] = []
    for section in sections:
        for raw_line in section.split("\n"):
            wrapped = textwrap.wrap(
                raw_line,
                width=width,
                break_long_words=False,
                break_on_hyphens=False,
            )
            if not wrapped:
                lines.append("")
                continue
            lines.extend(line.rstrip() for line in wrapped)
        lines.append("")
    return "\n".join(lines).strip()


def build_worker_prompt(
    manifest: WorkflowManifest,
    ticket: TicketSpec,
    layout: WorkflowLayout,
    *,
    width: int = DEFAULT_WRAP_WIDTH,
) -> str:
    sections = _overview_section(manifest)
    sections.append(f"Ticket {ticket.id}: {ticket.summary}\n")
    if ticket.requirements:
        sections.append(f"Requirements:\n{_bullets(ticket.requirements)}\n")
    patch_dir = layout.patch_dir(ticket.id)
    sections.append(
        "Work inside the repository directory and save any generated patches or "
        f"notes under {patch_dir}. Log your progress clearly."
    )
    return wrap_sections(sections, width)


def build_review_prompt(
    manifest: WorkflowManifest,
    ticket: TicketSpec,
    layout: WorkflowLayout,
    *,
    width: int = DEFAULT_WRAP_WIDTH,
) -> str:
    sections = _overview_section(manifest)
    sections.append(
        f"Review ticket {ticket.id} ({ticket.summary}) for correctness and "
        "completeness."
    )
    if ticket.requirements:
        sections.append(
            "Confirm that the following requirements are satisfied:\n"
            f"{_bullets(ticket.requirements)}\n"
        )
    worker_log = layout.worker_log_path(ticket.id)
    sections.append(
        f"Consult the worker log at {worker_log} and ensure all changes are "
        "tested. Provide a concise approval or list blocking issues."
    )
    return wrap_sections(sections, width)


def worker_prompt_for(
    manifest: WorkflowManifest,
    ticket: TicketSpec,
    layout: WorkflowLayout,
    *,
    width: int = DEFAULT_WRAP_WIDTH,
) -> str:
    if ticket.prompt is not None:
        return ticket.prompt
    return build_worker_prompt(manifest, ticket, layout, width=width)


def review_prompt_for(
    manifest: WorkflowManifest,
    ticket: TicketSpec,
    layout: WorkflowLayout,
    *,
    width: int = DEFAULT_WRAP_WIDTH,
) -> str:
    if ticket.review_prompt is not None:
        return ticket.review_prompt
    return build_review_prompt(manifest, ticket, layout, width=width)
