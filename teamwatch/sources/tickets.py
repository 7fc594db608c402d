"""
Ticket Normalizer
==================

Collects tickets from three places under ``<artifact root>/tickets``:

1. ``milestones/<milestone-dir>/T01.md`` or ``M2-T01.md`` markdown files
2. ``milestones/<milestone>.json`` documents with an inline ``tickets`` object
3. ``archive/*.md`` markdown files (milestone ``archive``)

Markdown tickets look like::

    # T03: Wire the exporter

    **Agent:** backend-engineer
    **Status:** in_progress
    **Priority:** high
    **Dependencies:** T01, T02

Unknown status values degrade to ``pending`` and unknown priorities to
``medium``; a malformed file never drops the rest of the ticket list.
"""

import logging
import re
from pathlib import Path
from typing import Any, Dict, List, Optional

from teamwatch.exceptions import ArtifactReadError
from teamwatch.models import TicketPriority, TicketRecord, TicketStatus
from teamwatch.sources.files import is_dir, list_dir_safe, load_json, read_text_safe

logger = logging.getLogger(__name__)

TICKET_FILENAME = re.compile(r"^(M\d+-)?T\d+", re.IGNORECASE)
TITLE_LINE = re.compile(r"^#\s+(.+)", re.MULTILINE)
TICKET_ID = re.compile(r"^(T\d+)")
TICKET_ID_PREFIX = re.compile(r"^T\d+:\s*")
MILESTONE_PREFIX = re.compile(r"^\w+-")

ARCHIVE_MILESTONE = "archive"

_STATUS_ALIASES: Dict[str, TicketStatus] = {
    "pending": TicketStatus.PENDING,
    "in-progress": TicketStatus.IN_PROGRESS,
    "in_progress": TicketStatus.IN_PROGRESS,
    "inprogress": TicketStatus.IN_PROGRESS,
    "approved": TicketStatus.IN_PROGRESS,
    "active": TicketStatus.IN_PROGRESS,
    "completed": TicketStatus.COMPLETED,
    "done": TicketStatus.COMPLETED,
    "blocked": TicketStatus.BLOCKED,
    "failed": TicketStatus.FAILED,
}


# =============================================================================
# Field Parsing
# =============================================================================


def parse_ticket_status(raw: Optional[str]) -> TicketStatus:
    """Map a free-form status word onto the ticket vocabulary (default pending)."""
    if not isinstance(raw, str):
        return TicketStatus.PENDING
    return _STATUS_ALIASES.get(raw.strip().lower(), TicketStatus.PENDING)


def parse_ticket_priority(raw: Optional[str]) -> TicketPriority:
    if not isinstance(raw, str):
        return TicketPriority.MEDIUM
    try:
        return TicketPriority(raw.strip().lower())
    except ValueError:
        return TicketPriority.MEDIUM


def extract_field(content: str, field: str) -> Optional[str]:
    """
    Value of a bold-labelled markdown field.

    Accepts ``**Field:** value``, ``**Field**: value`` and ``**Field** value``.
    """
    name = re.escape(field)
    patterns = (
        rf"\*\*{name}:\*\*\s*(.+)",
        rf"\*\*{name}\*\*:\s*(.+)",
        rf"\*\*{name}\*\*\s*(.+)",
    )
    for pattern in patterns:
        match = re.search(pattern, content, re.IGNORECASE)
        if match:
            return match.group(1).strip()
    return None


def extract_title(content: str) -> str:
    match = TITLE_LINE.search(content)
    return match.group(1).strip() if match else "Untitled"


def extract_dependencies(content: str) -> List[str]:
    raw = extract_field(content, "Dependencies")
    if not raw or raw.lower() == "none":
        return []
    return [dep.strip() for dep in raw.split(",") if dep.strip()]


def milestone_label(name: str) -> str:
    """``M2-export-pipeline`` -> ``export pipeline``; falls back to the raw name."""
    return MILESTONE_PREFIX.sub("", name, count=1).replace("-", " ") or name


def parse_ticket_markdown(content: str, milestone: str) -> TicketRecord:
    """Build one ticket from a markdown document found in ``milestone``."""
    title = extract_title(content)
    id_match = TICKET_ID.match(title)
    ticket_id = id_match.group(1) if id_match else title[:10]

    return TicketRecord(
        id=ticket_id,
        title=TICKET_ID_PREFIX.sub("", title, count=1),
        agent_id=extract_field(content, "Agent"),
        milestone=milestone_label(milestone),
        status=parse_ticket_status(extract_field(content, "Status")),
        priority=parse_ticket_priority(extract_field(content, "Priority")),
        dependencies=extract_dependencies(content),
    )


def parse_milestone_document(payload: Any, fallback_name: str) -> List[TicketRecord]:
    """Tickets from a JSON milestone ``{"name", "status", "tickets": {id: {...}}}``."""
    if not isinstance(payload, dict):
        return []
    name = payload.get("name") or fallback_name
    milestone_status = payload.get("status") or "pending"
    entries = payload.get("tickets")
    if not isinstance(entries, dict):
        return []

    tickets = []
    for ticket_id, data in entries.items():
        if not isinstance(data, dict):
            continue
        dependencies = data.get("dependencies")
        tickets.append(
            TicketRecord(
                id=str(ticket_id),
                title=str(data.get("title") or ticket_id),
                agent_id=data.get("agent") if isinstance(data.get("agent"), str) else None,
                milestone=str(name),
                status=parse_ticket_status(data.get("status") or milestone_status),
                priority=parse_ticket_priority(data.get("priority")),
                dependencies=[str(d) for d in dependencies] if isinstance(dependencies, list) else [],
            )
        )
    return tickets


# =============================================================================
# Directory Readers
# =============================================================================


async def _read_markdown_tickets(directory: Path, milestone: str) -> List[TicketRecord]:
    tickets = []
    for path in await list_dir_safe(directory):
        if path.suffix != ".md" or not TICKET_FILENAME.match(path.name):
            continue
        content = await read_text_safe(path)
        if content is None:
            continue
        tickets.append(parse_ticket_markdown(content, milestone))
    return tickets


async def _read_milestone_json(path: Path) -> List[TicketRecord]:
    try:
        payload = await load_json(path)
    except ArtifactReadError as e:
        logger.debug("Skipping milestone document: %s", e)
        return []
    return parse_milestone_document(payload, path.stem)


async def read_tickets(tickets_dir: Path) -> List[TicketRecord]:
    """Read every ticket under ``tickets_dir``; missing pieces contribute nothing."""
    tickets: List[TicketRecord] = []

    for entry in await list_dir_safe(tickets_dir / "milestones"):
        if await is_dir(entry):
            tickets.extend(await _read_markdown_tickets(entry, entry.name))
        elif entry.suffix == ".json":
            tickets.extend(await _read_milestone_json(entry))

    tickets.extend(
        await _read_markdown_tickets(tickets_dir / "archive", ARCHIVE_MILESTONE)
    )

    logger.debug("Read %d tickets from %s", len(tickets), tickets_dir)
    return tickets
