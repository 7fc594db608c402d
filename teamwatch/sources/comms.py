"""
Comms Normalizer
=================

Turns the ``<artifact root>/comms`` directory into activity events and
inter-agent messages:

- ``M<n>-T<n>-output.md``: a ticket started or completed, stamped with the
  file's mtime (content dates are not trusted)
- ``decisions.md``: ``## D<n>: Title (date)`` sections become system events
- ``*.json``: arrays of messages

Milestone completions from the orchestration state are added as
``milestone-completed`` events here as well.
"""

import logging
import re
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional

from teamwatch.constants import LEAD_AGENT_ID, LEAD_SESSION_FALLBACK, MAX_ACTIVITY_EVENTS
from teamwatch.exceptions import ArtifactReadError
from teamwatch.formatting import normalize_iso, parse_iso, to_iso
from teamwatch.models import ActivityEvent, ActivityType, Message
from teamwatch.sources.files import list_dir_safe, load_json, read_text_safe, stat_mtime_safe
from teamwatch.sources.tickets import TITLE_LINE, extract_field

logger = logging.getLogger(__name__)

OUTPUT_FILENAME = re.compile(r"^M\d+-T\d+-output\.md$")
COMPLETION_MARKER = re.compile(r"COMPLETED|COMPLETE", re.IGNORECASE)
DECISION_SPLIT = re.compile(r"(?=^## D\d+)", re.MULTILINE)
DECISION_HEADER = re.compile(r"^## (D\d+): (.+?)(?:\s*\((.+?)\))?$", re.MULTILINE)
DECISION_LINE = re.compile(r"\*\*Decision:\*\*\s*(.+)")

DECISIONS_FILENAME = "decisions.md"
NON_MESSAGE_FILES = {"changelog.md", DECISIONS_FILENAME}

_EARLIEST = datetime.min.replace(tzinfo=timezone.utc)


def sort_events(events: List[ActivityEvent]) -> List[ActivityEvent]:
    """Ascending by timestamp; equal timestamps keep their input order."""
    return sorted(events, key=lambda e: parse_iso(e.timestamp) or _EARLIEST)


# =============================================================================
# Activity
# =============================================================================


def parse_output_file(filename: str, content: str, modified: datetime) -> ActivityEvent:
    ticket_id = filename[: -len("-output.md")]
    agent_id = extract_field(content, "Engineer") or extract_field(content, "Agent")
    completed = bool(COMPLETION_MARKER.search(content))
    title_match = TITLE_LINE.search(content)
    title = title_match.group(1).strip() if title_match else ticket_id

    return ActivityEvent(
        timestamp=to_iso(modified),
        agent_id=agent_id,
        type=ActivityType.TICKET_COMPLETED if completed else ActivityType.TICKET_STARTED,
        summary=f"[{agent_id or 'unknown'}] {'Completed' if completed else 'Started'} {title}",
    )


def parse_decisions(content: str, modified: datetime) -> List[ActivityEvent]:
    """
    Decision-log sections as system events.

    The header date is used only when it carries a time of day; date-only
    headers are stamped with ``modified`` instead.
    """
    events = []
    for section in DECISION_SPLIT.split(content):
        if not section.startswith("## D"):
            continue
        header = DECISION_HEADER.search(section)
        if not header:
            continue
        decision_id, title, date_text = header.groups()

        timestamp = None
        if date_text and "T" in date_text:
            timestamp = normalize_iso(date_text)
        if timestamp is None:
            timestamp = to_iso(modified)

        line = DECISION_LINE.search(section)
        detail = line.group(1).strip() if line else title
        events.append(
            ActivityEvent(
                timestamp=timestamp,
                agent_id=LEAD_AGENT_ID,
                session_id=LEAD_SESSION_FALLBACK,
                type=ActivityType.SYSTEM,
                summary=f"[{LEAD_AGENT_ID}] Decision {decision_id}: {detail}",
            )
        )
    return events


def milestone_events(completions: Dict[str, str]) -> List[ActivityEvent]:
    events = []
    for milestone, completed_at in completions.items():
        timestamp = normalize_iso(completed_at)
        if timestamp is None:
            logger.debug("Skipping milestone %s with unparseable time %r", milestone, completed_at)
            continue
        events.append(
            ActivityEvent(
                timestamp=timestamp,
                agent_id=LEAD_AGENT_ID,
                session_id=LEAD_SESSION_FALLBACK,
                type=ActivityType.MILESTONE_COMPLETED,
                summary=f"[{LEAD_AGENT_ID}] Milestone {milestone} completed",
            )
        )
    return events


async def read_activity(
    artifact_root: Path,
    completions: Optional[Dict[str, str]] = None,
) -> List[ActivityEvent]:
    """Artifact-derived activity events, ascending, at most the most recent 500."""
    comms_dir = artifact_root / "comms"
    events: List[ActivityEvent] = []

    for path in await list_dir_safe(comms_dir):
        if not OUTPUT_FILENAME.match(path.name):
            continue
        content = await read_text_safe(path)
        modified = await stat_mtime_safe(path)
        if not content or modified is None:
            continue
        events.append(parse_output_file(path.name, content, modified))

    decisions_path = comms_dir / DECISIONS_FILENAME
    decisions = await read_text_safe(decisions_path)
    decisions_modified = await stat_mtime_safe(decisions_path)
    if decisions and decisions_modified is not None:
        events.extend(parse_decisions(decisions, decisions_modified))

    events.extend(milestone_events(completions or {}))

    return sort_events(events)[-MAX_ACTIVITY_EVENTS:]


# =============================================================================
# Messages
# =============================================================================


def parse_message(raw: Dict[str, Any], now: datetime) -> Message:
    """Normalize one message; one without a timestamp is stamped with ``now``."""
    content = raw.get("content")
    if content is None:
        content = raw.get("message", "")
    return Message(
        timestamp=normalize_iso(raw.get("timestamp")) or to_iso(now),
        sender=str(raw.get("from") or "unknown"),
        to=str(raw.get("to") or "unknown"),
        ticket_id=raw.get("ticketId") if isinstance(raw.get("ticketId"), str) else None,
        content=str(content),
        urgency="high" if raw.get("urgency") == "high" else "normal",
    )


async def read_messages(artifact_root: Path, now: datetime) -> List[Message]:
    """Messages from every ``*.json`` array in the comms directory."""
    messages: List[Message] = []
    for path in await list_dir_safe(artifact_root / "comms"):
        if path.name in NON_MESSAGE_FILES or path.suffix != ".json":
            continue
        try:
            payload = await load_json(path)
        except ArtifactReadError as e:
            logger.debug("Skipping message file: %s", e)
            continue
        if not isinstance(payload, list):
            continue
        messages.extend(parse_message(item, now) for item in payload if isinstance(item, dict))
    return messages
