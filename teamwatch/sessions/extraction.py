"""
Prompt Field Extraction
========================

Pulls the declared agent identity and the current task out of the first
operator prompt of a worker transcript.

Task extraction is an ordered chain of ``TaskPattern`` strategies; the first
one that matches wins. Supporting a new prompt convention means appending a
pattern to ``TASK_PATTERNS`` (or passing a custom chain), without touching the
transcript I/O in ``teamwatch.sessions.transcript``.
"""

import re
from dataclasses import dataclass
from typing import Callable, Optional, Sequence, Tuple

# "You are mamh-data-engineer, a data ..." / "You are **backend-dev**, an API specialist ..."
IDENTITY_PATTERN = re.compile(
    r"You are \*{0,2}([\w-]+)\*{0,2},\s*(?:an?\s+)?(.+?)(?:\s+agent|\s+for|\s+specializ)",
    re.IGNORECASE,
)


@dataclass(frozen=True)
class TaskPattern:
    """A named regex plus a renderer turning its match into task text."""
    name: str
    pattern: re.Pattern
    render: Callable[[re.Match], str]

    def extract(self, text: str) -> Optional[str]:
        match = self.pattern.search(text)
        if not match:
            return None
        rendered = self.render(match).strip()
        return rendered or None


def _render_ticket(match: re.Match) -> str:
    return f"{match.group(1)}: {match.group(2).strip()}"


def _render_first_line(match: re.Match) -> str:
    return match.group(1).strip().split("\n")[0]


TICKET_HEADING = TaskPattern(
    name="ticket-heading",
    pattern=re.compile(r"##\s+Ticket\s+([\w.-]+):\s*(.+)", re.IGNORECASE),
    render=_render_ticket,
)

GENERIC_TASK = TaskPattern(
    name="generic-task",
    pattern=re.compile(
        r"(?:^|\n)(?:##\s+)?(?:Task|Goal|Description)[:\s]+(.{10,120})",
        re.IGNORECASE,
    ),
    render=_render_first_line,
)

TASK_PATTERNS: Tuple[TaskPattern, ...] = (TICKET_HEADING, GENERIC_TASK)


def extract_identity(text: str) -> Optional[Tuple[str, str]]:
    """
    Extract ``(agent_name, role)`` from a "You are <name>, <role> ..." prompt.

    Returns:
        The declared name and role description, or None when the prompt does
        not follow the convention.
    """
    if not text:
        return None
    match = IDENTITY_PATTERN.search(text)
    if not match:
        return None
    return match.group(1), match.group(2).strip()


def extract_task(text: str, patterns: Sequence[TaskPattern] = TASK_PATTERNS) -> Optional[str]:
    """Return the task text from the first pattern in ``patterns`` that matches."""
    if not text:
        return None
    for strategy in patterns:
        task = strategy.extract(text)
        if task:
            return task
    return None
