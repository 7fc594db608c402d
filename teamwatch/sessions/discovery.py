"""
Session Discovery
==================

Locates the transcripts belonging to one project inside the companion home::

    <claude_home>/projects/<encoded-project-path>/
        <session-id>.jsonl              <- main (orchestrating) sessions
        <session-id>/subagents/
            agent-<hash>.jsonl          <- subordinate worker sessions

The newest top-level transcript is the main session. Subordinate transcripts
are processed newest-first and only the newest file per agent id is kept.
Tail reads are skipped for sessions that are already idle.
"""

import asyncio
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional, Tuple, Union

from teamwatch.models import (
    AgentSession,
    AgentStatus,
    MainSession,
    SessionSnapshot,
)
from teamwatch.sessions.status import derive_activity
from teamwatch.sessions.transcript import read_last_action, read_transcript_head

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]


def project_sessions_dir(claude_home: PathLike, project_dir: PathLike) -> Path:
    """Transcript directory for ``project_dir`` (path separators become ``-``)."""
    encoded = str(project_dir).replace("/", "-")
    return Path(claude_home) / "projects" / encoded


def _scan_transcripts(directory: Path) -> List[Tuple[Path, datetime]]:
    """List ``*.jsonl`` files in ``directory`` with their mtimes, newest first."""
    results: List[Tuple[Path, datetime]] = []
    try:
        entries = list(directory.iterdir())
    except OSError:
        return results

    for entry in entries:
        if entry.suffix != ".jsonl":
            continue
        try:
            stat = entry.stat()
        except OSError:
            continue
        if not entry.is_file():
            continue
        results.append(
            (entry, datetime.fromtimestamp(stat.st_mtime, tz=timezone.utc))
        )

    results.sort(key=lambda item: item[1], reverse=True)
    return results


async def find_main_session(
    sessions_dir: Path,
    now: Optional[datetime] = None,
) -> Optional[MainSession]:
    """Return the most recently modified top-level transcript, if any."""
    transcripts = await asyncio.to_thread(_scan_transcripts, sessions_dir)
    if not transcripts:
        return None
    path, mtime = transcripts[0]
    return MainSession(
        session_id=path.stem,
        session_file=str(path),
        last_modified=mtime,
        activity=derive_activity(mtime, now),
    )


async def read_subagent_sessions(
    sessions_dir: Path,
    main_session_id: str,
    now: Optional[datetime] = None,
) -> List[AgentSession]:
    """Read subordinate sessions of ``main_session_id``, newest first, one per agent."""
    subagents_dir = sessions_dir / main_session_id / "subagents"
    transcripts = await asyncio.to_thread(_scan_transcripts, subagents_dir)
    if not transcripts:
        return []

    heads = await asyncio.gather(
        *(read_transcript_head(path) for path, _ in transcripts)
    )

    kept = []
    seen_agents = set()
    for (path, mtime), head in zip(transcripts, heads):
        agent_id = head.agent_id or path.stem
        if agent_id in seen_agents:
            continue
        seen_agents.add(agent_id)
        kept.append((path, mtime, head, agent_id, derive_activity(mtime, now)))

    async def _last_action(path: Path, activity: AgentStatus) -> Optional[str]:
        if activity == AgentStatus.IDLE:
            return None
        return await read_last_action(path)

    actions = await asyncio.gather(
        *(_last_action(path, activity) for path, _, _, _, activity in kept)
    )

    return [
        AgentSession(
            agent_id=agent_id,
            agent_name=head.agent_name,
            session_file=str(path),
            last_modified=mtime,
            activity=activity,
            model=head.model,
            role=head.role,
            current_task=head.current_task,
            last_action=action,
        )
        for (path, mtime, head, agent_id, activity), action in zip(kept, actions)
    ]


async def read_session_snapshot(
    claude_home: PathLike,
    project_dir: PathLike,
    now: Optional[datetime] = None,
) -> SessionSnapshot:
    """Full session picture for a project: main session plus its subagents."""
    sessions_dir = project_sessions_dir(claude_home, project_dir)
    main = await find_main_session(sessions_dir, now)
    if main is None:
        logger.debug("No main session under %s", sessions_dir)
        return SessionSnapshot()

    subagents = await read_subagent_sessions(sessions_dir, main.session_id, now)
    return SessionSnapshot(main_session=main, subagents=subagents)
