"""
Snapshot Assembler
===================

Combines every source normalizer into one immutable ``Snapshot``.

Two assemblers are provided:

- ``TeamStateAssembler`` reads a project's artifact root (``.mamh`` by
  default) plus the companion home's transcripts and usage cache.
- ``SessionOnlyAssembler`` serves projects without an artifact root: the
  team is inferred from transcripts alone.

Example:
    assembler = select_assembler(WatchConfig.from_env())
    snapshot = await assembler.read_state()
    print(snapshot.project.name, len(snapshot.agents))

Assemblers never raise. A missing root yields ``Snapshot.empty(error)``;
every other failure degrades the affected part to its default.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from datetime import datetime
from pathlib import Path
from typing import Callable, List, Optional, Union

from teamwatch.config import WatchConfig, WatchMode
from teamwatch.constants import (
    AGENT_COLORS,
    DEFAULT_ARTIFACT_DIR,
    LEAD_AGENT_ID,
    MAX_ACTIVITY_EVENTS,
    STALE_SUBAGENT_CUTOFF_SECONDS,
    STATS_CACHE_FILENAME,
)
from teamwatch.exceptions import ArtifactRootMissingError
from teamwatch.formatting import to_iso, utc_now
from teamwatch.models import (
    ActivityEvent,
    ActivityType,
    AgentRecord,
    AgentSession,
    AgentStatus,
    ModelTier,
    ProjectState,
    SessionSnapshot,
    Snapshot,
)
from teamwatch.services.identity import (
    build_lead_agent,
    build_project_state,
    build_session_activity_events,
    resolve_agent_statuses,
    session_file_id,
    subagent_event,
)
from teamwatch.sessions import project_sessions_dir, read_session_snapshot
from teamwatch.sources import (
    apply_milestone_completions,
    read_activity,
    read_messages,
    read_orchestration_state,
    read_project_session,
    read_registry,
    read_tickets,
    read_usage_stats,
    sort_events,
)
from teamwatch.sources.files import is_dir

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]
Clock = Callable[[], datetime]


def merge_activity(*groups: List[ActivityEvent]) -> List[ActivityEvent]:
    """Concatenate event groups, sort ascending (stable) and keep the newest 500."""
    merged: List[ActivityEvent] = []
    for group in groups:
        merged.extend(group)
    return sort_events(merged)[-MAX_ACTIVITY_EVENTS:]


class SnapshotAssembler(ABC):
    """
    Produces snapshots from on-disk state.

    Subclasses also report which paths the watcher should observe.
    """

    name: str = "base"

    def __init__(
        self,
        project_dir: PathLike,
        claude_home: PathLike,
        clock: Optional[Clock] = None,
    ) -> None:
        self.project_dir = Path(project_dir)
        self.claude_home = Path(claude_home)
        self._clock = clock or utc_now

    @abstractmethod
    async def read_state(self) -> Snapshot:
        """Assemble a fresh snapshot. Never raises."""
        pass

    @abstractmethod
    def watch_targets(self) -> List[str]:
        """Paths or glob patterns (``**`` allowed) whose changes should trigger a pass."""
        pass


# =============================================================================
# Team State (artifact root present)
# =============================================================================


class TeamStateAssembler(SnapshotAssembler):
    """Full pipeline over the artifact root, transcripts and usage cache."""

    name = "team"

    def __init__(
        self,
        project_dir: PathLike,
        claude_home: PathLike,
        artifact_dir_name: str = DEFAULT_ARTIFACT_DIR,
        clock: Optional[Clock] = None,
    ) -> None:
        super().__init__(project_dir, claude_home, clock)
        self.artifact_dir_name = artifact_dir_name
        self.artifact_root = self.project_dir / artifact_dir_name

    def watch_targets(self) -> List[str]:
        root = self.artifact_root
        return [
            str(root / "state" / "mamh-state.json"),
            str(root / "agents" / "registry.json"),
            str(root / "session.json"),
            str(root / "tickets" / "**" / "*.md"),
            str(root / "tickets" / "**" / "*.json"),
            str(root / "comms" / "**"),
            str(root / "reviews" / "**"),
            str(self.claude_home / STATS_CACHE_FILENAME),
        ]

    async def read_state(self) -> Snapshot:
        if not await is_dir(self.artifact_root):
            error = ArtifactRootMissingError(root=self.artifact_dir_name)
            logger.debug("%s", error)
            return Snapshot.empty(error.message)

        try:
            return await self._assemble()
        except Exception as e:
            logger.exception("Unexpected failure assembling team state: %s", e)
            return Snapshot.empty(f"Failed to assemble team state: {e}")

    async def _assemble(self) -> Snapshot:
        now = self._clock()
        root = self.artifact_root

        (
            registry,
            raw_tickets,
            project_meta,
            state,
            resources,
            messages,
            sessions,
        ) = await asyncio.gather(
            read_registry(root),
            read_tickets(root / "tickets"),
            read_project_session(root),
            read_orchestration_state(root),
            read_usage_stats(self.claude_home, now),
            read_messages(root, now),
            read_session_snapshot(self.claude_home, self.project_dir, now),
        )

        completions = state.milestone_completions if state else {}
        artifact_activity = await read_activity(root, completions)

        tickets = apply_milestone_completions(raw_tickets, completions)
        subordinates = resolve_agent_statuses(registry, tickets, sessions)
        agents = [build_lead_agent(state, subordinates, sessions)] + subordinates

        activity = merge_activity(
            artifact_activity,
            build_session_activity_events(sessions, subordinates),
        )

        logger.debug(
            "Assembled team state: %d agents, %d tickets, %d events",
            len(agents), len(tickets), len(activity),
        )
        return Snapshot(
            agents=agents,
            tickets=tickets,
            activity=activity,
            project=build_project_state(project_meta, state, agents),
            resources=resources,
            messages=messages,
        )


# =============================================================================
# Session Only (no artifact root)
# =============================================================================


class SessionOnlyAssembler(SnapshotAssembler):
    """
    Team view inferred from transcripts alone.

    The lead comes from the main session; each subordinate session that is
    still active, or was written within the last hour, becomes one agent.
    """

    name = "sessions"

    def watch_targets(self) -> List[str]:
        sessions_dir = project_sessions_dir(self.claude_home, self.project_dir)
        return [
            str(self.claude_home / STATS_CACHE_FILENAME),
            str(sessions_dir / "**" / "*.jsonl"),
        ]

    async def read_state(self) -> Snapshot:
        if not await is_dir(self.claude_home):
            error = ArtifactRootMissingError(root=str(self.claude_home))
            logger.debug("%s", error)
            return Snapshot.empty(error.message)

        try:
            return await self._assemble()
        except Exception as e:
            logger.exception("Unexpected failure assembling session state: %s", e)
            return Snapshot.empty(f"Failed to assemble session state: {e}")

    async def _assemble(self) -> Snapshot:
        now = self._clock()
        resources, sessions = await asyncio.gather(
            read_usage_stats(self.claude_home, now),
            read_session_snapshot(self.claude_home, self.project_dir, now),
        )

        agents: List[AgentRecord] = []
        activity: List[ActivityEvent] = []

        main = sessions.main_session
        if main is not None:
            agents.append(
                AgentRecord(
                    id=LEAD_AGENT_ID,
                    role="Main Session",
                    model_tier=ModelTier.OPUS,
                    status=main.activity,
                    color="blue",
                    session_id=main.session_id,
                )
            )
            label = "active" if main.activity == AgentStatus.WORKING else main.activity.value
            activity.append(
                ActivityEvent(
                    timestamp=to_iso(main.last_modified),
                    agent_id=LEAD_AGENT_ID,
                    session_id=main.session_id,
                    type=(
                        ActivityType.AGENT_SPAWNED
                        if main.activity == AgentStatus.WORKING
                        else ActivityType.AGENT_IDLE
                    ),
                    summary=f"[{LEAD_AGENT_ID}] Main session {label}",
                )
            )

        for i, session in enumerate(recent_subagents(sessions, now)):
            display_id = session.agent_name or session.agent_id
            agents.append(
                AgentRecord(
                    id=display_id,
                    role=session.role or "Subagent",
                    model_tier=(
                        ModelTier.OPUS
                        if session.model and "opus" in session.model
                        else ModelTier.SONNET
                    ),
                    status=session.activity,
                    # index 0 of the palette is reserved for the lead
                    color=AGENT_COLORS[(i + 1) % len(AGENT_COLORS)],
                    session_id=session_file_id(session),
                )
            )
            activity.append(subagent_event(session, display_id))

        project = ProjectState(
            name=self.project_dir.name,
            phase="active",
            status="running",
            active_agents=[a.id for a in agents if a.status == AgentStatus.WORKING],
            started_at=to_iso(main.last_modified) if main is not None else None,
            last_updated_at=to_iso(now),
        )

        return Snapshot(
            agents=agents,
            activity=merge_activity(activity),
            project=project,
            resources=resources,
        )


def recent_subagents(sessions: SessionSnapshot, now: datetime) -> List[AgentSession]:
    """Subordinate sessions that are not idle or were written within the stale cutoff."""
    return [
        s for s in sessions.subagents
        if s.activity != AgentStatus.IDLE
        or (now - s.last_modified).total_seconds() < STALE_SUBAGENT_CUTOFF_SECONDS
    ]


def select_assembler(
    config: WatchConfig,
    clock: Optional[Clock] = None,
) -> SnapshotAssembler:
    """
    Choose an assembler for ``config.mode``.

    ``auto`` picks the team assembler when the artifact root exists at
    startup and the session-only assembler otherwise.
    """
    mode = config.mode
    if mode == WatchMode.AUTO:
        mode = WatchMode.TEAM if config.artifact_root.is_dir() else WatchMode.SESSIONS

    if mode == WatchMode.TEAM:
        assembler: SnapshotAssembler = TeamStateAssembler(
            config.project_dir,
            config.claude_home,
            artifact_dir_name=config.artifact_dir_name,
            clock=clock,
        )
    else:
        assembler = SessionOnlyAssembler(config.project_dir, config.claude_home, clock=clock)

    logger.info("Using %s assembler for %s", assembler.name, config.project_dir)
    return assembler
