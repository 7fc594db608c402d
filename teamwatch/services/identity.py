"""
Identity Resolution
====================

Joins registry agents with the transcripts that belong to them.

Registry ids are human-chosen names (``backend-engineer``) while
subordinate transcripts are keyed by opaque ids (``a1d8cc3``). The join
cascade for each agent is:

1. the newest session whose declared name equals the agent id
2. the session whose opaque id equals the agent id
3. no session: status derived from ticket assignment instead

Session-derived status always wins over ticket-derived status; the two are
never mixed for one agent.
"""

import logging
from pathlib import Path
from typing import Dict, List, Optional, Set, Tuple

from teamwatch.constants import LEAD_AGENT_ID, LEAD_SESSION_FALLBACK
from teamwatch.formatting import to_iso
from teamwatch.models import (
    ActivityEvent,
    ActivityType,
    AgentRecord,
    AgentSession,
    AgentStatus,
    ModelTier,
    ProjectState,
    SessionSnapshot,
    TicketRecord,
    TicketsSummary,
    TicketStatus,
)
from teamwatch.sources.orchestration import OrchestrationState
from teamwatch.sources.schemas import ProjectSession

logger = logging.getLogger(__name__)

LEAD_ROLE = "Orchestrator (main session)"

_EXECUTING = "executing"
_FINISHED_STATUSES = ("milestone-complete", "completed")

_SESSION_EVENT_TYPES = {
    AgentStatus.WORKING: ActivityType.TICKET_STARTED,
    AgentStatus.COMPLETED: ActivityType.TICKET_COMPLETED,
    AgentStatus.IDLE: ActivityType.AGENT_IDLE,
}

_LEAD_LABELS = {
    AgentStatus.WORKING: "actively orchestrating",
    AgentStatus.COMPLETED: "recently finished",
    AgentStatus.IDLE: "idle",
}


def session_file_id(session: AgentSession) -> str:
    """Transcript file name without its ``.jsonl`` extension."""
    return Path(session.session_file).stem


def index_sessions(
    sessions: SessionSnapshot,
) -> Tuple[Dict[str, AgentSession], Dict[str, AgentSession]]:
    """
    Build the name and opaque-id lookup tables.

    Sessions arrive newest first, so the first session seen for a declared
    name is the one kept.
    """
    by_name: Dict[str, AgentSession] = {}
    for session in sessions.subagents:
        if session.agent_name and session.agent_name not in by_name:
            by_name[session.agent_name] = session
    by_id: Dict[str, AgentSession] = {s.agent_id: s for s in sessions.subagents}
    return by_name, by_id


def match_session(
    agent_id: str,
    by_name: Dict[str, AgentSession],
    by_id: Dict[str, AgentSession],
) -> Optional[AgentSession]:
    return by_name.get(agent_id) or by_id.get(agent_id)


def status_from_tickets(tickets: List[TicketRecord]) -> AgentStatus:
    """
    Fallback status for an agent without a transcript.

    Any in-progress ticket means working; a non-empty assignment that is all
    completed means completed; anything else is idle.
    """
    if any(t.status == TicketStatus.IN_PROGRESS for t in tickets):
        return AgentStatus.WORKING
    if tickets and all(t.status == TicketStatus.COMPLETED for t in tickets):
        return AgentStatus.COMPLETED
    return AgentStatus.IDLE


def resolve_agent_statuses(
    agents: List[AgentRecord],
    tickets: List[TicketRecord],
    sessions: SessionSnapshot,
) -> List[AgentRecord]:
    """Return new agent records with status, ticket counts and session id filled in."""
    by_name, by_id = index_sessions(sessions)

    resolved = []
    for agent in agents:
        assigned = [t for t in tickets if t.agent_id == agent.id]
        in_progress = [t for t in assigned if t.status == TicketStatus.IN_PROGRESS]
        completed = [t for t in assigned if t.status == TicketStatus.COMPLETED]

        session = match_session(agent.id, by_name, by_id)
        if session is not None:
            status = session.activity
            session_id = session_file_id(session)
        else:
            status = status_from_tickets(assigned)
            session_id = agent.session_id

        resolved.append(
            agent.model_copy(
                update={
                    "status": status,
                    "tickets_assigned": len(assigned),
                    "tickets_completed": len(completed),
                    "current_ticket": in_progress[0].id if in_progress else None,
                    "session_id": session_id,
                }
            )
        )
    return resolved


def build_lead_agent(
    state: Optional[OrchestrationState],
    agents: List[AgentRecord],
    sessions: SessionSnapshot,
) -> AgentRecord:
    """
    The synthetic orchestrator agent.

    Its status comes from the main session when one exists. Otherwise it is
    working while the orchestration is executing or any subordinate is
    working, completed once the orchestration reports a finished status,
    and idle in every other case.
    """
    main = sessions.main_session
    if main is not None:
        status = main.activity
    else:
        status = AgentStatus.IDLE
        executing = state is not None and _EXECUTING in (state.phase, state.status)
        if executing or any(a.status == AgentStatus.WORKING for a in agents):
            status = AgentStatus.WORKING
        if state is not None and state.status in _FINISHED_STATUSES:
            status = AgentStatus.COMPLETED

    return AgentRecord(
        id=LEAD_AGENT_ID,
        role=LEAD_ROLE,
        model_tier=ModelTier.OPUS,
        status=status,
        color="blue",
        session_id=main.session_id if main is not None else LEAD_SESSION_FALLBACK,
    )


def describe_session(session: AgentSession, display_id: str) -> str:
    """One-line summary for a subordinate session's activity event."""
    if session.activity == AgentStatus.WORKING:
        task = f" on {session.current_task}" if session.current_task else ""
        action = f" - {session.last_action}" if session.last_action else ""
        return f"[{display_id}] Working{task}{action}"
    if session.activity == AgentStatus.COMPLETED:
        task = f": {session.current_task}" if session.current_task else ""
        return f"[{display_id}] Just finished{task}"
    return f"[{display_id}] Idle"


def subagent_event(session: AgentSession, display_id: str) -> ActivityEvent:
    return ActivityEvent(
        timestamp=to_iso(session.last_modified),
        agent_id=display_id,
        session_id=session_file_id(session),
        type=_SESSION_EVENT_TYPES[session.activity],
        summary=describe_session(session, display_id),
    )


def display_id_for(session: AgentSession, known_ids: Set[str]) -> str:
    """
    Identifier an activity event is keyed by.

    A session matched by declared name or opaque id uses the registry id it
    matched; an unmatched session keeps whichever identifier it carries.
    """
    if session.agent_name and session.agent_name in known_ids:
        return session.agent_name
    if session.agent_id in known_ids:
        return session.agent_id
    return session.agent_name or session.agent_id


def build_session_activity_events(
    sessions: SessionSnapshot,
    agents: List[AgentRecord],
) -> List[ActivityEvent]:
    """
    Activity events derived from transcripts.

    The main session contributes one lead event. Every subordinate session
    contributes one event, including sessions that match no registry agent.
    """
    events = []
    main = sessions.main_session
    if main is not None:
        events.append(
            ActivityEvent(
                timestamp=to_iso(main.last_modified),
                agent_id=LEAD_AGENT_ID,
                session_id=main.session_id,
                type=(
                    ActivityType.AGENT_SPAWNED
                    if main.activity == AgentStatus.WORKING
                    else ActivityType.AGENT_IDLE
                ),
                summary=f"[{LEAD_AGENT_ID}] Lead is {_LEAD_LABELS[main.activity]}",
            )
        )

    known_ids = {a.id for a in agents}
    for session in sessions.subagents:
        display_id = display_id_for(session, known_ids)
        if display_id not in known_ids:
            logger.debug("Session %s matches no registry agent", session.agent_id)
        events.append(subagent_event(session, display_id))

    return events


def build_project_state(
    project_meta: Optional[ProjectSession],
    state: Optional[OrchestrationState],
    agents: List[AgentRecord],
) -> ProjectState:
    """Project header combining session metadata, orchestration state and agent activity."""
    if state is not None:
        phase = state.phase
    elif project_meta is not None and project_meta.current_phase is not None:
        current = project_meta.current_phase
        phase = str(int(current)) if float(current).is_integer() else str(current)
    else:
        phase = "0"

    return ProjectState(
        name=project_meta.project_name if project_meta else "Unknown Project",
        phase=phase,
        status=state.status if state else "unknown",
        current_milestone=(
            (state.current_milestone if state else None)
            or (project_meta.current_milestone if project_meta else None)
        ),
        active_agents=[a.id for a in agents if a.status == AgentStatus.WORKING],
        tickets_summary=(state.tickets_summary if state and state.tickets_summary else TicketsSummary()),
        started_at=(
            (state.started_at if state else None)
            or (project_meta.started_at if project_meta else None)
        ),
        last_updated_at=state.last_updated_at if state else None,
    )
