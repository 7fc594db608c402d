"""
Orchestration State Normalizer
===============================

Reads the project's orchestration metadata:

- ``session.json``: project name, description, start time, phase number
- ``state/mamh-state.json``: either FLAT (numeric ``phase``, required
  ``ticketsSummary``) or RICH (named ``phase``, ``phaseHistory``,
  ``agentsSpawned``)

Both state shapes collapse into ``OrchestrationState``. The
``milestoneCompletions`` map is read from the raw payload whichever shape
matched.
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

from pydantic import ValidationError

from teamwatch.exceptions import ArtifactReadError, SchemaMismatchError
from teamwatch.models import TicketRecord, TicketsSummary, TicketStatus
from teamwatch.sources.files import load_json
from teamwatch.sources.schemas import (
    FlatState,
    ProjectSession,
    RichState,
    StateShape,
    TicketsSummaryPayload,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class OrchestrationState:
    """Shape-independent view of the orchestration state file."""
    phase: str
    status: str
    current_milestone: Optional[str] = None
    active_agents: List[str] = field(default_factory=list)
    tickets_summary: Optional[TicketsSummary] = None
    milestone_completions: Dict[str, str] = field(default_factory=dict)
    started_at: Optional[str] = None
    last_updated_at: Optional[str] = None


def detect_state_shape(payload: Any) -> StateShape:
    """FLAT when ``phase`` is numeric, RICH when it is a string."""
    if not isinstance(payload, dict):
        return StateShape.UNKNOWN
    phase = payload.get("phase")
    if isinstance(phase, bool):
        return StateShape.UNKNOWN
    if isinstance(phase, (int, float)):
        return StateShape.FLAT
    if isinstance(phase, str):
        return StateShape.RICH
    return StateShape.UNKNOWN


def _summary(payload: Optional[TicketsSummaryPayload]) -> TicketsSummary:
    if payload is None:
        return TicketsSummary()
    return TicketsSummary(**payload.model_dump())


def _phase_label(phase: Any) -> str:
    # 2.0 -> "2"
    if isinstance(phase, float) and phase.is_integer():
        return str(int(phase))
    return str(phase)


def _milestone_completions(payload: Dict[str, Any]) -> Dict[str, str]:
    raw = payload.get("milestoneCompletions")
    if not isinstance(raw, dict):
        return {}
    return {str(k): str(v) for k, v in raw.items() if v is not None}


def parse_orchestration_state(payload: Any) -> OrchestrationState:
    """
    Normalize a decoded state file.

    Raises:
        SchemaMismatchError: If the payload fits neither shape.
    """
    shape = detect_state_shape(payload)
    try:
        if shape == StateShape.FLAT:
            flat = FlatState.model_validate(payload)
            return OrchestrationState(
                phase=_phase_label(flat.phase),
                status=flat.status,
                current_milestone=flat.current_milestone,
                active_agents=list(flat.active_agents),
                tickets_summary=_summary(flat.tickets_summary),
                milestone_completions=_milestone_completions(payload),
                last_updated_at=flat.last_updated,
            )
        if shape == StateShape.RICH:
            rich = RichState.model_validate(payload)
            # The rich shape carries no separate status; the phase name doubles as one
            return OrchestrationState(
                phase=rich.phase,
                status=rich.phase,
                current_milestone=rich.current_milestone,
                active_agents=list(rich.agents_spawned),
                tickets_summary=_summary(rich.tickets_summary),
                milestone_completions=_milestone_completions(payload),
                started_at=rich.started_at,
                last_updated_at=rich.last_updated_at,
            )
    except ValidationError as e:
        raise SchemaMismatchError(
            artifact="orchestration-state",
            detail=f"{shape.value} layout invalid",
            original_error=e,
        ) from e
    raise SchemaMismatchError(artifact="orchestration-state", detail="phase missing")


async def read_orchestration_state(artifact_root: Path) -> Optional[OrchestrationState]:
    path = artifact_root / "state" / "mamh-state.json"
    try:
        return parse_orchestration_state(await load_json(path))
    except (ArtifactReadError, SchemaMismatchError) as e:
        logger.debug("Orchestration state unavailable: %s", e)
        return None


async def read_project_session(artifact_root: Path) -> Optional[ProjectSession]:
    path = artifact_root / "session.json"
    try:
        return ProjectSession.model_validate(await load_json(path))
    except ArtifactReadError as e:
        logger.debug("Project session unavailable: %s", e)
    except ValidationError as e:
        logger.debug("Project session malformed at %s: %s", path, e)
    return None


def apply_milestone_completions(
    tickets: List[TicketRecord],
    completions: Dict[str, str],
) -> List[TicketRecord]:
    """
    Force-complete tickets belonging to a completed milestone.

    A ticket matches a completed key when its milestone label contains the key
    or its id starts with it. Returns new records; the input is untouched.
    """
    if not completions:
        return list(tickets)

    keys = list(completions)
    result = []
    for ticket in tickets:
        if any(key in ticket.milestone or ticket.id.startswith(key) for key in keys):
            ticket = ticket.model_copy(update={"status": TicketStatus.COMPLETED})
        result.append(ticket)
    return result
