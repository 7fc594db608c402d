"""
Artifact Schemas
=================

Pydantic v2 models describing the on-disk JSON artifacts the normalizers
accept. Field names are snake_case in Python and camelCase in the files.

Artifacts with two incompatible layouts (agent registry, orchestration
state) are modelled as a tagged union: a ``*Shape`` enum plus one model per
shape. The shape is detected structurally once, then only the matching
model is validated.
"""

from enum import Enum
from typing import Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

TierName = Literal["opus", "sonnet", "haiku"]


class ArtifactModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        protected_namespaces=(),
    )


# =============================================================================
# Agent Registry (agents/registry.json)
# =============================================================================


class RegistryShape(str, Enum):
    ARRAY = "array"
    OBJECT = "object"
    UNKNOWN = "unknown"


class ArrayRegistryAgent(ArtifactModel):
    id: str
    role: str
    model_tier: Optional[TierName] = None
    status: Optional[str] = None
    tickets_completed: Optional[int] = None
    tickets_assigned: Optional[int] = None


class ArrayRegistry(ArtifactModel):
    """``{"agents": [{"id": ..., "role": ..., "modelTier": ...}], "totalAgents": 2}``"""
    agents: List[ArrayRegistryAgent]
    total_agents: Optional[int] = None


class ObjectRegistryAgent(ArtifactModel):
    name: Optional[str] = None
    role: str
    model: Optional[TierName] = None
    phase: Optional[List[str]] = None
    focus: Optional[str] = None


class ObjectRegistry(ArtifactModel):
    """``{"agents": {"<id>": {"role": ..., "model": ...}}, "version": 1}``"""
    agents: Dict[str, ObjectRegistryAgent]
    version: Optional[int] = None


# =============================================================================
# Orchestration State (state/mamh-state.json) and Session (session.json)
# =============================================================================


class StateShape(str, Enum):
    FLAT = "flat"
    RICH = "rich"
    UNKNOWN = "unknown"


class TicketsSummaryPayload(ArtifactModel):
    total: int
    completed: int
    in_progress: int
    pending: int
    blocked: int = 0
    failed: int = 0


class FlatState(ArtifactModel):
    """Numeric phase with a required ticket summary."""
    phase: Union[int, float]
    status: str
    current_milestone: Optional[str] = None
    active_agents: List[str] = Field(default_factory=list)
    tickets_summary: TicketsSummaryPayload
    last_updated: Optional[str] = None


class PhaseHistoryEntry(ArtifactModel):
    phase: str
    completed_at: str


class RichState(ArtifactModel):
    """Named phase with phase history and spawned-agent list."""
    phase: str
    phase_history: List[PhaseHistoryEntry] = Field(default_factory=list)
    current_milestone: Optional[str] = None
    milestones: List[str] = Field(default_factory=list)
    agents_spawned: List[str] = Field(default_factory=list)
    started_at: Optional[str] = None
    last_updated_at: Optional[str] = None
    tickets_summary: Optional[TicketsSummaryPayload] = None


class ProjectSession(ArtifactModel):
    project_name: str
    description: Optional[str] = None
    started_at: Optional[str] = None
    current_phase: Optional[Union[int, float]] = None
    current_milestone: Optional[str] = None


# =============================================================================
# Usage Statistics Cache (<claude_home>/stats-cache.json)
# =============================================================================


class DailyActivity(ArtifactModel):
    date: str
    message_count: int
    session_count: Optional[int] = None
    tool_call_count: Optional[int] = None


class DailyModelTokens(ArtifactModel):
    date: str
    tokens_by_model: Dict[str, float]


class StatsCache(ArtifactModel):
    version: Union[int, float]
    last_computed_date: Optional[str] = None
    daily_activity: List[DailyActivity] = Field(default_factory=list)
    daily_model_tokens: List[DailyModelTokens] = Field(default_factory=list)
