"""
Team State Models
==================

Pydantic v2 models for the published team snapshot and the intermediate
session descriptors produced by the transcript reader.

All models are frozen: every assembly pass builds new values and nothing
downstream mutates a published snapshot. On the wire the fields use
camelCase aliases (``agentId``, ``ticketsSummary``, ...).
"""

from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from teamwatch.constants import (
    CONTEXT_WINDOW_MAX,
    DAILY_TOKEN_LIMIT,
    WEEKLY_TOKEN_LIMIT,
)


class WireModel(BaseModel):
    """Base for immutable, camelCase-serialized models."""

    model_config = ConfigDict(
        frozen=True,
        populate_by_name=True,
        alias_generator=to_camel,
        protected_namespaces=(),
    )


# =============================================================================
# Enumerations
# =============================================================================


class AgentStatus(str, Enum):
    """Three-state activity classification for agents and sessions."""
    WORKING = "working"
    COMPLETED = "completed"
    IDLE = "idle"


class ModelTier(str, Enum):
    OPUS = "opus"
    SONNET = "sonnet"
    HAIKU = "haiku"


class TicketStatus(str, Enum):
    PENDING = "pending"
    IN_PROGRESS = "in-progress"
    COMPLETED = "completed"
    BLOCKED = "blocked"
    FAILED = "failed"


class TicketPriority(str, Enum):
    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class ActivityType(str, Enum):
    """Kinds of entries in the activity log."""
    TICKET_STARTED = "ticket-started"
    TICKET_COMPLETED = "ticket-completed"
    TICKET_FAILED = "ticket-failed"
    AGENT_SPAWNED = "agent-spawned"
    AGENT_IDLE = "agent-idle"
    MILESTONE_STARTED = "milestone-started"
    MILESTONE_COMPLETED = "milestone-completed"
    MESSAGE_SENT = "message-sent"
    REVIEW_SUBMITTED = "review-submitted"
    SYSTEM = "system"


# =============================================================================
# Snapshot Components
# =============================================================================


class AgentRecord(WireModel):
    """One agent as shown to observers."""
    id: str
    role: str
    model_tier: ModelTier = ModelTier.SONNET
    status: AgentStatus = AgentStatus.IDLE
    color: str = "blue"
    tickets_assigned: int = 0
    tickets_completed: int = 0
    current_ticket: Optional[str] = None
    session_id: Optional[str] = None


class TicketRecord(WireModel):
    id: str
    title: str
    agent_id: Optional[str] = None
    milestone: str
    status: TicketStatus = TicketStatus.PENDING
    priority: TicketPriority = TicketPriority.MEDIUM
    dependencies: List[str] = Field(default_factory=list)


class ActivityEvent(WireModel):
    """A single activity log entry. ``timestamp`` is ISO-8601 UTC."""
    timestamp: str
    agent_id: Optional[str] = None
    session_id: Optional[str] = None
    type: ActivityType
    summary: str


class TicketsSummary(WireModel):
    total: int = 0
    completed: int = 0
    in_progress: int = 0
    pending: int = 0
    blocked: int = 0
    failed: int = 0


class ProjectState(WireModel):
    name: str
    phase: str
    status: str
    current_milestone: Optional[str] = None
    active_agents: List[str] = Field(default_factory=list)
    tickets_summary: TicketsSummary = Field(default_factory=TicketsSummary)
    started_at: Optional[str] = None
    last_updated_at: Optional[str] = None


class UsagePeriod(WireModel):
    used: int = 0
    limit: int
    reset_in: str = "N/A"


class ContextWindow(WireModel):
    used: int = 0
    total: int = CONTEXT_WINDOW_MAX
    percentage: int = 0


class ResourceUsage(WireModel):
    """Token usage derived from the companion usage-statistics cache."""
    daily: UsagePeriod
    weekly: UsagePeriod
    context_window: ContextWindow = Field(default_factory=ContextWindow)
    model: str = "unknown"
    last_updated: Optional[str] = None

    @classmethod
    def empty(cls) -> "ResourceUsage":
        return cls(
            daily=UsagePeriod(limit=DAILY_TOKEN_LIMIT),
            weekly=UsagePeriod(limit=WEEKLY_TOKEN_LIMIT),
        )


class Message(WireModel):
    """An inter-agent message from the comms directory."""
    timestamp: str
    sender: str = Field(default="unknown", alias="from")
    to: str = "unknown"
    ticket_id: Optional[str] = None
    content: str = ""
    urgency: str = "normal"


class Snapshot(WireModel):
    """
    One immutable, fully-assembled view of team state.

    ``error`` is only set when the artifact root is missing entirely.
    """
    agents: List[AgentRecord] = Field(default_factory=list)
    tickets: List[TicketRecord] = Field(default_factory=list)
    activity: List[ActivityEvent] = Field(default_factory=list)
    project: ProjectState
    resources: ResourceUsage = Field(default_factory=ResourceUsage.empty)
    messages: List[Message] = Field(default_factory=list)
    error: Optional[str] = None

    @classmethod
    def empty(cls, error: Optional[str] = None) -> "Snapshot":
        """Build a fully-populated empty snapshot."""
        return cls(
            project=ProjectState(name="No Project", phase="0", status="disconnected"),
            error=error,
        )

    def to_wire(self) -> str:
        """Serialize with camelCase keys for the outbound stream."""
        return self.model_dump_json(by_alias=True)


# =============================================================================
# Session Descriptors (Transcript Reader output)
# =============================================================================


class MainSession(WireModel):
    """The orchestrating session's transcript."""
    session_id: str
    session_file: str
    last_modified: datetime
    activity: AgentStatus


class AgentSession(WireModel):
    """A subordinate worker session's transcript."""
    agent_id: str
    agent_name: Optional[str] = None
    session_file: str
    last_modified: datetime
    activity: AgentStatus
    model: Optional[str] = None
    role: Optional[str] = None
    current_task: Optional[str] = None
    last_action: Optional[str] = None


class SessionSnapshot(WireModel):
    """Main session plus subordinate sessions, newest first."""
    main_session: Optional[MainSession] = None
    subagents: List[AgentSession] = Field(default_factory=list)
