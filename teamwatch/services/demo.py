"""
Demo snapshot source, used when ``USE_MOCK_DATA=true``.

Serves one fixed snapshot and never publishes updates; subscribers still
receive keep-alives from the broadcaster.
"""

import logging
from typing import Callable, Optional

from teamwatch.models import (
    ActivityEvent,
    ActivityType,
    AgentRecord,
    AgentStatus,
    ContextWindow,
    Message,
    ModelTier,
    ProjectState,
    ResourceUsage,
    Snapshot,
    TicketPriority,
    TicketRecord,
    TicketsSummary,
    TicketStatus,
    UsagePeriod,
)

logger = logging.getLogger(__name__)

DEMO_SNAPSHOT = Snapshot(
    agents=[
        AgentRecord(
            id="lead",
            role="Orchestrator (main session)",
            model_tier=ModelTier.OPUS,
            status=AgentStatus.WORKING,
            color="blue",
            session_id="main",
        ),
        AgentRecord(
            id="backend-engineer",
            role="Backend Engineer",
            model_tier=ModelTier.SONNET,
            status=AgentStatus.WORKING,
            color="red",
            tickets_assigned=3,
            tickets_completed=1,
            current_ticket="T02",
            session_id="agent-a1d8cc3",
        ),
        AgentRecord(
            id="frontend-engineer",
            role="Frontend Engineer",
            model_tier=ModelTier.SONNET,
            status=AgentStatus.COMPLETED,
            color="green",
            tickets_assigned=2,
            tickets_completed=2,
            session_id="agent-b72f019",
        ),
        AgentRecord(
            id="reviewer",
            role="Code Reviewer",
            model_tier=ModelTier.HAIKU,
            status=AgentStatus.IDLE,
            color="yellow",
        ),
    ],
    tickets=[
        TicketRecord(
            id="T01",
            title="Define snapshot schema",
            agent_id="backend-engineer",
            milestone="core pipeline",
            status=TicketStatus.COMPLETED,
            priority=TicketPriority.HIGH,
        ),
        TicketRecord(
            id="T02",
            title="Stream snapshots to observers",
            agent_id="backend-engineer",
            milestone="core pipeline",
            status=TicketStatus.IN_PROGRESS,
            priority=TicketPriority.CRITICAL,
            dependencies=["T01"],
        ),
        TicketRecord(
            id="T03",
            title="Agent overview panel",
            agent_id="frontend-engineer",
            milestone="core pipeline",
            status=TicketStatus.COMPLETED,
        ),
        TicketRecord(
            id="T04",
            title="Review streaming endpoint",
            agent_id="reviewer",
            milestone="core pipeline",
            status=TicketStatus.PENDING,
            priority=TicketPriority.LOW,
            dependencies=["T02"],
        ),
    ],
    activity=[
        ActivityEvent(
            timestamp="2026-01-05T17:00:00.000Z",
            agent_id="lead",
            session_id="main",
            type=ActivityType.SYSTEM,
            summary="[lead] Decision D1: Use server-sent events for the outbound stream",
        ),
        ActivityEvent(
            timestamp="2026-01-05T17:04:12.000Z",
            agent_id="backend-engineer",
            type=ActivityType.TICKET_COMPLETED,
            summary="[backend-engineer] Completed T01: Define snapshot schema",
        ),
        ActivityEvent(
            timestamp="2026-01-05T17:06:40.000Z",
            agent_id="backend-engineer",
            session_id="agent-a1d8cc3",
            type=ActivityType.TICKET_STARTED,
            summary="[backend-engineer] Working on T02: Stream snapshots to observers",
        ),
    ],
    project=ProjectState(
        name="Demo Project",
        phase="3",
        status="executing",
        current_milestone="M1",
        active_agents=["lead", "backend-engineer"],
        tickets_summary=TicketsSummary(total=4, completed=2, in_progress=1, pending=1),
        started_at="2026-01-05T16:45:00.000Z",
        last_updated_at="2026-01-05T17:06:40.000Z",
    ),
    resources=ResourceUsage(
        daily=UsagePeriod(used=1_240_000, limit=5_000_000, reset_in="6h 54m"),
        weekly=UsagePeriod(used=7_810_000, limit=20_000_000, reset_in="3d 6h"),
        context_window=ContextWindow(used=64_000, total=200_000, percentage=32),
        model="claude-opus-4",
        last_updated="2026-01-05T17:06:40.000Z",
    ),
    messages=[
        Message(
            timestamp="2026-01-05T17:05:00.000Z",
            sender="backend-engineer",
            to="frontend-engineer",
            ticket_id="T02",
            content="Snapshot payload is camelCase; agents come first, lead at index 0.",
        ),
    ],
)


class StaticSnapshotSource:
    """Snapshot source with the watcher's interface that always serves one snapshot."""

    name = "demo"

    def __init__(self, snapshot: Snapshot = DEMO_SNAPSHOT) -> None:
        self._snapshot = snapshot
        self._running = False

    @property
    def running(self) -> bool:
        return self._running

    @property
    def last_snapshot(self) -> Optional[Snapshot]:
        return self._snapshot

    # Listeners are accepted and never called: the snapshot never changes
    # and serving it cannot fail.

    def add_listener(self, listener: Callable[[Snapshot], None]) -> None:
        pass

    def remove_listener(self, listener: Callable[[Snapshot], None]) -> None:
        pass

    def add_error_listener(self, listener: Callable) -> None:
        pass

    def remove_error_listener(self, listener: Callable) -> None:
        pass

    async def get_initial_snapshot(self) -> Snapshot:
        return self._snapshot

    async def assemble(self) -> Snapshot:
        return self._snapshot

    def start(self) -> None:
        if not self._running:
            self._running = True
            logger.info("Serving demo snapshot")

    async def stop(self) -> None:
        self._running = False
