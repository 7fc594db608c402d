"""
Source Normalizers
===================

Each normalizer reads one family of on-disk artifacts and returns canonical
model values. None of them raise: absent or malformed input produces
defaults (``[]``, ``None`` or ``ResourceUsage.empty()``) and a debug log line.
"""

from teamwatch.sources.comms import read_activity, read_messages, sort_events
from teamwatch.sources.orchestration import (
    OrchestrationState,
    apply_milestone_completions,
    detect_state_shape,
    read_orchestration_state,
    read_project_session,
)
from teamwatch.sources.registry import detect_registry_shape, read_registry
from teamwatch.sources.tickets import parse_ticket_priority, parse_ticket_status, read_tickets
from teamwatch.sources.usage import read_usage_stats

__all__ = [
    "OrchestrationState",
    "apply_milestone_completions",
    "detect_registry_shape",
    "detect_state_shape",
    "parse_ticket_priority",
    "parse_ticket_status",
    "read_activity",
    "read_messages",
    "read_orchestration_state",
    "read_project_session",
    "read_registry",
    "read_tickets",
    "read_usage_stats",
    "sort_events",
]
