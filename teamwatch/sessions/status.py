"""
Status derivation from transcript modification times.
"""

from datetime import datetime, timezone
from typing import Optional

from teamwatch.constants import (
    COMPLETED_THRESHOLD_SECONDS,
    WORKING_THRESHOLD_SECONDS,
)
from teamwatch.models import AgentStatus


def activity_for_elapsed(elapsed_seconds: float) -> AgentStatus:
    """
    Classify elapsed time since the last transcript write.

    ``t < 2m`` is working, ``2m <= t < 5m`` is completed, ``t >= 5m`` is idle.
    """
    if elapsed_seconds < WORKING_THRESHOLD_SECONDS:
        return AgentStatus.WORKING
    if elapsed_seconds < COMPLETED_THRESHOLD_SECONDS:
        return AgentStatus.COMPLETED
    return AgentStatus.IDLE


def derive_activity(last_modified: datetime, now: Optional[datetime] = None) -> AgentStatus:
    """Classify a modification time relative to ``now`` (defaults to current UTC)."""
    now = now or datetime.now(timezone.utc)
    if last_modified.tzinfo is None:
        last_modified = last_modified.replace(tzinfo=timezone.utc)
    return activity_for_elapsed((now - last_modified).total_seconds())
