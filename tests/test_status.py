"""
Tests for teamwatch.sessions.status

Run: python -m pytest tests/test_status.py -v
"""

from datetime import datetime, timedelta, timezone

import pytest

from teamwatch.models import AgentStatus
from teamwatch.sessions.status import activity_for_elapsed, derive_activity


class TestActivityForElapsed:

    @pytest.mark.parametrize(
        "elapsed,expected",
        [
            (0, AgentStatus.WORKING),
            (30, AgentStatus.WORKING),
            (119.9, AgentStatus.WORKING),
            (120, AgentStatus.COMPLETED),
            (299.9, AgentStatus.COMPLETED),
            (300, AgentStatus.IDLE),
            (86_400, AgentStatus.IDLE),
        ],
    )
    def test_thresholds(self, elapsed: float, expected: AgentStatus) -> None:
        assert activity_for_elapsed(elapsed) == expected


class TestDeriveActivity:

    def test_relative_to_now(self) -> None:
        now = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)
        assert derive_activity(now - timedelta(seconds=30), now) == AgentStatus.WORKING
        assert derive_activity(now - timedelta(minutes=3), now) == AgentStatus.COMPLETED
        assert derive_activity(now - timedelta(minutes=10), now) == AgentStatus.IDLE

    def test_naive_timestamp_is_treated_as_utc(self) -> None:
        now = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)
        naive = datetime(2026, 3, 1, 11, 59)
        assert derive_activity(naive, now) == AgentStatus.WORKING

    def test_defaults_to_current_time(self) -> None:
        recent = datetime.now(timezone.utc) - timedelta(seconds=5)
        assert derive_activity(recent) == AgentStatus.WORKING
