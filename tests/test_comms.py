"""
Tests for the comms normalizer (activity events and messages).

Run: python -m pytest tests/test_comms.py -v
"""

import os
from datetime import datetime, timezone
from pathlib import Path

import pytest

from teamwatch.models import ActivityEvent, ActivityType
from teamwatch.sources.comms import (
    milestone_events,
    parse_decisions,
    parse_message,
    parse_output_file,
    read_activity,
    read_messages,
    sort_events,
)


MODIFIED = datetime(2026, 2, 11, 9, 30, tzinfo=timezone.utc)

DECISIONS_MD = """# Decisions

## D1: Use SQLite for the cache (2026-02-10T14:00:00Z)
**Decision:** SQLite with WAL mode

## D2: Drop the legacy exporter (2026-02-10)
Some rationale.
"""


def _set_mtime(path: Path, moment: datetime) -> None:
    stamp = moment.timestamp()
    os.utime(path, (stamp, stamp))


class TestParseOutputFile:

    def test_completed_output(self) -> None:
        content = "# Exporter wired\n**Engineer:** backend-engineer\nStatus: COMPLETED\n"
        event = parse_output_file("M2-T03-output.md", content, MODIFIED)

        assert event.type == ActivityType.TICKET_COMPLETED
        assert event.agent_id == "backend-engineer"
        assert event.timestamp == "2026-02-11T09:30:00.000Z"
        assert event.summary == "[backend-engineer] Completed Exporter wired"

    def test_started_output_without_title(self) -> None:
        event = parse_output_file("M2-T04-output.md", "work in progress", MODIFIED)

        assert event.type == ActivityType.TICKET_STARTED
        assert event.agent_id is None
        assert event.summary == "[unknown] Started M2-T04"


class TestParseDecisions:

    def test_sections(self) -> None:
        events = parse_decisions(DECISIONS_MD, MODIFIED)

        assert [e.summary for e in events] == [
            "[lead] Decision D1: SQLite with WAL mode",
            "[lead] Decision D2: Drop the legacy exporter",
        ]
        # header time is used only when it carries a time of day
        assert events[0].timestamp == "2026-02-10T14:00:00.000Z"
        assert events[1].timestamp == "2026-02-11T09:30:00.000Z"
        assert all(e.type == ActivityType.SYSTEM for e in events)
        assert all(e.session_id == "main" for e in events)


class TestMilestoneEvents:

    def test_unparseable_times_skipped(self) -> None:
        events = milestone_events({"M1": "2026-02-10T09:00:00Z", "M2": "soon"})

        assert len(events) == 1
        assert events[0].type == ActivityType.MILESTONE_COMPLETED
        assert events[0].summary == "[lead] Milestone M1 completed"


class TestSortEvents:

    def test_stable_ascending(self) -> None:
        a = ActivityEvent(timestamp="2026-02-11T10:00:00.000Z", type=ActivityType.SYSTEM, summary="a")
        b = ActivityEvent(timestamp="2026-02-11T09:00:00.000Z", type=ActivityType.SYSTEM, summary="b")
        c = ActivityEvent(timestamp="2026-02-11T10:00:00.000Z", type=ActivityType.SYSTEM, summary="c")

        assert [e.summary for e in sort_events([a, b, c])] == ["b", "a", "c"]


class TestReadActivity:

    @pytest.mark.asyncio
    async def test_collects_all_sources_in_order(self, tmp_path: Path, write_text) -> None:
        comms = tmp_path / "comms"
        output = write_text(comms / "M1-T01-output.md", "# Scaffold\n**Agent:** backend\nCOMPLETE")
        _set_mtime(output, datetime(2026, 2, 11, 12, 0, tzinfo=timezone.utc))
        decisions = write_text(comms / "decisions.md", DECISIONS_MD)
        _set_mtime(decisions, datetime(2026, 2, 11, 8, 0, tzinfo=timezone.utc))
        write_text(comms / "notes.md", "ignored")

        events = await read_activity(tmp_path, {"M1": "2026-02-09T00:00:00Z"})

        assert [e.summary for e in events] == [
            "[lead] Milestone M1 completed",
            "[lead] Decision D1: SQLite with WAL mode",
            "[lead] Decision D2: Drop the legacy exporter",
            "[backend] Completed Scaffold",
        ]

    @pytest.mark.asyncio
    async def test_missing_comms(self, tmp_path: Path) -> None:
        assert await read_activity(tmp_path) == []


class TestMessages:

    def test_parse_message_defaults(self) -> None:
        message = parse_message({"from": "backend", "message": "ping", "urgency": "HIGH"}, MODIFIED)

        assert message.sender == "backend"
        assert message.to == "unknown"
        assert message.content == "ping"
        assert message.urgency == "normal"
        assert message.timestamp == "2026-02-11T09:30:00.000Z"

    def test_parse_message_full(self) -> None:
        message = parse_message(
            {
                "timestamp": "2026-02-11T09:00:00Z",
                "from": "lead",
                "to": "backend",
                "ticketId": "T03",
                "content": "Please rebase",
                "urgency": "high",
            },
            MODIFIED,
        )

        assert message.timestamp == "2026-02-11T09:00:00.000Z"
        assert message.ticket_id == "T03"
        assert message.urgency == "high"
        assert message.model_dump(by_alias=True)["from"] == "lead"

    @pytest.mark.asyncio
    async def test_read_messages(self, tmp_path: Path, write_json, write_text) -> None:
        write_json(tmp_path / "comms" / "inbox.json", [{"from": "a", "content": "hi"}, "junk"])
        write_json(tmp_path / "comms" / "status.json", {"not": "a list"})
        write_text(tmp_path / "comms" / "broken.json", "[")

        messages = await read_messages(tmp_path, MODIFIED)

        assert [(m.sender, m.content) for m in messages] == [("a", "hi")]
        assert messages[0].timestamp == "2026-02-11T09:30:00.000Z"
