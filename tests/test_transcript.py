"""
Tests for transcript head/tail reading and prompt field extraction.

Run: python -m pytest tests/test_transcript.py -v
"""

import json
import re
from pathlib import Path

import pytest

from teamwatch.sessions.extraction import (
    GENERIC_TASK,
    TICKET_HEADING,
    TaskPattern,
    extract_identity,
    extract_task,
)
from teamwatch.sessions.transcript import (
    describe_tool_use,
    read_last_action,
    read_transcript_head,
)


# =============================================================================
# Extraction
# =============================================================================

class TestExtractIdentity:

    def test_plain_name_with_article(self) -> None:
        text = "You are backend-engineer, a Python API specialist for the export service."
        assert extract_identity(text) == ("backend-engineer", "Python API specialist")

    def test_bold_name(self) -> None:
        text = "You are **mamh-data-engineer**, an ETL agent working on pipelines."
        assert extract_identity(text) == ("mamh-data-engineer", "ETL")

    def test_specializing_terminator(self) -> None:
        text = "You are reviewer, senior reviewer specializing in security."
        assert extract_identity(text) == ("reviewer", "senior reviewer")

    def test_no_identity(self) -> None:
        assert extract_identity("Please fix the failing build") is None
        assert extract_identity("") is None


class TestExtractTask:

    def test_ticket_heading_wins(self) -> None:
        text = "Task: something generic enough\n## Ticket M4-T02: Build the exporter\n"
        assert extract_task(text) == "M4-T02: Build the exporter"

    def test_generic_task_first_line(self) -> None:
        text = "Context first.\nGoal: migrate the settings store\nmore detail here"
        assert extract_task(text) == "migrate the settings store"

    def test_generic_task_too_short(self) -> None:
        assert extract_task("Task: tiny") is None

    def test_custom_chain_is_used_in_order(self) -> None:
        story = TaskPattern(
            name="story",
            pattern=re.compile(r"Story\s+(\d+)"),
            render=lambda m: f"story {m.group(1)}",
        )
        text = "Story 42\n## Ticket T1: Old convention"
        assert extract_task(text, (story, TICKET_HEADING)) == "story 42"
        assert extract_task(text, (TICKET_HEADING, story)) == "T1: Old convention"

    def test_description_keyword(self) -> None:
        assert GENERIC_TASK.extract("Description: rebuild index nightly") == "rebuild index nightly"


# =============================================================================
# Tool descriptions
# =============================================================================

class TestDescribeToolUse:

    def test_file_path_keeps_last_two_segments(self) -> None:
        block = {"name": "Edit", "input": {"file_path": "/repo/src/data/pipeline.py"}}
        assert describe_tool_use(block) == "Edit data/pipeline.py"

    def test_command_first_line(self) -> None:
        block = {"name": "Bash", "input": {"command": "pytest tests/\necho done"}}
        assert describe_tool_use(block) == "Bash: pytest tests/"

    def test_command_truncated(self) -> None:
        block = {"name": "Bash", "input": {"command": "x" * 200}}
        assert describe_tool_use(block) == "Bash: " + "x" * 80

    def test_pattern_and_query(self) -> None:
        assert describe_tool_use({"name": "Grep", "input": {"pattern": "TODO"}}) == "Grep: TODO"
        assert describe_tool_use({"name": "WebSearch", "input": {"query": "asyncio"}}) == "WebSearch: asyncio"

    def test_bare_tool_name(self) -> None:
        assert describe_tool_use({"name": "TodoWrite", "input": {}}) == "TodoWrite"


# =============================================================================
# Head / tail reads
# =============================================================================

class TestReadTranscriptHead:

    @pytest.mark.asyncio
    async def test_reads_identity_task_and_model(
        self, tmp_path: Path, write_jsonl, make_user_prompt, make_assistant_reply
    ) -> None:
        path = write_jsonl(
            tmp_path / "agent-a1.jsonl",
            [
                make_user_prompt(
                    "You are backend-engineer, a Python specialist for exports.\n"
                    "## Ticket T03: Wire the exporter",
                    agent_id="a1d8cc3",
                ),
                make_assistant_reply([{"type": "text", "text": "On it"}], model="claude-opus-4"),
            ],
        )

        head = await read_transcript_head(path)

        assert head.session_id == "sess-1"
        assert head.agent_id == "a1d8cc3"
        assert head.agent_name == "backend-engineer"
        assert head.role == "Python specialist"
        assert head.current_task == "T03: Wire the exporter"
        assert head.model == "claude-opus-4"

    @pytest.mark.asyncio
    async def test_malformed_lines_are_skipped(self, tmp_path: Path, make_user_prompt) -> None:
        path = tmp_path / "agent-b.jsonl"
        path.write_text(
            "{not json\n" + json.dumps(make_user_prompt("Task: review the cache layer", agent_id="b2")) + "\n",
            encoding="utf-8",
        )

        head = await read_transcript_head(path)

        assert head.agent_id == "b2"
        assert head.current_task == "review the cache layer"
        assert head.agent_name is None

    @pytest.mark.asyncio
    async def test_missing_file_yields_empty_head(self, tmp_path: Path) -> None:
        head = await read_transcript_head(tmp_path / "nope.jsonl")
        assert head.agent_id is None
        assert head.current_task is None


class TestReadLastAction:

    @pytest.mark.asyncio
    async def test_most_recent_tool_use(self, tmp_path: Path, write_jsonl, make_assistant_reply) -> None:
        path = write_jsonl(
            tmp_path / "t.jsonl",
            [
                make_assistant_reply([{"type": "tool_use", "name": "Read", "input": {"file_path": "/a/b/old.py"}}]),
                make_assistant_reply([{"type": "tool_use", "name": "Bash", "input": {"command": "make test"}}]),
            ],
        )
        assert await read_last_action(path) == "Bash: make test"

    @pytest.mark.asyncio
    async def test_falls_back_to_assistant_text(self, tmp_path: Path, write_jsonl, make_assistant_reply) -> None:
        path = write_jsonl(
            tmp_path / "t.jsonl",
            [make_assistant_reply([{"type": "text", "text": "Refactoring the loader now\nsecond line"}])],
        )
        assert await read_last_action(path) == "Refactoring the loader now"

    @pytest.mark.asyncio
    async def test_short_text_is_ignored(self, tmp_path: Path, write_jsonl, make_assistant_reply) -> None:
        path = write_jsonl(tmp_path / "t.jsonl", [make_assistant_reply([{"type": "text", "text": "ok"}])])
        assert await read_last_action(path) is None

    @pytest.mark.asyncio
    async def test_only_reads_the_tail(self, tmp_path: Path, write_jsonl, make_assistant_reply) -> None:
        early = make_assistant_reply([{"type": "tool_use", "name": "Grep", "input": {"pattern": "early"}}])
        filler = make_assistant_reply([{"type": "text", "text": "x"}])
        filler["padding"] = "p" * 20_000
        path = write_jsonl(tmp_path / "t.jsonl", [early, filler])

        assert await read_last_action(path) is None
