"""
Transcript Reader
==================

Reads line-delimited JSON transcripts written by worker-agent sessions
without loading whole files:

- ``read_transcript_head`` looks at the first 8 KiB for identity, model,
  role and task metadata.
- ``read_last_action`` looks at the last 16 KiB for the most recent tool
  invocation (or assistant remark).

Record shape (each line)::

    {"sessionId": "...", "agentId": "...",
     "message": {"role": "user|assistant", "model": "...",
                 "content": "text" | [{"type": "text", "text": "..."},
                                      {"type": "tool_use", "name": "Edit",
                                       "input": {"file_path": "..."}}]}}

Any unreadable file or malformed line yields an empty result for that file
or line only.
"""

import asyncio
import json
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional, Union

from teamwatch.constants import (
    ACTION_MAX_CHARS,
    HEAD_MAX_RECORDS,
    HEAD_READ_BYTES,
    TAIL_READ_BYTES,
    TEXT_ACTION_MAX_CHARS,
    TEXT_ACTION_MIN_CHARS,
)
from teamwatch.sessions.extraction import extract_identity, extract_task

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]


@dataclass(frozen=True)
class TranscriptHead:
    """Metadata pulled from the first records of a transcript."""
    session_id: Optional[str] = None
    agent_id: Optional[str] = None
    agent_name: Optional[str] = None
    model: Optional[str] = None
    role: Optional[str] = None
    current_task: Optional[str] = None


# =============================================================================
# Record helpers
# =============================================================================


def _parse_records(lines: List[str]) -> Iterator[Dict[str, Any]]:
    """Yield JSON objects from ``lines``, skipping blank and malformed ones."""
    for line in lines:
        line = line.strip()
        if not line:
            continue
        try:
            record = json.loads(line)
        except json.JSONDecodeError:
            continue
        if isinstance(record, dict):
            yield record


def _message_of(record: Dict[str, Any]) -> Dict[str, Any]:
    message = record.get("message")
    return message if isinstance(message, dict) else {}


def _prompt_text(content: Any) -> str:
    """Text of a user prompt: the string itself or the first block's text."""
    if isinstance(content, str):
        return content
    if isinstance(content, list) and content:
        first = content[0]
        if isinstance(first, dict) and isinstance(first.get("text"), str):
            return first["text"]
    return ""


def _one_line(text: str, limit: int) -> str:
    return text.strip().split("\n")[0][:limit].strip()


def describe_tool_use(block: Dict[str, Any]) -> str:
    """
    Short description of a ``tool_use`` block from its most salient argument.

    Examples: ``Edit data/pipeline.py``, ``Bash: pytest tests/``,
    ``Grep: TODO``, ``WebSearch: asyncio debounce``.
    """
    tool = block.get("name") or "unknown"
    inp = block.get("input") if isinstance(block.get("input"), dict) else {}

    file_path = inp.get("file_path")
    if isinstance(file_path, str) and file_path:
        short = "/".join(file_path.split("/")[-2:])
        return _one_line(f"{tool} {short}", ACTION_MAX_CHARS)
    command = inp.get("command")
    if isinstance(command, str) and command:
        return f"{tool}: {_one_line(command, ACTION_MAX_CHARS)}"
    for key in ("pattern", "query"):
        value = inp.get(key)
        if isinstance(value, str) and value:
            return f"{tool}: {_one_line(value, ACTION_MAX_CHARS)}"
    return tool


# =============================================================================
# Head read
# =============================================================================


def _read_head_sync(path: Path) -> TranscriptHead:
    try:
        with open(path, "rb") as fh:
            chunk = fh.read(HEAD_READ_BYTES)
    except OSError as e:
        logger.debug("Transcript head unreadable %s: %s", path, e)
        return TranscriptHead()

    lines = chunk.decode("utf-8", errors="replace").split("\n")[:HEAD_MAX_RECORDS]
    fields: Dict[str, Optional[str]] = {
        "session_id": None,
        "agent_id": None,
        "agent_name": None,
        "model": None,
        "role": None,
        "current_task": None,
    }

    for record in _parse_records(lines):
        message = _message_of(record)
        if record.get("agentId") and not fields["agent_id"]:
            fields["agent_id"] = str(record["agentId"])
        if record.get("sessionId") and not fields["session_id"]:
            fields["session_id"] = str(record["sessionId"])
        if message.get("model") and not fields["model"]:
            fields["model"] = str(message["model"])

        if message.get("role") == "user" and not fields["role"]:
            text = _prompt_text(message.get("content"))
            identity = extract_identity(text)
            if identity:
                name, role = identity
                if not fields["agent_name"]:
                    fields["agent_name"] = name
                fields["role"] = role
            if not fields["current_task"]:
                fields["current_task"] = extract_task(text)

    return TranscriptHead(**fields)


async def read_transcript_head(path: PathLike) -> TranscriptHead:
    """Read identity/model/role/task metadata from the head of a transcript."""
    return await asyncio.to_thread(_read_head_sync, Path(path))


# =============================================================================
# Tail read
# =============================================================================


def _action_from_record(record: Dict[str, Any]) -> Optional[str]:
    message = _message_of(record)
    content = message.get("content")
    if not isinstance(content, list):
        return None

    for block in content:
        if isinstance(block, dict) and block.get("type") == "tool_use":
            return describe_tool_use(block)

    if message.get("role") == "assistant":
        for block in content:
            if not isinstance(block, dict) or block.get("type") != "text":
                continue
            text = block.get("text")
            if isinstance(text, str) and len(text) > TEXT_ACTION_MIN_CHARS:
                first_line = _one_line(text, TEXT_ACTION_MAX_CHARS)
                if first_line:
                    return first_line
    return None


def _read_tail_sync(path: Path) -> Optional[str]:
    try:
        with open(path, "rb") as fh:
            size = os.fstat(fh.fileno()).st_size
            tail_size = min(TAIL_READ_BYTES, size)
            fh.seek(max(0, size - tail_size))
            chunk = fh.read(tail_size)
    except OSError as e:
        logger.debug("Transcript tail unreadable %s: %s", path, e)
        return None

    lines = chunk.decode("utf-8", errors="replace").split("\n")
    for record in _parse_records(list(reversed(lines))):
        action = _action_from_record(record)
        if action:
            return action
    return None


async def read_last_action(path: PathLike) -> Optional[str]:
    """Describe the most recent action recorded at the tail of a transcript."""
    return await asyncio.to_thread(_read_tail_sync, Path(path))
