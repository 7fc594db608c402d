"""
Shared fixtures for the teamwatch test suite.

Everything is built on real files under ``tmp_path``; nothing touches the
user's home directory.
"""

import json
import os
import time
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

import pytest


def _write_jsonl(path: Path, records: List[Dict[str, Any]]) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text("\n".join(json.dumps(r) for r in records) + "\n", encoding="utf-8")
    return path


def _age(path: Path, seconds_ago: float) -> Path:
    """Set both atime and mtime ``seconds_ago`` seconds in the past."""
    stamp = time.time() - seconds_ago
    os.utime(path, (stamp, stamp))
    return path


@pytest.fixture
def write_jsonl() -> Callable[[Path, List[Dict[str, Any]]], Path]:
    return _write_jsonl


@pytest.fixture
def age_file() -> Callable[[Path, float], Path]:
    return _age


@pytest.fixture
def write_json() -> Callable[[Path, Any], Path]:
    def _write(path: Path, payload: Any) -> Path:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps(payload), encoding="utf-8")
        return path

    return _write


@pytest.fixture
def write_text() -> Callable[[Path, str], Path]:
    def _write(path: Path, content: str) -> Path:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8")
        return path

    return _write


@pytest.fixture
def project_dir(tmp_path: Path) -> Path:
    path = tmp_path / "work" / "demo-project"
    path.mkdir(parents=True)
    return path


@pytest.fixture
def claude_home(tmp_path: Path) -> Path:
    path = tmp_path / "claude-home"
    path.mkdir()
    return path


def user_prompt(text: str, agent_id: Optional[str] = None, session_id: str = "sess-1") -> Dict[str, Any]:
    record: Dict[str, Any] = {
        "sessionId": session_id,
        "message": {"role": "user", "content": text},
    }
    if agent_id:
        record["agentId"] = agent_id
    return record


def assistant_reply(content: List[Dict[str, Any]], model: str = "claude-sonnet-4") -> Dict[str, Any]:
    return {"message": {"role": "assistant", "model": model, "content": content}}


@pytest.fixture
def make_user_prompt() -> Callable[..., Dict[str, Any]]:
    return user_prompt


@pytest.fixture
def make_assistant_reply() -> Callable[..., Dict[str, Any]]:
    return assistant_reply
