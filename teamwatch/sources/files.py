"""
Safe async file helpers shared by the source normalizers.

The ``*_safe`` helpers never raise: a missing or unreadable artifact becomes
``None`` (or an empty list). ``load_json`` is the strict variant used inside
normalizers that want to tell "absent" from "malformed" in their logs.
"""

import asyncio
import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, List, Optional

from teamwatch.exceptions import ArtifactReadError

logger = logging.getLogger(__name__)


def _read_text(path: Path) -> str:
    return path.read_text(encoding="utf-8")


async def read_text_safe(path: Path) -> Optional[str]:
    try:
        return await asyncio.to_thread(_read_text, path)
    except (OSError, UnicodeDecodeError) as e:
        logger.debug("Unreadable artifact %s: %s", path, e)
        return None


async def load_json(path: Path) -> Any:
    """
    Read and decode a JSON artifact.

    Raises:
        ArtifactReadError: If the file is missing, unreadable or not valid JSON.
    """
    try:
        raw = await asyncio.to_thread(_read_text, path)
    except (OSError, UnicodeDecodeError) as e:
        raise ArtifactReadError(path=str(path), original_error=e) from e
    try:
        return json.loads(raw)
    except json.JSONDecodeError as e:
        raise ArtifactReadError(
            path=str(path), message="Artifact is not valid JSON", original_error=e
        ) from e


async def read_json_safe(path: Path) -> Optional[Any]:
    try:
        return await load_json(path)
    except ArtifactReadError as e:
        logger.debug("%s", e)
        return None


def _mtime(path: Path) -> datetime:
    return datetime.fromtimestamp(path.stat().st_mtime, tz=timezone.utc)


async def stat_mtime_safe(path: Path) -> Optional[datetime]:
    """Modification time as an aware UTC datetime, or None."""
    try:
        return await asyncio.to_thread(_mtime, path)
    except OSError:
        return None


def _list_dir(path: Path) -> List[Path]:
    return sorted(path.iterdir())


async def list_dir_safe(path: Path) -> List[Path]:
    """Sorted directory entries, or ``[]`` when the directory is absent."""
    try:
        return await asyncio.to_thread(_list_dir, path)
    except OSError:
        return []


async def path_exists(path: Path) -> bool:
    return await asyncio.to_thread(path.exists)


async def is_dir(path: Path) -> bool:
    return await asyncio.to_thread(path.is_dir)
