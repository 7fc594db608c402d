"""
Runtime Configuration
======================

Read once per process from environment variables (optionally loaded from a
``.env`` file at the project root).

Environment variables:
    TEAMWATCH_PROJECT_DIR   -- Observed project directory (default: cwd)
    CLAUDE_HOME             -- Companion home with transcripts and stats cache
                               (default: ~/.claude)
    USE_MOCK_DATA           -- "true" serves a fixed demo snapshot
    TEAMWATCH_MODE          -- auto | team | sessions (default: auto)
    TEAMWATCH_ARTIFACT_DIR  -- Artifact root name inside the project (default: .mamh)
    TEAMWATCH_DEBOUNCE_MS   -- Watcher debounce window (default: 100)
    TEAMWATCH_REEVAL_MS     -- Periodic re-evaluation interval (default: 15000)
    TEAMWATCH_KEEPALIVE_MS  -- Stream keep-alive interval (default: 15000)
    LOG_LEVEL               -- Logging verbosity (default: INFO)
"""

import logging
import os
from enum import Enum
from pathlib import Path
from typing import Mapping, Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field

from teamwatch.constants import (
    DEFAULT_ARTIFACT_DIR,
    KEEPALIVE_SECONDS,
    PERIODIC_REEVAL_SECONDS,
    WATCHER_DEBOUNCE_SECONDS,
)
from teamwatch.exceptions import ConfigurationError

logger = logging.getLogger(__name__)

_TRUTHY = ("1", "true", "yes")


class WatchMode(str, Enum):
    """Which assembler drives the pipeline."""
    AUTO = "auto"
    TEAM = "team"
    SESSIONS = "sessions"


class WatchConfig(BaseModel):
    """Process-wide configuration for the state pipeline."""

    project_dir: Path = Field(default_factory=Path.cwd)
    claude_home: Path = Field(default_factory=lambda: Path.home() / ".claude")
    use_mock_data: bool = False
    mode: WatchMode = WatchMode.AUTO
    artifact_dir_name: str = DEFAULT_ARTIFACT_DIR
    debounce_seconds: float = Field(default=WATCHER_DEBOUNCE_SECONDS, gt=0.0)
    reevaluate_seconds: float = Field(default=PERIODIC_REEVAL_SECONDS, gt=0.0)
    keepalive_seconds: float = Field(default=KEEPALIVE_SECONDS, gt=0.0)
    log_level: str = "INFO"

    @property
    def artifact_root(self) -> Path:
        return self.project_dir / self.artifact_dir_name

    @classmethod
    def from_env(
        cls,
        environ: Optional[Mapping[str, str]] = None,
        dotenv_path: Optional[Path] = None,
    ) -> "WatchConfig":
        """
        Build a config from environment variables.

        Args:
            environ: Mapping to read instead of ``os.environ`` (tests).
            dotenv_path: Optional ``.env`` file loaded before reading.

        Raises:
            ConfigurationError: If a numeric or enum value cannot be parsed.
        """
        if environ is None:
            if dotenv_path is not None:
                load_dotenv(dotenv_path=dotenv_path, override=False)
            environ = os.environ

        def _millis(key: str, default_seconds: float) -> float:
            raw = environ.get(key)
            if raw is None or raw.strip() == "":
                return default_seconds
            try:
                value = float(raw) / 1000.0
            except ValueError as e:
                raise ConfigurationError(
                    f"Invalid millisecond value: {raw!r}", config_key=key, original_error=e
                ) from e
            if value <= 0:
                raise ConfigurationError(
                    f"Interval must be positive: {raw!r}", config_key=key
                )
            return value

        raw_mode = environ.get("TEAMWATCH_MODE", WatchMode.AUTO.value).strip().lower()
        try:
            mode = WatchMode(raw_mode)
        except ValueError as e:
            raise ConfigurationError(
                f"Unknown mode: {raw_mode!r}", config_key="TEAMWATCH_MODE", original_error=e
            ) from e

        project_dir = environ.get("TEAMWATCH_PROJECT_DIR")
        claude_home = environ.get("CLAUDE_HOME")

        config = cls(
            project_dir=Path(project_dir).expanduser() if project_dir else Path.cwd(),
            claude_home=(
                Path(claude_home).expanduser() if claude_home else Path.home() / ".claude"
            ),
            use_mock_data=environ.get("USE_MOCK_DATA", "false").strip().lower() in _TRUTHY,
            mode=mode,
            artifact_dir_name=environ.get("TEAMWATCH_ARTIFACT_DIR", DEFAULT_ARTIFACT_DIR),
            debounce_seconds=_millis("TEAMWATCH_DEBOUNCE_MS", WATCHER_DEBOUNCE_SECONDS),
            reevaluate_seconds=_millis("TEAMWATCH_REEVAL_MS", PERIODIC_REEVAL_SECONDS),
            keepalive_seconds=_millis("TEAMWATCH_KEEPALIVE_MS", KEEPALIVE_SECONDS),
            log_level=environ.get("LOG_LEVEL", "INFO").upper(),
        )
        logger.debug(
            "Config loaded: project=%s claude_home=%s mode=%s mock=%s",
            config.project_dir, config.claude_home, config.mode.value, config.use_mock_data,
        )
        return config
