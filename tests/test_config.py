"""
Tests for teamwatch.config and the exception hierarchy.

Run: python -m pytest tests/test_config.py -v
"""

from pathlib import Path

import pytest

from teamwatch.config import WatchConfig, WatchMode
from teamwatch.exceptions import (
    ArtifactReadError,
    ArtifactRootMissingError,
    ConfigurationError,
    ErrorCategory,
)


class TestFromEnv:

    def test_defaults(self) -> None:
        config = WatchConfig.from_env(environ={})

        assert config.project_dir == Path.cwd()
        assert config.claude_home == Path.home() / ".claude"
        assert config.mode == WatchMode.AUTO
        assert config.use_mock_data is False
        assert config.debounce_seconds == 0.1
        assert config.reevaluate_seconds == 15.0
        assert config.keepalive_seconds == 15.0
        assert config.artifact_root == Path.cwd() / ".mamh"

    def test_overrides(self, tmp_path: Path) -> None:
        config = WatchConfig.from_env(
            environ={
                "TEAMWATCH_PROJECT_DIR": str(tmp_path),
                "CLAUDE_HOME": str(tmp_path / "home"),
                "USE_MOCK_DATA": "TRUE",
                "TEAMWATCH_MODE": "Sessions",
                "TEAMWATCH_ARTIFACT_DIR": ".team",
                "TEAMWATCH_DEBOUNCE_MS": "250",
                "TEAMWATCH_REEVAL_MS": "5000",
                "LOG_LEVEL": "debug",
            }
        )

        assert config.project_dir == tmp_path
        assert config.claude_home == tmp_path / "home"
        assert config.use_mock_data is True
        assert config.mode == WatchMode.SESSIONS
        assert config.artifact_root == tmp_path / ".team"
        assert config.debounce_seconds == 0.25
        assert config.reevaluate_seconds == 5.0
        assert config.log_level == "DEBUG"

    @pytest.mark.parametrize(
        "env,key",
        [
            ({"TEAMWATCH_DEBOUNCE_MS": "fast"}, "TEAMWATCH_DEBOUNCE_MS"),
            ({"TEAMWATCH_KEEPALIVE_MS": "0"}, "TEAMWATCH_KEEPALIVE_MS"),
            ({"TEAMWATCH_MODE": "cluster"}, "TEAMWATCH_MODE"),
        ],
    )
    def test_invalid_values(self, env, key: str) -> None:
        with pytest.raises(ConfigurationError) as exc_info:
            WatchConfig.from_env(environ=env)
        assert exc_info.value.context["config_key"] == key
        assert exc_info.value.category == ErrorCategory.CONFIGURATION

    def test_dotenv_file(self, tmp_path: Path, monkeypatch) -> None:
        # register the variable with monkeypatch so the value load_dotenv sets is undone
        monkeypatch.setenv("TEAMWATCH_ARTIFACT_DIR", "placeholder")
        monkeypatch.delenv("TEAMWATCH_ARTIFACT_DIR")
        env_file = tmp_path / ".env"
        env_file.write_text("TEAMWATCH_ARTIFACT_DIR=.from-dotenv\n")

        config = WatchConfig.from_env(dotenv_path=env_file)

        assert config.artifact_dir_name == ".from-dotenv"


class TestExceptions:

    def test_root_missing_message(self) -> None:
        error = ArtifactRootMissingError(root=".mamh")
        assert error.message == "No .mamh directory found"
        assert error.category == ErrorCategory.ROOT_MISSING
        assert str(error) == "No .mamh directory found [root=.mamh]"

    def test_to_dict_includes_original_error(self) -> None:
        error = ArtifactReadError(path="/x.json", original_error=ValueError("bad"))
        assert error.to_dict() == {
            "error": "Artifact unreadable",
            "category": "artifact_malformed",
            "context": {"path": "/x.json"},
            "original_error": "bad",
        }
