"""
Custom Exception Classes for teamwatch
=======================================

A small hierarchy of exceptions that preserve context through the error
chain. Each exception carries:

1. An error category used for log classification
2. A context dictionary for debugging
3. The original error (also chained with ``raise ... from e``)

Only ``ArtifactRootMissingError`` ever reaches a published snapshot (as the
top-level ``error`` string). Everything else degrades to default values at
the boundary of the component that raised it.
"""

from enum import Enum
from typing import Any, Dict, Optional


class ErrorCategory(str, Enum):
    """Categories for error classification."""
    ROOT_MISSING = "root_missing"
    ARTIFACT_MALFORMED = "artifact_malformed"
    SCHEMA_AMBIGUOUS = "schema_ambiguous"
    TRANSIENT_IO = "transient_io"
    CONFIGURATION = "configuration"
    INTERNAL = "internal"


# =============================================================================
# Base Exception
# =============================================================================

class TeamWatchError(Exception):
    """
    Base exception class for all teamwatch errors.

    Usage:
        try:
            payload = json.loads(raw)
        except json.JSONDecodeError as e:
            raise ArtifactReadError(path=str(path), original_error=e) from e
    """

    def __init__(
        self,
        message: str,
        category: ErrorCategory = ErrorCategory.INTERNAL,
        context: Optional[Dict[str, Any]] = None,
        original_error: Optional[Exception] = None,
    ):
        self.message = message
        self.category = category
        self.context = context or {}
        self.original_error = original_error

        full_message = message
        if context:
            context_str = ", ".join(f"{k}={v}" for k, v in context.items())
            full_message = f"{message} [{context_str}]"

        super().__init__(full_message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to a dictionary for logs and API responses."""
        result: Dict[str, Any] = {
            "error": self.message,
            "category": self.category.value,
        }
        if self.context:
            result["context"] = self.context
        if self.original_error:
            result["original_error"] = str(self.original_error)
        return result


# =============================================================================
# Artifact Errors
# =============================================================================

class ArtifactRootMissingError(TeamWatchError):
    """Raised when the project's artifact root directory does not exist."""

    def __init__(self, root: str, message: Optional[str] = None):
        super().__init__(
            message=message or f"No {root} directory found",
            category=ErrorCategory.ROOT_MISSING,
            context={"root": root},
        )


class ArtifactReadError(TeamWatchError):
    """Raised when an individual artifact is absent, unreadable or not valid JSON."""

    def __init__(
        self,
        path: str,
        message: str = "Artifact unreadable",
        original_error: Optional[Exception] = None,
    ):
        super().__init__(
            message=message,
            category=ErrorCategory.ARTIFACT_MALFORMED,
            context={"path": path},
            original_error=original_error,
        )


class SchemaMismatchError(TeamWatchError):
    """Raised when a payload matches none of the known shapes for its artifact."""

    def __init__(
        self,
        artifact: str,
        detail: Optional[str] = None,
        original_error: Optional[Exception] = None,
    ):
        ctx: Dict[str, Any] = {"artifact": artifact}
        if detail:
            ctx["detail"] = detail
        super().__init__(
            message="Payload matches no known shape",
            category=ErrorCategory.SCHEMA_AMBIGUOUS,
            context=ctx,
            original_error=original_error,
        )


# =============================================================================
# Watcher Errors
# =============================================================================

class WatcherError(TeamWatchError):
    """Raised (and reported on the error channel) when a watch-triggered pass fails."""

    def __init__(
        self,
        trigger: str,
        original_error: Optional[Exception] = None,
    ):
        super().__init__(
            message="Snapshot re-assembly failed",
            category=ErrorCategory.TRANSIENT_IO,
            context={"trigger": trigger},
            original_error=original_error,
        )


# =============================================================================
# Configuration Errors
# =============================================================================

class ConfigurationError(TeamWatchError):
    """Raised when configuration is missing or invalid."""

    def __init__(
        self,
        message: str = "Configuration error",
        config_key: Optional[str] = None,
        original_error: Optional[Exception] = None,
    ):
        ctx: Dict[str, Any] = {}
        if config_key:
            ctx["config_key"] = config_key

        super().__init__(
            message=message,
            category=ErrorCategory.CONFIGURATION,
            context=ctx,
            original_error=original_error,
        )
