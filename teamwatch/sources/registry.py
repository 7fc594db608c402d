"""
Agent Registry Normalizer
==========================

Reads ``<artifact root>/agents/registry.json`` in either known layout:

- ARRAY:  ``{"agents": [{"id": "a", "role": "Engineer", "modelTier": "sonnet"}]}``
- OBJECT: ``{"agents": {"a": {"role": "Engineer", "model": "opus"}}}``

The layout is detected once from the JSON type of ``agents``; an
unrecognized or invalid layout yields an empty agent list.
"""

import logging
from pathlib import Path
from typing import Any, List

from pydantic import ValidationError

from teamwatch.constants import AGENT_COLORS
from teamwatch.exceptions import ArtifactReadError, SchemaMismatchError
from teamwatch.models import AgentRecord, AgentStatus, ModelTier
from teamwatch.sources.files import load_json
from teamwatch.sources.schemas import ArrayRegistry, ObjectRegistry, RegistryShape

logger = logging.getLogger(__name__)


def assign_color(index: int) -> str:
    return AGENT_COLORS[index % len(AGENT_COLORS)]


def detect_registry_shape(payload: Any) -> RegistryShape:
    """Classify a decoded registry payload by the structure of its ``agents`` key."""
    if not isinstance(payload, dict):
        return RegistryShape.UNKNOWN
    agents = payload.get("agents")
    if isinstance(agents, list):
        return RegistryShape.ARRAY
    if isinstance(agents, dict):
        return RegistryShape.OBJECT
    return RegistryShape.UNKNOWN


def parse_registry(payload: Any) -> List[AgentRecord]:
    """
    Normalize a decoded registry payload into agent records.

    Raises:
        SchemaMismatchError: If the payload fits neither layout.
    """
    shape = detect_registry_shape(payload)
    try:
        if shape == RegistryShape.ARRAY:
            registry = ArrayRegistry.model_validate(payload)
            return [
                AgentRecord(
                    id=agent.id,
                    role=agent.role,
                    model_tier=ModelTier(agent.model_tier or "sonnet"),
                    status=AgentStatus.IDLE,
                    color=assign_color(i),
                    tickets_assigned=agent.tickets_assigned or 0,
                    tickets_completed=agent.tickets_completed or 0,
                )
                for i, agent in enumerate(registry.agents)
            ]
        if shape == RegistryShape.OBJECT:
            registry = ObjectRegistry.model_validate(payload)
            return [
                AgentRecord(
                    id=agent_id,
                    role=agent.role,
                    model_tier=ModelTier(agent.model or "sonnet"),
                    status=AgentStatus.IDLE,
                    color=assign_color(i),
                )
                for i, (agent_id, agent) in enumerate(registry.agents.items())
            ]
    except ValidationError as e:
        raise SchemaMismatchError(
            artifact="registry", detail=f"{shape.value} layout invalid", original_error=e
        ) from e
    raise SchemaMismatchError(artifact="registry", detail="agents is neither a list nor an object")


async def read_registry(artifact_root: Path) -> List[AgentRecord]:
    """Read the agent registry; any failure yields ``[]``."""
    path = artifact_root / "agents" / "registry.json"
    try:
        return parse_registry(await load_json(path))
    except (ArtifactReadError, SchemaMismatchError) as e:
        logger.debug("Registry unavailable: %s", e)
        return []
