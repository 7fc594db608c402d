"""
Observability Router - Health and service information.

Endpoints:
- GET /       - Root endpoint
- GET /health - Pipeline health check
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from teamwatch.config import WatchConfig
from teamwatch.routers.shared import get_broadcaster, get_config
from teamwatch.services.broadcast import SnapshotBroadcaster
from teamwatch.services.demo import StaticSnapshotSource

logger = logging.getLogger(__name__)


# =============================================================================
# Response Models
# =============================================================================

class HealthResponse(BaseModel):
    """Health check response."""
    status: str
    mode: str
    assembler: str
    subscribers: int
    project_dir: Optional[str] = None


# =============================================================================
# Router Setup
# =============================================================================

router = APIRouter(tags=["observability"])


@router.get("/")
async def root():
    """Root endpoint - API information."""
    return {
        "name": "teamwatch",
        "status": "running",
        "endpoints": {
            "GET /api/events": "Server-Sent Events stream of team snapshots",
            "GET /api/state": "Current team snapshot",
            "GET /health": "Pipeline health check",
        },
    }


@router.get("/health", response_model=HealthResponse)
async def health(
    broadcaster: SnapshotBroadcaster = Depends(get_broadcaster),
    config: Optional[WatchConfig] = Depends(get_config),
) -> HealthResponse:
    """Report which source feeds the stream and how many subscribers are attached."""
    source = broadcaster.source
    return HealthResponse(
        status="ok" if broadcaster.started else "idle",
        mode="mock" if isinstance(source, StaticSnapshotSource) else "live",
        assembler=source.name,
        subscribers=broadcaster.subscriber_count,
        project_dir=str(config.project_dir) if config else None,
    )
