"""
Shared dependencies for FastAPI routers.

The running pipeline lives on ``app.state``:
- ``app.state.broadcaster``: the process-wide ``SnapshotBroadcaster``
- ``app.state.config``: the ``WatchConfig`` it was built from
"""

import logging
from typing import Optional

from fastapi import HTTPException, Request

from teamwatch.config import WatchConfig
from teamwatch.services.broadcast import SnapshotBroadcaster

logger = logging.getLogger(__name__)


async def get_broadcaster(request: Request) -> SnapshotBroadcaster:
    """
    Resolve the broadcaster attached at startup.

    Raises:
        HTTPException: 503 if the pipeline has not been started yet
    """
    broadcaster: Optional[SnapshotBroadcaster] = getattr(
        request.app.state, "broadcaster", None
    )
    if broadcaster is None:
        logger.error("Request received before the snapshot pipeline was started")
        raise HTTPException(status_code=503, detail="Snapshot pipeline not started")
    return broadcaster


async def get_config(request: Request) -> Optional[WatchConfig]:
    return getattr(request.app.state, "config", None)
