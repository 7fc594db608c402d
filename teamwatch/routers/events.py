"""
Events Router - Outbound snapshot stream.

Endpoints:
- GET /api/events - Server-Sent Events stream of snapshots
- GET /api/state  - Current snapshot as JSON
"""

import logging
from typing import AsyncGenerator

from fastapi import APIRouter, Depends
from fastapi.responses import Response, StreamingResponse

from teamwatch.models import Snapshot
from teamwatch.routers.shared import get_broadcaster
from teamwatch.services.broadcast import (
    BroadcastMessage,
    MessageKind,
    SnapshotBroadcaster,
    Subscription,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["events"])

SSE_HEADERS = {
    "Cache-Control": "no-cache, no-transform",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}

HEARTBEAT = ": heartbeat\n\n"


# =============================================================================
# SSE Helpers
# =============================================================================


def _format_sse(snapshot: Snapshot) -> str:
    """
    Format a snapshot for the wire.

    Follows the standard SSE format: ``data: {json}\\n\\n`` with camelCase keys.
    """
    return f"data: {snapshot.to_wire()}\n\n"


def format_message(message: BroadcastMessage) -> str:
    if message.kind == MessageKind.SNAPSHOT and message.snapshot is not None:
        return _format_sse(message.snapshot)
    return HEARTBEAT


async def stream_snapshots(subscription: Subscription) -> AsyncGenerator[str, None]:
    """
    Yield SSE frames for one subscriber until it is closed.

    The subscription is released when the client disconnects (the
    generator is cancelled) or the broadcaster stops.
    """
    try:
        async for message in subscription:
            yield format_message(message)
    finally:
        subscription.close()
        logger.debug("Event stream closed")


# =============================================================================
# Endpoints
# =============================================================================


@router.get("/events")
async def events(broadcaster: SnapshotBroadcaster = Depends(get_broadcaster)):
    """
    Stream snapshots as Server-Sent Events.

    The first frame is the current snapshot; every later snapshot follows,
    with a ``: heartbeat`` comment frame in quiet periods.
    """
    subscription = await broadcaster.subscribe()
    logger.info("Event stream opened (%d subscribers)", broadcaster.subscriber_count)
    return StreamingResponse(
        stream_snapshots(subscription),
        media_type="text/event-stream",
        headers=SSE_HEADERS,
    )


@router.get("/state")
async def state(broadcaster: SnapshotBroadcaster = Depends(get_broadcaster)):
    """Current snapshot, freshly assembled."""
    snapshot = await broadcaster.current_snapshot()
    return Response(content=snapshot.to_wire(), media_type="application/json")
