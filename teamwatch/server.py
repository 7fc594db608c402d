"""
FastAPI Server - teamwatch

Exposes the team-state pipeline over HTTP: a Server-Sent Events stream of
snapshots, the current snapshot as JSON, and a health check.

Run with:
    python run_server.py

Or with uvicorn:
    uvicorn teamwatch.server:app --host 0.0.0.0 --port 8001

The server respects both PORT and API_PORT environment variables.
"""

import logging
import os

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from teamwatch.config import WatchConfig
from teamwatch.routers import events_router, observability_router
from teamwatch.services.assembler import select_assembler
from teamwatch.services.broadcast import SnapshotBroadcaster
from teamwatch.services.demo import StaticSnapshotSource
from teamwatch.services.watcher import SnapshotWatcher

# Configure logging
logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


def build_broadcaster(config: WatchConfig) -> SnapshotBroadcaster:
    """Wire source -> broadcaster for ``config`` (demo source when mocking)."""
    if config.use_mock_data:
        source = StaticSnapshotSource()
    else:
        source = SnapshotWatcher(
            select_assembler(config),
            debounce_seconds=config.debounce_seconds,
            reevaluate_seconds=config.reevaluate_seconds,
        )
    return SnapshotBroadcaster(source, keepalive_seconds=config.keepalive_seconds)


# =============================================================================
# FastAPI App
# =============================================================================

app = FastAPI(
    title="teamwatch",
    description="Live state snapshots of an AI agent team, inferred from on-disk artifacts",
    version="0.1.0",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        "http://localhost:3000",
        "http://localhost:3001",
    ],
    allow_credentials=True,
    allow_methods=["GET"],
    allow_headers=["*"],
)

app.include_router(events_router)
app.include_router(observability_router)


@app.on_event("startup")
async def startup_event():
    """Build the pipeline from the environment; the watcher starts with the first subscriber."""
    config = WatchConfig.from_env()
    app.state.config = config
    app.state.broadcaster = build_broadcaster(config)

    logger.info("=" * 60)
    logger.info("teamwatch starting")
    logger.info("Project: %s", config.project_dir)
    logger.info("Companion home: %s", config.claude_home)
    logger.info("Source: %s", app.state.broadcaster.source.name)
    logger.info("=" * 60)


@app.on_event("shutdown")
async def shutdown_event():
    """Stop the watcher and close every open stream."""
    broadcaster = getattr(app.state, "broadcaster", None)
    if broadcaster is not None:
        await broadcaster.stop()
    logger.info("teamwatch shut down")
