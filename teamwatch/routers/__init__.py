"""
FastAPI routers for the teamwatch HTTP surface.
"""

from teamwatch.routers.events import router as events_router
from teamwatch.routers.observability import router as observability_router

__all__ = [
    "events_router",
    "observability_router",
]
