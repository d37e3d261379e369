"""API routers for the Docsmith application.

This module exports all API routers for inclusion in the main FastAPI app.
"""

from .events import router as events_router
from .health import router as health_router

__all__ = [
    "events_router",
    "health_router",
]
