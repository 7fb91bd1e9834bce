"""
API v1 Routers

Version 1 of the Heat Logger API.
"""

from api.v1.heating import router as heating_router
from api.v1.history import router as history_router
from api.v1.health import router as health_router

__all__ = ["heating_router", "history_router", "health_router"]
