"""
Routers Package
===============

Routers are like the reception desk - they direct incoming requests
to the right place.
"""

from .events import router as events_router, set_services, clear_services
from .dashboard import router as dashboard_router

__all__ = [
    "events_router",
    "dashboard_router",
    "set_services",
    "clear_services",
]
