"""
API Routers
FastAPI route handlers for different endpoints.
"""

from .admin import router as admin_router
from .health import router as health_router
from .search import router as search_router

__all__ = [
    "health_router",
    "search_router",
    "admin_router",
]
