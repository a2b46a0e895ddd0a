"""
Health Check Endpoints
"""

import logging
from typing import Any, Dict

from fastapi import APIRouter, Depends, status

from ...search import SearchService
from ...search.models import utc_now
from ..config import APISettings, get_api_settings
from ..dependencies import get_search

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])


@router.get("/health", status_code=status.HTTP_200_OK)
def health_check(
    search_service: SearchService = Depends(get_search),
    settings: APISettings = Depends(get_api_settings),
) -> Dict[str, Any]:
    """
    Health check with search backend status.

    Reports "degraded" when the engine index is missing or unreachable.
    """
    search_stats = search_service.get_stats()

    health = "healthy"
    if search_stats.get("backend") == "elasticsearch" and not search_stats.get("exists"):
        health = "degraded"

    return {
        "status": health,
        "version": settings.version,
        "timestamp": utc_now().isoformat(),
        "search": search_stats,
    }
