"""
Admin Endpoints
POST /api/v1/admin/search/rebuild - Manually trigger a search index rebuild
"""

import logging

from fastapi import APIRouter, status
from pydantic import BaseModel, Field

from ..errors import SearchError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/admin", tags=["admin"])


class RebuildIndexRequest(BaseModel):
    clear: bool = Field(
        default=False, description="Replace the index even when no extension is active"
    )


class RebuildIndexResponse(BaseModel):
    task_id: str = Field(..., description="Celery task ID")
    status: str = Field(default="queued", description="Task status")
    message: str = Field(..., description="Success message")


@router.post(
    "/search/rebuild", response_model=RebuildIndexResponse, status_code=status.HTTP_202_ACCEPTED
)
def rebuild_search_index(request: RebuildIndexRequest) -> RebuildIndexResponse:
    """
    Manually trigger a search index rebuild.

    The rebuild runs in a worker; returns immediately with the task ID.
    """
    try:
        from ...tasks.search import rebuild_search_index as rebuild_task

        result = rebuild_task.delay(clear=request.clear)
    except Exception as e:
        logger.error(f"Failed to trigger search index rebuild: {e}", exc_info=True)
        raise SearchError(f"Failed to trigger index rebuild: {e}") from e

    logger.info(f"Search index rebuild triggered: task_id={result.id}, clear={request.clear}")

    return RebuildIndexResponse(
        task_id=result.id,
        status="queued",
        message="Search index rebuild queued" + (" (clear)" if request.clear else ""),
    )
