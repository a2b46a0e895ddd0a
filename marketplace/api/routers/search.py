"""
Search Endpoint
GET /api/v1/search - Extension search with relevance ranking.
"""

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, Response, status
from pydantic import BaseModel, Field

from ...search import PageRequest, QueryOptions, SearchService
from ..config import APISettings, get_api_settings
from ..dependencies import get_request_id, get_search
from ..errors import InvalidRequestError
from ..middleware.logging import SEARCH_BACKEND_HEADER

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1", tags=["search"])


class SearchResponse(BaseModel):
    """
    Search response model.

    Carries extension ids only; callers load the records themselves.
    """

    extension_ids: List[int] = Field(..., description="Matching extension ids, in result order")
    total_count: int = Field(..., description="Total number of matches")
    offset: int = Field(..., description="Results offset")
    size: int = Field(..., description="Page size")

    class Config:
        json_schema_extra = {
            "example": {
                "extension_ids": [42, 7, 19],
                "total_count": 3,
                "offset": 0,
                "size": 20,
            }
        }


@router.get("/search", response_model=SearchResponse, status_code=status.HTTP_200_OK)
def search(
    response: Response,
    query: Optional[str] = Query(None, max_length=500, description="Search query text"),
    category: Optional[str] = Query(None, description="Exact category filter"),
    size: Optional[int] = Query(None, ge=1, description="Maximum number of results to return"),
    offset: int = Query(0, ge=0, description="Number of results to skip"),
    sort_order: str = Query("desc", alias="sortOrder", description="'asc' or 'desc'"),
    sort_by: str = Query(
        "relevance",
        alias="sortBy",
        description="'relevance', 'timestamp', 'averageRating' or 'downloadCount'",
    ),
    include_all_versions: bool = Query(False, alias="includeAllVersions"),
    search_service: SearchService = Depends(get_search),
    settings: APISettings = Depends(get_api_settings),
    request_id: str = Depends(get_request_id),
) -> SearchResponse:
    """
    Search for extensions.

    Results are served by whole pages: the offset is rounded down to a
    multiple of size, and the response reports the offset actually used.
    Invalid sortOrder/sortBy values are rejected with 400.
    """
    size = size or settings.default_page_size
    if size > settings.max_page_size:
        raise InvalidRequestError(
            f"size must not exceed {settings.max_page_size}", details={"size": size}
        )

    logger.info(
        f"Search request: query='{query}', category='{category}'",
        extra={"request_id": request_id},
    )

    options = QueryOptions(
        query_string=query,
        category=category,
        requested_size=size,
        requested_offset=offset,
        sort_order=sort_order,
        sort_by=sort_by,
        include_all_versions=include_all_versions,
    )
    page = PageRequest.from_options(options)
    result = search_service.search(options, page)

    response.headers[SEARCH_BACKEND_HEADER] = (
        "elasticsearch" if search_service.is_enabled() else "database"
    )
    return SearchResponse(
        extension_ids=result.extension_ids,
        total_count=result.total_count,
        offset=page.offset,
        size=page.page_size,
    )
