"""
Dependency Injection
FastAPI dependencies for services and configurations.
"""

import uuid
from typing import Optional

from fastapi import Header, Request

from ..search import SearchService, get_search_service


def get_search() -> SearchService:
    """
    Get search service instance.

    Use as FastAPI dependency:
        @app.get("/search")
        def search(service: SearchService = Depends(get_search)):
            ...
    """
    return get_search_service()


def get_request_id(request: Request, x_request_id: Optional[str] = Header(None)) -> str:
    """Request ID assigned by the logging middleware, else the header, else a new one."""
    return getattr(request.state, "request_id", None) or x_request_id or str(uuid.uuid4())
