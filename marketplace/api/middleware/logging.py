"""
Request Logging Middleware
Tags every request with an id and logs it together with the search backend
that served it.
"""

import logging
import time
import uuid
from typing import Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

logger = logging.getLogger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"
# Set by the search endpoint
SEARCH_BACKEND_HEADER = "X-Search-Backend"


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """
    Middleware to log all HTTP requests and responses.

    The request id comes from the X-Request-ID header or is generated. It is
    stored on ``request.state.request_id`` for handlers and echoed in the
    response. Completed search requests are logged with the backend
    (elasticsearch or database) that answered them.
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        """Process request and log details."""
        request_id = request.headers.get(REQUEST_ID_HEADER) or str(uuid.uuid4())
        request.state.request_id = request_id
        start_time = time.time()

        logger.info(
            f"Request started: {request.method} {request.url.path}",
            extra={
                "request_id": request_id,
                "query": str(request.url.query) if request.url.query else None,
            },
        )

        try:
            response = await call_next(request)
        except Exception:
            duration_ms = (time.time() - start_time) * 1000
            logger.error(
                f"Request failed: {request.method} {request.url.path} after {duration_ms:.2f}ms",
                exc_info=True,
                extra={"request_id": request_id},
            )
            raise

        duration_ms = (time.time() - start_time) * 1000
        backend = response.headers.get(SEARCH_BACKEND_HEADER)
        served_by = f" via {backend}" if backend else ""
        logger.info(
            f"Request completed: {request.method} {request.url.path} "
            f"{response.status_code}{served_by} in {duration_ms:.2f}ms",
            extra={"request_id": request_id, "search_backend": backend},
        )

        response.headers[REQUEST_ID_HEADER] = request_id
        response.headers["X-Response-Time"] = f"{duration_ms:.2f}ms"
        return response
