"""
Error Handlers
Custom exception handlers for FastAPI.
"""

import logging

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from ..search import InvalidSearchOptionsError, SearchIndexError

logger = logging.getLogger(__name__)


class APIError(Exception):
    """Base exception for API errors."""

    def __init__(
        self,
        message: str,
        status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR,
        details: dict = None,
    ):
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        super().__init__(self.message)


class SearchError(APIError):
    """Exception raised for search errors."""

    def __init__(self, message: str, details: dict = None):
        super().__init__(
            message=message, status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, details=details
        )


class InvalidRequestError(APIError):
    """Exception raised for invalid requests."""

    def __init__(self, message: str, details: dict = None):
        super().__init__(message=message, status_code=status.HTTP_400_BAD_REQUEST, details=details)


def _error_response(status_code: int, message: str, error_type: str, details=None) -> JSONResponse:
    content = {"error": {"message": message, "type": error_type}}
    if details is not None:
        content["error"]["details"] = details
    return JSONResponse(status_code=status_code, content=content)


def setup_error_handlers(app: FastAPI) -> None:
    """
    Set up custom error handlers for the FastAPI app.

    Args:
        app: FastAPI application instance
    """

    @app.exception_handler(APIError)
    async def api_error_handler(request: Request, exc: APIError):
        """Handle custom API errors."""
        logger.error(
            f"API error: {exc.message}",
            extra={
                "status_code": exc.status_code,
                "details": exc.details,
                "path": request.url.path,
            },
        )
        return _error_response(exc.status_code, exc.message, exc.__class__.__name__, exc.details)

    @app.exception_handler(InvalidSearchOptionsError)
    async def invalid_options_handler(request: Request, exc: InvalidSearchOptionsError):
        """Handle rejected search options."""
        logger.warning(f"Invalid search options: {exc}", extra={"path": request.url.path})
        return _error_response(status.HTTP_400_BAD_REQUEST, str(exc), "InvalidRequestError")

    @app.exception_handler(SearchIndexError)
    async def search_index_error_handler(request: Request, exc: SearchIndexError):
        """Handle search engine failures."""
        logger.error(f"Search engine error: {exc}", extra={"path": request.url.path})
        return _error_response(
            status.HTTP_503_SERVICE_UNAVAILABLE, "Search is temporarily unavailable", "SearchError"
        )

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        """Handle request validation errors."""
        logger.warning(f"Validation error: {exc}", extra={"path": request.url.path})

        # Convert error details to JSON-serializable format
        errors = []
        for error in exc.errors():
            errors.append(
                {
                    "loc": error.get("loc", []),
                    "msg": str(error.get("msg", "")),
                    "type": error.get("type", ""),
                }
            )

        return _error_response(
            status.HTTP_422_UNPROCESSABLE_ENTITY,
            "Request validation failed",
            "ValidationError",
            errors,
        )

    @app.exception_handler(ValueError)
    async def value_error_handler(request: Request, exc: ValueError):
        """Handle value errors."""
        logger.warning(f"Value error: {exc}", extra={"path": request.url.path})
        return _error_response(status.HTTP_400_BAD_REQUEST, str(exc), "ValueError")
