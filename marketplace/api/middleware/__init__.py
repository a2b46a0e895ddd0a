"""
API Middleware
"""

from .logging import REQUEST_ID_HEADER, SEARCH_BACKEND_HEADER, RequestLoggingMiddleware

__all__ = ["REQUEST_ID_HEADER", "SEARCH_BACKEND_HEADER", "RequestLoggingMiddleware"]
