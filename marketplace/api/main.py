"""
FastAPI Main Application
Entry point for the Marketplace Search API.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from ..config import SearchConfigurationError
from ..search import SearchIndexError, get_search_service
from .config import get_api_settings
from .errors import setup_error_handlers
from .middleware import RequestLoggingMiddleware
from .routers import admin_router, health_router, search_router

# Configure logging
logging.basicConfig(
    level=get_api_settings().log_level.upper(),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan handler.

    Prepares the search index on startup. A contradictory search
    configuration aborts startup; an unreachable engine only degrades it.
    """
    logger.info("Starting Marketplace Search API...")

    try:
        get_search_service().initialize()
    except SearchConfigurationError:
        logger.critical("Invalid search configuration, refusing to start", exc_info=True)
        raise
    except SearchIndexError as e:
        logger.error(f"Failed to initialize search index: {e}")
        logger.warning("Search requests will fail until the engine is reachable")

    logger.info("Marketplace Search API started successfully")

    yield

    logger.info("Shutting down Marketplace Search API...")


def create_app() -> FastAPI:
    """
    Create and configure FastAPI application.

    Returns:
        Configured FastAPI application instance
    """
    settings = get_api_settings()

    app = FastAPI(
        title=settings.app_name,
        description=settings.description,
        version=settings.version,
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
    )

    # Set up CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=settings.cors_allow_credentials,
        allow_methods=settings.cors_allow_methods,
        allow_headers=settings.cors_allow_headers,
    )

    app.add_middleware(RequestLoggingMiddleware)

    setup_error_handlers(app)

    app.include_router(health_router)
    app.include_router(search_router)
    app.include_router(admin_router)

    return app


# Create app instance
app = create_app()


if __name__ == "__main__":
    import uvicorn

    settings = get_api_settings()

    uvicorn.run(
        "marketplace.api.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.reload,
        log_level=settings.log_level.lower(),
    )
