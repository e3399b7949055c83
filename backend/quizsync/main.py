"""FastAPI application factory and main entry point."""

from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from prometheus_client import make_asgi_app
from sqlalchemy.exc import SQLAlchemyError
from starlette.exceptions import HTTPException as StarletteHTTPException

from quizsync.api.v1.router import api_router
from quizsync.common.request_id import RequestIDMiddleware
from quizsync.core.config import settings
from quizsync.core.errors import (
    general_exception_handler,
    http_exception_handler,
    storage_exception_handler,
    sync_exception_handler,
    validation_exception_handler,
)
from quizsync.core.logging import get_logger, setup_logging
from quizsync.db.base import Base
from quizsync.db.engine import engine
from quizsync.middleware.prometheus_metrics import PrometheusMetricsMiddleware
from quizsync.services.remote_config import RemoteConfigProvider
from quizsync.sync.errors import SyncError

logger = get_logger(__name__)

VERSION = "1.0.0"


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events."""
    setup_logging()
    # Create tables (in production, use migrations)
    if settings.ENV in ("dev", "test"):
        Base.metadata.create_all(bind=engine)
    # One flag cache per app instance
    if getattr(app.state, "remote_config", None) is None:
        app.state.remote_config = RemoteConfigProvider.from_settings(settings)
    logger.info("Application started", extra={"env": settings.ENV, "version": VERSION})
    yield
    app.state.remote_config.invalidate()


def create_app() -> FastAPI:
    """Create and configure FastAPI application."""
    app = FastAPI(
        title=settings.PROJECT_NAME,
        version=VERSION,
        description="Offline-first quiz progress sync API",
        openapi_url="/openapi.json" if settings.ENV != "prod" else None,
        docs_url="/docs" if settings.ENV != "prod" else None,
        redoc_url="/redoc" if settings.ENV != "prod" else None,
        lifespan=lifespan,
    )

    # Add middleware (order matters - last added is outermost)
    app.add_middleware(PrometheusMetricsMiddleware)
    app.add_middleware(RequestIDMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Add exception handlers
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(HTTPException, http_exception_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(SyncError, sync_exception_handler)
    app.add_exception_handler(SQLAlchemyError, storage_exception_handler)
    app.add_exception_handler(Exception, general_exception_handler)

    # Include API routers
    app.include_router(api_router, prefix=settings.API_PREFIX)

    app.mount("/metrics", make_asgi_app())

    @app.get("/", tags=["Root"])
    async def root():
        """Root endpoint - API information."""
        return {
            "message": settings.PROJECT_NAME,
            "version": VERSION,
            "docs_url": "/docs" if settings.ENV != "prod" else None,
        }

    return app


# Create app instance
app = create_app()
