"""
FastAPI Application Entry Point.

This is the main application file for the Parcel Tracker API.
"""

from contextlib import asynccontextmanager
from typing import Optional
from fastapi import FastAPI, HTTPException
from fastapi.exceptions import RequestValidationError
from parcel_tracker.app.core.config import Settings, settings as default_settings
from parcel_tracker.app.api.v1.router import router as api_v1_router
from parcel_tracker.app.backend.client import BackendClient
from parcel_tracker.app.services.session_manager import SessionManager
from parcel_tracker.app.core.observability import ObservabilityMiddleware, configure_logging
from parcel_tracker.app.core.redis_client import ping_redis
from parcel_tracker.app.core.exceptions import (
    AppException,
    app_exception_handler,
    http_exception_handler,
    validation_exception_handler,
    generic_exception_handler
)


def _attach_backend(app: FastAPI, backend: BackendClient) -> None:
    app.state.backend = backend
    app.state.session_manager = SessionManager(backend)


def create_app(settings: Optional[Settings] = None, backend: Optional[BackendClient] = None) -> FastAPI:
    """
    Build the application.

    Args:
        settings: Static configuration (defaults to environment settings)
        backend: An already initialized backend client. When omitted, one is
            created from settings at startup and shut down on exit.
    """
    settings = settings or default_settings
    configure_logging(settings.debug)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """
        Lifespan context manager for application startup/shutdown.

        1. Initializes the backend client (creates tables when configured).
        2. Shuts it down on exit.
        """
        owned: Optional[BackendClient] = None
        if getattr(app.state, "backend", None) is None:
            owned = await BackendClient(settings).init()
            _attach_backend(app, owned)
        yield
        if owned is not None:
            app.state.session_manager.close()
            await owned.shutdown()
            app.state.backend = None

    app = FastAPI(
        title=settings.app_name,
        version=settings.api_version,
        debug=settings.debug,
        description="Parcel tracking API: accounts, parcels, status history and security monitoring",
        lifespan=lifespan,
    )
    app.state.backend = None
    if backend is not None:
        _attach_backend(app, backend)

    app.add_middleware(ObservabilityMiddleware)

    # Register global exception handlers
    app.add_exception_handler(AppException, app_exception_handler)
    app.add_exception_handler(HTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, generic_exception_handler)

    @app.get("/health", tags=["Health"])
    async def health_check():
        """
        Health check endpoint.

        Token revocation fails open, so an unreachable Redis is reported
        but does not make the service unhealthy.

        Returns:
            dict: Status, application information and Redis reachability
        """
        backend = app.state.backend
        redis_ok = backend is not None and await ping_redis(backend.redis)
        return {
            "status": "healthy",
            "redis": "connected" if redis_ok else "unavailable",
            "app_name": settings.app_name,
            "version": settings.api_version,
        }

    # Include API v1 router
    app.include_router(api_v1_router, prefix=f"/{settings.api_version}")

    @app.get("/", tags=["Root"])
    async def root():
        """
        Root endpoint.

        Returns:
            dict: Welcome message and API documentation links
        """
        return {
            "message": "Welcome to the Parcel Tracker API",
            "docs": "/docs",
            "health": "/health",
        }

    return app


app = create_app()
