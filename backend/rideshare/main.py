"""
FastAPI entrypoint for the RideShare backend application.
"""
import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from rideshare.api.router import api_router
from rideshare.core.config import Settings, settings as default_settings
from rideshare.core.exceptions import (
    RideShareError,
    ValidationError,
    NotFoundError,
    ConflictError,
    InventoryCorruptionError,
    PermissionDeniedError,
    DataAccessError,
)
from rideshare.core.logging import setup_logging
from rideshare.services.container import ServiceContainer

logger = logging.getLogger(__name__)

# Most specific first; InsufficientSeatsError falls under ConflictError
ERROR_STATUS_CODES = (
    (ValidationError, status.HTTP_422_UNPROCESSABLE_ENTITY),
    (NotFoundError, status.HTTP_404_NOT_FOUND),
    (ConflictError, status.HTTP_409_CONFLICT),
    (InventoryCorruptionError, status.HTTP_409_CONFLICT),
    (PermissionDeniedError, status.HTTP_403_FORBIDDEN),
    (DataAccessError, status.HTTP_503_SERVICE_UNAVAILABLE),
)


def status_code_for(exc: RideShareError) -> int:
    for error_type, code in ERROR_STATUS_CODES:
        if isinstance(exc, error_type):
            return code
    return status.HTTP_500_INTERNAL_SERVER_ERROR


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """Build the application; the service container lives for the app's lifespan."""
    settings = settings or default_settings
    setup_logging(settings.LOG_LEVEL, settings.LOG_FILE)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        container = ServiceContainer(settings)
        app.state.container = container
        logger.info("%s started", settings.APP_NAME)
        try:
            yield
        finally:
            container.close()
            logger.info("%s stopped", settings.APP_NAME)

    app = FastAPI(
        title=f"{settings.APP_NAME} API",
        description="Backend API for trip offers, seat booking and trip search",
        version="1.0.0",
        debug=settings.DEBUG,
        lifespan=lifespan,
    )

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(RideShareError)
    async def rideshare_error_handler(request: Request, exc: RideShareError):
        code = status_code_for(exc)
        if code >= 500:
            logger.error("%s %s failed: %s", request.method, request.url.path, exc)
        else:
            logger.info("%s %s rejected (%d): %s", request.method, request.url.path, code, exc)
        return JSONResponse(status_code=code, content={"detail": str(exc)})

    @app.exception_handler(Exception)
    async def unexpected_error_handler(request: Request, exc: Exception):
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"detail": "Internal server error"},
        )

    # Include API routes
    app.include_router(api_router, prefix="/api")

    @app.get("/")
    async def root():
        """Health check endpoint."""
        return {"message": f"{settings.APP_NAME} API is running"}

    @app.get("/health")
    async def health():
        """Health check endpoint."""
        return {"status": "healthy"}

    return app


app = create_app()
