"""
Clinic Scheduler API

FastAPI application entry point that ties all components together.
"""

import logging
import time
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError
from starlette.exceptions import HTTPException as StarletteHTTPException

from clinic_scheduler.api.routes import appointments, chat, clinic, doctors, health
from clinic_scheduler.config import Settings, get_settings
from clinic_scheduler.container import ServiceContainer, build_services
from clinic_scheduler.core.agent.conversation import LoopBoundExceededError
from clinic_scheduler.core.scheduling.errors import (
    ConflictError,
    ForbiddenError,
    InvalidArgumentError,
    NotFoundError,
    SchedulingError,
)
from clinic_scheduler.infra.claude import ClaudeClientError
from clinic_scheduler.seed import seed_directory

API_PREFIX = "/api"

ERROR_STATUS = {
    InvalidArgumentError: status.HTTP_400_BAD_REQUEST,
    ForbiddenError: status.HTTP_403_FORBIDDEN,
    NotFoundError: status.HTTP_404_NOT_FOUND,
    ConflictError: status.HTTP_409_CONFLICT,
}


def setup_logging(settings: Settings) -> None:
    """Configure logging based on environment."""
    log_level = logging.DEBUG if settings.debug else logging.INFO
    log_format = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

    logging.basicConfig(
        level=log_level,
        format=log_format,
    )

    # Reduce noise from third-party libraries
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(
        logging.INFO if settings.debug else logging.WARNING
    )


logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Application lifespan manager.

    Builds the service container unless one was injected, and closes it
    on shutdown.
    """
    # === STARTUP ===
    settings: Settings = app.state.settings
    setup_logging(settings)
    logger.info(f"Starting {settings.app_name} in {settings.app_env} mode")

    health.set_start_time()

    owns_services = app.state.services is None
    if owns_services:
        app.state.services = build_services(settings)
    services: ServiceContainer = app.state.services

    # Create tables and demo data only in development - use migrations in production
    if settings.is_development and settings.seed_on_startup:
        try:
            await services.database.init_db()
            await seed_directory(services.database)
            logger.info("Database tables initialized")
        except Exception as e:
            logger.warning(f"Database init skipped: {e}")

    if services.redis is not None:
        if await services.redis.get_client():
            logger.info("Redis connection established")
        else:
            logger.warning("Redis unavailable - transcripts kept in memory")

    logger.info(f"Application ready at http://{settings.host}:{settings.port}")

    yield

    # === SHUTDOWN ===
    logger.info("Shutting down application...")
    if owns_services:
        await services.close()
    logger.info("Shutdown complete")


def _error(status_code: int, message: str, headers: Optional[dict] = None) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message}, headers=headers)


def register_exception_handlers(app: FastAPI) -> None:
    """Map domain errors to HTTP statuses with an ``{"error": message}`` body."""

    @app.exception_handler(SchedulingError)
    async def scheduling_exception_handler(request: Request, exc: SchedulingError) -> JSONResponse:
        status_code = ERROR_STATUS.get(type(exc), status.HTTP_400_BAD_REQUEST)
        logger.info(f"{request.method} {request.url.path} -> {status_code}: {exc.message}")
        return _error(status_code, exc.message)

    @app.exception_handler(LoopBoundExceededError)
    async def loop_bound_exception_handler(request: Request, exc: LoopBoundExceededError) -> JSONResponse:
        logger.warning(str(exc))
        return _error(
            status.HTTP_503_SERVICE_UNAVAILABLE,
            "The assistant could not complete this request. Please try again.",
        )

    @app.exception_handler(ClaudeClientError)
    async def agent_exception_handler(request: Request, exc: ClaudeClientError) -> JSONResponse:
        logger.error(f"Agent unavailable: {exc}")
        return _error(status.HTTP_502_BAD_GATEWAY, "Failed to process message")

    @app.exception_handler(IntegrityError)
    async def integrity_exception_handler(request: Request, exc: IntegrityError) -> JSONResponse:
        logger.warning(f"Integrity error: {exc.orig}")
        return _error(status.HTTP_400_BAD_REQUEST, "Request violates a data constraint")

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        return _error(exc.status_code, str(exc.detail), headers=getattr(exc, "headers", None))

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(
        request: Request,
        exc: RequestValidationError,
    ) -> JSONResponse:
        """Handle Pydantic validation errors."""
        logger.warning(f"Validation error: {exc.errors()}")
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={
                "error": "Validation error",
                "detail": jsonable_encoder(exc.errors()),
            },
        )

    @app.exception_handler(Exception)
    async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        """Handle uncaught exceptions."""
        logger.exception(f"Unhandled exception: {exc}")
        content = {"error": "Internal server error"}
        if request.app.state.settings.is_development:
            content["detail"] = str(exc)
        return JSONResponse(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, content=content)


def create_app(
    services: Optional[ServiceContainer] = None,
    settings: Optional[Settings] = None,
) -> FastAPI:
    """
    Build the FastAPI application.

    Args:
        services: Pre-built container (tests); built in the lifespan otherwise
        settings: Defaults to the container's settings, then environment settings
    """
    settings = settings or (services.settings if services else get_settings())

    app = FastAPI(
        title="Clinic Scheduler API",
        description="""
    Appointment scheduling for a medical clinic.

    ## Features
    - Availability, booking, cancellation and rescheduling with per-doctor conflict checks
    - Conversational scheduling assistant driving the same operations through tools

    ## Authentication
    Protected endpoints require a bearer token carrying `sub` (subject id) and `role`.
    """,
        version=health.VERSION,
        docs_url="/docs" if settings.is_development else None,
        redoc_url="/redoc" if settings.is_development else None,
        openapi_url="/openapi.json" if settings.is_development else None,
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.services = services

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def request_timing_middleware(request: Request, call_next):
        """Log request duration in debug mode."""
        start_time = time.time()
        try:
            return await call_next(request)
        finally:
            if settings.debug:
                duration = time.time() - start_time
                logger.debug(
                    f"{request.method} {request.url.path} "
                    f"completed in {duration:.3f}s"
                )

    register_exception_handlers(app)

    # Health check routes (no auth required)
    app.include_router(health.router)

    app.include_router(appointments.router, prefix=API_PREFIX)
    app.include_router(chat.router, prefix=API_PREFIX)
    app.include_router(doctors.router, prefix=API_PREFIX)
    app.include_router(clinic.router, prefix=API_PREFIX)

    @app.get("/", tags=["Root"])
    async def root() -> dict:
        """Basic API information."""
        return {
            "name": settings.app_name,
            "version": health.VERSION,
            "status": "running",
            "environment": settings.app_env,
            "docs": "/docs" if settings.is_development else None,
        }

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    _settings = get_settings()
    uvicorn.run(
        "clinic_scheduler.main:app",
        host=_settings.host,
        port=_settings.port,
        reload=_settings.is_development,
        log_level="debug" if _settings.debug else "info",
    )
