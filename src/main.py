"""
MindSpark API

FastAPI application entry point.
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from src.api.middleware.request_id import REQUEST_ID_HEADER, RequestIdMiddleware
from src.api.v1 import router as api_v1_router
from src.config import Settings, get_settings
from src.database import Database
from src.kernel.audit.audit_log import AuditLog
from src.kernel.errors import AccessError
from src.kernel.permissions.catalog import RoleCatalog
from src.logging_config import configure_logging, get_logger
from src.schemas.common import HealthResponse

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator:
    """
    Application lifespan handler.

    Builds the store, seeds the role catalog and starts the audit log;
    on shutdown waits for pending audit writes before closing connections.
    """
    settings: Settings = app.state.settings

    configure_logging(
        log_level=settings.log_level,
        environment=settings.environment,
        debug=settings.debug,
    )

    logger.info("Starting %s v%s", settings.project_name, settings.version)

    database = getattr(app.state, "database", None)
    if database is None:
        database = Database(settings)
        app.state.database = database
    await database.create_all()

    async with database.session_factory() as session:
        await RoleCatalog(session).ensure_defaults()
        await session.commit()
    logger.info("Database initialized")

    if getattr(app.state, "audit_log", None) is None:
        app.state.audit_log = AuditLog(database.session_factory)

    yield

    logger.info("Shutting down...")
    await app.state.audit_log.drain()
    await database.dispose()
    logger.info("Database connections closed")


def _request_id(request: Request) -> Optional[str]:
    return getattr(request.state, "request_id", None)


def _error_headers(request: Request) -> dict[str, str]:
    req_id = _request_id(request)
    return {REQUEST_ID_HEADER: req_id} if req_id else {}


def register_exception_handlers(app: FastAPI, settings: Settings) -> None:
    """Map kernel errors and unexpected failures to JSON responses."""

    @app.exception_handler(AccessError)
    async def access_error_handler(request: Request, exc: AccessError):
        headers = _error_headers(request)
        if exc.status_code == status.HTTP_401_UNAUTHORIZED:
            headers["WWW-Authenticate"] = "Bearer"

        content = exc.to_dict()
        if exc.status_code >= 500:
            logger.error("%s: %s", type(exc).__name__, exc.message, exc_info=exc.__cause__)
            content["request_id"] = _request_id(request)
            if settings.debug and exc.__cause__ is not None:
                content["cause"] = str(exc.__cause__)

        return JSONResponse(status_code=exc.status_code, content=content, headers=headers)

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        """Handle request validation errors."""
        errors = []
        for error in exc.errors():
            field = ".".join(str(loc) for loc in error["loc"])
            errors.append({
                "field": field,
                "message": error["msg"],
                "type": error["type"],
            })
        return JSONResponse(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            content={"detail": "Validation error", "code": "validation_error", "errors": errors},
            headers=_error_headers(request),
        )

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception):
        logger.exception("Unhandled exception: %s", exc)
        req_id = _request_id(request)
        if settings.debug:
            content = {
                "detail": str(exc),
                "type": type(exc).__name__,
                "request_id": req_id,
            }
        else:
            content = {"detail": "Internal server error", "request_id": req_id}
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content=content,
            headers=_error_headers(request),
        )


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """Build the application for the given (or environment) settings."""
    settings = settings or get_settings()

    app = FastAPI(
        title=settings.project_name,
        description="""
    MindSpark API

    Accounts, roles and supervision for a learning platform.

    ## Features

    - **Authentication**: Registration, login and bearer tokens
    - **Roles**: Role catalog, time-limited role grants and effective permissions
    - **Guardians**: Parent to child links with per-link capabilities
    - **Mentors**: Mentor to student links with an active/ended lifecycle
    - **Audit trail**: Sensitive actions and every denied access attempt
    """,
        version=settings.version,
        lifespan=lifespan,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
    )
    app.state.settings = settings

    # LAST added = OUTERMOST; CORS wraps everything so error responses carry its headers
    app.add_middleware(RequestIdMiddleware, slow_request_ms=settings.slow_request_ms)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_exception_handlers(app, settings)

    @app.get("/health", response_model=HealthResponse, tags=["Health"])
    async def health_check(request: Request):
        """Check application health."""
        database = getattr(request.app.state, "database", None)
        reachable = database is not None and await database.ping()
        return HealthResponse(
            status="ok" if reachable else "degraded",
            version=settings.version,
            database="connected" if reachable else "unavailable",
        )

    @app.get("/", tags=["Root"])
    async def root():
        """Root endpoint with API information."""
        return {
            "name": settings.project_name,
            "version": settings.version,
            "docs": "/docs" if settings.debug else "disabled",
            "api": {
                "v1": settings.api_v1_prefix,
            },
        }

    app.include_router(api_v1_router, prefix=settings.api_v1_prefix)
    return app


app = create_app()


# Main entry point for development
if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "src.main:app",
        host="0.0.0.0",
        port=8000,
        reload=get_settings().debug,
    )
