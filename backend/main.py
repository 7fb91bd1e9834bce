"""
Heat Logger - FastAPI Backend Application

Main application entry point with API routers, middleware, and lifecycle management.
"""

import time
import uuid
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse
from prometheus_client import make_asgi_app

from config.settings import settings
from config.database import db_manager
from ml.inference.errors import QueryValidationError
from repositories.base import NotFoundError, RepositoryError, ValidationError
from repositories.observation_repository import ObservationRepository


# Configure structured logging
if settings.is_production:
    log_processors = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.format_exc_info,
        structlog.processors.JSONRenderer()
    ]
else:
    log_processors = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer()
    ]

structlog.configure(
    processors=log_processors,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifecycle management"""
    logger.info(
        "application_starting",
        environment=settings.environment,
        predictor_version=settings.predictor_version,
    )

    # Graceful degradation: the in-memory store is used without a database
    try:
        await db_manager.initialize()
        if db_manager.has_database:
            async with db_manager.get_session() as session:
                await ObservationRepository(session).ensure_schema()
        logger.info("storage_initialized", database=db_manager.has_database)
    except Exception as e:
        if settings.is_production:
            raise
        logger.error("database_init_failed", error=str(e))
        logger.warning("continuing_without_database", environment=settings.environment)

    logger.info("application_started", version=settings.app_version)

    yield

    logger.info("application_shutting_down")
    try:
        await db_manager.close()
        logger.info("database_connections_closed")
    except Exception as e:
        logger.error("shutdown_error", error=str(e))
    logger.info("application_stopped")


# Disable interactive API docs in production
app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    description="Water-heater pre-heating time recommendations learned from shower feedback",
    docs_url=None if settings.is_production else "/docs",
    redoc_url=None if settings.is_production else "/redoc",
    lifespan=lifespan
)


# ============================================================================
# MIDDLEWARE
# ============================================================================

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "DELETE", "OPTIONS"],
    allow_headers=["Content-Type", "X-Request-ID"],
)

app.add_middleware(GZipMiddleware, minimum_size=1000)


@app.middleware("http")
async def add_process_time_header(request: Request, call_next):
    """Add request ID and processing time to response headers"""
    request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
    start_time = time.time()

    structlog.contextvars.clear_contextvars()
    structlog.contextvars.bind_contextvars(request_id=request_id)

    response = await call_next(request)

    process_time = time.time() - start_time
    response.headers["X-Request-ID"] = request_id
    if not settings.is_production:
        response.headers["X-Process-Time"] = str(process_time)

    if not settings.is_production or process_time > 1.0 or response.status_code >= 400:
        logger.info(
            "request_completed",
            method=request.method,
            path=request.url.path,
            status_code=response.status_code,
            process_time=process_time
        )

    return response


# ============================================================================
# EXCEPTION HANDLERS
# ============================================================================

@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Handle request validation errors without echoing the request body"""
    sanitized_errors = [
        {k: v for k, v in err.items() if k not in ("input", "ctx")}
        for err in exc.errors()
    ]
    logger.warning("validation_error", errors=sanitized_errors, path=request.url.path)
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={"detail": sanitized_errors},
    )


@app.exception_handler(QueryValidationError)
async def query_validation_handler(request: Request, exc: QueryValidationError):
    logger.warning("query_rejected", field=exc.field, reason=exc.reason, path=request.url.path)
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={"detail": [{"loc": ["body", exc.field], "msg": exc.reason}]},
    )


@app.exception_handler(ValidationError)
async def feedback_validation_handler(request: Request, exc: ValidationError):
    field = getattr(exc, "field", None)
    logger.warning("feedback_rejected", field=field, error=exc.message, path=request.url.path)
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={"detail": [{"loc": ["body", field] if field else ["body"], "msg": exc.message}]},
    )


@app.exception_handler(NotFoundError)
async def not_found_handler(request: Request, exc: NotFoundError):
    return JSONResponse(
        status_code=status.HTTP_404_NOT_FOUND,
        content={"detail": exc.message},
    )


@app.exception_handler(RepositoryError)
async def repository_error_handler(request: Request, exc: RepositoryError):
    """Store failures: the cause is logged, never returned"""
    logger.error(
        "observation_store_failed",
        error=exc.message,
        original_error=str(exc.original_error) if exc.original_error else None,
        path=request.url.path,
    )
    return JSONResponse(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        content={"detail": "Observation store unavailable"},
    )


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception):
    """Handle unexpected errors"""
    logger.error(
        "unexpected_error",
        error=str(exc),
        path=request.url.path,
        method=request.method
    )
    detail = "Internal server error" if settings.is_production else str(exc)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": detail}
    )


# ============================================================================
# METRICS
# ============================================================================

app.mount("/metrics", make_asgi_app())


# ============================================================================
# API ROUTES
# ============================================================================

@app.get("/", tags=["Root"])
async def root():
    """Root endpoint with API information"""
    info = {
        "name": settings.app_name,
        "version": settings.app_version,
        "environment": settings.environment,
        "health": "/health",
        "metrics": "/metrics",
    }
    if not settings.is_production:
        info["docs"] = "/docs"
    return info


from api.v1 import health as health_v1
from api.v1 import heating as heating_v1
from api.v1 import history as history_v1

# Probes stay at /health for load balancers
app.include_router(health_v1.router)
app.include_router(health_v1.router, prefix=settings.api_prefix)

app.include_router(heating_v1.router, prefix=settings.api_prefix)
app.include_router(history_v1.router, prefix=settings.api_prefix)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "main:app",
        host="0.0.0.0",
        port=settings.backend_port,
        reload=settings.is_development,
        log_level="info"
    )
