"""
FastAPI application entry point with health endpoints and service routing.

This module provides the FastAPI application instance with CORS
configuration, request logging, translation of workflow errors into HTTP
responses, health endpoints and the v1 routers. Startup and shutdown
release the database and Redis connections.
"""

from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from printshop.api.v1.orders import router as orders_router
from printshop.api.v1.quotations import router as quotations_router
from printshop.cache.redis_client import close_redis_client
from printshop.core.config import get_settings
from printshop.core.exceptions import ErrorKind, WorkflowError
from printshop.core.logging import (
    clear_context,
    configure_logging,
    get_logger,
    get_request_id,
    log_performance,
    set_request_id,
)
from printshop.database.connection import check_database_health, close_database_connections

# Configure logging before application initialization
configure_logging()
logger = get_logger(__name__)

ERROR_STATUS_CODES = {
    ErrorKind.INVALID_TRANSITION: status.HTTP_409_CONFLICT,
    ErrorKind.VALIDATION_FAILED: status.HTTP_422_UNPROCESSABLE_ENTITY,
    ErrorKind.CONCURRENT_MODIFICATION: status.HTTP_409_CONFLICT,
    ErrorKind.DEPENDENCY_FAILURE: status.HTTP_503_SERVICE_UNAVAILABLE,
    ErrorKind.NOT_FOUND: status.HTTP_404_NOT_FOUND,
}


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """
    Application lifespan context manager for startup and shutdown events.

    Args:
        app: FastAPI application instance

    Yields:
        None during application runtime
    """
    settings = get_settings()

    logger.info(
        "Application starting",
        environment=settings.environment,
        debug=settings.debug,
        version=settings.app_version,
    )

    yield

    logger.info("Application shutting down")
    with log_performance(logger, "application_shutdown"):
        await close_redis_client()
        await close_database_connections()


settings = get_settings()
app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    description="Print-shop order workflow API",
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json",
    lifespan=lifespan,
    debug=settings.debug,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["X-Request-ID"],
)


@app.middleware("http")
async def request_logging_middleware(request: Request, call_next):
    """
    Middleware for request logging and correlation ID management.

    Sets request ID for correlation, logs request details, and measures
    response time. Clears context after request processing.

    Args:
        request: Incoming HTTP request
        call_next: Next middleware or route handler

    Returns:
        HTTP response with X-Request-ID header
    """
    request_id = set_request_id(request.headers.get("X-Request-ID"))

    logger.info(
        "Request received",
        method=request.method,
        path=request.url.path,
        client_host=request.client.host if request.client else None,
    )

    try:
        with log_performance(
            logger,
            "request_processing",
            method=request.method,
            path=request.url.path,
        ):
            response = await call_next(request)

        response.headers["X-Request-ID"] = request_id

        logger.info(
            "Request completed",
            method=request.method,
            path=request.url.path,
            status_code=response.status_code,
        )
        return response
    finally:
        clear_context()


@app.exception_handler(WorkflowError)
async def workflow_exception_handler(request: Request, exc: WorkflowError) -> JSONResponse:
    """
    Translate workflow errors into HTTP responses.

    InvalidTransition and ConcurrentModification map to 409,
    ValidationFailed to 422, NotFound to 404 and DependencyFailure to 503.
    """
    status_code = ERROR_STATUS_CODES.get(exc.kind, status.HTTP_500_INTERNAL_SERVER_ERROR)
    log = logger.error if status_code >= 500 else logger.warning
    log(
        "Workflow error",
        method=request.method,
        path=request.url.path,
        error=exc.kind.value,
        message=exc.message,
    )

    body = exc.to_dict()
    body["request_id"] = get_request_id()
    return JSONResponse(status_code=status_code, content=body)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """
    Handle request validation errors with structured error response.

    Args:
        request: HTTP request that caused validation error
        exc: Validation exception with error details

    Returns:
        JSON response with validation error details
    """
    logger.warning(
        "Request validation failed",
        method=request.method,
        path=request.url.path,
        errors=exc.errors(),
    )

    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={
            "error": ErrorKind.VALIDATION_FAILED.value,
            "message": "Request validation failed",
            "context": {"errors": jsonable_errors(exc)},
            "request_id": get_request_id(),
        },
    )


def jsonable_errors(exc: RequestValidationError) -> list:
    return [
        {"loc": list(error.get("loc", ())), "msg": error.get("msg"), "type": error.get("type")}
        for error in exc.errors()
    ]


@app.get(
    "/health",
    status_code=status.HTTP_200_OK,
    tags=["Health"],
    summary="Health check endpoint",
)
async def health_check() -> dict[str, str]:
    """
    Basic health check endpoint.

    Always returns 200 OK if the application is running.
    """
    return {
        "status": "healthy",
        "service": settings.app_name,
        "version": settings.app_version,
        "environment": settings.environment,
    }


@app.get(
    "/ready",
    status_code=status.HTTP_200_OK,
    tags=["Health"],
    summary="Readiness check endpoint",
)
async def readiness_check():
    """
    Readiness check endpoint for orchestration.

    Returns 503 when the database cannot be reached.
    """
    database_ready = await check_database_health(max_retries=1)
    if not database_ready:
        logger.warning("Readiness check failed", database="unhealthy")
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={
                "status": "not_ready",
                "service": settings.app_name,
                "database": "unhealthy",
            },
        )

    return {
        "status": "ready",
        "service": settings.app_name,
        "version": settings.app_version,
        "database": "healthy",
    }


app.include_router(orders_router, prefix=settings.api_v1_prefix)
app.include_router(quotations_router, prefix=settings.api_v1_prefix)
