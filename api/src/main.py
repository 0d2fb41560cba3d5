"""
FastAPI application entry point for the Product Catalog API.

This module provides the main FastAPI application with:
- Product CRUD endpoints backed by MongoDB
- Health and readiness endpoints
- Request/response logging with correlation IDs
- Prometheus metrics
- CORS and security headers
- Database client lifecycle management
"""

import math
import time
import uuid
import structlog
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Dict, Any, Optional

from fastapi import Depends, FastAPI, Request, Response, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, PlainTextResponse
from fastapi.middleware.cors import CORSMiddleware
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.exceptions import HTTPException as StarletteHTTPException

from prometheus_client import Counter, Histogram, Gauge, CONTENT_TYPE_LATEST

from api.src.config import get_settings, Settings
from api.src.dependencies import (
    init_mongo_client,
    close_mongo_client,
    get_optional_product_repository,
    get_product_repository,
)
from api.src.exceptions import CatalogError
from api.src.repositories.product_repo import ProductRepository
from api.src.routers import products
from shared.logging.structured_logger import bind_context, unbind_context
from shared.metrics.prometheus_metrics import get_metrics_handler
from shared.models.common import HealthStatus, ServiceInfo

logger = structlog.get_logger(__name__)

settings: Settings = get_settings()

_started_at = time.monotonic()

# ============================================================================
# Prometheus Metrics
# ============================================================================

http_requests_total = Counter(
    "http_requests_total",
    "Total HTTP requests",
    ["method", "endpoint", "status"]
)

http_request_duration_seconds = Histogram(
    "http_request_duration_seconds",
    "HTTP request duration in seconds",
    ["method", "endpoint"]
)

http_requests_in_progress = Gauge(
    "http_requests_in_progress",
    "HTTP requests currently in progress",
    ["method", "endpoint"]
)

# ============================================================================
# Lifespan Management
# ============================================================================

@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Application lifespan manager for startup and shutdown events.

    Handles:
    - MongoDB client initialization and index creation
    - Graceful shutdown and client cleanup
    """
    logger.info(
        "application_starting",
        app_name=settings.app_name,
        version=settings.app_version,
        environment=settings.environment
    )

    try:
        client = await init_mongo_client(settings)

        logger.info("ensuring_indexes")
        repo = get_product_repository(client=client, settings=settings)
        await repo.ensure_indexes()

        logger.info(
            "application_started",
            app_name=settings.app_name,
            version=settings.app_version,
            environment=settings.environment
        )

        yield

    except Exception as e:
        logger.error("application_startup_failed", error=str(e), exc_info=True)
        raise

    finally:
        logger.info("application_shutting_down")
        try:
            await close_mongo_client()
            logger.info("application_shutdown_complete")
        except Exception as e:
            logger.error("application_shutdown_failed", error=str(e), exc_info=True)

# ============================================================================
# FastAPI Application
# ============================================================================

app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    description="CRUD API for the Products collection.",
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json",
    lifespan=lifespan,
    debug=settings.debug,
)

# ============================================================================
# Middleware Configuration
# ============================================================================

if settings.cors_enabled:
    logger.info("configuring_cors", origins=settings.cors_origins)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_methods=settings.cors_allow_methods,
        allow_headers=settings.cors_allow_headers,
    )


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Middleware for request logging and metrics."""

    async def dispatch(self, request: Request, call_next):
        """Process request and log details."""
        correlation_id = request.headers.get("X-Correlation-ID") or str(uuid.uuid4())

        method = request.method
        path = request.url.path
        client_ip = request.client.host if request.client else "unknown"

        bind_context(correlation_id=correlation_id)
        http_requests_in_progress.labels(method=method, endpoint=path).inc()
        start_time = time.time()

        logger.info(
            "request_started",
            method=method,
            path=path,
            client_ip=client_ip
        )

        try:
            response = await call_next(request)

            duration = time.time() - start_time

            http_requests_total.labels(
                method=method,
                endpoint=path,
                status=response.status_code
            ).inc()

            http_request_duration_seconds.labels(
                method=method,
                endpoint=path
            ).observe(duration)

            logger.info(
                "request_completed",
                method=method,
                path=path,
                status_code=response.status_code,
                duration=f"{duration:.3f}s"
            )

            response.headers["X-Correlation-ID"] = correlation_id
            return response

        except Exception as e:
            duration = time.time() - start_time
            logger.error(
                "request_failed",
                method=method,
                path=path,
                error=str(e),
                duration=f"{duration:.3f}s",
                exc_info=True
            )
            raise

        finally:
            http_requests_in_progress.labels(method=method, endpoint=path).dec()
            unbind_context("correlation_id")

app.add_middleware(RequestLoggingMiddleware)


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Middleware to add security headers to responses."""

    async def dispatch(self, request: Request, call_next):
        response = await call_next(request)

        if settings.security_headers_enabled:
            response.headers["X-Content-Type-Options"] = "nosniff"
            response.headers["X-Frame-Options"] = "DENY"
            response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"

        return response

app.add_middleware(SecurityHeadersMiddleware)

# ============================================================================
# Exception Handlers
# ============================================================================

@app.exception_handler(CatalogError)
async def catalog_exception_handler(request: Request, exc: CatalogError):
    """Handle catalog domain errors."""
    logger.warning(
        "catalog_error",
        path=request.url.path,
        error_code=exc.error_code,
        detail=exc.message
    )
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.message, "error_code": exc.error_code}
    )

@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Handle request validation errors."""
    logger.warning(
        "validation_error",
        path=request.url.path,
        errors=exc.errors()
    )
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={"detail": jsonable_errors(exc)}
    )

@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    """Handle HTTP exceptions."""
    logger.warning(
        "http_exception",
        path=request.url.path,
        status_code=exc.status_code,
        detail=exc.detail
    )
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.detail}
    )

@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception):
    """Handle unexpected exceptions."""
    logger.error(
        "unexpected_exception",
        path=request.url.path,
        error=str(exc),
        exc_info=True
    )
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": "Internal server error"}
    )


def jsonable_errors(exc: RequestValidationError) -> list:
    """Validation errors made JSON-safe: ``ctx`` values and non-finite inputs as text."""
    errors = []
    for error in exc.errors():
        error = dict(error)
        if isinstance(error.get("input"), float) and not math.isfinite(error["input"]):
            error["input"] = str(error["input"])
        if "ctx" in error:
            error["ctx"] = {key: str(value) for key, value in error["ctx"].items()}
        errors.append(error)
    return errors

# ============================================================================
# Service, Health and Readiness Endpoints
# ============================================================================

@app.get("/", tags=["Health"])
async def root() -> Dict[str, Any]:
    """Service banner; also the target of the port-mapping smoke check."""
    return {
        "service": settings.app_name,
        "version": settings.app_version,
        "products": f"{settings.api_prefix}/products",
        "health": "/health",
    }

@app.get("/health", tags=["Health"], response_model=ServiceInfo)
async def health_check() -> ServiceInfo:
    """
    Health check endpoint.

    Returns basic health status without checking dependencies.
    Use for container health checks.
    """
    return ServiceInfo(
        service_name=settings.app_name,
        version=settings.app_version,
        status=HealthStatus.HEALTHY,
        uptime_seconds=round(time.monotonic() - _started_at, 3),
    )

@app.get("/ready", tags=["Health"], response_class=JSONResponse)
async def readiness_check(
    repo: Optional[ProductRepository] = Depends(get_optional_product_repository)
) -> JSONResponse:
    """
    Readiness check endpoint.

    Verifies the document database answers a ping.

    Returns:
        Readiness status with component health
    """
    checks = {"database": HealthStatus.UNHEALTHY.value}

    if repo is None:
        logger.error("database_health_check_failed", error="database client not initialized")
    elif await repo.ping():
        checks["database"] = HealthStatus.HEALTHY.value

    all_healthy = all(value == HealthStatus.HEALTHY.value for value in checks.values())
    overall_status = "ready" if all_healthy else "not_ready"
    status_code = status.HTTP_200_OK if all_healthy else status.HTTP_503_SERVICE_UNAVAILABLE

    return JSONResponse(
        status_code=status_code,
        content={
            "status": overall_status,
            "service": settings.app_name,
            "version": settings.app_version,
            "checks": checks
        }
    )

# ============================================================================
# Metrics Endpoint
# ============================================================================

@app.get("/metrics", tags=["Monitoring"], response_class=PlainTextResponse)
async def metrics() -> Response:
    """Prometheus metrics endpoint."""
    if not settings.metrics_enabled:
        return Response(status_code=status.HTTP_404_NOT_FOUND)

    return Response(
        content=get_metrics_handler()(),
        media_type=CONTENT_TYPE_LATEST
    )

# ============================================================================
# API Router Registration
# ============================================================================

app.include_router(products.router, prefix=settings.api_prefix)
