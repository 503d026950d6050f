"""
Snapshot Mock API

A FastAPI service that stands in for the upstream reporting provider's
win/lose endpoint during integration testing. It fronts a MongoDB
collection of snapshot documents and mimics the provider's JSON shapes:

    POST /api/v1/ext/winloseEsByMonthMulti   best-matching win/lose record
    GET  /api/v1/ext/snapshotAll             every stored snapshot
    POST /api/v1/ext/insertSnapshot          store a snapshot verbatim
    POST /api/v1/ext/updateSnapshot          $set merge, optional upsert
    POST /api/v1/ext/deleteSnapshot          delete one snapshot

Figures are never computed here: whatever the snapshot holds is returned.
"""
import time
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import PlainTextResponse
from prometheus_client import generate_latest, CONTENT_TYPE_LATEST
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.responses import Response

from snapshot_api.api import router
from snapshot_api.api.routes import LOOKUP_PATH
from snapshot_api.config import settings
from snapshot_api.database import (
    StoreConfigurationError,
    StoreConnectionError,
    StoreConnector,
    StoreOperationError,
)
from snapshot_api.services.resolver import RecordNotFoundError
from snapshot_api.logging import (
    configure_logging,
    get_logger,
    set_request_context,
    clear_request_context,
    generate_request_id,
)
from snapshot_api import metrics

# Configure structured logging
configure_logging()
logger = get_logger(__name__)

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "GET, POST, OPTIONS",
    "Access-Control-Allow-Headers": "*",
}


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    logger.info(
        "service_starting",
        service_name=settings.service_name,
        port=settings.port,
        endpoint=f"http://localhost:{settings.port}{router.prefix}{LOOKUP_PATH}",
        database=settings.mongo_database,
        collection=settings.mongo_collection,
    )

    yield

    logger.info("service_stopping", service_name=settings.service_name)
    await app.state.connector.close()


app = FastAPI(
    title="Snapshot Mock API",
    description="Mock of the upstream win/lose reporting API over a MongoDB snapshot collection",
    version="0.1.0",
    lifespan=lifespan,
)

# The store connects on first use, not at startup
app.state.connector = StoreConnector(settings)


@app.middleware("http")
async def request_logging_middleware(request: Request, call_next):
    """
    Middleware for request tracing, logging, and metrics.

    Sets up request context with:
    - request_id: Unique identifier for tracing
    - Timing for duration_ms calculation
    - Prometheus metrics collection
    """
    method = request.method
    path = request.url.path

    # Skip logging/metrics for health and metrics endpoints
    if path in ("/health", "/metrics"):
        return await call_next(request)

    request_id = request.headers.get("X-Request-ID") or generate_request_id()
    set_request_context(request_id)
    request.state.request_id = request_id

    start_time = time.perf_counter()

    logger.info("request_received", method=method, path=path)

    try:
        response = await call_next(request)

        duration_seconds = time.perf_counter() - start_time

        logger.info(
            "request_completed",
            method=method,
            path=path,
            status_code=response.status_code,
            duration_ms=round(duration_seconds * 1000, 2),
        )
        metrics.record_http_request(method, path, response.status_code, duration_seconds)

        response.headers["X-Request-ID"] = request_id
        return response

    except Exception as e:
        duration_seconds = time.perf_counter() - start_time

        logger.error(
            "request_failed",
            method=method,
            path=path,
            duration_ms=round(duration_seconds * 1000, 2),
            error=str(e),
        )
        metrics.record_http_request(method, path, 500, duration_seconds)
        raise

    finally:
        clear_request_context()


@app.middleware("http")
async def cors_middleware(request: Request, call_next):
    """Answer preflight requests and mark every response as cross-origin friendly."""
    if request.method == "OPTIONS":
        return Response(status_code=204, headers=CORS_HEADERS)

    response = await call_next(request)
    response.headers.update(CORS_HEADERS)
    return response


@app.exception_handler(StoreConfigurationError)
@app.exception_handler(StoreConnectionError)
async def store_connection_error_handler(request: Request, exc: Exception):
    """Handle a missing connection string or an unreachable store."""
    logger.error("store_unavailable", error_type=type(exc).__name__, error=str(exc))
    return PlainTextResponse("Database connection error", status_code=500)


@app.exception_handler(StoreOperationError)
async def store_operation_error_handler(request: Request, exc: StoreOperationError):
    """Handle a failed or timed out store operation."""
    logger.error("store_operation_error", operation=exc.operation, detail=exc.detail)
    return PlainTextResponse(f"{exc.operation} failed", status_code=500)


@app.exception_handler(RecordNotFoundError)
async def record_not_found_handler(request: Request, exc: RecordNotFoundError):
    """Handle lookups with no matching document or no usable data."""
    return PlainTextResponse(exc.detail, status_code=404)


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    """Malformed bodies and missing or empty fields are bad requests."""
    errors = exc.errors()
    logger.warning("request_invalid", error_count=len(errors))

    if any(error.get("type") == "json_invalid" for error in errors):
        return PlainTextResponse("Invalid JSON body", status_code=400)

    details = "; ".join(
        f"{'.'.join(str(part) for part in error.get('loc', ())[1:]) or 'body'}: {error.get('msg')}"
        for error in errors
    )
    return PlainTextResponse(f"Invalid request: {details}", status_code=400)


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    """Render HTTP errors, including 405 Method Not Allowed, as plain text."""
    return PlainTextResponse(str(exc.detail), status_code=exc.status_code, headers=exc.headers)


# Include API routes
app.include_router(router)


@app.get("/health")
async def health_check():
    """Health check endpoint for container orchestration."""
    return {"status": "ok", "service": settings.service_name}


@app.get("/metrics")
async def metrics_endpoint():
    """Prometheus metrics endpoint."""
    return Response(
        content=generate_latest(),
        media_type=CONTENT_TYPE_LATEST
    )


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host=settings.host, port=settings.port)
