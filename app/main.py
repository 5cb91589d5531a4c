"""
Drive Lifecycle Service - Main Application

Internal FastAPI service in front of the lifecycle state machine, the
reclamation outbox and the usage ledger. Callers are workers and schedulers
of the storage product; authentication is handled in front of it.
"""
from fastapi import Depends, FastAPI, Request, status
from fastapi.responses import JSONResponse, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException
from sqlalchemy.orm import Session
import logging
import time
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from app.core.config import settings
from app.core.exceptions import (
    AlreadyRemoved,
    BatchJobAborted,
    CascadeLimitExceeded,
    DuplicateReclamationIntent,
    EntityNotFound,
    IncompleteRollupWindow,
    InvalidMove,
    InvalidTransition,
    LifecycleError,
    TransientStoreFailure,
)
from app.core.logging import configure_logging
from app.api.v1 import api_router
from app.db import check_db_connection, get_db
from app.middleware import MetricsMiddleware
from app.reclamation import ReclamationOutbox, get_minio_client
from prometheus_client import generate_latest, CONTENT_TYPE_LATEST
from app.metrics import app_info, app_uptime_seconds

configure_logging(settings.LOG_LEVEL, settings.LOG_JSON)

logger = logging.getLogger(__name__)

_app_start_time = time.time()

# Seconds a client should wait before retrying after a transient failure
RETRY_AFTER_SECONDS = 5

ERROR_STATUS_CODES = (
    (EntityNotFound, status.HTTP_404_NOT_FOUND),
    (InvalidTransition, status.HTTP_409_CONFLICT),
    (AlreadyRemoved, status.HTTP_409_CONFLICT),
    (InvalidMove, status.HTTP_409_CONFLICT),
    (IncompleteRollupWindow, status.HTTP_409_CONFLICT),
    (DuplicateReclamationIntent, status.HTTP_409_CONFLICT),
    (CascadeLimitExceeded, status.HTTP_422_UNPROCESSABLE_ENTITY),
    (TransientStoreFailure, status.HTTP_503_SERVICE_UNAVAILABLE),
    (BatchJobAborted, status.HTTP_503_SERVICE_UNAVAILABLE),
)


def status_code_for(exc: LifecycleError) -> int:
    for error_type, status_code in ERROR_STATUS_CODES:
        if isinstance(exc, error_type):
            return status_code
    return status.HTTP_500_INTERNAL_SERVER_ERROR


def error_response(
    status_code: int,
    error: Any,
    headers: Optional[Dict[str, str]] = None,
    **fields: Any,
) -> JSONResponse:
    """Error body shared by every handler: ``error``, ``status_code`` and extras."""
    return JSONResponse(
        status_code=status_code,
        content={"error": error, "status_code": status_code, **fields},
        headers=headers,
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info(f"Starting {settings.APP_NAME} {settings.APP_VERSION} on {settings.API_HOST}:{settings.API_PORT}")

    app_info.labels(version=settings.APP_VERSION, environment="production").set(1)

    if not check_db_connection():
        logger.error("Database is not reachable; lifecycle requests will fail until it is")

    yield

    logger.info(f"Shutting down {settings.APP_NAME}...")


app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description="Lifecycle state machine for files, folders and file versions, "
                "reclamation outbox for physical blob cleanup, and per-user usage ledger.",
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(MetricsMiddleware)


# Exception handlers
@app.exception_handler(LifecycleError)
async def lifecycle_exception_handler(request: Request, exc: LifecycleError):
    """
    Map the service's error taxonomy to HTTP status codes.

    Retryable failures and aborted batch jobs carry a Retry-After header.
    """
    status_code = status_code_for(exc)
    headers = None

    if exc.retryable or isinstance(exc, BatchJobAborted):
        headers = {"Retry-After": str(RETRY_AFTER_SECONDS)}
        logger.warning(f"{type(exc).__name__} on {request.url.path}: {exc}")
    elif status_code >= 500:
        logger.error(f"{type(exc).__name__} on {request.url.path}: {exc}")

    return error_response(status_code, type(exc).__name__, headers=headers, message=str(exc))


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    return error_response(exc.status_code, exc.detail)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    return error_response(
        status.HTTP_422_UNPROCESSABLE_ENTITY, "Validation error", details=exc.errors()
    )


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception):
    logger.error(f"Unhandled exception on {request.url.path}: {exc}", exc_info=True)
    message = str(exc) if settings.LOG_LEVEL == "DEBUG" else "An unexpected error occurred"
    return error_response(
        status.HTTP_500_INTERNAL_SERVER_ERROR, "Internal server error", message=message
    )


# Health
@app.get("/health", tags=["health"])
async def health_check():
    """Liveness plus database reachability."""
    return {
        "status": "healthy",
        "service": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "database": "healthy" if check_db_connection() else "unhealthy",
    }


@app.get("/health/detailed", tags=["health"])
def detailed_health_check(db: Session = Depends(get_db)):
    """
    Dependencies the lifecycle protocol relies on.

    Checks:
    - Database (transitions, outbox and ledger live there)
    - MinIO bucket the reclamation worker deletes from
    - Reclamation backlog per kind (also refreshes the pending gauge)

    ``overall`` is ``degraded`` when any check fails.
    """
    report: Dict[str, Any] = {
        "overall": "healthy",
        "services": {},
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }

    if check_db_connection():
        report["services"]["database"] = {"status": "healthy"}
        report["reclamation_pending"] = ReclamationOutbox(db).pending_counts()
    else:
        report["services"]["database"] = {"status": "unhealthy", "error": "Connection failed"}
        report["overall"] = "degraded"

    try:
        bucket_found = get_minio_client().bucket_exists(settings.MINIO_BUCKET)
    except Exception as e:
        logger.warning(f"MinIO health check failed: {e}")
        report["services"]["minio"] = {"status": "unhealthy", "error": str(e)}
        report["overall"] = "degraded"
    else:
        report["services"]["minio"] = {
            "status": "healthy" if bucket_found else "unhealthy",
            "bucket": settings.MINIO_BUCKET,
        }
        if not bucket_found:
            report["overall"] = "degraded"

    return report


app.include_router(api_router, prefix=settings.API_V1_PREFIX)


@app.get("/metrics", tags=["monitoring"])
async def metrics():
    """
    Prometheus exposition. Not itself tracked by the metrics middleware.

    Covers API requests, lifecycle transitions and cascades, the reclamation
    outbox, batch jobs and usage rollups.
    """
    app_uptime_seconds.set(time.time() - _app_start_time)
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)


@app.get("/", tags=["root"])
async def root():
    return {
        "service": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "docs": "/docs",
        "health": "/health",
        "metrics": "/metrics",
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "app.main:app",
        host=settings.API_HOST,
        port=settings.API_PORT,
        log_level=settings.LOG_LEVEL.lower(),
    )
