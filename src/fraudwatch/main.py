"""
FraudWatch - Banking operations fraud analytics

FastAPI application entry point.
"""

import logging
import time
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any
from uuid import uuid4

from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from slowapi.util import get_remote_address
from starlette.middleware.base import BaseHTTPMiddleware

from fraudwatch import __version__
from fraudwatch.anomaly.models import ComputeInvariantViolation, MalformedRecordError
from fraudwatch.config import settings
from fraudwatch.ingestion.base_adapter import RetrievalError
from fraudwatch.ingestion.interval_api import IntervalTransactionsAdapter
from fraudwatch.refresh.scheduler import RefreshScheduler

logging.basicConfig(
    level=getattr(logging, settings.log_level),
    format="%(asctime)s %(levelname)-8s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


# One shared budget per client address across all endpoints
limiter = Limiter(
    key_func=get_remote_address,
    default_limits=[f"{settings.rate_limit_requests} per {settings.rate_limit_window_seconds} seconds"],
)


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Log each request with its status and latency, tagged with a request id."""

    async def dispatch(self, request: Request, call_next) -> Response:
        request_id = request.headers.get("X-Request-ID") or uuid4().hex[:12]
        started = time.perf_counter()

        response = await call_next(request)

        elapsed = time.perf_counter() - started
        response.headers["X-Request-ID"] = request_id
        response.headers["X-Process-Time"] = f"{elapsed:.4f}"

        client = request.client.host if request.client else "-"
        logger.info(
            f"{request.method} {request.url.path} -> {response.status_code} "
            f"in {elapsed * 1000:.1f}ms [{request_id}] client={client}"
        )
        return response


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Wire the snapshot source and refresh scheduler for the app's lifetime."""
    source = IntervalTransactionsAdapter()
    scheduler = RefreshScheduler(source)
    app.state.source = source
    app.state.scheduler = scheduler

    if settings.scheduler_enabled:
        await scheduler.start()
    logger.info(
        f"FraudWatch {__version__} ready (source={source.source_name}, "
        f"timer={'on' if settings.scheduler_enabled else 'off'})"
    )

    yield

    await scheduler.stop()
    await source.close()
    logger.info("FraudWatch stopped")


app = FastAPI(
    title="FraudWatch",
    description="Fraud-pattern detection and customer risk scoring for banking operations",
    version=__version__,
    lifespan=lifespan,
    docs_url=None if settings.is_production else "/docs",
    redoc_url=None if settings.is_production else "/redoc",
    openapi_url=None if settings.is_production else "/openapi.json",
)

app.state.limiter = limiter
app.add_middleware(SlowAPIMiddleware)
app.add_middleware(RequestLoggingMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=settings.cors_allow_credentials,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["Content-Type", "X-Request-ID"],
    expose_headers=["X-Request-ID", "X-Process-Time"],
    max_age=600,
)


@app.exception_handler(RateLimitExceeded)
async def rate_limit_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    return JSONResponse(
        status_code=429,
        content={
            "error": "Rate limit exceeded",
            "message": f"Request budget is {exc.detail}",
        },
        headers={"Retry-After": str(settings.rate_limit_window_seconds)},
    )


@app.exception_handler(RetrievalError)
async def retrieval_error_handler(request: Request, exc: RetrievalError) -> JSONResponse:
    """Upstream snapshot could not be fetched; the client should offer a retry."""
    return JSONResponse(
        status_code=502,
        content={
            "error": "Snapshot retrieval failed",
            "message": str(exc),
            "upstream_status": exc.status_code,
            "retryable": True,
        },
    )


@app.exception_handler(MalformedRecordError)
async def malformed_record_handler(request: Request, exc: MalformedRecordError) -> JSONResponse:
    """Snapshot rejected because a record failed validation."""
    return JSONResponse(
        status_code=422,
        content={
            "error": "Malformed snapshot",
            "message": str(exc),
            "record_index": exc.index,
        },
    )


@app.exception_handler(ComputeInvariantViolation)
async def invariant_violation_handler(
    request: Request, exc: ComputeInvariantViolation
) -> JSONResponse:
    """Snapshot rejected because a record would corrupt the aggregates."""
    return JSONResponse(
        status_code=422,
        content={
            "error": "Invalid snapshot",
            "message": str(exc),
        },
    )


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    """Last-resort handler; hides exception details in production."""
    logger.exception(f"Unhandled error on {request.method} {request.url.path}: {exc}")

    content = {"error": "Internal server error"}
    if not settings.is_production:
        content["message"] = str(exc)
        content["type"] = type(exc).__name__
    return JSONResponse(status_code=500, content=content)


@app.get("/health")
async def health(request: Request) -> dict[str, Any]:
    """
    Service health.

    Degraded when the transactions API is unreachable. Also reports when the
    analytics were last refreshed.
    """
    upstream_ok = await request.app.state.source.healthcheck()
    last_job = request.app.state.scheduler.latest_job

    return {
        "status": "healthy" if upstream_ok else "degraded",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "version": __version__,
        "services": {
            "transactions_api": {"status": "healthy" if upstream_ok else "unhealthy"},
        },
        "last_refresh": (
            last_job.completed_at.isoformat() if last_job and last_job.completed_at else None
        ),
    }


@app.get("/")
async def root() -> dict[str, str]:
    return {
        "name": "FraudWatch",
        "description": "Fraud-pattern detection and customer risk scoring",
        "version": __version__,
        "docs": "/docs",
        "health": "/health",
    }


from fraudwatch.api.routes import fraud_router

app.include_router(fraud_router, prefix="/api/v1/fraud", tags=["fraud"])


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("fraudwatch.main:app", host="0.0.0.0", port=8000)
