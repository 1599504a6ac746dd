"""FastAPI application for the options quote store.

This module provides the HTTP surface for:
- GET /health - Database connectivity and row count
- GET /system/health - Database, ingestion freshness and API uptime
- GET /options-data - Latest snapshots or an expiration range for one symbol
- GET /options-data/aggregate - Mid sums per expiration and strike
- GET /options-data/symbols - Distinct stored symbols
- POST /options-data - Upsert a batch of collector records
- POST|GET /cleanup-options - Retention cleanup (dry-run or live)

Requirements:
- DATABASE_URL must be set in environment
- OPTIONS_API_KEY must be set for the options and cleanup endpoints
"""

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any, AsyncIterator

from fastapi import Depends, FastAPI, Request
from fastapi.responses import JSONResponse

from api.dependencies import Unauthorized, get_store
from api.routes import cleanup, health, options
from core.errors import StoreConnectionError, StoreError, ValidationError
from core.persistence.interfaces import QuoteStore

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    yield
    store = getattr(app.state, "store", None)
    pool = getattr(store, "pool", None)
    if pool is not None:
        pool.dispose()
        logger.info("Database pool disposed")


app = FastAPI(
    title="Options Quote Store API",
    description="Point-in-time option quote snapshots: ingestion, queries and retention cleanup",
    version="1.0.0",
    lifespan=lifespan,
)

app.include_router(health.router)
app.include_router(options.router)
app.include_router(cleanup.router)


def _error_response(status_code: int, message: str, headers: dict[str, str] | None = None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={
            "success": False,
            "error": message,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        },
        headers=headers,
    )


@app.get("/health")
async def health_endpoint(store: QuoteStore = Depends(get_store)) -> Any:
    """Health check endpoint.

    Returns:
        JSON with database connectivity, server time and total row count.
        Status 503 when the database is unreachable.
    """
    status = await asyncio.to_thread(store.health_check)
    body = {
        "status": status.status,
        "message": status.message,
        "latency_ms": status.latency_ms,
        "database": status.details or {},
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }
    if status.status == "error":
        return JSONResponse(status_code=503, content=body)
    return body


@app.exception_handler(Unauthorized)
async def unauthorized_handler(_request: Request, _exc: Unauthorized) -> JSONResponse:
    return _error_response(401, "Unauthorized", headers={"WWW-Authenticate": "ApiKey"})


@app.exception_handler(ValidationError)
async def validation_error_handler(_request: Request, exc: ValidationError) -> JSONResponse:
    return _error_response(400, exc.message)


@app.exception_handler(StoreConnectionError)
async def connection_error_handler(_request: Request, exc: StoreConnectionError) -> JSONResponse:
    logger.error("Database unavailable: %s", exc)
    return _error_response(503, "Database unavailable")


@app.exception_handler(StoreError)
async def store_error_handler(_request: Request, exc: StoreError) -> JSONResponse:
    logger.error("Store operation failed: %s", exc)
    return _error_response(500, exc.message)


@app.exception_handler(Exception)
async def global_exception_handler(_request: Request, exc: Exception) -> JSONResponse:
    """Global exception handler to ensure consistent error responses."""
    logger.exception("Unhandled error: %s", exc)
    return _error_response(500, "Internal server error")
