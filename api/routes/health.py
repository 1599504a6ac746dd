"""Health check API endpoint."""

from __future__ import annotations

import asyncio
import time
from typing import Any, Dict, Literal, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from api.dependencies import get_store
from core.health import HealthChecker
from core.persistence.interfaces import QuoteStore

router = APIRouter(prefix="/system/health", tags=["health"])

# Track API start time
_api_start_time = time.time()


class ComponentHealth(BaseModel):
    """Health status for a single component."""

    status: Literal["ok", "degraded", "error"]
    message: str
    latency_ms: Optional[float] = None
    details: Optional[Dict[str, Any]] = None


@router.get("")
async def health_check(store: QuoteStore = Depends(get_store)) -> dict[str, Any]:
    """Get system health status.

    Returns health status for:
    - Database connectivity and latency
    - Ingestion freshness (age of the newest stored snapshot)
    - API uptime
    """
    checker = HealthChecker(store)

    # Run blocking DB checks in thread pool to avoid blocking event loop
    checks = await asyncio.to_thread(checker.check_all)

    result: dict[str, Any] = {
        "api": {
            "status": "ok",
            "uptime_seconds": int(time.time() - _api_start_time),
            "message": "API running",
        }
    }

    for component, status in checks.items():
        result[component] = ComponentHealth(
            status=status.status,
            message=status.message or "",
            latency_ms=status.latency_ms,
            details=status.details or None,
        ).model_dump(exclude_none=True)

    # Overall status is worst of all components
    all_statuses = [result["api"]["status"]] + [v.status for v in checks.values()]
    if "error" in all_statuses:
        overall_status = "error"
    elif "degraded" in all_statuses:
        overall_status = "degraded"
    else:
        overall_status = "ok"

    result["overall"] = {"status": overall_status}
    return result
