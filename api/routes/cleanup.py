"""API routes for retention cleanup of stored options data."""

from __future__ import annotations

import asyncio
import logging
import time
from datetime import datetime, timezone
from typing import Any, Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel

from api.dependencies import get_store, require_api_key
from core.persistence.interfaces import QuoteStore
from core.retention import ALL_SYMBOLS, DEFAULT_KEEP_HOURS, keep_duration_from_hours

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/cleanup-options", tags=["cleanup"], dependencies=[Depends(require_api_key)])


class CleanupRequest(BaseModel):
    symbols: Optional[list[str]] = None  # None or empty means all symbols
    keepHours: float = DEFAULT_KEEP_HOURS
    dryRun: bool = False


async def _run_cleanup(
    store: QuoteStore,
    *,
    symbols: Optional[list[str]],
    keep_hours: float,
    dry_run: bool,
) -> dict[str, Any]:
    keep_duration = keep_duration_from_hours(keep_hours)
    selection = symbols if symbols else ALL_SYMBOLS

    if symbols:
        logger.info("Cleaning up symbols: %s (keeping last %s hours)", ", ".join(symbols), keep_hours)
    else:
        logger.info("Cleaning up all symbols (keeping last %s hours)", keep_hours)

    started = time.monotonic()
    result = await asyncio.to_thread(store.cleanup, symbols=selection, keep_duration=keep_duration, dry_run=dry_run)
    duration_ms = int((time.monotonic() - started) * 1000)

    logger.info(
        "Cleanup completed in %dms: %d records %s",
        duration_ms,
        result.would_delete_count if dry_run else result.total_deleted,
        "would be deleted" if dry_run else "deleted",
    )

    return {
        "success": True,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "duration_ms": duration_ms,
        "parameters": {"symbols": symbols or None, "keepHours": keep_hours, "dryRun": dry_run},
        "result": result.to_dict(),
    }


@router.post("")
async def cleanup_options(payload: CleanupRequest, store: QuoteStore = Depends(get_store)) -> dict[str, Any]:
    return await _run_cleanup(store, symbols=payload.symbols, keep_hours=payload.keepHours, dry_run=payload.dryRun)


@router.get("")
async def cleanup_options_get(
    symbols: Optional[str] = Query(None, description="Comma-separated symbols; omit for all"),
    keepHours: float = Query(DEFAULT_KEEP_HOURS, description="Hours of recent data to keep"),
    dryRun: bool = Query(False, description="Preview without deleting"),
    store: QuoteStore = Depends(get_store),
) -> dict[str, Any]:
    parsed = [s.strip() for s in symbols.split(",") if s.strip()] if symbols else None
    return await _run_cleanup(store, symbols=parsed, keep_hours=keepHours, dry_run=dryRun)
