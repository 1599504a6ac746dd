"""API routes for reading and ingesting options quote snapshots."""

from __future__ import annotations

import asyncio
import time
from datetime import datetime, timezone
from typing import Any, Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field

from api.dependencies import get_store, require_api_key
from core.errors import ValidationError
from core.persistence.interfaces import QuoteStore
from core.quotes import quote_from_mapping

router = APIRouter(prefix="/options-data", tags=["options"], dependencies=[Depends(require_api_key)])


def _timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


def _split_symbols(raw: Optional[str]) -> list[str]:
    if not raw:
        return []
    return [s.strip() for s in raw.split(",") if s.strip()]


class IngestRequest(BaseModel):
    """Flat collector records, one mapping per option contract."""

    records: list[dict[str, Any]] = Field(default_factory=list)


@router.get("")
async def get_options_data(
    symbol: Optional[str] = Query(None, description="Underlying symbol (e.g., SPX)"),
    startDate: Optional[str] = Query(None, description="Expiration range start (ISO date)"),
    endDate: Optional[str] = Query(None, description="Expiration range end (ISO date), open-ended if omitted"),
    limit: int = Query(100, description="Maximum rows for the latest-N view"),
    store: QuoteStore = Depends(get_store),
) -> dict[str, Any]:
    """Latest snapshots for a symbol, or a range by expiration when startDate is given."""
    if not symbol:
        raise ValidationError("Symbol parameter is required", operation="options-data")

    if startDate:
        data = await asyncio.to_thread(store.range, symbol=symbol, start=startDate, end=endDate)
    else:
        data = await asyncio.to_thread(store.latest, symbol=symbol, limit=limit)

    return {
        "success": True,
        "timestamp": _timestamp(),
        "parameters": {
            "symbol": symbol,
            "startDate": startDate,
            "endDate": endDate,
            "limit": limit,
        },
        "summary": {"total_records": len(data)},
        "data": [quote.to_dict() for quote in data],
    }


@router.get("/aggregate")
async def get_aggregated_options_data(
    symbols: Optional[str] = Query(None, description="Comma-separated underlying symbols (e.g., SPX,SPXW)"),
    startDate: Optional[str] = Query(None, description="Expiration range start (ISO date)"),
    endDate: Optional[str] = Query(None, description="Expiration range end (ISO date)"),
    store: QuoteStore = Depends(get_store),
) -> dict[str, Any]:
    """Mid prices summed per expiration and strike, optionally across several roots."""
    roots = _split_symbols(symbols)
    if not roots:
        raise ValidationError("symbols parameter is required", operation="aggregate")

    rows = await asyncio.to_thread(store.aggregate, symbols=roots, start=startDate, end=endDate)

    return {
        "success": True,
        "timestamp": _timestamp(),
        "parameters": {"symbols": roots, "startDate": startDate, "endDate": endDate},
        "summary": {"total_groups": len(rows)},
        "data": [row.to_dict() for row in rows],
    }


@router.get("/symbols")
async def list_symbols(store: QuoteStore = Depends(get_store)) -> dict[str, Any]:
    symbols = await asyncio.to_thread(store.list_distinct_symbols)
    return {"success": True, "timestamp": _timestamp(), "symbols": list(symbols)}


@router.post("")
async def ingest_options_data(payload: IngestRequest, store: QuoteStore = Depends(get_store)) -> dict[str, Any]:
    """Upsert a batch of collector records in one transaction."""
    observed_at = datetime.now(timezone.utc)
    records = [quote_from_mapping(raw, observed_at=observed_at) for raw in payload.records]

    started = time.monotonic()
    summary = await asyncio.to_thread(store.upsert, records=records)
    duration_ms = int((time.monotonic() - started) * 1000)

    return {
        "success": True,
        "timestamp": _timestamp(),
        "duration_ms": duration_ms,
        "database": summary.to_dict(),
    }
