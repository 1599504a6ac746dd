from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Any, Literal, Optional

ExpirationType = Literal["Weekly", "Monthly"]
OptionType = Literal["Put", "Call"]
UpsertAction = Literal["inserted", "updated"]
CleanupAction = Literal["deleted", "would_delete", "no_action"]

EXPIRATION_TYPES: tuple[str, ...] = ("Weekly", "Monthly")
OPTION_TYPES: tuple[str, ...] = ("Put", "Call")

# Price columns that are replaced on every upsert of an existing contract.
PRICE_FIELDS: tuple[str, ...] = (
    "ask",
    "bid",
    "mid",
    "close",
    "high",
    "last",
    "low",
    "open",
    "previous_close",
)


@dataclass(frozen=True)
class QuoteRecord:
    """One observed quote snapshot for a single option contract.

    `option_symbol` is the identity key. `id` and `created_at` are assigned by
    storage and are only populated on records read back from the store.
    """

    underlying_symbol: str
    option_symbol: str
    expiration_date: datetime
    expiration_type: ExpirationType
    strike: Decimal
    option_type: OptionType
    observed_at: datetime
    ask: Optional[Decimal] = None
    bid: Optional[Decimal] = None
    mid: Optional[Decimal] = None
    close: Optional[Decimal] = None
    high: Optional[Decimal] = None
    last: Optional[Decimal] = None
    low: Optional[Decimal] = None
    open: Optional[Decimal] = None
    previous_close: Optional[Decimal] = None
    id: Optional[int] = None
    created_at: Optional[datetime] = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "id": self.id,
            "symbol": self.underlying_symbol,
            "option_symbol": self.option_symbol,
            "expiration_date": self.expiration_date.isoformat(),
            "expiration_type": self.expiration_type,
            "strike": float(self.strike),
            "option_type": self.option_type,
        }
        for name in PRICE_FIELDS:
            value = getattr(self, name)
            data[name] = None if value is None else float(value)
        data["timestamp"] = self.observed_at.isoformat()
        data["created_at"] = self.created_at.isoformat() if self.created_at else None
        return data


@dataclass(frozen=True)
class UpsertOutcome:
    option_symbol: str
    id: int
    action: UpsertAction


@dataclass(frozen=True)
class UpsertSummary:
    total_processed: int
    inserted_count: int
    updated_count: int
    outcomes: tuple[UpsertOutcome, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return {
            "success": True,
            "totalProcessed": self.total_processed,
            "insertedCount": self.inserted_count,
            "updatedCount": self.updated_count,
            "results": [
                {"id": o.id, "option_symbol": o.option_symbol, "action": o.action}
                for o in self.outcomes
            ],
        }


@dataclass(frozen=True)
class SymbolCleanup:
    symbol: str
    total_records: int
    stale_records: int
    kept_records: int
    deleted_records: int
    oldest_observed_at: Optional[datetime]
    newest_observed_at: Optional[datetime]
    action: CleanupAction

    def to_dict(self) -> dict[str, Any]:
        return {
            "symbol": self.symbol,
            "totalRecords": self.total_records,
            "oldRecords": self.stale_records,
            "keptRecords": self.kept_records,
            "deletedRecords": self.deleted_records,
            "oldestTimestamp": self.oldest_observed_at.isoformat() if self.oldest_observed_at else None,
            "newestTimestamp": self.newest_observed_at.isoformat() if self.newest_observed_at else None,
            "action": self.action,
        }


@dataclass(frozen=True)
class CleanupResult:
    """Outcome of one cleanup invocation.

    `total_deleted` counts rows actually removed and is always 0 for a dry run.
    `would_delete_count` is the number of stale rows found, which is what a
    dry run previews.
    """

    success: bool
    dry_run: bool
    cutoff_time: datetime
    keep_duration: timedelta
    symbols_processed: int
    total_deleted: int
    would_delete_count: int
    per_symbol: tuple[SymbolCleanup, ...] = field(default_factory=tuple)

    @property
    def keep_hours(self) -> float:
        return self.keep_duration.total_seconds() / 3600

    def to_dict(self) -> dict[str, Any]:
        return {
            "success": self.success,
            "dryRun": self.dry_run,
            "cutoffTime": self.cutoff_time.isoformat(),
            "keepHours": self.keep_hours,
            "symbolsProcessed": self.symbols_processed,
            "totalDeleted": self.total_deleted,
            "wouldDeleteCount": self.would_delete_count,
            "results": [item.to_dict() for item in self.per_symbol],
        }


@dataclass(frozen=True)
class AggregateRow:
    expiration_date: datetime
    strike: Decimal
    call_mid_sum: Decimal
    put_mid_sum: Decimal
    total_mid_sum: Decimal
    option_count: int
    call_count: int
    put_count: int
    contributing_symbols: tuple[str, ...]

    def to_dict(self) -> dict[str, Any]:
        return {
            "expiration_date": self.expiration_date.isoformat(),
            "strike": float(self.strike),
            "call_mid_sum": float(self.call_mid_sum),
            "put_mid_sum": float(self.put_mid_sum),
            "total_mid_sum": float(self.total_mid_sum),
            "option_count": self.option_count,
            "call_count": self.call_count,
            "put_count": self.put_count,
            "symbols": list(self.contributing_symbols),
        }


@dataclass(frozen=True)
class Expiration:
    """An upstream expiration entry (date plus Weekly/Monthly series)."""

    date: datetime
    type: ExpirationType


@dataclass(frozen=True)
class Token:
    access_token: str
    expires_at: datetime


@dataclass
class HealthStatus:
    """Health status for a component."""

    status: Literal["ok", "degraded", "error"]
    latency_ms: Optional[float] = None
    message: Optional[str] = None
    details: Optional[dict] = None
