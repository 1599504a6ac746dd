from __future__ import annotations

from datetime import datetime, timedelta
from typing import Any, Optional, Protocol, Sequence

from core.retention import SymbolSelection
from core.types import AggregateRow, CleanupResult, HealthStatus, QuoteRecord, UpsertSummary


class QuoteStore(Protocol):
    def upsert(self, *, records: Sequence[QuoteRecord]) -> UpsertSummary:
        """Insert or update quotes keyed by option symbol, all-or-nothing."""

    def cleanup(
        self,
        *,
        symbols: SymbolSelection,
        keep_duration: timedelta,
        dry_run: bool = False,
    ) -> CleanupResult:
        """Delete (or preview deleting) quotes older than now - keep_duration."""

    def latest(self, *, symbol: str, limit: int = 100) -> Sequence[QuoteRecord]:
        """Most recently observed quotes for an underlying symbol."""

    def range(self, *, symbol: str, start: Any, end: Any = None) -> Sequence[QuoteRecord]:
        """Quotes with expiration_date within [start, end]."""

    def aggregate(self, *, symbols: Sequence[str], start: Any, end: Any = None) -> Sequence[AggregateRow]:
        """Mid prices grouped by (expiration_date, strike)."""

    def list_distinct_symbols(self) -> Sequence[str]:
        """Distinct underlying symbols currently stored."""

    def newest_observed_at(self, *, symbol: str | None = None) -> Optional[datetime]:
        """Latest observation time, overall or for one symbol."""

    def health_check(self) -> HealthStatus:
        """Connectivity and latency check. Never raises."""
