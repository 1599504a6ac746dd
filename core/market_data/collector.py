"""Options chain collection wired to the quote store.

One run fetches the nearest expirations for each configured symbol, pulls the
quote records for every expiration, then (optionally) purges stale rows for
those symbols and upserts the fresh batch. Cleanup always completes before the
upsert starts.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Any, Optional, Sequence

from core.errors import StoreError, ValidationError
from core.market_data.interfaces import QuoteFetcher, TokenProvider
from core.persistence.interfaces import QuoteStore
from core.quotes import normalize_collector_symbol
from core.retention import DEFAULT_KEEP_HOURS, validate_keep_duration
from core.types import EXPIRATION_TYPES, CleanupResult, QuoteRecord, UpsertSummary

logger = logging.getLogger(__name__)

DEFAULT_SYMBOLS: tuple[str, ...] = ("$SPX.X", "$SPXW.X")


@dataclass
class CollectionReport:
    symbols: tuple[str, ...]
    records: list[QuoteRecord] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)
    cleanup: Optional[CleanupResult] = None
    cleanup_error: Optional[str] = None
    upsert: Optional[UpsertSummary] = None
    duration_ms: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "symbols": list(self.symbols),
            "duration_ms": self.duration_ms,
            "summary": {
                "total_records": len(self.records),
                "symbols_processed": len(self.symbols),
                "database_processed": self.upsert.total_processed if self.upsert else 0,
                "database_inserted": self.upsert.inserted_count if self.upsert else 0,
                "database_updated": self.upsert.updated_count if self.upsert else 0,
                "cleanup_deleted": self.cleanup.total_deleted if self.cleanup else 0,
            },
            "errors": list(self.errors),
            "cleanup": self.cleanup.to_dict() if self.cleanup else None,
            "cleanup_error": self.cleanup_error,
            "database": self.upsert.to_dict() if self.upsert else None,
        }


class OptionsCollector:
    def __init__(
        self,
        *,
        fetcher: QuoteFetcher,
        token_provider: TokenProvider,
        store: QuoteStore | None = None,
        symbols: Sequence[str] = DEFAULT_SYMBOLS,
        top_expirations: int = 3,
        expiration_filter: str | None = None,
    ) -> None:
        if not symbols:
            raise ValidationError("at least one symbol is required", operation="collect")
        if top_expirations < 1:
            raise ValidationError("top_expirations must be at least 1", operation="collect")
        if expiration_filter is not None and expiration_filter not in EXPIRATION_TYPES:
            raise ValidationError(
                f"expiration_filter must be one of {', '.join(EXPIRATION_TYPES)}",
                operation="collect",
            )

        self.fetcher = fetcher
        self.token_provider = token_provider
        self.store = store
        self.symbols = tuple(symbols)
        self.top_expirations = top_expirations
        self.expiration_filter = expiration_filter

    def collect(self) -> tuple[list[QuoteRecord], list[str]]:
        """Fetch quote records for every symbol and expiration.

        A failing symbol or expiration is logged and skipped; the rest of the
        run continues. Authentication failures abort the run.
        """
        token = self.token_provider.get_valid_token()
        records: list[QuoteRecord] = []
        errors: list[str] = []

        for symbol in self.symbols:
            try:
                expirations = list(self.fetcher.fetch_expirations(symbol=symbol, token=token))
            except Exception as exc:
                logger.error("Failed to get expirations for %s: %s", symbol, exc)
                errors.append(f"{symbol}: {exc}")
                continue

            if self.expiration_filter:
                expirations = [e for e in expirations if e.type == self.expiration_filter]

            for expiration in expirations[: self.top_expirations]:
                try:
                    batch = self.fetcher.fetch_quote_records(symbol=symbol, expiration=expiration, token=token)
                except Exception as exc:
                    logger.error("Failed to fetch %s %s: %s", symbol, expiration.date.date(), exc)
                    errors.append(f"{symbol} {expiration.date.date().isoformat()}: {exc}")
                    continue
                records.extend(batch)

        logger.info("Collected %d options records for %s", len(records), ", ".join(self.symbols))
        return records, errors

    def run(
        self,
        *,
        save_to_database: bool = False,
        cleanup_old_data: bool = True,
        keep_duration: timedelta = timedelta(hours=DEFAULT_KEEP_HOURS),
    ) -> CollectionReport:
        """Collect, then clean up and persist when `save_to_database` is set.

        Cleanup failures are reported but do not block the insert. Upsert
        failures propagate to the caller.
        """
        if save_to_database and self.store is None:
            raise ValidationError("a store is required to save to the database", operation="collect")
        if save_to_database and cleanup_old_data:
            validate_keep_duration(keep_duration)

        started = time.monotonic()
        records, errors = self.collect()
        report = CollectionReport(symbols=self.symbols, records=records, errors=errors)

        if save_to_database and cleanup_old_data:
            stored_symbols = [normalize_collector_symbol(s) for s in self.symbols]
            logger.info(
                "Cleaning up old data for %s (keeping last %s)",
                ", ".join(stored_symbols),
                keep_duration,
            )
            try:
                report.cleanup = self.store.cleanup(symbols=stored_symbols, keep_duration=keep_duration, dry_run=False)
            except StoreError as exc:
                logger.error("Cleanup failed, continuing with insert: %s", exc)
                report.cleanup_error = str(exc)

        if save_to_database:
            if records:
                report.upsert = self.store.upsert(records=records)
            else:
                logger.warning("No data to save to database (collection returned no records)")

        report.duration_ms = int((time.monotonic() - started) * 1000)
        return report
