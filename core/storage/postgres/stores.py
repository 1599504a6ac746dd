from __future__ import annotations

import logging
import time
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Any, Callable, Optional, Sequence

from sqlalchemy import text
from sqlalchemy.engine import Connection
from sqlalchemy.exc import SQLAlchemyError

from core.errors import StoreError, TransactionError, ValidationError
from core.quotes import parse_datetime, underlying_symbol_for, validate_quote
from core.retention import (
    SymbolSelection,
    compute_cutoff,
    is_all_symbols,
    normalize_symbols,
    summarize_symbol,
    validate_keep_duration,
)
from core.storage.postgres.pool import ConnectionPool
from core.types import (
    PRICE_FIELDS,
    AggregateRow,
    CleanupResult,
    HealthStatus,
    QuoteRecord,
    SymbolCleanup,
    UpsertOutcome,
    UpsertSummary,
)

logger = logging.getLogger(__name__)

DEFAULT_LATEST_LIMIT = 100
FAR_FUTURE = datetime(9999, 12, 31, 23, 59, 59, tzinfo=timezone.utc)

_QUOTE_COLUMNS = """
    id, symbol, option_symbol,
    expiration_date, expiration_type, strike, option_type,
    ask, bid, mid, close, high, last, low, open, previous_close,
    timestamp, created_at
"""

# Identity columns (symbol, expiration, strike, types) are never touched on
# conflict; only prices and the observation time move.
_UPSERT_SQL = """
    INSERT INTO options_data (
        symbol, option_symbol,
        expiration_date, expiration_type, strike, option_type,
        ask, bid, mid, close, high, last, low, open, previous_close,
        timestamp
    )
    VALUES (
        :symbol, :option_symbol,
        :expiration_date, :expiration_type, :strike, :option_type,
        :ask, :bid, :mid, :close, :high, :last, :low, :open, :previous_close,
        :timestamp
    )
    ON CONFLICT (option_symbol)
    DO UPDATE SET
        ask = EXCLUDED.ask,
        bid = EXCLUDED.bid,
        mid = EXCLUDED.mid,
        close = EXCLUDED.close,
        high = EXCLUDED.high,
        last = EXCLUDED.last,
        low = EXCLUDED.low,
        open = EXCLUDED.open,
        previous_close = EXCLUDED.previous_close,
        timestamp = EXCLUDED.timestamp
    RETURNING id, (xmax = 0) AS inserted
"""


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _require_symbol(symbol: Any, operation: str) -> str:
    if not isinstance(symbol, str) or not symbol.strip():
        raise ValidationError("symbol is required", operation=operation)
    return symbol.strip()


def _row_to_quote(row: Sequence[Any]) -> QuoteRecord:
    return QuoteRecord(
        id=row[0],
        underlying_symbol=row[1],
        option_symbol=row[2],
        expiration_date=row[3],
        expiration_type=row[4],
        strike=row[5],
        option_type=row[6],
        ask=row[7],
        bid=row[8],
        mid=row[9],
        close=row[10],
        high=row[11],
        last=row[12],
        low=row[13],
        open=row[14],
        previous_close=row[15],
        observed_at=row[16],
        created_at=row[17],
    )


class PostgresQuoteStore:
    """PostgreSQL-backed point-in-time store for option quote snapshots.

    Owns no global state: the connection pool is passed in and every public
    method is an independent unit of work against `options_data`.
    """

    def __init__(self, *, pool: ConnectionPool, clock: Callable[[], datetime] | None = None) -> None:
        self._pool = pool
        self._clock = clock or _utcnow

    @property
    def pool(self) -> ConnectionPool:
        return self._pool

    def _now(self) -> datetime:
        return self._clock()

    def _fetch_all(self, *, operation: str, stmt: Any, params: dict[str, Any]) -> list[Any]:
        with self._pool.connection(operation=operation) as conn:
            try:
                return list(conn.execute(stmt, params).fetchall())
            except SQLAlchemyError as exc:
                logger.error("Query failed during %s: %s", operation, type(exc).__name__)
                raise StoreError(f"{operation} query failed: {exc}", operation=operation) from exc

    # ---- Ingestion

    def upsert(self, *, records: Sequence[QuoteRecord]) -> UpsertSummary:
        """Insert or update a batch of quotes atomically.

        Records are applied in input order inside a single transaction. Any
        failing row rolls back the whole batch.
        """
        batch = list(records)
        for record in batch:
            validate_quote(record)

        if not batch:
            return UpsertSummary(total_processed=0, inserted_count=0, updated_count=0)

        stmt = text(_UPSERT_SQL)
        outcomes: list[UpsertOutcome] = []

        with self._pool.transaction(operation="upsert") as conn:
            for record in batch:
                outcomes.append(self._upsert_one(conn, stmt, record))

        inserted = sum(1 for o in outcomes if o.action == "inserted")
        updated = len(outcomes) - inserted
        logger.info("Upserted %d options records: %d inserted, %d updated", len(outcomes), inserted, updated)

        return UpsertSummary(
            total_processed=len(outcomes),
            inserted_count=inserted,
            updated_count=updated,
            outcomes=tuple(outcomes),
        )

    def _upsert_one(self, conn: Connection, stmt: Any, record: QuoteRecord) -> UpsertOutcome:
        params: dict[str, Any] = {
            "symbol": underlying_symbol_for(record.option_symbol),
            "option_symbol": record.option_symbol,
            "expiration_date": record.expiration_date,
            "expiration_type": record.expiration_type,
            "strike": record.strike,
            "option_type": record.option_type,
            "timestamp": record.observed_at,
        }
        for name in PRICE_FIELDS:
            params[name] = getattr(record, name)

        try:
            row = conn.execute(stmt, params).fetchone()
        except SQLAlchemyError as exc:
            raise TransactionError(
                f"upsert failed: {exc}",
                operation="upsert",
                symbol=record.option_symbol,
            ) from exc

        if row is None:
            raise TransactionError("upsert returned no row", operation="upsert", symbol=record.option_symbol)

        return UpsertOutcome(
            option_symbol=record.option_symbol,
            id=int(row[0]),
            action="inserted" if row[1] else "updated",
        )

    # ---- Retention cleanup

    def cleanup(
        self,
        *,
        symbols: SymbolSelection,
        keep_duration: timedelta,
        dry_run: bool = False,
    ) -> CleanupResult:
        """Delete (or preview deleting) quotes observed before now - keep_duration.

        Dry runs and live runs share this path: a dry run skips the DELETEs and
        rolls the transaction back, a live run commits once after every symbol
        has been processed.
        """
        validate_keep_duration(keep_duration)
        cutoff = compute_cutoff(self._now(), keep_duration)

        if is_all_symbols(symbols):
            targets = tuple(self.list_distinct_symbols())
        else:
            targets = normalize_symbols(symbols)

        if not targets:
            logger.info("No symbols found to clean up")
            return CleanupResult(
                success=True,
                dry_run=dry_run,
                cutoff_time=cutoff,
                keep_duration=keep_duration,
                symbols_processed=0,
                total_deleted=0,
                would_delete_count=0,
            )

        per_symbol: list[SymbolCleanup] = []

        with self._pool.transaction(operation="cleanup", commit=not dry_run) as conn:
            stats = self._symbol_stats(conn, targets, cutoff)
            for symbol in targets:
                total, stale, oldest, newest = stats.get(symbol, (0, 0, None, None))
                deleted = 0
                if stale and not dry_run:
                    deleted = self._delete_stale(conn, symbol, cutoff)
                per_symbol.append(
                    summarize_symbol(
                        symbol=symbol,
                        total_records=total,
                        stale_records=stale,
                        oldest_observed_at=oldest,
                        newest_observed_at=newest,
                        deleted_records=deleted,
                        dry_run=dry_run,
                    )
                )

        total_deleted = sum(item.deleted_records for item in per_symbol)
        would_delete = sum(item.stale_records for item in per_symbol)

        if dry_run:
            logger.info(
                "Cleanup dry run: %d records would be deleted across %d symbols (cutoff %s)",
                would_delete,
                len(per_symbol),
                cutoff.isoformat(),
            )
        else:
            logger.info(
                "Cleanup deleted %d records across %d symbols (cutoff %s)",
                total_deleted,
                len(per_symbol),
                cutoff.isoformat(),
            )

        return CleanupResult(
            success=True,
            dry_run=dry_run,
            cutoff_time=cutoff,
            keep_duration=keep_duration,
            symbols_processed=len(per_symbol),
            total_deleted=total_deleted,
            would_delete_count=would_delete,
            per_symbol=tuple(per_symbol),
        )

    def _symbol_stats(
        self,
        conn: Connection,
        symbols: Sequence[str],
        cutoff: datetime,
    ) -> dict[str, tuple[int, int, Optional[datetime], Optional[datetime]]]:
        stmt = text(
            """
            SELECT
                symbol,
                COUNT(*) AS total_records,
                COUNT(*) FILTER (WHERE timestamp < :cutoff) AS stale_records,
                MIN(timestamp) AS oldest_timestamp,
                MAX(timestamp) AS newest_timestamp
            FROM options_data
            WHERE symbol = ANY(:symbols)
            GROUP BY symbol
            """
        )
        try:
            rows = conn.execute(stmt, {"symbols": list(symbols), "cutoff": cutoff}).fetchall()
        except SQLAlchemyError as exc:
            raise TransactionError(f"cleanup accounting failed: {exc}", operation="cleanup") from exc

        return {row[0]: (int(row[1] or 0), int(row[2] or 0), row[3], row[4]) for row in rows}

    def _delete_stale(self, conn: Connection, symbol: str, cutoff: datetime) -> int:
        stmt = text(
            """
            DELETE FROM options_data
            WHERE symbol = :symbol
              AND timestamp < :cutoff
            """
        )
        try:
            result = conn.execute(stmt, {"symbol": symbol, "cutoff": cutoff})
        except SQLAlchemyError as exc:
            raise TransactionError(f"cleanup delete failed: {exc}", operation="cleanup", symbol=symbol) from exc
        return int(result.rowcount or 0)

    # ---- Queries

    def latest(self, *, symbol: str, limit: int = DEFAULT_LATEST_LIMIT) -> Sequence[QuoteRecord]:
        """Most recently observed quotes for an underlying symbol."""
        symbol = _require_symbol(symbol, "latest")
        if isinstance(limit, bool) or not isinstance(limit, int):
            raise ValidationError(f"limit must be an integer, got {limit!r}", operation="latest", symbol=symbol)
        if limit < 0:
            raise ValidationError("limit must not be negative", operation="latest", symbol=symbol)
        if limit == 0:
            return []

        stmt = text(
            f"""
            SELECT {_QUOTE_COLUMNS}
            FROM options_data
            WHERE symbol = :symbol
            ORDER BY timestamp DESC, expiration_date, strike
            LIMIT :limit
            """
        )
        rows = self._fetch_all(operation="latest", stmt=stmt, params={"symbol": symbol, "limit": limit})
        return [_row_to_quote(row) for row in rows]

    def range(self, *, symbol: str, start: Any, end: Any = None) -> Sequence[QuoteRecord]:
        """Quotes whose expiration falls within [start, end].

        `end=None` leaves the range open towards the future.
        """
        symbol = _require_symbol(symbol, "range")
        start_dt, end_dt = self._expiration_bounds(start, end, operation="range")

        stmt = text(
            f"""
            SELECT {_QUOTE_COLUMNS}
            FROM options_data
            WHERE symbol = :symbol
              AND expiration_date BETWEEN :start AND :end
            ORDER BY expiration_date, strike, option_type
            """
        )
        rows = self._fetch_all(
            operation="range",
            stmt=stmt,
            params={"symbol": symbol, "start": start_dt, "end": end_dt},
        )
        return [_row_to_quote(row) for row in rows]

    def aggregate(self, *, symbols: Sequence[str], start: Any, end: Any = None) -> Sequence[AggregateRow]:
        """Mid prices summed per (expiration_date, strike) across one or more roots.

        Rows without a mid price are left out of both sums and counts. Passing
        several roots (e.g. SPX and SPXW) merges them into one book.
        """
        roots = normalize_symbols(symbols, operation="aggregate")
        start_dt, end_dt = self._expiration_bounds(start, end, operation="aggregate")

        stmt = text(
            """
            SELECT
                expiration_date,
                strike,
                COALESCE(SUM(mid) FILTER (WHERE option_type = 'Call'), 0) AS call_mid_sum,
                COALESCE(SUM(mid) FILTER (WHERE option_type = 'Put'), 0) AS put_mid_sum,
                SUM(mid) AS total_mid_sum,
                COUNT(*) AS option_count,
                COUNT(*) FILTER (WHERE option_type = 'Call') AS call_count,
                COUNT(*) FILTER (WHERE option_type = 'Put') AS put_count,
                ARRAY_AGG(DISTINCT symbol ORDER BY symbol) AS symbols
            FROM options_data
            WHERE symbol = ANY(:symbols)
              AND expiration_date BETWEEN :start AND :end
              AND mid IS NOT NULL
            GROUP BY expiration_date, strike
            ORDER BY expiration_date, strike
            """
        )
        rows = self._fetch_all(
            operation="aggregate",
            stmt=stmt,
            params={"symbols": list(roots), "start": start_dt, "end": end_dt},
        )

        return [
            AggregateRow(
                expiration_date=row[0],
                strike=row[1],
                call_mid_sum=Decimal(row[2]),
                put_mid_sum=Decimal(row[3]),
                total_mid_sum=Decimal(row[4]),
                option_count=int(row[5]),
                call_count=int(row[6]),
                put_count=int(row[7]),
                contributing_symbols=tuple(row[8] or ()),
            )
            for row in rows
        ]

    def list_distinct_symbols(self) -> Sequence[str]:
        stmt = text("SELECT DISTINCT symbol FROM options_data ORDER BY symbol")
        rows = self._fetch_all(operation="list_distinct_symbols", stmt=stmt, params={})
        return [row[0] for row in rows]

    def newest_observed_at(self, *, symbol: str | None = None) -> Optional[datetime]:
        """Latest observation time overall, or for one underlying symbol."""
        if symbol is None:
            stmt = text("SELECT MAX(timestamp) FROM options_data")
            params: dict[str, Any] = {}
        else:
            stmt = text("SELECT MAX(timestamp) FROM options_data WHERE symbol = :symbol")
            params = {"symbol": _require_symbol(symbol, "newest_observed_at")}

        rows = self._fetch_all(operation="newest_observed_at", stmt=stmt, params=params)
        return rows[0][0] if rows else None

    def health_check(self) -> HealthStatus:
        """Check connectivity, measure latency and report the stored row count."""
        try:
            with self._pool.connection(operation="health_check") as conn:
                started = time.perf_counter()
                server_time = conn.execute(text("SELECT NOW()")).scalar()
                latency_ms = (time.perf_counter() - started) * 1000
                row_count = conn.execute(text("SELECT COUNT(*) FROM options_data")).scalar()
        except (StoreError, SQLAlchemyError) as exc:
            return HealthStatus(
                status="error",
                message=f"Database error: {type(exc).__name__}",
                details={"error": str(exc)},
            )

        return HealthStatus(
            status="ok",
            latency_ms=round(latency_ms, 2),
            message="Database connected",
            details={
                "server_time": server_time.isoformat() if isinstance(server_time, datetime) else server_time,
                "row_count": int(row_count or 0),
                "pool": self._pool.status(),
            },
        )

    # ---- helpers

    @staticmethod
    def _expiration_bounds(start: Any, end: Any, *, operation: str) -> tuple[datetime, datetime]:
        if start is None or start == "":
            raise ValidationError("start date is required", operation=operation)
        try:
            start_dt = parse_datetime(start, field="startDate")
            end_dt = FAR_FUTURE if end in (None, "") else parse_datetime(end, field="endDate", end_of_day=True)
        except ValidationError as exc:
            raise ValidationError(exc.message, operation=operation) from exc
        if start_dt > end_dt:
            raise ValidationError("startDate must not be after endDate", operation=operation)
        return start_dt, end_dt
