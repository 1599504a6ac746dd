#!/usr/bin/env python3
"""Manual cleanup of old options data.

Deletes (or previews deleting) snapshots older than the retention window for
specific symbols or for every symbol in the database.

Usage:
  python -m scripts.cleanup_options_data --symbols AAPL,TSLA --keep-hours 12
  python -m scripts.cleanup_options_data --all --dry-run
  python -m scripts.cleanup_options_data --symbols '$SPX.X' --keep-hours 1

Exit codes:
  0 = success
  1 = failure (arguments, DB connectivity, or cleanup error)

Requirements:
  - DATABASE_URL must be set
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import Optional, Sequence

# Ensure imports work when invoked as a script
_REPO_ROOT = Path(__file__).resolve().parents[1]
if str(_REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(_REPO_ROOT))

from core.errors import StoreError  # noqa: E402
from core.quotes import normalize_collector_symbol  # noqa: E402
from core.retention import ALL_SYMBOLS, DEFAULT_KEEP_HOURS, keep_duration_from_hours  # noqa: E402
from core.storage.postgres import PostgresConfig, create_quote_store  # noqa: E402
from core.types import CleanupResult  # noqa: E402

logger = logging.getLogger(__name__)

_ACTION_LABELS = {"would_delete": "WOULD DELETE", "deleted": "DELETED", "no_action": "NO ACTION"}


def _parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    p = argparse.ArgumentParser(description="Clean up old options data from the database.")
    p.add_argument(
        "--symbols",
        help="Comma-separated symbols to clean up (e.g. AAPL,TSLA or $SPX.X)",
    )
    p.add_argument(
        "--all",
        action="store_true",
        help="Clean up all symbols in the database",
    )
    p.add_argument(
        "--keep-hours",
        default=str(DEFAULT_KEEP_HOURS),
        help=f"Hours of recent data to keep (default: {DEFAULT_KEEP_HOURS} = 30 minutes)",
    )
    p.add_argument(
        "--dry-run",
        action="store_true",
        help="Show what would be deleted without deleting",
    )
    return p.parse_args(argv)


def _parse_symbols(raw: str) -> list[str]:
    return [normalize_collector_symbol(s) for s in raw.split(",") if s.strip()]


def _print_result(result: CleanupResult) -> None:
    print("---")
    print("CLEANUP RESULTS")
    print("==================")
    print(f"Success: {result.success}")
    print(f"Dry Run: {result.dry_run}")
    print(f"Cutoff Time: {result.cutoff_time.isoformat()}")
    print(f"Keep Hours: {result.keep_hours}")
    print(f"Symbols Processed: {result.symbols_processed}")
    if result.dry_run:
        print(f"Would Delete: {result.would_delete_count}")
    else:
        print(f"Total Deleted: {result.total_deleted}")

    if result.per_symbol:
        print("\nPer-Symbol Results:")
        for item in result.per_symbol:
            records = item.deleted_records or item.stale_records
            label = _ACTION_LABELS.get(item.action, item.action)
            print(f"  {item.symbol}: {label} {records} records (kept {item.kept_records})")


def main(argv: Optional[Sequence[str]] = None) -> int:
    logging.basicConfig(level=logging.INFO, format="%(asctime)s [%(levelname)s] %(message)s")
    args = _parse_args(argv)

    symbols = _parse_symbols(args.symbols) if args.symbols else []
    if args.all and args.symbols:
        print("❌ Cannot specify both --all and --symbols", file=sys.stderr)
        return 1
    if not args.all and not symbols:
        print("❌ You must specify either --symbols or --all", file=sys.stderr)
        return 1

    try:
        keep_duration = keep_duration_from_hours(float(args.keep_hours))
    except (ValueError, StoreError):
        print("❌ --keep-hours must be a positive number", file=sys.stderr)
        return 1

    try:
        config = PostgresConfig.from_env()
    except RuntimeError as exc:
        print(f"❌ db-fail: {exc}", file=sys.stderr)
        return 1

    print("Options Data Cleanup")
    print("================================")
    print(f"Mode: {'DRY RUN (no changes will be made)' if args.dry_run else 'LIVE (changes will be made)'}")
    print(f"Keep hours: {args.keep_hours}")
    print(f"Target: {'All symbols in database' if args.all else ', '.join(symbols)}")
    print("---")

    store = create_quote_store(config)
    try:
        health = store.health_check()
        if health.status != "ok":
            print(f"❌ db-fail: {health.message}", file=sys.stderr)
            return 1
        print("✅ db-ok")

        try:
            result = store.cleanup(
                symbols=ALL_SYMBOLS if args.all else symbols,
                keep_duration=keep_duration,
                dry_run=args.dry_run,
            )
        except StoreError as exc:
            print(f"❌ Cleanup failed: {exc}", file=sys.stderr)
            return 1

        _print_result(result)
    finally:
        store.pool.dispose()

    if args.dry_run:
        print("\nThis was a dry run. No data was deleted.")
        print("Run without --dry-run to perform the actual cleanup.")
    else:
        print("\n✅ Cleanup completed")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
