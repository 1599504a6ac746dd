#!/usr/bin/env python3
"""Database + ingestion healthcheck CLI.

Validates DB connectivity and reports options ingestion status without
exposing secrets.

Usage:
  python scripts/db_health_check.py --symbol SPX

Exit codes:
  0 = success
  1 = failure (DB connectivity, schema, or other error)

Requirements:
  - DATABASE_URL must be set
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path
from typing import Optional, Sequence

_REPO_ROOT = Path(__file__).resolve().parents[1]
if str(_REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(_REPO_ROOT))

from sqlalchemy import text  # noqa: E402
from sqlalchemy.exc import SQLAlchemyError  # noqa: E402

from core.errors import StoreError  # noqa: E402
from core.storage.postgres import PostgresConfig, create_quote_store  # noqa: E402


def _parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    p = argparse.ArgumentParser(description="DB + ingestion healthcheck (no secrets output).")
    p.add_argument(
        "--symbol",
        default=None,
        help="Underlying symbol to report freshness for (default: all symbols)",
    )
    return p.parse_args(argv)


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = _parse_args(argv)

    # 1. Check DATABASE_URL is set
    try:
        config = PostgresConfig.from_env()
    except RuntimeError as exc:
        print(f"❌ db-fail: {exc}", file=sys.stderr)
        return 1

    store = create_quote_store(config)
    try:
        # 2. Connectivity
        health = store.health_check()
        if health.status != "ok":
            print("❌ db-fail: Unable to connect to database", file=sys.stderr)
            print(f"   Error: {(health.details or {}).get('error', health.message)}", file=sys.stderr)
            return 1
        print(f"✅ db-ok ({health.latency_ms}ms)")

        # 3. Schema (options_data table exists)
        try:
            with store.pool.connection(operation="schema_check") as conn:
                row = conn.execute(
                    text(
                        """
                        SELECT EXISTS (
                            SELECT FROM information_schema.tables
                            WHERE table_name = 'options_data'
                        )
                        """
                    )
                ).fetchone()
        except (StoreError, SQLAlchemyError) as exc:
            print("❌ schema-fail: Unable to verify schema", file=sys.stderr)
            print(f"   Error: {exc}", file=sys.stderr)
            return 1

        if not (row and row[0]):
            print("❌ schema-fail: options_data table does not exist", file=sys.stderr)
            return 1
        print("✅ schema-ok (options_data table exists)")

        # 4. Counts and freshness
        print(f"📊 options_data rows: {(health.details or {}).get('row_count', 0)}")
        try:
            symbols = store.list_distinct_symbols()
            print(f"📊 symbols: {', '.join(symbols) if symbols else '(none)'}")
            newest = store.newest_observed_at(symbol=args.symbol)
        except StoreError as exc:
            print("⚠️  newest_timestamp: Unable to query latest snapshot", file=sys.stderr)
            print(f"   Error: {exc}", file=sys.stderr)
        else:
            scope = args.symbol or "all symbols"
            if newest is None:
                print(f"⚠️  newest_timestamp ({scope}): No options data found")
            else:
                print(f"🕒 newest_timestamp ({scope}): {newest.isoformat()}")
    finally:
        store.pool.dispose()

    print("\n✅ Health check passed")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
