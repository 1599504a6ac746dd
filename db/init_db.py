#!/usr/bin/env python3
"""Initialize the options_data schema.

Runs the SQL in db/schema.sql against the database pointed to by DATABASE_URL.

Usage:
  python -m db.init_db

Requirements:
  - DATABASE_URL must be set
  - SQLAlchemy + psycopg2-binary installed
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterable

from sqlalchemy import create_engine, text

from core.storage.postgres.config import PostgresConfig

logger = logging.getLogger(__name__)

SCHEMA_PATH = Path(__file__).resolve().parent / "schema.sql"

# Transaction control in the script is replaced by engine.begin()
_TRANSACTION_STATEMENTS = {"BEGIN", "COMMIT"}


def iter_sql_statements(sql: str) -> Iterable[str]:
    """Split a SQL script into executable statements.

    Supports `--` line comments and single/double quoted strings. There is no
    support for `$$` quoting; schema.sql does not use it.
    """
    buf: list[str] = []
    in_single = False
    in_double = False
    i = 0
    while i < len(sql):
        ch = sql[i]

        if not in_single and not in_double and sql.startswith("--", i):
            while i < len(sql) and sql[i] not in ("\n", "\r"):
                i += 1
            continue

        if ch == "'" and not in_double:
            # '' inside a string is an escaped quote
            if in_single and sql.startswith("''", i):
                buf.append("''")
                i += 2
                continue
            in_single = not in_single
        elif ch == '"' and not in_single:
            in_double = not in_double
        elif ch == ";" and not in_single and not in_double:
            stmt = "".join(buf).strip()
            buf = []
            if stmt:
                yield stmt
            i += 1
            continue

        buf.append(ch)
        i += 1

    tail = "".join(buf).strip()
    if tail:
        yield tail


def schema_statements(path: Path = SCHEMA_PATH) -> list[str]:
    sql = path.read_text(encoding="utf-8")
    return [stmt for stmt in iter_sql_statements(sql) if stmt.upper() not in _TRANSACTION_STATEMENTS]


def apply_schema(database_url: str, *, path: Path = SCHEMA_PATH) -> int:
    """Apply every schema statement in one transaction. Returns the statement count."""
    statements = schema_statements(path)
    engine = create_engine(database_url, echo=False)
    try:
        with engine.begin() as conn:
            for stmt in statements:
                conn.execute(text(stmt))
    finally:
        engine.dispose()
    return len(statements)


def main() -> int:
    logging.basicConfig(level=logging.INFO, format="%(asctime)s [%(levelname)s] %(message)s")
    try:
        config = PostgresConfig.from_env()
    except RuntimeError as exc:
        raise SystemExit(str(exc)) from exc

    count = apply_schema(config.database_url)
    logger.info("Database schema applied (%d statements)", count)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
