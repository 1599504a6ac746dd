"""PostgreSQL-backed quote storage.

Notes
- We avoid logging connection URLs to prevent accidental secret leakage.
- The pool is created explicitly and handed to the store; nothing here is a
  process-wide singleton.
"""

from .config import PostgresConfig, normalize_database_url
from .pool import ConnectionPool
from .stores import PostgresQuoteStore


def create_quote_store(config: PostgresConfig) -> PostgresQuoteStore:
    """Build a store with its own connection pool."""
    return PostgresQuoteStore(pool=ConnectionPool(config=config))
