"""Storage implementations of the persistence interfaces."""

from .postgres import ConnectionPool, PostgresConfig, PostgresQuoteStore, create_quote_store
