"""Persistence interfaces.

These protocols define the persistence boundary for quote snapshots. The
PostgreSQL implementation lives in core.storage.postgres.
"""

from .interfaces import QuoteStore
