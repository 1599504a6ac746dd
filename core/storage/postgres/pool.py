"""Bounded connection pool shared by the quote store components.

Every unit of work checks out its own connection and always returns it, even
when the work fails. Writes go through `transaction()`, which commits on
success and rolls back on any error.
"""

from __future__ import annotations

import logging
import threading
from contextlib import contextmanager
from typing import Any, Iterator

from sqlalchemy import create_engine
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.exc import DBAPIError, SQLAlchemyError
from sqlalchemy.exc import TimeoutError as PoolTimeoutError

from core.errors import StoreConnectionError, StoreError, TransactionError
from core.storage.postgres.config import PostgresConfig

logger = logging.getLogger(__name__)


class ConnectionPool:
    """Owns the SQLAlchemy engine (and therefore its QueuePool).

    The engine is created lazily so constructing a pool never touches the
    network.
    """

    def __init__(self, *, config: PostgresConfig) -> None:
        self._config = config
        self._engine: Engine | None = None
        self._engine_lock = threading.Lock()

    @property
    def config(self) -> PostgresConfig:
        return self._config

    def _get_engine(self) -> Engine:
        engine = self._engine
        if engine is not None:
            return engine
        with self._engine_lock:
            if self._engine is None:
                # Do not log the URL (it may contain secrets).
                self._engine = create_engine(self._config.database_url, **self._config.engine_options())
            return self._engine

    def _checkout(self, operation: str) -> Connection:
        engine = self._get_engine()
        try:
            return engine.connect()
        except PoolTimeoutError as exc:
            logger.error("Connection pool exhausted during %s", operation)
            raise StoreConnectionError(
                f"no database connection available within {self._config.acquire_timeout_s}s",
                operation=operation,
            ) from exc
        except (DBAPIError, SQLAlchemyError) as exc:
            logger.error("Database connection failed during %s: %s", operation, type(exc).__name__)
            raise StoreConnectionError("database connection failed", operation=operation) from exc

    @contextmanager
    def connection(self, *, operation: str) -> Iterator[Connection]:
        """Check out a connection for read-only work."""
        conn = self._checkout(operation)
        try:
            yield conn
        finally:
            conn.close()

    @contextmanager
    def transaction(self, *, operation: str, commit: bool = True) -> Iterator[Connection]:
        """Run a unit of write work inside one explicit transaction.

        With `commit=False` the transaction is rolled back even when the body
        succeeds; dry runs use this to preview a write. Driver errors raised by
        the body are rolled back and re-raised as TransactionError; StoreError
        raised by the body is rolled back and propagated unchanged.
        """
        with self.connection(operation=operation) as conn:
            trans = conn.begin()
            try:
                yield conn
            except StoreError as exc:
                trans.rollback()
                logger.warning("Rolled back %s: %s", operation, exc)
                raise
            except SQLAlchemyError as exc:
                trans.rollback()
                logger.warning("Rolled back %s: %s", operation, type(exc).__name__)
                raise TransactionError(f"{operation} failed: {exc}", operation=operation) from exc
            except BaseException:
                trans.rollback()
                raise
            else:
                if not commit:
                    trans.rollback()
                    return
                try:
                    trans.commit()
                except SQLAlchemyError as exc:
                    logger.warning("Commit failed for %s: %s", operation, type(exc).__name__)
                    raise TransactionError(f"{operation} commit failed: {exc}", operation=operation) from exc

    def status(self) -> dict[str, Any]:
        """Snapshot of pool usage for health reporting."""
        if self._engine is None:
            return {"initialized": False, "max_connections": self._config.max_connections}
        pool = self._engine.pool
        return {
            "initialized": True,
            "max_connections": self._config.max_connections,
            "checked_out": pool.checkedout(),
            "idle": pool.checkedin(),
        }

    def dispose(self) -> None:
        with self._engine_lock:
            if self._engine is not None:
                self._engine.dispose()
                self._engine = None
