"""Tests for ConnectionPool checkout and transaction handling."""

import threading
import time
from unittest.mock import Mock, patch

import pytest
from sqlalchemy.exc import OperationalError, ProgrammingError
from sqlalchemy.exc import TimeoutError as PoolTimeoutError

from core.errors import StoreConnectionError, TransactionError, ValidationError
from core.storage.postgres.pool import ConnectionPool


def test_pool_is_lazy(pool: ConnectionPool) -> None:
    """Constructing a pool never creates an engine."""
    assert pool.status() == {"initialized": False, "max_connections": 20}


def test_connection_is_closed_after_use(pool: ConnectionPool, mock_db_engine: Mock, mock_db_conn: Mock) -> None:
    with patch.object(pool, "_get_engine", return_value=mock_db_engine):
        with pool.connection(operation="latest") as conn:
            assert conn is mock_db_conn

    mock_db_conn.close.assert_called_once()


def test_connection_is_closed_when_body_raises(pool: ConnectionPool, mock_db_engine: Mock, mock_db_conn: Mock) -> None:
    with patch.object(pool, "_get_engine", return_value=mock_db_engine):
        with pytest.raises(RuntimeError):
            with pool.connection(operation="latest"):
                raise RuntimeError("boom")

    mock_db_conn.close.assert_called_once()


def test_pool_timeout_maps_to_connection_error(pool: ConnectionPool, mock_db_engine: Mock) -> None:
    mock_db_engine.connect.side_effect = PoolTimeoutError("QueuePool limit reached")

    with patch.object(pool, "_get_engine", return_value=mock_db_engine):
        with pytest.raises(StoreConnectionError) as exc_info:
            with pool.connection(operation="upsert"):
                pass

    assert exc_info.value.operation == "upsert"
    assert "2.0s" in exc_info.value.message


def test_unreachable_database_maps_to_connection_error(pool: ConnectionPool, mock_db_engine: Mock) -> None:
    mock_db_engine.connect.side_effect = OperationalError("SELECT 1", {}, Exception("connection refused"))

    with patch.object(pool, "_get_engine", return_value=mock_db_engine):
        with pytest.raises(StoreConnectionError):
            with pool.connection(operation="health_check"):
                pass


def test_transaction_commits_on_success(pool: ConnectionPool, mock_db_engine: Mock, mock_db_conn: Mock) -> None:
    trans = mock_db_conn.begin.return_value

    with patch.object(pool, "_get_engine", return_value=mock_db_engine):
        with pool.transaction(operation="upsert"):
            pass

    trans.commit.assert_called_once()
    trans.rollback.assert_not_called()
    mock_db_conn.close.assert_called_once()


def test_transaction_without_commit_rolls_back(pool: ConnectionPool, mock_db_engine: Mock, mock_db_conn: Mock) -> None:
    trans = mock_db_conn.begin.return_value

    with patch.object(pool, "_get_engine", return_value=mock_db_engine):
        with pool.transaction(operation="cleanup", commit=False):
            pass

    trans.rollback.assert_called_once()
    trans.commit.assert_not_called()


def test_transaction_wraps_driver_errors(pool: ConnectionPool, mock_db_engine: Mock, mock_db_conn: Mock) -> None:
    trans = mock_db_conn.begin.return_value

    with patch.object(pool, "_get_engine", return_value=mock_db_engine):
        with pytest.raises(TransactionError) as exc_info:
            with pool.transaction(operation="cleanup"):
                raise ProgrammingError("DELETE", {}, Exception("syntax error"))

    assert isinstance(exc_info.value.__cause__, ProgrammingError)
    trans.rollback.assert_called_once()
    trans.commit.assert_not_called()
    mock_db_conn.close.assert_called_once()


def test_transaction_propagates_store_errors_unchanged(
    pool: ConnectionPool, mock_db_engine: Mock, mock_db_conn: Mock
) -> None:
    trans = mock_db_conn.begin.return_value
    error = ValidationError("bad input", operation="upsert")

    with patch.object(pool, "_get_engine", return_value=mock_db_engine):
        with pytest.raises(ValidationError) as exc_info:
            with pool.transaction(operation="upsert"):
                raise error

    assert exc_info.value is error
    trans.rollback.assert_called_once()


def test_failed_commit_raises_transaction_error(pool: ConnectionPool, mock_db_engine: Mock, mock_db_conn: Mock) -> None:
    mock_db_conn.begin.return_value.commit.side_effect = OperationalError("COMMIT", {}, Exception("gone"))

    with patch.object(pool, "_get_engine", return_value=mock_db_engine):
        with pytest.raises(TransactionError):
            with pool.transaction(operation="upsert"):
                pass

    mock_db_conn.close.assert_called_once()


def test_dispose_releases_engine(pool: ConnectionPool) -> None:
    engine = Mock()
    pool._engine = engine  # noqa: SLF001

    pool.dispose()

    engine.dispose.assert_called_once()
    assert pool.status()["initialized"] is False


def test_concurrent_first_checkouts_share_one_engine(pool: ConnectionPool) -> None:
    """Racing first checkouts create exactly one engine (one bounded QueuePool)."""
    created = []

    def slow_create_engine(*args, **kwargs):
        time.sleep(0.05)
        engine = Mock()
        created.append(engine)
        return engine

    barrier = threading.Barrier(8)
    returned = []

    def worker() -> None:
        barrier.wait()
        returned.append(pool._get_engine())  # noqa: SLF001

    with patch("core.storage.postgres.pool.create_engine", side_effect=slow_create_engine):
        threads = [threading.Thread(target=worker) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

    assert len(created) == 1
    assert len({id(engine) for engine in returned}) == 1
