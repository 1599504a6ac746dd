"""Shared test fixtures for pytest.

Provides common test data, mocks, and utilities used across multiple test files.
"""

import sys
from datetime import datetime, timezone
from decimal import Decimal
from pathlib import Path
from typing import Any
from unittest.mock import Mock, patch

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from core.storage.postgres.config import PostgresConfig  # noqa: E402
from core.storage.postgres.pool import ConnectionPool  # noqa: E402
from core.storage.postgres.stores import PostgresQuoteStore  # noqa: E402
from core.types import QuoteRecord  # noqa: E402

FIXED_NOW = datetime(2025, 9, 18, 15, 0, 0, tzinfo=timezone.utc)


def make_quote(
    option_symbol: str = "SPXW 250919P6000",
    *,
    option_type: str = "Put",
    strike: str = "6000",
    mid: str | None = "12.35",
    expiration_date: datetime = datetime(2025, 9, 19, tzinfo=timezone.utc),
    expiration_type: str = "Weekly",
    observed_at: datetime = FIXED_NOW,
) -> QuoteRecord:
    return QuoteRecord(
        underlying_symbol=option_symbol.split(" ", 1)[0],
        option_symbol=option_symbol,
        expiration_date=expiration_date,
        expiration_type=expiration_type,
        strike=Decimal(strike),
        option_type=option_type,
        observed_at=observed_at,
        ask=None if mid is None else Decimal(mid) + Decimal("0.05"),
        bid=None if mid is None else Decimal(mid) - Decimal("0.05"),
        mid=None if mid is None else Decimal(mid),
    )


@pytest.fixture
def sample_quotes() -> list[QuoteRecord]:
    """Sample quotes for testing.

    Returns a call/put pair at two strikes for SPXW plus one SPX monthly put.
    """
    return [
        make_quote("SPXW 250919C6000", option_type="Call", strike="6000", mid="25.10"),
        make_quote("SPXW 250919P6000", option_type="Put", strike="6000", mid="12.35"),
        make_quote("SPXW 250919C6050", option_type="Call", strike="6050", mid="8.40"),
        make_quote("SPXW 250919P6050", option_type="Put", strike="6050", mid="30.00"),
        make_quote(
            "SPX 250919P6000",
            option_type="Put",
            strike="6000",
            mid="12.50",
            expiration_type="Monthly",
        ),
    ]


@pytest.fixture
def mock_db_conn() -> Mock:
    """Mock SQLAlchemy connection with a transaction handle."""
    mock_conn = Mock()
    mock_result = Mock()
    mock_result.rowcount = 0
    mock_result.fetchone.return_value = None
    mock_result.fetchall.return_value = []
    mock_result.scalar.return_value = None
    mock_conn.execute.return_value = mock_result
    mock_conn.begin.return_value = Mock()
    return mock_conn


@pytest.fixture
def mock_db_engine(mock_db_conn: Mock) -> Mock:
    """Mock SQLAlchemy engine whose connect() hands out mock_db_conn."""
    mock_engine = Mock()
    mock_engine.connect.return_value = mock_db_conn
    return mock_engine


@pytest.fixture
def pool() -> ConnectionPool:
    return ConnectionPool(config=PostgresConfig(database_url="postgresql://fake"))


@pytest.fixture
def quote_store(pool: ConnectionPool, mock_db_engine: Mock) -> Any:
    """PostgresQuoteStore with a mocked engine and a fixed clock."""
    store = PostgresQuoteStore(pool=pool, clock=lambda: FIXED_NOW)

    with patch.object(pool, "_get_engine", return_value=mock_db_engine):
        yield store
