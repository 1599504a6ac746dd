"""Tests for the cleanup_options_data CLI."""

from __future__ import annotations

from datetime import timedelta
from unittest.mock import Mock, patch

import pytest

from conftest import FIXED_NOW
from core.errors import TransactionError
from core.retention import ALL_SYMBOLS
from core.types import CleanupResult, HealthStatus, SymbolCleanup
from scripts import cleanup_options_data


@pytest.fixture
def store():
    store = Mock()
    store.health_check.return_value = HealthStatus(status="ok", latency_ms=1.0, message="Database connected")
    store.cleanup.return_value = CleanupResult(
        success=True,
        dry_run=True,
        cutoff_time=FIXED_NOW - timedelta(hours=12),
        keep_duration=timedelta(hours=12),
        symbols_processed=1,
        total_deleted=0,
        would_delete_count=3,
        per_symbol=(
            SymbolCleanup(
                symbol="AAPL",
                total_records=5,
                stale_records=3,
                kept_records=2,
                deleted_records=0,
                oldest_observed_at=None,
                newest_observed_at=None,
                action="would_delete",
            ),
        ),
    )
    return store


@pytest.fixture
def run(store, monkeypatch):
    monkeypatch.setenv("DATABASE_URL", "postgresql://fake")

    def _run(*argv: str) -> int:
        with patch.object(cleanup_options_data, "create_quote_store", return_value=store):
            return cleanup_options_data.main(list(argv))

    return _run


def test_cleanup_specific_symbols(run, store, capsys):
    assert run("--symbols", "AAPL,$SPX.X", "--keep-hours", "12", "--dry-run") == 0

    kwargs = store.cleanup.call_args.kwargs
    assert kwargs["symbols"] == ["AAPL", "SPX"]
    assert kwargs["keep_duration"] == timedelta(hours=12)
    assert kwargs["dry_run"] is True
    out = capsys.readouterr().out
    assert "AAPL: WOULD DELETE 3 records (kept 2)" in out
    store.pool.dispose.assert_called_once()


def test_cleanup_all_symbols(run, store):
    assert run("--all") == 0

    kwargs = store.cleanup.call_args.kwargs
    assert kwargs["symbols"] is ALL_SYMBOLS
    assert kwargs["keep_duration"] == timedelta(minutes=30)
    assert kwargs["dry_run"] is False


@pytest.mark.parametrize(
    "argv",
    [
        (),
        ("--all", "--symbols", "AAPL"),
        ("--symbols", " , "),
        ("--all", "--keep-hours", "0"),
        ("--all", "--keep-hours", "soon"),
    ],
)
def test_invalid_arguments_exit_1(run, store, argv):
    assert run(*argv) == 1
    store.cleanup.assert_not_called()


def test_missing_database_url_exits_1(store, monkeypatch):
    monkeypatch.delenv("DATABASE_URL", raising=False)

    assert cleanup_options_data.main(["--all"]) == 1


def test_connection_failure_exits_1(run, store):
    store.health_check.return_value = HealthStatus(status="error", message="Database error: StoreConnectionError")

    assert run("--all") == 1
    store.cleanup.assert_not_called()
    store.pool.dispose.assert_called_once()


def test_cleanup_failure_exits_1(run, store):
    store.cleanup.side_effect = TransactionError("cleanup delete failed", operation="cleanup", symbol="AAPL")

    assert run("--symbols", "AAPL") == 1
