"""Tests for collector record normalization."""

from datetime import date, datetime, timezone
from decimal import Decimal

import pytest

from core.errors import ValidationError
from core.quotes import (
    normalize_collector_symbol,
    parse_datetime,
    parse_decimal,
    quote_from_mapping,
    underlying_symbol_for,
)


def _raw(**overrides):
    raw = {
        "symbol": "SPXW 250919P6000",
        "expiration_date": "2025-09-19T00:00:00Z",
        "expiration_type": "Weekly",
        "strike": "6000",
        "option_type": "Put",
        "ask": "12.40",
        "bid": "12.30",
        "mid": "12.35",
        "timestamp": "2025-09-18T14:30:00Z",
    }
    raw.update(overrides)
    return raw


@pytest.mark.parametrize(
    "option_symbol,expected",
    [
        ("AAPL 250919P232.5", "AAPL"),
        ("SPXW 250919C6000", "SPXW"),
        ("  SPX 250919P6000 ", "SPX"),
        ("TSLA", "TSLA"),
    ],
)
def test_underlying_symbol_for(option_symbol: str, expected: str) -> None:
    assert underlying_symbol_for(option_symbol) == expected


def test_underlying_symbol_for_rejects_blank() -> None:
    with pytest.raises(ValidationError):
        underlying_symbol_for("   ")


@pytest.mark.parametrize(
    "symbol,expected",
    [("$SPX.X", "SPX"), ("$SPXW.X", "SPXW"), ("AAPL", "AAPL"), (" TSLA ", "TSLA")],
)
def test_normalize_collector_symbol(symbol: str, expected: str) -> None:
    assert normalize_collector_symbol(symbol) == expected


def test_parse_datetime_date_only_covers_whole_day_when_end() -> None:
    start = parse_datetime("2025-09-19", field="startDate")
    end = parse_datetime("2025-09-19", field="endDate", end_of_day=True)

    assert start == datetime(2025, 9, 19, tzinfo=timezone.utc)
    assert end.date() == date(2025, 9, 19)
    assert end.hour == 23 and end.minute == 59


def test_parse_datetime_accepts_trailing_z_and_naive() -> None:
    assert parse_datetime("2025-09-18T14:30:00Z", field="t") == datetime(2025, 9, 18, 14, 30, tzinfo=timezone.utc)
    assert parse_datetime(datetime(2025, 1, 1), field="t").tzinfo == timezone.utc


@pytest.mark.parametrize("value", ["not-a-date", "2025-13-40", 12345])
def test_parse_datetime_rejects_garbage(value) -> None:
    with pytest.raises(ValidationError):
        parse_datetime(value, field="startDate")


def test_parse_decimal_keeps_zero_and_maps_empty_to_none() -> None:
    assert parse_decimal("0", field="bid") == Decimal("0")
    assert parse_decimal(0, field="bid") == Decimal("0")
    assert parse_decimal("", field="bid") is None
    assert parse_decimal(None, field="bid") is None


@pytest.mark.parametrize("value", ["abc", True, "NaN", "Infinity"])
def test_parse_decimal_rejects_non_numeric(value) -> None:
    with pytest.raises(ValidationError):
        parse_decimal(value, field="mid")


def test_quote_from_mapping_builds_record() -> None:
    record = quote_from_mapping(_raw())

    assert record.underlying_symbol == "SPXW"
    assert record.option_symbol == "SPXW 250919P6000"
    assert record.strike == Decimal("6000")
    assert record.mid == Decimal("12.35")
    assert record.close is None
    assert record.observed_at == datetime(2025, 9, 18, 14, 30, tzinfo=timezone.utc)


def test_quote_from_mapping_accepts_aliases_and_default_time() -> None:
    now = datetime(2025, 9, 18, 15, 0, tzinfo=timezone.utc)
    raw = _raw(option_symbol="SPX 250919C6000", option_type="Call")
    del raw["symbol"]
    del raw["timestamp"]

    record = quote_from_mapping(raw, observed_at=now)

    assert record.underlying_symbol == "SPX"
    assert record.observed_at == now


@pytest.mark.parametrize(
    "overrides,message",
    [
        ({"symbol": ""}, "option symbol"),
        ({"expiration_type": "Quarterly"}, "expiration_type"),
        ({"option_type": "Straddle"}, "option_type"),
        ({"strike": None}, "strike"),
        ({"expiration_date": None}, "expiration_date"),
        ({"timestamp": None}, "timestamp"),
    ],
)
def test_quote_from_mapping_rejects_invalid_records(overrides, message) -> None:
    with pytest.raises(ValidationError) as exc_info:
        quote_from_mapping(_raw(**overrides))

    assert message in str(exc_info.value)
