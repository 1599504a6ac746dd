"""Normalization of collector records into QuoteRecord values.

The collector emits flat mappings shaped like:

    {"symbol": "SPXW 250919P6000", "expiration_date": "2025-09-19T00:00:00Z",
     "expiration_type": "Weekly", "strike": "6000", "option_type": "Put",
     "mid": "12.35", ..., "timestamp": "2025-09-18T14:30:00Z"}

`symbol` there is the full option symbol; the underlying is derived from it.
"""

from __future__ import annotations

import re
from datetime import date, datetime, time, timezone
from decimal import Decimal, InvalidOperation
from typing import Any, Mapping, Optional

from core.errors import ValidationError
from core.types import EXPIRATION_TYPES, OPTION_TYPES, PRICE_FIELDS, QuoteRecord

_ISO_DATE = re.compile(r"^\d{4}-\d{2}-\d{2}$")


def underlying_symbol_for(option_symbol: str) -> str:
    """Derive the underlying root from a full option symbol.

    "AAPL 250919P232.5" -> "AAPL". Symbols without a space are their own root.
    """
    symbol = option_symbol.strip()
    if not symbol:
        raise ValidationError("option_symbol is required")
    return symbol.split(" ", 1)[0]


def normalize_collector_symbol(symbol: str) -> str:
    """Map an upstream request symbol to the stored underlying form.

    "$SPX.X" -> "SPX", "$SPXW.X" -> "SPXW", "AAPL" -> "AAPL".
    """
    s = symbol.strip()
    if s.startswith("$"):
        s = s[1:]
    if s.endswith(".X"):
        s = s[:-2]
    return s


def as_utc(dt: datetime) -> datetime:
    """Convert datetime to UTC, treating naive values as UTC."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def parse_datetime(value: Any, *, field: str, end_of_day: bool = False) -> datetime:
    """Parse a date, datetime or ISO string into an aware UTC datetime.

    A bare date (or YYYY-MM-DD string) maps to midnight, or to the last
    instant of that day when `end_of_day` is set.
    """
    if isinstance(value, datetime):
        return as_utc(value)
    if isinstance(value, date):
        return datetime.combine(value, time.max if end_of_day else time.min, tzinfo=timezone.utc)
    if isinstance(value, str):
        text = value.strip()
        if _ISO_DATE.match(text):
            try:
                return parse_datetime(date.fromisoformat(text), field=field, end_of_day=end_of_day)
            except ValueError as exc:
                raise ValidationError(f"{field} is not a valid date: {value!r}") from exc
        try:
            # fromisoformat only accepts a trailing Z from Python 3.11 on.
            return as_utc(datetime.fromisoformat(text.replace("Z", "+00:00")))
        except ValueError as exc:
            raise ValidationError(f"{field} is not a valid ISO date/datetime: {value!r}") from exc
    raise ValidationError(f"{field} must be a date, datetime or ISO string, got {type(value).__name__}")


def parse_decimal(value: Any, *, field: str) -> Optional[Decimal]:
    """Parse an optional numeric field.

    None and empty strings become None. Zero is a real price and is kept.
    """
    if value is None or value == "":
        return None
    if isinstance(value, bool):
        raise ValidationError(f"{field} must be numeric, got a boolean")
    try:
        parsed = Decimal(str(value))
    except (InvalidOperation, ValueError) as exc:
        raise ValidationError(f"{field} must be numeric, got {value!r}") from exc
    if not parsed.is_finite():
        raise ValidationError(f"{field} must be finite, got {value!r}")
    return parsed


def quote_from_mapping(raw: Mapping[str, Any], *, observed_at: datetime | None = None) -> QuoteRecord:
    """Build a QuoteRecord from one flat collector mapping.

    `option_symbol` is accepted as an alias of `symbol`, and `observed_at` as
    an alias of `timestamp`. When neither timestamp is present the supplied
    `observed_at` default is used.
    """
    option_symbol = raw.get("option_symbol") or raw.get("symbol")
    if not isinstance(option_symbol, str) or not option_symbol.strip():
        raise ValidationError("record is missing its option symbol")
    option_symbol = option_symbol.strip()

    expiration_type = raw.get("expiration_type")
    if expiration_type not in EXPIRATION_TYPES:
        raise ValidationError(
            f"expiration_type must be one of {', '.join(EXPIRATION_TYPES)}, got {expiration_type!r}",
            symbol=option_symbol,
        )

    option_type = raw.get("option_type")
    if option_type not in OPTION_TYPES:
        raise ValidationError(
            f"option_type must be one of {', '.join(OPTION_TYPES)}, got {option_type!r}",
            symbol=option_symbol,
        )

    strike = parse_decimal(raw.get("strike"), field="strike")
    if strike is None:
        raise ValidationError("strike is required", symbol=option_symbol)

    if raw.get("expiration_date") in (None, ""):
        raise ValidationError("expiration_date is required", symbol=option_symbol)

    stamp = raw.get("timestamp") or raw.get("observed_at")
    if stamp:
        observed = parse_datetime(stamp, field="timestamp")
    elif observed_at is not None:
        observed = as_utc(observed_at)
    else:
        raise ValidationError("timestamp is required", symbol=option_symbol)

    prices = {name: parse_decimal(raw.get(name), field=name) for name in PRICE_FIELDS}

    return QuoteRecord(
        underlying_symbol=underlying_symbol_for(option_symbol),
        option_symbol=option_symbol,
        expiration_date=parse_datetime(raw["expiration_date"], field="expiration_date"),
        expiration_type=expiration_type,
        strike=strike,
        option_type=option_type,
        observed_at=observed,
        **prices,
    )


def validate_quote(record: QuoteRecord) -> None:
    """Check a QuoteRecord before it is written. Raises ValidationError."""
    if not isinstance(record.option_symbol, str) or not record.option_symbol.strip():
        raise ValidationError("record is missing its option symbol", operation="upsert")
    symbol = record.option_symbol
    if record.expiration_type not in EXPIRATION_TYPES:
        raise ValidationError(f"invalid expiration_type {record.expiration_type!r}", operation="upsert", symbol=symbol)
    if record.option_type not in OPTION_TYPES:
        raise ValidationError(f"invalid option_type {record.option_type!r}", operation="upsert", symbol=symbol)
    if record.strike is None:
        raise ValidationError("strike is required", operation="upsert", symbol=symbol)
    if not isinstance(record.expiration_date, datetime):
        raise ValidationError("expiration_date is required", operation="upsert", symbol=symbol)
    if not isinstance(record.observed_at, datetime):
        raise ValidationError("observed_at is required", operation="upsert", symbol=symbol)
