"""Retention policy helpers for quote cleanup.

Cleanup keeps every snapshot observed within the retention window and treats
anything older than `now - keep_duration` as stale.
"""

from __future__ import annotations

import math
from datetime import datetime, timedelta
from enum import Enum
from typing import Iterable, Optional, Union

from core.errors import ValidationError
from core.types import SymbolCleanup

DEFAULT_KEEP_HOURS = 0.5


class SymbolScope(Enum):
    ALL = "all"


ALL_SYMBOLS = SymbolScope.ALL

SymbolSelection = Union[Iterable[str], SymbolScope]


def is_all_symbols(symbols: SymbolSelection) -> bool:
    """True for ALL_SYMBOLS or the literal string "all"."""
    return symbols is ALL_SYMBOLS or (isinstance(symbols, str) and symbols == ALL_SYMBOLS.value)


def keep_duration_from_hours(hours: float) -> timedelta:
    """Convert the hours-based interface (API/CLI) into a validated duration."""
    if isinstance(hours, bool) or not isinstance(hours, (int, float)):
        raise ValidationError(f"keepHours must be a number, got {hours!r}", operation="cleanup")
    if math.isnan(hours) or math.isinf(hours) or hours <= 0:
        raise ValidationError("keepHours must be a positive number", operation="cleanup")
    return timedelta(hours=hours)


def validate_keep_duration(keep_duration: timedelta) -> timedelta:
    if not isinstance(keep_duration, timedelta):
        raise ValidationError("keep_duration must be a timedelta", operation="cleanup")
    if keep_duration <= timedelta(0):
        raise ValidationError("keep_duration must be positive", operation="cleanup")
    return keep_duration


def compute_cutoff(now: datetime, keep_duration: timedelta) -> datetime:
    return now - validate_keep_duration(keep_duration)


def normalize_symbols(symbols: Iterable[str], *, operation: str = "cleanup") -> tuple[str, ...]:
    """De-duplicate explicit symbols, preserving first-seen order."""
    if isinstance(symbols, str):
        symbols = [symbols]
    seen: dict[str, None] = {}
    for raw in symbols:
        if not isinstance(raw, str) or not raw.strip():
            raise ValidationError(f"invalid symbol {raw!r}", operation=operation)
        seen.setdefault(raw.strip(), None)
    if not seen:
        raise ValidationError("at least one symbol is required", operation=operation)
    return tuple(seen)


def summarize_symbol(
    *,
    symbol: str,
    total_records: int,
    stale_records: int,
    oldest_observed_at: Optional[datetime],
    newest_observed_at: Optional[datetime],
    deleted_records: int,
    dry_run: bool,
) -> SymbolCleanup:
    """Build the per-symbol cleanup line.

    Counts are reported as if deletion happened, for both modes.
    """
    if stale_records == 0:
        action = "no_action"
    elif dry_run:
        action = "would_delete"
    else:
        action = "deleted"

    return SymbolCleanup(
        symbol=symbol,
        total_records=total_records,
        stale_records=stale_records,
        kept_records=total_records - stale_records,
        deleted_records=0 if dry_run else deleted_records,
        oldest_observed_at=oldest_observed_at,
        newest_observed_at=newest_observed_at,
        action=action,
    )
