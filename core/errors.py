"""Error taxonomy for the options quote store."""

from __future__ import annotations


class StoreError(Exception):
    """Base exception for quote store failures.

    Carries enough context (operation, symbol) for callers to decide whether
    to retry. The underlying driver error, if any, is chained as __cause__.
    """

    def __init__(self, message: str, *, operation: str | None = None, symbol: str | None = None):
        super().__init__(message)
        self.message = message
        self.operation = operation
        self.symbol = symbol

    def __str__(self) -> str:
        context = [f"{key}={value}" for key, value in (("operation", self.operation), ("symbol", self.symbol)) if value]
        if not context:
            return self.message
        return f"{self.message} ({', '.join(context)})"


class ValidationError(StoreError):
    """Malformed input, rejected before any database access."""


class StoreConnectionError(StoreError):
    """Pool exhausted or database unreachable. Not retried internally."""


class TransactionError(StoreError):
    """A write transaction failed and was rolled back."""
