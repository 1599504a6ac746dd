from __future__ import annotations

from typing import Protocol, Sequence

from core.types import Expiration, QuoteRecord, Token


class AuthError(Exception):
    """The credential provider could not produce a valid token."""


class TokenProvider(Protocol):
    """Obtains and refreshes bearer credentials for the market-data API."""

    def get_valid_token(self) -> Token:
        """Return a token that is valid now. Raises AuthError."""
        raise NotImplementedError


class QuoteFetcher(Protocol):
    """Turns vendor option-chain responses into normalized quote records."""

    def fetch_expirations(self, *, symbol: str, token: Token) -> Sequence[Expiration]:
        raise NotImplementedError

    def fetch_quote_records(self, *, symbol: str, expiration: Expiration, token: Token) -> Sequence[QuoteRecord]:
        raise NotImplementedError
