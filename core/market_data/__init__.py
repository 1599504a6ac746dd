"""Market data collection.

Fetching and credential handling are collaborators expressed as protocols;
the collector wires them to the quote store.
"""

from core.market_data.collector import CollectionReport, OptionsCollector
from core.market_data.interfaces import AuthError, QuoteFetcher, TokenProvider

__all__ = [
    "AuthError",
    "CollectionReport",
    "OptionsCollector",
    "QuoteFetcher",
    "TokenProvider",
]
