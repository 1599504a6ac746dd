"""FastAPI dependencies: the per-app quote store and API key authentication."""

from __future__ import annotations

import hmac
import os
import threading
from typing import Optional

from fastapi import Header, Request

from core.errors import StoreConnectionError
from core.persistence.interfaces import QuoteStore
from core.storage.postgres import PostgresConfig, create_quote_store

API_KEY_ENV = "OPTIONS_API_KEY"

# Guards lazy creation of app.state.store across threadpool workers
_store_lock = threading.Lock()


class Unauthorized(Exception):
    """Missing or invalid API key."""


def get_store(request: Request) -> QuoteStore:
    """Return the store owned by this app instance, creating it on first use."""
    store = getattr(request.app.state, "store", None)
    if store is not None:
        return store

    with _store_lock:
        store = getattr(request.app.state, "store", None)
        if store is None:
            try:
                config = PostgresConfig.from_env()
            except RuntimeError as exc:
                raise StoreConnectionError(str(exc), operation="configure") from exc
            store = create_quote_store(config)
            request.app.state.store = store
    return store


def _bearer_token(authorization: Optional[str]) -> Optional[str]:
    if authorization and authorization.startswith("Bearer "):
        return authorization[len("Bearer ") :]
    return None


def require_api_key(
    x_api_key: Optional[str] = Header(None, alias="X-API-Key"),
    authorization: Optional[str] = Header(None),
) -> None:
    """Accept either `X-API-Key: <key>` or `Authorization: Bearer <key>`.

    When no key is configured every request is rejected.
    """
    expected = os.environ.get(API_KEY_ENV)
    if not expected:
        raise Unauthorized()

    for provided in (x_api_key, _bearer_token(authorization)):
        if provided and hmac.compare_digest(provided.encode(), expected.encode()):
            return
    raise Unauthorized()
