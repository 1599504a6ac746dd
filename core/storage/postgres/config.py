from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Any, Mapping, Optional


def normalize_database_url(url: str) -> str:
    """Convert `postgres://` URLs (Heroku/Vercel style) to the SQLAlchemy form."""
    if url.startswith("postgres://"):
        return url.replace("postgres://", "postgresql://", 1)
    return url


def _env_number(env: Mapping[str, str], name: str, default: float, cast: type) -> Any:
    raw = env.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = cast(raw)
    except ValueError as exc:
        raise RuntimeError(f"{name} must be a number, got {raw!r}") from exc
    if value <= 0:
        raise RuntimeError(f"{name} must be positive, got {raw!r}")
    return value


@dataclass(frozen=True)
class PostgresConfig:
    """Connection and pool configuration.

    `database_url` should come from environment (e.g. DATABASE_URL).
    Do not log it.

    `acquire_timeout_s` bounds the wait for a pooled connection and is kept
    separate from `statement_timeout_ms`, which bounds a running query.
    """

    database_url: str
    max_connections: int = 20
    acquire_timeout_s: float = 2.0
    idle_timeout_s: float = 30.0
    connect_timeout_s: int = 5
    statement_timeout_ms: int = 30_000
    ssl_required: bool = False
    application_name: str = "options-store"

    @classmethod
    def from_env(cls, env: Optional[Mapping[str, str]] = None) -> "PostgresConfig":
        env = os.environ if env is None else env
        database_url = env.get("DATABASE_URL")
        if not database_url:
            raise RuntimeError("DATABASE_URL environment variable is required")

        return cls(
            database_url=normalize_database_url(database_url),
            max_connections=_env_number(env, "OPTIONS_DB_POOL_MAX", 20, int),
            acquire_timeout_s=_env_number(env, "OPTIONS_DB_ACQUIRE_TIMEOUT_S", 2.0, float),
            idle_timeout_s=_env_number(env, "OPTIONS_DB_IDLE_TIMEOUT_S", 30.0, float),
            connect_timeout_s=_env_number(env, "OPTIONS_DB_CONNECT_TIMEOUT_S", 5, int),
            statement_timeout_ms=_env_number(env, "OPTIONS_DB_STATEMENT_TIMEOUT_MS", 30_000, int),
            ssl_required=env.get("APP_ENV", "").lower() == "production",
        )

    def engine_options(self) -> dict[str, Any]:
        """Keyword arguments for sqlalchemy.create_engine."""
        connect_args: dict[str, Any] = {
            "connect_timeout": self.connect_timeout_s,
            "application_name": self.application_name,
            "options": f"-c statement_timeout={self.statement_timeout_ms}",
        }
        if self.ssl_required:
            connect_args["sslmode"] = "require"

        return {
            "echo": False,
            "pool_pre_ping": True,
            "pool_size": self.max_connections,
            "max_overflow": 0,
            "pool_timeout": self.acquire_timeout_s,
            "pool_recycle": self.idle_timeout_s,
            "connect_args": connect_args,
        }
