"""Health check logic for system components."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

from core.errors import StoreError
from core.persistence.interfaces import QuoteStore
from core.quotes import as_utc
from core.types import HealthStatus

DEFAULT_MAX_STALENESS = timedelta(hours=1)


class HealthChecker:
    """Health checker for the quote store and ingestion freshness."""

    def __init__(
        self,
        store: QuoteStore,
        *,
        max_staleness: timedelta = DEFAULT_MAX_STALENESS,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        """Initialize health checker.

        Args:
            store: Quote store to check.
            max_staleness: Age of the newest snapshot beyond which ingestion is
                reported as degraded.
            clock: Override for the current time (tests).
        """
        self.store = store
        self.max_staleness = max_staleness
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    def check_database(self) -> HealthStatus:
        """Check database connectivity and measure latency."""
        return self.store.health_check()

    def check_ingestion(self) -> HealthStatus:
        """Check how recently quote snapshots were stored."""
        try:
            newest = self.store.newest_observed_at()
        except StoreError as exc:
            return HealthStatus(
                status="degraded",
                message="Cannot check ingestion status",
                details={"error": str(exc)},
            )

        if newest is None:
            return HealthStatus(status="degraded", message="No options data stored yet")

        age = self._clock() - as_utc(newest)
        details = {"newest_timestamp": as_utc(newest).isoformat(), "age_seconds": int(age.total_seconds())}
        if age > self.max_staleness:
            return HealthStatus(
                status="degraded",
                message=f"Newest snapshot is older than {self.max_staleness}",
                details=details,
            )
        return HealthStatus(status="ok", message="Ingestion active", details=details)

    def check_all(self) -> dict[str, HealthStatus]:
        """Check all system components."""
        database = self.check_database()
        if database.status == "error":
            return {
                "database": database,
                "ingestion": HealthStatus(
                    status="degraded",
                    message="Cannot check ingestion status without database",
                ),
            }
        return {
            "database": database,
            "ingestion": self.check_ingestion(),
        }
