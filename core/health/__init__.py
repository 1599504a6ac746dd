"""Health check module."""

from core.health.checker import HealthChecker
from core.types import HealthStatus

__all__ = ["HealthChecker", "HealthStatus"]
