"""Utility modules shared by the orchestration core."""

from .logging_config import setup_logging
from .rate_limiter import TenantRateLimiter, retry_with_backoff
from .timestamps import utc_now

__all__ = [
    "setup_logging",
    "TenantRateLimiter",
    "retry_with_backoff",
    "utc_now",
]
