"""Rate limiting adapters.

This package provides a small abstraction layer so login throttling can start
with an in-memory entry table and later migrate to a shared store without
changing the API layer.
"""

from authguard.adapters.rate_limit.base import (
    AbstractLoginRateLimiter,
    RateLimitEntry,
    RateLimitResult,
    RateLimitStatistics,
)
from authguard.adapters.rate_limit.in_memory import InMemoryProgressiveRateLimiter
from authguard.adapters.rate_limit.sweeper import RateLimitSweeper

__all__ = [
    "AbstractLoginRateLimiter",
    "InMemoryProgressiveRateLimiter",
    "RateLimitEntry",
    "RateLimitResult",
    "RateLimitStatistics",
    "RateLimitSweeper",
]
