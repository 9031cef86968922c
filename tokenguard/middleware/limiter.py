"""
In-process token bucket used by the ``rate_limit`` middleware.
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, Optional

from ..common.utils import get_current_time
from ..core.config import RateLimitConfig


logger = logging.getLogger(__name__)


@dataclass
class RateLimitQuota:
    """Information about rate limit quota."""

    allowed: bool
    remaining: int
    reset_time: datetime
    retry_after: Optional[float] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "allowed": self.allowed,
            "remaining": self.remaining,
            "reset_time": self.reset_time.isoformat(),
            "retry_after": self.retry_after
        }


class TokenBucketLimiter:
    """Token bucket rate limiting, one bucket per identifier."""

    def __init__(self, config: RateLimitConfig, clock: Callable[[], float] = time.monotonic):
        """
        Initialize token bucket limiter.

        Args:
            config: Rate limiting configuration
            clock: Seconds clock; injectable for tests
        """
        if config.rate <= 0:
            raise ValueError("Rate must be positive")
        window = config.window.total_seconds()
        if window <= 0:
            raise ValueError("Window must be positive")
        self.config = config
        self.rate_per_second = config.rate / window
        self.burst_size = max(1, config.burst)
        self._buckets: Dict[str, Dict[str, float]] = {}
        self._lock = asyncio.Lock()
        self._clock = clock
        # A bucket idle this long has refilled completely and can be dropped
        self._idle_ttl = self.burst_size / self.rate_per_second
        self._last_cleanup = clock()

    async def allow(self, identifier: str) -> RateLimitQuota:
        """Take one token from the identifier's bucket if one is available."""
        async with self._lock:
            now = self._clock()
            if now - self._last_cleanup >= self.config.cleanup_interval:
                self._evict_idle(now)

            if identifier not in self._buckets:
                self._buckets[identifier] = {
                    "tokens": float(self.burst_size),
                    "last_update": now
                }

            bucket = self._buckets[identifier]

            # Replenish
            time_passed = now - bucket["last_update"]
            bucket["tokens"] = min(self.burst_size, bucket["tokens"] + time_passed * self.rate_per_second)
            bucket["last_update"] = now

            if bucket["tokens"] >= 1.0:
                bucket["tokens"] -= 1.0
                return RateLimitQuota(
                    allowed=True,
                    remaining=int(bucket["tokens"]),
                    reset_time=get_current_time() + self.config.window
                )

            retry_after = (1.0 - bucket["tokens"]) / self.rate_per_second
            logger.debug(f"Rate limit exceeded for {identifier}, retry after {retry_after:.2f}s")
            return RateLimitQuota(
                allowed=False,
                remaining=0,
                reset_time=get_current_time() + timedelta(seconds=retry_after),
                retry_after=retry_after
            )

    async def cleanup(self) -> int:
        """Drop buckets that have been idle long enough to refill; returns how many."""
        async with self._lock:
            return self._evict_idle(self._clock())

    def _evict_idle(self, now: float) -> int:
        expired = [identifier for identifier, bucket in self._buckets.items()
                   if now - bucket["last_update"] >= self._idle_ttl]
        for identifier in expired:
            del self._buckets[identifier]
        self._last_cleanup = now
        if expired:
            logger.debug(f"Cleaned up {len(expired)} idle rate limit buckets")
        return len(expired)

    def __len__(self) -> int:
        return len(self._buckets)

    async def reset(self, identifier: str) -> None:
        """Reset rate limit for identifier."""
        async with self._lock:
            self._buckets.pop(identifier, None)
