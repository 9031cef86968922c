"""
In-memory revocation store implementation for tokenguard.

This module provides a concurrency-safe in-memory store suitable for
development, tests and single-instance deployments.
"""

import asyncio
import logging
import re
import time
from typing import AsyncIterator, Callable, Dict, List, Optional, Sequence, Tuple

from .types import RevocationStore, TTL, ttl_seconds


logger = logging.getLogger(__name__)


def glob_to_regex(pattern: str) -> "re.Pattern":
    """Translate a Redis-style glob (`*`, `?`, backslash escapes) to a regex."""
    parts = []
    escaped = False
    for char in pattern:
        if escaped:
            parts.append(re.escape(char))
            escaped = False
        elif char == "\\":
            escaped = True
        elif char == "*":
            parts.append(".*")
        elif char == "?":
            parts.append(".")
        else:
            parts.append(re.escape(char))
    return re.compile("".join(parts) + r"\Z", re.DOTALL)


class MemoryRevocationStore(RevocationStore):
    """
    In-memory revocation store implementation.

    Entries are kept as ``(value, deadline)`` pairs and expire lazily: any
    read, scan or count that touches an expired entry drops it.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        """
        Initialize memory revocation store.

        Args:
            clock: Monotonic clock returning seconds; injectable for tests
        """
        self._store: Dict[str, Tuple[str, float]] = {}
        self._lock = asyncio.Lock()
        self._clock = clock

    def _live(self, key: str) -> Optional[str]:
        entry = self._store.get(key)
        if entry is None:
            return None
        value, deadline = entry
        if self._clock() >= deadline:
            del self._store[key]
            logger.debug(f"Expired key {key}")
            return None
        return value

    async def get(self, key: str) -> Optional[str]:
        """Retrieve the value for a key."""
        async with self._lock:
            return self._live(key)

    async def put_with_expiry(self, key: str, value: str, ttl: TTL) -> None:
        """Store a value that expires after ``ttl``."""
        async with self._lock:
            self._store[key] = (value, self._clock() + ttl_seconds(ttl))

    async def delete(self, *keys: str) -> int:
        """Remove keys from the store."""
        async with self._lock:
            removed = 0
            for key in keys:
                if self._live(key) is not None:
                    del self._store[key]
                    removed += 1
            return removed

    async def scan_keys(self, pattern: str) -> AsyncIterator[str]:
        """Iterate keys matching a glob pattern."""
        regex = glob_to_regex(pattern)
        async with self._lock:
            matched = [key for key in list(self._store)
                       if regex.match(key) and self._live(key) is not None]
        for key in matched:
            yield key

    async def pipeline_get(self, keys: Sequence[str]) -> List[Optional[str]]:
        """Fetch many keys at once."""
        async with self._lock:
            return [self._live(key) for key in keys]

    async def pipeline_delete(self, keys: Sequence[str]) -> int:
        """Delete many keys at once."""
        return await self.delete(*keys)

    async def replace_if_unchanged(self, key: str, expected: str, value: str, ttl: TTL) -> bool:
        """Replace ``key`` only if it still holds ``expected``."""
        async with self._lock:
            if self._live(key) != expected:
                return False
            self._store[key] = (value, self._clock() + ttl_seconds(ttl))
            return True

    async def count(self) -> int:
        """Count live entries."""
        async with self._lock:
            return sum(1 for key in list(self._store) if self._live(key) is not None)

    async def clear(self) -> int:
        """
        Clear all entries from the store.

        Returns:
            Number of entries cleared
        """
        async with self._lock:
            count = len(self._store)
            self._store.clear()
            logger.info(f"Cleared {count} entries from memory store")
            return count


def create_memory_store(**kwargs) -> MemoryRevocationStore:
    """Create a memory-based revocation store."""
    return MemoryRevocationStore(**kwargs)
