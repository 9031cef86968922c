"""
Revocation store interface for tokenguard.

The store is a TTL-backed key-value system holding server-side session
records. Entries must expire on their own at TTL, so stale sessions clean
themselves up without a sweep process.
"""

from abc import ABC, abstractmethod
from datetime import timedelta
from typing import AsyncIterator, List, Optional, Sequence, Union


TTL = Union[int, float, timedelta]


def ttl_seconds(ttl: TTL) -> int:
    """Normalise a TTL to whole seconds (minimum 1)."""
    if isinstance(ttl, timedelta):
        ttl = ttl.total_seconds()
    return max(1, int(ttl))


class RevocationStore(ABC):
    """
    Abstract base class for revocation store implementations.

    Implementations must be safe for concurrent use. Infrastructure faults are
    raised as ``StoreUnavailableError``; an absent key is never an error.
    """

    @abstractmethod
    async def get(self, key: str) -> Optional[str]:
        """
        Retrieve the value for a key.

        Args:
            key: Store key

        Returns:
            Stored value, or None if absent or expired
        """
        pass

    @abstractmethod
    async def put_with_expiry(self, key: str, value: str, ttl: TTL) -> None:
        """
        Store a value that expires after ``ttl``, replacing any previous value.

        Args:
            key: Store key
            value: Serialized record
            ttl: Time to live (seconds or timedelta)
        """
        pass

    @abstractmethod
    async def delete(self, *keys: str) -> int:
        """
        Remove keys from the store.

        Returns:
            Number of keys that existed and were removed
        """
        pass

    @abstractmethod
    def scan_keys(self, pattern: str) -> AsyncIterator[str]:
        """
        Iterate keys matching a glob pattern (``*`` wildcard).

        Args:
            pattern: Glob pattern, e.g. ``app:auth:t1:access:*``
        """
        pass

    @abstractmethod
    async def pipeline_get(self, keys: Sequence[str]) -> List[Optional[str]]:
        """
        Fetch many keys in one batched round trip.

        Returns:
            Values in the same order as ``keys``; None for vanished keys
        """
        pass

    @abstractmethod
    async def pipeline_delete(self, keys: Sequence[str]) -> int:
        """
        Delete many keys in one batched round trip.

        Returns:
            Number of keys removed
        """
        pass

    @abstractmethod
    async def replace_if_unchanged(self, key: str, expected: str, value: str, ttl: TTL) -> bool:
        """
        Atomically replace ``key`` with ``value`` only if it still holds ``expected``.

        Returns:
            True if the value was replaced, False if it changed or vanished
        """
        pass

    async def exists(self, key: str) -> bool:
        """
        Check if a key exists in the store.

        Args:
            key: Store key

        Returns:
            True if key exists, False otherwise
        """
        return await self.get(key) is not None

    async def scan_list(self, pattern: str) -> List[str]:
        """Collect ``scan_keys`` into a list."""
        return [key async for key in self.scan_keys(pattern)]

    async def close(self) -> None:
        """Release connections held by the store."""
        pass
