"""
Distributed revocation store implementation for tokenguard.

This module provides a Redis-based store suitable for production deployments
with multiple instances sharing one session keyspace.
"""

import logging
from typing import Any, AsyncIterator, Dict, List, Optional, Sequence

import redis.asyncio as redis
from redis.exceptions import RedisError, WatchError

from ..auth.errors import StoreUnavailableError
from .types import RevocationStore, TTL, ttl_seconds


logger = logging.getLogger(__name__)


class DistributedConfig:
    """Configuration for the Redis revocation store."""

    def __init__(self,
                 url: str = "redis://localhost:6379/0",
                 scan_count: int = 500,
                 socket_timeout: Optional[float] = 5.0,
                 connection_pool_kwargs: Dict[str, Any] = None):
        """
        Initialize distributed configuration.

        Args:
            url: Redis connection URL
            scan_count: COUNT hint for SCAN iterations
            socket_timeout: Socket timeout in seconds for every command
            connection_pool_kwargs: Additional connection pool arguments
        """
        self.url = url
        self.scan_count = scan_count
        self.socket_timeout = socket_timeout
        self.connection_pool_kwargs = connection_pool_kwargs or {}


class RedisRevocationStore(RevocationStore):
    """
    Redis-based revocation store implementation.

    Values are stored with ``SET .. EX`` so Redis expires them itself. Bulk
    reads and deletes go through one non-transactional pipeline; conditional
    replacement uses ``WATCH``/``MULTI``.
    """

    def __init__(self, config: DistributedConfig = None, client: Any = None):
        """
        Initialize Redis revocation store.

        Args:
            config: Distributed configuration
            client: Pre-built ``redis.asyncio`` client (takes precedence over config.url)
        """
        self.config = config or DistributedConfig()
        self._redis = client
        if self._redis is None:
            self._redis = redis.from_url(
                self.config.url,
                decode_responses=True,
                socket_timeout=self.config.socket_timeout,
                **self.config.connection_pool_kwargs
            )
            logger.info("Created Redis revocation store client")

    @staticmethod
    def _decode(value: Any) -> Optional[str]:
        if isinstance(value, bytes):
            return value.decode('utf-8')
        return value

    async def ping(self) -> bool:
        """Check connectivity."""
        try:
            return bool(await self._redis.ping())
        except RedisError as e:
            raise StoreUnavailableError(f"Redis ping failed: {e}")

    async def get(self, key: str) -> Optional[str]:
        """Retrieve the value for a key."""
        try:
            return self._decode(await self._redis.get(key))
        except RedisError as e:
            logger.error(f"Failed to get {key}: {e}")
            raise StoreUnavailableError(f"Redis GET failed: {e}", {"key": key})

    async def put_with_expiry(self, key: str, value: str, ttl: TTL) -> None:
        """Store a value that expires after ``ttl``."""
        try:
            await self._redis.set(key, value, ex=ttl_seconds(ttl))
        except RedisError as e:
            logger.error(f"Failed to put {key}: {e}")
            raise StoreUnavailableError(f"Redis SET failed: {e}", {"key": key})

    async def delete(self, *keys: str) -> int:
        """Remove keys from the store."""
        if not keys:
            return 0
        try:
            return int(await self._redis.delete(*keys))
        except RedisError as e:
            logger.error(f"Failed to delete {len(keys)} keys: {e}")
            raise StoreUnavailableError(f"Redis DEL failed: {e}")

    async def exists(self, key: str) -> bool:
        """Check if a key exists in the store."""
        try:
            return bool(await self._redis.exists(key))
        except RedisError as e:
            logger.error(f"Failed to check {key}: {e}")
            raise StoreUnavailableError(f"Redis EXISTS failed: {e}", {"key": key})

    async def scan_keys(self, pattern: str) -> AsyncIterator[str]:
        """Iterate keys matching a glob pattern with cursor-based SCAN."""
        try:
            async for key in self._redis.scan_iter(match=pattern, count=self.config.scan_count):
                yield self._decode(key)
        except RedisError as e:
            logger.error(f"Failed to scan {pattern}: {e}")
            raise StoreUnavailableError(f"Redis SCAN failed: {e}", {"pattern": pattern})

    async def pipeline_get(self, keys: Sequence[str]) -> List[Optional[str]]:
        """Fetch many keys in one round trip."""
        if not keys:
            return []
        try:
            async with self._redis.pipeline(transaction=False) as pipe:
                for key in keys:
                    pipe.get(key)
                values = await pipe.execute()
            return [self._decode(value) for value in values]
        except RedisError as e:
            logger.error(f"Failed to pipeline get {len(keys)} keys: {e}")
            raise StoreUnavailableError(f"Redis pipeline GET failed: {e}")

    async def pipeline_delete(self, keys: Sequence[str]) -> int:
        """Delete many keys in one round trip."""
        if not keys:
            return 0
        try:
            async with self._redis.pipeline(transaction=False) as pipe:
                for key in keys:
                    pipe.delete(key)
                results = await pipe.execute()
            return sum(int(result) for result in results)
        except RedisError as e:
            logger.error(f"Failed to pipeline delete {len(keys)} keys: {e}")
            raise StoreUnavailableError(f"Redis pipeline DEL failed: {e}")

    async def replace_if_unchanged(self, key: str, expected: str, value: str, ttl: TTL) -> bool:
        """Replace ``key`` only if it still holds ``expected`` (optimistic WATCH)."""
        try:
            async with self._redis.pipeline(transaction=True) as pipe:
                await pipe.watch(key)
                current = self._decode(await pipe.get(key))
                if current != expected:
                    await pipe.unwatch()
                    return False
                pipe.multi()
                pipe.set(key, value, ex=ttl_seconds(ttl))
                await pipe.execute()
                return True
        except WatchError:
            logger.debug(f"Concurrent modification of {key}")
            return False
        except RedisError as e:
            logger.error(f"Failed to replace {key}: {e}")
            raise StoreUnavailableError(f"Redis WATCH/MULTI failed: {e}", {"key": key})

    async def close(self) -> None:
        """Close the Redis connection pool."""
        if self._redis is not None:
            await self._redis.aclose()
            logger.info("Closed Redis revocation store")


def create_distributed_store(url: str = "redis://localhost:6379/0", **kwargs) -> RedisRevocationStore:
    """
    Create a Redis revocation store.

    Args:
        url: Redis connection URL
        **kwargs: Additional DistributedConfig options

    Returns:
        RedisRevocationStore instance
    """
    return RedisRevocationStore(DistributedConfig(url=url, **kwargs))
