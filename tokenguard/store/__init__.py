"""
Revocation store package for tokenguard.

This package provides the TTL-backed key-value store interface that holds
server-side session records, with in-memory and Redis implementations.
"""

from .types import RevocationStore, ttl_seconds
from .memory import MemoryRevocationStore, create_memory_store
from .distributed import DistributedConfig, RedisRevocationStore, create_distributed_store
from .factory import StoreFactory, create_revocation_store

__all__ = [
    "RevocationStore",
    "ttl_seconds",
    "MemoryRevocationStore",
    "create_memory_store",
    "DistributedConfig",
    "RedisRevocationStore",
    "create_distributed_store",
    "StoreFactory",
    "create_revocation_store",
]
