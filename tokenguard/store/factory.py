"""
Factory for creating revocation store backends.
Backends are looked up by name in a registry populated at import time.
"""

from typing import Callable, Dict, List

from ..core.config import StoreConfig
from .types import RevocationStore
from .memory import create_memory_store
from .distributed import create_distributed_store


StoreBuilder = Callable[[StoreConfig], RevocationStore]


def _build_memory(config: StoreConfig) -> RevocationStore:
    return create_memory_store()


def _build_redis(config: StoreConfig) -> RevocationStore:
    return create_distributed_store(
        config.redis_url,
        scan_count=config.key_scan_count,
        socket_timeout=config.socket_timeout,
    )


# Registry of available store backends
_STORE_BACKENDS: Dict[str, StoreBuilder] = {
    'memory': _build_memory,
    'redis': _build_redis,
}


class StoreFactory:
    """Factory for creating revocation store backends."""

    @staticmethod
    def create_store(config: StoreConfig) -> RevocationStore:
        """
        Create a revocation store instance.

        Args:
            config: Store configuration; ``config.backend`` selects the backend

        Returns:
            RevocationStore instance

        Raises:
            ValueError: If the backend is not registered
        """
        builder = _STORE_BACKENDS.get(config.backend.lower())
        if not builder:
            raise ValueError(f"Unsupported store backend: {config.backend}")
        return builder(config)

    @staticmethod
    def register_backend(name: str, builder: StoreBuilder) -> None:
        """
        Register a new store backend.

        Args:
            name: Name to register the backend under
            builder: Callable building the store from a StoreConfig
        """
        _STORE_BACKENDS[name.lower()] = builder

    @staticmethod
    def get_available_backends() -> List[str]:
        """Get list of available backend names."""
        return list(_STORE_BACKENDS.keys())


def create_revocation_store(config: StoreConfig = None) -> RevocationStore:
    """Convenience function to create a store from configuration."""
    return StoreFactory.create_store(config or StoreConfig())
