"""
Tests for the in-memory revocation store.
"""

import asyncio
from datetime import timedelta

import pytest

from tokenguard.core.config import StoreConfig
from tokenguard.store import MemoryRevocationStore, RedisRevocationStore, StoreFactory, create_revocation_store
from tokenguard.store.memory import glob_to_regex
from tokenguard.token.keys import escape_glob


class TestMemoryStore:
    """Basic key-value operations with TTL"""

    @pytest.mark.asyncio
    async def test_put_get_delete(self, store):
        await store.put_with_expiry("k1", "v1", 60)
        assert await store.get("k1") == "v1"
        assert await store.exists("k1")

        assert await store.delete("k1", "missing") == 1
        assert await store.get("k1") is None
        assert not await store.exists("k1")

    @pytest.mark.asyncio
    async def test_entries_expire_at_ttl(self, store, clock):
        await store.put_with_expiry("k1", "v1", timedelta(seconds=30))
        clock.advance(29)
        assert await store.get("k1") == "v1"
        clock.advance(1)
        assert await store.get("k1") is None
        assert await store.count() == 0

    @pytest.mark.asyncio
    async def test_put_replaces_value_and_ttl(self, store, clock):
        await store.put_with_expiry("k1", "v1", 10)
        clock.advance(5)
        await store.put_with_expiry("k1", "v2", 10)
        clock.advance(8)
        assert await store.get("k1") == "v2"

    @pytest.mark.asyncio
    async def test_scan_keys(self, store):
        await store.put_with_expiry("app:auth:t1:access:user:alice:a1", "x", 60)
        await store.put_with_expiry("app:auth:t1:access:user:bob:b1", "x", 60)
        await store.put_with_expiry("app:auth:t2:access:user:carol:c1", "x", 60)
        await store.put_with_expiry("app:auth:t1:refresh:user:alice", "x", 60)

        keys = sorted(await store.scan_list("app:auth:t1:access:*"))
        assert keys == ["app:auth:t1:access:user:alice:a1", "app:auth:t1:access:user:bob:b1"]

    @pytest.mark.asyncio
    async def test_scan_skips_expired(self, store, clock):
        await store.put_with_expiry("p:1", "x", 5)
        await store.put_with_expiry("p:2", "x", 50)
        clock.advance(10)
        assert await store.scan_list("p:*") == ["p:2"]

    @pytest.mark.asyncio
    async def test_pipeline_get_keeps_order(self, store):
        await store.put_with_expiry("a", "1", 60)
        await store.put_with_expiry("c", "3", 60)
        assert await store.pipeline_get(["c", "b", "a"]) == ["3", None, "1"]
        assert await store.pipeline_get([]) == []

    @pytest.mark.asyncio
    async def test_pipeline_delete(self, store):
        for key in ("a", "b", "c"):
            await store.put_with_expiry(key, key, 60)
        assert await store.pipeline_delete(["a", "b", "zzz"]) == 2
        assert await store.pipeline_delete([]) == 0
        assert await store.get("c") == "c"

    @pytest.mark.asyncio
    async def test_replace_if_unchanged(self, store):
        await store.put_with_expiry("k", "old", 60)
        assert await store.replace_if_unchanged("k", "old", "new", 60)
        assert await store.get("k") == "new"

        assert not await store.replace_if_unchanged("k", "old", "newer", 60)
        assert await store.get("k") == "new"
        assert not await store.replace_if_unchanged("absent", "old", "new", 60)
        assert await store.get("absent") is None

    @pytest.mark.asyncio
    async def test_concurrent_replace_has_one_winner(self, store):
        await store.put_with_expiry("k", "old", 60)
        results = await asyncio.gather(*[
            store.replace_if_unchanged("k", "old", f"new-{i}", 60) for i in range(10)
        ])
        assert results.count(True) == 1

    @pytest.mark.asyncio
    async def test_clear(self, store):
        await store.put_with_expiry("a", "1", 60)
        assert await store.clear() == 1
        assert await store.count() == 0


class TestGlob:
    """Redis-style glob matching"""

    def test_wildcards(self):
        assert glob_to_regex("a:*").match("a:b:c")
        assert glob_to_regex("a:?").match("a:b")
        assert not glob_to_regex("a:?").match("a:bc")
        assert not glob_to_regex("a:*").match("b:a:c")

    def test_escaped_metacharacters_match_literally(self):
        pattern = f"app:{escape_glob('a*b')}:*"
        assert glob_to_regex(pattern).match("app:a*b:1")
        assert not glob_to_regex(pattern).match("app:axxb:1")


class TestStoreFactory:
    """Backends are looked up by name"""

    def test_default_backend_is_memory(self):
        assert isinstance(create_revocation_store(), MemoryRevocationStore)

    @pytest.mark.asyncio
    async def test_redis_backend(self):
        store = StoreFactory.create_store(StoreConfig(backend="redis", redis_url="redis://localhost:6399/0"))
        assert isinstance(store, RedisRevocationStore)
        await store.close()

    def test_unknown_backend(self):
        with pytest.raises(ValueError):
            StoreFactory.create_store(StoreConfig(backend="etcd"))

    def test_register_backend(self):
        StoreFactory.register_backend("scratch", lambda config: MemoryRevocationStore())
        assert "scratch" in StoreFactory.get_available_backends()
        assert isinstance(StoreFactory.create_store(StoreConfig(backend="Scratch")), MemoryRevocationStore)
