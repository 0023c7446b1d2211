"""
Tests for the persisted label set.
"""

import asyncio

import pytest

from field_label_sync.core.exceptions import CacheWriteError
from field_label_sync.etl.label_cache import LabelCache, merge_labels


class YieldingStore:
    """Store wrapper that suspends on every read and write, like a network store."""

    def __init__(self, store):
        self.store = store

    async def get(self, key):
        await asyncio.sleep(0)
        return await self.store.get(key)

    async def set(self, key, value):
        await asyncio.sleep(0)
        await self.store.set(key, value)

    def lock(self, name, timeout=None):
        return self.store.lock(name, timeout=timeout)


class TestLabelCache:
    """Read, overwrite and merge-upsert over the in-memory store."""

    @pytest.mark.asyncio
    async def test_read_all_on_empty_store_is_empty(self, label_cache):
        assert await label_cache.read_all() == []

    @pytest.mark.asyncio
    async def test_overwrite_then_read_returns_same_sequence(self, label_cache):
        labels = ["b | K | N", "a | K | N", "c | K | N"]

        await label_cache.overwrite(labels)

        assert await label_cache.read_all() == labels

    @pytest.mark.asyncio
    async def test_overwrite_replaces_previous_set(self, label_cache):
        await label_cache.overwrite(["old"])
        await label_cache.overwrite(["new"])

        assert await label_cache.read_all() == ["new"]

    @pytest.mark.asyncio
    async def test_non_list_value_reads_as_empty(self, label_cache, memory_store):
        await memory_store.set(label_cache.key, {"not": "a list"})

        assert await label_cache.read_all() == []

    @pytest.mark.asyncio
    async def test_merge_upsert_replaces_prior_contribution(self, label_cache):
        await label_cache.overwrite(["Red | KEY1 | Name1"])

        await label_cache.merge_upsert(["Red | KEY1 | Name1", "Blue | KEY1 | Name1"])

        assert await label_cache.read_all() == ["Red | KEY1 | Name1", "Blue | KEY1 | Name1"]

    @pytest.mark.asyncio
    async def test_merge_upsert_is_idempotent(self, label_cache):
        await label_cache.overwrite(["Other | K9 | N9"])
        batch = ["Red | KEY1 | Name1", "Blue | KEY1 | Name1"]

        await label_cache.merge_upsert(batch)
        once = await label_cache.read_all()
        await label_cache.merge_upsert(batch)
        twice = await label_cache.read_all()

        assert once == twice
        assert set(twice) == {"Other | K9 | N9", *batch}

    @pytest.mark.asyncio
    async def test_merge_upsert_keeps_labels_of_other_contexts(self, label_cache):
        await label_cache.overwrite(["A | K1 | N1", "B | K2 | N2"])

        merged = await label_cache.merge_upsert(["C | K3 | N3"])

        assert merged == ["A | K1 | N1", "B | K2 | N2", "C | K3 | N3"]

    @pytest.mark.asyncio
    async def test_unlocked_concurrent_merges_lose_updates(self, memory_store):
        cache = LabelCache(store=YieldingStore(memory_store), use_lock=False)

        await asyncio.gather(*(cache.merge_upsert([f"L{i}"]) for i in range(10)))

        assert len(await cache.read_all()) < 10

    @pytest.mark.asyncio
    async def test_locked_concurrent_merges_keep_every_update(self, memory_store):
        cache = LabelCache(store=YieldingStore(memory_store), use_lock=True)

        await asyncio.gather(*(cache.merge_upsert([f"L{i}"]) for i in range(10)))

        assert sorted(await cache.read_all()) == sorted(f"L{i}" for i in range(10))

    @pytest.mark.asyncio
    async def test_store_failure_raises_cache_write_error(self, memory_store):
        class BrokenStore:
            async def set(self, key, value):
                raise ConnectionError("store down")

        cache = LabelCache(store=BrokenStore(), key="labels")

        with pytest.raises(CacheWriteError) as exc_info:
            await cache.overwrite(["x"])

        assert exc_info.value.key == "labels"


class TestMergeLabels:

    def test_incoming_batch_is_appended_after_survivors(self):
        assert merge_labels(["a", "b", "c"], ["b", "d"]) == ["a", "c", "b", "d"]
