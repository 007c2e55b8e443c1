# Copyright (c) 2025 Kenneth Stott
#
# This source code is licensed under the Business Source License 1.1
# found in the LICENSE file in the root directory of this source tree.
#
# NOTICE: Use of this software for training artificial intelligence or
# machine learning models is strictly prohibited without explicit written
# permission from the copyright holder.

"""Tests for the schema snapshot cache."""

from dataclasses import replace
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock

import pytest

from dataverse.catalog.schema_cache import (
    CacheStore,
    InMemoryCacheStore,
    SchemaCache,
    cache_key,
    needs_refresh,
)
from dataverse.core.errors import DatabaseConnectionError
from dataverse.storage.projects import InMemoryProjectStore


class BrokenCacheStore(CacheStore):
    """Cache store whose backend is down."""

    async def get(self, key):
        raise ConnectionError("cache unavailable")

    async def set(self, key, value, ttl_seconds):
        raise ConnectionError("cache unavailable")

    async def delete(self, key):
        raise ConnectionError("cache unavailable")


class TestNeedsRefresh:

    def test_missing_snapshot(self):
        assert needs_refresh(None) is True

    def test_fresh_and_stale(self, shop_snapshot):
        synced = shop_snapshot.last_synced
        assert needs_refresh(shop_snapshot, 1800, now=synced + timedelta(minutes=29)) is False
        assert needs_refresh(shop_snapshot, 1800, now=synced + timedelta(minutes=31)) is True


class TestInMemoryCacheStore:

    @pytest.mark.asyncio
    async def test_entries_expire(self):
        now = [0.0]
        store = InMemoryCacheStore(clock=lambda: now[0])

        await store.set("k", "v", ttl_seconds=10)
        assert await store.get("k") == "v"

        now[0] = 10.0
        assert await store.get("k") is None
        assert len(store) == 0

    @pytest.mark.asyncio
    async def test_delete(self):
        store = InMemoryCacheStore()
        await store.set("k", "v", ttl_seconds=10)
        await store.delete("k")
        await store.delete("missing")
        assert await store.get("k") is None


class TestSchemaCache:
    """Tests for the cache -> project store -> extraction lookup order."""

    @pytest.mark.asyncio
    async def test_miss_extracts_and_caches(self, shop_snapshot):
        store = InMemoryCacheStore()
        cache = SchemaCache(store)
        extract = AsyncMock(return_value=shop_snapshot)

        first = await cache.get_or_extract("p1", extract)
        second = await cache.get_or_extract("p1", extract)

        assert first is shop_snapshot
        assert second is shop_snapshot
        extract.assert_awaited_once()
        assert await store.get(cache_key("p1")) is shop_snapshot

    @pytest.mark.asyncio
    async def test_projects_cached_independently(self, shop_snapshot):
        cache = SchemaCache(InMemoryCacheStore())
        extract = AsyncMock(return_value=shop_snapshot)

        await cache.get_or_extract("p1", extract)
        await cache.get_or_extract("p2", extract)

        assert extract.await_count == 2

    @pytest.mark.asyncio
    async def test_expired_entry_extracts_again(self, shop_snapshot):
        now = [0.0]
        cache = SchemaCache(InMemoryCacheStore(clock=lambda: now[0]), ttl_seconds=60)
        extract = AsyncMock(return_value=shop_snapshot)

        await cache.get_or_extract("p1", extract)
        now[0] = 61.0
        await cache.get_or_extract("p1", extract)

        assert extract.await_count == 2

    @pytest.mark.asyncio
    async def test_dict_values_are_decoded(self, shop_snapshot):
        store = InMemoryCacheStore()
        await store.set(cache_key("p1"), shop_snapshot.to_dict(), ttl_seconds=60)

        cached = await SchemaCache(store).get_cached("p1")

        assert cached.database_name == "shop"
        assert cached.collection_names == shop_snapshot.collection_names

    @pytest.mark.asyncio
    @pytest.mark.parametrize("payload", [{"databaseName": "shop"}, "not a snapshot", 42])
    async def test_undecodable_entry_extracts_again(self, shop_snapshot, payload):
        store = InMemoryCacheStore()
        await store.set(cache_key("p1"), payload, ttl_seconds=60)
        cache = SchemaCache(store)
        extract = AsyncMock(return_value=shop_snapshot)

        assert await cache.get_cached("p1") is None
        assert await cache.get_or_extract("p1", extract) is shop_snapshot
        extract.assert_awaited_once()
        assert await store.get(cache_key("p1")) is shop_snapshot

    @pytest.mark.asyncio
    async def test_fresh_stored_snapshot_used(self, shop_snapshot):
        projects = InMemoryProjectStore()
        await projects.persist_schema("p1", shop_snapshot)
        store = InMemoryCacheStore()
        cache = SchemaCache(store, projects)
        extract = AsyncMock()

        result = await cache.get_or_extract("p1", extract)

        assert result is shop_snapshot
        extract.assert_not_awaited()
        assert await store.get(cache_key("p1")) is shop_snapshot

    @pytest.mark.asyncio
    async def test_stale_stored_snapshot_ignored(self, shop_snapshot):
        stale = replace(shop_snapshot, last_synced=datetime.now(timezone.utc) - timedelta(hours=2))
        projects = InMemoryProjectStore()
        await projects.persist_schema("p1", stale)
        cache = SchemaCache(InMemoryCacheStore(), projects)

        result = await cache.get_or_extract("p1", AsyncMock(return_value=shop_snapshot))
        await cache.drain()

        assert result is shop_snapshot
        assert await projects.find_project_schema("p1") is shop_snapshot

    @pytest.mark.asyncio
    async def test_fresh_extraction_persisted_in_background(self, shop_snapshot):
        projects = InMemoryProjectStore()
        cache = SchemaCache(InMemoryCacheStore(), projects)

        await cache.get_or_extract("p1", AsyncMock(return_value=shop_snapshot))
        await cache.drain()

        assert await projects.find_project_schema("p1") is shop_snapshot

    @pytest.mark.asyncio
    async def test_persist_failure_does_not_affect_result(self, shop_snapshot):
        projects = AsyncMock()
        projects.find_project_schema.return_value = None
        projects.persist_schema.side_effect = RuntimeError("disk full")
        cache = SchemaCache(InMemoryCacheStore(), projects)

        result = await cache.get_or_extract("p1", AsyncMock(return_value=shop_snapshot))
        await cache.drain()

        assert result is shop_snapshot
        projects.persist_schema.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_extraction_failure_returns_none(self):
        store = InMemoryCacheStore()
        cache = SchemaCache(store)
        extract = AsyncMock(side_effect=DatabaseConnectionError("unreachable"))

        assert await cache.get_or_extract("p1", extract) is None
        assert len(store) == 0

    @pytest.mark.asyncio
    async def test_broken_store_behaves_like_miss(self, shop_snapshot):
        cache = SchemaCache(BrokenCacheStore())
        extract = AsyncMock(return_value=shop_snapshot)

        assert await cache.get_or_extract("p1", extract) is shop_snapshot
        assert await cache.get_or_extract("p1", extract) is shop_snapshot
        assert extract.await_count == 2
        await cache.invalidate("p1")

    @pytest.mark.asyncio
    async def test_refresh_bypasses_cache(self, shop_snapshot):
        newer = replace(shop_snapshot, database_name="shop_v2")
        store = InMemoryCacheStore()
        cache = SchemaCache(store)
        await cache.put("p1", shop_snapshot)

        result = await cache.refresh("p1", AsyncMock(return_value=newer))

        assert result is newer
        assert await cache.get_cached("p1") is newer
