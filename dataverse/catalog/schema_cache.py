# Copyright (c) 2025 Kenneth Stott
#
# This source code is licensed under the Business Source License 1.1
# found in the LICENSE file in the root directory of this source tree.
#
# NOTICE: Use of this software for training artificial intelligence or
# machine learning models is strictly prohibited without explicit written
# permission from the copyright holder.

"""Schema snapshot cache with TTL and write-behind persistence.

Lookups go cache store -> project store -> live extraction. The cache store
is advisory: when it fails, the lookup behaves like a miss and the error is
logged. Persisting a freshly extracted snapshot to the project store runs as
a detached task so callers never wait on it.

Usage:
    cache = SchemaCache(InMemoryCacheStore(), project_store)
    snapshot = await cache.get_or_extract("project-1", lambda: extractor.extract(connector))
"""

import asyncio
import logging
import time
from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone
from typing import Any, Awaitable, Callable, Optional

from dataverse.core.models import SchemaSnapshot
from dataverse.storage.projects import ProjectStore

logger = logging.getLogger(__name__)

DEFAULT_SCHEMA_TTL_SECONDS = 30 * 60


def cache_key(project_id: str) -> str:
    return f"schema:{project_id}"


def needs_refresh(
    snapshot: Optional[SchemaSnapshot],
    ttl_seconds: float = DEFAULT_SCHEMA_TTL_SECONDS,
    now: Optional[datetime] = None,
) -> bool:
    """True when there is no snapshot or it was synced longer ago than the TTL."""
    if snapshot is None or snapshot.last_synced is None:
        return True
    now = now or datetime.now(timezone.utc)
    return now - snapshot.last_synced > timedelta(seconds=ttl_seconds)


class CacheStore(ABC):
    """Key/value store with per-entry TTL."""

    @abstractmethod
    async def get(self, key: str) -> Any:
        """Return the stored value, or None if absent or expired."""
        pass

    @abstractmethod
    async def set(self, key: str, value: Any, ttl_seconds: float) -> None:
        pass

    @abstractmethod
    async def delete(self, key: str) -> None:
        pass


class InMemoryCacheStore(CacheStore):
    """Process-local cache store."""

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._entries: dict[str, tuple[Any, float]] = {}
        self._clock = clock

    async def get(self, key: str) -> Any:
        entry = self._entries.get(key)
        if entry is None:
            return None
        value, expires_at = entry
        if self._clock() >= expires_at:
            del self._entries[key]
            return None
        return value

    async def set(self, key: str, value: Any, ttl_seconds: float) -> None:
        self._entries[key] = (value, self._clock() + ttl_seconds)

    async def delete(self, key: str) -> None:
        self._entries.pop(key, None)

    def __len__(self) -> int:
        return len(self._entries)


class SchemaCache:
    """Serves schema snapshots per project, extracting only when needed."""

    def __init__(
        self,
        store: CacheStore,
        project_store: Optional[ProjectStore] = None,
        ttl_seconds: float = DEFAULT_SCHEMA_TTL_SECONDS,
    ):
        self.store = store
        self.project_store = project_store
        self.ttl_seconds = ttl_seconds
        self._pending: set[asyncio.Task] = set()

    async def get_cached(self, project_id: str) -> Optional[SchemaSnapshot]:
        """Read the cache store. Store failures and undecodable entries count as a miss."""
        try:
            value = await self.store.get(cache_key(project_id))
            if isinstance(value, dict):
                value = SchemaSnapshot.from_dict(value)
        except Exception as e:
            logger.warning(f"Schema cache read failed for {project_id}: {e}")
            return None
        if value is not None and not isinstance(value, SchemaSnapshot):
            logger.warning(f"Ignoring cached {type(value).__name__} for {project_id}")
            return None
        return value

    async def put(self, project_id: str, snapshot: SchemaSnapshot) -> None:
        """Write the cache store. Store failures are logged and ignored."""
        try:
            await self.store.set(cache_key(project_id), snapshot, self.ttl_seconds)
        except Exception as e:
            logger.warning(f"Schema cache write failed for {project_id}: {e}")

    async def invalidate(self, project_id: str) -> None:
        try:
            await self.store.delete(cache_key(project_id))
        except Exception as e:
            logger.warning(f"Schema cache invalidate failed for {project_id}: {e}")

    async def _stored_snapshot(self, project_id: str) -> Optional[SchemaSnapshot]:
        if self.project_store is None:
            return None
        try:
            snapshot = await self.project_store.find_project_schema(project_id)
        except Exception as e:
            logger.warning(f"Project store read failed for {project_id}: {e}")
            return None
        if needs_refresh(snapshot, self.ttl_seconds):
            return None
        return snapshot

    async def get_or_extract(
        self,
        project_id: str,
        extract: Callable[[], Awaitable[SchemaSnapshot]],
    ) -> Optional[SchemaSnapshot]:
        """Return a fresh snapshot for the project.

        Args:
            project_id: Project the snapshot belongs to
            extract: Async callable performing a live extraction

        Returns:
            The snapshot, or None if extraction failed (the failure is logged)
        """
        cached = await self.get_cached(project_id)
        if cached is not None:
            logger.debug(f"Schema cache hit for {project_id}")
            return cached

        stored = await self._stored_snapshot(project_id)
        if stored is not None:
            logger.debug(f"Using stored schema for {project_id}")
            await self.put(project_id, stored)
            return stored

        return await self._extract_and_store(project_id, extract)

    async def refresh(
        self,
        project_id: str,
        extract: Callable[[], Awaitable[SchemaSnapshot]],
    ) -> Optional[SchemaSnapshot]:
        """Drop any cached snapshot and extract a new one."""
        await self.invalidate(project_id)
        return await self._extract_and_store(project_id, extract)

    async def _extract_and_store(
        self,
        project_id: str,
        extract: Callable[[], Awaitable[SchemaSnapshot]],
    ) -> Optional[SchemaSnapshot]:
        try:
            snapshot = await extract()
        except Exception as e:
            logger.error(f"Schema extraction failed for {project_id}: {e}")
            return None

        await self.put(project_id, snapshot)
        self._persist_in_background(project_id, snapshot)
        return snapshot

    def _persist_in_background(self, project_id: str, snapshot: SchemaSnapshot) -> None:
        if self.project_store is None:
            return
        task = asyncio.get_running_loop().create_task(self._persist(project_id, snapshot))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _persist(self, project_id: str, snapshot: SchemaSnapshot) -> None:
        try:
            await self.project_store.persist_schema(project_id, snapshot)
        except Exception as e:
            logger.warning(f"Failed to persist schema for {project_id}: {e}")

    async def drain(self) -> None:
        """Wait for in-flight persistence tasks."""
        if self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)
