# Copyright (c) 2025 Kenneth Stott
#
# This source code is licensed under the Business Source License 1.1
# found in the LICENSE file in the root directory of this source tree.
#
# NOTICE: Use of this software for training artificial intelligence or
# machine learning models is strictly prohibited without explicit written
# permission from the copyright holder.

"""Reference-counted MongoDB client pool.

One client is kept per distinct connection string. Callers acquire a handle,
use it, and release it; the pool only closes clients that have no holders and
have been idle longer than the idle timeout. A background task sweeps idle
clients on a fixed interval regardless of traffic.

Usage:
    pool = MongoConnectionPool()
    pool.start()

    handle = await pool.acquire("mongodb://localhost:27017/shop")
    try:
        handle.client["shop"]["orders"].find_one()
    finally:
        pool.release("mongodb://localhost:27017/shop")

    # Or use the context manager
    async with pool.connection(uri) as handle:
        ...

    await pool.close_all()
"""

import asyncio
import hashlib
import logging
import time
from concurrent.futures import ThreadPoolExecutor
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Any, AsyncIterator, Callable, Optional

from pymongo import MongoClient
from pymongo.errors import PyMongoError

from dataverse.core.errors import DatabaseConnectionError, ValidationError
from dataverse.core.models import PoolStats

logger = logging.getLogger(__name__)

# Shared thread pool for blocking pymongo calls
_DEFAULT_EXECUTOR = ThreadPoolExecutor(max_workers=10)

DEFAULT_CONNECT_TIMEOUT_MS = 5000
DEFAULT_SOCKET_TIMEOUT_MS = 30000
DEFAULT_MAX_POOL_SIZE = 10
DEFAULT_IDLE_TIMEOUT_SECONDS = 30 * 60
DEFAULT_SWEEP_INTERVAL_SECONDS = 60


def pool_key(connection_string: str) -> str:
    """Stable key for a connection string that does not expose credentials."""
    digest = hashlib.sha256(connection_string.encode("utf-8")).hexdigest()[:16]
    return f"pool_{digest}"


async def run_blocking(func: Callable, *args, executor: Optional[ThreadPoolExecutor] = None) -> Any:
    """Run a blocking call on the shared executor."""
    loop = asyncio.get_running_loop()
    return await loop.run_in_executor(executor or _DEFAULT_EXECUTOR, lambda: func(*args))


@dataclass
class ConnectionHandle:
    """A pooled client and its bookkeeping."""
    key: str
    client: Any
    ref_count: int = 0
    last_used: float = 0.0


class MongoConnectionPool:
    """Pool of live MongoDB clients keyed by connection string."""

    def __init__(
        self,
        connect_timeout_ms: int = DEFAULT_CONNECT_TIMEOUT_MS,
        socket_timeout_ms: int = DEFAULT_SOCKET_TIMEOUT_MS,
        max_pool_size: int = DEFAULT_MAX_POOL_SIZE,
        idle_timeout: float = DEFAULT_IDLE_TIMEOUT_SECONDS,
        sweep_interval: float = DEFAULT_SWEEP_INTERVAL_SECONDS,
        client_factory: Optional[Callable[[str], Any]] = None,
        clock: Callable[[], float] = time.monotonic,
        executor: Optional[ThreadPoolExecutor] = None,
    ):
        """
        Initialize the pool.

        Args:
            connect_timeout_ms: Server selection and connect timeout for new clients
            socket_timeout_ms: Per-operation socket read/write timeout; a stalled server
                surfaces as DatabaseConnectionError instead of blocking forever
            max_pool_size: Driver-level socket pool size per client
            idle_timeout: Seconds an unreferenced client may sit idle before eviction
            sweep_interval: Seconds between background idle sweeps
            client_factory: Builds a client from a connection string (defaults to MongoClient)
            clock: Monotonic time source
            executor: Thread pool for blocking driver calls
        """
        self.connect_timeout_ms = connect_timeout_ms
        self.socket_timeout_ms = socket_timeout_ms
        self.max_pool_size = max_pool_size
        self.idle_timeout = idle_timeout
        self.sweep_interval = sweep_interval
        self._client_factory = client_factory or self._default_client_factory
        self._clock = clock
        self._executor = executor
        self._handles: dict[str, ConnectionHandle] = {}
        self._locks: dict[str, asyncio.Lock] = {}
        # Callers holding or waiting on each key's lock
        self._lock_users: dict[str, int] = {}
        self._sweep_task: Optional[asyncio.Task] = None

    def _default_client_factory(self, connection_string: str) -> MongoClient:
        return MongoClient(
            connection_string,
            serverSelectionTimeoutMS=self.connect_timeout_ms,
            connectTimeoutMS=self.connect_timeout_ms,
            socketTimeoutMS=self.socket_timeout_ms,
            maxPoolSize=self.max_pool_size,
        )

    def _open_client(self, connection_string: str) -> Any:
        """Create a client and prove it is reachable (runs in the executor)."""
        client = self._client_factory(connection_string)
        try:
            client.admin.command("ping")
        except Exception:
            client.close()
            raise
        return client

    async def acquire(self, connection_string: str) -> ConnectionHandle:
        """Get a handle for the connection string, creating the client on first use.

        Concurrent first acquires for the same key share a single client.

        Raises:
            ValidationError: Empty connection string
            DatabaseConnectionError: The client could not be created or reached
        """
        if not connection_string:
            raise ValidationError("Connection string is required")

        key = pool_key(connection_string)
        lock = self._locks.setdefault(key, asyncio.Lock())
        self._lock_users[key] = self._lock_users.get(key, 0) + 1
        try:
            async with lock:
                handle = self._handles.get(key)
                if handle is not None:
                    handle.ref_count += 1
                    handle.last_used = self._clock()
                    logger.debug(f"Reusing connection {key} (refs={handle.ref_count})")
                    return handle

                logger.info(f"Creating connection {key}")
                try:
                    client = await run_blocking(self._open_client, connection_string, executor=self._executor)
                except PyMongoError as e:
                    raise DatabaseConnectionError(f"Failed to connect to MongoDB: {e}") from e

                handle = ConnectionHandle(key=key, client=client, ref_count=1, last_used=self._clock())
                self._handles[key] = handle
                return handle
        finally:
            self._drop_lock_user(key, lock)

    def _drop_lock_user(self, key: str, lock: asyncio.Lock) -> None:
        """Forget a key's lock once nobody uses it and no client was opened."""
        users = self._lock_users.get(key, 0) - 1
        if users > 0:
            self._lock_users[key] = users
            return
        self._lock_users.pop(key, None)
        if key not in self._handles and self._locks.get(key) is lock:
            del self._locks[key]

    def release(self, connection_string: str) -> None:
        """Give a handle back. The client stays open until swept."""
        key = pool_key(connection_string)
        handle = self._handles.get(key)
        if handle is None:
            return
        if handle.ref_count <= 0:
            logger.warning(f"Release of {key} with no outstanding references")
            handle.ref_count = 0
        else:
            handle.ref_count -= 1
        handle.last_used = self._clock()
        logger.debug(f"Released connection {key} (refs={handle.ref_count})")

    @asynccontextmanager
    async def connection(self, connection_string: str) -> AsyncIterator[ConnectionHandle]:
        """Context manager for acquire/release."""
        handle = await self.acquire(connection_string)
        try:
            yield handle
        finally:
            self.release(connection_string)

    async def sweep(self) -> int:
        """Close unreferenced clients idle longer than the idle timeout.

        Returns:
            Number of clients closed
        """
        now = self._clock()
        evicted = []
        for key, handle in list(self._handles.items()):
            if self._lock_users.get(key):
                continue
            if handle.ref_count == 0 and now - handle.last_used > self.idle_timeout:
                del self._handles[key]
                self._locks.pop(key, None)
                evicted.append(handle)

        for handle in evicted:
            await self._close_handle(handle)
            logger.info(f"Closed idle connection {handle.key}")
        return len(evicted)

    async def _close_handle(self, handle: ConnectionHandle) -> None:
        try:
            await run_blocking(handle.client.close, executor=self._executor)
        except Exception as e:
            logger.warning(f"Error closing connection {handle.key}: {e}")

    async def _sweep_loop(self) -> None:
        while True:
            await asyncio.sleep(self.sweep_interval)
            try:
                await self.sweep()
            except Exception as e:
                logger.warning(f"Connection sweep failed: {e}")

    def start(self) -> None:
        """Start the background idle sweep. Requires a running event loop."""
        if self._sweep_task is None or self._sweep_task.done():
            self._sweep_task = asyncio.get_running_loop().create_task(self._sweep_loop())

    async def close_all(self) -> None:
        """Close every client regardless of references and stop sweeping."""
        if self._sweep_task is not None:
            self._sweep_task.cancel()
            try:
                await self._sweep_task
            except asyncio.CancelledError:
                pass
            self._sweep_task = None

        handles = list(self._handles.values())
        self._handles.clear()
        self._locks.clear()
        for handle in handles:
            await self._close_handle(handle)
        if handles:
            logger.info(f"Closed {len(handles)} pooled connection(s)")

    def stats(self) -> list[PoolStats]:
        return [
            PoolStats(pool_key=h.key, ref_count=h.ref_count, last_used=h.last_used)
            for h in self._handles.values()
        ]

    def __len__(self) -> int:
        return len(self._handles)

    def __contains__(self, connection_string: str) -> bool:
        return pool_key(connection_string) in self._handles
