# Copyright (c) 2025 Kenneth Stott
#
# This source code is licensed under the Business Source License 1.1
# found in the LICENSE file in the root directory of this source tree.
#
# NOTICE: Use of this software for training artificial intelligence or
# machine learning models is strictly prohibited without explicit written
# permission from the copyright holder.

"""Entry point wiring the pool, extractor, cache, parser and compiler together.

Usage:
    async with Dataverse(config) as dv:
        snapshot = await dv.get_cached_or_fresh_schema("project-1", uri)
        intent, compiled = dv.parse_and_compile("how many users are there", snapshot)
        if compiled.is_valid:
            result = await dv.execute_compiled(uri, snapshot.database_name, compiled)
"""

import logging
from typing import Any, Optional

from dataverse.catalog.mongodb import MongoDBConnector
from dataverse.catalog.pool import MongoConnectionPool
from dataverse.catalog.schema_cache import CacheStore, InMemoryCacheStore, SchemaCache
from dataverse.catalog.schema_extractor import SchemaExtractor
from dataverse.core.config import Config
from dataverse.core.errors import ValidationError
from dataverse.core.models import (
    CompiledQuery,
    ConnectionInfo,
    DatabaseInfo,
    FieldValueCount,
    QueryIntent,
    SchemaSnapshot,
)
from dataverse.execution.compiler import QueryCompiler
from dataverse.execution.executor import execute_compiled
from dataverse.execution.intent import IntentParser
from dataverse.storage.projects import ProjectStore

logger = logging.getLogger(__name__)


class Dataverse:
    """Schema inference and natural-language querying over MongoDB.

    Owns the connection pool; every database touch goes through it.
    """

    def __init__(
        self,
        config: Optional[Config] = None,
        pool: Optional[MongoConnectionPool] = None,
        cache_store: Optional[CacheStore] = None,
        project_store: Optional[ProjectStore] = None,
    ):
        self.config = config or Config()
        cfg = self.config

        # Pools and stores define __len__, so an empty one is falsy
        self.pool = pool if pool is not None else MongoConnectionPool(
            connect_timeout_ms=cfg.mongodb.connect_timeout_ms,
            socket_timeout_ms=cfg.mongodb.socket_timeout_ms,
            max_pool_size=cfg.mongodb.max_pool_size,
            idle_timeout=cfg.pool.idle_timeout_seconds,
            sweep_interval=cfg.pool.sweep_interval_seconds,
        )
        self.extractor = SchemaExtractor(
            sample_size=cfg.mongodb.sample_size,
            max_concurrency=cfg.mongodb.extraction_concurrency,
        )
        self.schema_cache = SchemaCache(
            cache_store if cache_store is not None else InMemoryCacheStore(),
            project_store=project_store,
            ttl_seconds=cfg.cache.schema_ttl_seconds,
        )
        self.parser = IntentParser(max_limit=cfg.query.max_limit)
        self.compiler = QueryCompiler(
            default_find_limit=cfg.query.find_default_limit,
            default_aggregate_limit=cfg.query.aggregate_default_limit,
            default_projection_size=cfg.query.default_projection_size,
        )

    async def start(self) -> None:
        """Start background housekeeping (idle connection sweeps)."""
        self.pool.start()

    async def close(self) -> None:
        """Flush pending persistence and close every pooled connection."""
        await self.schema_cache.drain()
        await self.pool.close_all()

    async def __aenter__(self) -> "Dataverse":
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    def connector(self, connection_string: str, database: Optional[str] = None) -> MongoDBConnector:
        return MongoDBConnector(self.pool, connection_string, database=database)

    async def extract_schema(
        self,
        connection_string: str,
        database: Optional[str] = None,
    ) -> SchemaSnapshot:
        """Run a live extraction. Errors propagate to the caller."""
        async with self.connector(connection_string, database) as connector:
            return await self.extractor.extract(connector)

    async def get_cached_or_fresh_schema(
        self,
        project_id: str,
        connection_string: str,
        database: Optional[str] = None,
        force_refresh: bool = False,
    ) -> Optional[SchemaSnapshot]:
        """Cached snapshot for a project, extracting when stale or missing.

        Returns:
            The snapshot, or None when extraction failed
        """
        def extract():
            return self.extract_schema(connection_string, database)

        if force_refresh:
            logger.info(f"Forcing schema refresh for {project_id}")
            return await self.schema_cache.refresh(project_id, extract)
        return await self.schema_cache.get_or_extract(project_id, extract)

    def parse_and_compile(
        self,
        message: str,
        snapshot: Optional[SchemaSnapshot],
    ) -> tuple[QueryIntent, CompiledQuery]:
        """Parse a message and compile it against the snapshot. Never raises."""
        intent = self.parser.parse(message, snapshot)
        return intent, self.compiler.compile(intent, snapshot)

    async def execute_compiled(
        self,
        connection_string: str,
        database: Optional[str],
        compiled: CompiledQuery,
    ) -> Any:
        """Execute a valid compiled query against the database."""
        async with self.connector(connection_string, database) as connector:
            return await execute_compiled(connector, compiled, database=database)

    async def validate_connection(self, connection_string: str) -> ConnectionInfo:
        """Report whether the URI is usable. Never raises."""
        try:
            connector = self.connector(connection_string)
        except ValidationError as e:
            logger.warning(f"Connection validation failed: {e}")
            return ConnectionInfo(is_valid=False, error=str(e))
        return await connector.validate_connection()

    async def list_databases(self, connection_string: str) -> list[DatabaseInfo]:
        async with self.connector(connection_string) as connector:
            return await connector.list_databases()

    async def field_distribution(
        self,
        connection_string: str,
        collection: str,
        field: str,
        limit: int = 100,
        database: Optional[str] = None,
    ) -> list[FieldValueCount]:
        async with self.connector(connection_string, database) as connector:
            await connector.require_collection(collection)
            return await connector.field_value_distribution(collection, field, limit=limit)

    async def sample_collection(
        self,
        connection_string: str,
        collection: str,
        size: int = 10,
        database: Optional[str] = None,
    ) -> list[dict]:
        async with self.connector(connection_string, database) as connector:
            await connector.require_collection(collection)
            return await connector.sample_documents(collection, size)
