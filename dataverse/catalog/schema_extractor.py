# Copyright (c) 2025 Kenneth Stott
#
# This source code is licensed under the Business Source License 1.1
# found in the LICENSE file in the root directory of this source tree.
#
# NOTICE: Use of this software for training artificial intelligence or
# machine learning models is strictly prohibited without explicit written
# permission from the copyright holder.

"""Statistical schema inference for MongoDB databases.

Each collection is sampled and the sampled documents are folded into an
ordered map of dotted field paths. The result is a best-effort
approximation: a field never seen in the sample is missing, and a field
seen with more than one concrete type is reported as ``mixed``.
"""

import asyncio
import datetime
import decimal
import logging
import time
from dataclasses import replace
from typing import Any, Optional

from bson import Binary, Decimal128, ObjectId, Timestamp

from dataverse.core.errors import ValidationError
from dataverse.core.models import (
    CollectionSchema,
    FieldSchema,
    FieldType,
    SchemaSnapshot,
    SchemaStats,
)

from .mongodb import MongoDBConnector
from .relationships import detect_relationships

logger = logging.getLogger(__name__)

DEFAULT_SAMPLE_SIZE = 100
# Nested objects are walked at most this many levels below the top level
MAX_NESTING_DEPTH = 3
MAX_SAMPLE_VALUES = 3

_MISSING = object()


def infer_field_type(value: Any) -> FieldType:
    """Infer the type tag of a single value."""
    if value is None:
        return FieldType.NULL
    if isinstance(value, (list, tuple)):
        return FieldType.ARRAY
    if isinstance(value, (datetime.datetime, datetime.date, Timestamp)):
        return FieldType.DATE
    if isinstance(value, ObjectId):
        return FieldType.OBJECT_ID
    if isinstance(value, dict):
        return FieldType.OBJECT
    if isinstance(value, bool):
        return FieldType.BOOLEAN
    if isinstance(value, (int, float, decimal.Decimal, Decimal128)):
        return FieldType.NUMBER
    if isinstance(value, (bytes, bytearray, Binary)):
        return FieldType.BINARY
    return FieldType.STRING


def _observe(fields: dict[str, FieldSchema], path: str, value: Any) -> None:
    """Fold one observed value into the field map."""
    value_type = infer_field_type(value)
    is_array = value_type == FieldType.ARRAY
    is_nested = value_type == FieldType.OBJECT

    existing = fields.get(path)
    if existing is None:
        fields[path] = FieldSchema(
            name=path,
            type=value_type,
            required=value is not None,
            is_array=is_array,
            is_nested=is_nested,
        )
        return

    if value_type == FieldType.NULL:
        fields[path] = replace(existing, required=False)
        return

    folded_type = existing.type
    if existing.type == FieldType.NULL:
        # First concrete type seen after nulls
        folded_type = value_type
    elif existing.type != value_type:
        folded_type = FieldType.MIXED

    fields[path] = replace(
        existing,
        type=folded_type,
        is_array=existing.is_array or is_array,
        is_nested=existing.is_nested or is_nested,
    )


def _walk(
    doc: dict,
    prefix: str,
    depth: int,
    fields: dict[str, FieldSchema],
    seen: set[str],
) -> None:
    if depth > MAX_NESTING_DEPTH:
        return
    for key, value in doc.items():
        path = f"{prefix}.{key}" if prefix else str(key)
        seen.add(path)
        _observe(fields, path, value)
        if isinstance(value, dict):
            _walk(value, path, depth + 1, fields, seen)


def get_path(doc: dict, path: str) -> Any:
    """Resolve a dotted path inside a document. Returns ``_MISSING`` if absent."""
    current: Any = doc
    for part in path.split("."):
        if not isinstance(current, dict) or part not in current:
            return _MISSING
        current = current[part]
    return current


def analyze_fields(samples: list[dict]) -> list[FieldSchema]:
    """Infer field schemas from sampled documents.

    Fields come back in first-seen order. A field is required only if it is
    present and non-null in every sampled document.
    """
    fields: dict[str, FieldSchema] = {}
    presence: dict[str, int] = {}

    for doc in samples:
        seen: set[str] = set()
        _walk(doc, "", 0, fields, seen)
        for path in seen:
            presence[path] = presence.get(path, 0) + 1

    for path, field_schema in fields.items():
        values: list[Any] = []
        for doc in samples:
            value = get_path(doc, path)
            if value is _MISSING or value in values:
                continue
            values.append(value)
            if len(values) >= MAX_SAMPLE_VALUES:
                break
        fields[path] = replace(
            field_schema,
            required=field_schema.required and presence.get(path, 0) == len(samples),
            sample_values=tuple(values),
        )

    return list(fields.values())


def compute_stats(collections: list[CollectionSchema]) -> SchemaStats:
    total_fields = sum(len(c.fields) for c in collections)
    n = len(collections)
    # round half up
    average = (2 * total_fields + n) // (2 * n) if n else 0
    return SchemaStats(
        total_collections=n,
        total_documents=sum(c.document_count for c in collections),
        average_field_count=average,
    )


class SchemaExtractor:
    """Extracts a SchemaSnapshot from a live database.

    Usage:
        extractor = SchemaExtractor(sample_size=100)
        async with MongoDBConnector(pool, uri) as connector:
            snapshot = await extractor.extract(connector)
    """

    def __init__(
        self,
        sample_size: int = DEFAULT_SAMPLE_SIZE,
        max_concurrency: int = 1,
        detect_relationships: bool = True,
    ):
        """
        Args:
            sample_size: Documents sampled per collection
            max_concurrency: Collections extracted at once (1 = sequential)
            detect_relationships: Run relationship detection on the result
        """
        self.sample_size = sample_size
        self.max_concurrency = max(1, max_concurrency)
        self.detect_relationships = detect_relationships

    async def extract_collection(
        self,
        connector: MongoDBConnector,
        database: str,
        name: str,
    ) -> CollectionSchema:
        """Sample, count and read indexes of one collection concurrently."""
        samples, count, indexes = await asyncio.gather(
            connector.sample_documents(name, self.sample_size, database=database),
            connector.count_documents(name, database=database),
            connector.list_indexes(name, database=database),
        )
        fields = analyze_fields(samples)
        logger.debug(f"Collection {name}: {len(samples)} sampled, {count} total, {len(fields)} fields")
        return CollectionSchema(
            name=name,
            fields=tuple(fields),
            indexes=tuple(indexes),
            document_count=count,
            sample_document=samples[0] if samples else None,
        )

    async def _extract_collections(
        self,
        connector: MongoDBConnector,
        database: str,
        names: list[str],
    ) -> list[CollectionSchema]:
        if self.max_concurrency == 1:
            return [await self.extract_collection(connector, database, name) for name in names]

        semaphore = asyncio.Semaphore(self.max_concurrency)

        async def bounded(name: str) -> CollectionSchema:
            async with semaphore:
                return await self.extract_collection(connector, database, name)

        tasks = [asyncio.ensure_future(bounded(name)) for name in names]
        try:
            return list(await asyncio.gather(*tasks))
        except BaseException:
            for task in tasks:
                task.cancel()
            raise

    async def extract(
        self,
        connector: MongoDBConnector,
        database: Optional[str] = None,
    ) -> SchemaSnapshot:
        """Extract the schema of a database through a connected connector.

        Any failure aborts the whole extraction; a partial snapshot is never
        returned.

        Raises:
            ValidationError: No database name given or named in the URI
            DatabaseConnectionError: The database became unreachable
        """
        database = database or connector.database_name
        if not database:
            raise ValidationError("No database specified in URI")

        start = time.perf_counter()
        logger.info(f"Extracting schema from {database}")

        names = await connector.list_collections(database)
        collections = await self._extract_collections(connector, database, names)

        snapshot = SchemaSnapshot(
            database_name=database,
            collections=tuple(collections),
            stats=compute_stats(collections),
        )
        if self.detect_relationships:
            snapshot = snapshot.with_relationships(detect_relationships(collections))

        elapsed = time.perf_counter() - start
        logger.info(
            f"Extracted schema from {database}: {len(collections)} collections, "
            f"{len(snapshot.relationships)} relationships in {elapsed:.2f}s"
        )
        return snapshot
