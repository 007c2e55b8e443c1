# Copyright (c) 2025 Kenneth Stott
#
# This source code is licensed under the Business Source License 1.1
# found in the LICENSE file in the root directory of this source tree.
#
# NOTICE: Use of this software for training artificial intelligence or
# machine learning models is strictly prohibited without explicit written
# permission from the copyright holder.

"""Deterministic compilation of query intents into read-only MongoDB queries.

Compilation never raises. Problems are reported on the returned
CompiledQuery via ``is_valid`` and ``validation_errors``, and validation
always runs as the last step so no code path can emit an unchecked query.
"""

import logging
import re
from typing import Any, Iterator, Optional

from dataverse.core.models import (
    CollectionSchema,
    CompiledQuery,
    FieldType,
    IntentType,
    QueryIntent,
    QueryType,
    SchemaSnapshot,
)

from .intent import IntentParser

logger = logging.getLogger(__name__)

DEFAULT_FIND_LIMIT = 10
DEFAULT_AGGREGATE_LIMIT = 100
DEFAULT_PROJECTION_SIZE = 8

ALLOWED_QUERY_TYPES = frozenset(QueryType)

# Update operators that must never appear as keys in a filter or pipeline
WRITE_OPERATORS = frozenset({"$set", "$unset", "$push", "$pull", "$inc", "$rename"})
# Pipeline stages that write their output somewhere
WRITE_STAGES = frozenset({"$out", "$merge"})

# Types left out of default projections
_UNPROJECTED_TYPES = frozenset({FieldType.BINARY, FieldType.MIXED})

GROUP_BY_PATTERN = re.compile(r"group\s+by\s+(\w+)", re.IGNORECASE)


def _iter_keys(value: Any) -> Iterator[str]:
    """Yield every mapping key in a nested structure of dicts and lists."""
    if isinstance(value, dict):
        for key, child in value.items():
            yield str(key)
            yield from _iter_keys(child)
    elif isinstance(value, (list, tuple)):
        for item in value:
            yield from _iter_keys(item)


def validate_query(compiled: CompiledQuery) -> list[str]:
    """Check a compiled query for anything that is not a bounded read.

    Operators are matched as mapping keys, so a string value that happens to
    read "$set" is data and passes.

    Returns:
        Validation errors (empty when the query is safe)
    """
    errors = []

    if compiled.type not in ALLOWED_QUERY_TYPES:
        errors.append(f"Invalid query type: {compiled.type}")

    query_keys = set(_iter_keys(compiled.query))
    pipeline_keys = set(_iter_keys(list(compiled.pipeline)))

    if (query_keys | pipeline_keys) & WRITE_OPERATORS:
        errors.append("Write operations are not allowed")
    if pipeline_keys & WRITE_STAGES:
        errors.append("Write operations in pipeline are not allowed")

    return errors


def _invalid(collection: Optional[str], error: str) -> CompiledQuery:
    return CompiledQuery(
        type=QueryType.FIND,
        collection=collection or "",
        query={},
        is_valid=False,
        validation_errors=(error,),
    )


class QueryCompiler:
    """Compiles a QueryIntent against a SchemaSnapshot.

    Example:
        >>> compiler = QueryCompiler()
        >>> compiled = compiler.compile(intent, snapshot)
        >>> compiled.type, compiled.query, compiled.options
        (<QueryType.FIND: 'find'>, {'status': 'shipped'}, {'projection': {...}, 'limit': 20})
    """

    def __init__(
        self,
        default_find_limit: int = DEFAULT_FIND_LIMIT,
        default_aggregate_limit: int = DEFAULT_AGGREGATE_LIMIT,
        default_projection_size: int = DEFAULT_PROJECTION_SIZE,
    ):
        self.default_find_limit = default_find_limit
        self.default_aggregate_limit = default_aggregate_limit
        self.default_projection_size = default_projection_size

    def default_projection(self, schema: CollectionSchema) -> dict[str, int]:
        """First N plain fields of the collection.

        Skips ``_id``, binary and mixed fields, and sub-paths of a field that
        is already projected (MongoDB rejects overlapping projection paths).
        """
        chosen: list[str] = []
        for f in schema.fields:
            if len(chosen) >= self.default_projection_size:
                break
            if f.name == "_id" or f.type in _UNPROJECTED_TYPES:
                continue
            if any(f.name.startswith(f"{parent}.") for parent in chosen):
                continue
            chosen.append(f.name)
        return {name: 1 for name in chosen}

    def _compile_find(self, intent: QueryIntent, schema: CollectionSchema) -> CompiledQuery:
        if intent.fields:
            projection = {name: 1 for name in intent.fields}
        else:
            projection = self.default_projection(schema)
        return CompiledQuery(
            type=QueryType.FIND,
            collection=schema.name,
            query=dict(intent.filters),
            options={
                "projection": projection,
                "limit": intent.limit or self.default_find_limit,
            },
        )

    def _compile_aggregate(self, intent: QueryIntent, schema: CollectionSchema) -> CompiledQuery:
        pipeline: list[dict] = []
        if intent.filters:
            pipeline.append({"$match": dict(intent.filters)})
        if intent.aggregation_stage:
            match = GROUP_BY_PATTERN.search(intent.aggregation_stage)
            if match:
                pipeline.append({
                    "$group": {"_id": f"${match.group(1)}", "count": {"$sum": 1}}
                })
        pipeline.append({"$limit": intent.limit or self.default_aggregate_limit})
        return CompiledQuery(
            type=QueryType.AGGREGATE,
            collection=schema.name,
            pipeline=tuple(pipeline),
        )

    def compile(self, intent: QueryIntent, snapshot: Optional[SchemaSnapshot]) -> CompiledQuery:
        """Compile an intent. Never raises."""
        if not intent.collection:
            return _invalid(None, "No collection specified in query")

        schema = snapshot.collection(intent.collection) if snapshot is not None else None
        if schema is None:
            return _invalid(intent.collection, f"Collection '{intent.collection}' not found in schema")

        if intent.type == IntentType.COUNT:
            compiled = CompiledQuery(
                type=QueryType.COUNT,
                collection=schema.name,
                query=dict(intent.filters),
            )
        elif intent.type == IntentType.AGGREGATE:
            compiled = self._compile_aggregate(intent, schema)
        else:
            compiled = self._compile_find(intent, schema)

        errors = validate_query(compiled)
        if errors:
            logger.warning(f"Compiled query for {schema.name} failed validation: {errors}")
            return CompiledQuery(
                type=compiled.type,
                collection=compiled.collection,
                query={},
                is_valid=False,
                validation_errors=tuple(errors),
            )
        return compiled


def parse_and_compile(
    message: str,
    snapshot: Optional[SchemaSnapshot],
    parser: Optional[IntentParser] = None,
    compiler: Optional[QueryCompiler] = None,
) -> tuple[QueryIntent, CompiledQuery]:
    """Parse a message and compile the resulting intent."""
    parser = parser or IntentParser()
    compiler = compiler or QueryCompiler()
    intent = parser.parse(message, snapshot)
    return intent, compiler.compile(intent, snapshot)
