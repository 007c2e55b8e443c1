# Copyright (c) 2025 Kenneth Stott
#
# This source code is licensed under the Business Source License 1.1
# found in the LICENSE file in the root directory of this source tree.
#
# NOTICE: Use of this software for training artificial intelligence or
# machine learning models is strictly prohibited without explicit written
# permission from the copyright holder.

"""Run compiled queries against a connected database."""

import logging
import time
from typing import Any, Optional

from dataverse.catalog.mongodb import MongoDBConnector
from dataverse.core.errors import ValidationError
from dataverse.core.models import CompiledQuery, QueryType

from .compiler import validate_query

logger = logging.getLogger(__name__)


async def execute_compiled(
    connector: MongoDBConnector,
    compiled: CompiledQuery,
    database: Optional[str] = None,
) -> Any:
    """Execute a compiled query.

    Args:
        connector: Connected connector
        compiled: Query produced by QueryCompiler
        database: Database name (defaults to the connector's)

    Returns:
        int for count, list of documents for find and aggregate

    Raises:
        ValidationError: The query is invalid or fails re-validation
    """
    if not compiled.is_valid:
        raise ValidationError(
            f"Refusing to execute invalid query: {'; '.join(compiled.validation_errors)}"
        )
    errors = validate_query(compiled)
    if errors:
        raise ValidationError(f"Refusing to execute query: {'; '.join(errors)}")

    start = time.perf_counter()
    if compiled.type == QueryType.COUNT:
        result = await connector.count_documents(compiled.collection, compiled.query, database=database)
    elif compiled.type == QueryType.FIND:
        result = await connector.find(
            compiled.collection,
            compiled.query,
            projection=compiled.options.get("projection") or None,
            limit=compiled.options.get("limit"),
            database=database,
        )
    elif compiled.type == QueryType.AGGREGATE:
        result = await connector.aggregate(compiled.collection, list(compiled.pipeline), database=database)
    else:
        raise ValidationError(f"Unknown query type: {compiled.type}")

    elapsed_ms = (time.perf_counter() - start) * 1000
    logger.info(f"Executed {compiled.type.value} on {compiled.collection} in {elapsed_ms:.0f}ms")
    return result
