# Copyright (c) 2025 Kenneth Stott
#
# This source code is licensed under the Business Source License 1.1
# found in the LICENSE file in the root directory of this source tree.
#
# NOTICE: Use of this software for training artificial intelligence or
# machine learning models is strictly prohibited without explicit written
# permission from the copyright holder.

"""Core models, configuration and errors."""

from .config import CacheConfig, Config, LLMConfig, MongoConfig, PoolConfig, QueryConfig
from .errors import DatabaseConnectionError, DataverseError, NotFoundError, ValidationError
from .models import (
    CollectionSchema,
    CompiledQuery,
    ConnectionInfo,
    DatabaseInfo,
    FieldSchema,
    FieldType,
    FieldValueCount,
    IntentType,
    PoolStats,
    QueryIntent,
    QueryType,
    Relationship,
    RelationshipDirection,
    RelationshipType,
    SchemaSnapshot,
    SchemaStats,
)
