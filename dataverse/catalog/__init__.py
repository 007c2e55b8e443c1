# Copyright (c) 2025 Kenneth Stott
#
# This source code is licensed under the Business Source License 1.1
# found in the LICENSE file in the root directory of this source tree.
#
# NOTICE: Use of this software for training artificial intelligence or
# machine learning models is strictly prohibited without explicit written
# permission from the copyright holder.

"""Schema discovery: connections, sampling, relationships and caching."""

from .mongodb import MongoDBConnector, extract_database_name
from .pool import ConnectionHandle, MongoConnectionPool, pool_key
from .relationships import detect_relationships
from .schema_cache import CacheStore, InMemoryCacheStore, SchemaCache, needs_refresh
from .schema_extractor import SchemaExtractor, analyze_fields, infer_field_type
