# Copyright (c) 2025 Kenneth Stott
#
# This source code is licensed under the Business Source License 1.1
# found in the LICENSE file in the root directory of this source tree.
#
# NOTICE: Use of this software for training artificial intelligence or
# machine learning models is strictly prohibited without explicit written
# permission from the copyright holder.

"""Dataverse - schema inference and natural-language querying for MongoDB.

Sample an unknown database, infer its structure and cross-collection
references, and turn free-text questions into safe, read-only, bounded
MongoDB queries.

Submodules:
- core: Models, configuration and errors
- catalog: Connection pool, schema extraction, relationships, schema cache
- execution: Intent parsing, query compilation and execution
- storage: Project snapshot persistence
- providers: LLM provider integrations

Main classes:
- Dataverse: Entry point owning the connection pool and cache
- DataAssistant: Conversational answers over a database
"""

from dataverse.core.config import Config
from dataverse.core.errors import DatabaseConnectionError, DataverseError, NotFoundError, ValidationError
from dataverse.core.models import CompiledQuery, QueryIntent, SchemaSnapshot
from dataverse.service import Dataverse

__version__ = "0.1.0"

__all__ = [
    "Config",
    "Dataverse",
    "DataverseError",
    "DatabaseConnectionError",
    "ValidationError",
    "NotFoundError",
    "SchemaSnapshot",
    "QueryIntent",
    "CompiledQuery",
]
