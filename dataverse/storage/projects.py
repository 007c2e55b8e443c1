# Copyright (c) 2025 Kenneth Stott
#
# This source code is licensed under the Business Source License 1.1
# found in the LICENSE file in the root directory of this source tree.
#
# NOTICE: Use of this software for training artificial intelligence or
# machine learning models is strictly prohibited without explicit written
# permission from the copyright holder.

"""Durable storage of per-project schema snapshots."""

import logging
from abc import ABC, abstractmethod
from typing import Optional

from dataverse.core.models import SchemaSnapshot

logger = logging.getLogger(__name__)


class ProjectStore(ABC):
    """Where the last extracted snapshot of each project is kept.

    Implementations back this with whatever holds project records; the
    schema cache only reads and overwrites the snapshot.
    """

    @abstractmethod
    async def find_project_schema(self, project_id: str) -> Optional[SchemaSnapshot]:
        """Return the stored snapshot for a project, if any."""
        pass

    @abstractmethod
    async def persist_schema(self, project_id: str, snapshot: SchemaSnapshot) -> None:
        """Overwrite the stored snapshot for a project."""
        pass


class InMemoryProjectStore(ProjectStore):
    """Process-local project store for the CLI and tests."""

    def __init__(self):
        self._schemas: dict[str, SchemaSnapshot] = {}

    async def find_project_schema(self, project_id: str) -> Optional[SchemaSnapshot]:
        return self._schemas.get(project_id)

    async def persist_schema(self, project_id: str, snapshot: SchemaSnapshot) -> None:
        self._schemas[project_id] = snapshot
        logger.debug(f"Persisted schema for project {project_id}")
