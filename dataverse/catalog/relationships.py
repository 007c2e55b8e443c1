# Copyright (c) 2025 Kenneth Stott
#
# This source code is licensed under the Business Source License 1.1
# found in the LICENSE file in the root directory of this source tree.
#
# NOTICE: Use of this software for training artificial intelligence or
# machine learning models is strictly prohibited without explicit written
# permission from the copyright holder.

"""Infer cross-collection references from field names and types.

Two heuristics run over every field of every collection:

1. Naming convention: a field such as ``customer_id`` or ``author_ref``
   points at the collection named by the prefix.
2. ObjectId shape: a non-``_id`` field holding ObjectIds and named like
   ``userId``, ``user_id``, ``userRef`` or ``user_ref``.

The prefix is resolved against the known collection names by exact match,
then plural (``+s``), then singular (trailing ``s`` dropped). Detection is
forward-only and purely name-based; no values are dereferenced.
"""

import logging
import re
from typing import Iterable, Optional

from dataverse.core.models import (
    CollectionSchema,
    FieldSchema,
    FieldType,
    Relationship,
    RelationshipDirection,
    RelationshipType,
)

logger = logging.getLogger(__name__)

REFERENCE_FIELD_PATTERN = re.compile(r"^[a-zA-Z_][a-zA-Z0-9_]*_(id|ref)$", re.IGNORECASE)
REFERENCE_SUFFIX_PATTERN = re.compile(r"_(id|ref)$", re.IGNORECASE)

# Tried in order; the first pattern that matches decides the base name
OBJECT_ID_NAME_PATTERNS = (
    re.compile(r"^(.+)Id$"),
    re.compile(r"^(.+)_id$"),
    re.compile(r"^(.+)Ref$"),
    re.compile(r"^(.+)_ref$"),
)


def resolve_collection(base: str, collection_names: Iterable[str]) -> Optional[str]:
    """Match a base name to a collection: exact, then plural, then singular."""
    names = set(collection_names)
    if base in names:
        return base
    if f"{base}s" in names:
        return f"{base}s"
    if base.endswith("s") and base[:-1] in names:
        return base[:-1]
    return None


def _target_by_name(field: FieldSchema, collection_names: set[str]) -> Optional[str]:
    if not REFERENCE_FIELD_PATTERN.match(field.name):
        return None
    base = REFERENCE_SUFFIX_PATTERN.sub("", field.name)
    return resolve_collection(base, collection_names)


def _target_by_object_id(field: FieldSchema, collection_names: set[str]) -> Optional[str]:
    if field.type != FieldType.OBJECT_ID or field.name == "_id":
        return None
    for pattern in OBJECT_ID_NAME_PATTERNS:
        match = pattern.match(field.name)
        if match:
            return resolve_collection(match.group(1), collection_names)
    return None


def detect_relationships(collections: Iterable[CollectionSchema]) -> list[Relationship]:
    """Find references between the given collections.

    The result depends only on the set of collections and their fields, not
    on their order, and contains no two relationships with the same
    (from, to, field) triple.
    """
    collections = list(collections)
    collection_names = {c.name for c in collections}
    found: dict[tuple[str, str, str], Relationship] = {}

    for collection in collections:
        for field in collection.fields:
            rel_type = RelationshipType.ONE_TO_MANY if field.is_array else RelationshipType.ONE_TO_ONE
            for heuristic in (_target_by_name, _target_by_object_id):
                target = heuristic(field, collection_names)
                if target is None:
                    continue
                rel = Relationship(
                    from_collection=collection.name,
                    to_collection=target,
                    field=field.name,
                    type=rel_type,
                    direction=RelationshipDirection.FORWARD,
                )
                found.setdefault(rel.key, rel)

    logger.debug(f"Detected {len(found)} relationship(s) across {len(collections)} collection(s)")
    return list(found.values())
