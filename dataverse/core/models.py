# Copyright (c) 2025 Kenneth Stott
#
# This source code is licensed under the Business Source License 1.1
# found in the LICENSE file in the root directory of this source tree.
#
# NOTICE: Use of this software for training artificial intelligence or
# machine learning models is strictly prohibited without explicit written
# permission from the copyright holder.

"""Data models for inferred schemas, query intents and compiled queries."""

from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional, Union

from bson import ObjectId


class FieldType(Enum):
    """Structural type tag inferred for a document field.

    ``MIXED`` is only ever produced by folding conflicting observations
    together; a single value never infers as mixed.
    """
    NULL = "null"
    UNDEFINED = "undefined"  # BSON undefined marker (deprecated, rare)
    ARRAY = "array"
    DATE = "date"
    OBJECT_ID = "objectId"
    OBJECT = "object"
    MIXED = "mixed"
    STRING = "string"
    NUMBER = "number"
    BOOLEAN = "boolean"
    BINARY = "binary"


class RelationshipType(Enum):
    """Cardinality of an inferred relationship."""
    ONE_TO_ONE = "one-to-one"
    ONE_TO_MANY = "one-to-many"
    MANY_TO_MANY = "many-to-many"


class RelationshipDirection(Enum):
    """Direction of an inferred relationship. Detection only emits FORWARD."""
    FORWARD = "forward"
    REVERSE = "reverse"
    BIDIRECTIONAL = "bidirectional"


class IntentType(Enum):
    """What kind of answer a user message is asking for."""
    COUNT = "count"
    FIND = "find"
    AGGREGATE = "aggregate"
    SCHEMA = "schema"
    RELATIONSHIP = "relationship"
    GENERAL = "general"


class QueryType(Enum):
    """Read-only query shapes the compiler can emit."""
    COUNT = "count"
    FIND = "find"
    AGGREGATE = "aggregate"


# Scalar values a parsed filter can carry
FilterValue = Union[bool, int, float, str]


def to_jsonable(value: Any) -> Any:
    """Convert BSON/Python values into JSON-serializable equivalents."""
    if isinstance(value, ObjectId):
        return str(value)
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, (bytes, bytearray)):
        return "<binary>"
    if isinstance(value, dict):
        return {str(k): to_jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [to_jsonable(v) for v in value]
    if value is None or isinstance(value, (bool, int, float, str)):
        return value
    return str(value)


@dataclass(frozen=True)
class FieldSchema:
    """Inferred structure of one field, keyed by its full dotted path."""
    name: str
    type: FieldType
    required: bool = True
    is_array: bool = False
    is_nested: bool = False
    sample_values: tuple[Any, ...] = ()

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "type": self.type.value,
            "required": self.required,
            "isArray": self.is_array,
            "isNested": self.is_nested,
            "sampleValues": to_jsonable(self.sample_values),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "FieldSchema":
        return cls(
            name=data["name"],
            type=FieldType(data["type"]),
            required=data.get("required", True),
            is_array=data.get("isArray", False),
            is_nested=data.get("isNested", False),
            sample_values=tuple(data.get("sampleValues", ())),
        )


@dataclass(frozen=True)
class CollectionSchema:
    """Inferred schema for a single collection."""
    name: str
    fields: tuple[FieldSchema, ...] = ()
    indexes: tuple[dict, ...] = ()
    document_count: int = 0
    sample_document: Optional[dict] = None

    def field(self, name: str) -> Optional[FieldSchema]:
        """Look up a field by its dotted path."""
        for f in self.fields:
            if f.name == name:
                return f
        return None

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "fields": [f.to_dict() for f in self.fields],
            "indexes": to_jsonable(list(self.indexes)),
            "documentCount": self.document_count,
            "sampleDocument": to_jsonable(self.sample_document),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "CollectionSchema":
        return cls(
            name=data["name"],
            fields=tuple(FieldSchema.from_dict(f) for f in data.get("fields", [])),
            indexes=tuple(data.get("indexes", [])),
            document_count=data.get("documentCount", 0),
            sample_document=data.get("sampleDocument"),
        )


@dataclass(frozen=True)
class Relationship:
    """A directed reference from a field of one collection to another collection."""
    from_collection: str
    to_collection: str
    field: str
    type: RelationshipType = RelationshipType.ONE_TO_ONE
    direction: RelationshipDirection = RelationshipDirection.FORWARD

    @property
    def key(self) -> tuple[str, str, str]:
        return (self.from_collection, self.to_collection, self.field)

    def to_dict(self) -> dict:
        return {
            "from": self.from_collection,
            "to": self.to_collection,
            "field": self.field,
            "type": self.type.value,
            "direction": self.direction.value,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Relationship":
        return cls(
            from_collection=data["from"],
            to_collection=data["to"],
            field=data["field"],
            type=RelationshipType(data.get("type", RelationshipType.ONE_TO_ONE.value)),
            direction=RelationshipDirection(
                data.get("direction", RelationshipDirection.FORWARD.value)
            ),
        )


@dataclass(frozen=True)
class SchemaStats:
    """Aggregate counts over a snapshot."""
    total_collections: int = 0
    total_documents: int = 0
    average_field_count: int = 0


@dataclass(frozen=True)
class SchemaSnapshot:
    """Immutable result of one schema extraction."""
    database_name: str
    collections: tuple[CollectionSchema, ...] = ()
    relationships: tuple[Relationship, ...] = ()
    stats: SchemaStats = field(default_factory=SchemaStats)
    last_synced: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def collection_names(self) -> list[str]:
        return [c.name for c in self.collections]

    def collection(self, name: str) -> Optional[CollectionSchema]:
        """Look up a collection by exact name."""
        for c in self.collections:
            if c.name == name:
                return c
        return None

    def with_relationships(self, relationships) -> "SchemaSnapshot":
        """Return a copy of this snapshot carrying the given relationships."""
        return replace(self, relationships=tuple(relationships))

    def to_dict(self) -> dict:
        """Convert to a JSON-serializable dictionary."""
        return {
            "databaseName": self.database_name,
            "collections": [c.to_dict() for c in self.collections],
            "relationships": [r.to_dict() for r in self.relationships],
            "stats": {
                "totalCollections": self.stats.total_collections,
                "totalDocuments": self.stats.total_documents,
                "averageFieldCount": self.stats.average_field_count,
            },
            "lastSynced": self.last_synced.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "SchemaSnapshot":
        """Rebuild a snapshot from ``to_dict()`` output."""
        stats = data.get("stats", {})
        last_synced = datetime.fromisoformat(data["lastSynced"])
        if last_synced.tzinfo is None:
            last_synced = last_synced.replace(tzinfo=timezone.utc)
        return cls(
            database_name=data["databaseName"],
            collections=tuple(CollectionSchema.from_dict(c) for c in data.get("collections", [])),
            relationships=tuple(Relationship.from_dict(r) for r in data.get("relationships", [])),
            stats=SchemaStats(
                total_collections=stats.get("totalCollections", 0),
                total_documents=stats.get("totalDocuments", 0),
                average_field_count=stats.get("averageFieldCount", 0),
            ),
            last_synced=last_synced,
        )


@dataclass(frozen=True)
class QueryIntent:
    """Structured interpretation of a free-text message."""
    type: IntentType
    collection: Optional[str] = None
    collections: tuple[str, ...] = ()
    filters: dict[str, FilterValue] = field(default_factory=dict)
    fields: tuple[str, ...] = ()
    aggregation_stage: Optional[str] = None
    limit: Optional[int] = None
    confidence: float = 0.5
    explanation: str = ""


@dataclass(frozen=True)
class CompiledQuery:
    """A concrete, read-only MongoDB query produced from an intent."""
    type: QueryType
    collection: str = ""
    query: dict = field(default_factory=dict)
    pipeline: tuple[dict, ...] = ()
    options: dict = field(default_factory=dict)
    is_valid: bool = True
    validation_errors: tuple[str, ...] = ()

    def to_dict(self) -> dict:
        return {
            "type": self.type.value,
            "collection": self.collection,
            "query": to_jsonable(self.query),
            "pipeline": to_jsonable(list(self.pipeline)),
            "options": to_jsonable(self.options),
            "isValid": self.is_valid,
            "validationErrors": list(self.validation_errors),
        }


@dataclass
class ConnectionInfo:
    """Outcome of probing a connection string."""
    is_valid: bool
    database_name: Optional[str] = None
    is_read_only: bool = False
    error: Optional[str] = None


@dataclass
class DatabaseInfo:
    """A database visible on a cluster."""
    name: str
    size_on_disk: int = 0


@dataclass
class FieldValueCount:
    """One bucket of a field value distribution."""
    value: Any
    count: int


@dataclass
class PoolStats:
    """Snapshot of one pooled connection's bookkeeping."""
    pool_key: str
    ref_count: int
    last_used: float
