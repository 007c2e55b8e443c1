# Copyright (c) 2025 Kenneth Stott
#
# This source code is licensed under the Business Source License 1.1
# found in the LICENSE file in the root directory of this source tree.
#
# NOTICE: Use of this software for training artificial intelligence or
# machine learning models is strictly prohibited without explicit written
# permission from the copyright holder.

"""Shared fixtures: schema snapshots and mock pymongo clients."""

from unittest.mock import MagicMock

import pytest

from dataverse.core.models import (
    CollectionSchema,
    FieldSchema,
    FieldType,
    SchemaSnapshot,
    SchemaStats,
)


def make_collection(name: str, fields: dict, document_count: int = 0) -> CollectionSchema:
    """Build a CollectionSchema from {path: FieldType} (or (FieldType, is_array))."""
    schemas = []
    for path, spec in fields.items():
        field_type, is_array = spec if isinstance(spec, tuple) else (spec, False)
        schemas.append(FieldSchema(
            name=path,
            type=field_type,
            is_array=is_array,
            is_nested=field_type == FieldType.OBJECT,
        ))
    return CollectionSchema(name=name, fields=tuple(schemas), document_count=document_count)


def make_snapshot(*collections: CollectionSchema, database_name: str = "shop") -> SchemaSnapshot:
    return SchemaSnapshot(
        database_name=database_name,
        collections=tuple(collections),
        stats=SchemaStats(
            total_collections=len(collections),
            total_documents=sum(c.document_count for c in collections),
        ),
    )


@pytest.fixture
def shop_snapshot() -> SchemaSnapshot:
    """Small e-commerce schema: users, orders, products."""
    users = make_collection("users", {
        "_id": FieldType.OBJECT_ID,
        "name": FieldType.STRING,
        "email": FieldType.STRING,
        "status": FieldType.STRING,
        "age": FieldType.NUMBER,
        "avatar": FieldType.BINARY,
    }, document_count=1250)
    orders = make_collection("orders", {
        "_id": FieldType.OBJECT_ID,
        "userId": FieldType.OBJECT_ID,
        "status": FieldType.STRING,
        "total": FieldType.NUMBER,
        "items": (FieldType.ARRAY, True),
        "shipping": FieldType.OBJECT,
        "shipping.city": FieldType.STRING,
        "createdAt": FieldType.DATE,
    }, document_count=5400)
    products = make_collection("products", {
        "_id": FieldType.OBJECT_ID,
        "sku": FieldType.STRING,
        "price": FieldType.NUMBER,
    }, document_count=300)
    return make_snapshot(users, orders, products)


def make_mongo_client(collections: dict[str, list[dict]]) -> MagicMock:
    """Mock MongoClient whose databases expose the given collections.

    Each collection mock answers aggregate() with its documents (which
    serves $sample), count_documents() with their count and list_indexes()
    with the default _id index.
    """
    client = MagicMock()
    coll_mocks = {}
    for name, docs in collections.items():
        coll = MagicMock(name=f"collection:{name}")
        coll.aggregate.return_value = list(docs)
        coll.count_documents.return_value = len(docs)
        coll.list_indexes.return_value = [{"v": 2, "key": {"_id": 1}, "name": "_id_"}]
        coll_mocks[name] = coll

    db = MagicMock(name="database")
    db.list_collection_names.return_value = list(collections)
    db.__getitem__.side_effect = lambda name: coll_mocks[name]
    client.__getitem__.return_value = db
    client.collections = coll_mocks
    client.db = db
    return client


@pytest.fixture
def shop_documents() -> dict[str, list[dict]]:
    from bson import ObjectId

    alice, bob = ObjectId(), ObjectId()
    return {
        "users": [
            {"_id": alice, "name": "Alice", "email": "alice@example.com", "status": "active"},
            {"_id": bob, "name": "Bob", "email": None, "status": "inactive"},
        ],
        "orders": [
            {"_id": ObjectId(), "userId": alice, "status": "shipped", "total": 120.5},
            {"_id": ObjectId(), "userId": bob, "status": "pending", "total": 40},
        ],
        "system.views": [],
    }
