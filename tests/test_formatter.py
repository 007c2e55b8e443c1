# Copyright (c) 2025 Kenneth Stott
#
# This source code is licensed under the Business Source License 1.1
# found in the LICENSE file in the root directory of this source tree.
#
# NOTICE: Use of this software for training artificial intelligence or
# machine learning models is strictly prohibited without explicit written
# permission from the copyright holder.

"""Tests for schema and result context rendering."""

import datetime
import json
from dataclasses import replace

import pytest
from bson import ObjectId

from conftest import make_collection, make_snapshot
from dataverse.core.models import (
    CompiledQuery,
    FieldType,
    QueryType,
    Relationship,
    RelationshipType,
)
from dataverse.execution.formatter import (
    build_markdown_table,
    build_schema_context,
    compute_basic_stats,
    format_cell,
    format_data_context,
    format_number,
    format_result_context,
)


class TestFormatNumber:

    @pytest.mark.parametrize("value,expected", [
        (1250, "1,250"),
        (0, "0"),
        (2.0, "2"),
        (2.5, "2.5"),
        (3.14159, "3.142"),
        (1234567.891, "1,234,567.891"),
    ])
    def test_format(self, value, expected):
        assert format_number(value) == expected


class TestSchemaContext:

    def test_collections_and_relationships(self, shop_snapshot):
        rel = Relationship(
            from_collection="orders",
            to_collection="users",
            field="userId",
            type=RelationshipType.ONE_TO_ONE,
        )
        text = build_schema_context(shop_snapshot.with_relationships([rel]))

        assert text.startswith("COLLECTIONS:")
        assert "users (1,250 documents):" in text
        assert "  - name: string (required)" in text
        assert "RELATIONSHIPS:" in text
        assert "- orders -> users (one-to-one) via userId" in text

    def test_fields_truncated(self):
        fields = {f"f{i}": FieldType.STRING for i in range(13)}
        snapshot = make_snapshot(make_collection("wide", fields, document_count=1))

        text = build_schema_context(snapshot, max_fields=10)

        assert "  - f9: string" in text
        assert "f10" not in text
        assert "  ... and 3 more fields" in text

    def test_optional_fields_unmarked(self):
        collection = make_collection("c", {"a": FieldType.NUMBER})
        collection = replace(collection, fields=(replace(collection.fields[0], required=False),))

        text = build_schema_context(make_snapshot(collection))

        assert text.endswith("  - a: number")
        assert "(required)" not in text

    def test_empty_snapshot(self):
        assert build_schema_context(make_snapshot()) == ""


class TestFormatCell:

    @pytest.mark.parametrize("value,expected", [
        (None, ""),
        ("plain", "plain"),
        ("a|b", "a\\|b"),
        ("line\nbreak", "line break"),
        (True, "✓"),
        (False, "✗"),
        (1500, "1,500"),
        (datetime.datetime(2024, 5, 6, 7, 8), "2024-05-06"),
        ([1, 2, 3], "[3 items]"),
        (b"\x00", "<binary>"),
        ({"a": 1}, "{object}"),
    ])
    def test_cells(self, value, expected):
        assert format_cell(value) == expected

    def test_long_strings_truncated(self):
        cell = format_cell("x" * 80)
        assert len(cell) == 50
        assert cell.endswith("...")

    def test_object_id(self):
        oid = ObjectId()
        assert format_cell(oid) == str(oid)


class TestMarkdownTable:

    def test_columns_from_all_documents(self):
        table = build_markdown_table([{"a": 1}, {"b": "x"}])

        assert table.splitlines() == [
            "| a | b |",
            "|---|---|",
            "| 1 |  |",
            "|  | x |",
        ]

    def test_column_cap(self):
        doc = {f"c{i}": i for i in range(12)}
        header = build_markdown_table([doc]).splitlines()[0]
        assert header.count("|") == 9

    def test_empty(self):
        assert build_markdown_table([]) == ""


class TestBasicStats:

    def test_numeric_and_string_stats(self):
        docs = [
            {"status": "active", "age": 30},
            {"status": "active", "age": 40},
            {"status": "inactive", "age": 35},
        ]

        stats = compute_basic_stats(docs)

        assert "**age**: min 30, max 40, avg 35" in stats
        assert "**status** top values: active (2), inactive (1)" in stats

    def test_booleans_not_numeric(self):
        assert compute_basic_stats([{"vip": True}]) == []


class TestResultContext:

    def test_data_context_sections(self):
        docs = [{"_id": str(ObjectId()), "name": "Alice", "age": 31}, {"name": "Bob", "age": 29}]

        text = format_data_context("users", docs)

        assert text.startswith("## Data Context: users")
        assert "**Sample shown:** 2 documents" in text
        assert "### Sample Data" in text
        assert "### Quick Stats" in text
        raw = text.split("```json\n")[1].split("\n```")[0]
        assert json.loads(raw)[1] == {"name": "Bob", "age": 29}

    def test_empty_data_context(self):
        text = format_data_context("users", [])
        assert "**Sample shown:** 0 documents" in text
        assert "### Sample Data" not in text

    def test_count_result(self):
        compiled = CompiledQuery(type=QueryType.COUNT, collection="orders")
        assert format_result_context(compiled, 5400) == (
            "## Count Result\n\n**orders** has **5,400** matching documents."
        )

    def test_aggregate_result_as_json(self):
        compiled = CompiledQuery(type=QueryType.AGGREGATE, collection="orders")
        text = format_result_context(compiled, [{"_id": "shipped", "count": 3}])

        assert text.startswith("Query Result:\n")
        assert json.loads(text.split("\n", 1)[1]) == [{"_id": "shipped", "count": 3}]
