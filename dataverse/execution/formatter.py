# Copyright (c) 2025 Kenneth Stott
#
# This source code is licensed under the Business Source License 1.1
# found in the LICENSE file in the root directory of this source tree.
#
# NOTICE: Use of this software for training artificial intelligence or
# machine learning models is strictly prohibited without explicit written
# permission from the copyright holder.

"""Render schemas and query results as compact markdown for LLM context."""

import datetime
import json
from collections import Counter
from typing import Any

from bson import ObjectId

from dataverse.core.models import CompiledQuery, QueryType, SchemaSnapshot, to_jsonable

MAX_TABLE_COLUMNS = 8
MAX_CELL_LENGTH = 50
RAW_SAMPLE_SIZE = 2
STRING_STAT_FIELDS = 2
TOP_VALUES = 3


def format_number(value: float) -> str:
    """Format a number with thousands separators and at most 3 decimals."""
    if isinstance(value, float) and not value.is_integer():
        return f"{value:,.3f}".rstrip("0").rstrip(".")
    return f"{int(value):,}"


def build_schema_context(snapshot: SchemaSnapshot, max_fields: int = 10) -> str:
    """Describe collections, their leading fields, and relationships."""
    lines = []

    if snapshot.collections:
        lines.append("COLLECTIONS:")
        for collection in snapshot.collections:
            lines.append(f"\n{collection.name} ({format_number(collection.document_count)} documents):")
            for f in collection.fields[:max_fields]:
                required = " (required)" if f.required else ""
                lines.append(f"  - {f.name}: {f.type.value}{required}")
            if len(collection.fields) > max_fields:
                lines.append(f"  ... and {len(collection.fields) - max_fields} more fields")

    if snapshot.relationships:
        lines.append("\nRELATIONSHIPS:")
        for rel in snapshot.relationships:
            lines.append(
                f"- {rel.from_collection} -> {rel.to_collection} ({rel.type.value}) via {rel.field}"
            )

    return "\n".join(lines)


def format_cell(value: Any) -> str:
    """Render one value for a markdown table cell."""
    if value is None:
        return ""
    if isinstance(value, str):
        text = value if len(value) <= MAX_CELL_LENGTH else value[:MAX_CELL_LENGTH - 3] + "..."
        return text.replace("|", "\\|").replace("\n", " ")
    if isinstance(value, bool):
        return "✓" if value else "✗"
    if isinstance(value, (int, float)):
        return format_number(value)
    if isinstance(value, datetime.datetime):
        return value.date().isoformat()
    if isinstance(value, (list, tuple)):
        return f"[{len(value)} items]"
    if isinstance(value, ObjectId):
        return str(value)
    if isinstance(value, (bytes, bytearray)):
        return "<binary>"
    if isinstance(value, dict):
        return "{object}"
    return str(value)


def build_markdown_table(documents: list[dict]) -> str:
    columns: list[str] = []
    for doc in documents:
        for key in doc:
            if key not in columns:
                columns.append(key)
    columns = columns[:MAX_TABLE_COLUMNS]
    if not columns:
        return ""

    rows = ["| " + " | ".join(columns) + " |", "|" + "|".join("---" for _ in columns) + "|"]
    for doc in documents:
        rows.append("| " + " | ".join(format_cell(doc.get(c)) for c in columns) + " |")
    return "\n".join(rows)


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def compute_basic_stats(documents: list[dict]) -> list[str]:
    """Min/max/avg for numeric fields and top values for string fields.

    Field kinds are taken from the first document.
    """
    if not documents:
        return []
    first = documents[0]
    stats = []

    for name, value in first.items():
        if not _is_number(value):
            continue
        values = [doc[name] for doc in documents if _is_number(doc.get(name))]
        if values:
            avg = sum(values) / len(values)
            stats.append(
                f"**{name}**: min {format_number(min(values))}, "
                f"max {format_number(max(values))}, avg {format_number(avg)}"
            )

    string_fields = [name for name, value in first.items() if isinstance(value, str)]
    for name in string_fields[:STRING_STAT_FIELDS]:
        counts = Counter(doc[name] for doc in documents if isinstance(doc.get(name), str))
        top = [f"{value} ({count})" for value, count in counts.most_common(TOP_VALUES)]
        if top:
            stats.append(f"**{name}** top values: {', '.join(top)}")

    return stats


def format_data_context(collection: str, documents: list[dict]) -> str:
    """Markdown block describing a page of find results."""
    parts = [f"## Data Context: {collection}\n"]
    parts.append(f"**Sample shown:** {len(documents)} documents\n")

    if documents:
        parts.append(f"### Sample Data\n\n{build_markdown_table(documents)}\n")

    stats = compute_basic_stats(documents)
    if stats:
        parts.append("### Quick Stats\n\n" + "\n".join(f"- {s}" for s in stats) + "\n")

    if documents:
        raw = json.dumps(to_jsonable(documents[:RAW_SAMPLE_SIZE]), indent=2)
        parts.append(f"### Raw Sample (JSON)\n\n```json\n{raw}\n```\n")

    return "\n".join(parts)


def format_result_context(compiled: CompiledQuery, result: Any) -> str:
    """Context block for an executed query's result."""
    if compiled.type == QueryType.FIND and isinstance(result, list):
        return format_data_context(compiled.collection, result)
    if compiled.type == QueryType.COUNT and isinstance(result, int):
        return (
            f"## Count Result\n\n**{compiled.collection}** has "
            f"**{format_number(result)}** matching documents."
        )
    return f"Query Result:\n{json.dumps(to_jsonable(result), indent=2)}"
