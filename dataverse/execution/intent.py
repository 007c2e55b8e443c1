# Copyright (c) 2025 Kenneth Stott
#
# This source code is licensed under the Business Source License 1.1
# found in the LICENSE file in the root directory of this source tree.
#
# NOTICE: Use of this software for training artificial intelligence or
# machine learning models is strictly prohibited without explicit written
# permission from the copyright holder.

"""Pattern-based parsing of free-text questions into query intents.

The parser understands a small, fixed vocabulary:

- intent keywords ("how many", "show", "group by", ...) loaded from
  intent_keywords.yaml
- collection mentions (a collection name appearing anywhere in the text)
- filters: "where <field> is <value>" and "<field> = <value>" / "<field>: <value>"
- requested fields: "show|get|display|select [me] <fields> [from|in ...]"
- limits: "limit N", "top N", "first N"
- grouping: "group by <field>"

Anything outside that vocabulary lowers the confidence score instead of
raising; downstream code decides whether the intent is specific enough to
execute.
"""

import json
import logging
import math
import re
from functools import lru_cache
from pathlib import Path
from typing import Callable, Optional

import yaml

from dataverse.core.models import FilterValue, IntentType, QueryIntent, SchemaSnapshot

logger = logging.getLogger(__name__)

DEFAULT_LANGUAGE = "en"

KEYWORDS_FILE = Path(__file__).parent / "intent_keywords.yaml"

# First matching type wins
INTENT_PRIORITY = (
    IntentType.COUNT,
    IntentType.AGGREGATE,
    IntentType.FIND,
    IntentType.SCHEMA,
    IntentType.RELATIONSHIP,
)

MAX_LIMIT = 1000

BASE_CONFIDENCE = 0.5
COLLECTION_BONUS = 0.3
FILTER_BONUS = 0.15
TYPED_BONUS = 0.15
FIND_WITH_COLLECTION_BONUS = 0.2

WHERE_PATTERN = re.compile(r"where\s+(\w+)\s+(?:is|equals?|=)\s+([^\s,]+)", re.IGNORECASE)
ASSIGNMENT_PATTERN = re.compile(r"(\w+)\s*[:=]\s*([^\s,]+)")
FIELDS_PATTERN = re.compile(
    r"(?:show|get|display|select)\s+(?:me\s+)?([^,]+?)(?:\s+from|\s+in|$)",
    re.IGNORECASE,
)
LIMIT_PATTERN = re.compile(r"(?:limit|top|first)\s+(\d+)", re.IGNORECASE)
GROUP_BY_PATTERN = re.compile(r"group\s+by\s+(\w+)", re.IGNORECASE)

_INTEGER = re.compile(r"^[-+]?\d+$")
_DECIMAL = re.compile(r"^[-+]?(\d+\.?\d*|\.\d+)([eE][-+]?\d+)?$")


@lru_cache(maxsize=1)
def _load_keywords() -> dict:
    """Load intent keywords from YAML file (cached)."""
    if not KEYWORDS_FILE.exists():
        return {}
    with open(KEYWORDS_FILE, "r", encoding="utf-8") as f:
        return yaml.safe_load(f) or {}


def get_intent_keywords(language: str = DEFAULT_LANGUAGE) -> dict[str, list[str]]:
    """Get keyword lists per intent type name for a language."""
    keywords = _load_keywords()
    return keywords.get(language, keywords.get(DEFAULT_LANGUAGE, {}))


def reload_keywords() -> None:
    """Force reload of keywords file (clears cache)."""
    _load_keywords.cache_clear()


def coerce_value(raw: str) -> FilterValue:
    """Interpret a filter literal as bool, int, float or string."""
    lowered = raw.lower()
    if lowered == "true":
        return True
    if lowered == "false":
        return False
    if _INTEGER.match(raw):
        return int(raw)
    if _DECIMAL.match(raw):
        value = float(raw)
        if math.isfinite(value):
            return value
    return raw


def extract_filters(message: str) -> dict[str, FilterValue]:
    """Extract equality filters from a message.

    "where" phrases are read first; bare assignments never overwrite a
    field already taken from a "where" phrase.
    """
    filters: dict[str, FilterValue] = {}
    for match in WHERE_PATTERN.finditer(message):
        filters[match.group(1)] = coerce_value(match.group(2))
    for match in ASSIGNMENT_PATTERN.finditer(message):
        field_name = match.group(1)
        if field_name not in filters:
            filters[field_name] = coerce_value(match.group(2))
    return filters


def extract_limit(message: str, max_limit: int = MAX_LIMIT) -> Optional[int]:
    match = LIMIT_PATTERN.search(message)
    if match:
        return min(int(match.group(1)), max_limit)
    return None


def _keyword_rule(keywords: list[str]) -> Callable[[str], bool]:
    lowered = [k.lower() for k in keywords]
    return lambda text: any(k in text for k in lowered)


class IntentParser:
    """Turns a message plus a schema snapshot into a QueryIntent.

    Example:
        >>> parser = IntentParser()
        >>> intent = parser.parse("how many users are there", snapshot)
        >>> intent.type, intent.collection
        (<IntentType.COUNT: 'count'>, 'users')
    """

    def __init__(self, language: str = DEFAULT_LANGUAGE, max_limit: int = MAX_LIMIT):
        self.max_limit = max_limit
        keywords = get_intent_keywords(language)
        self.rules: tuple[tuple[IntentType, Callable[[str], bool]], ...] = tuple(
            (intent_type, _keyword_rule(keywords.get(intent_type.value, [])))
            for intent_type in INTENT_PRIORITY
        )

    def classify(self, message: str) -> IntentType:
        text = message.lower()
        for intent_type, matches in self.rules:
            if matches(text):
                return intent_type
        return IntentType.GENERAL

    @staticmethod
    def mentioned_collections(message: str, snapshot: Optional[SchemaSnapshot]) -> list[str]:
        """Collections whose name appears in the message, in snapshot order."""
        if snapshot is None:
            return []
        text = message.lower()
        return [name for name in snapshot.collection_names if name.lower() in text]

    @staticmethod
    def requested_fields(
        message: str,
        collection: Optional[str],
        snapshot: Optional[SchemaSnapshot],
    ) -> list[str]:
        if not collection or snapshot is None:
            return []
        schema = snapshot.collection(collection)
        if schema is None:
            return []
        match = FIELDS_PATTERN.search(message)
        if not match:
            return []
        fragment = match.group(1).lower()
        return [f.name for f in schema.fields if f.name.lower() in fragment]

    def parse(self, message: str, snapshot: Optional[SchemaSnapshot]) -> QueryIntent:
        """Parse a message. Never raises."""
        intent_type = self.classify(message)
        collections = self.mentioned_collections(message, snapshot)
        collection = collections[0] if collections else None
        filters = extract_filters(message)
        fields = self.requested_fields(message, collection, snapshot)
        limit = extract_limit(message, self.max_limit)

        group_match = GROUP_BY_PATTERN.search(message)
        aggregation_stage = group_match.group(0) if group_match else None

        confidence = score_confidence(intent_type, bool(collections), bool(filters))
        explanation = describe_intent(intent_type, collections, filters)

        intent = QueryIntent(
            type=intent_type,
            collection=collection,
            collections=tuple(collections),
            filters=filters,
            fields=tuple(fields),
            aggregation_stage=aggregation_stage,
            limit=limit,
            confidence=confidence,
            explanation=explanation,
        )
        logger.debug(f"Parsed intent: {explanation} (confidence={confidence:.2f})")
        return intent


def score_confidence(intent_type: IntentType, has_collection: bool, has_filters: bool) -> float:
    """Confidence in [0, 1]; adding evidence never lowers it."""
    confidence = BASE_CONFIDENCE
    if has_collection:
        confidence += COLLECTION_BONUS
    if has_filters:
        confidence += FILTER_BONUS
    if intent_type != IntentType.GENERAL:
        confidence += TYPED_BONUS
    if intent_type == IntentType.FIND and has_collection:
        confidence = min(confidence + FIND_WITH_COLLECTION_BONUS, 1.0)
    return min(confidence, 1.0)


def describe_intent(intent_type: IntentType, collections: list[str], filters: dict) -> str:
    explanation = f"{intent_type.value} query"
    if collections:
        explanation += f" on {', '.join(collections)}"
    if filters:
        explanation += f" with filters: {json.dumps(filters, separators=(',', ':'))}"
    return explanation
