# Copyright (c) 2025 Kenneth Stott
#
# This source code is licensed under the Business Source License 1.1
# found in the LICENSE file in the root directory of this source tree.
#
# NOTICE: Use of this software for training artificial intelligence or
# machine learning models is strictly prohibited without explicit written
# permission from the copyright holder.

"""Conversational answers grounded in the inferred schema and live query results.

For each message the assistant parses an intent, and when the intent is
specific enough it compiles and runs a read-only query. The LLM then answers
with the schema description in its system prompt and the query result (if
any) appended to the user's turn. A failing query never fails the answer; it
only drops the result context.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Optional

from dataverse.core.models import CompiledQuery, IntentType, QueryIntent, SchemaSnapshot
from dataverse.execution.formatter import build_schema_context, format_result_context
from dataverse.providers.base import BaseLLMProvider
from dataverse.service import Dataverse

logger = logging.getLogger(__name__)

# Intent types answered from the schema alone
SCHEMA_ONLY_INTENTS = frozenset({IntentType.GENERAL, IntentType.SCHEMA, IntentType.RELATIONSHIP})

MAX_SUGGESTIONS = 5
MAX_FOLLOW_UPS = 3

SYSTEM_PROMPT = """You are Dataverse AI, an expert MongoDB database assistant. You help users understand and query their database.

DATABASE SCHEMA:

{schema}

FORMATTING GUIDELINES:
- Start with a short, friendly summary of what you found.
- Use markdown tables for collections, fields and other structured data.
- Format numbers with thousands separators and use **bold** for key figures.
- Explain relationships between collections when they are relevant.
- Keep paragraphs short and end with one or two ideas for what to explore next.
- If the question is ambiguous, ask for clarification.

Remember: you can only perform READ operations. Never suggest write, update, or delete operations."""


@dataclass
class AssistantResponse:
    """An answer plus what was done to produce it."""
    content: str
    intent: QueryIntent
    tokens: int = 0
    model: str = ""
    compiled: Optional[CompiledQuery] = None
    query_executed: bool = False
    result: Any = None
    suggestions: list[str] = field(default_factory=list)


class DataAssistant:
    """Answers questions about a database through an LLM provider."""

    def __init__(
        self,
        dataverse: Dataverse,
        provider: BaseLLMProvider,
        execution_threshold: Optional[float] = None,
        max_tokens: Optional[int] = None,
    ):
        self.dataverse = dataverse
        self.provider = provider
        query_config = dataverse.config.query
        self.execution_threshold = (
            query_config.execution_threshold if execution_threshold is None else execution_threshold
        )
        self.max_tokens = max_tokens or dataverse.config.llm.max_tokens

    def should_execute(self, intent: QueryIntent, connection_string: Optional[str]) -> bool:
        return (
            intent.confidence > self.execution_threshold
            and intent.type not in SCHEMA_ONLY_INTENTS
            and bool(connection_string)
        )

    @staticmethod
    def build_system_prompt(snapshot: Optional[SchemaSnapshot]) -> str:
        schema = build_schema_context(snapshot) if snapshot else "(schema not available)"
        return SYSTEM_PROMPT.format(schema=schema)

    @staticmethod
    def build_messages(message: str, history: Optional[list[tuple[str, str]]] = None) -> list[dict]:
        """Chat transcript: previous (question, answer) pairs then the new question."""
        messages = []
        for question, answer in history or []:
            messages.append({"role": "user", "content": question})
            messages.append({"role": "assistant", "content": answer})
        messages.append({"role": "user", "content": message})
        return messages

    async def _run_query(
        self,
        compiled: CompiledQuery,
        connection_string: str,
        database: Optional[str],
    ) -> tuple[bool, Any]:
        if not compiled.is_valid:
            logger.warning(f"Compiled query failed validation: {list(compiled.validation_errors)}")
            return False, None
        try:
            result = await self.dataverse.execute_compiled(connection_string, database, compiled)
        except Exception as e:
            logger.warning(f"Query execution failed, answering from schema only: {e}")
            return False, None
        return True, result

    async def respond(
        self,
        message: str,
        snapshot: Optional[SchemaSnapshot],
        history: Optional[list[tuple[str, str]]] = None,
        connection_string: Optional[str] = None,
        database: Optional[str] = None,
    ) -> AssistantResponse:
        """Answer a message, running a query first when the intent allows it."""
        intent, compiled = self.dataverse.parse_and_compile(message, snapshot)
        logger.info(f"Parsed intent: {intent.explanation} (confidence={intent.confidence:.2f})")

        executed, result = False, None
        if self.should_execute(intent, connection_string):
            if database is None and snapshot is not None:
                database = snapshot.database_name
            executed, result = await self._run_query(compiled, connection_string, database)

        messages = self.build_messages(message, history)
        if executed:
            messages[-1]["content"] += "\n\n" + format_result_context(compiled, result)

        generation = await self.provider.async_generate(
            system=self.build_system_prompt(snapshot),
            messages=messages,
            max_tokens=self.max_tokens,
        )

        return AssistantResponse(
            content=generation.content,
            intent=intent,
            tokens=generation.tokens,
            model=generation.model,
            compiled=compiled,
            query_executed=executed,
            result=result,
            suggestions=follow_up_suggestions(generation.content, snapshot),
        )


def suggest_questions(context: str, snapshot: Optional[SchemaSnapshot]) -> list[str]:
    """Starter questions for a conversation about this database."""
    collections = snapshot.collections if snapshot else ()
    suggestions = []

    if collections:
        first = collections[0].name
        suggestions.append(f"How many documents are in {first}?")
        suggestions.append(f"Show me the structure of {first}")
        if len(collections) > 1:
            suggestions.append(f"What's the relationship between {first} and {collections[1].name}?")

    if "user" in context.lower():
        suggestions.append("Show me recently created users")
        suggestions.append("What fields does the users collection have?")
        suggestions.append("Count users by status")

    suggestions.append("Show me all collections in this database")
    suggestions.append("What are the largest collections?")
    suggestions.append("Find collections with relationships")

    return suggestions[:MAX_SUGGESTIONS]


def follow_up_suggestions(response: str, snapshot: Optional[SchemaSnapshot]) -> list[str]:
    """Follow-up questions based on the content of an answer."""
    suggestions = []

    if "documents" in response:
        suggestions.append("Show me a sample document")
        suggestions.append("What are the most common field values?")

    if "relationship" in response:
        suggestions.append("Explain this relationship in detail")
        suggestions.append("Show me related documents")

    if snapshot and snapshot.collections:
        largest = max(snapshot.collections, key=lambda c: c.document_count)
        suggestions.append(f"Tell me about {largest.name}")

    return suggestions[:MAX_FOLLOW_UPS]
