# Copyright (c) 2025 Kenneth Stott
#
# This source code is licensed under the Business Source License 1.1
# found in the LICENSE file in the root directory of this source tree.
#
# NOTICE: Use of this software for training artificial intelligence or
# machine learning models is strictly prohibited without explicit written
# permission from the copyright holder.

"""Anthropic Claude provider."""

import logging
from typing import Optional

import anthropic

from .base import BaseLLMProvider, GenerationResult

logger = logging.getLogger(__name__)


class AnthropicProvider(BaseLLMProvider):
    """Anthropic Claude provider."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: str = "claude-sonnet-4-20250514",
        temperature: float = 0.7,
    ):
        self.client = anthropic.Anthropic(api_key=api_key)
        self.model = model
        self.temperature = temperature

    def generate(
        self,
        system: str,
        messages: list[dict],
        max_tokens: int = 2048,
        model: Optional[str] = None,
        temperature: Optional[float] = None,
    ) -> GenerationResult:
        use_model = model or self.model
        response = self.client.messages.create(
            model=use_model,
            max_tokens=max_tokens,
            system=system,
            messages=messages,
            temperature=self.temperature if temperature is None else temperature,
        )

        # Check for truncation due to max_tokens limit
        if response.stop_reason == "max_tokens":
            logger.warning(
                f"[ANTHROPIC] Response truncated at max_tokens={max_tokens}. "
                f"Consider increasing limit or simplifying request."
            )

        text_parts = [block.text for block in response.content if block.type == "text"]
        usage = response.usage
        return GenerationResult(
            content="\n".join(text_parts),
            tokens=(usage.input_tokens + usage.output_tokens) if usage else 0,
            model=use_model,
            stop_reason=response.stop_reason or "",
        )
