# Copyright (c) 2025 Kenneth Stott
#
# This source code is licensed under the Business Source License 1.1
# found in the LICENSE file in the root directory of this source tree.
#
# NOTICE: Use of this software for training artificial intelligence or
# machine learning models is strictly prohibited without explicit written
# permission from the copyright holder.

"""OpenAI and OpenAI-compatible providers."""

import logging
import os
from typing import Optional

from openai import OpenAI

from .base import BaseLLMProvider, GenerationResult

logger = logging.getLogger(__name__)


class OpenAIProvider(BaseLLMProvider):
    """OpenAI chat completions provider.

    Also serves OpenAI-compatible endpoints through ``base_url``.
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: str = "gpt-4o",
        base_url: Optional[str] = None,
        temperature: float = 0.7,
    ):
        """
        Initialize OpenAI provider.

        Args:
            api_key: OpenAI API key (or uses OPENAI_API_KEY env var)
            model: Model to use (e.g., "gpt-4o", "gpt-4-turbo")
            base_url: Optional custom base URL for OpenAI-compatible APIs
            temperature: Default sampling temperature
        """
        kwargs = {}
        if api_key:
            kwargs["api_key"] = api_key
        if base_url:
            kwargs["base_url"] = base_url

        self.client = OpenAI(**kwargs)
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
        response = self.client.chat.completions.create(
            model=use_model,
            messages=[{"role": "system", "content": system}, *messages],
            max_tokens=max_tokens,
            temperature=self.temperature if temperature is None else temperature,
        )
        choice = response.choices[0]

        # Check for truncation due to max_tokens limit
        if choice.finish_reason == "length":
            logger.warning(
                f"[OPENAI] Response truncated at max_tokens={max_tokens}. "
                f"Consider increasing limit or simplifying request."
            )

        usage = response.usage
        return GenerationResult(
            content=choice.message.content or "",
            tokens=usage.total_tokens if usage else 0,
            model=use_model,
            stop_reason=choice.finish_reason or "",
        )


class GroqProvider(OpenAIProvider):
    """Groq provider for fast open-weight model inference."""

    GROQ_BASE_URL = "https://api.groq.com/openai/v1"

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: str = "llama-3.3-70b-versatile",
        base_url: Optional[str] = None,
        temperature: float = 0.7,
    ):
        resolved_key = api_key or os.environ.get("GROQ_API_KEY")
        super().__init__(
            api_key=resolved_key,
            model=model,
            base_url=base_url or self.GROQ_BASE_URL,
            temperature=temperature,
        )
