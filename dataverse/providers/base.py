# Copyright (c) 2025 Kenneth Stott
#
# This source code is licensed under the Business Source License 1.1
# found in the LICENSE file in the root directory of this source tree.
#
# NOTICE: Use of this software for training artificial intelligence or
# machine learning models is strictly prohibited without explicit written
# permission from the copyright holder.

"""Base LLM provider interface."""

import asyncio
import logging
from abc import ABC, abstractmethod
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Optional

logger = logging.getLogger(__name__)

# Shared thread pool for running sync operations in async context
_DEFAULT_EXECUTOR = ThreadPoolExecutor(max_workers=10)


@dataclass
class GenerationResult:
    """Result from LLM generation."""
    content: str
    tokens: int = 0
    model: str = ""
    stop_reason: str = ""


class BaseLLMProvider(ABC):
    """Abstract base class for LLM providers.

    Providers turn a system prompt plus a chat transcript into prose. Messages
    use the common ``{"role": "user" | "assistant", "content": str}`` shape;
    each provider converts to its own wire format.
    """

    model: str = ""

    @abstractmethod
    def generate(
        self,
        system: str,
        messages: list[dict],
        max_tokens: int = 2048,
        model: Optional[str] = None,
        temperature: Optional[float] = None,
    ) -> GenerationResult:
        """
        Generate a response to the conversation.

        Args:
            system: System prompt
            messages: Conversation so far, ending with the user's turn
            max_tokens: Maximum tokens to generate
            model: Override model for this call
            temperature: Sampling temperature override

        Returns:
            Generated text and token usage
        """
        pass

    async def async_generate(
        self,
        system: str,
        messages: list[dict],
        max_tokens: int = 2048,
        model: Optional[str] = None,
        temperature: Optional[float] = None,
        executor: Optional[ThreadPoolExecutor] = None,
    ) -> GenerationResult:
        """
        Async version of generate().

        By default, runs the sync generate() in a thread pool executor.
        Providers can override this with native async implementations.
        """
        loop = asyncio.get_running_loop()
        exec_pool = executor or _DEFAULT_EXECUTOR
        return await loop.run_in_executor(
            exec_pool,
            lambda: self.generate(
                system=system,
                messages=messages,
                max_tokens=max_tokens,
                model=model,
                temperature=temperature,
            )
        )
