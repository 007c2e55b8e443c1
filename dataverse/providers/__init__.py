# Copyright (c) 2025 Kenneth Stott
#
# This source code is licensed under the Business Source License 1.1
# found in the LICENSE file in the root directory of this source tree.
#
# NOTICE: Use of this software for training artificial intelligence or
# machine learning models is strictly prohibited without explicit written
# permission from the copyright holder.

"""LLM provider implementations.

Available providers:
- AnthropicProvider: Claude models
- OpenAIProvider: GPT models and OpenAI-compatible endpoints
- GroqProvider: Open-weight models via Groq
"""

from .anthropic import AnthropicProvider
from .base import BaseLLMProvider, GenerationResult
from .factory import create_provider
from .openai import GroqProvider, OpenAIProvider

__all__ = [
    "BaseLLMProvider",
    "GenerationResult",
    "create_provider",
    "AnthropicProvider",
    "OpenAIProvider",
    "GroqProvider",
]
