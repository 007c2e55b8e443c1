# Copyright (c) 2025 Kenneth Stott
#
# This source code is licensed under the Business Source License 1.1
# found in the LICENSE file in the root directory of this source tree.
#
# NOTICE: Use of this software for training artificial intelligence or
# machine learning models is strictly prohibited without explicit written
# permission from the copyright holder.

"""Provider factory for instantiating LLM providers by name."""

import importlib

from dataverse.core.config import LLMConfig

from .base import BaseLLMProvider

# Map of provider names to their classes
PROVIDER_CLASSES = {
    "anthropic": "dataverse.providers.anthropic.AnthropicProvider",
    "openai": "dataverse.providers.openai.OpenAIProvider",
    "groq": "dataverse.providers.openai.GroqProvider",
}


def _get_provider_class(provider_name: str) -> type:
    """Get the provider class by name."""
    class_path = PROVIDER_CLASSES.get(provider_name.lower())
    if not class_path:
        raise ValueError(
            f"Unknown provider: {provider_name}. "
            f"Available providers: {list(PROVIDER_CLASSES.keys())}"
        )
    module_path, class_name = class_path.rsplit(".", 1)
    module = importlib.import_module(module_path)
    return getattr(module, class_name)


def create_provider(llm_config: LLMConfig) -> BaseLLMProvider:
    """Create the provider described by the LLM configuration."""
    provider_class = _get_provider_class(llm_config.provider)
    kwargs = {
        "api_key": llm_config.api_key,
        "model": llm_config.model,
        "temperature": llm_config.temperature,
    }
    if llm_config.base_url and llm_config.provider.lower() != "anthropic":
        kwargs["base_url"] = llm_config.base_url
    return provider_class(**kwargs)
