"""Configuration loading with Pydantic validation and env var substitution."""

import os
import re
from pathlib import Path
from typing import Optional

import yaml
from pydantic import BaseModel, Field


class MongoConfig(BaseModel):
    """Settings for connections to user databases."""
    connect_timeout_ms: int = Field(default=5000, gt=0)
    # Bounds each driver read/write so a stalled server cannot hang a query
    socket_timeout_ms: int = Field(default=30000, gt=0)
    max_pool_size: int = Field(default=10, gt=0)
    # Documents sampled per collection during schema inference
    sample_size: int = Field(default=100, gt=0)
    # Collections extracted concurrently (1 = sequential)
    extraction_concurrency: int = Field(default=1, ge=1)


class PoolConfig(BaseModel):
    """Connection pool housekeeping."""
    idle_timeout_seconds: float = Field(default=30 * 60, gt=0)
    sweep_interval_seconds: float = Field(default=60, gt=0)


class CacheConfig(BaseModel):
    """Schema cache settings."""
    schema_ttl_seconds: int = Field(default=30 * 60, gt=0)


class QueryConfig(BaseModel):
    """Query compilation and execution limits."""
    # Intents at or below this confidence are answered from the schema only
    execution_threshold: float = Field(default=0.6, ge=0.0, le=1.0)
    find_default_limit: int = Field(default=10, gt=0)
    aggregate_default_limit: int = Field(default=100, gt=0)
    max_limit: int = Field(default=1000, gt=0)
    default_projection_size: int = Field(default=8, gt=0)


class LLMConfig(BaseModel):
    """LLM provider configuration."""
    provider: str = "anthropic"
    model: str = "claude-sonnet-4-20250514"
    api_key: Optional[str] = None
    base_url: Optional[str] = None
    max_tokens: int = 2048
    temperature: float = 0.7


class Config(BaseModel):
    """Root configuration."""
    mongodb: MongoConfig = Field(default_factory=MongoConfig)
    pool: PoolConfig = Field(default_factory=PoolConfig)
    cache: CacheConfig = Field(default_factory=CacheConfig)
    query: QueryConfig = Field(default_factory=QueryConfig)
    llm: LLMConfig = Field(default_factory=LLMConfig)
    log_level: str = "INFO"

    @classmethod
    def from_yaml(cls, path: str | Path) -> "Config":
        """
        Load config from YAML file with env var substitution.

        Args:
            path: Path to the config YAML file

        Returns:
            Validated Config object
        """
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Config file not found: {path}")

        with open(path) as f:
            raw_content = f.read()

        # Substitute environment variables: ${VAR_NAME}
        substituted = _substitute_env_vars(raw_content)

        data = yaml.safe_load(substituted) or {}
        return cls.model_validate(data)


def _substitute_env_vars(content: str) -> str:
    """Replace ${VAR_NAME} with environment variable values."""
    pattern = re.compile(r'\$\{([^}]+)\}')

    def replacer(match: re.Match) -> str:
        var_name = match.group(1)
        value = os.environ.get(var_name)
        if value is None:
            raise ValueError(f"Environment variable not set: {var_name}")
        return value

    return pattern.sub(replacer, content)
