"""
Configuration utilities.
"""

import json
from pathlib import Path
from typing import Literal, Optional

import yaml

from pydantic import BaseModel, Field, model_validator

from docindex.exceptions import ConfigError


class Config(BaseModel):
    """Base configuration class."""

    @classmethod
    def from_yaml(cls, path: Path) -> "Config":
        """Load configuration from YAML file."""
        with open(path) as f:
            data = yaml.safe_load(f) or {}
        return cls(**data)

    @classmethod
    def from_file(cls, path: str | Path) -> "Config":
        """Load configuration from file (YAML or JSON)."""
        path = Path(path)

        if path.suffix in (".yaml", ".yml"):
            return cls.from_yaml(path)
        elif path.suffix == ".json":
            with open(path) as f:
                data = json.load(f)
            return cls(**data)
        else:
            raise ValueError(f"Unsupported config file format: {path.suffix}")


class ChunkingConfig(BaseModel):
    """Chunk size limits and cross-reference settings."""
    max_chunk_size: int = 2000
    min_chunk_size: int = 200
    soft_chunk_size: int = 1500
    overlap_size: int = 200
    cross_reference_limit: int = 3
    cross_reference_threshold: float = 0.3

    @model_validator(mode="after")
    def _check_sizes(self) -> "ChunkingConfig":
        if self.min_chunk_size >= self.max_chunk_size:
            raise ConfigError("min_chunk_size must be less than max_chunk_size")
        if self.overlap_size >= self.soft_chunk_size:
            raise ConfigError("overlap_size must be less than soft_chunk_size")
        return self


class EmbeddingConfig(BaseModel):
    """Embedding provider and batching settings."""
    provider: Literal["fake", "openai", "local"] = "fake"
    model: str = "text-embedding-3-small"
    dimension: int = 1536
    api_key: str | None = None
    base_url: str | None = None
    batch_size: int = Field(default=100, gt=0)
    max_tokens: int = 8192
    max_retries: int = Field(default=3, ge=0)
    retry_delay: float = 1.0
    batch_delay: float = 0.1
    timeout: float = 30.0


class SearchConfig(BaseModel):
    """Rank fusion weights."""
    lexical_weight: float = 0.4
    semantic_weight: float = 0.6
    semantic_top_k: int = 50
    default_limit: int = 10


class StoreConfig(BaseModel):
    """Key-value store backend."""
    backend: Literal["memory", "sqlite", "redis"] = "memory"
    path: str = "docindex.db"
    url: str = "redis://localhost:6379"
    key_prefix: str = "docindex:"


class IndexConfig(Config):
    """Top-level configuration for the indexer."""
    chunking: ChunkingConfig = Field(default_factory=ChunkingConfig)
    embedding: EmbeddingConfig = Field(default_factory=EmbeddingConfig)
    search: SearchConfig = Field(default_factory=SearchConfig)
    store: StoreConfig = Field(default_factory=StoreConfig)
    log_level: Optional[str] = None


def load_config(path: str | Path = "docindex.yaml") -> IndexConfig:
    """
    Load indexer configuration from file.

    Args:
        path: Path to config file

    Returns:
        IndexConfig instance (defaults when the file does not exist)
    """
    path = Path(path)

    if not path.exists():
        return IndexConfig()

    return IndexConfig.from_file(path)
