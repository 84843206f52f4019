"""Shared utilities."""

from .config import (
    ChunkingConfig,
    Config,
    EmbeddingConfig,
    IndexConfig,
    SearchConfig,
    StoreConfig,
    load_config,
)
from .logging import get_logger, set_log_level

__all__ = [
    "ChunkingConfig",
    "Config",
    "EmbeddingConfig",
    "IndexConfig",
    "SearchConfig",
    "StoreConfig",
    "load_config",
    "get_logger",
    "set_log_level",
]
