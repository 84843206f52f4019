"""docindex - chunking, embedding sync and hybrid search for SDK documentation.

This package provides a complete documentation indexing system including:
- Parsers for structured API specs (JSON) and narrative docs (Markdown/MDX)
- A content validator that excludes malformed units individually
- Method-level, context-aware, hierarchical and hybrid chunking strategies
- Chunk enhancement and optional optimization
- An embedding sync tracker over a key-value store (memory, SQLite, Redis)
- A batched embeddings service with bounded retry (fake, OpenAI, local)
- BM25 + cosine rank-fusion search

Example:
    ```python
    from docindex import Indexer, load_config

    indexer = Indexer(load_config("docindex.yaml"))
    summary = await indexer.index({
        "spec/out.js.json": spec_json,
        "guides/threads.md": guide_text,
    })
    results = await indexer.search("send a message", filters={"namespace": "Threads"})
    ```

For lower-level use:
    ```python
    from docindex import ChunkingManager, NarrativeParser

    units = NarrativeParser().parse(text, "guide.md")
    chunks = ChunkingManager().chunk_all(units)
    ```
"""

# Data structures
from .models import (
    ChunkMetadata,
    CodeExample,
    DocumentChunk,
    EmbeddingRecord,
    EmbeddingResponse,
    Parameter,
    ParsedContent,
    ReturnValue,
    SearchResult,
    SyncRecord,
    SyncResult,
    TypeInfo,
    WorkflowStep,
)

# Base classes
from .base import BaseChunkingStrategy, BaseEmbedding, BaseParser, BaseStore

# Exceptions
from .exceptions import (
    ConfigError,
    DocIndexError,
    EmbeddingError,
    ParseError,
    TrackerPersistenceError,
    ValidationError,
)

# Parsing and validation
from .parsers import NarrativeParser, StructuredSpecParser
from .validator import BatchValidationResult, ContentValidator, ValidationResult

# Chunking
from .chunking import (
    ChunkEnhancer,
    ChunkingManager,
    ChunkOptimizer,
    ContextAwareStrategy,
    EnhancementOptions,
    HierarchicalStrategy,
    HybridStrategy,
    MethodLevelStrategy,
)

# Storage
from .store import MemoryStore, RedisStore, SQLiteStore, create_store

# Embeddings
from .embeddings import (
    EmbeddingBatchResult,
    EmbeddingsService,
    EmbeddingsTracker,
    FakeEmbedding,
    LocalEmbedding,
    OpenAIEmbedding,
    create_embedding,
)

# Search
from .search import HybridSearch, LexicalIndex, SemanticIndex

# Pipeline
from .pipeline import Indexer, IndexSummary

# Configuration
from .utils import IndexConfig, get_logger, load_config, set_log_level

__version__ = "0.1.0"

__all__ = [
    # Data structures
    "ChunkMetadata",
    "CodeExample",
    "DocumentChunk",
    "EmbeddingRecord",
    "EmbeddingResponse",
    "Parameter",
    "ParsedContent",
    "ReturnValue",
    "SearchResult",
    "SyncRecord",
    "SyncResult",
    "TypeInfo",
    "WorkflowStep",
    # Base classes
    "BaseChunkingStrategy",
    "BaseEmbedding",
    "BaseParser",
    "BaseStore",
    # Exceptions
    "ConfigError",
    "DocIndexError",
    "EmbeddingError",
    "ParseError",
    "TrackerPersistenceError",
    "ValidationError",
    # Parsing and validation
    "NarrativeParser",
    "StructuredSpecParser",
    "BatchValidationResult",
    "ContentValidator",
    "ValidationResult",
    # Chunking
    "ChunkEnhancer",
    "ChunkingManager",
    "ChunkOptimizer",
    "ContextAwareStrategy",
    "EnhancementOptions",
    "HierarchicalStrategy",
    "HybridStrategy",
    "MethodLevelStrategy",
    # Storage
    "MemoryStore",
    "RedisStore",
    "SQLiteStore",
    "create_store",
    # Embeddings
    "EmbeddingBatchResult",
    "EmbeddingsService",
    "EmbeddingsTracker",
    "FakeEmbedding",
    "LocalEmbedding",
    "OpenAIEmbedding",
    "create_embedding",
    # Search
    "HybridSearch",
    "LexicalIndex",
    "SemanticIndex",
    # Pipeline
    "Indexer",
    "IndexSummary",
    # Configuration
    "IndexConfig",
    "get_logger",
    "load_config",
    "set_log_level",
]
