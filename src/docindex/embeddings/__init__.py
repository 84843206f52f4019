"""Embedding providers, sync tracking and batched generation."""

from .providers import FakeEmbedding, LocalEmbedding, OpenAIEmbedding, create_embedding
from .service import EmbeddingBatchResult, EmbeddingsService, cosine_similarity
from .tracker import EmbeddingsTracker, content_hash

__all__ = [
    "EmbeddingBatchResult",
    "EmbeddingsService",
    "EmbeddingsTracker",
    "FakeEmbedding",
    "LocalEmbedding",
    "OpenAIEmbedding",
    "content_hash",
    "cosine_similarity",
    "create_embedding",
]
