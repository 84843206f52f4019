"""Batched embedding generation with bounded retry."""

import asyncio
import hashlib
import math
import time
from typing import Optional

from pydantic import BaseModel, Field

from ..base import BaseEmbedding
from ..exceptions import EmbeddingError
from ..models import DocumentChunk, EmbeddingRecord
from ..utils.config import EmbeddingConfig
from ..utils.logging import get_logger
from .tracker import EmbeddingsTracker

logger = get_logger(__name__)

CHARS_PER_TOKEN = 3.5


def cosine_similarity(a: list[float], b: list[float]) -> float:
    """Calculate cosine similarity between two vectors."""
    if len(a) != len(b):
        raise ValueError("Vectors must have the same dimension")

    dot_product = sum(x * y for x, y in zip(a, b))
    norm_a = math.sqrt(sum(x * x for x in a))
    norm_b = math.sqrt(sum(x * x for x in b))

    if norm_a == 0 or norm_b == 0:
        return 0.0

    return dot_product / (norm_a * norm_b)


def estimate_tokens(text: str) -> int:
    return math.ceil(len(text) / CHARS_PER_TOKEN)


class EmbeddingBatchResult(BaseModel):
    """Outcome of one generate_embeddings run.

    Attributes:
        results: Embeddings produced, in input order
        total_tokens: Provider-reported tokens for successful batches
        processing_time: Wall-clock seconds
        errors: One message per batch that exhausted its retries
        failed_chunk_ids: Chunks marked failed in the tracker
    """

    results: list[EmbeddingRecord] = Field(default_factory=list)
    total_tokens: int = 0
    processing_time: float = 0.0
    errors: list[str] = Field(default_factory=list)
    failed_chunk_ids: list[str] = Field(default_factory=list)


class EmbeddingsService:
    """Turns chunks into embeddings, one provider call per batch.

    A batch that keeps failing after its retries is recorded in the tracker
    and in the result's errors; the run always continues with the next batch.
    """

    def __init__(
        self,
        embedding: BaseEmbedding,
        tracker: Optional[EmbeddingsTracker] = None,
        config: Optional[EmbeddingConfig] = None,
    ):
        """Initialize the service.

        Args:
            embedding: Provider used for every call
            tracker: Receives per-batch completion and failure
            config: Batch size, retry, delay and timeout settings
        """
        self.embedding = embedding
        self.tracker = tracker
        self.config = config or EmbeddingConfig()
        self._cache: dict[str, tuple[list[float], int]] = {}

    def prepare_text(self, chunk: DocumentChunk) -> str:
        """Prefix chunk content with its identity and cap its length."""
        meta = chunk.metadata
        lines = [f"Type: {meta.type}"]
        if meta.method_name:
            lines.append(f"Method: {meta.method_name}")
        if meta.class_name:
            lines.append(f"Class: {meta.class_name}")
        lines.append(f"Namespace: {meta.namespace}")

        text = "\n".join(lines) + "\n\n" + chunk.content
        if estimate_tokens(text) > self.config.max_tokens:
            text = text[: self.config.max_tokens * 3] + "..."
        return text

    @staticmethod
    def _cache_key(text: str) -> str:
        return hashlib.sha256(text.encode("utf-8")).hexdigest()

    async def _embed_with_retry(self, texts: list[str], batch_index: int) -> tuple[list[list[float]], int]:
        """Call the provider, retrying with a linearly growing delay.

        Raises:
            EmbeddingError: When every attempt failed
        """
        attempts = self.config.max_retries + 1
        last_error: Optional[Exception] = None

        for attempt in range(1, attempts + 1):
            try:
                response = await asyncio.wait_for(
                    self.embedding.embed_batch(texts),
                    timeout=self.config.timeout,
                )
                if len(response.vectors) != len(texts):
                    raise EmbeddingError(
                        f"Provider returned {len(response.vectors)} vectors for {len(texts)} texts",
                        batch_index=batch_index,
                        attempts=attempt,
                    )
                return response.vectors, response.total_tokens
            except Exception as e:
                last_error = e
                reason = "timed out" if isinstance(e, asyncio.TimeoutError) else str(e)
                if attempt < attempts:
                    delay = self.config.retry_delay * attempt
                    logger.warning(
                        f"Batch {batch_index + 1} attempt {attempt}/{attempts} failed: {reason}; "
                        f"retrying in {delay:.1f}s"
                    )
                    await asyncio.sleep(delay)

        reason = "timed out" if isinstance(last_error, asyncio.TimeoutError) else str(last_error)
        raise EmbeddingError(
            f"Batch {batch_index + 1} failed after {attempts} attempts: {reason}",
            batch_index=batch_index,
            attempts=attempts,
        )

    async def generate_embeddings(self, chunks: list[DocumentChunk]) -> EmbeddingBatchResult:
        """Embed chunks in batches and report each batch to the tracker.

        Args:
            chunks: Chunks to embed (usually ``SyncResult.to_embed``)

        Returns:
            Records, token usage, timing and per-batch errors
        """
        start = time.perf_counter()
        result = EmbeddingBatchResult()
        batch_size = self.config.batch_size
        batches = [chunks[i : i + batch_size] for i in range(0, len(chunks), batch_size)]
        model = self.embedding.model_name

        for batch_index, batch in enumerate(batches):
            texts = [self.prepare_text(chunk) for chunk in batch]
            vectors: list[Optional[list[float]]] = [None] * len(batch)
            tokens: list[int] = [0] * len(batch)

            missing = []
            for i, text in enumerate(texts):
                cached = self._cache.get(self._cache_key(text))
                if cached is not None:
                    vectors[i], tokens[i] = cached
                else:
                    missing.append(i)

            failed: set[int] = set()
            if missing:
                try:
                    new_vectors, batch_tokens = await self._embed_with_retry(
                        [texts[i] for i in missing], batch_index
                    )
                except EmbeddingError as e:
                    logger.error(e.message)
                    result.errors.append(e.message)
                    # cached vectors in the batch are still usable
                    failed = set(missing)
                    for i in missing:
                        result.failed_chunk_ids.append(batch[i].id)
                        if self.tracker is not None:
                            await self.tracker.mark_failed(batch[i], e.message)
                else:
                    result.total_tokens += batch_tokens
                    for i, vector in zip(missing, new_vectors):
                        vectors[i] = vector
                        tokens[i] = estimate_tokens(texts[i])
                        self._cache[self._cache_key(texts[i])] = (vector, tokens[i])

            for i, chunk in enumerate(batch):
                if i in failed:
                    continue
                record = EmbeddingRecord(
                    chunk_id=chunk.id,
                    vector=vectors[i],
                    model=model,
                    token_count=tokens[i],
                )
                result.results.append(record)
                if self.tracker is not None:
                    await self.tracker.mark_completed(chunk, record)

            if not failed:
                logger.info(f"Embedded batch {batch_index + 1}/{len(batches)} ({len(batch)} chunks)")

            if batch_index < len(batches) - 1:
                await asyncio.sleep(self.config.batch_delay)

        result.processing_time = time.perf_counter() - start
        logger.info(
            f"Generated {len(result.results)} embeddings ({result.total_tokens} tokens, "
            f"{len(result.errors)} failed batches) in {result.processing_time:.2f}s"
        )
        return result

    async def generate_query_embedding(self, text: str) -> list[float]:
        """Embed a search query.

        Raises:
            EmbeddingError: When the provider keeps failing
        """
        key = self._cache_key(text)
        cached = self._cache.get(key)
        if cached is not None:
            return cached[0]

        vectors, _tokens = await self._embed_with_retry([text], batch_index=0)
        self._cache[key] = (vectors[0], estimate_tokens(text))
        return vectors[0]

    @staticmethod
    def find_similar(
        query_vector: list[float],
        candidates: list[DocumentChunk],
        limit: int = 10,
        threshold: float = 0.5,
    ) -> list[tuple[DocumentChunk, float]]:
        """Rank embedded candidates by cosine similarity to a vector.

        Candidates without an embedding or with a different dimension are skipped.
        """
        scored = []
        for chunk in candidates:
            if chunk.embedding is None or len(chunk.embedding) != len(query_vector):
                continue
            similarity = cosine_similarity(query_vector, chunk.embedding)
            if similarity >= threshold:
                scored.append((chunk, similarity))

        scored.sort(key=lambda x: x[1], reverse=True)
        return scored[:limit]

    def clear_cache(self) -> None:
        self._cache.clear()

    @property
    def cache_size(self) -> int:
        return len(self._cache)
