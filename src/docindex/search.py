"""Lexical, semantic and fused retrieval over indexed chunks."""

import math
import re
from collections import Counter
from typing import Any, Optional

from .embeddings.service import EmbeddingsService, cosine_similarity
from .exceptions import EmbeddingError
from .models import DocumentChunk, SearchResult
from .utils.config import SearchConfig
from .utils.logging import get_logger

logger = get_logger(__name__)

FILTER_FIELDS = ("namespace", "type", "importance", "class_name")


def tokenize(text: str) -> list[str]:
    """Tokenize text into lowercase terms."""
    return re.findall(r"\b\w+\b", text.lower())


def matches_filters(chunk: DocumentChunk, filters: Optional[dict[str, Any]]) -> bool:
    """Check chunk metadata against equality filters.

    A filter value may be a single value or a list of accepted values.

    Raises:
        ValueError: For a filter on an unsupported field
    """
    if not filters:
        return True

    for field, expected in filters.items():
        if field not in FILTER_FIELDS:
            raise ValueError(f"Unsupported filter field: {field!r}")
        actual = getattr(chunk.metadata, field)
        if isinstance(expected, (list, tuple, set)):
            if actual not in expected:
                return False
        elif actual != expected:
            return False
    return True


class LexicalIndex:
    """BM25 keyword index.

    Indexes chunk content together with its namespace, class and method
    names. Good for exact term matching.
    """

    def __init__(self, k1: float = 1.5, b: float = 0.75):
        """Initialize the index.

        Args:
            k1: BM25 k1 parameter (term frequency saturation)
            b: BM25 b parameter (document length normalization)
        """
        self.k1 = k1
        self.b = b
        self._doc_lengths: dict[str, int] = {}
        self._term_freqs: dict[str, Counter] = {}
        self._doc_freqs: Counter = Counter()
        self._avg_doc_length: float = 0

    def __len__(self) -> int:
        return len(self._term_freqs)

    @staticmethod
    def _index_text(chunk: DocumentChunk) -> str:
        meta = chunk.metadata
        names = [meta.namespace, meta.class_name or "", meta.method_name or ""]
        return " ".join([*names, chunk.content])

    def add(self, chunk: DocumentChunk) -> None:
        """Add or replace a chunk in the index."""
        key = chunk.stable_key
        if key in self._term_freqs:
            self.remove(key)

        tokens = tokenize(self._index_text(chunk))
        self._doc_lengths[key] = len(tokens)
        self._term_freqs[key] = Counter(tokens)
        for term in set(tokens):
            self._doc_freqs[term] += 1
        self._update_average()

    def remove(self, key: str) -> None:
        freqs = self._term_freqs.pop(key, None)
        if freqs is None:
            return
        self._doc_lengths.pop(key, None)
        for term in freqs:
            self._doc_freqs[term] -= 1
            if self._doc_freqs[term] <= 0:
                del self._doc_freqs[term]
        self._update_average()

    def _update_average(self) -> None:
        total_docs = len(self._doc_lengths)
        total_length = sum(self._doc_lengths.values())
        self._avg_doc_length = total_length / total_docs if total_docs > 0 else 0

    def _score(self, query_tokens: list[str], key: str) -> float:
        """Calculate BM25 score for a chunk."""
        score = 0.0
        doc_len = self._doc_lengths.get(key, 0)
        doc_term_freqs = self._term_freqs.get(key, Counter())
        N = len(self._term_freqs)

        for term in query_tokens:
            if term not in self._doc_freqs:
                continue

            df = self._doc_freqs[term]
            idf = math.log((N - df + 0.5) / (df + 0.5) + 1)

            tf = doc_term_freqs.get(term, 0)
            numerator = tf * (self.k1 + 1)
            denominator = tf + self.k1 * (
                1 - self.b + self.b * (doc_len / self._avg_doc_length)
            )
            score += idf * (numerator / denominator)

        return score

    def search(self, query: str, keys: Optional[set[str]] = None) -> dict[str, float]:
        """Score chunks against a query, normalized so the best match is 1.0.

        Args:
            query: Query text
            keys: Restrict scoring to these keys

        Returns:
            Positive scores by stable key
        """
        query_tokens = tokenize(query)
        if not query_tokens or not self._term_freqs:
            return {}

        candidates = self._term_freqs.keys() if keys is None else keys & self._term_freqs.keys()
        scores = {}
        for key in candidates:
            score = self._score(query_tokens, key)
            if score > 0:
                scores[key] = score

        if not scores:
            return {}
        top = max(scores.values())
        return {key: score / top for key, score in scores.items()}


class SemanticIndex:
    """Exact cosine-similarity search over stored vectors."""

    def __init__(self):
        self._vectors: dict[str, list[float]] = {}

    def __len__(self) -> int:
        return len(self._vectors)

    def add(self, key: str, vector: list[float]) -> None:
        self._vectors[key] = vector

    def remove(self, key: str) -> None:
        self._vectors.pop(key, None)

    def search(
        self,
        query_vector: list[float],
        top_k: int = 50,
        keys: Optional[set[str]] = None,
    ) -> dict[str, float]:
        """Return the top_k similarities, clamped to [0, 1], by stable key."""
        scores = []
        for key, vector in self._vectors.items():
            if keys is not None and key not in keys:
                continue
            if len(vector) != len(query_vector):
                logger.debug(f"Skipping {key!r}: dimension {len(vector)} != {len(query_vector)}")
                continue
            similarity = max(0.0, min(1.0, cosine_similarity(query_vector, vector)))
            scores.append((key, similarity))

        scores.sort(key=lambda x: x[1], reverse=True)
        return dict(scores[:top_k])


class HybridSearch:
    """Fuses BM25 and embedding similarity into one ranking.

    ``fused = lexical * lexical_weight + semantic * semantic_weight``; a chunk
    found by only one path scores from that path alone.

    Example:
        ```python
        search = HybridSearch(service)
        search.index(chunks, embeddings)
        results = await search.search("create a thread", filters={"namespace": "Threads"})
        ```
    """

    def __init__(
        self,
        service: Optional[EmbeddingsService] = None,
        config: Optional[SearchConfig] = None,
    ):
        """Initialize hybrid search.

        Args:
            service: Embeds queries; lexical-only search when omitted
            config: Fusion weights and limits
        """
        self.service = service
        self.config = config or SearchConfig()
        self.lexical = LexicalIndex()
        self.semantic = SemanticIndex()
        self._chunks: dict[str, DocumentChunk] = {}

    def __len__(self) -> int:
        return len(self._chunks)

    def index(
        self,
        chunks: list[DocumentChunk],
        embeddings: Optional[dict[str, list[float]]] = None,
    ) -> None:
        """Add chunks to both indexes.

        Args:
            chunks: Chunks to index; a chunk's own embedding is used when set
            embeddings: Vectors by stable key, overriding chunk embeddings
        """
        embeddings = embeddings or {}
        for chunk in chunks:
            key = chunk.stable_key
            self._chunks[key] = chunk
            self.lexical.add(chunk)
            vector = embeddings.get(key, chunk.embedding)
            if vector is not None:
                self.semantic.add(key, vector)
            else:
                self.semantic.remove(key)

        logger.debug(f"Indexed {len(chunks)} chunks ({len(self.semantic)} with embeddings)")

    def remove(self, key: str) -> None:
        self._chunks.pop(key, None)
        self.lexical.remove(key)
        self.semantic.remove(key)

    def clear(self) -> None:
        self._chunks.clear()
        self.lexical = LexicalIndex()
        self.semantic = SemanticIndex()

    async def _semantic_scores(self, query: str, keys: set[str]) -> dict[str, float]:
        if self.service is None or not len(self.semantic) or not keys:
            return {}
        try:
            query_vector = await self.service.generate_query_embedding(query)
        except EmbeddingError as e:
            logger.warning(f"Query embedding failed, using lexical scores only: {e.message}")
            return {}
        return self.semantic.search(query_vector, self.config.semantic_top_k, keys)

    async def search(
        self,
        query: str,
        limit: Optional[int] = None,
        filters: Optional[dict[str, Any]] = None,
    ) -> list[SearchResult]:
        """Search indexed chunks.

        Args:
            query: Query text
            limit: Maximum results (defaults to the configured limit)
            filters: Equality filters on namespace, type, importance or class_name

        Returns:
            Results sorted by fused score, highest first
        """
        limit = self.config.default_limit if limit is None else limit
        if not query.strip() or limit <= 0:
            return []

        keys = {key for key, chunk in self._chunks.items() if matches_filters(chunk, filters)}
        lexical = self.lexical.search(query, keys)
        semantic = await self._semantic_scores(query, keys)

        results = []
        for key in lexical.keys() | semantic.keys():
            lexical_score = lexical.get(key, 0.0)
            semantic_score = semantic.get(key, 0.0)
            results.append(SearchResult(
                chunk=self._chunks[key],
                lexical_score=lexical_score,
                semantic_score=semantic_score,
                fused_score=(
                    lexical_score * self.config.lexical_weight
                    + semantic_score * self.config.semantic_weight
                ),
            ))

        results.sort(key=lambda r: (-r.fused_score, r.chunk.stable_key))
        return results[:limit]
