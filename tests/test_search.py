"""Tests for lexical, semantic and hybrid search."""

import pytest

from docindex.embeddings import EmbeddingsService, FakeEmbedding
from docindex.search import HybridSearch, LexicalIndex, SemanticIndex, matches_filters, tokenize
from docindex.utils.config import EmbeddingConfig, SearchConfig


class UnavailableEmbedding(FakeEmbedding):
    async def embed_batch(self, texts):
        raise RuntimeError("provider down")


@pytest.fixture
def api_chunks(make_chunk):
    return [
        make_chunk(
            "threads-method-thread-create",
            "# Thread.create\n\nCreate a new thread with users.",
            type="method", namespace="Threads", class_name="Thread", method_name="create",
        ),
        make_chunk(
            "threads-method-thread-list",
            "# Thread.list\n\nList threads in a context.",
            type="method", namespace="Threads", class_name="Thread", method_name="list",
        ),
        make_chunk(
            "stores-method-store-create",
            "# Store.create\n\nCreate a store for files.",
            type="method", namespace="Stores", class_name="Store", method_name="create",
            importance="critical",
        ),
    ]


def _service(embedding=None):
    config = EmbeddingConfig(dimension=64, max_retries=0, retry_delay=0, batch_delay=0)
    return EmbeddingsService(embedding or FakeEmbedding(dimension=64), config=config)


class TestLexicalIndex:
    """Tests for LexicalIndex."""

    def test_tokenize(self):
        """Test lowercase word tokens."""
        assert tokenize("Thread.create(contextId)") == ["thread", "create", "contextid"]

    def test_best_match_scores_one(self, api_chunks):
        """Test scores are normalized to the best match."""
        index = LexicalIndex()
        for chunk in api_chunks:
            index.add(chunk)

        scores = index.search("create thread")

        assert max(scores, key=scores.get) == "threads-method-thread-create"
        assert scores["threads-method-thread-create"] == 1.0
        assert all(0 < s <= 1.0 for s in scores.values())

    def test_no_match(self, api_chunks):
        """Test unknown terms score nothing."""
        index = LexicalIndex()
        index.add(api_chunks[0])

        assert index.search("encryption") == {}
        assert index.search("") == {}

    def test_keys_restrict_candidates(self, api_chunks):
        """Test scoring only the given keys."""
        index = LexicalIndex()
        for chunk in api_chunks:
            index.add(chunk)

        scores = index.search("create", keys={"stores-method-store-create"})

        assert list(scores) == ["stores-method-store-create"]

    def test_add_replaces_and_remove(self, api_chunks, make_chunk):
        """Test re-adding a key replaces it and removal forgets it."""
        index = LexicalIndex()
        index.add(api_chunks[0])
        index.add(make_chunk("threads-method-thread-create", "# Thread.create\n\nMake a conversation."))

        assert len(index) == 1
        assert index.search("users") == {}

        index.remove("threads-method-thread-create")
        assert len(index) == 0
        assert index.search("conversation") == {}


class TestSemanticIndex:
    """Tests for SemanticIndex."""

    def test_scores_are_clamped(self):
        """Test negative similarity becomes zero."""
        index = SemanticIndex()
        index.add("same", [1.0, 0.0])
        index.add("opposite", [-1.0, 0.0])

        scores = index.search([1.0, 0.0])

        assert scores["same"] == pytest.approx(1.0)
        assert scores["opposite"] == 0.0

    def test_dimension_mismatch_is_skipped(self):
        """Test vectors of another dimension are ignored."""
        index = SemanticIndex()
        index.add("a", [1.0, 0.0])
        index.add("b", [1.0, 0.0, 0.0])

        assert list(index.search([1.0, 0.0])) == ["a"]

    def test_top_k(self):
        """Test the number of results is capped."""
        index = SemanticIndex()
        for i in range(5):
            index.add(f"k{i}", [1.0, float(i)])

        assert len(index.search([1.0, 0.0], top_k=2)) == 2


class TestFilters:
    """Tests for matches_filters."""

    def test_single_and_list_values(self, api_chunks):
        """Test equality and membership filters."""
        chunk = api_chunks[2]

        assert matches_filters(chunk, None)
        assert matches_filters(chunk, {"namespace": "Stores"})
        assert matches_filters(chunk, {"importance": ["critical", "high"], "type": "method"})
        assert not matches_filters(chunk, {"class_name": "Thread"})

    def test_unknown_field(self, api_chunks):
        """Test filtering on an unsupported field is an error."""
        with pytest.raises(ValueError):
            matches_filters(api_chunks[0], {"tags": "crud"})


class TestHybridSearch:
    """Tests for HybridSearch."""

    @pytest.mark.asyncio
    async def test_lexical_only_without_service(self, api_chunks):
        """Test fused scores come from the lexical path alone."""
        search = HybridSearch()
        search.index(api_chunks)

        results = await search.search("create thread")

        assert results[0].chunk.stable_key == "threads-method-thread-create"
        assert results[0].fused_score == pytest.approx(0.4)
        assert all(r.semantic_score == 0.0 for r in results)

    @pytest.mark.asyncio
    async def test_fusion(self, api_chunks):
        """Test fused scores stay in [0, 1] and rank the exact match first."""
        service = _service()
        query_vector = await service.generate_query_embedding("create thread")
        embeddings = {
            "threads-method-thread-create": query_vector,
            "threads-method-thread-list": await service.generate_query_embedding("list threads"),
            "stores-method-store-create": await service.generate_query_embedding("create store"),
        }
        search = HybridSearch(service)
        search.index(api_chunks, embeddings)

        results = await search.search("create thread")

        assert results[0].chunk.stable_key == "threads-method-thread-create"
        assert results[0].semantic_score == pytest.approx(1.0)
        assert results[0].fused_score == pytest.approx(1.0)
        assert all(0.0 <= r.fused_score <= 1.0 + 1e-9 for r in results)
        assert [r.fused_score for r in results] == sorted((r.fused_score for r in results), reverse=True)

    @pytest.mark.asyncio
    async def test_filters_and_limit(self, api_chunks):
        """Test filters restrict results and limit caps them."""
        search = HybridSearch()
        search.index(api_chunks)

        stores = await search.search("create", filters={"namespace": "Stores"})
        limited = await search.search("create thread", limit=1)

        assert [r.chunk.stable_key for r in stores] == ["stores-method-store-create"]
        assert len(limited) == 1
        assert await search.search("create", limit=0) == []
        assert await search.search("   ") == []

    @pytest.mark.asyncio
    async def test_query_embedding_failure_degrades(self, api_chunks):
        """Test a failing provider falls back to lexical scores."""
        search = HybridSearch(_service(UnavailableEmbedding(dimension=64)))
        search.index(api_chunks, {c.stable_key: [0.5] * 64 for c in api_chunks})

        results = await search.search("create thread")

        assert results
        assert results[0].fused_score == pytest.approx(0.4)

    @pytest.mark.asyncio
    async def test_custom_weights(self, api_chunks):
        """Test configured fusion weights are applied."""
        search = HybridSearch(config=SearchConfig(lexical_weight=1.0, semantic_weight=0.0))
        search.index(api_chunks)

        results = await search.search("create thread")

        assert results[0].fused_score == pytest.approx(1.0)

    @pytest.mark.asyncio
    async def test_remove_and_clear(self, api_chunks):
        """Test removed chunks are no longer returned."""
        search = HybridSearch()
        search.index(api_chunks)

        search.remove("stores-method-store-create")
        results = await search.search("store")
        assert results == []
        assert len(search) == 2

        search.clear()
        assert len(search) == 0
