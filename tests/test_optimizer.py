"""Tests for the chunk optimizer."""

from docindex.chunking import ChunkOptimizer
from docindex.chunking.optimizer import normalized_hash, quality_from_tags, score_quality


def _words(count: int, extra: str = "") -> str:
    return " ".join(f"word{i}" for i in range(count)) + extra


class TestChunkOptimizer:
    """Tests for ChunkOptimizer."""

    def test_exact_duplicates_keep_more_important(self, make_chunk):
        """Test the more important duplicate replaces the earlier one."""
        first = make_chunk("a", "Create a Thread.", importance="medium")
        second = make_chunk("b", "create   a thread", importance="critical")
        other = make_chunk("c", "Something else entirely.")

        unique = ChunkOptimizer.remove_duplicates([first, second, other])

        assert [c.stable_key for c in unique] == ["b", "c"]

    def test_near_duplicates_are_dropped(self, make_chunk):
        """Test word overlap above the threshold counts as a duplicate."""
        first = make_chunk("a", _words(20))
        second = make_chunk("b", _words(20, " word99"))

        assert len(ChunkOptimizer.remove_duplicates([first, second])) == 1

    def test_distinct_chunks_survive(self, make_chunk):
        """Test unrelated chunks are all kept."""
        chunks = [make_chunk(key) for key in ("a", "b", "c")]
        assert len(ChunkOptimizer.remove_duplicates(chunks)) == 3

    def test_normalized_hash_ignores_case_and_punctuation(self):
        """Test hash normalization."""
        assert normalized_hash("Hello,  World!") == normalized_hash("hello world")
        assert normalized_hash("hello") != normalized_hash("world")

    def test_score_quality(self, make_chunk):
        """Test the sub-score average for a bare chunk."""
        score = score_quality(make_chunk("a", "plain text"))

        assert score.completeness == 0.5
        assert score.clarity == 0.5
        assert abs(score.overall - 0.45) < 1e-9

    def test_score_chunks_replaces_quality_tag(self, make_chunk):
        """Test exactly one quality tag is kept."""
        chunk = make_chunk("a", "plain text", tags=["quality:0.99", "threads"])
        scored = ChunkOptimizer.score_chunks([chunk])[0]

        quality_tags = [t for t in scored.metadata.tags if t.startswith("quality:")]
        assert quality_tags == ["quality:0.45"]
        assert "threads" in scored.metadata.tags

    def test_quality_from_tags(self):
        """Test the default for missing or malformed quality tags."""
        assert quality_from_tags(["quality:0.80"]) == 0.8
        assert quality_from_tags([]) == 0.5
        assert quality_from_tags(["quality:abc"]) == 0.5

    def test_sort_by_priority(self, make_chunk):
        """Test importance first, then quality."""
        chunks = [
            make_chunk("low", importance="low"),
            make_chunk("high-weak", importance="high", tags=["quality:0.40"]),
            make_chunk("critical", importance="critical"),
            make_chunk("high-strong", importance="high", tags=["quality:0.90"]),
        ]

        ordered = ChunkOptimizer.sort_by_priority(chunks)

        assert [c.stable_key for c in ordered] == ["critical", "high-strong", "high-weak", "low"]

    def test_optimize_without_deduplication(self, make_chunk):
        """Test disabled passes are skipped."""
        chunks = [make_chunk("a", "same text"), make_chunk("b", "same text")]
        optimized = ChunkOptimizer(deduplication=False, quality_scoring=False).optimize(chunks)

        assert len(optimized) == 2
        assert all(not t.startswith("quality:") for c in optimized for t in c.metadata.tags)

    def test_optimize(self, make_chunk):
        """Test the full pass."""
        chunks = [
            make_chunk("a", "same text", importance="low"),
            make_chunk("b", "same text", importance="high"),
            make_chunk("c", "different text", importance="critical"),
        ]
        optimized = ChunkOptimizer().optimize(chunks)

        assert [c.stable_key for c in optimized] == ["c", "b"]
