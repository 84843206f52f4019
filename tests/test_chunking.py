"""Tests for chunking strategies and the chunking manager."""

import pytest

from docindex.base import BaseChunkingStrategy
from docindex.chunking import (
    ChunkingManager,
    ContentAnalysis,
    ContextAwareStrategy,
    HierarchicalStrategy,
    HybridStrategy,
    MethodLevelStrategy,
    analyze_content,
    select_strategy,
)
from docindex.chunking.base import hard_split, trailing_overlap
from docindex.chunking.hybrid import MERGE_SEPARATOR
from docindex.chunking.method_level import find_related_methods
from docindex.exceptions import DocIndexError
from docindex.models import ParsedContent
from docindex.parsers import NarrativeParser, StructuredSpecParser


class FailingStrategy(BaseChunkingStrategy):
    """Strategy that fails for units named 'bad'."""

    name = "failing"

    def should_split(self, content):
        return True

    def split(self, content):
        if content.name == "bad":
            raise RuntimeError("boom")
        return MethodLevelStrategy().split(content)


def _example(name: str, content: str, **metadata) -> ParsedContent:
    return ParsedContent(
        type="example",
        name=name,
        description=f"About {name}",
        content=content,
        metadata={"type": "example", "namespace": "Guides", **metadata},
    )


def _long_sections(count: int = 12, words: int = 150) -> str:
    return "\n\n".join(
        f"## Section {i}\n\n" + "lorem ipsum dolor " * (words // 3)
        for i in range(count)
    )


class TestMethodLevelStrategy:
    """Tests for MethodLevelStrategy."""

    def test_class_with_seven_methods(self, crud_class):
        """Test one overview chunk plus one chunk per method."""
        chunks = MethodLevelStrategy().split(crud_class)

        assert len(chunks) == 8
        assert chunks[0].metadata.type == "class"
        assert "overview" in chunks[0].metadata.tags
        assert [c.metadata.method_name for c in chunks[1:]] == [
            "create", "get", "update", "delete", "list", "connect", "disconnect",
        ]

    def test_create_related_methods(self, crud_class):
        """Test CRUD siblings exclude the method itself."""
        create = MethodLevelStrategy().split(crud_class)[1]
        related = create.metadata.related_methods

        assert "Thread.get" in related
        assert "Thread.update" in related
        assert "Thread.delete" in related
        assert "Thread.create" not in related

    def test_connection_relations(self):
        """Test connect and disconnect point at each other."""
        assert find_related_methods("disconnect", "Thread") == ["Thread.connect"]
        assert find_related_methods("connect", "Thread") == ["Thread.disconnect", "Thread.login"]
        assert find_related_methods("send", "Message") == ["Message.receive", "Message.list"]

    def test_method_dependencies(self, crud_class):
        """Test connection prerequisites outside Core."""
        create = MethodLevelStrategy().split(crud_class)[1]

        assert create.metadata.dependencies == [
            "Connection.connect", "Platform.login", "Context.create", "Thread.get",
        ]

    def test_keys_are_unique(self, crud_class):
        """Test sibling chunks get distinct stable keys."""
        chunks = MethodLevelStrategy().split(crud_class)
        keys = [c.stable_key for c in chunks]

        assert len(set(keys)) == len(keys)
        assert keys[1] == "threads-method-thread-create"

    def test_method_unit_is_never_split(self, spec_dict):
        """Test method units become a single chunk."""
        method = StructuredSpecParser().parse(spec_dict)[1]
        chunks = MethodLevelStrategy().split(method)

        assert len(chunks) == 1
        assert "## Parameters" in chunks[0].content
        assert "## Examples" in chunks[0].content


class TestContextAwareStrategy:
    """Tests for ContextAwareStrategy."""

    def test_class_grouped_by_functionality(self, crud_class):
        """Test methods are bucketed into functional groups."""
        chunks = ContextAwareStrategy().split(crud_class)

        titles = [c.title for c in chunks]
        assert titles == [
            "Thread Class Overview",
            "Thread - CRUD Operations",
            "Thread - Authentication",
        ]
        assert chunks[2].metadata.related_methods == ["Thread.connect", "Thread.disconnect"]

    def test_tutorial_split_into_section_groups(self):
        """Test an introduction chunk plus one chunk per level-2 group."""
        content = (
            "This introduction explains what the tutorial covers in some detail.\n\n"
            "## Setup\n\nInstall the library.\n\n"
            "### Linux\n\nUse the package manager.\n\n"
            "## Usage\n\nCall the API.\n\n"
            "## Cleanup\n\nClose the connection."
        )
        chunks = ContextAwareStrategy().split(_example("Tutorial", content))

        assert len(chunks) == 4
        assert "introduction" in chunks[0].metadata.tags
        assert "### Linux" in chunks[1].content
        assert chunks[1].stable_key.endswith("0-setup")
        assert all("tutorial-section" in c.metadata.tags for c in chunks[1:])

    def test_short_content_is_not_split(self):
        """Test content under the thresholds stays whole."""
        chunks = ContextAwareStrategy().split(_example("Note", "A short note."))
        assert len(chunks) == 1

    def test_trailing_overlap_trims_to_sentence(self):
        """Test overlap starts after the last sentence end past the midpoint."""
        text = "x" * 300 + ". Final sentence here."

        assert trailing_overlap(text, 200) == "Final sentence here."
        assert trailing_overlap("short", 200) == "short"


class TestHierarchicalStrategy:
    """Tests for HierarchicalStrategy."""

    def test_hierarchy_chunks(self):
        """Test root chunk plus one chunk per substantial node."""
        body = "Detailed explanation of the installation process. " * 4
        content = (
            "# Guide\n\nWelcome.\n\n"
            f"## Install\n\n{body}\n\n"
            f"### Linux\n\n{body}\n\n"
            "## Short\n\nTiny."
        )
        chunks = HierarchicalStrategy().split(_example("Guide", content))

        assert len(chunks) == 4
        assert "hierarchy-root" in chunks[0].metadata.tags
        assert chunks[1].content.startswith("**Navigation**: Guide")
        assert "## Subsections" in chunks[1].content
        assert chunks[3].content.startswith("**Navigation**: Guide > Install > Linux")
        assert not any("Tiny." in c.content for c in chunks[2:])


class TestHybridStrategy:
    """Tests for strategy selection and post-processing."""

    def _analysis(self, **overrides) -> ContentAnalysis:
        values = dict(
            method_count=0,
            section_count=0,
            has_strong_hierarchy=False,
            content_length=100,
            complexity="low",
            focus="reference",
        )
        values.update(overrides)
        return ContentAnalysis(**values)

    def test_select_strategy(self):
        """Test the dispatch table."""
        method = ParsedContent(type="method", name="A.b", content="x")
        klass = ParsedContent(type="class", name="A", content="x")
        example = ParsedContent(type="example", name="E", content="x")

        assert select_strategy(self._analysis(method_count=9), method) == "method-level"
        assert select_strategy(self._analysis(method_count=6), klass) == "context-aware"
        assert select_strategy(self._analysis(has_strong_hierarchy=True), klass) == "hierarchical"
        assert select_strategy(self._analysis(section_count=4), example) == "context-aware"
        assert select_strategy(self._analysis(), klass) == "method-level"

    def test_analyze_content(self, crud_class):
        """Test method counting, hierarchy and focus."""
        analysis = analyze_content(crud_class)

        assert analysis.method_count == 7
        assert analysis.has_strong_hierarchy
        assert analysis.complexity == "high"
        assert analysis.focus == "reference"

        tutorial = analyze_content(_example("E", "First do this, then that."))
        assert tutorial.focus == "tutorial"
        assert tutorial.complexity == "low"

    def test_size_invariant(self, crud_class, workflow_markdown):
        """Test no chunk exceeds the size cap."""
        units = [
            _example("Long", _long_sections()),
            ParsedContent(type="method", name="Blob.dump", content="x" * 5000),
            _example("Paragraphs", "\n\n".join(["word " * 120] * 10)),
            crud_class,
            *NarrativeParser().parse(workflow_markdown, "first-message.md"),
        ]
        strategy = HybridStrategy()

        for unit in units:
            for chunk in strategy.split(unit):
                assert len(chunk.content) <= 2000

    def test_oversized_chunks_become_parts(self):
        """Test oversized chunks are split into tagged parts."""
        chunks = HybridStrategy().split(ParsedContent(type="method", name="Blob.dump", content="x" * 5000))

        assert len(chunks) > 1
        assert any("sub-chunk" in c.metadata.tags for c in chunks)

    def test_idempotent(self):
        """Test identical input yields identical chunks apart from ids."""
        unit = _example("Long", _long_sections())
        strategy = HybridStrategy()

        first = strategy.split(unit)
        second = strategy.split(unit)

        assert [(c.stable_key, c.content, c.metadata) for c in first] == [
            (c.stable_key, c.content, c.metadata) for c in second
        ]

    def test_final_tags(self, crud_class):
        """Test every chunk carries the analysis tags."""
        for chunk in HybridStrategy().split(crud_class):
            assert "hybrid-chunked" in chunk.metadata.tags
            assert "complexity-high" in chunk.metadata.tags
            assert "focus-reference" in chunk.metadata.tags

    def test_strategy_failure_falls_back_to_single_chunk(self):
        """Test a failing strategy degrades to one chunk."""

        class Broken(BaseChunkingStrategy):
            name = "method-level"

            def should_split(self, content):
                return True

            def split(self, content):
                raise RuntimeError("broken")

        unit = ParsedContent(type="method", name="A.b", content="Method body text.")
        chunks = HybridStrategy(method_level=Broken()).split(unit)

        assert len(chunks) == 1
        assert chunks[0].content.startswith("# A.b")

    def test_cross_references(self, crud_class):
        """Test each chunk links its most relevant siblings."""
        chunks = HybridStrategy().add_cross_references(MethodLevelStrategy().split(crud_class))

        for chunk in chunks:
            assert len(chunk.related_chunk_ids) == 3
            assert chunk.id not in chunk.related_chunk_ids
            assert "## Related Sections" in chunk.content

    def test_merge_small_chunks(self, make_chunk):
        """Test adjacent small chunks of one class are merged."""
        a = make_chunk("threads-method-thread-get", "# get\n\nShort.", namespace="Threads", class_name="Thread")
        b = make_chunk("threads-method-thread-list", "# list\n\nShort.", namespace="Threads", class_name="Thread")
        c = make_chunk("stores-method-store-get", "# get\n\nShort.", namespace="Stores", class_name="Store")

        merged = HybridStrategy().merge_small_chunks([a, b, c])

        assert len(merged) == 2
        assert merged[0].content == a.content + MERGE_SEPARATOR + b.content
        assert merged[0].stable_key == "threads-method-thread-get-merged-2"
        assert merged[1].stable_key == c.stable_key

    def test_hard_split(self):
        """Test hard splitting respects the cap."""
        pieces = hard_split("abc " * 1000, 500)
        assert all(len(p) <= 500 for p in pieces)
        assert "".join(pieces).replace(" ", "") == "abc" * 1000


class TestChunkingManager:
    """Tests for ChunkingManager."""

    def test_default_strategy_is_hybrid(self, crud_class):
        """Test chunk() uses the hybrid strategy by default."""
        chunks = ChunkingManager().chunk(crud_class)
        assert all("hybrid-chunked" in c.metadata.tags for c in chunks)

    def test_named_strategy(self, crud_class):
        """Test choosing a strategy by name."""
        chunks = ChunkingManager().chunk(crud_class, strategy="method-level")
        assert len(chunks) == 8

    def test_unknown_strategy(self, crud_class):
        """Test an unknown strategy name is an error."""
        with pytest.raises(DocIndexError):
            ChunkingManager().chunk(crud_class, strategy="nope")

    def test_chunk_all_isolates_failures(self, crud_class):
        """Test one failing unit does not stop the batch."""
        manager = ChunkingManager()
        manager.register(FailingStrategy())
        bad = ParsedContent(type="method", name="bad", content="Broken unit.")

        chunks = manager.chunk_all([crud_class, bad, crud_class], strategy="failing")

        assert len(chunks) == 16

    def test_statistics(self, crud_class):
        """Test chunk statistics."""
        chunks = ChunkingManager().chunk(crud_class, strategy="method-level")
        stats = ChunkingManager.statistics(chunks)

        assert stats["total_chunks"] == 8
        assert stats["by_type"] == {"class": 1, "method": 7}
        assert stats["by_namespace"] == {"Threads": 8}
        assert stats["min_size"] <= stats["average_size"] <= stats["max_size"]
        assert sum(stats["size_distribution"].values()) == 8

    def test_statistics_empty(self):
        """Test statistics of no chunks."""
        stats = ChunkingManager.statistics([])
        assert stats["total_chunks"] == 0
        assert stats["average_size"] == 0


class TestNarrativeChunks:
    """Tests for chunks built from narrative sections."""

    def test_same_heading_in_two_documents(self):
        """Test sections sharing a title get distinct keys."""
        parser = NarrativeParser()
        first = parser.parse("# Installation\n\nInstall the alpha package.", "a.md")
        second = parser.parse("# Installation\n\nInstall the beta package.", "b.md")

        chunks = ChunkingManager().chunk_all([*first, *second])
        keys = [c.stable_key for c in chunks]

        assert keys == ["general-example-a-l0-installation", "general-example-b-l0-installation"]

    def test_same_heading_twice_in_one_document(self):
        """Test repeated headings in one file are told apart by line."""
        units = NarrativeParser().parse(
            "# Example\n\nFirst example text.\n\n# Example\n\nSecond example text.", "guide.md"
        )

        chunks = ChunkingManager().chunk_all(units)

        assert len({c.stable_key for c in chunks}) == 2

    def test_heading_and_first_line_appear_once(self):
        """Test a section chunk does not repeat its heading or description."""
        unit = NarrativeParser().parse(
            "# Installation\n\nInstall the package with pip.\n\nThen import it.", "a.md"
        )[0]

        chunk = ChunkingManager().chunk(unit)[0]

        assert chunk.content.startswith("# Installation")
        assert chunk.content.count("# Installation") == 1
        assert chunk.content.count("Install the package with pip.") == 1
