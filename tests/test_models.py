"""Tests for core data models."""

import pydantic
import pytest

from docindex.models import (
    DocumentChunk,
    ParsedContent,
    SyncResult,
    make_chunk_id,
    make_chunk_key,
    merge_unique,
    slugify,
)


class TestChunkIdentity:
    """Tests for chunk keys and ids."""

    def test_slugify(self):
        """Test slugs are lowercase and hyphenated."""
        assert slugify("Step 1: Connect to the Bridge") == "step-1-connect-to-the-bridge"
        assert slugify("  Thread.create  ") == "thread-create"
        assert slugify("!!!") == "untitled"

    def test_make_chunk_key(self):
        """Test keys derive from namespace, type, name and suffix."""
        assert make_chunk_key("Threads", "method", "Thread", "create") == "threads-method-thread-create"
        assert make_chunk_key("Core", "class", "Connection", "") == "core-class-connection"

    def test_make_chunk_key_with_origin(self):
        """Test the origin sits between the type and the name."""
        assert (
            make_chunk_key("general", "example", "Installation", "", "guide-l0")
            == "general-example-guide-l0-installation"
        )
        assert make_chunk_key("general", "example", "Installation", "", "a-l0") != make_chunk_key(
            "general", "example", "Installation", "", "b-l0"
        )

    def test_chunk_id_extends_key(self):
        """Test ids are the key plus a timestamp suffix."""
        chunk_id = make_chunk_id("threads-method-thread-create")

        assert chunk_id.startswith("threads-method-thread-create-")
        assert chunk_id != "threads-method-thread-create"

    def test_stable_key_falls_back_to_id(self):
        """Test chunks without a key use their id."""
        chunk = DocumentChunk(id="abc", content="text")
        assert chunk.stable_key == "abc"

    def test_title(self):
        """Test the title is the first heading."""
        chunk = DocumentChunk(id="a", key="k", content="Intro\n\n## Thread.create\n\nBody")
        untitled = DocumentChunk(id="a", key="k", content="No headings here")

        assert chunk.title == "Thread.create"
        assert untitled.title == "k"


class TestModels:
    """Tests for model behaviour."""

    def test_parsed_content_is_frozen(self):
        """Test parsed units cannot be modified."""
        unit = ParsedContent(type="method", name="Thread.create")

        with pytest.raises(pydantic.ValidationError):
            unit.name = "other"

    def test_parsed_content_namespace(self):
        """Test the namespace defaults to General."""
        assert ParsedContent(type="class", name="A").namespace == "General"
        assert ParsedContent(type="class", name="A", metadata={"namespace": "Core"}).namespace == "Core"

    def test_with_tags(self, make_chunk):
        """Test tags are appended without duplicates."""
        chunk = make_chunk("a", tags=["threads"])
        metadata = chunk.metadata.with_tags("threads", "crud")

        assert metadata.tags == ["threads", "crud"]
        assert chunk.metadata.tags == ["threads"]

    def test_merge_unique(self):
        """Test order-preserving union."""
        assert merge_unique(["a", "b"], ["b", "c", "a"]) == ["a", "b", "c"]

    def test_sync_result_to_embed(self, make_chunk):
        """Test chunks needing embeddings."""
        result = SyncResult(
            new=[make_chunk("a")],
            updated=[make_chunk("b")],
            unchanged=[make_chunk("c")],
            requeued=[make_chunk("d")],
        )

        assert [c.stable_key for c in result.to_embed] == ["a", "b", "d"]
