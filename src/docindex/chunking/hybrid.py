"""Hybrid chunking: picks a strategy per unit, then normalizes the output."""

import logging
import re
from dataclasses import dataclass
from typing import Literal, Optional

from ..base import BaseChunkingStrategy
from ..models import DocumentChunk, ParsedContent, merge_unique
from .base import build_single_chunk, hard_split, split_by_boundaries
from .context_aware import ContextAwareStrategy
from .hierarchical import HierarchicalStrategy
from .method_level import METHOD_HEADING, MethodLevelStrategy

logger = logging.getLogger(__name__)

ALL_HEADINGS = re.compile(r"^#{1,6}\s+.+$", re.MULTILINE)
H1 = re.compile(r"^#\s+", re.MULTILINE)
H2 = re.compile(r"^##\s+", re.MULTILINE)
STEP_WORDING = re.compile(r"step \d+|first|then|next|finally", re.IGNORECASE)

MERGE_SEPARATOR = "\n\n---\n\n"

StrategyName = Literal["method-level", "context-aware", "hierarchical"]


@dataclass(frozen=True)
class ContentAnalysis:
    """Structural features used to pick a strategy."""

    method_count: int
    section_count: int
    has_strong_hierarchy: bool
    content_length: int
    complexity: Literal["low", "medium", "high"]
    focus: Literal["reference", "tutorial", "mixed"]


def analyze_content(content: ParsedContent) -> ContentAnalysis:
    """Measure method count, sections, hierarchy, complexity and focus."""
    text = content.content
    method_count = len(METHOD_HEADING.findall(text))
    section_count = len(ALL_HEADINGS.findall(text))
    h1_count = len(H1.findall(text))
    h2_count = len(H2.findall(text))
    has_strong_hierarchy = (h1_count >= 1 and h2_count > 1) or section_count > 5

    length = len(text)
    if length > 3000 or method_count > 8 or section_count > 6:
        complexity = "high"
    elif length > 1500 or method_count > 3 or section_count > 3:
        complexity = "medium"
    else:
        complexity = "low"

    if content.type == "example" or STEP_WORDING.search(text):
        focus = "tutorial"
    elif "```" in text and method_count > 0:
        focus = "mixed"
    else:
        focus = "reference"

    return ContentAnalysis(
        method_count=method_count,
        section_count=section_count,
        has_strong_hierarchy=has_strong_hierarchy,
        content_length=length,
        complexity=complexity,
        focus=focus,
    )


def select_strategy(analysis: ContentAnalysis, content: ParsedContent) -> StrategyName:
    """Pure dispatch from content features to a strategy name."""
    if content.type == "method":
        return "method-level"
    if content.type == "class" and analysis.method_count > 5:
        return "context-aware"
    if analysis.has_strong_hierarchy:
        return "hierarchical"
    if content.type == "example" and analysis.section_count > 3:
        return "context-aware"
    return "method-level"


def word_jaccard(a: str, b: str) -> float:
    words_a = set(a.lower().split())
    words_b = set(b.lower().split())
    union = words_a | words_b
    if not union:
        return 0.0
    return len(words_a & words_b) / len(union)


def relevance_score(a: DocumentChunk, b: DocumentChunk) -> float:
    """Weighted similarity between two chunks, capped at 1.0."""
    meta_a, meta_b = a.metadata, b.metadata
    score = 0.0

    if meta_a.namespace == meta_b.namespace:
        score += 0.3
    if meta_a.class_name and meta_a.class_name == meta_b.class_name:
        score += 0.4

    shared_methods = set(meta_a.related_methods) & set(meta_b.related_methods)
    score += 0.1 * len(shared_methods)

    shared_tags = set(meta_a.tags) & set(meta_b.tags)
    score += 0.05 * len(shared_tags)

    score += 0.2 * word_jaccard(a.content, b.content)

    return min(score, 1.0)


class HybridStrategy(BaseChunkingStrategy):
    """Production chunking path.

    Chooses among method-level, context-aware and hierarchical splitting,
    then normalizes sizes, cross-references related chunks and tags
    every chunk with the analysis it was produced under.
    """

    name = "hybrid"

    def __init__(
        self,
        max_chunk_size: int = 2000,
        min_chunk_size: int = 200,
        cross_reference_limit: int = 3,
        cross_reference_threshold: float = 0.3,
        context_aware: Optional[ContextAwareStrategy] = None,
        hierarchical: Optional[HierarchicalStrategy] = None,
        method_level: Optional[MethodLevelStrategy] = None,
    ):
        """Initialize the hybrid strategy.

        Args:
            max_chunk_size: Hard upper bound on chunk length
            min_chunk_size: Chunks below this are merged with a neighbour when possible
            cross_reference_limit: Maximum related chunks linked per chunk
            cross_reference_threshold: Minimum relevance score for a link
            context_aware: Strategy override
            hierarchical: Strategy override
            method_level: Strategy override
        """
        self.max_chunk_size = max_chunk_size
        self.min_chunk_size = min_chunk_size
        self.cross_reference_limit = cross_reference_limit
        self.cross_reference_threshold = cross_reference_threshold
        self.strategies: dict[str, BaseChunkingStrategy] = {
            "method-level": method_level or MethodLevelStrategy(),
            "context-aware": context_aware or ContextAwareStrategy(),
            "hierarchical": hierarchical or HierarchicalStrategy(),
        }

    def select(self, content: ParsedContent) -> BaseChunkingStrategy:
        return self.strategies[select_strategy(analyze_content(content), content)]

    def should_split(self, content: ParsedContent) -> bool:
        return self.select(content).should_split(content)

    def split(self, content: ParsedContent) -> list[DocumentChunk]:
        analysis = analyze_content(content)
        strategy = self.strategies[select_strategy(analysis, content)]

        try:
            chunks = strategy.split(content)
        except Exception as e:
            logger.warning(
                f"{strategy.name} strategy failed for {content.name!r}, "
                f"falling back to a single chunk: {e}"
            )
            chunks = [build_single_chunk(content)]

        if not chunks:
            chunks = [build_single_chunk(content)]

        logger.debug(f"{strategy.name} produced {len(chunks)} chunks for {content.name!r}")

        chunks = self.normalize_sizes(chunks)
        chunks = self.add_cross_references(chunks)
        return [
            chunk.model_copy(update={"metadata": chunk.metadata.with_tags(
                "hybrid-chunked",
                f"complexity-{analysis.complexity}",
                f"focus-{analysis.focus}",
            )})
            for chunk in chunks
        ]

    def normalize_sizes(self, chunks: list[DocumentChunk]) -> list[DocumentChunk]:
        """Split oversized chunks, then merge undersized neighbours."""
        sized: list[DocumentChunk] = []
        for chunk in chunks:
            if len(chunk.content) > self.max_chunk_size:
                sized.extend(self.split_large_chunk(chunk))
            else:
                sized.append(chunk)
        return self.merge_small_chunks(sized)

    def split_large_chunk(self, chunk: DocumentChunk) -> list[DocumentChunk]:
        """Pack heading (or paragraph) sections into pieces within the cap."""
        pieces: list[str] = []
        current = ""
        for section in split_by_boundaries(chunk.content):
            for part in hard_split(section, self.max_chunk_size):
                candidate = f"{current}\n\n{part}" if current else part
                if len(candidate) <= self.max_chunk_size:
                    current = candidate
                else:
                    pieces.append(current)
                    current = part
        if current:
            pieces.append(current)

        return [
            chunk.model_copy(update={
                "id": f"{chunk.id}-part-{i}",
                "key": f"{chunk.stable_key}-part-{i}",
                "content": piece,
                "metadata": chunk.metadata.with_tags("sub-chunk", f"part-{i}"),
            })
            for i, piece in enumerate(pieces)
        ] or [chunk]

    def _can_merge(self, a: DocumentChunk, b: DocumentChunk) -> bool:
        if a.metadata.namespace != b.metadata.namespace:
            return False
        if a.metadata.class_name != b.metadata.class_name:
            return False
        if len(a.content) >= self.min_chunk_size and len(b.content) >= self.min_chunk_size:
            return False
        return len(a.content) + len(MERGE_SEPARATOR) + len(b.content) <= self.max_chunk_size

    def merge_small_chunks(self, chunks: list[DocumentChunk]) -> list[DocumentChunk]:
        """Greedily fold adjacent same-namespace/class chunks when one is small."""
        merged: list[DocumentChunk] = []
        counts: list[int] = []

        for chunk in chunks:
            if merged and self._can_merge(merged[-1], chunk):
                previous = merged[-1]
                counts[-1] += 1
                base_key = previous.stable_key.split("-merged-")[0]
                merged[-1] = previous.model_copy(update={
                    "key": f"{base_key}-merged-{counts[-1]}",
                    "content": previous.content + MERGE_SEPARATOR + chunk.content,
                    "metadata": previous.metadata.model_copy(update={
                        "tags": merge_unique(previous.metadata.tags, chunk.metadata.tags),
                        "related_methods": merge_unique(
                            previous.metadata.related_methods, chunk.metadata.related_methods
                        ),
                    }),
                })
                continue

            merged.append(chunk)
            counts.append(1)

        return merged

    def add_cross_references(self, chunks: list[DocumentChunk]) -> list[DocumentChunk]:
        """Link each chunk to its most relevant siblings by id.

        The ``## Related Sections`` list is appended only when it fits
        within the size cap; the id links are always recorded.
        """
        linked = []
        for chunk in chunks:
            scored = []
            for other in chunks:
                if other.id == chunk.id:
                    continue
                score = relevance_score(chunk, other)
                if score > self.cross_reference_threshold:
                    scored.append((score, other))
            scored.sort(key=lambda x: x[0], reverse=True)
            related = [other for _, other in scored[: self.cross_reference_limit]]

            if not related:
                linked.append(chunk)
                continue

            listing = "\n".join(f"- [{other.title}](#{other.stable_key})" for other in related)
            content = f"{chunk.content}\n\n## Related Sections\n\n{listing}"
            if len(content) > self.max_chunk_size:
                content = chunk.content

            linked.append(chunk.model_copy(update={
                "content": content,
                "related_chunk_ids": [other.id for other in related],
            }))
        return linked
