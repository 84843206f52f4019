"""Chunking manager: strategy registry and batch chunking."""

from collections import Counter
from typing import Any, Optional

from ..base import BaseChunkingStrategy
from ..exceptions import DocIndexError
from ..models import DocumentChunk, ParsedContent
from ..utils.config import ChunkingConfig
from ..utils.logging import get_logger
from .base import build_single_chunk
from .context_aware import ContextAwareStrategy
from .hierarchical import HierarchicalStrategy
from .hybrid import HybridStrategy
from .method_level import MethodLevelStrategy

logger = get_logger(__name__)

DEFAULT_STRATEGY = "hybrid"

SIZE_BUCKETS = (
    ("0-500", 500),
    ("501-1000", 1000),
    ("1001-1500", 1500),
    ("1501-2000", 2000),
)


class ChunkingManager:
    """Dispatches parsed content to a named chunking strategy.

    Example:
        ```python
        manager = ChunkingManager()
        chunks = manager.chunk_all(units)
        print(manager.statistics(chunks))
        ```
    """

    def __init__(self, config: Optional[ChunkingConfig] = None):
        self.config = config or ChunkingConfig()
        context_aware = ContextAwareStrategy(
            max_length=self.config.max_chunk_size,
            soft_chunk_size=self.config.soft_chunk_size,
            overlap_size=self.config.overlap_size,
        )
        hierarchical = HierarchicalStrategy()
        method_level = MethodLevelStrategy()

        self.strategies: dict[str, BaseChunkingStrategy] = {
            "method-level": method_level,
            "context-aware": context_aware,
            "hierarchical": hierarchical,
            "hybrid": HybridStrategy(
                max_chunk_size=self.config.max_chunk_size,
                min_chunk_size=self.config.min_chunk_size,
                cross_reference_limit=self.config.cross_reference_limit,
                cross_reference_threshold=self.config.cross_reference_threshold,
                context_aware=context_aware,
                hierarchical=hierarchical,
                method_level=method_level,
            ),
        }

    def register(self, strategy: BaseChunkingStrategy) -> None:
        self.strategies[strategy.name] = strategy

    def get_strategy(self, name: str) -> BaseChunkingStrategy:
        try:
            return self.strategies[name]
        except KeyError:
            available = ", ".join(sorted(self.strategies))
            raise DocIndexError(f"Unknown chunking strategy {name!r} (available: {available})") from None

    def chunk(self, content: ParsedContent, strategy: Optional[str] = None) -> list[DocumentChunk]:
        """Chunk a single unit.

        Args:
            content: Parsed unit
            strategy: Strategy name; the hybrid strategy when omitted

        Returns:
            Chunks for the unit
        """
        chunker = self.get_strategy(strategy or DEFAULT_STRATEGY)
        chunks = chunker.split(content)
        logger.debug(f"{chunker.name} split {content.name!r} into {len(chunks)} chunks")
        return chunks

    def chunk_all(
        self,
        contents: list[ParsedContent],
        strategy: Optional[str] = None,
    ) -> list[DocumentChunk]:
        """Chunk many units; a unit that fails is logged and skipped."""
        chunker = self.get_strategy(strategy or DEFAULT_STRATEGY)
        chunks: list[DocumentChunk] = []
        failed = 0
        for content in contents:
            try:
                chunks.extend(chunker.split(content))
            except Exception as e:
                failed += 1
                logger.error(f"Failed to chunk {content.name!r}: {e}")

        logger.info(f"Chunked {len(contents) - failed}/{len(contents)} units into {len(chunks)} chunks")
        return chunks

    @staticmethod
    def build_single_chunk(content: ParsedContent) -> DocumentChunk:
        return build_single_chunk(content)

    @staticmethod
    def statistics(chunks: list[DocumentChunk]) -> dict[str, Any]:
        """Summarize chunk sizes and metadata distributions."""
        sizes = [len(chunk.content) for chunk in chunks]

        distribution = {label: 0 for label, _ in SIZE_BUCKETS}
        distribution["2000+"] = 0
        for size in sizes:
            for label, upper in SIZE_BUCKETS:
                if size <= upper:
                    distribution[label] += 1
                    break
            else:
                distribution["2000+"] += 1

        return {
            "total_chunks": len(chunks),
            "average_size": round(sum(sizes) / len(sizes)) if sizes else 0,
            "min_size": min(sizes, default=0),
            "max_size": max(sizes, default=0),
            "size_distribution": distribution,
            "by_type": dict(Counter(chunk.metadata.type for chunk in chunks)),
            "by_importance": dict(Counter(chunk.metadata.importance for chunk in chunks)),
            "by_namespace": dict(Counter(chunk.metadata.namespace for chunk in chunks)),
        }
