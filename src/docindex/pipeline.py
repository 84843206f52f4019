"""End-to-end indexing pipeline."""

from pathlib import Path
from typing import Any, Optional

from pydantic import BaseModel, Field

from .base import BaseEmbedding, BaseParser, BaseStore
from .chunking import ChunkEnhancer, ChunkingManager, ChunkOptimizer, EnhancementOptions
from .embeddings import EmbeddingBatchResult, EmbeddingsService, EmbeddingsTracker, create_embedding
from .exceptions import ParseError
from .models import DocumentChunk, ParsedContent, SearchResult
from .parsers import NarrativeParser, StructuredSpecParser
from .search import HybridSearch
from .store import create_store
from .utils.config import IndexConfig
from .utils.logging import get_logger, set_log_level
from .validator import ContentValidator

logger = get_logger(__name__)

STRUCTURED_SUFFIXES = (".json",)
NARRATIVE_SUFFIXES = (".md", ".mdx", ".markdown", ".txt")


class IndexSummary(BaseModel):
    """Outcome of one indexing run.

    Attributes:
        indexed: New or requeued chunks embedded in this run
        updated: Changed chunks re-embedded in this run
        unchanged: Chunks whose embedding was already current
        removed: Tracked chunks no longer present
        failed: Chunks whose embedding failed
        errors: Parse, validation, chunking and embedding errors
    """

    indexed: int = 0
    updated: int = 0
    unchanged: int = 0
    removed: int = 0
    failed: int = 0
    errors: list[str] = Field(default_factory=list)


class Indexer:
    """Orchestrates parse, validate, chunk, enhance, sync, embed and search.

    ``index`` expects the complete document set on every call: tracked
    chunks missing from it are marked removed.

    Example:
        ```python
        indexer = Indexer(load_config("docindex.yaml"))
        summary = await indexer.index({"spec/out.js.json": raw_json, "guide.md": text})
        results = await indexer.search("create a thread")
        ```
    """

    def __init__(
        self,
        config: Optional[IndexConfig] = None,
        embedding: Optional[BaseEmbedding] = None,
        store: Optional[BaseStore] = None,
        enhancement: Optional[EnhancementOptions] = None,
        optimize: bool = False,
    ):
        """Initialize the indexer.

        Args:
            config: Configuration (defaults when omitted)
            embedding: Provider override; built from config when omitted
            store: Store override; built from config when omitted
            enhancement: Enhancer options
            optimize: Run the optimizer after enhancement
        """
        self.config = config or IndexConfig()
        if self.config.log_level:
            set_log_level(self.config.log_level)

        self.parsers: dict[str, BaseParser] = {
            "structured": StructuredSpecParser(),
            "narrative": NarrativeParser(),
        }
        self.validator = ContentValidator()
        self.manager = ChunkingManager(self.config.chunking)
        self.enhancer = ChunkEnhancer(enhancement, max_chunk_size=self.config.chunking.max_chunk_size)
        self.optimizer = ChunkOptimizer() if optimize else None

        self.store = store or create_store(self.config.store)
        self.tracker = EmbeddingsTracker(self.store)
        self.service = EmbeddingsService(
            embedding or create_embedding(self.config.embedding),
            self.tracker,
            self.config.embedding,
        )
        self.search_index = HybridSearch(self.service, self.config.search)
        self._search_loaded = False

    def parser_for(self, source_id: str) -> BaseParser:
        suffix = Path(source_id).suffix.lower()
        if suffix in STRUCTURED_SUFFIXES:
            return self.parsers["structured"]
        return self.parsers["narrative"]

    def parse_documents(self, documents: dict[str, Any], errors: list[str]) -> list[ParsedContent]:
        """Parse each document, recording failures without stopping."""
        units: list[ParsedContent] = []
        for source_id, raw in documents.items():
            try:
                units.extend(self.parser_for(source_id).parse(raw, source_id))
            except ParseError as e:
                logger.error(e.message)
                errors.append(e.message)
        return units

    def build_chunks(self, units: list[ParsedContent], errors: list[str]) -> list[DocumentChunk]:
        """Validate, chunk, enhance and optionally optimize units."""
        batch = self.validator.validate_batch(units)
        for _unit, result in batch.invalid:
            errors.append(f"Invalid content {result.name!r}: {'; '.join(str(e) for e in result.errors)}")

        chunks = self.manager.chunk_all(batch.valid)
        chunks = self.enhancer.enhance_all(chunks)
        if self.optimizer is not None:
            chunks = self.optimizer.optimize(chunks)

        for chunk in chunks:
            result = self.validator.validate_chunk(chunk)
            if not result.is_valid:
                errors.append(f"Invalid chunk {chunk.stable_key!r}: {result}")
        return chunks

    async def index(self, documents: dict[str, Any]) -> IndexSummary:
        """Index a complete document set.

        Args:
            documents: Raw documents by source id (a file name; its suffix
                selects the parser)

        Returns:
            Summary of the run; partial failures are reported, not raised
        """
        summary = IndexSummary()
        units = self.parse_documents(documents, summary.errors)
        chunks = self.build_chunks(units, summary.errors)

        sync = await self.tracker.sync_chunks(chunks)
        await self.tracker.save_chunks(chunks)

        batch = await self.service.generate_embeddings(sync.to_embed)
        summary.errors.extend(batch.errors)

        failed = set(batch.failed_chunk_ids)
        summary.indexed = sum(1 for c in [*sync.new, *sync.requeued] if c.id not in failed)
        summary.updated = sum(1 for c in sync.updated if c.id not in failed)
        summary.unchanged = len(sync.unchanged)
        summary.removed = len(sync.removed)
        summary.failed = len(failed)

        self._search_loaded = False
        logger.info(
            f"Indexed {summary.indexed}, updated {summary.updated}, unchanged {summary.unchanged}, "
            f"removed {summary.removed}, failed {summary.failed}"
        )
        return summary

    async def index_documents(self, paths: list[str | Path]) -> IndexSummary:
        """Read files and index them as one document set."""
        documents: dict[str, Any] = {}
        errors: list[str] = []
        for path in paths:
            path = Path(path)
            try:
                documents[path.name] = path.read_text(encoding="utf-8")
            except OSError as e:
                logger.error(f"Failed to read {path}: {e}")
                errors.append(f"Failed to read {path}: {e}")

        summary = await self.index(documents)
        summary.errors[:0] = errors
        return summary

    async def embed_pending(self) -> EmbeddingBatchResult:
        """Embed every chunk the tracker still holds as pending."""
        pending = {record.key for record in await self.tracker.get_by_status("pending")}
        chunks = await self.tracker.load_chunks(pending) if pending else []
        self._search_loaded = False
        return await self.service.generate_embeddings(chunks)

    async def retry_failed(self) -> EmbeddingBatchResult:
        """Reset failed chunks to pending and embed them again."""
        await self.tracker.reset_failed_embeddings()
        return await self.embed_pending()

    async def refresh_search_index(self) -> None:
        """Rebuild the search index from stored chunks and embeddings."""
        removed = {record.key for record in await self.tracker.get_by_status("removed")}
        chunks = [c for c in await self.tracker.load_chunks() if c.stable_key not in removed]
        embeddings = {
            key: record.vector
            for key, record in (await self.tracker.get_embeddings()).items()
            if key not in removed
        }

        self.search_index.clear()
        self.search_index.index(chunks, embeddings)
        self._search_loaded = True

    async def search(
        self,
        query: str,
        limit: Optional[int] = None,
        filters: Optional[dict[str, Any]] = None,
    ) -> list[SearchResult]:
        if not self._search_loaded:
            await self.refresh_search_index()
        return await self.search_index.search(query, limit=limit, filters=filters)

    async def close(self) -> None:
        await self.store.close()
