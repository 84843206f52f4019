"""Base classes and abstract interfaces for indexing components."""

from abc import ABC, abstractmethod
from pathlib import Path
from typing import TYPE_CHECKING, Any, Optional

if TYPE_CHECKING:
    from .models import DocumentChunk, EmbeddingResponse, ParsedContent


class BaseParser(ABC):
    """Abstract base class for content parsers.

    Parsers normalize raw documents into ParsedContent units.
    """

    @abstractmethod
    def parse(self, raw: Any, source_id: str) -> list["ParsedContent"]:
        """Parse a raw document.

        Args:
            raw: Raw document (string or already-decoded data)
            source_id: Identifier of the source, recorded as source_file

        Returns:
            List of parsed content units (empty for empty input)
        """
        pass

    def parse_file(self, path: str | Path) -> list["ParsedContent"]:
        """Read a file and parse its text."""
        path = Path(path)
        return self.parse(path.read_text(encoding="utf-8"), path.name)


class BaseChunkingStrategy(ABC):
    """Abstract base class for chunking strategies.

    A strategy decides whether content needs splitting and how to split it.
    """

    name: str = "base"

    @abstractmethod
    def should_split(self, content: "ParsedContent") -> bool:
        """Return True if the content should be split into several chunks."""
        pass

    @abstractmethod
    def split(self, content: "ParsedContent") -> list["DocumentChunk"]:
        """Convert content into chunks.

        Args:
            content: Parsed content to chunk

        Returns:
            List of chunks (at least one for non-empty content)
        """
        pass


class BaseEmbedding(ABC):
    """Abstract base class for embedding models.

    Embedding models convert text into dense vector representations.
    """

    @property
    @abstractmethod
    def model_name(self) -> str:
        """Return the model identifier recorded with each embedding."""
        pass

    @property
    @abstractmethod
    def dimension(self) -> int:
        """Return the dimension of the embedding vectors."""
        pass

    @abstractmethod
    async def embed_batch(self, texts: list[str]) -> "EmbeddingResponse":
        """Embed a batch of texts in one provider call.

        Args:
            texts: List of text strings to embed

        Returns:
            One vector per text plus the token usage of the call
        """
        pass

    async def embed_query(self, text: str) -> list[float]:
        """Embed a single query."""
        response = await self.embed_batch([text])
        return response.vectors[0]


class BaseStore(ABC):
    """Abstract key-value store for chunks, embeddings and sync state.

    Values are JSON-compatible dicts.
    """

    @abstractmethod
    async def get(self, key: str) -> Optional[dict[str, Any]]:
        """Get a value by key, or None if absent."""
        pass

    @abstractmethod
    async def put(self, key: str, value: dict[str, Any]) -> None:
        """Insert or replace a value."""
        pass

    @abstractmethod
    async def delete(self, key: str) -> bool:
        """Delete a key.

        Returns:
            True if the key existed
        """
        pass

    @abstractmethod
    async def scan(self, prefix: str) -> list[tuple[str, dict[str, Any]]]:
        """Return all (key, value) pairs whose key starts with prefix."""
        pass

    async def close(self) -> None:
        """Release any held resources."""
        pass
