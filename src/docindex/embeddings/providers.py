"""Embedding provider implementations."""

import asyncio
import hashlib
import logging
import struct
from typing import Optional

from ..base import BaseEmbedding
from ..models import EmbeddingResponse
from ..utils.config import EmbeddingConfig

logger = logging.getLogger(__name__)


class FakeEmbedding(BaseEmbedding):
    """Fake embedding that generates deterministic embeddings from text.

    Useful for testing when you want predictable embeddings.
    The embedding is generated from the hash of the text, and token usage
    is reported as the whitespace word count.
    """

    def __init__(self, dimension: int = 384, seed: int = 42):
        """Initialize the fake embedding.

        Args:
            dimension: Dimension of the embedding vectors
            seed: Seed mixed into the hash for reproducibility
        """
        self._dimension = dimension
        self.seed = seed

    @property
    def model_name(self) -> str:
        return "fake"

    @property
    def dimension(self) -> int:
        return self._dimension

    def _hash_text(self, text: str) -> list[float]:
        """Generate a deterministic embedding in [-1, 1] from text hashes."""
        values: list[float] = []
        block = 0
        while len(values) < self._dimension:
            digest = hashlib.sha256(f"{self.seed}:{block}:{text}".encode()).digest()
            # 8 unsigned ints per 32-byte digest
            for (raw,) in struct.iter_unpack(">I", digest):
                values.append(raw / 0xFFFFFFFF * 2.0 - 1.0)
            block += 1
        return values[: self._dimension]

    async def embed_batch(self, texts: list[str]) -> EmbeddingResponse:
        return EmbeddingResponse(
            vectors=[self._hash_text(text) for text in texts],
            total_tokens=sum(len(text.split()) for text in texts),
        )


class OpenAIEmbedding(BaseEmbedding):
    """OpenAI embedding model.

    Uses OpenAI's embedding API (text-embedding-3-small/large).

    Note: Requires the 'openai' extra to be installed.
    """

    # Known model dimensions
    MODEL_DIMENSIONS = {
        "text-embedding-3-small": 1536,
        "text-embedding-3-large": 3072,
        "text-embedding-ada-002": 1536,
    }

    def __init__(
        self,
        model: str = "text-embedding-3-small",
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
    ):
        """Initialize the OpenAI embedding model.

        Args:
            model: Model name (text-embedding-3-small, text-embedding-3-large)
            api_key: OpenAI API key (optional, uses env var if not provided)
            base_url: Optional base URL for API
            timeout: Request timeout in seconds
        """
        self.model = model
        self.api_key = api_key
        self.base_url = base_url
        self.timeout = timeout
        self._client = None

    @property
    def model_name(self) -> str:
        return self.model

    @property
    def dimension(self) -> int:
        return self.MODEL_DIMENSIONS.get(self.model, 1536)

    def _get_client(self):
        """Get or create the OpenAI client."""
        if self._client is None:
            try:
                from openai import AsyncOpenAI

                kwargs = {}
                if self.api_key:
                    kwargs["api_key"] = self.api_key
                if self.base_url:
                    kwargs["base_url"] = self.base_url
                if self.timeout:
                    kwargs["timeout"] = self.timeout

                self._client = AsyncOpenAI(**kwargs)
            except ImportError:
                raise ImportError(
                    "OpenAI embedding requires the 'openai' package. "
                    "Install it with: pip install openai"
                )
        return self._client

    async def embed_batch(self, texts: list[str]) -> EmbeddingResponse:
        """Embed one batch with a single API call."""
        client = self._get_client()

        response = await client.embeddings.create(
            model=self.model,
            input=texts,
        )

        data = sorted(response.data, key=lambda item: item.index)
        usage = getattr(response, "usage", None)
        return EmbeddingResponse(
            vectors=[item.embedding for item in data],
            total_tokens=usage.total_tokens if usage else 0,
        )


class LocalEmbedding(BaseEmbedding):
    """Local embedding model using sentence-transformers.

    Uses HuggingFace sentence-transformers models locally.
    No API calls required, runs entirely on the local machine.

    Note: Requires the 'local' extra to be installed.
    """

    # Known model dimensions
    MODEL_DIMENSIONS = {
        "all-MiniLM-L6-v2": 384,
        "all-mpnet-base-v2": 768,
        "multi-qa-mpnet-base-dot-v1": 768,
    }

    def __init__(
        self,
        model_name: str = "all-MiniLM-L6-v2",
        device: Optional[str] = None,
        normalize: bool = True,
    ):
        """Initialize the local embedding model.

        Args:
            model_name: Name of the sentence-transformers model
            device: Device to run on (cuda, cpu, mps). Auto-detected if None.
            normalize: Whether to normalize embeddings
        """
        self._model_name = model_name
        self.device = device
        self.normalize = normalize
        self._model = None

    @property
    def model_name(self) -> str:
        return self._model_name

    @property
    def dimension(self) -> int:
        return self.MODEL_DIMENSIONS.get(self._model_name, 384)

    def _get_model(self):
        """Get or load the sentence-transformers model."""
        if self._model is None:
            try:
                from sentence_transformers import SentenceTransformer

                self._model = SentenceTransformer(self._model_name, device=self.device)
                logger.info(f"Loaded embedding model: {self._model_name}")
            except ImportError:
                raise ImportError(
                    "Local embedding requires 'sentence-transformers'. "
                    "Install it with: pip install sentence-transformers"
                )
        return self._model

    async def embed_batch(self, texts: list[str]) -> EmbeddingResponse:
        """Embed one batch with the local model."""
        model = self._get_model()

        # Run in thread pool to avoid blocking
        loop = asyncio.get_event_loop()
        embeddings = await loop.run_in_executor(
            None,
            lambda: model.encode(
                texts,
                normalize_embeddings=self.normalize,
                convert_to_numpy=True,
            ),
        )

        tokenizer = getattr(model, "tokenizer", None)
        if tokenizer is not None:
            total_tokens = sum(len(tokenizer.tokenize(text)) for text in texts)
        else:
            total_tokens = sum(len(text.split()) for text in texts)

        return EmbeddingResponse(vectors=embeddings.tolist(), total_tokens=total_tokens)


def create_embedding(config: Optional[EmbeddingConfig] = None) -> BaseEmbedding:
    """Create the configured embedding provider."""
    config = config or EmbeddingConfig()

    if config.provider == "openai":
        return OpenAIEmbedding(
            model=config.model,
            api_key=config.api_key,
            base_url=config.base_url,
            timeout=config.timeout,
        )
    if config.provider == "local":
        return LocalEmbedding(model_name=config.model)
    return FakeEmbedding(dimension=config.dimension)
