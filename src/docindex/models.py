"""Data structures shared by parsers, chunkers, the tracker and search."""

import re
import time
from datetime import datetime
from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

ContentType = Literal["method", "class", "type", "example"]
ChunkType = Literal["method", "class", "example", "tutorial", "troubleshooting"]
Importance = Literal["critical", "high", "medium", "low"]
SyncStatus = Literal["pending", "completed", "failed", "removed"]

CONTENT_TYPES: tuple[str, ...] = ("method", "class", "type", "example")
CHUNK_TYPES: tuple[str, ...] = ("method", "class", "example", "tutorial", "troubleshooting")
IMPORTANCE_LEVELS: tuple[str, ...] = ("critical", "high", "medium", "low")

IMPORTANCE_RANK = {"critical": 4, "high": 3, "medium": 2, "low": 1}

_BASE36 = "0123456789abcdefghijklmnopqrstuvwxyz"


def slugify(text: str) -> str:
    """Lowercase a title and collapse non-alphanumerics into hyphens."""
    slug = re.sub(r"[^a-z0-9]+", "-", text.lower())
    return slug.strip("-") or "untitled"


def _base36(value: int) -> str:
    if value == 0:
        return "0"
    digits = []
    while value:
        value, rem = divmod(value, 36)
        digits.append(_BASE36[rem])
    return "".join(reversed(digits))


def make_chunk_key(namespace: str, chunk_type: str, name: str, suffix: str, origin: str = "") -> str:
    """Build the content-derived identity of a chunk.

    The key is stable across runs over unchanged content and is what the
    embeddings tracker uses to key sync state. ``origin`` names the source
    location for units whose title alone is not unique, such as narrative
    sections.
    """
    scope = f"{slugify(origin)}-{slugify(name)}" if origin else slugify(name)
    key = f"{slugify(namespace)}-{chunk_type}-{scope}"
    return f"{key}-{slugify(suffix)}" if suffix else key


def make_chunk_id(key: str) -> str:
    """Append a millisecond timestamp (base 36) to a chunk key."""
    return f"{key}-{_base36(int(time.time() * 1000))}"


class CodeExample(BaseModel):
    """A code snippet attached to parsed content."""

    language: str = "typescript"
    code: str
    explanation: str = ""
    title: Optional[str] = None


class TypeInfo(BaseModel):
    name: str
    optional: bool = False


class Parameter(BaseModel):
    """A method parameter."""

    name: str
    description: str = ""
    type: TypeInfo


class ReturnValue(BaseModel):
    type: str
    description: str = ""


class WorkflowStep(BaseModel):
    """An ordered step extracted from a workflow document."""

    step: int
    title: str
    description: str = ""
    code: Optional[CodeExample] = None
    prerequisites: list[str] = Field(default_factory=list)
    next_steps: list[str] = Field(default_factory=list)


class ChunkMetadata(BaseModel):
    """Metadata attached to every chunk.

    Attributes:
        type: Kind of chunk
        namespace: SDK namespace the content belongs to
        class_name: Owning class, if any
        method_name: Method name, if the chunk documents a method
        importance: Priority used to bias ranking
        tags: Ordered, de-duplicated tags
        source_file: File the content was parsed from
        related_methods: Sibling methods worth reading alongside
        dependencies: Calls that must happen first
        common_mistakes: Known pitfalls
        use_cases: Typical reasons to use this API
        line_number: Source line of the originating section
    """

    type: ChunkType = "example"
    namespace: str = "General"
    class_name: Optional[str] = None
    method_name: Optional[str] = None
    importance: Importance = "medium"
    tags: list[str] = Field(default_factory=list)
    source_file: str = "unknown"
    related_methods: list[str] = Field(default_factory=list)
    dependencies: list[str] = Field(default_factory=list)
    common_mistakes: list[str] = Field(default_factory=list)
    use_cases: list[str] = Field(default_factory=list)
    line_number: Optional[int] = None

    def with_tags(self, *tags: str) -> "ChunkMetadata":
        """Return a copy with the given tags appended (set semantics)."""
        return self.model_copy(update={"tags": merge_unique(self.tags, tags)})


class ParsedContent(BaseModel):
    """A normalized unit produced by a parser from one source section.

    Instances are frozen; chunking never mutates its input.
    """

    model_config = ConfigDict(frozen=True)

    type: ContentType
    name: str
    description: str = ""
    content: str = ""
    metadata: dict[str, Any] = Field(default_factory=dict)
    examples: list[CodeExample] = Field(default_factory=list)
    parameters: list[Parameter] = Field(default_factory=list)
    returns: list[ReturnValue] = Field(default_factory=list)
    steps: list[WorkflowStep] = Field(default_factory=list)

    @property
    def namespace(self) -> str:
        return self.metadata.get("namespace") or "General"

    def __repr__(self) -> str:
        return f"ParsedContent(type={self.type!r}, name={self.name!r})"


class DocumentChunk(BaseModel):
    """An independently retrievable unit of content.

    Attributes:
        id: Unique, timestamp-suffixed identifier
        key: Content-derived identity, stable across runs
        content: Chunk text
        metadata: Chunk metadata
        embedding: Optional embedding vector
        related_chunk_ids: Cross-referenced chunk ids (lookup only)
    """

    id: str
    key: str = ""
    content: str
    metadata: ChunkMetadata = Field(default_factory=ChunkMetadata)
    embedding: Optional[list[float]] = None
    related_chunk_ids: list[str] = Field(default_factory=list)

    @property
    def stable_key(self) -> str:
        return self.key or self.id

    @property
    def title(self) -> str:
        """First heading of the chunk, or its key."""
        match = re.search(r"^#{1,6}\s+(.+)$", self.content, re.MULTILINE)
        return match.group(1).strip() if match else self.stable_key

    def __repr__(self) -> str:
        content_preview = self.content[:30] + "..." if len(self.content) > 30 else self.content
        return f"DocumentChunk(id={self.id!r}, content={content_preview!r})"


class EmbeddingRecord(BaseModel):
    """One embedding for one version of a chunk's content."""

    chunk_id: str
    vector: list[float]
    model: str
    token_count: int = 0
    timestamp: datetime = Field(default_factory=datetime.now)


class EmbeddingResponse(BaseModel):
    """Vectors returned by a provider for one batch call."""

    vectors: list[list[float]]
    total_tokens: int = 0


class SyncRecord(BaseModel):
    """Per-chunk embedding sync state kept by the tracker."""

    key: str
    chunk_id: str
    content_hash: str
    status: SyncStatus = "pending"
    retry_count: int = 0
    failure_reason: Optional[str] = None
    model: Optional[str] = None
    token_count: Optional[int] = None
    last_embedded_at: Optional[datetime] = None
    updated_at: datetime = Field(default_factory=datetime.now)


class SyncResult(BaseModel):
    """Outcome of diffing the current chunk set against tracked state."""

    new: list[DocumentChunk] = Field(default_factory=list)
    updated: list[DocumentChunk] = Field(default_factory=list)
    unchanged: list[DocumentChunk] = Field(default_factory=list)
    requeued: list[DocumentChunk] = Field(default_factory=list)
    removed: list[str] = Field(default_factory=list)

    @property
    def to_embed(self) -> list[DocumentChunk]:
        return [*self.new, *self.updated, *self.requeued]


class SearchResult(BaseModel):
    """A fused search hit, scoped to a single query."""

    chunk: DocumentChunk
    lexical_score: float = 0.0
    semantic_score: float = 0.0
    fused_score: float = 0.0

    def __repr__(self) -> str:
        return f"SearchResult(chunk_id={self.chunk.id!r}, score={self.fused_score:.4f})"


def merge_unique(first: list[str], second: Any) -> list[str]:
    """Union two string sequences, keeping first-seen order."""
    merged = list(first)
    for item in second:
        if item not in merged:
            merged.append(item)
    return merged
