"""Optional post-chunking pass: de-duplication, quality scoring and ordering."""

import hashlib
import re
from dataclasses import dataclass

from ..models import IMPORTANCE_RANK, ChunkMetadata, DocumentChunk
from ..utils.logging import get_logger
from .hybrid import word_jaccard

logger = get_logger(__name__)

QUALITY_TAG_PREFIX = "quality:"
DEFAULT_QUALITY = 0.5
DUPLICATE_THRESHOLD = 0.9


@dataclass(frozen=True)
class QualityScore:
    overall: float
    completeness: float
    specificity: float
    usefulness: float
    clarity: float


def normalized_hash(content: str) -> str:
    """Hash of content with case, whitespace and punctuation normalized away."""
    normalized = re.sub(r"\s+", " ", content.lower())
    normalized = re.sub(r"[^\w\s]", "", normalized).strip()
    return hashlib.sha256(normalized.encode("utf-8")).hexdigest()


def quality_from_tags(tags: list[str]) -> float:
    for tag in tags:
        if tag.startswith(QUALITY_TAG_PREFIX):
            try:
                return float(tag[len(QUALITY_TAG_PREFIX):])
            except ValueError:
                return DEFAULT_QUALITY
    return DEFAULT_QUALITY


def _completeness(content: str) -> float:
    score = 0.5
    if "```" in content:
        score += 0.2
    if "##" in content:
        score += 0.1
    if "Parameters" in content or "Returns" in content:
        score += 0.1
    if "Common Issues" in content or "Troubleshooting" in content:
        score += 0.1
    return min(score, 1.0)


def _specificity(content: str, metadata: ChunkMetadata) -> float:
    score = 0.3
    if metadata.type == "method":
        score += 0.3
    if "example" in content.lower():
        score += 0.2
    if len(content.split(".")) > 5:
        score += 0.1
    if metadata.use_cases:
        score += 0.1
    return min(score, 1.0)


def _usefulness(content: str, metadata: ChunkMetadata) -> float:
    score = 0.4 + {"critical": 0.3, "high": 0.2, "medium": 0.1}.get(metadata.importance, 0.0)
    if "await" in content or "async" in content:
        score += 0.1
    if "try" in content or "catch" in content or "error" in content:
        score += 0.1
    if metadata.common_mistakes:
        score += 0.1
    return min(score, 1.0)


def _clarity(content: str) -> float:
    score = 0.5
    headers = len(re.findall(r"^#{1,6}\s+", content, re.MULTILINE))
    score += min(headers * 0.1, 0.3)
    if 200 < len(content) < 2000:
        score += 0.1
    if "This" in content or "Here" in content:
        score += 0.1
    return min(score, 1.0)


def score_quality(chunk: DocumentChunk) -> QualityScore:
    """Average four heuristic sub-scores, each in [0, 1]."""
    content, metadata = chunk.content, chunk.metadata
    completeness = _completeness(content)
    specificity = _specificity(content, metadata)
    usefulness = _usefulness(content, metadata)
    clarity = _clarity(content)
    return QualityScore(
        overall=(completeness + specificity + usefulness + clarity) / 4,
        completeness=completeness,
        specificity=specificity,
        usefulness=usefulness,
        clarity=clarity,
    )


class ChunkOptimizer:
    """Removes near-duplicates, tags quality and sorts by priority."""

    def __init__(self, deduplication: bool = True, quality_scoring: bool = True):
        self.deduplication = deduplication
        self.quality_scoring = quality_scoring

    def optimize(self, chunks: list[DocumentChunk]) -> list[DocumentChunk]:
        """Run the enabled passes and return chunks in priority order."""
        optimized = list(chunks)
        if self.deduplication:
            optimized = self.remove_duplicates(optimized)
        if self.quality_scoring:
            optimized = self.score_chunks(optimized)
        optimized = self.sort_by_priority(optimized)
        logger.info(f"Optimized {len(chunks)} chunks into {len(optimized)}")
        return optimized

    @staticmethod
    def remove_duplicates(chunks: list[DocumentChunk]) -> list[DocumentChunk]:
        """Drop chunks whose content nearly matches an earlier one.

        When two chunks collide, the more important one is kept in the
        position of the first.
        """
        unique: list[DocumentChunk] = []
        hashes: list[str] = []

        for chunk in chunks:
            chunk_hash = normalized_hash(chunk.content)
            for index, existing in enumerate(unique):
                if chunk_hash == hashes[index] or word_jaccard(chunk.content, existing.content) > DUPLICATE_THRESHOLD:
                    if IMPORTANCE_RANK[chunk.metadata.importance] > IMPORTANCE_RANK[existing.metadata.importance]:
                        unique[index] = chunk
                        hashes[index] = chunk_hash
                    logger.debug(f"Dropped duplicate chunk {chunk.stable_key}")
                    break
            else:
                unique.append(chunk)
                hashes.append(chunk_hash)

        return unique

    @staticmethod
    def score_chunks(chunks: list[DocumentChunk]) -> list[DocumentChunk]:
        scored = []
        for chunk in chunks:
            tags = [t for t in chunk.metadata.tags if not t.startswith(QUALITY_TAG_PREFIX)]
            tags.append(f"{QUALITY_TAG_PREFIX}{score_quality(chunk).overall:.2f}")
            scored.append(chunk.model_copy(update={
                "metadata": chunk.metadata.model_copy(update={"tags": tags}),
            }))
        return scored

    @staticmethod
    def sort_by_priority(chunks: list[DocumentChunk]) -> list[DocumentChunk]:
        """Stable sort by importance, then quality tag, both descending."""
        return sorted(
            chunks,
            key=lambda c: (IMPORTANCE_RANK[c.metadata.importance], quality_from_tags(c.metadata.tags)),
            reverse=True,
        )
