"""Helpers shared by the chunking strategies."""

import re
from pathlib import PurePath
from typing import Any, Optional

from ..models import (
    ChunkMetadata,
    DocumentChunk,
    ParsedContent,
    make_chunk_id,
    make_chunk_key,
    merge_unique,
)

HEADING_LINE = re.compile(r"^#{1,6}\s+.+$", re.MULTILINE)
PARAGRAPH_BREAK = re.compile(r"\n\s*\n")


def base_metadata(content: ParsedContent) -> ChunkMetadata:
    """Build full chunk metadata from a unit's partial metadata."""
    data = dict(content.metadata)
    data.setdefault("type", "example" if content.type == "example" else content.type)
    if data["type"] == "type":
        data["type"] = "class"
    data.setdefault("namespace", content.namespace)
    data["tags"] = list(data.get("tags") or [])
    return ChunkMetadata.model_validate(data)


def unit_origin(content: ParsedContent) -> str:
    """Source location that disambiguates narrative units sharing a title."""
    source = content.metadata.get("source_file")
    if content.type != "example" or not source:
        return ""
    origin = PurePath(str(source)).stem
    line = content.metadata.get("line_number")
    return f"{origin}-l{line}" if line is not None else origin


def new_chunk(
    content: ParsedContent,
    body: str,
    suffix: str = "",
    metadata: Optional[ChunkMetadata] = None,
    **updates: Any,
) -> DocumentChunk:
    """Create a chunk for a unit.

    Args:
        content: Source unit
        body: Chunk text
        suffix: Distinguishes sibling chunks of the same unit
        metadata: Base metadata (derived from the unit when omitted)
        **updates: Metadata fields to override

    Returns:
        A new chunk with a stable key and a timestamped id
    """
    meta = metadata or base_metadata(content)
    if updates:
        meta = meta.model_copy(update=updates)
    key = make_chunk_key(meta.namespace, meta.type, content.name, suffix, unit_origin(content))
    return DocumentChunk(id=make_chunk_id(key), key=key, content=body, metadata=meta)


def build_single_chunk(content: ParsedContent) -> DocumentChunk:
    """Render a unit as one chunk with its examples, parameters and returns."""
    parts = []
    # narrative content already opens with its heading and first line
    if not content.content.startswith(f"# {content.name}"):
        parts.extend([f"# {content.name}", ""])
        if content.description:
            parts.extend([content.description, ""])
    if content.content:
        parts.append(content.content)

    if content.parameters:
        parts.extend(["", "## Parameters", ""])
        for param in content.parameters:
            optional = "?" if param.type.optional else ""
            parts.append(f"- `{param.name}` ({param.type.name}{optional}): {param.description}")

    if content.returns:
        parts.extend(["", "## Returns", ""])
        for ret in content.returns:
            parts.append(f"- {ret.type}: {ret.description}")

    if content.examples:
        parts.extend(["", "## Examples"])
        for i, example in enumerate(content.examples, start=1):
            title = f": {example.title}" if example.title else ""
            parts.extend(["", f"### Example {i}{title}", ""])
            if example.explanation:
                parts.extend([example.explanation, ""])
            parts.extend([f"```{example.language}", example.code, "```"])

    return new_chunk(content, "\n".join(parts).strip())


def extract_section(text: str, section_name: str) -> Optional[str]:
    """Return the body of a level 2-3 heading named section_name."""
    pattern = re.compile(rf"^#{{2,3}}\s+{re.escape(section_name)}\s*$", re.IGNORECASE | re.MULTILINE)
    match = pattern.search(text)
    if not match:
        return None

    start = match.end()
    next_heading = re.compile(r"^#{2,3}\s+", re.MULTILINE).search(text, start)
    end = next_heading.start() if next_heading else len(text)
    section = text[start:end].strip()
    return section or None


def split_by_boundaries(text: str) -> list[str]:
    """Split text at headings, falling back to paragraphs."""
    starts = [m.start() for m in HEADING_LINE.finditer(text)]
    sections = []
    if starts:
        bounds = [0, *starts, len(text)] if starts[0] > 0 else [*starts, len(text)]
        for begin, end in zip(bounds, bounds[1:]):
            piece = text[begin:end].strip()
            if piece:
                sections.append(piece)

    if len(sections) <= 1:
        return [p.strip() for p in PARAGRAPH_BREAK.split(text) if p.strip()]

    return sections


def hard_split(text: str, max_size: int) -> list[str]:
    """Cut text into pieces of at most max_size, preferring sentence or line ends."""
    pieces = []
    remaining = text.strip()

    while len(remaining) > max_size:
        split_at = max_size
        sentence_end = remaining.rfind(". ", 0, max_size)
        line_end = remaining.rfind("\n", 0, max_size)
        if sentence_end > max_size // 2:
            split_at = sentence_end + 1
        elif line_end > max_size // 2:
            split_at = line_end

        pieces.append(remaining[:split_at].strip())
        remaining = remaining[split_at:].strip()

    if remaining:
        pieces.append(remaining)
    return pieces


def trailing_overlap(text: str, overlap_size: int) -> str:
    """Take the last overlap_size chars, trimmed to a sentence or line start."""
    if len(text) <= overlap_size:
        return text

    overlap = text[-overlap_size:]
    midpoint = overlap_size // 2

    sentence_end = overlap.rfind(". ")
    if sentence_end > midpoint:
        return overlap[sentence_end + 2:]

    line_end = overlap.rfind("\n")
    if line_end > midpoint:
        return overlap[line_end + 1:]

    return overlap


def count_sections(text: str) -> int:
    return len(HEADING_LINE.findall(text))


def tags_with(metadata: ChunkMetadata, *tags: str) -> list[str]:
    return merge_unique(metadata.tags, tags)
