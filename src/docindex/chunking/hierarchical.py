"""Hierarchical chunking: one chunk per substantial heading node."""

import re
from dataclasses import dataclass, field
from typing import Optional

from ..base import BaseChunkingStrategy
from ..models import DocumentChunk, ParsedContent, slugify
from .base import base_metadata, new_chunk, tags_with

HEADING = re.compile(r"^(#{1,6})\s+(.+)$")


@dataclass
class HeadingNode:
    level: int
    title: str
    lines: list[str] = field(default_factory=list)
    children: list["HeadingNode"] = field(default_factory=list)
    parent: Optional["HeadingNode"] = field(default=None, repr=False)

    @property
    def content(self) -> str:
        return "\n".join(self.lines).strip()

    @property
    def breadcrumb(self) -> str:
        path = [self.title]
        node = self.parent
        while node is not None:
            path.append(node.title)
            node = node.parent
        return " > ".join(reversed(path))


def build_hierarchy(text: str) -> tuple[str, list[HeadingNode]]:
    """Build a heading tree with a stack.

    Returns:
        (preamble before the first heading, top-level nodes)
    """
    preamble: list[str] = []
    roots: list[HeadingNode] = []
    stack: list[HeadingNode] = []
    current: Optional[HeadingNode] = None
    in_code = False

    for line in text.split("\n"):
        if line.startswith("```"):
            in_code = not in_code

        match = None if in_code else HEADING.match(line)
        if match is None:
            (current.lines if current is not None else preamble).append(line)
            continue

        level = len(match.group(1))
        while stack and stack[-1].level >= level:
            stack.pop()

        parent = stack[-1] if stack else None
        node = HeadingNode(level=level, title=match.group(2).strip(), parent=parent)
        (parent.children if parent is not None else roots).append(node)
        stack.append(node)
        current = node

    return "\n".join(preamble).strip(), roots


class HierarchicalStrategy(BaseChunkingStrategy):
    """Maintains the document's heading hierarchy.

    Emits a root chunk plus one chunk per substantial node, each carrying a
    breadcrumb back to the root and a summary of its children.
    """

    name = "hierarchical"

    def __init__(self, min_length: int = 1000, substantial_length: int = 100):
        """Initialize the strategy.

        Args:
            min_length: Content longer than this is split even without subheadings
            substantial_length: Child nodes shorter than this without children are folded away
        """
        self.min_length = min_length
        self.substantial_length = substantial_length

    def should_split(self, content: ParsedContent) -> bool:
        return "##" in content.content or len(content.content) > self.min_length

    def split(self, content: ParsedContent) -> list[DocumentChunk]:
        preamble, roots = build_hierarchy(content.content)
        chunks = [self._root_chunk(content, preamble)]

        counter = iter(range(1, 1_000_000))
        for node in roots:
            chunks.extend(self._node_chunks(content, node, counter))
        return chunks

    def _root_chunk(self, content: ParsedContent, preamble: str) -> DocumentChunk:
        parts = [f"# {content.name}", ""]
        if content.description:
            parts.extend([content.description, ""])
        if preamble:
            parts.append(preamble)

        meta = base_metadata(content)
        return new_chunk(
            content,
            "\n".join(parts).strip(),
            suffix="root",
            metadata=meta,
            tags=tags_with(meta, "root", "hierarchy-root"),
        )

    def _node_chunks(self, content: ParsedContent, node: HeadingNode, counter) -> list[DocumentChunk]:
        chunks = [self._section_chunk(content, node, next(counter))]
        for child in node.children:
            if len(child.content) > self.substantial_length or child.children:
                chunks.extend(self._node_chunks(content, child, counter))
        return chunks

    def _section_chunk(self, content: ParsedContent, node: HeadingNode, ordinal: int) -> DocumentChunk:
        parts = [
            f"**Navigation**: {node.breadcrumb}",
            "",
            "---",
            "",
            f"{'#' * node.level} {node.title}",
            "",
            node.content,
        ]
        if node.children:
            parts.extend(["", "## Subsections", ""])
            for child in node.children:
                preview = child.content[:100].strip()
                parts.append(f"- **{child.title}**: {preview}..." if preview else f"- **{child.title}**")

        title_slug = slugify(node.title)
        meta = base_metadata(content)
        return new_chunk(
            content,
            "\n".join(parts).strip(),
            suffix=f"{ordinal}-{title_slug}",
            metadata=meta,
            tags=tags_with(meta, "hierarchical", f"level-{node.level}", title_slug),
        )
