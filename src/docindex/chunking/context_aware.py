"""Context-aware chunking: keeps functionally related content together."""

import re
from dataclasses import dataclass

from ..base import BaseChunkingStrategy
from ..models import DocumentChunk, ParsedContent, slugify
from .base import (
    base_metadata,
    build_single_chunk,
    extract_section,
    new_chunk,
    tags_with,
    trailing_overlap,
)
from .method_level import METHOD_HEADING, extract_methods

SECTION_HEADING = re.compile(r"^(#{1,3})\s+(.+)$", re.MULTILINE)
ANY_HEADING = re.compile(r"^#{1,6}\s+.+$", re.MULTILINE)


@dataclass(frozen=True)
class MethodGroup:
    """A fixed functional bucket for class methods."""

    title: str
    keywords: tuple[str, ...]
    description: str
    related_info: tuple[str, ...]
    use_cases: tuple[str, ...]


# Checked in order; a method lands in the first group whose keyword it contains.
METHOD_GROUPS = (
    MethodGroup(
        "CRUD Operations",
        ("create", "get", "update", "delete", "list", "find"),
        "These methods handle basic data operations: creating, reading, updating, and deleting resources.",
        (
            "Always check permissions before performing operations",
            "Handle errors appropriately for each operation",
            "Consider pagination for list operations",
        ),
        ("Data management", "Resource administration", "Content manipulation"),
    ),
    MethodGroup(
        "Communication",
        ("send", "receive", "message", "notify"),
        "These methods handle message sending, receiving, and communication between users.",
        (
            "Validate message content before sending",
            "Handle offline recipients gracefully",
            "Implement proper error handling for network issues",
        ),
        ("Real-time messaging", "Notifications", "Team collaboration"),
    ),
    MethodGroup(
        "Authentication",
        ("login", "auth", "connect", "disconnect"),
        "These methods handle user authentication, connections, and session management.",
        (
            "Always validate credentials securely",
            "Implement proper session management",
            "Handle connection timeouts appropriately",
        ),
        ("User login", "Session management", "Security validation"),
    ),
    MethodGroup(
        "Configuration",
        ("config", "setting", "setup", "init"),
        "These methods handle configuration, setup, and initialization tasks.",
        (),
        ("System setup", "Settings management", "Initialization"),
    ),
)

UTILITIES = MethodGroup(
    "Utilities",
    (),
    "These utility methods provide additional functionality and support operations.",
    (),
    ("General utilities", "Helper operations", "Support functions"),
)

CLASS_SECTIONS = ("Overview", "Constructor", "Properties", "Events")


def categorize_method(method_name: str) -> MethodGroup:
    name = method_name.lower()
    for group in METHOD_GROUPS:
        if any(keyword in name for keyword in group.keywords):
            return group
    return UTILITIES


def count_methods(text: str) -> int:
    return len(METHOD_HEADING.findall(text))


def count_sections(text: str) -> int:
    """Count level 1-3 headings."""
    return len(SECTION_HEADING.findall(text))


class ContextAwareStrategy(BaseChunkingStrategy):
    """Groups related content while preserving semantic relationships.

    Classes are bucketed into functional groups, tutorials into heading
    groups, and other long content is packed at heading or paragraph
    boundaries with a trailing overlap.
    """

    name = "context-aware"

    def __init__(
        self,
        max_length: int = 2000,
        soft_chunk_size: int = 1500,
        overlap_size: int = 200,
        min_introduction: int = 50,
    ):
        """Initialize the strategy.

        Args:
            max_length: Content longer than this is always split
            soft_chunk_size: Target size when packing boundaries
            overlap_size: Characters carried over between packed chunks
            min_introduction: Minimum preamble length for an introduction chunk
        """
        self.max_length = max_length
        self.soft_chunk_size = soft_chunk_size
        self.overlap_size = overlap_size
        self.min_introduction = min_introduction

    def should_split(self, content: ParsedContent) -> bool:
        if len(content.content) > self.max_length:
            return True
        if content.type == "class" and count_methods(content.content) > 5:
            return True
        if content.type == "example" and "##" in content.content:
            return count_sections(content.content) > 3
        return False

    def split(self, content: ParsedContent) -> list[DocumentChunk]:
        if not self.should_split(content):
            return [build_single_chunk(content)]

        if content.type == "class":
            return self.split_class_by_functionality(content)
        if content.type == "example":
            return self.split_tutorial_by_sections(content)
        return self.split_by_contextual_boundaries(content)

    def split_class_by_functionality(self, content: ParsedContent) -> list[DocumentChunk]:
        grouped: dict[str, list[tuple[str, str]]] = {}
        for method_name, _signature, section in extract_methods(content.content):
            group = categorize_method(method_name)
            grouped.setdefault(group.title, []).append((method_name, section))

        chunks = [self._class_overview(content)]
        for group in (*METHOD_GROUPS, UTILITIES):
            methods = grouped.get(group.title)
            if methods:
                chunks.append(self._group_chunk(content, group, methods))
        return chunks

    def _class_overview(self, content: ParsedContent) -> DocumentChunk:
        meta = base_metadata(content)
        parts = [f"# {content.name} Class Overview", ""]
        if content.description:
            parts.extend([content.description, ""])
        parts.extend([f"**Namespace**: {meta.namespace}", f"**Importance**: {meta.importance}", ""])

        for section_name in CLASS_SECTIONS:
            section = extract_section(content.content, section_name)
            if section:
                parts.extend([f"## {section_name}", "", section, ""])

        return new_chunk(
            content,
            "\n".join(parts).strip(),
            suffix="overview",
            metadata=meta,
            type="class",
            class_name=meta.class_name or content.name,
            tags=tags_with(meta, "overview", "class-structure"),
        )

    def _group_chunk(
        self,
        content: ParsedContent,
        group: MethodGroup,
        methods: list[tuple[str, str]],
    ) -> DocumentChunk:
        class_name = content.name
        meta = base_metadata(content)

        parts = [
            f"# {class_name} - {group.title}",
            "",
            f"This section covers {group.title.lower()} methods for the **{class_name}** class.",
            "",
            group.description,
            "",
        ]
        for _name, section in methods:
            parts.extend([section, "", "---", ""])

        if group.related_info:
            parts.extend(["## Related Information", ""])
            parts.extend(f"- {line}" for line in group.related_info)

        group_slug = slugify(group.title)
        return new_chunk(
            content,
            "\n".join(parts).strip(),
            suffix=group_slug,
            metadata=meta,
            type="method",
            class_name=class_name,
            tags=tags_with(meta, "functional-group", group_slug, *(n.lower() for n, _ in methods)),
            related_methods=[f"{class_name}.{n}" for n, _ in methods],
            use_cases=list(group.use_cases),
        )

    def split_tutorial_by_sections(self, content: ParsedContent) -> list[DocumentChunk]:
        text = content.content
        matches = list(SECTION_HEADING.finditer(text))
        chunks = []

        introduction = self._introduction(content, matches)
        if introduction is not None:
            chunks.append(introduction)

        groups: list[list[tuple[int, str, str]]] = []
        for i, match in enumerate(matches):
            end = matches[i + 1].start() if i + 1 < len(matches) else len(text)
            section = (len(match.group(1)), match.group(2).strip(), text[match.start():end].strip())
            if section[0] <= 2 and groups:
                groups.append([section])
            elif groups:
                groups[-1].append(section)
            else:
                groups.append([section])

        for index, group in enumerate(groups):
            chunks.append(self._section_group_chunk(content, group, index))

        return chunks or [build_single_chunk(content)]

    def _introduction(self, content: ParsedContent, matches: list[re.Match]) -> DocumentChunk | None:
        if not matches:
            return None
        preamble = content.content[:matches[0].start()].strip()
        if len(preamble) < self.min_introduction:
            return None

        parts = [f"# {content.name} - Introduction", ""]
        if content.description:
            parts.extend([content.description, ""])
        parts.append(preamble)

        meta = base_metadata(content)
        return new_chunk(
            content,
            "\n".join(parts).strip(),
            suffix="introduction",
            metadata=meta,
            tags=tags_with(meta, "introduction", "getting-started"),
        )

    def _section_group_chunk(
        self,
        content: ParsedContent,
        group: list[tuple[int, str, str]],
        index: int,
    ) -> DocumentChunk:
        title = group[0][1]
        body = "\n\n---\n\n".join(section for _level, _title, section in group)
        meta = base_metadata(content)
        title_slug = slugify(title)
        return new_chunk(
            content,
            f"# {content.name} - {title}\n\n{body}",
            suffix=f"{index}-{title_slug}",
            metadata=meta,
            tags=tags_with(meta, "tutorial-section", title_slug),
        )

    def split_by_contextual_boundaries(self, content: ParsedContent) -> list[DocumentChunk]:
        """Pack heading (or paragraph) boundaries under the soft size cap."""
        text = content.content
        headings = list(ANY_HEADING.finditer(text))
        if headings:
            boundaries = []
            for i, match in enumerate(headings):
                end = headings[i + 1].start() if i + 1 < len(headings) else len(text)
                boundaries.append(text[match.start():end].strip())
            preamble = text[:headings[0].start()].strip()
            if preamble:
                boundaries.insert(0, preamble)
        else:
            boundaries = [p.strip() for p in re.split(r"\n\s*\n", text) if p.strip()]

        pieces: list[str] = []
        current = ""
        for boundary in boundaries:
            candidate = f"{current}\n\n{boundary}" if current else boundary
            if len(candidate) <= self.soft_chunk_size:
                current = candidate
                continue
            if current:
                pieces.append(current)
                current = trailing_overlap(current, self.overlap_size) + boundary
            else:
                current = boundary
        if current:
            pieces.append(current)

        if not pieces:
            return [build_single_chunk(content)]

        meta = base_metadata(content)
        chunks = []
        for index, piece in enumerate(pieces):
            body = f"# {content.name} - Part {index + 1}\n\n{piece}" if headings else piece
            chunks.append(new_chunk(
                content,
                body,
                suffix=f"part-{index}",
                metadata=meta,
                tags=tags_with(meta, "contextual-chunk", f"part-{index}"),
            ))
        return chunks
