"""Method-level chunking: one chunk per API method."""

import re

from ..base import BaseChunkingStrategy
from ..models import DocumentChunk, ParsedContent
from .base import base_metadata, build_single_chunk, extract_section, new_chunk, tags_with

METHOD_HEADING = re.compile(r"^(#{2,3})\s+([a-zA-Z][a-zA-Z0-9_]*)\s*\([^)]*\)", re.MULTILINE)

OVERVIEW_SECTIONS = ("Overview", "Constructor", "Properties")

# Ordered: the first matching action wins.
CRUD_RELATIONS = (
    ("create", ("get", "update", "delete", "list")),
    ("get", ("create", "update", "list")),
    ("update", ("get", "create", "delete")),
    ("delete", ("get", "list")),
    ("list", ("get", "create")),
)

MESSAGING_RELATIONS = (
    ("send", ("receive", "list")),
    ("receive", ("send", "list")),
)

CONNECTION_RELATIONS = (
    ("disconnect", ("connect",)),
    ("connect", ("disconnect", "login")),
)

CONNECTION_DEPENDENCIES = ("Connection.connect", "Platform.login", "Context.create")

NAMESPACE_PARENT_LOOKUP = {
    "Threads": "Thread.get",
    "Stores": "Store.get",
    "Inboxes": "Inbox.get",
}

METHOD_USE_CASES = (
    ("create", ["Setting up new resources", "Initial configuration", "Resource provisioning"]),
    ("get", ["Data retrieval", "Status checking", "Information display"]),
    ("update", ["Data modification", "Settings change", "Resource updating"]),
    ("delete", ["Resource cleanup", "Data removal", "Resource deprovisioning"]),
    ("list", ["Data browsing", "Inventory management", "Overview display"]),
    ("send", ["Message delivery", "Data transmission", "Communication"]),
    ("disconnect", ["Session teardown", "Releasing connections"]),
    ("connect", ["Establishing connections", "Authentication", "Session management"]),
)

GENERIC_MISTAKES = [
    "Not checking return values for errors",
    "Missing proper error handling",
    "Not validating input parameters",
]

METHOD_MISTAKES = (
    ("create", ["Creating duplicate resources", "Not checking if resource already exists"]),
    ("get", ["Not handling missing resources", "Assuming resource always exists"]),
    ("update", ["Not checking if resource exists first", "Partial updates without validation"]),
    ("delete", ["Not checking dependencies before deletion", "Missing confirmation for destructive operations"]),
    ("send", ["Not validating message content", "Sending to inactive recipients"]),
    ("disconnect", ["Using the connection after disconnecting"]),
    ("connect", ["Not handling connection timeouts", "Missing retry logic for network failures"]),
)


def _first_match(method_name: str, table):
    lowered = method_name.lower()
    for action, value in table:
        if action in lowered:
            return value
    return None


def find_related_methods(method_name: str, class_name: str) -> list[str]:
    """Infer sibling methods by CRUD, messaging and connection analogy."""
    related: list[str] = []
    for table in (CRUD_RELATIONS, MESSAGING_RELATIONS, CONNECTION_RELATIONS):
        siblings = _first_match(method_name, table)
        for sibling in siblings or ():
            qualified = f"{class_name}.{sibling}"
            if qualified not in related:
                related.append(qualified)

    own = f"{class_name}.{method_name}"
    return [m for m in related if m != own]


def find_method_dependencies(method_name: str, namespace: str) -> list[str]:
    """Calls that must precede method_name in the given namespace."""
    dependencies: list[str] = []
    if namespace != "Core":
        dependencies.extend(CONNECTION_DEPENDENCIES)

    lowered = method_name.lower()
    if ("send" in lowered or "create" in lowered) and namespace in NAMESPACE_PARENT_LOOKUP:
        dependencies.append(NAMESPACE_PARENT_LOOKUP[namespace])

    return dependencies


def method_use_cases(method_name: str) -> list[str]:
    return list(_first_match(method_name, METHOD_USE_CASES) or [])


def method_mistakes(method_name: str) -> list[str]:
    return [*GENERIC_MISTAKES, *(_first_match(method_name, METHOD_MISTAKES) or [])]


def extract_methods(text: str) -> list[tuple[str, str, str]]:
    """Find ``## name(...)`` method sections.

    Returns:
        (name, signature, section text) tuples in document order
    """
    matches = list(METHOD_HEADING.finditer(text))
    methods = []
    for i, match in enumerate(matches):
        end = matches[i + 1].start() if i + 1 < len(matches) else len(text)
        methods.append((match.group(2), match.group(0), text[match.start():end].strip()))
    return methods


class MethodLevelStrategy(BaseChunkingStrategy):
    """Each API method becomes its own chunk.

    Methods are atomic and never re-split. A class whose content has a
    ``## Methods`` section becomes an overview chunk plus one chunk per
    method heading. Everything else is a single chunk.
    """

    name = "method-level"

    def should_split(self, content: ParsedContent) -> bool:
        if content.type == "method":
            return False
        return content.type == "class" and "## Methods" in content.content

    def split(self, content: ParsedContent) -> list[DocumentChunk]:
        if not self.should_split(content):
            return [build_single_chunk(content)]

        chunks = [self._overview_chunk(content)]
        for method_name, signature, section in extract_methods(content.content):
            chunks.append(self._method_chunk(content, method_name, signature, section))
        return chunks

    def _overview_chunk(self, content: ParsedContent) -> DocumentChunk:
        parts = [f"# {content.name} Class", ""]
        if content.description:
            parts.extend([content.description, ""])

        for section_name in OVERVIEW_SECTIONS:
            section = extract_section(content.content, section_name)
            if section:
                parts.extend([f"## {section_name}", "", section, ""])

        meta = base_metadata(content)
        return new_chunk(
            content,
            "\n".join(parts).strip(),
            suffix="overview",
            metadata=meta,
            type="class",
            class_name=meta.class_name or content.name,
            method_name=None,
            tags=tags_with(meta, "overview", "class-info"),
        )

    def _method_chunk(
        self,
        content: ParsedContent,
        method_name: str,
        signature: str,
        section: str,
    ) -> DocumentChunk:
        class_name = content.name
        meta = base_metadata(content)

        parts = [
            f"# {class_name}.{method_name}",
            "",
            "```typescript",
            signature.lstrip("#").strip(),
            "```",
            "",
            section,
            "",
            "## Class Context",
            "",
            f"This method belongs to the **{class_name}** class in the **{meta.namespace}** namespace.",
        ]
        if content.description:
            parts.extend(["", f"**Class Description**: {content.description}"])

        return new_chunk(
            content,
            "\n".join(parts).strip(),
            suffix=method_name,
            metadata=meta,
            type="method",
            class_name=class_name,
            method_name=method_name,
            tags=tags_with(meta, "method", method_name.lower(), class_name.lower()),
            related_methods=find_related_methods(method_name, class_name),
            dependencies=find_method_dependencies(method_name, meta.namespace),
            use_cases=method_use_cases(method_name),
            common_mistakes=method_mistakes(method_name),
        )
