"""Chunk enhancer - adds derived context and metadata after splitting."""

from dataclasses import dataclass
from typing import Optional

from ..models import ChunkMetadata, DocumentChunk, merge_unique
from ..utils.logging import get_logger
from .method_level import find_related_methods, method_use_cases

logger = get_logger(__name__)


@dataclass
class EnhancementOptions:
    """Independently toggleable enhancements."""

    add_related_methods: bool = True
    add_usage_examples: bool = True
    add_troubleshooting: bool = True
    add_dependencies: bool = True
    enhance_metadata: bool = True


@dataclass(frozen=True)
class UsagePattern:
    title: str
    description: str
    code: str


@dataclass(frozen=True)
class KnownIssue:
    problem: str
    cause: str
    solution: str
    example: Optional[str] = None


NAMESPACE_RELATED_METHODS = {
    "Threads": ("Thread.create", "Thread.get", "Message.send", "Message.list"),
    "Stores": ("Store.create", "Store.get", "File.upload", "File.download"),
    "Inboxes": ("Inbox.create", "Inbox.get", "InboxMessage.send"),
    "Core": ("Connection.connect", "Platform.login", "Context.create"),
}

USAGE_PATTERNS = {
    ("Threads", "Thread", "create"): UsagePattern(
        "Creating a Thread with Users",
        "Create a new thread and add users to it.",
        "const thread = await Thread.create({\n"
        "  contextId: 'context-id',\n"
        "  users: ['user1', 'user2'],\n"
        "  managers: ['manager1'],\n"
        "  name: 'Project Discussion'\n"
        "});",
    ),
    ("Threads", "Thread", "get"): UsagePattern(
        "Getting Thread Information",
        "Retrieve thread details and metadata.",
        "const thread = await Thread.get(threadId);\n"
        "console.log('Thread name:', thread.name);",
    ),
    ("Stores", "Store", "create"): UsagePattern(
        "Creating a Store for File Management",
        "Create a new store for organizing files.",
        "const store = await Store.create({\n"
        "  contextId: 'context-id',\n"
        "  users: ['user1', 'user2'],\n"
        "  managers: ['manager1'],\n"
        "  name: 'Project Files'\n"
        "});",
    ),
}

RETRY_ISSUE = KnownIssue(
    "Connection timeout or failure",
    "Network issues or invalid credentials",
    "Check network connectivity and verify credentials. Implement retry logic.",
    "try {\n"
    "  await Connection.connect(endpoint);\n"
    "} catch (error) {\n"
    "  await retryWithBackoff(() => Connection.connect(endpoint));\n"
    "}",
)

PERMISSION_ISSUE = KnownIssue(
    "Permission denied error",
    "User lacks necessary permissions for the operation",
    "Ensure the user has proper access rights or is listed as a manager.",
)

NAMESPACE_USE_CASES = {
    "Threads": ["Team communication", "Message collaboration", "Discussion threads"],
    "Stores": ["File management", "Document storage", "Asset organization"],
    "Inboxes": ["Message delivery", "Notification system", "Communication hub"],
}

ACTION_TAGS = (
    ("create", ("crud", "creation", "new")),
    ("get", ("crud", "retrieval", "fetch", "read")),
    ("update", ("crud", "modification", "edit")),
    ("delete", ("crud", "removal", "cleanup")),
    ("list", ("crud", "enumeration", "browse")),
)

NAMESPACE_TAGS = {
    "Threads": ("messaging", "communication", "collaboration"),
    "Stores": ("files", "storage", "documents"),
    "Inboxes": ("inbox", "notifications", "delivery"),
    "Core": ("connection", "platform", "authentication"),
    "Crypto": ("encryption", "security", "crypto"),
}

MISTAKES_BY_ACTION = (
    ("create", ["Not validating input parameters", "Creating duplicate resources"]),
    ("get", ["Not handling missing resources", "Assuming resource always exists"]),
    ("update", ["Not checking if resource exists first", "Partial updates without validation"]),
    ("delete", ["Not checking dependencies before deletion", "Missing confirmation for destructive operations"]),
)


class ChunkEnhancer:
    """Appends related methods, usage patterns, troubleshooting and prerequisites.

    Enhancement is additive and deterministic; a section already present in
    the chunk is not appended twice, and a section that would push the chunk
    past ``max_chunk_size`` is left out.
    """

    def __init__(self, options: Optional[EnhancementOptions] = None, max_chunk_size: Optional[int] = None):
        self.options = options or EnhancementOptions()
        self.max_chunk_size = max_chunk_size

    def _append(self, content: str, section: str) -> str:
        if not section:
            return content
        if self.max_chunk_size is not None and len(content) + len(section) > self.max_chunk_size:
            return content
        return content + section

    def enhance(self, chunk: DocumentChunk, options: Optional[EnhancementOptions] = None) -> DocumentChunk:
        """Return an enhanced copy of chunk.

        Args:
            chunk: Chunk to enhance
            options: Overrides the enhancer's default options

        Returns:
            New chunk; the input is not modified
        """
        opts = options or self.options
        content = chunk.content
        metadata = chunk.metadata

        if opts.add_related_methods:
            related = [m for m in self.find_related_methods(metadata) if m not in metadata.related_methods]
            if related and "## Related Methods" not in content:
                content = self._append(
                    content, "\n\n## Related Methods\n\n" + "\n".join(f"- `{m}`" for m in related)
                )
                metadata = metadata.model_copy(update={
                    "related_methods": merge_unique(metadata.related_methods, related),
                })

        if opts.add_usage_examples and "## Common Usage Patterns" not in content:
            content = self._append(content, self._usage_section(metadata))

        if opts.add_troubleshooting and "## Common Issues & Solutions" not in content:
            content = self._append(content, self._troubleshooting_section(metadata))

        if opts.add_dependencies:
            dependencies = self.find_dependencies(metadata)
            if dependencies and "## Prerequisites" not in content:
                content = self._append(
                    content,
                    "\n\n## Prerequisites\n\nBefore using this method, ensure you have:\n\n"
                    + "\n".join(f"- Called `{dep}`" for dep in dependencies),
                )
                metadata = metadata.model_copy(update={
                    "dependencies": merge_unique(metadata.dependencies, dependencies),
                })

        if opts.enhance_metadata:
            metadata = self.enhance_metadata(metadata)

        return chunk.model_copy(update={"content": content, "metadata": metadata})

    def enhance_all(
        self,
        chunks: list[DocumentChunk],
        options: Optional[EnhancementOptions] = None,
    ) -> list[DocumentChunk]:
        enhanced = [self.enhance(chunk, options) for chunk in chunks]
        logger.debug(f"Enhanced {len(enhanced)} chunks")
        return enhanced

    @staticmethod
    def find_related_methods(metadata: ChunkMetadata) -> list[str]:
        if metadata.type == "method" and metadata.class_name and metadata.method_name:
            return find_related_methods(metadata.method_name, metadata.class_name)
        if metadata.type == "class":
            own = f"{metadata.class_name}.{metadata.method_name}"
            return [m for m in NAMESPACE_RELATED_METHODS.get(metadata.namespace, ()) if m != own]
        return []

    @staticmethod
    def find_dependencies(metadata: ChunkMetadata) -> list[str]:
        if metadata.type != "method" or not metadata.class_name:
            return []

        method = (metadata.method_name or "").lower()
        dependencies = []
        if "create" in method or "get" in method:
            dependencies.extend(["Connection.connect", "Platform.login"])
        if metadata.namespace not in ("Core", "Events"):
            dependencies.extend(["Context.create", "Context.connect"])
        if metadata.namespace == "Threads" and "message" in method:
            dependencies.append("Thread.get")
        if metadata.namespace == "Stores" and "file" in method:
            dependencies.append("Store.get")
        return merge_unique([], dependencies)

    @staticmethod
    def _usage_section(metadata: ChunkMetadata) -> str:
        if metadata.type != "method" or not metadata.method_name or not metadata.class_name:
            return ""

        pattern = USAGE_PATTERNS.get((metadata.namespace, metadata.class_name, metadata.method_name))
        if pattern is None:
            return ""

        return (
            "\n\n## Common Usage Patterns\n\n"
            f"### {pattern.title}\n\n{pattern.description}\n\n"
            f"```typescript\n{pattern.code}\n```"
        )

    @staticmethod
    def _troubleshooting_section(metadata: ChunkMetadata) -> str:
        if metadata.type != "method" or not metadata.method_name or not metadata.class_name:
            return ""

        method = metadata.method_name.lower()
        issues = []
        if "connect" in method or "login" in method:
            issues.append(RETRY_ISSUE)
        if any(action in method for action in ("create", "update", "delete")):
            issues.append(PERMISSION_ISSUE)
        if not issues:
            return ""

        parts = ["", "", "## Common Issues & Solutions"]
        for issue in issues:
            parts.extend([
                "",
                f"### {issue.problem}",
                "",
                f"**Cause**: {issue.cause}",
                "",
                f"**Solution**: {issue.solution}",
            ])
            if issue.example:
                parts.extend(["", f"```typescript\n{issue.example}\n```"])
        return "\n".join(parts)

    def enhance_metadata(self, metadata: ChunkMetadata) -> ChunkMetadata:
        """Fill use cases and mistakes only when absent; union tags."""
        updates = {}
        if not metadata.use_cases:
            use_cases = method_use_cases(metadata.method_name or "") if metadata.type == "method" else []
            updates["use_cases"] = [*use_cases, *NAMESPACE_USE_CASES.get(metadata.namespace, [])]
        if not metadata.common_mistakes:
            updates["common_mistakes"] = self._mistakes(metadata)

        tags: list[str] = []
        if metadata.type == "method" and metadata.method_name:
            method = metadata.method_name.lower()
            for action, action_tags in ACTION_TAGS:
                if action in method:
                    tags.extend(action_tags)
        tags.extend(NAMESPACE_TAGS.get(metadata.namespace, ()))
        updates["tags"] = merge_unique(metadata.tags, tags)

        return metadata.model_copy(update=updates)

    @staticmethod
    def _mistakes(metadata: ChunkMetadata) -> list[str]:
        if metadata.type != "method" or not metadata.method_name:
            return []
        mistakes = ["Not checking return values for errors", "Missing proper error handling"]
        method = metadata.method_name.lower()
        for action, extra in MISTAKES_BY_ACTION:
            if action in method:
                mistakes.extend(extra)
                break
        return mistakes
