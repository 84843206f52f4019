"""Parser for narrative Markdown/MDX documents and workflow tutorials."""

import re
from dataclasses import dataclass, field
from pathlib import PurePath
from typing import Any, Optional

import yaml

from ..base import BaseParser
from ..models import CodeExample, ParsedContent, WorkflowStep, merge_unique
from ..utils.logging import get_logger

logger = get_logger(__name__)

HEADING_PATTERN = re.compile(r"^(#{1,6})\s+(.+)$")
FENCE_PATTERN = re.compile(r"^```(\w+)?(.*)$")
STEP_TITLE_PATTERN = re.compile(r"step|\d+\.", re.IGNORECASE)
PREREQUISITE_PATTERN = re.compile(
    r"(?:prerequisites?|requirements?|before|needed):?\s*(.+)", re.IGNORECASE
)
USE_CASE_PATTERN = re.compile(
    r"(?:use case|usage|when to use|good for):?\s*(.+)", re.IGNORECASE
)


@dataclass
class CodeBlock:
    language: str
    code: str = ""
    info: str = ""
    line_start: int = 0


@dataclass
class Section:
    """A heading and the lines beneath it, up to the next heading."""

    level: int
    title: str
    line_start: int
    lines: list[str] = field(default_factory=list)
    code_blocks: list[CodeBlock] = field(default_factory=list)

    @property
    def content(self) -> str:
        return "\n".join(self.lines).strip()


class NarrativeParser(BaseParser):
    """Parses Markdown with optional YAML frontmatter.

    Non-workflow documents yield one example unit per heading section.
    Documents whose frontmatter sets ``workflow: true`` yield a single
    unit carrying ordered WorkflowStep entries.
    """

    def parse(self, raw: Any, source_id: str = "document.md") -> list[ParsedContent]:
        """Parse a narrative document.

        Args:
            raw: Document text
            source_id: File name, used for tags and source_file

        Returns:
            Parsed units; empty for empty input
        """
        if not raw or not str(raw).strip():
            return []

        frontmatter, body = self._parse_frontmatter(str(raw))
        sections = self.extract_sections(body)

        if frontmatter.get("workflow"):
            return [self._parse_workflow(sections, frontmatter, source_id)]

        if not sections:
            title = frontmatter.get("title") or self._file_tag(source_id)
            sections = [Section(level=1, title=title, line_start=0, lines=body.split("\n"))]

        return [
            self._parse_section(section, frontmatter, source_id)
            for section in sections
        ]

    def _parse_frontmatter(self, content: str) -> tuple[dict[str, Any], str]:
        """
        Parse YAML frontmatter from content.

        Args:
            content: Raw file content

        Returns:
            Tuple of (frontmatter dict, body content)
        """
        if not content.startswith("---"):
            return {}, content

        # Find the closing ---
        end_idx = content.find("\n---", 3)
        if end_idx == -1:
            return {}, content

        frontmatter_str = content[3:end_idx].strip()
        body = content[end_idx + 4:].lstrip("\n")

        try:
            frontmatter = yaml.safe_load(frontmatter_str) or {}
        except yaml.YAMLError as e:
            logger.warning(f"Failed to parse frontmatter: {e}")
            frontmatter = {}

        if not isinstance(frontmatter, dict):
            logger.warning("Frontmatter is not a mapping, ignoring it")
            frontmatter = {}

        return frontmatter, body

    def extract_sections(self, body: str) -> list[Section]:
        """Split a Markdown body at headings, ignoring headings inside fences."""
        sections: list[Section] = []
        current: Optional[Section] = None
        block: Optional[CodeBlock] = None

        for i, line in enumerate(body.split("\n")):
            heading = HEADING_PATTERN.match(line)
            if heading and block is None:
                current = Section(
                    level=len(heading.group(1)),
                    title=heading.group(2).strip(),
                    line_start=i,
                )
                sections.append(current)
                continue

            fence = FENCE_PATTERN.match(line)
            if fence:
                if block is None:
                    block = CodeBlock(
                        language=fence.group(1) or "text",
                        info=fence.group(2).strip(),
                        line_start=i,
                    )
                else:
                    if current is not None:
                        current.code_blocks.append(block)
                    block = None
            elif block is not None:
                block.code = f"{block.code}\n{line}" if block.code else line

            if current is not None:
                current.lines.append(line)

        return sections

    def _parse_workflow(
        self,
        sections: list[Section],
        frontmatter: dict[str, Any],
        source_id: str,
    ) -> ParsedContent:
        title = frontmatter.get("title") or self._file_tag(source_id)
        step_sections = [
            s for s in sections
            if 2 <= s.level <= 3 and STEP_TITLE_PATTERN.search(s.title)
        ]

        steps: list[WorkflowStep] = []
        for i, section in enumerate(step_sections):
            code = None
            if section.code_blocks:
                first = section.code_blocks[0]
                code = CodeExample(
                    language=first.language,
                    code=first.code,
                    explanation=first.info or f"Code for {section.title}",
                )

            next_steps = [step_sections[i + 1].title] if i + 1 < len(step_sections) else []
            steps.append(WorkflowStep(
                step=i + 1,
                title=section.title,
                description=self._step_description(section.content),
                code=code,
                prerequisites=self.extract_prerequisites(section.content),
                next_steps=next_steps,
            ))

        logger.debug(f"Extracted {len(steps)} workflow steps from {source_id}")

        return ParsedContent(
            type="example",
            name=title,
            description=frontmatter.get("description") or f"Step-by-step workflow: {title}",
            content=self._build_workflow_content(steps, frontmatter, title),
            metadata={
                "type": "tutorial",
                "namespace": frontmatter.get("category") or "workflows",
                "importance": self.determine_importance(frontmatter),
                "tags": self.build_tags(frontmatter, source_id),
                "source_file": source_id,
                "related_methods": self._related_methods(frontmatter),
                "dependencies": list(frontmatter.get("prerequisites") or []),
            },
            examples=[s.code for s in steps if s.code is not None],
            steps=steps,
        )

    def _parse_section(
        self,
        section: Section,
        frontmatter: dict[str, Any],
        source_id: str,
    ) -> ParsedContent:
        examples = [
            CodeExample(
                language=block.language,
                code=block.code,
                explanation=block.info or f"Example code from {section.title}",
                title=f"{section.title} - {block.language} example",
            )
            for block in section.code_blocks
        ]

        return ParsedContent(
            type="example",
            name=section.title,
            description=self._section_description(section.content),
            content=self._build_section_content(section, frontmatter),
            metadata={
                "type": "example",
                "namespace": frontmatter.get("category") or "general",
                "importance": self.determine_importance(frontmatter),
                "tags": self.build_tags(frontmatter, source_id),
                "source_file": source_id,
                "related_methods": self._related_methods(frontmatter),
                "use_cases": self.extract_use_cases(section.content),
                "line_number": section.line_start,
            },
            examples=examples,
        )

    @staticmethod
    def determine_importance(frontmatter: dict[str, Any]) -> str:
        difficulty = frontmatter.get("difficulty")
        if difficulty == "beginner":
            return "critical"
        if difficulty == "intermediate":
            return "high"
        if frontmatter.get("workflow"):
            return "high"
        return "medium"

    def build_tags(self, frontmatter: dict[str, Any], source_id: str) -> list[str]:
        """Collect frontmatter tags, category, difficulty, file and kind tags."""
        tags = [str(t) for t in frontmatter.get("tags") or []]
        for key in ("category", "difficulty"):
            if frontmatter.get(key):
                tags.append(str(frontmatter[key]))
        tags.append(self._file_tag(source_id))

        if frontmatter.get("workflow"):
            tags.extend(["workflow", "tutorial"])
        else:
            tags.extend(["example", "guide"])

        return merge_unique([], tags)

    @staticmethod
    def extract_prerequisites(content: str) -> list[str]:
        match = PREREQUISITE_PATTERN.search(content)
        if not match:
            return []
        return [p.strip() for p in re.split(r"[,;]", match.group(1)) if p.strip()]

    @staticmethod
    def extract_use_cases(content: str) -> list[str]:
        return [m.group(1).strip() for m in USE_CASE_PATTERN.finditer(content)]

    @staticmethod
    def _related_methods(frontmatter: dict[str, Any]) -> list[str]:
        related = frontmatter.get("related_methods") or frontmatter.get("relatedMethods") or []
        return [str(m) for m in related]

    @staticmethod
    def _file_tag(source_id: str) -> str:
        stem = re.sub(r"\.mdx?$", "", PurePath(source_id).name)
        return re.sub(r"[_-]", " ", stem).lower()

    @staticmethod
    def _prose_lines(content: str) -> list[str]:
        lines = []
        in_code = False
        for line in content.split("\n"):
            if line.startswith("```"):
                in_code = not in_code
                continue
            if in_code or line.startswith("#") or not line.strip():
                continue
            lines.append(line.strip())
        return lines

    def _step_description(self, content: str) -> str:
        text = " ".join(self._prose_lines(content)[:3])
        return text[:200] + "..." if len(text) > 200 else text

    def _section_description(self, content: str) -> str:
        lines = self._prose_lines(content)
        return lines[0] if lines else "Documentation section"

    def _build_workflow_content(
        self,
        steps: list[WorkflowStep],
        frontmatter: dict[str, Any],
        title: str,
    ) -> str:
        parts = [f"# {title}", "", frontmatter.get("description") or "Complete workflow tutorial"]
        if frontmatter.get("difficulty"):
            parts.append(f"**Difficulty:** {frontmatter['difficulty']}")
        if frontmatter.get("tags"):
            parts.append(f"**Tags:** {', '.join(str(t) for t in frontmatter['tags'])}")
        parts.extend(["", "## Overview", f"This tutorial is a step-by-step guide to {title.lower()}."])

        for step in steps:
            heading = step.title if STEP_TITLE_PATTERN.match(step.title) else f"Step {step.step}: {step.title}"
            parts.extend(["", f"## {heading}", "", step.description])
            if step.code:
                parts.extend([
                    "",
                    "### Code Example",
                    f"```{step.code.language}",
                    step.code.code,
                    "```",
                ])
            if step.prerequisites:
                parts.extend(["", "### Prerequisites"])
                parts.extend(f"- {p}" for p in step.prerequisites)

        return "\n".join(parts).strip()

    def _build_section_content(self, section: Section, frontmatter: dict[str, Any]) -> str:
        parts = [f"# {section.title}", ""]
        if frontmatter.get("difficulty"):
            parts.append(f"**Difficulty:** {frontmatter['difficulty']}")
        if frontmatter.get("category"):
            parts.append(f"**Category:** {frontmatter['category']}")
        parts.append(section.content)

        related = self._related_methods(frontmatter)
        if related:
            parts.extend(["", f"**Related methods:** {', '.join(related)}"])

        return "\n".join(parts).strip()
