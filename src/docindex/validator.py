"""
Content validator - enforces structural rules before indexing.
"""

from dataclasses import dataclass, field
from typing import Any, Literal, Optional

from docindex.exceptions import ValidationError
from docindex.models import (
    CHUNK_TYPES,
    CONTENT_TYPES,
    IMPORTANCE_LEVELS,
    DocumentChunk,
    ParsedContent,
)
from docindex.utils.logging import get_logger

logger = get_logger(__name__)

Severity = Literal["critical", "high"]

ARRAY_FIELDS = ("tags", "related_methods", "dependencies", "common_mistakes", "use_cases")


@dataclass
class ValidationIssue:
    field: str
    message: str
    severity: Optional[Severity] = None
    suggestion: Optional[str] = None

    def __str__(self) -> str:
        return f"{self.field}: {self.message}"


class ValidationResult:
    """Result of validating one unit or a batch."""

    def __init__(self, name: str = ""):
        self.name = name
        self.errors: list[ValidationIssue] = []
        self.warnings: list[ValidationIssue] = []

    @property
    def is_valid(self) -> bool:
        return len(self.errors) == 0

    def add_error(self, field: str, message: str, severity: Severity = "critical") -> None:
        self.errors.append(ValidationIssue(field, message, severity=severity))
        logger.error(f"Validation error: {field}: {message}")

    def add_warning(self, field: str, message: str, suggestion: Optional[str] = None) -> None:
        self.warnings.append(ValidationIssue(field, message, suggestion=suggestion))
        logger.warning(f"Validation warning: {field}: {message}")

    def merge(self, other: "ValidationResult") -> None:
        self.errors.extend(other.errors)
        self.warnings.extend(other.warnings)

    def raise_for_errors(self) -> None:
        """Raise ValidationError if any structural error was recorded."""
        if self.errors:
            raise ValidationError(self.name or "content", self.errors)

    def __str__(self) -> str:
        lines = []

        if self.errors:
            lines.append("Errors:")
            for e in self.errors:
                lines.append(f"  - [{e.severity}] {e}")

        if self.warnings:
            lines.append("Warnings:")
            for w in self.warnings:
                lines.append(f"  - {w}")

        if not lines:
            lines.append("Validation passed!")

        return "\n".join(lines)


@dataclass
class BatchValidationResult:
    """Valid units pass through; invalid ones are excluded individually."""

    valid: list[ParsedContent] = field(default_factory=list)
    invalid: list[tuple[Any, ValidationResult]] = field(default_factory=list)
    results: list[ValidationResult] = field(default_factory=list)

    @property
    def error_count(self) -> int:
        return sum(len(r.errors) for r in self.results)

    @property
    def warning_count(self) -> int:
        return sum(len(r.warnings) for r in self.results)

    def summary(self) -> str:
        total = len(self.valid) + len(self.invalid)
        return (
            f"Validated {total} units: {len(self.valid)} valid, "
            f"{len(self.invalid)} invalid, {self.error_count} errors, "
            f"{self.warning_count} warnings"
        )


class ContentValidator:
    """
    Validates parsed content, chunks and workflows.

    Structural problems are errors and exclude only the offending unit.
    Quality heuristics are warnings and never block indexing.
    """

    MIN_NAME_LENGTH = 2
    MIN_DESCRIPTION_LENGTH = 10
    MIN_CONTENT_LENGTH = 20
    MIN_EXAMPLE_CODE_LENGTH = 10

    def validate(self, unit: ParsedContent | dict[str, Any], prefix: str = "") -> ValidationResult:
        """
        Validate a single content unit.

        Args:
            unit: ParsedContent or an equivalent plain dict
            prefix: Field path prefix used in messages

        Returns:
            ValidationResult with any errors or warnings
        """
        data = unit.model_dump() if isinstance(unit, ParsedContent) else unit
        result = ValidationResult(name=str(data.get("name", "")) if isinstance(data, dict) else "")

        if not isinstance(data, dict):
            result.add_error(prefix or "unit", "Content unit must be an object")
            return result

        name = data.get("name")
        if not name or not isinstance(name, str):
            result.add_error(f"{prefix}.name", "Name is required and must be a string")
        elif len(name) < self.MIN_NAME_LENGTH:
            result.add_warning(
                f"{prefix}.name", "Name is too short",
                "Names should be at least 2 characters long",
            )

        if data.get("type") not in CONTENT_TYPES:
            result.add_error(
                f"{prefix}.type",
                f"Type must be one of: {', '.join(CONTENT_TYPES)}",
            )

        description = data.get("description")
        if description is not None and not isinstance(description, str):
            result.add_error(f"{prefix}.description", "Description must be a string", "high")
        elif not description or len(description) < self.MIN_DESCRIPTION_LENGTH:
            result.add_warning(
                f"{prefix}.description", "Description is very short",
                "Consider adding more descriptive information",
            )

        content = data.get("content")
        if not content or not isinstance(content, str):
            result.add_error(f"{prefix}.content", "Content is required and must be a string")
        elif len(content) < self.MIN_CONTENT_LENGTH:
            result.add_warning(
                f"{prefix}.content", "Content is very short",
                "Content should provide substantial information",
            )

        metadata = data.get("metadata")
        if not isinstance(metadata, dict):
            result.add_error(f"{prefix}.metadata", "Metadata is required")
        else:
            self._validate_metadata(metadata, f"{prefix}.metadata", result)

        self._validate_examples(data.get("examples"), f"{prefix}.examples", result)
        self._validate_parameters(data.get("parameters"), f"{prefix}.parameters", result)
        self._validate_returns(data.get("returns"), f"{prefix}.returns", result)

        if data.get("steps"):
            result.merge(self.validate_workflow(data))

        return result

    def validate_batch(self, units: list[Any]) -> BatchValidationResult:
        """
        Validate many units, separating valid from invalid ones.

        Args:
            units: ParsedContent instances or plain dicts

        Returns:
            BatchValidationResult; dict units that pass are coerced to ParsedContent
        """
        batch = BatchValidationResult()

        for index, unit in enumerate(units):
            result = self.validate(unit, prefix=f"[{index}]")
            batch.results.append(result)

            if not result.is_valid:
                batch.invalid.append((unit, result))
                logger.error(f"Excluding invalid unit {result.name or index}")
                continue

            if isinstance(unit, ParsedContent):
                batch.valid.append(unit)
            else:
                try:
                    batch.valid.append(ParsedContent.model_validate(unit))
                except ValueError as e:
                    result.add_error(f"[{index}]", f"Could not build content unit: {e}")
                    batch.invalid.append((unit, result))

        logger.info(batch.summary())
        return batch

    def validate_chunk(self, chunk: DocumentChunk | dict[str, Any]) -> ValidationResult:
        """Validate a document chunk's id, content and metadata."""
        data = chunk.model_dump() if isinstance(chunk, DocumentChunk) else chunk
        result = ValidationResult(name=str(data.get("id", "")))

        if not data.get("id") or not isinstance(data.get("id"), str):
            result.add_error("id", "Chunk id is required and must be a string")

        content = data.get("content")
        if not content or not isinstance(content, str):
            result.add_error("content", "Chunk content is required and must be a string")
        elif len(content) < self.MIN_CONTENT_LENGTH:
            result.add_warning("content", "Chunk content is very short")

        metadata = data.get("metadata")
        if not isinstance(metadata, dict):
            result.add_error("metadata", "Chunk metadata is required")
        else:
            self._validate_metadata(metadata, "metadata", result, require_type=True)

        embedding = data.get("embedding")
        if embedding is not None:
            if not isinstance(embedding, list) or not all(
                isinstance(v, (int, float)) for v in embedding
            ):
                result.add_error("embedding", "Embedding must be a list of numbers", "high")

        return result

    def validate_workflow(self, unit: ParsedContent | dict[str, Any]) -> ValidationResult:
        """Check that workflow steps are numbered 1..N with non-empty titles."""
        data = unit.model_dump() if isinstance(unit, ParsedContent) else unit
        result = ValidationResult(name=str(data.get("name", "")))

        steps = data.get("steps")
        if not isinstance(steps, list):
            result.add_error("steps", "Workflow steps must be an array")
            return result

        if not steps:
            result.add_warning("steps", "Workflow has no steps")

        for expected, step in enumerate(steps, start=1):
            field_name = f"steps[{expected - 1}]"
            if not isinstance(step, dict):
                result.add_error(field_name, "Step must be an object")
                continue
            if step.get("step") != expected:
                result.add_error(
                    f"{field_name}.step",
                    f"Step number {step.get('step')} out of sequence, expected {expected}",
                    "high",
                )
            if not step.get("title"):
                result.add_error(f"{field_name}.title", "Step title is required", "high")
            if not step.get("description"):
                result.add_warning(f"{field_name}.description", "Step has no description")

        return result

    def _validate_metadata(
        self,
        metadata: dict[str, Any],
        prefix: str,
        result: ValidationResult,
        require_type: bool = False,
    ) -> None:
        meta_type = metadata.get("type")
        if meta_type is None:
            if require_type:
                result.add_error(f"{prefix}.type", "Metadata type is required")
        elif meta_type not in CHUNK_TYPES:
            result.add_error(
                f"{prefix}.type",
                f"Metadata type must be one of: {', '.join(CHUNK_TYPES)}",
            )

        namespace = metadata.get("namespace")
        if namespace is not None and not isinstance(namespace, str):
            result.add_error(f"{prefix}.namespace", "Namespace must be a string", "high")
        elif not namespace:
            result.add_warning(f"{prefix}.namespace", "Namespace is missing")

        importance = metadata.get("importance")
        if importance is not None and importance not in IMPORTANCE_LEVELS:
            result.add_error(
                f"{prefix}.importance",
                f"Importance must be one of: {', '.join(IMPORTANCE_LEVELS)}",
            )

        for array_field in ARRAY_FIELDS:
            value = metadata.get(array_field)
            if value is not None and not isinstance(value, list):
                result.add_error(f"{prefix}.{array_field}", f"{array_field} must be an array", "high")

        tags = metadata.get("tags")
        if not tags and not isinstance(tags, str):
            result.add_warning(
                f"{prefix}.tags", "No tags provided",
                "Tags improve search relevance",
            )

        if not metadata.get("source_file"):
            result.add_warning(f"{prefix}.source_file", "Source file is missing")

        if meta_type == "method" and not (metadata.get("class_name") and metadata.get("method_name")):
            result.add_warning(
                prefix, "Method metadata should include class_name and method_name",
            )

    def _validate_examples(self, examples: Any, prefix: str, result: ValidationResult) -> None:
        if examples is None:
            return
        if not isinstance(examples, list):
            result.add_error(prefix, "Examples must be an array", "high")
            return

        for i, example in enumerate(examples):
            if not isinstance(example, dict) or not isinstance(example.get("code"), str):
                result.add_error(f"{prefix}[{i}].code", "Example code is required", "high")
                continue
            if len(example["code"]) < self.MIN_EXAMPLE_CODE_LENGTH:
                result.add_warning(f"{prefix}[{i}].code", "Example code is very short")
            if not example.get("language"):
                result.add_warning(f"{prefix}[{i}].language", "Example language is missing")

    def _validate_parameters(self, parameters: Any, prefix: str, result: ValidationResult) -> None:
        if parameters is None:
            return
        if not isinstance(parameters, list):
            result.add_error(prefix, "Parameters must be an array", "high")
            return

        for i, param in enumerate(parameters):
            if not isinstance(param, dict) or not param.get("name"):
                result.add_error(f"{prefix}[{i}].name", "Parameter name is required", "high")
                continue
            self._validate_type_info(param.get("type"), f"{prefix}[{i}].type", result)
            if not param.get("description"):
                result.add_warning(f"{prefix}[{i}].description", "Parameter has no description")

    def _validate_returns(self, returns: Any, prefix: str, result: ValidationResult) -> None:
        if returns is None:
            return
        if not isinstance(returns, list):
            result.add_error(prefix, "Returns must be an array", "high")
            return

        for i, ret in enumerate(returns):
            if not isinstance(ret, dict):
                result.add_error(f"{prefix}[{i}]", "Return value must be an object", "high")
                continue
            type_value = ret.get("type")
            if isinstance(type_value, dict):
                self._validate_type_info(type_value, f"{prefix}[{i}].type", result)
            elif not isinstance(type_value, str) or not type_value:
                result.add_error(f"{prefix}[{i}].type", "Return type is required", "high")

    @staticmethod
    def _validate_type_info(type_info: Any, prefix: str, result: ValidationResult) -> None:
        if not isinstance(type_info, dict):
            result.add_error(prefix, "Type information is required", "high")
            return
        if not isinstance(type_info.get("name"), str) or not type_info.get("name"):
            result.add_error(f"{prefix}.name", "Type name must be a string", "high")
        if not isinstance(type_info.get("optional", False), bool):
            result.add_error(f"{prefix}.optional", "Type optional flag must be a boolean", "high")
