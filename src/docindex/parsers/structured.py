"""Parser for structured (JSON) API reference specs."""

import json
from typing import Any

from ..base import BaseParser
from ..exceptions import ParseError
from ..models import CodeExample, Parameter, ParsedContent, ReturnValue, TypeInfo
from ..utils.logging import get_logger

logger = get_logger(__name__)

DEFAULT_SOURCE = "spec/out.js.json"


class StructuredSpecParser(BaseParser):
    """Walks a namespace -> class -> method/type tree.

    Expected shape::

        {
            "_meta": {...},
            "Core": [
                {"title": "...", "namespace": "Core", "content": [<class|type>, ...]}
            ]
        }

    Emits one ParsedContent per class, per method and per type.
    """

    CRITICAL_CLASSES = ("Endpoint", "Connection")
    CRITICAL_CLASS_MARKERS = ("setup", "connect", "createThreadApi", "createStoreApi")
    CRITICAL_METHODS = ("setup", "connect", "create", "get")
    HIGH_METHODS = ("list", "update", "delete")

    COMMON_MISTAKES = {
        "setup": ["Forgetting to await", "Missing WASM assets path"],
        "connect": ["Invalid private key format", "Wrong bridge URL"],
        "createThread": ["Empty users array", "Missing manager permissions"],
        "sendMessage": ["Data not serialized", "Missing thread access"],
    }

    USE_CASES = {
        "setup": ["Application initialization", "Library configuration"],
        "connect": ["User authentication", "Bridge connection"],
        "createThread": ["Group messaging", "Collaborative workspace"],
        "sendMessage": ["Chat messages", "Notifications"],
    }

    METHOD_CONTEXTS = {
        "setup": "application initialization and library preparation",
        "connect": "establishing a secure connection to the bridge",
        "createThread": "setting up encrypted communication channels",
        "sendMessage": "real-time messaging and data exchange",
    }

    def parse(self, raw: Any, source_id: str = DEFAULT_SOURCE) -> list[ParsedContent]:
        """Parse a JSON spec string or an already-decoded dict."""
        if raw is None or (isinstance(raw, str) and not raw.strip()):
            return []

        if isinstance(raw, (str, bytes)):
            try:
                spec = json.loads(raw)
            except json.JSONDecodeError as e:
                raise ParseError(source_id, f"invalid JSON: {e}") from e
        else:
            spec = raw

        if not isinstance(spec, dict):
            raise ParseError(source_id, "spec root must be an object")

        results: list[ParsedContent] = []
        for namespace, sections in spec.items():
            if namespace == "_meta":
                continue
            if not isinstance(sections, list):
                logger.debug(f"Skipping non-list namespace entry: {namespace}")
                continue

            for section in sections:
                if not isinstance(section, dict):
                    raise ParseError(source_id, f"section in '{namespace}' is not an object")
                for item in section.get("content") or []:
                    try:
                        results.extend(self._parse_item(item, namespace, source_id))
                    except (KeyError, TypeError, AttributeError, ValueError) as e:
                        raise ParseError(source_id, f"malformed item in '{namespace}': {e}") from e

        logger.info(f"Parsed {len(results)} units from {source_id}")
        return results

    def _parse_item(
        self,
        item: Any,
        namespace: str,
        source_id: str,
    ) -> list[ParsedContent]:
        if not isinstance(item, dict) or "name" not in item:
            raise ParseError(source_id, f"malformed item in '{namespace}'")

        item_type = item.get("type")
        if item_type == "class":
            return self._parse_class(item, namespace, source_id)
        if item_type == "type":
            return [self._parse_type(item, namespace, source_id)]

        logger.debug(f"Skipping unsupported item type {item_type!r} in {namespace}")
        return []

    def _parse_class(
        self,
        item: dict[str, Any],
        namespace: str,
        source_id: str,
    ) -> list[ParsedContent]:
        name = item["name"]
        methods = item.get("methods") or []

        results = [ParsedContent(
            type="class",
            name=name,
            description=item.get("description", ""),
            content=self._build_class_content(item, namespace),
            metadata={
                "type": "class",
                "namespace": namespace,
                "class_name": name,
                "importance": self.class_importance(name, namespace),
                "tags": [namespace.lower(), "class", name.lower()],
                "source_file": source_id,
            },
        )]

        for method in methods:
            if not isinstance(method, dict) or "name" not in method:
                raise ParseError(source_id, f"malformed method in class '{name}'")
            self._check_method_shape(method, name, source_id)
            results.append(self._parse_method(method, name, namespace, source_id))

        return results

    @staticmethod
    def _check_method_shape(method: dict[str, Any], class_name: str, source_id: str) -> None:
        """Raise ParseError unless params and returns are lists of objects."""
        owner = f"{class_name}.{method['name']}"
        for field_name in ("params", "returns"):
            entries = method.get(field_name) or []
            if not isinstance(entries, list):
                raise ParseError(source_id, f"'{field_name}' of {owner} is not a list")
            for entry in entries:
                if not isinstance(entry, dict):
                    raise ParseError(source_id, f"entry in '{field_name}' of {owner} is not an object")
                if field_name == "params" and not entry.get("name"):
                    raise ParseError(source_id, f"parameter of {owner} has no name")
                if entry.get("type") is not None and not isinstance(entry["type"], dict):
                    raise ParseError(source_id, f"type in '{field_name}' of {owner} is not an object")

    def _parse_method(
        self,
        method: dict[str, Any],
        class_name: str,
        namespace: str,
        source_id: str,
    ) -> ParsedContent:
        method_name = method["name"]
        params = method.get("params") or []
        returns = method.get("returns") or []

        parameters = [
            Parameter(
                name=p["name"],
                description=p.get("description", ""),
                type=TypeInfo(
                    name=(p.get("type") or {}).get("name", "unknown"),
                    optional=bool((p.get("type") or {}).get("optional", False)),
                ),
            )
            for p in params
        ]
        return_values = [
            ReturnValue(
                type=(r.get("type") or {}).get("name", "unknown"),
                description=r.get("description", ""),
            )
            for r in returns
        ]

        example = CodeExample(
            language="javascript",
            code=self._generate_example(method, class_name),
            explanation=f"Basic usage of {class_name}.{method_name}()",
            title=f"{method_name} Example",
        )

        return ParsedContent(
            type="method",
            name=f"{class_name}.{method_name}",
            description=method.get("description", ""),
            content=self._build_method_content(method, class_name),
            metadata={
                "type": "method",
                "namespace": namespace,
                "class_name": class_name,
                "method_name": method_name,
                "importance": self.method_importance(method_name),
                "tags": [namespace.lower(), "method", class_name.lower(), method_name.lower()],
                "source_file": source_id,
                "dependencies": self._extract_dependencies(params),
                "common_mistakes": list(self.COMMON_MISTAKES.get(method_name, [])),
                "use_cases": list(self.USE_CASES.get(method_name, [f"{class_name} operations"])),
            },
            parameters=parameters,
            returns=return_values,
            examples=[example],
        )

    def _parse_type(
        self,
        item: dict[str, Any],
        namespace: str,
        source_id: str,
    ) -> ParsedContent:
        name = item["name"]
        return ParsedContent(
            type="type",
            name=name,
            description=item.get("description", ""),
            content=self._build_type_content(item),
            metadata={
                # Chunks have no "type" kind; type definitions index as classes.
                "type": "class",
                "namespace": namespace,
                "class_name": name,
                "importance": "medium",
                "tags": [namespace.lower(), "type", name.lower()],
                "source_file": source_id,
            },
        )

    def class_importance(self, name: str, namespace: str) -> str:
        """Importance rule for classes."""
        if name in self.CRITICAL_CLASSES:
            return "critical"
        if any(marker in name for marker in self.CRITICAL_CLASS_MARKERS):
            return "critical"
        if namespace == "Core":
            return "high"
        return "medium"

    def method_importance(self, method_name: str) -> str:
        """Importance rule for methods."""
        lowered = method_name.lower()
        if any(m in lowered for m in self.CRITICAL_METHODS):
            return "critical"
        if any(m in lowered for m in self.HIGH_METHODS):
            return "high"
        return "medium"

    def _build_class_content(self, item: dict[str, Any], namespace: str) -> str:
        methods = "\n".join(f"- {m.get('name')}()" for m in item.get("methods") or [])
        lines = [
            f"# {item['name']}",
            "",
            item.get("description", ""),
            "",
            "## Methods",
            methods or "No methods",
            "",
            f"## Namespace: {namespace}",
        ]
        return "\n".join(lines).strip()

    def _build_method_content(self, method: dict[str, Any], class_name: str) -> str:
        params = "\n".join(
            f"- `{p['name']}` ({self._type_label(p.get('type'))}): {p.get('description', '')}"
            for p in method.get("params") or []
        )
        returns = "\n".join(
            f"- {(r.get('type') or {}).get('name', 'unknown')}: {r.get('description', '')}"
            for r in method.get("returns") or []
        )
        context = self.METHOD_CONTEXTS.get(
            method["name"], f"{class_name} management operations"
        )

        lines = [
            f"# {class_name}.{method['name']}()",
            "",
            method.get("description", ""),
            "",
            "## Signature",
            "```javascript",
            method.get("snippet") or f"{method['name']}()",
            "```",
            "",
            "## Parameters",
            params or "No parameters",
            "",
            "## Returns",
            returns or "void",
            "",
            f"## Method Type: {method.get('methodType', 'method')}",
            "",
            "## Common Usage Pattern",
            f"This method is typically used in the context of {context}.",
        ]
        return "\n".join(lines).strip()

    def _build_type_content(self, item: dict[str, Any]) -> str:
        fields = "\n".join(
            f"- `{f['name']}` ({self._type_label(f.get('type'))}): {f.get('description', '')}"
            for f in item.get("fields") or []
            if isinstance(f, dict) and "name" in f
        )
        lines = [
            f"# {item['name']}",
            "",
            item.get("description", ""),
            "",
            "## Type Definition",
            "```typescript",
            item.get("snippet") or f"type {item['name']}",
            "```",
            "",
            "## Fields",
            fields or "No fields defined",
        ]
        return "\n".join(lines).strip()

    @staticmethod
    def _type_label(type_info: Any) -> str:
        if not isinstance(type_info, dict):
            return "unknown"
        suffix = "?" if type_info.get("optional") else ""
        return f"{type_info.get('name', 'unknown')}{suffix}"

    @staticmethod
    def _extract_dependencies(params: list[dict[str, Any]]) -> list[str]:
        deps: list[str] = []
        for param in params:
            type_name = (param.get("type") or {}).get("name", "")
            if type_name == "Connection":
                deps.append("Endpoint.connect()")
            if "Api" in type_name:
                deps.append(f"Endpoint.create{type_name}()")
        return deps

    @staticmethod
    def _generate_example(method: dict[str, Any], class_name: str) -> str:
        args = []
        for p in method.get("params") or []:
            type_name = (p.get("type") or {}).get("name", "")
            if type_name == "string":
                args.append(f'"{p["name"]}"')
            elif type_name == "number":
                args.append("0")
            elif type_name == "boolean":
                args.append("true")
            elif "[]" in type_name:
                args.append("[]")
            else:
                args.append(p["name"])

        prefix = "const result = " if method.get("returns") else ""
        await_prefix = "await " if method.get("methodType", "method") == "method" else ""
        return f"{prefix}{await_prefix}{class_name}.{method['name']}({', '.join(args)});"
