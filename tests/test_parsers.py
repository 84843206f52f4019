"""Tests for the structured and narrative parsers."""

import json

import pytest

from docindex.exceptions import ParseError
from docindex.parsers import NarrativeParser, StructuredSpecParser


class TestStructuredSpecParser:
    """Tests for StructuredSpecParser."""

    def test_parse_emits_class_methods_and_types(self, spec_json):
        """Test one unit per class, method and type."""
        units = StructuredSpecParser().parse(spec_json, "spec/out.js.json")

        assert [u.type for u in units] == ["class", "method", "method", "type"]
        assert [u.name for u in units] == [
            "ThreadApi",
            "ThreadApi.createThread",
            "ThreadApi.listThreads",
            "ThreadInfo",
        ]

    def test_meta_is_skipped(self, spec_dict):
        """Test that the _meta entry produces nothing."""
        units = StructuredSpecParser().parse({"_meta": {"version": "1"}})
        assert units == []

    def test_method_metadata(self, spec_dict):
        """Test method metadata, parameters and returns."""
        units = StructuredSpecParser().parse(spec_dict, "spec/out.js.json")
        method = units[1]

        assert method.metadata["class_name"] == "ThreadApi"
        assert method.metadata["method_name"] == "createThread"
        assert method.metadata["namespace"] == "Threads"
        assert method.metadata["importance"] == "critical"
        assert method.metadata["source_file"] == "spec/out.js.json"
        assert [p.name for p in method.parameters] == ["contextId", "users"]
        assert method.parameters[1].type.name == "UserWithPubKey[]"
        assert method.returns[0].type == "string"
        assert "## Signature" in method.content
        assert "createThread(contextId, users, managers)" in method.content

    def test_generated_example(self, spec_dict):
        """Test the generated usage example."""
        units = StructuredSpecParser().parse(spec_dict)
        example = units[1].examples[0]

        assert example.code == 'const result = await ThreadApi.createThread("contextId", []);'

    def test_type_indexes_as_class(self, spec_dict):
        """Test that type definitions carry class metadata."""
        units = StructuredSpecParser().parse(spec_dict)
        type_unit = units[-1]

        assert type_unit.type == "type"
        assert type_unit.metadata["type"] == "class"
        assert "`threadId` (string): ID" in type_unit.content

    def test_importance_rules(self):
        """Test class and method importance."""
        parser = StructuredSpecParser()

        assert parser.class_importance("Connection", "Core") == "critical"
        assert parser.class_importance("Endpoint", "Core") == "critical"
        assert parser.class_importance("EventQueue", "Core") == "high"
        assert parser.class_importance("StoreApi", "Stores") == "medium"
        assert parser.method_importance("getThread") == "critical"
        assert parser.method_importance("deleteThread") == "high"
        assert parser.method_importance("subscribeFor") == "medium"

    def test_empty_input(self):
        """Test that empty input yields no units."""
        assert StructuredSpecParser().parse("") == []
        assert StructuredSpecParser().parse(None) == []

    def test_invalid_json_raises(self):
        """Test malformed JSON raises ParseError."""
        with pytest.raises(ParseError) as exc_info:
            StructuredSpecParser().parse("{not json", "broken.json")

        assert exc_info.value.source_id == "broken.json"
        assert exc_info.value.code == 1001

    def test_non_object_root_raises(self):
        """Test a non-object root raises ParseError."""
        with pytest.raises(ParseError):
            StructuredSpecParser().parse(json.dumps([1, 2, 3]))

    def test_malformed_item_raises(self):
        """Test an item without a name raises ParseError."""
        spec = {"Core": [{"content": [{"type": "class"}]}]}
        with pytest.raises(ParseError):
            StructuredSpecParser().parse(spec)

    @pytest.mark.parametrize(
        "params",
        [
            [{"description": "no name", "type": {"name": "string"}}],
            [{"name": "contextId", "type": "string"}],
            ["contextId"],
            "contextId",
        ],
    )
    def test_malformed_params_raise(self, spec_dict, params):
        """Test bad parameter shapes raise ParseError instead of leaking."""
        spec_dict["Threads"][0]["content"][0]["methods"][0]["params"] = params

        with pytest.raises(ParseError) as exc_info:
            StructuredSpecParser().parse(spec_dict, "bad.json")

        assert exc_info.value.source_id == "bad.json"
        assert "ThreadApi.createThread" in str(exc_info.value)

    def test_malformed_returns_raise(self, spec_dict):
        """Test a non-object return type raises ParseError."""
        spec_dict["Threads"][0]["content"][0]["methods"][0]["returns"] = [{"type": "string"}]

        with pytest.raises(ParseError):
            StructuredSpecParser().parse(spec_dict, "bad.json")

    def test_non_string_name_raises(self):
        """Test leftover shape errors surface as ParseError."""
        spec = {"Core": [{"content": [{"type": "class", "name": 42}]}]}

        with pytest.raises(ParseError) as exc_info:
            StructuredSpecParser().parse(spec, "bad.json")

        assert exc_info.value.code == 1001

    def test_parse_file(self, tmp_path, spec_json):
        """Test parsing from a file uses its name as source."""
        path = tmp_path / "out.js.json"
        path.write_text(spec_json)

        units = StructuredSpecParser().parse_file(path)
        assert units[0].metadata["source_file"] == "out.js.json"


class TestNarrativeParser:
    """Tests for NarrativeParser."""

    def test_workflow_with_three_steps(self, workflow_markdown):
        """Test a workflow document parses to one unit with ordered steps."""
        units = NarrativeParser().parse(workflow_markdown, "first-message.md")

        assert len(units) == 1
        unit = units[0]
        assert unit.type == "example"
        assert unit.name == "Send Your First Message"
        assert [s.step for s in unit.steps] == [1, 2, 3]
        assert [s.title for s in unit.steps] == [
            "Step 1: Connect to the Bridge",
            "Step 2: Create a Thread",
            "Step 3: Send a Message",
        ]

    def test_workflow_step_details(self, workflow_markdown):
        """Test step code, prerequisites and next steps."""
        unit = NarrativeParser().parse(workflow_markdown, "first-message.md")[0]
        first, second, third = unit.steps

        assert first.code is not None
        assert first.code.language == "typescript"
        assert "Endpoint.connect" in first.code.code
        assert first.prerequisites == ["bridge URL", "private key"]
        assert first.next_steps == ["Step 2: Create a Thread"]
        assert third.code is None
        assert third.next_steps == []
        assert len(unit.examples) == 2

    def test_workflow_metadata(self, workflow_markdown):
        """Test workflow metadata from frontmatter."""
        unit = NarrativeParser().parse(workflow_markdown, "first-message.md")[0]

        assert unit.metadata["type"] == "tutorial"
        assert unit.metadata["namespace"] == "Threads"
        assert unit.metadata["importance"] == "critical"
        assert "workflow" in unit.metadata["tags"]
        assert "first message" in unit.metadata["tags"]
        assert "## Step 3: Send a Message" in unit.content

    def test_sections_become_units(self, guide_markdown):
        """Test one example unit per heading section."""
        units = NarrativeParser().parse(guide_markdown, "stores-guide.md")

        assert [u.name for u in units] == ["Working with Stores", "Uploading Files"]
        assert all(u.type == "example" for u in units)
        assert units[0].metadata["namespace"] == "Stores"
        assert units[0].metadata["importance"] == "high"
        assert units[0].metadata["use_cases"] == ["sharing documents with a team."]
        assert units[0].examples[0].language == "typescript"
        assert units[0].description.startswith("Stores hold files.")

    def test_document_without_headings(self):
        """Test a body without headings becomes a single unit."""
        units = NarrativeParser().parse("Just some text about threads.", "notes.md")

        assert len(units) == 1
        assert units[0].name == "notes"

    def test_headings_inside_code_fences_are_ignored(self):
        """Test fenced headings do not start sections."""
        text = "# Real\n\n```bash\n# not a heading\n```\n\nBody."
        sections = NarrativeParser().extract_sections(text)

        assert [s.title for s in sections] == ["Real"]
        assert sections[0].code_blocks[0].code == "# not a heading"

    def test_invalid_frontmatter_is_ignored(self):
        """Test malformed YAML frontmatter degrades to no frontmatter."""
        text = "---\n: [unclosed\n---\n# Title\n\nBody text."
        units = NarrativeParser().parse(text, "doc.md")

        assert units[0].name == "Title"
        assert units[0].metadata["namespace"] == "general"

    def test_empty_input(self):
        """Test that empty input yields no units."""
        assert NarrativeParser().parse("   ", "empty.md") == []
