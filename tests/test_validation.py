"""Tests for input validation of diagram payloads."""

import pytest

from traverse_mcp.validation import (
    ValidationError,
    validate_diagram_fields,
    validate_diagram_payload,
    validate_dict,
    validate_link_dict,
    validate_node_dict,
    validate_nodes,
    validate_non_empty_string,
    validate_shared_url_payload,
    validate_string,
    validate_url,
)

DEMO = {
    "code": "flowchart TB\nA-->B",
    "summary": "demo",
    "nodes": {
        "A": {"title": "A", "description": "desc"},
        "B": {"title": "B", "description": "desc"},
    },
}


# ===================================================================
# Unit tests for primitive validators
# ===================================================================


class TestValidateNonEmptyString:
    def test_valid(self) -> None:
        assert validate_non_empty_string("hello", "f") == "hello"

    def test_strips_whitespace(self) -> None:
        assert validate_non_empty_string("  hi  ", "f") == "hi"

    def test_whitespace_only(self) -> None:
        with pytest.raises(ValidationError, match="non-empty"):
            validate_non_empty_string("   ", "field")

    def test_none(self) -> None:
        with pytest.raises(ValidationError, match="non-empty"):
            validate_non_empty_string(None, "field")


class TestValidateString:
    def test_empty_allowed(self) -> None:
        assert validate_string("", "f") == ""

    def test_empty_rejected(self) -> None:
        with pytest.raises(ValidationError, match="must not be empty"):
            validate_string(" ", "f", allow_empty=False)

    def test_wrong_type(self) -> None:
        with pytest.raises(ValidationError, match="must be a string, got int"):
            validate_string(3, "f")


class TestValidateDict:
    def test_list_rejected(self) -> None:
        with pytest.raises(ValidationError, match="dict/object"):
            validate_dict([], "nodes")


class TestValidateUrl:
    def test_https(self) -> None:
        assert validate_url("https://traverse.dunkirk.sh/diagram/x", "url")

    def test_javascript_rejected(self) -> None:
        with pytest.raises(ValidationError, match="http"):
            validate_url("javascript:alert(1)", "url")


# ===================================================================
# Diagram payloads
# ===================================================================


class TestValidateNodes:
    def test_minimal_node(self) -> None:
        meta = validate_node_dict({"title": "A", "description": ""}, "A")
        assert meta.title == "A"
        assert meta.links is None
        assert meta.code_snippet is None

    def test_links_and_snippet(self) -> None:
        meta = validate_node_dict({
            "title": "A",
            "description": "d",
            "links": [{"label": "a.py:1", "url": "file:///a.py"}],
            "codeSnippet": "x = 1",
        }, "A")
        assert meta.links[0].label == "a.py:1"
        assert meta.code_snippet == "x = 1"

    def test_missing_title(self) -> None:
        with pytest.raises(ValidationError, match="missing required key 'title'"):
            validate_node_dict({"description": "d"}, "A")

    def test_bad_link(self) -> None:
        with pytest.raises(ValidationError, match="link at index 0 missing required key 'url'"):
            validate_link_dict({"label": "x"}, "A", 0)

    def test_links_must_be_list(self) -> None:
        with pytest.raises(ValidationError, match="must be a list"):
            validate_node_dict({"title": "A", "description": "d", "links": "x"}, "A")

    def test_snippet_must_be_string(self) -> None:
        with pytest.raises(ValidationError, match="codeSnippet"):
            validate_node_dict({"title": "A", "description": "d", "codeSnippet": 1}, "A")

    def test_empty_key_rejected(self) -> None:
        with pytest.raises(ValidationError, match="Node keys"):
            validate_nodes({"": {"title": "A", "description": "d"}})


class TestValidateDiagramPayload:
    def test_valid(self) -> None:
        d = validate_diagram_payload(DEMO)
        assert d.summary == "demo"
        assert set(d.nodes) == {"A", "B"}
        assert d.created_at == ""

    def test_missing_nodes(self) -> None:
        payload = {k: v for k, v in DEMO.items() if k != "nodes"}
        with pytest.raises(ValidationError, match="Missing required fields: nodes"):
            validate_diagram_payload(payload)

    def test_all_missing_reported_together(self) -> None:
        with pytest.raises(ValidationError, match="code, summary, nodes"):
            validate_diagram_payload({})

    def test_not_an_object(self) -> None:
        with pytest.raises(ValidationError, match="JSON object"):
            validate_diagram_payload(["code"])

    def test_extra_keys_ignored(self) -> None:
        d = validate_diagram_payload({**DEMO, "createdAt": "forged", "id": "x"})
        assert d.created_at == ""

    def test_empty_code_rejected(self) -> None:
        with pytest.raises(ValidationError, match="'code'"):
            validate_diagram_fields("  ", "s", {})

    def test_summary_kept_verbatim(self) -> None:
        d = validate_diagram_fields("flowchart TB\nA", "  padded  ", {})
        assert d.summary == "  padded  "

    def test_blank_summary_rejected(self) -> None:
        with pytest.raises(ValidationError, match="'summary'"):
            validate_diagram_fields("flowchart TB\nA", "   ", {})


class TestValidateSharedUrlPayload:
    def test_valid(self) -> None:
        assert validate_shared_url_payload({"url": "https://x.dev/diagram/1"}) == "https://x.dev/diagram/1"

    def test_missing(self) -> None:
        with pytest.raises(ValidationError, match="url"):
            validate_shared_url_payload({})
