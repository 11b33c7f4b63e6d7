"""
Input validation for walkthrough diagram payloads.

Provides reusable validators that produce clear error messages for payloads
received from MCP tool callers and from the HTTP API.
"""

from __future__ import annotations

import re
from typing import Any

from traverse_mcp.models import NodeLink, NodeMetadata, WalkthroughDiagram


# ---------------------------------------------------------------------------
# Validation result
# ---------------------------------------------------------------------------

class ValidationError(Exception):
    """Raised when input validation fails."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


# ---------------------------------------------------------------------------
# Primitive validators
# ---------------------------------------------------------------------------

def validate_non_empty_string(value: Any, field_name: str) -> str:
    """Ensure *value* is a non-empty string after stripping whitespace."""
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f"'{field_name}' must be a non-empty string.")
    return value.strip()


def validate_string(value: Any, field_name: str, *, allow_empty: bool = True) -> str:
    """Ensure *value* is a string (optionally non-empty)."""
    if not isinstance(value, str):
        raise ValidationError(f"'{field_name}' must be a string, got {type(value).__name__}.")
    if not allow_empty and not value.strip():
        raise ValidationError(f"'{field_name}' must not be empty.")
    return value


def validate_list(value: Any, field_name: str) -> list:
    """Ensure *value* is a list."""
    if not isinstance(value, list):
        raise ValidationError(
            f"'{field_name}' must be a list, got {type(value).__name__}."
        )
    return value


def validate_dict(value: Any, field_name: str) -> dict:
    """Ensure *value* is a dict."""
    if not isinstance(value, dict):
        raise ValidationError(
            f"'{field_name}' must be a dict/object, got {type(value).__name__}."
        )
    return value


_URL_RE = re.compile(r"^https?://\S+$", re.IGNORECASE)


def validate_url(value: Any, field_name: str) -> str:
    """Validate an absolute http(s) URL."""
    value = validate_non_empty_string(value, field_name)
    if not _URL_RE.match(value):
        raise ValidationError(
            f"'{field_name}' must be an absolute http(s) URL, got '{value}'."
        )
    return value


# ---------------------------------------------------------------------------
# Diagram payload validators
# ---------------------------------------------------------------------------

_REQUIRED_FIELDS = ("code", "summary", "nodes")


def validate_link_dict(v: Any, node_key: str, index: int) -> NodeLink:
    """Validate a single ``{label, url}`` entry of a node's links."""
    if not isinstance(v, dict):
        raise ValidationError(f"Node '{node_key}': link at index {index} must be a dict/object.")
    for key in ("label", "url"):
        if key not in v:
            raise ValidationError(
                f"Node '{node_key}': link at index {index} missing required key '{key}'."
            )
        if not isinstance(v[key], str):
            raise ValidationError(
                f"Node '{node_key}': link at index {index}: '{key}' must be a string."
            )
    return NodeLink(label=v["label"], url=v["url"])


def validate_node_dict(v: Any, node_key: str) -> NodeMetadata:
    """Validate the metadata object for one node."""
    if not isinstance(v, dict):
        raise ValidationError(f"Node '{node_key}' must be a dict/object.")
    for key in ("title", "description"):
        if key not in v:
            raise ValidationError(f"Node '{node_key}' missing required key '{key}'.")
        if not isinstance(v[key], str):
            raise ValidationError(f"Node '{node_key}': '{key}' must be a string.")

    links = None
    if v.get("links") is not None:
        raw_links = validate_list(v["links"], f"nodes.{node_key}.links")
        links = [validate_link_dict(link, node_key, i) for i, link in enumerate(raw_links)]

    snippet = v.get("codeSnippet")
    if snippet is not None and not isinstance(snippet, str):
        raise ValidationError(f"Node '{node_key}': 'codeSnippet' must be a string.")

    return NodeMetadata(
        title=v["title"],
        description=v["description"],
        links=links,
        code_snippet=snippet,
    )


def validate_nodes(value: Any) -> dict[str, NodeMetadata]:
    """Validate the node-key -> metadata mapping."""
    nodes = validate_dict(value, "nodes")
    result: dict[str, NodeMetadata] = {}
    for key, meta in nodes.items():
        if not isinstance(key, str) or not key.strip():
            raise ValidationError("Node keys must be non-empty strings.")
        result[key] = validate_node_dict(meta, key)
    return result


def validate_diagram_fields(code: Any, summary: Any, nodes: Any) -> WalkthroughDiagram:
    """Validate the three diagram fields and build an (unstamped) diagram."""
    return WalkthroughDiagram(
        code=validate_string(code, "code", allow_empty=False),
        summary=validate_string(summary, "summary", allow_empty=False),
        nodes=validate_nodes(nodes),
    )


def validate_diagram_payload(payload: Any) -> WalkthroughDiagram:
    """Validate a decoded JSON body for diagram creation.

    Missing fields are reported together so a caller can fix them in one go.
    """
    if not isinstance(payload, dict):
        raise ValidationError("Request body must be a JSON object.")
    missing = [f for f in _REQUIRED_FIELDS if payload.get(f) is None]
    if missing:
        raise ValidationError(f"Missing required fields: {', '.join(missing)}")
    return validate_diagram_fields(payload["code"], payload["summary"], payload["nodes"])


def validate_shared_url_payload(payload: Any) -> str:
    """Validate the body of a shared-url update and return the URL."""
    if not isinstance(payload, dict) or payload.get("url") is None:
        raise ValidationError("Missing required field: url")
    return validate_url(payload["url"], "url")
