"""
Data model for walkthrough diagrams.

A diagram is a Mermaid flowchart plus per-node markdown explanations. The
JSON shape (camelCase keys) is shared by the HTTP API, the stored ``data``
column and the viewer page.
"""

from __future__ import annotations

import datetime
import uuid
from dataclasses import dataclass, field
from typing import Any, Optional


# ---------------------------------------------------------------------------
# Data classes
# ---------------------------------------------------------------------------

@dataclass
class NodeLink:
    """A labelled link shown under a node's description (usually file:line)."""
    label: str
    url: str

    def to_dict(self) -> dict[str, str]:
        return {"label": self.label, "url": self.url}


@dataclass
class NodeMetadata:
    """Explanation attached to one Mermaid node."""
    title: str
    description: str
    links: Optional[list[NodeLink]] = None
    code_snippet: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"title": self.title, "description": self.description}
        if self.links is not None:
            data["links"] = [link.to_dict() for link in self.links]
        if self.code_snippet is not None:
            data["codeSnippet"] = self.code_snippet
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> NodeMetadata:
        links = data.get("links")
        return cls(
            title=data["title"],
            description=data["description"],
            links=[NodeLink(label=link["label"], url=link["url"]) for link in links]
            if links is not None else None,
            code_snippet=data.get("codeSnippet"),
        )


@dataclass
class WalkthroughDiagram:
    """An immutable diagram record. The id lives outside, as the registry key."""
    code: str
    summary: str
    nodes: dict[str, NodeMetadata] = field(default_factory=dict)
    created_at: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "code": self.code,
            "summary": self.summary,
            "nodes": {key: meta.to_dict() for key, meta in self.nodes.items()},
            "createdAt": self.created_at,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> WalkthroughDiagram:
        return cls(
            code=data["code"],
            summary=data["summary"],
            nodes={
                key: NodeMetadata.from_dict(meta)
                for key, meta in data["nodes"].items()
            },
            created_at=data.get("createdAt") or "",
        )

    def stamped(self) -> WalkthroughDiagram:
        """Return a copy carrying a creation timestamp (kept if already set)."""
        return WalkthroughDiagram(
            code=self.code,
            summary=self.summary,
            nodes=dict(self.nodes),
            created_at=self.created_at or utc_now_iso(),
        )


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def generate_id() -> str:
    """Return a new opaque diagram id, safe for use as a URL path segment."""
    return uuid.uuid4().hex


def utc_now_iso() -> str:
    return datetime.datetime.now(datetime.timezone.utc).isoformat()
