"""
Traverse MCP Server — publish interactive walkthrough diagrams via Model Context Protocol.

Exposes 1 tool that lets an LLM agent publish a Mermaid flowchart with
per-node markdown explanations, browsable in a regular web browser.

Tools:
  1. walkthrough_diagram — publish a diagram, returns its browser URL

The first process to bind the diagram port becomes the owner and serves the
viewer; later processes publish through it over HTTP.
"""

from __future__ import annotations

import logging
import sys
from typing import Any

import anyio
from mcp.server.fastmcp import FastMCP

from traverse_mcp.config import TraverseSettings, get_settings
from traverse_mcp.ownership import (
    OwnerListener,
    RoleDecision,
    build_uvicorn_server,
    negotiate_role,
    serve_owner,
)
from traverse_mcp.publisher import (
    LocalPublisher,
    Publisher,
    RemotePublisher,
    publish_diagram,
)
from traverse_mcp.service import DiagramService
from traverse_mcp.storage import DiagramStore, StorageError
from traverse_mcp.web import create_app

# ---------------------------------------------------------------------------
# Logging — stdout carries the MCP stdio protocol, so everything goes to
# stderr; routine FastMCP INFO messages are suppressed.
# ---------------------------------------------------------------------------
logging.getLogger("mcp.server").setLevel(logging.WARNING)
logger = logging.getLogger("traverse-mcp")

INSTRUCTIONS = (
    "MCP server for interactive code walkthrough diagrams.\n\n"
    "Call walkthrough_diagram(code, summary, nodes) after exploring the codebase.\n"
    "It returns a URL the user can open to click through the diagram's nodes."
)


# ===================================================================
# MCP Server
# ===================================================================

def build_mcp(publisher: Publisher) -> FastMCP:
    """Create the MCP server with its single tool bound to *publisher*."""
    mcp = FastMCP("traverse", instructions=INSTRUCTIONS)

    @mcp.tool()
    async def walkthrough_diagram(
        code: str,
        summary: str,
        nodes: dict[str, dict[str, Any]],
    ) -> str:
        """Render an interactive Mermaid diagram where users can click nodes to see details.

        BEFORE calling this tool, deeply explore the codebase:
          1. Use search/read tools to find key files, entry points, and architecture patterns.
          2. Trace execution paths and data flow between components.
          3. Read source files — don't guess from filenames.

        Then build the diagram:
          - Use `flowchart TB` with plain text labels, no HTML or custom styling.
          - 5-12 nodes at the right abstraction level.
          - Node keys must match Mermaid node IDs exactly.
          - Descriptions: 2-3 paragraphs of markdown per node, written for someone
            who has never seen this codebase.
          - Links: file:line references from your exploration.
          - Code snippets: key excerpts under 15 lines.

        Args:
            code: Mermaid flowchart source.
            summary: Short human-readable label for the diagram.
            nodes: Mermaid node ID -> {"title": str, "description": markdown str,
                   "links": [{"label": str, "url": str}] (optional),
                   "codeSnippet": str (optional)}.

        Returns:
            A message containing the browser URL, or an error description.
        """
        return await publish_diagram(publisher, code, summary, nodes)

    return mcp


# ===================================================================
# Process roles
# ===================================================================

def open_service(settings: TraverseSettings) -> DiagramService:
    """Open the store and rehydrate the registry. Raises StorageError."""
    store = DiagramStore.init(settings.resolved_data_dir)
    service = DiagramService(store)
    service.load()
    return service


async def run_tool_server(settings: TraverseSettings, decision: RoleDecision) -> None:
    """MCP stdio session, plus the HTTP server when this process owns the port."""
    if not decision.is_owner:
        await build_mcp(RemotePublisher(decision.port)).run_stdio_async()
        return

    listener = _owner_listener(decision)
    service = open_service(settings)
    app = create_app(service, settings)
    mcp = build_mcp(LocalPublisher(service, settings.local_base_url))
    server = build_uvicorn_server(app)

    async with anyio.create_task_group() as tg:
        tg.start_soon(serve_owner, server, listener)
        try:
            await mcp.run_stdio_async()
        finally:
            server.should_exit = True


async def run_share_server(settings: TraverseSettings, decision: RoleDecision) -> None:
    """Hosted share instance: HTTP only, no MCP session."""
    listener = _owner_listener(decision)
    service = open_service(settings)
    app = create_app(service, settings)
    logger.info("Share server listening on %s", settings.share_url)
    await serve_owner(build_uvicorn_server(app, log_level="info"), listener)


def _owner_listener(decision: RoleDecision) -> OwnerListener:
    if decision.listener is None:
        raise RuntimeError("Only the port owner can serve HTTP.")
    return decision.listener


# ===================================================================
# Entry point
# ===================================================================

def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=level,
        stream=sys.stderr,
        format="%(asctime)s %(name)s %(levelname)s %(message)s",
    )
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)


def main() -> None:
    """Run the Traverse server."""
    settings = get_settings()
    configure_logging(settings.log_level)

    decision = negotiate_role(settings.port, settings.host)
    if settings.is_server_mode and not decision.is_owner:
        logger.critical("Share server cannot bind %s:%d", settings.host, settings.port)
        sys.exit(1)

    runner = run_share_server if settings.is_server_mode else run_tool_server
    try:
        anyio.run(runner, settings, decision)
    except StorageError as exc:
        logger.critical("%s", exc)
        sys.exit(1)
    finally:
        if decision.listener is not None:
            decision.listener.close()


if __name__ == "__main__":
    main()
