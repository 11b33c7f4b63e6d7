"""Tests for the MCP server wiring."""

import asyncio
import socket

import pytest

from traverse_mcp import config
from traverse_mcp.config import TraverseSettings, get_settings
from traverse_mcp.models import WalkthroughDiagram
from traverse_mcp.server import build_mcp, main, open_service


class _NullPublisher:
    async def publish(self, diagram: WalkthroughDiagram) -> str:
        return "http://localhost:4173/diagram/x"


def test_single_walkthrough_tool() -> None:
    mcp = build_mcp(_NullPublisher())
    tools = asyncio.run(mcp.list_tools())
    assert [t.name for t in tools] == ["walkthrough_diagram"]


def test_tool_schema_requires_all_fields() -> None:
    (tool,) = asyncio.run(build_mcp(_NullPublisher()).list_tools())
    assert set(tool.inputSchema["required"]) == {"code", "summary", "nodes"}
    assert "Mermaid" in tool.description


def test_open_service_rehydrates(tmp_path) -> None:
    settings = TraverseSettings(data_dir=tmp_path)
    first = open_service(settings)
    diagram_id = first.create(WalkthroughDiagram(code="flowchart TB\nA", summary="kept"))
    first.store.close()

    second = open_service(settings)
    assert second.get(diagram_id).summary == "kept"


def _free_port() -> int:
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind(("127.0.0.1", 0))
        return sock.getsockname()[1]


def test_main_exits_when_store_cannot_open(tmp_path, monkeypatch) -> None:
    blocker = tmp_path / "not-a-dir"
    blocker.write_text("x", encoding="utf-8")
    monkeypatch.setattr(config, "get_config_dir", lambda: tmp_path)
    monkeypatch.setenv("TRAVERSE_DATA_DIR", str(blocker / "data"))
    monkeypatch.setenv("TRAVERSE_PORT", str(_free_port()))
    monkeypatch.setenv("TRAVERSE_MODE", "local")
    get_settings.cache_clear()
    try:
        with pytest.raises(SystemExit) as exc_info:
            main()
    finally:
        get_settings.cache_clear()
    assert exc_info.value.code == 1
