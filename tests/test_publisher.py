"""Tests for publishing in OWNER and CLIENT roles."""

import asyncio
import json
from urllib.parse import urlparse

import httpx
from starlette.testclient import TestClient

from traverse_mcp.config import TraverseSettings
from traverse_mcp.models import WalkthroughDiagram
from traverse_mcp.publisher import (
    LocalPublisher,
    PublishError,
    RemotePublisher,
    publish_diagram,
)
from traverse_mcp.service import DiagramService
from traverse_mcp.storage import DiagramStore
from traverse_mcp.web import create_app

CODE = "flowchart TB\nA-->B"
NODES = {
    "A": {"title": "A", "description": "desc"},
    "B": {"title": "B", "description": "desc", "links": [{"label": "b.py:3", "url": "file:///b.py"}]},
}


def _service(tmp_path) -> DiagramService:
    service = DiagramService(DiagramStore.init(tmp_path))
    service.load()
    return service


def _mock_client(handler):
    return lambda: httpx.AsyncClient(transport=httpx.MockTransport(handler))


class _RecordingPublisher:
    def __init__(self) -> None:
        self.calls: list[WalkthroughDiagram] = []

    async def publish(self, diagram: WalkthroughDiagram) -> str:
        self.calls.append(diagram)
        return "http://localhost:4173/diagram/abc"


# ---- Owner role ----

def test_local_publisher_creates_in_service(tmp_path) -> None:
    service = _service(tmp_path)
    publisher = LocalPublisher(service, "http://localhost:4173/")
    message = asyncio.run(publish_diagram(publisher, CODE, "demo", NODES))

    assert "Interactive diagram ready." in message
    (diagram_id, diagram), = service.list()
    assert f"Open in browser: http://localhost:4173/diagram/{diagram_id}" in message
    assert diagram.summary == "demo"
    assert diagram.nodes["B"].links[0].label == "b.py:3"


def test_local_publisher_storage_failure_is_reported(tmp_path) -> None:
    service = _service(tmp_path)
    service.store.close()
    message = asyncio.run(publish_diagram(LocalPublisher(service, "http://localhost:4173"), CODE, "demo", NODES))
    assert message.startswith("Error: failed to publish diagram.")


# ---- Client role ----

def test_remote_publisher_posts_to_owner() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(201, json={"id": "abc", "url": "http://localhost:5555/diagram/abc"})

    publisher = RemotePublisher(5555, client_factory=_mock_client(handler))
    message = asyncio.run(publish_diagram(publisher, CODE, "demo", NODES))

    assert "Open in browser: http://localhost:5555/diagram/abc" in message
    (request,) = seen
    assert request.method == "POST"
    assert str(request.url) == "http://localhost:5555/api/diagrams"
    body = json.loads(request.content)
    assert body["summary"] == "demo"
    assert body["nodes"]["B"]["links"] == [{"label": "b.py:3", "url": "file:///b.py"}]
    assert "createdAt" not in body


def test_remote_publisher_non_success_is_failure() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(400, json={"error": "Missing required fields: nodes"})

    publisher = RemotePublisher(5555, client_factory=_mock_client(handler))
    message = asyncio.run(publish_diagram(publisher, CODE, "demo", NODES))
    assert message.startswith("Error:")
    assert "400 Bad Request" in message
    assert "Missing required fields: nodes" in message


def test_remote_publisher_unreachable_owner_is_failure() -> None:
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        raise httpx.ConnectError("connection refused", request=request)

    publisher = RemotePublisher(5555, client_factory=_mock_client(handler))
    message = asyncio.run(publish_diagram(publisher, CODE, "demo", NODES))
    assert "Could not reach diagram server" in message
    assert len(calls) == 1


def test_remote_publisher_malformed_response() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(201, text="ok")

    publisher = RemotePublisher(5555, client_factory=_mock_client(handler))
    try:
        asyncio.run(publisher.publish(WalkthroughDiagram(code=CODE, summary="demo")))
    except PublishError as exc:
        assert "Malformed" in str(exc)
    else:
        raise AssertionError("expected PublishError")


# ---- Validation before publishing ----

def test_invalid_arguments_never_reach_publisher() -> None:
    publisher = _RecordingPublisher()
    message = asyncio.run(publish_diagram(publisher, CODE, "demo", {"A": {"title": "A"}}))
    assert message.startswith("Error:")
    assert "description" in message
    assert publisher.calls == []


# ---- Client transparency ----

def test_client_and_owner_publishes_share_one_server(tmp_path) -> None:
    service = _service(tmp_path)
    settings = TraverseSettings(port=4173, mode="local", data_dir=tmp_path)
    app = create_app(service, settings)

    owner = LocalPublisher(service, settings.local_base_url)
    client = RemotePublisher(
        settings.port,
        client_factory=lambda: httpx.AsyncClient(transport=httpx.ASGITransport(app=app)),
    )
    owner_url = asyncio.run(owner.publish(WalkthroughDiagram(code=CODE, summary="from owner")))
    client_url = asyncio.run(client.publish(WalkthroughDiagram(code=CODE, summary="from client")))

    browser = TestClient(app)
    listed = browser.get("/api/diagrams").json()["diagrams"]
    assert {d["summary"] for d in listed} == {"from owner", "from client"}
    assert {d["url"] for d in listed} == {owner_url, client_url}
    for url in (owner_url, client_url):
        assert browser.get(urlparse(url).path).status_code == 200
