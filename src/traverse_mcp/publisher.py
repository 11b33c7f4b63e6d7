"""
Publishing a diagram from a tool invocation, in either role.

The OWNER publishes straight into its ``DiagramService``; a CLIENT POSTs the
diagram to the owner's ``/api/diagrams`` endpoint. Both return the browsable
URL, and neither retries on failure.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Protocol

import httpx

from traverse_mcp.models import WalkthroughDiagram
from traverse_mcp.service import DiagramService
from traverse_mcp.storage import StorageError
from traverse_mcp.validation import ValidationError, validate_diagram_fields

logger = logging.getLogger("traverse-mcp")

READY_MESSAGE = (
    "Interactive diagram ready.\n\n"
    "Open in browser: {url}\n\n"
    "Click nodes in the diagram to explore details about each component."
)


class PublishError(Exception):
    """Raised when a diagram could not be published."""


class Publisher(Protocol):
    async def publish(self, diagram: WalkthroughDiagram) -> str:
        """Publish *diagram* and return its browsable URL."""
        ...


class LocalPublisher:
    """OWNER role: write into the local service."""

    def __init__(self, service: DiagramService, base_url: str) -> None:
        self.service = service
        self.base_url = base_url.rstrip("/")

    async def publish(self, diagram: WalkthroughDiagram) -> str:
        try:
            diagram_id = self.service.create(diagram)
        except StorageError as exc:
            raise PublishError(str(exc)) from exc
        return f"{self.base_url}/diagram/{diagram_id}"


class RemotePublisher:
    """CLIENT role: forward to the owner over HTTP."""

    def __init__(
        self,
        port: int,
        *,
        client_factory: Callable[[], httpx.AsyncClient] = httpx.AsyncClient,
    ) -> None:
        self.endpoint = f"http://localhost:{port}/api/diagrams"
        self._client_factory = client_factory

    async def publish(self, diagram: WalkthroughDiagram) -> str:
        payload = diagram.to_dict()
        payload.pop("createdAt", None)

        async with self._client_factory() as client:
            try:
                response = await client.post(self.endpoint, json=payload)
            except httpx.HTTPError as exc:
                raise PublishError(
                    f"Could not reach diagram server at {self.endpoint}: {exc}"
                ) from exc

        if not response.is_success:
            message = f"Diagram server responded {response.status_code} {response.reason_phrase}"
            detail = _error_detail(response)
            if detail:
                message += f": {detail}"
            raise PublishError(message)

        try:
            url = response.json()["url"]
        except (ValueError, KeyError, TypeError) as exc:
            raise PublishError(f"Malformed response from diagram server: {exc}") from exc
        if not isinstance(url, str):
            raise PublishError("Malformed response from diagram server: 'url' is not a string")
        return url


def _error_detail(response: httpx.Response) -> str | None:
    try:
        body = response.json()
    except ValueError:
        return None
    if isinstance(body, dict) and isinstance(body.get("error"), str):
        return body["error"]
    return None


async def publish_diagram(
    publisher: Publisher,
    code: Any,
    summary: Any,
    nodes: Any,
) -> str:
    """Validate, publish and describe the result for the tool caller."""
    try:
        diagram = validate_diagram_fields(code, summary, nodes)
    except ValidationError as exc:
        return f"Error: {exc.message}"

    try:
        url = await publisher.publish(diagram)
    except PublishError as exc:
        logger.warning("Publishing '%s' failed: %s", diagram.summary, exc)
        return f"Error: failed to publish diagram. {exc}"

    logger.info("Published '%s' at %s", diagram.summary, url)
    return READY_MESSAGE.format(url=url)
