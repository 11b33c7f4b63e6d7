"""
HTTP endpoint layer served by the port owner.

Routes:
  GET     /                                — landing page (list locally, count when hosted)
  GET     /diagram/{id}                    — interactive viewer (id: [A-Za-z0-9_-]+)
  GET     /api/diagrams                    — JSON listing
  POST    /api/diagrams                    — create (used by clients and remote share flows)
  OPTIONS /api/diagrams                    — CORS preflight
  DELETE  /api/diagrams/{id}               — remove
  GET     /api/diagrams/{id}/shared-url    — recorded share URL or null
  POST    /api/diagrams/{id}/shared-url    — record share URL
"""

from __future__ import annotations

import functools
import logging
from typing import Any, Awaitable, Callable

from starlette.applications import Starlette
from starlette.convertors import Convertor, register_url_convertor
from starlette.exceptions import HTTPException
from starlette.requests import Request
from starlette.responses import HTMLResponse, JSONResponse, Response
from starlette.routing import Route

from traverse_mcp.config import TraverseSettings
from traverse_mcp.service import DiagramService
from traverse_mcp.storage import StorageError
from traverse_mcp.template import (
    render_error_html,
    render_index_html,
    render_not_found_html,
    render_viewer_html,
)
from traverse_mcp.validation import (
    ValidationError,
    validate_diagram_payload,
    validate_shared_url_payload,
)

logger = logging.getLogger("traverse-mcp")

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "GET, POST, OPTIONS",
    "Access-Control-Allow-Headers": "Content-Type",
    "Access-Control-Max-Age": "86400",
}

Handler = Callable[[Request], Awaitable[Response]]


class DiagramIdConvertor(Convertor):
    """Path segment holding a diagram id; anything else falls through to 404."""

    regex = "[A-Za-z0-9_-]+"

    def convert(self, value: str) -> str:
        return value

    def to_string(self, value: str) -> str:
        return value


register_url_convertor("diagram_id", DiagramIdConvertor())


def _is_api(request: Request) -> bool:
    return request.url.path.startswith("/api/")


def _error_response(request: Request, status_code: int, message: str) -> Response:
    if _is_api(request):
        return JSONResponse({"error": message}, status_code=status_code)
    if status_code == 404:
        return HTMLResponse(render_not_found_html(), status_code=404)
    return HTMLResponse(render_error_html(message), status_code=status_code)


def _guard(handler: Handler) -> Handler:
    """Convert storage failures into a 500 response instead of a crashed request."""

    @functools.wraps(handler)
    async def wrapper(request: Request) -> Response:
        try:
            return await handler(request)
        except StorageError as exc:
            logger.error("Storage failure on %s %s: %s", request.method, request.url.path, exc)
            return _error_response(request, 500, "Diagram storage is unavailable.")

    return wrapper


async def _read_json(request: Request) -> Any:
    try:
        return await request.json()
    except ValueError as exc:
        raise ValidationError("Request body must be valid JSON.") from exc


def create_app(service: DiagramService, settings: TraverseSettings) -> Starlette:
    """Build the Starlette application around an already-loaded service."""

    def diagram_url(diagram_id: str) -> str:
        return f"{settings.public_base_url}/diagram/{diagram_id}"

    @_guard
    async def index(request: Request) -> Response:
        return HTMLResponse(
            render_index_html(service.list(), server_mode=settings.is_server_mode)
        )

    @_guard
    async def view_diagram(request: Request) -> Response:
        diagram_id = request.path_params["diagram_id"]
        diagram = service.get(diagram_id)
        if diagram is None:
            return HTMLResponse(render_not_found_html(diagram_id), status_code=404)
        share_server = None if settings.is_server_mode else settings.share_url
        return HTMLResponse(render_viewer_html(diagram_id, diagram, share_server=share_server))

    @_guard
    async def diagrams_collection(request: Request) -> Response:
        if request.method == "OPTIONS":
            return Response(status_code=204, headers=CORS_HEADERS)

        if request.method == "GET":
            return JSONResponse({
                "diagrams": [
                    {
                        "id": diagram_id,
                        "summary": d.summary,
                        "createdAt": d.created_at,
                        "url": diagram_url(diagram_id),
                    }
                    for diagram_id, d in service.list()
                ]
            })

        try:
            diagram = validate_diagram_payload(await _read_json(request))
        except ValidationError as exc:
            return JSONResponse({"error": exc.message}, status_code=400, headers=CORS_HEADERS)
        diagram_id = service.create(diagram)
        return JSONResponse(
            {"id": diagram_id, "url": diagram_url(diagram_id)},
            status_code=201,
            headers=CORS_HEADERS,
        )

    @_guard
    async def delete_diagram(request: Request) -> Response:
        diagram_id = request.path_params["diagram_id"]
        if not service.delete(diagram_id):
            return JSONResponse({"error": f"Diagram '{diagram_id}' not found."}, status_code=404)
        return JSONResponse({"ok": True, "id": diagram_id})

    @_guard
    async def shared_url(request: Request) -> Response:
        diagram_id = request.path_params["diagram_id"]
        if request.method == "GET":
            return JSONResponse({"url": service.get_shared_url(diagram_id)})

        try:
            url = validate_shared_url_payload(await _read_json(request))
        except ValidationError as exc:
            return JSONResponse({"error": exc.message}, status_code=400)
        service.save_shared_url(diagram_id, url)
        return JSONResponse({"ok": True, "id": diagram_id, "url": url})

    async def http_error(request: Request, exc: HTTPException) -> Response:
        return _error_response(request, exc.status_code, exc.detail)

    async def server_error(request: Request, exc: Exception) -> Response:
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return _error_response(request, 500, "Internal server error.")

    routes = [
        Route("/", index, methods=["GET"]),
        Route("/diagram/{diagram_id:diagram_id}", view_diagram, methods=["GET"]),
        Route("/api/diagrams", diagrams_collection, methods=["GET", "POST", "OPTIONS"]),
        Route("/api/diagrams/{diagram_id:diagram_id}", delete_diagram, methods=["DELETE"]),
        Route("/api/diagrams/{diagram_id:diagram_id}/shared-url", shared_url, methods=["GET", "POST"]),
    ]
    app = Starlette(
        routes=routes,
        exception_handlers={HTTPException: http_error, Exception: server_error},
    )
    app.state.service = service
    app.state.settings = settings
    return app
