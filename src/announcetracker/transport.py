"""HTTP transport: CORS middleware, client identity, uvicorn startup."""

from __future__ import annotations

from typing import TYPE_CHECKING

import structlog
import uvicorn
from starlette.datastructures import MutableHeaders
from starlette.responses import Response

if TYPE_CHECKING:
    from starlette.datastructures import Address, Headers
    from starlette.types import ASGIApp, Message, Receive, Scope, Send

    from announcetracker.config import Settings

log = structlog.get_logger()

CORS_HEADERS: dict[str, str] = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "GET, OPTIONS",
    "Access-Control-Allow-Headers": "Content-Type",
}


class CorsMiddleware:
    """Pure ASGI middleware that opens the API to every origin.

    OPTIONS preflights are answered here with 200 and an empty body, so
    they never reach the rate limiter. Every other HTTP response gets the
    CORS headers added on the way out.
    """

    def __init__(self, app: ASGIApp) -> None:
        self.app = app

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        if scope["method"] == "OPTIONS":
            await Response(status_code=200, headers=CORS_HEADERS)(scope, receive, send)
            return

        async def send_with_cors(message: Message) -> None:
            if message["type"] == "http.response.start":
                headers = MutableHeaders(scope=message)
                for name, value in CORS_HEADERS.items():
                    headers[name] = value
            await send(message)

        await self.app(scope, receive, send_with_cors)


def client_identity(headers: Headers, client: Address | None) -> str:
    """Identify the caller for rate limiting.

    Prefers the first X-Forwarded-For hop (set by the edge proxy), then
    X-Real-IP, then the socket peer address.
    """
    forwarded = headers.get("x-forwarded-for", "")
    if forwarded:
        first = forwarded.split(",")[0].strip()
        if first:
            return first
    real_ip = headers.get("x-real-ip", "").strip()
    if real_ip:
        return real_ip
    if client is not None and client.host:
        return client.host
    return "unknown"


def run_http_server(app: ASGIApp, settings: Settings) -> None:
    """Serve the API with uvicorn."""
    log.bind(transport="http").info(
        "http_server_starting", host=settings.server.host, port=settings.server.port
    )
    uvicorn.run(
        app,
        host=settings.server.host,
        port=settings.server.port,
        log_config=None,  # Disable uvicorn's default logging; structlog handles it
    )
