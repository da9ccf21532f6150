# src/altary/middleware.py
"""ASGI middleware binding the request context for Starlette applications.

Usage:
    from starlette.applications import Starlette

    client = altary.init(api_key="...")
    app = AltaryMiddleware(Starlette(routes=routes), client=client, flush_after_request=True)

While a request is handled, events captured anywhere in the same task carry
its URL, headers, peer address and session cookie. Unhandled exceptions are
captured and re-raised unchanged.

Wrap the whole application rather than listing the middleware in
``Starlette(middleware=[...])``. Starlette always installs its
ServerErrorMiddleware outside user middleware, so a 500 it sends would
bypass this middleware. When wrapped, 5xx responses are held until the
application returns or raises, so a session cookie created while capturing
the exception is still attached. When listed as user middleware, an
unhandled exception that leaves a cookie pending gets its 500 sent from
here instead.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import anyio.to_thread
import structlog
from starlette.datastructures import MutableHeaders
from starlette.requests import HTTPConnection
from starlette.responses import PlainTextResponse
from starlette.types import ASGIApp, Message, Receive, Scope, Send

from altary.capture.context import RequestContext, bind_request

if TYPE_CHECKING:
    from altary.client import Client

logger = structlog.get_logger(__name__)


class AltaryMiddleware:
    """Pure ASGI middleware around HTTP and websocket scopes."""

    def __init__(self, app: ASGIApp, client: Client, *, flush_after_request: bool = False) -> None:
        self.app = app
        self.client = client
        self.flush_after_request = flush_after_request

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] not in ("http", "websocket"):
            await self.app(scope, receive, send)
            return

        ctx = RequestContext.from_connection(HTTPConnection(scope))
        response_started = False
        held: list[Message] = []

        async def forward(message: Message) -> None:
            if message["type"] == "http.response.start" and ctx.pending_cookies:
                headers = MutableHeaders(scope=message)
                for cookie in ctx.pending_cookies:
                    headers.append("set-cookie", cookie)
                ctx.pending_cookies.clear()
            await send(message)

        async def send_with_cookies(message: Message) -> None:
            nonlocal response_started
            if message["type"] == "http.response.start":
                response_started = True
                # Server errors wait until the app returns or raises; capturing
                # the exception may still queue a session cookie.
                if message["status"] >= 500:
                    held.append(message)
                    return
            elif held:
                held.append(message)
                return
            await forward(message)

        with bind_request(ctx):
            try:
                await self.app(scope, receive, send_with_cookies)
            except Exception as exc:
                self.client.capture_exception(exc)
                if scope["type"] == "http" and ctx.pending_cookies and not response_started:
                    logger.debug("Sending server error response with session cookie", path=scope.get("path"))
                    response = PlainTextResponse("Internal Server Error", status_code=500)
                    await response(scope, receive, forward)
                raise
            finally:
                for message in held:
                    await forward(message)
                if self.flush_after_request:
                    await anyio.to_thread.run_sync(self.client.flush)
