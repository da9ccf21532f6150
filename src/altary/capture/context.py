# src/altary/capture/context.py
"""Request context for enrichment.

A RequestContext carries the parts of the triggering request that events
are enriched with: the URL, forwarding headers, peer address, user agent
and cookies. It is bound per request with a ContextVar so that concurrent
requests served from one process never see each other's data.

Usage:
    ctx = RequestContext.from_environ(environ)
    with bind_request(ctx):
        handle(environ)
"""

from __future__ import annotations

from collections.abc import Iterator, Mapping
from contextlib import contextmanager
from contextvars import ContextVar
from dataclasses import dataclass, field
from http.cookies import CookieError, SimpleCookie
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from starlette.requests import HTTPConnection


def _parse_cookie_header(header: str) -> dict[str, str]:
    cookie: SimpleCookie = SimpleCookie()
    try:
        cookie.load(header)
    except CookieError:
        return {}
    return {name: morsel.value for name, morsel in cookie.items()}


@dataclass
class RequestContext:
    """The request an event is captured within.

    Attributes:
        url: Host + path (with query string) of the request.
        headers: Request headers keyed by lower-case name.
        peer_address: Direct peer address of the connection, if known.
        server_address: Local address the request was received on, if known.
        cookies: Request cookies. Mutated when a session id is created
            mid-request so later lookups in the same request agree.
        pending_cookies: Set-Cookie header values to add to the response.
    """

    url: str = ""
    headers: dict[str, str] = field(default_factory=dict)
    peer_address: str | None = None
    server_address: str | None = None
    cookies: dict[str, str] = field(default_factory=dict)
    pending_cookies: list[str] = field(default_factory=list)

    @property
    def user_agent(self) -> str:
        return self.headers.get("user-agent", "")

    @property
    def referer(self) -> str | None:
        return self.headers.get("referer")

    @classmethod
    def from_connection(cls, conn: HTTPConnection) -> RequestContext:
        """Build a context from a Starlette request or websocket connection."""
        path = conn.url.path
        if conn.url.query:
            path = f"{path}?{conn.url.query}"
        host = conn.headers.get("host", conn.url.netloc)
        server = conn.scope.get("server")
        return cls(
            url=f"{host}{path}",
            headers={name.lower(): value for name, value in conn.headers.items()},
            peer_address=conn.client.host if conn.client is not None else None,
            server_address=str(server[0]) if server else None,
            cookies=dict(conn.cookies),
        )

    @classmethod
    def from_environ(cls, environ: Mapping[str, Any]) -> RequestContext:
        """Build a context from a WSGI/CGI environ mapping.

        ``HTTP_X_FORWARDED_FOR`` becomes the ``x-forwarded-for`` header, and
        so on. ``CONTENT_TYPE``/``CONTENT_LENGTH`` are not prefixed in CGI
        and are ignored here since nothing downstream needs them.
        """
        headers: dict[str, str] = {}
        for key, value in environ.items():
            if key.startswith("HTTP_") and isinstance(value, str):
                headers[key[5:].replace("_", "-").lower()] = value

        host = headers.get("host") or str(environ.get("SERVER_NAME", ""))
        path = str(environ.get("REQUEST_URI", "")) or str(environ.get("PATH_INFO", ""))
        query = str(environ.get("QUERY_STRING", ""))
        if query and "?" not in path:
            path = f"{path}?{query}"

        return cls(
            url=f"{host}{path}",
            headers=headers,
            peer_address=environ.get("REMOTE_ADDR") or None,
            server_address=environ.get("SERVER_ADDR") or None,
            cookies=_parse_cookie_header(headers.get("cookie", "")),
        )


_current_request: ContextVar[RequestContext | None] = ContextVar("altary_request", default=None)


def current_request() -> RequestContext | None:
    """Return the context bound to the running request, if any."""
    return _current_request.get()


@contextmanager
def bind_request(ctx: RequestContext) -> Iterator[RequestContext]:
    """Bind ``ctx`` as the current request for the duration of the block."""
    token = _current_request.set(ctx)
    try:
        yield ctx
    finally:
        _current_request.reset(token)
