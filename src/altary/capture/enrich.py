# src/altary/capture/enrich.py
"""Context enrichment for captured events.

ContextEnricher takes a raw Event from ErrorCapture and returns a copy with
every derived field filled in: timestamp, client IP, session id, parsed
user agent, source excerpt, user context and an environment snapshot.

Enrichment runs inside the host's fault path, so it must never fail the
host: each derived field is computed independently and a failure degrades
that one field to a placeholder.
"""

from __future__ import annotations

import os
import platform
import socket
from collections.abc import Callable, Mapping
from dataclasses import replace
from pathlib import Path
from typing import Any, TypeVar

import structlog

from altary.capture.context import RequestContext, current_request
from altary.capture.session import SessionIdentity
from altary.capture.useragent import UserAgentInfo, parse_user_agent
from altary.contracts.events import Event
from altary.core.clock import Clock, SystemClock

logger = structlog.get_logger(__name__)

MAX_SOURCE_FILE_BYTES = 512 * 1024
FILE_TOO_LARGE = "[[File too large]]"
DEFAULT_CONTEXT_LINES = 5
UNKNOWN_CLIENT_IP = "0.0.0.0"

# Checked in order; the first populated header wins.
FORWARDING_HEADERS: tuple[str, ...] = (
    "client-ip",
    "x-forwarded-for",
    "x-forwarded",
    "x-cluster-client-ip",
    "forwarded-for",
    "forwarded",
)

_T = TypeVar("_T")


def resolve_client_ip(ctx: RequestContext | None) -> str:
    """Resolve the client address from forwarding headers or the peer.

    ``X-Forwarded-For`` style headers may carry a proxy chain; the first
    entry is the originating client.
    """
    if ctx is None:
        return UNKNOWN_CLIENT_IP
    for header in FORWARDING_HEADERS:
        value = ctx.headers.get(header, "").strip()
        if value:
            return value.split(",")[0].strip()
    if ctx.peer_address:
        return ctx.peer_address
    return UNKNOWN_CLIENT_IP


def read_source_excerpt(path: str, line: int, *, context: int = DEFAULT_CONTEXT_LINES) -> str | None:
    """Return numbered source lines around ``line``.

    The window is ``line - context`` through ``line + context`` clipped to
    the file, so at most ``2 * context + 1`` lines are returned. Files
    larger than 512 KiB are never read.

    Args:
        path: Source file path.
        line: 1-based failing line.
        context: Lines of context on each side.

    Returns:
        The excerpt, FILE_TOO_LARGE for oversized files, or None when the
        path is empty, unreadable, or not a regular file.
    """
    if not path:
        return None
    source = Path(path)
    try:
        if not source.is_file():
            return None
        if source.stat().st_size > MAX_SOURCE_FILE_BYTES:
            return FILE_TOO_LARGE
        lines = source.read_text(encoding="utf-8", errors="replace").splitlines()
    except OSError:
        return None

    if not lines:
        return ""
    start = max(1, line - context)
    end = min(len(lines), line + context)
    if start > end:
        return ""
    return "\n".join(f"{number}: {lines[number - 1]}" for number in range(start, end + 1))


def environment_snapshot(ctx: RequestContext | None) -> dict[str, Any]:
    """Describe the process and, when bound, the triggering request."""
    if ctx is None:
        request: dict[str, Any] = {"server_ip": "CLI", "user_agent": "unknown", "request_uri": "CLI", "referer": None}
    else:
        request = {
            "server_ip": ctx.server_address or "CLI",
            "user_agent": ctx.user_agent or "unknown",
            "request_uri": ctx.url,
            "referer": ctx.referer,
        }
    return {
        "python_version": platform.python_version(),
        "platform": platform.platform(),
        "hostname": socket.gethostname(),
        "pid": os.getpid(),
        **request,
    }


class ContextEnricher:
    """Fills derived fields on raw events.

    Example:
        enricher = ContextEnricher(SessionIdentity(MemorySessionStore()))
        enriched = enricher.enrich(raw_event)
    """

    def __init__(
        self,
        session: SessionIdentity,
        *,
        user_context: Mapping[str, Any] | None = None,
        context_lines: int = DEFAULT_CONTEXT_LINES,
        clock: Clock | None = None,
    ) -> None:
        self._session = session
        self._user_context = dict(user_context) if user_context is not None else None
        self._context_lines = context_lines
        self._clock = clock or SystemClock()

    def enrich(self, event: Event) -> Event:
        """Return a copy of ``event`` with all derived fields populated.

        The capture timestamp is preserved if already set. Never raises.
        """
        ctx = current_request()
        ua = self._safely(
            "user_agent",
            lambda: parse_user_agent(ctx.user_agent if ctx is not None else None),
            UserAgentInfo(),
        )

        return replace(
            event,
            timestamp=event.timestamp or self._clock.now(),
            request_url=event.request_url or (ctx.url if ctx is not None else ""),
            client_ip=self._safely("client_ip", lambda: resolve_client_ip(ctx), UNKNOWN_CLIENT_IP),
            session_id=self._safely("session_id", self._session.ensure, ""),
            user_agent_os=ua.os,
            user_agent_browser=ua.browser,
            user_agent_device=ua.device,
            source_excerpt=self._safely(
                "source_excerpt",
                lambda: read_source_excerpt(event.source_file, event.source_line, context=self._context_lines),
                None,
            ),
            user_context=self._user_context,
            environment=self._safely("environment", lambda: environment_snapshot(ctx), {}),
        )

    def _safely(self, field_name: str, compute: Callable[[], _T], placeholder: _T) -> _T:
        try:
            return compute()
        except Exception as e:
            logger.warning(
                "Enrichment failed, using placeholder",
                field=field_name,
                error=str(e),
            )
            return placeholder
