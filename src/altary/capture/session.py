# src/altary/capture/session.py
"""Pseudo-anonymous session identity.

Each browser (or, outside a request, each process) is given a random
UUIDv4 token persisted for one year. The token is owned by the storage
slot, not by the client: SessionIdentity only reads and writes it through
a SessionStore.

Stores:
- MemorySessionStore: a process-local slot with expiry. Used for scripts,
  workers and tests.
- CookieSessionStore: reads the bound request's cookies and queues a
  Set-Cookie header for the response. Falls back to a MemorySessionStore
  outside a request.
"""

from __future__ import annotations

import re
import secrets
import threading
import time
import uuid
from datetime import UTC, datetime, timedelta
from http.cookies import SimpleCookie
from typing import Protocol, TypeGuard

import structlog

from altary.capture.context import current_request

logger = structlog.get_logger(__name__)

SESSION_COOKIE_NAME = "altary_session_id"
SESSION_MAX_AGE = 365 * 24 * 60 * 60  # one year, in seconds

_SESSION_ID_PATTERN = re.compile(r"^[0-9a-f-]{36}$", re.IGNORECASE)


class SessionStore(Protocol):
    """A persisted key-value slot with expiry."""

    def get(self, name: str) -> str | None:
        """Return the stored value, or None if absent or expired."""
        ...

    def set(self, name: str, value: str, *, max_age: int) -> None:
        """Store ``value`` under ``name`` for ``max_age`` seconds."""
        ...


class MemorySessionStore:
    """Process-local session slot.

    Thread Safety:
        Safe to share between threads; access is serialized by a lock.
    """

    def __init__(self) -> None:
        self._values: dict[str, tuple[str, float]] = {}
        self._lock = threading.Lock()

    def get(self, name: str) -> str | None:
        with self._lock:
            entry = self._values.get(name)
            if entry is None:
                return None
            value, expires_at = entry
            if time.monotonic() >= expires_at:
                del self._values[name]
                return None
            return value

    def set(self, name: str, value: str, *, max_age: int) -> None:
        with self._lock:
            self._values[name] = (value, time.monotonic() + max_age)


def build_session_cookie(name: str, value: str, *, max_age: int) -> str:
    """Render a Set-Cookie header value for the session slot.

    The cookie is readable by client-side scripts (no HttpOnly) so browser
    SDKs can attach the same identity.
    """
    cookie: SimpleCookie = SimpleCookie()
    cookie[name] = value
    morsel = cookie[name]
    expires = datetime.now(tz=UTC) + timedelta(seconds=max_age)
    morsel["expires"] = expires.strftime("%a, %d %b %Y %H:%M:%S GMT")
    morsel["max-age"] = str(max_age)
    morsel["path"] = "/"
    morsel["secure"] = True
    morsel["samesite"] = "Lax"
    return morsel.OutputString()


class CookieSessionStore:
    """Session slot backed by the current request's cookies."""

    def __init__(self, fallback: SessionStore | None = None) -> None:
        self._fallback = fallback if fallback is not None else MemorySessionStore()

    def get(self, name: str) -> str | None:
        ctx = current_request()
        if ctx is None:
            return self._fallback.get(name)
        return ctx.cookies.get(name)

    def set(self, name: str, value: str, *, max_age: int) -> None:
        ctx = current_request()
        if ctx is None:
            self._fallback.set(name, value, max_age=max_age)
            return
        ctx.cookies[name] = value
        ctx.pending_cookies.append(build_session_cookie(name, value, max_age=max_age))


def is_valid_session_id(value: str | None) -> TypeGuard[str]:
    """Check the 36-character lowercase-hex-and-dash token shape."""
    return value is not None and _SESSION_ID_PATTERN.match(value) is not None


def generate_session_id() -> str:
    """Generate a UUIDv4 string from a cryptographically secure source.

    ``uuid.UUID(..., version=4)`` overwrites the version nibble and the
    RFC 4122 variant bits of the random bytes.
    """
    return str(uuid.UUID(bytes=secrets.token_bytes(16), version=4))


class SessionIdentity:
    """Looks up, or creates and persists, the session token.

    Example:
        identity = SessionIdentity(MemorySessionStore())
        first = identity.ensure()
        assert identity.ensure() == first
    """

    def __init__(self, store: SessionStore, *, cookie_name: str = SESSION_COOKIE_NAME) -> None:
        self._store = store
        self._cookie_name = cookie_name

    @property
    def store(self) -> SessionStore:
        return self._store

    def ensure(self) -> str:
        """Return the persisted token, creating one if absent or malformed."""
        existing = self._store.get(self._cookie_name)
        if is_valid_session_id(existing):
            return existing

        session_id = generate_session_id()
        self._store.set(self._cookie_name, session_id, max_age=SESSION_MAX_AGE)
        logger.debug("session_id_created", replaced_invalid=existing is not None)
        return session_id
