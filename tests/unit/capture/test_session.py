# tests/unit/capture/test_session.py
"""Tests for session identity.

Tests cover:
- ensure() idempotence over a persisted token
- Replacement of absent or malformed tokens
- UUIDv4 shape of generated tokens
- Cookie persistence inside a bound request
"""

import re
import uuid
from http.cookies import SimpleCookie

import pytest
from hypothesis import given
from hypothesis import strategies as st

from altary.capture.context import RequestContext, bind_request
from altary.capture.session import (
    SESSION_COOKIE_NAME,
    SESSION_MAX_AGE,
    CookieSessionStore,
    MemorySessionStore,
    SessionIdentity,
    build_session_cookie,
    generate_session_id,
    is_valid_session_id,
)

UUID_PATTERN = r"^[0-9a-f]{8}-[0-9a-f]{4}-4[0-9a-f]{3}-[89ab][0-9a-f]{3}-[0-9a-f]{12}$"


class TestGenerateSessionId:
    """Generated tokens are UUIDv4 strings."""

    def test_shape(self) -> None:
        session_id = generate_session_id()

        assert len(session_id) == 36
        assert re.match(UUID_PATTERN, session_id)

    def test_version_and_variant_bits(self) -> None:
        for _ in range(50):
            parsed = uuid.UUID(generate_session_id())

            assert parsed.version == 4
            assert parsed.variant == uuid.RFC_4122

    def test_tokens_differ(self) -> None:
        assert generate_session_id() != generate_session_id()


class TestIsValidSessionId:
    @pytest.mark.parametrize(
        "value",
        ["3f2504e0-4f89-41d3-9a0c-0305e82c3301", "3F2504E0-4F89-41D3-9A0C-0305E82C3301"],
    )
    def test_valid(self, value: str) -> None:
        assert is_valid_session_id(value)

    @pytest.mark.parametrize("value", [None, "", "not-a-session", "3f2504e0-4f89-41d3-9a0c-0305e82c330", "z" * 36])
    def test_invalid(self, value: str | None) -> None:
        assert not is_valid_session_id(value)


class TestSessionIdentity:
    """SessionIdentity.ensure()."""

    def test_creates_token_when_absent(self) -> None:
        identity = SessionIdentity(MemorySessionStore())

        first = identity.ensure()

        assert is_valid_session_id(first)
        assert identity.ensure() == first

    def test_returns_existing_valid_token(self) -> None:
        store = MemorySessionStore()
        store.set(SESSION_COOKIE_NAME, "3f2504e0-4f89-41d3-9a0c-0305e82c3301", max_age=60)

        assert SessionIdentity(store).ensure() == "3f2504e0-4f89-41d3-9a0c-0305e82c3301"

    def test_replaces_malformed_token(self) -> None:
        store = MemorySessionStore()
        store.set(SESSION_COOKIE_NAME, "tampered", max_age=60)

        session_id = SessionIdentity(store).ensure()

        assert session_id != "tampered"
        assert store.get(SESSION_COOKIE_NAME) == session_id

    @given(existing=st.one_of(st.none(), st.text(max_size=40)))
    def test_ensure_is_idempotent(self, existing: str | None) -> None:
        store = MemorySessionStore()
        if existing is not None:
            store.set(SESSION_COOKIE_NAME, existing, max_age=60)
        identity = SessionIdentity(store)

        first = identity.ensure()

        assert is_valid_session_id(first)
        assert identity.ensure() == first
        if is_valid_session_id(existing):
            assert first == existing


class TestMemorySessionStore:
    def test_expired_value_is_absent(self) -> None:
        store = MemorySessionStore()
        store.set("k", "v", max_age=0)

        assert store.get("k") is None


class TestCookieSessionStore:
    """Cookie persistence inside a bound request."""

    def test_reads_request_cookie(self) -> None:
        existing = "3f2504e0-4f89-41d3-9a0c-0305e82c3301"
        ctx = RequestContext(url="example.com/", cookies={SESSION_COOKIE_NAME: existing})

        with bind_request(ctx):
            assert SessionIdentity(CookieSessionStore()).ensure() == existing
        assert ctx.pending_cookies == []

    def test_new_token_queued_as_set_cookie(self) -> None:
        ctx = RequestContext(url="example.com/")
        identity = SessionIdentity(CookieSessionStore())

        with bind_request(ctx):
            session_id = identity.ensure()
            # Same request sees the token it just created
            assert identity.ensure() == session_id

        assert ctx.cookies[SESSION_COOKIE_NAME] == session_id
        assert len(ctx.pending_cookies) == 1
        assert ctx.pending_cookies[0].startswith(f"{SESSION_COOKIE_NAME}={session_id}")

    def test_falls_back_outside_request(self) -> None:
        fallback = MemorySessionStore()
        identity = SessionIdentity(CookieSessionStore(fallback=fallback))

        session_id = identity.ensure()

        assert fallback.get(SESSION_COOKIE_NAME) == session_id


class TestBuildSessionCookie:
    def test_cookie_attributes(self) -> None:
        header = build_session_cookie(SESSION_COOKIE_NAME, "abc", max_age=SESSION_MAX_AGE)
        cookie: SimpleCookie = SimpleCookie()
        cookie.load(header)
        morsel = cookie[SESSION_COOKIE_NAME]

        assert morsel.value == "abc"
        assert morsel["path"] == "/"
        assert morsel["max-age"] == str(SESSION_MAX_AGE)
        assert morsel["samesite"] == "Lax"
        assert "Secure" in header
        assert "HttpOnly" not in header
