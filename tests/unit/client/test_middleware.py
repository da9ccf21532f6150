# tests/unit/client/test_middleware.py
"""Tests for AltaryMiddleware request binding in a Starlette app."""

import pytest
from starlette.applications import Starlette
from starlette.middleware import Middleware
from starlette.requests import Request
from starlette.responses import PlainTextResponse
from starlette.routing import Route
from starlette.testclient import TestClient
from starlette.types import ASGIApp

from altary.capture.context import current_request
from altary.capture.session import SESSION_COOKIE_NAME, is_valid_session_id
from altary.client import Client
from altary.contracts import EventKind, Severity
from altary.core.config import AltarySettings
from altary.middleware import AltaryMiddleware
from tests.conftest import MockTransport

EXISTING_SESSION = "6f1c2b9e-4d3a-4e8f-9b7c-0a1d2e3f4a5b"


def build_app(client: Client, *, flush_after_request: bool = False, as_user_middleware: bool = False) -> ASGIApp:
    async def warn(request: Request) -> PlainTextResponse:
        client.capture_error(Severity.USER_WARNING, "disk low", "a.py", 10)
        return PlainTextResponse("ok")

    async def quiet(request: Request) -> PlainTextResponse:
        return PlainTextResponse("ok")

    async def unavailable(request: Request) -> PlainTextResponse:
        client.capture_error(Severity.USER_ERROR, "backend down", "a.py", 20)
        return PlainTextResponse("try later", status_code=503)

    async def boom(request: Request) -> PlainTextResponse:
        raise RuntimeError("bad state")

    routes = [Route("/warn", warn), Route("/quiet", quiet), Route("/unavailable", unavailable), Route("/boom", boom)]
    if as_user_middleware:
        return Starlette(
            routes=routes,
            middleware=[Middleware(AltaryMiddleware, client=client, flush_after_request=flush_after_request)],
        )
    return AltaryMiddleware(Starlette(routes=routes), client=client, flush_after_request=flush_after_request)


def session_from_set_cookie(header: str) -> str:
    name, _, rest = header.partition("=")
    assert name == SESSION_COOKIE_NAME
    return rest.split(";", 1)[0]


@pytest.fixture
def client(transport: MockTransport) -> Client:
    # Default session store: cookies of the bound request
    return Client(AltarySettings.from_options(api_key="k1"), transport=transport)


class TestRequestBinding:
    def test_event_carries_request_details(self, client: Client) -> None:
        with TestClient(build_app(client)) as http:
            response = http.get(
                "/warn?x=1",
                headers={"user-agent": "curl/8.4.0", "x-forwarded-for": "203.0.113.7, 10.0.0.1"},
            )

        assert response.status_code == 200
        [event] = client.queue.snapshot()
        assert event.request_url == "testserver/warn?x=1"
        assert event.client_ip == "203.0.113.7"

    def test_context_unbound_after_request(self, client: Client) -> None:
        with TestClient(build_app(client)) as http:
            http.get("/warn")

        assert current_request() is None

    def test_new_session_sets_cookie(self, client: Client) -> None:
        with TestClient(build_app(client)) as http:
            response = http.get("/warn")

        [event] = client.queue.snapshot()
        assert is_valid_session_id(event.session_id)
        [cookie] = response.headers.get_list("set-cookie")
        assert cookie.startswith(f"{SESSION_COOKIE_NAME}={event.session_id}")
        assert "Max-Age=31536000" in cookie

    def test_existing_session_reused(self, client: Client) -> None:
        with TestClient(build_app(client)) as http:
            response = http.get("/warn", headers={"cookie": f"{SESSION_COOKIE_NAME}={EXISTING_SESSION}"})

        [event] = client.queue.snapshot()
        assert event.session_id == EXISTING_SESSION
        assert "set-cookie" not in response.headers

    def test_no_cookie_without_capture(self, client: Client) -> None:
        with TestClient(build_app(client)) as http:
            response = http.get("/quiet")

        assert "set-cookie" not in response.headers
        assert len(client.queue) == 0

    def test_server_error_response_from_handler(self, client: Client) -> None:
        with TestClient(build_app(client)) as http:
            response = http.get("/unavailable")

        assert response.status_code == 503
        assert response.text == "try later"
        [event] = client.queue.snapshot()
        [cookie] = response.headers.get_list("set-cookie")
        assert session_from_set_cookie(cookie) == event.session_id


class TestUnhandledExceptions:
    def test_captured_and_server_error_returned(self, client: Client) -> None:
        with TestClient(build_app(client), raise_server_exceptions=False) as http:
            response = http.get("/boom")

        assert response.status_code == 500
        [event] = client.queue.snapshot()
        assert event.kind == EventKind.EXCEPTION
        assert event.message == "bad state"
        assert event.request_url == "testserver/boom"

    def test_exception_reraised(self, client: Client) -> None:
        with TestClient(build_app(client)) as http, pytest.raises(RuntimeError, match="bad state"):
            http.get("/boom")

        assert len(client.queue) == 1

    @pytest.mark.parametrize("as_user_middleware", [False, True])
    def test_new_session_cookie_sent_with_server_error(self, client: Client, as_user_middleware: bool) -> None:
        app = build_app(client, as_user_middleware=as_user_middleware)
        with TestClient(app, raise_server_exceptions=False) as http:
            first = http.get("/boom")
            [cookie] = first.headers.get_list("set-cookie")
            session_id = session_from_set_cookie(cookie)
            second = http.get("/boom", headers={"cookie": f"{SESSION_COOKIE_NAME}={session_id}"})

        assert first.status_code == 500
        assert first.text == "Internal Server Error"
        assert "set-cookie" not in second.headers
        assert [event.session_id for event in client.queue.snapshot()] == [session_id, session_id]

    def test_known_session_leaves_error_response_to_app(self, client: Client) -> None:
        with TestClient(build_app(client), raise_server_exceptions=False) as http:
            response = http.get("/boom", headers={"cookie": f"{SESSION_COOKIE_NAME}={EXISTING_SESSION}"})

        assert response.status_code == 500
        assert "set-cookie" not in response.headers


class TestFlushAfterRequest:
    def test_queue_delivered_at_end_of_request(self, client: Client, transport: MockTransport) -> None:
        with TestClient(build_app(client, flush_after_request=True)) as http:
            http.get("/warn")

        assert len(transport.payloads) == 1
        assert len(client.queue) == 0

    def test_flushes_after_failed_request(self, client: Client, transport: MockTransport) -> None:
        with TestClient(build_app(client, flush_after_request=True), raise_server_exceptions=False) as http:
            http.get("/boom")

        assert [p["type"] for p in transport.payloads] == ["exception"]

    def test_disabled_by_default(self, client: Client, transport: MockTransport) -> None:
        with TestClient(build_app(client)) as http:
            http.get("/warn")

        assert transport.payloads == []
        assert len(client.queue) == 1
