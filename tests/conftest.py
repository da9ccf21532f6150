# tests/conftest.py
"""Shared test fixtures and helpers.

Test doubles:
- MockTransport: records payloads and can simulate delivery failures
- FakeHookSlot: stands in for warnings.showwarning / sys.excepthook
- FakeExitRegistry: stands in for the atexit module

Hypothesis Configuration:
- "ci" profile: Fast tests for CI (100 examples) - default
- "nightly" profile: Thorough tests (1000 examples)
- "debug" profile: Minimal tests with verbose output (10 examples)

Set profile via environment variable:
    HYPOTHESIS_PROFILE=nightly pytest tests/
"""

import os
from collections.abc import Callable, Iterator
from typing import Any

import pytest
from hypothesis import Phase, Verbosity, settings

from altary.capture.session import MemorySessionStore
from altary.client import Client, PreSendHook
from altary.contracts.errors import DeliveryError
from altary.core.clock import MockClock
from altary.core.config import AltarySettings
from altary.delivery.protocols import Payload
from altary.registrar import HookSlot

# =============================================================================
# Hypothesis Configuration
# =============================================================================

# CI profile: Fast tests for continuous integration
settings.register_profile(
    "ci",
    max_examples=100,
    phases=[Phase.explicit, Phase.reuse, Phase.generate, Phase.shrink],
    deadline=None,  # Disable deadline for CI (timing varies)
)

# Nightly profile: Thorough testing for scheduled runs
settings.register_profile(
    "nightly",
    max_examples=1000,
    phases=[Phase.explicit, Phase.reuse, Phase.generate, Phase.shrink],
    deadline=None,
)

# Debug profile: Minimal examples with verbose output for debugging
settings.register_profile(
    "debug",
    max_examples=10,
    verbosity=Verbosity.verbose,
    phases=[Phase.explicit, Phase.reuse, Phase.generate, Phase.shrink],
    deadline=None,
)

settings.load_profile(os.getenv("HYPOTHESIS_PROFILE", "ci"))


# =============================================================================
# Test Doubles
# =============================================================================


class MockTransport:
    """Transport that records payloads and can simulate failures."""

    def __init__(
        self,
        name: str = "mock",
        *,
        fail_send: bool = False,
        status_code: int | None = None,
        fail_with: type[Exception] | None = None,
    ) -> None:
        self._name = name
        self._fail_send = fail_send
        self._status_code = status_code
        self._fail_with = fail_with
        self.payloads: list[Payload] = []
        self.attempts = 0
        self.configured_with: dict[str, Any] | None = None
        self.close_count = 0

    @property
    def name(self) -> str:
        return self._name

    def configure(self, config: dict[str, Any]) -> None:
        self.configured_with = config

    def send(self, payload: Payload) -> None:
        self.attempts += 1
        if self._fail_with is not None:
            raise self._fail_with("Simulated transport crash")
        if self._fail_send:
            raise DeliveryError("Simulated delivery failure", status_code=self._status_code)
        self.payloads.append(payload)

    def close(self) -> None:
        self.close_count += 1


class FakeHookSlot:
    """In-memory hook slot, so tests never touch the real process hooks."""

    def __init__(self, name: str, initial: Callable[..., Any] | None = None) -> None:
        self.name = name
        self.current = initial

    def as_slot(self, default: Callable[..., Any] | None = None) -> HookSlot:
        return HookSlot(name=self.name, get=lambda: self.current, set=self._set, default=default)

    def _set(self, hook: Callable[..., Any] | None) -> None:
        self.current = hook


class FakeExitRegistry:
    """Records atexit registrations without touching the interpreter."""

    def __init__(self) -> None:
        self.callbacks: list[Callable[[], Any]] = []

    def register(self, func: Callable[[], Any]) -> Callable[[], Any]:
        self.callbacks.append(func)
        return func

    def unregister(self, func: Callable[[], Any]) -> None:
        self.callbacks = [cb for cb in self.callbacks if cb != func]

    def run(self) -> None:
        for callback in reversed(self.callbacks):
            callback()


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def mock_clock() -> MockClock:
    """Deterministic clock starting at 2026-01-01 JST."""
    return MockClock()


@pytest.fixture
def session_store() -> MemorySessionStore:
    return MemorySessionStore()


@pytest.fixture
def transport() -> MockTransport:
    return MockTransport()


@pytest.fixture
def make_client(
    transport: MockTransport,
    session_store: MemorySessionStore,
    mock_clock: MockClock,
) -> Iterator[Callable[..., Client]]:
    """Factory building clients wired to the mock transport.

    Keyword arguments other than ``pre_send`` and ``transport`` become
    AltarySettings options.
    """

    def _make(
        *,
        pre_send: PreSendHook | None = None,
        transport_override: MockTransport | None = None,
        **options: Any,
    ) -> Client:
        options.setdefault("api_key", "k1")
        return Client(
            AltarySettings.from_options(**options),
            pre_send=pre_send,
            transport=transport_override or transport,
            session_store=session_store,
            clock=mock_clock,
        )

    yield _make
