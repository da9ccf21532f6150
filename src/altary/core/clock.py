# src/altary/core/clock.py
"""Clock abstraction for event timestamps.

Events are stamped in a fixed UTC+9 offset, which is what the collection
endpoint expects regardless of the host's local timezone.

Production code uses SystemClock (the default).
Tests inject MockClock to get deterministic timestamps.
"""

from __future__ import annotations

from datetime import UTC, datetime, timedelta, timezone
from typing import Protocol

JST = timezone(timedelta(hours=9), name="JST")


def now_jst() -> datetime:
    """Return the current time as an aware datetime at +09:00."""
    return datetime.now(tz=UTC).astimezone(JST)


class Clock(Protocol):
    """Abstract wall clock used to stamp captured events."""

    def now(self) -> datetime:
        """Return the current time as an aware datetime."""
        ...


class SystemClock:
    """Production clock returning the real time at +09:00."""

    def now(self) -> datetime:
        return now_jst()


class MockClock:
    """Controllable clock for deterministic testing.

    Example:
        clock = MockClock(datetime(2026, 1, 1, 12, 0, tzinfo=JST))
        client = Client(settings, clock=clock)
        clock.advance(timedelta(seconds=5))
    """

    def __init__(self, start: datetime | None = None) -> None:
        self._current = start or datetime(2026, 1, 1, 0, 0, 0, tzinfo=JST)

    def now(self) -> datetime:
        return self._current

    def advance(self, delta: timedelta) -> None:
        """Advance the clock by ``delta``."""
        self._current = self._current + delta
