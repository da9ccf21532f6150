# src/altary/contracts/events.py
"""The telemetry event and the hint handed to pre-send hooks.

An Event is built once by ErrorCapture, decorated by ContextEnricher, and
then either dropped or queued for delivery. Events are immutable: every
stage that adds information returns a new instance via
``dataclasses.replace``.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from altary.contracts.enums import EventKind, Level

ExceptionRef = Callable[[], BaseException | None]


@dataclass(frozen=True, slots=True)
class Event:
    """One structured telemetry record describing a captured fault.

    Attributes:
        kind: Whether this came from a fault signal (error) or an
            uncaught exception.
        message: Human-readable fault message.
        source_file: Path of the file that raised the fault.
        source_line: 1-based line number within ``source_file``.
        severity_code: Raw severity code (errors only).
        level: Semantic level; always ``Level.EXCEPTION`` for exceptions.
        stack_trace: Formatted traceback text (exceptions only).
        request_url: Host + path of the triggering request, or "" outside
            a request.
        timestamp: Capture time at the fixed +09:00 offset. Set once.
        client_ip: Resolved client address, "0.0.0.0" when unknown.
        session_id: Pseudo-anonymous client token.
        user_agent_os: Parsed OS family and version.
        user_agent_browser: Parsed browser family and version.
        user_agent_device: Parsed device class.
        source_excerpt: Numbered lines around ``source_line``, the
            too-large sentinel, or None.
        user_context: Host-supplied mapping attached verbatim.
        environment: Snapshot of the process and request environment.
        original_exception_ref: Callable returning the raw exception, for
            the pre-send hint only. Never serialized or compared.
    """

    kind: EventKind
    message: str
    source_file: str = ""
    source_line: int = 0
    severity_code: int | None = None
    level: Level | None = None
    stack_trace: str | None = None
    request_url: str = ""
    timestamp: datetime | None = None
    client_ip: str = ""
    session_id: str = ""
    user_agent_os: str = ""
    user_agent_browser: str = ""
    user_agent_device: str = ""
    source_excerpt: str | None = None
    user_context: dict[str, Any] | None = None
    environment: dict[str, Any] = field(default_factory=dict)
    original_exception_ref: ExceptionRef | None = field(default=None, compare=False, repr=False)

    @property
    def fingerprint(self) -> tuple[str, str, int, str]:
        """Dedup key: (kind, file, line, message)."""
        return (self.kind.value, self.source_file, self.source_line, self.message)

    def to_payload(self) -> dict[str, Any]:
        """Serialize to the collector's wire format.

        Key names follow the collection endpoint's schema rather than the
        attribute names. ``errno`` is only present for errors and ``trace``
        only for exceptions.
        """
        payload: dict[str, Any] = {
            "type": self.kind.value,
            "level": self.level.value if self.level is not None else None,
            "message": self.message,
            "file": self.source_file,
            "line": self.source_line,
            "url": self.request_url,
            "file_content": self.source_excerpt,
            "timestamp": self.timestamp.isoformat() if self.timestamp is not None else None,
            "client_ip": self.client_ip,
            "session_id": self.session_id,
            "os": self.user_agent_os,
            "browser": self.user_agent_browser,
            "device": self.user_agent_device,
            "user": self.user_context,
            "environment": self.environment,
        }
        if self.kind == EventKind.ERROR:
            payload["errno"] = self.severity_code
        else:
            payload["trace"] = self.stack_trace
        return payload


@dataclass(frozen=True, slots=True)
class Hint:
    """Extra context passed to the pre-send hook alongside the event.

    Attributes:
        kind: The event's kind.
        original_exception: The raw exception for exception events, if it
            is still alive. None for errors.
    """

    kind: EventKind
    original_exception: BaseException | None = None

    @classmethod
    def for_event(cls, event: Event) -> Hint:
        original = event.original_exception_ref() if event.original_exception_ref is not None else None
        return cls(kind=event.kind, original_exception=original)
