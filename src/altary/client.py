# src/altary/client.py
"""The Altary client: capture, enrich, filter, queue and deliver.

The Client is the central hub of the pipeline:
1. ErrorCapture builds a raw event from a fault signal or exception
2. LevelMapper assigns the semantic level
3. ContextEnricher fills derived fields
4. The level allow-list and the pre-send hook may drop or replace the event
5. DeliveryQueue holds it until flush()
6. flush() drains the queue through the transport

Design principles:
- Telemetry never disturbs the host: nothing on the capture or delivery
  path raises into host code. Only construction fails loudly.
- At most one delivery attempt per event. No retry, no redelivery.
- After flush() returns the queue is empty, whatever the outcome.

Thread Safety:
    The queue, diagnostic sink and session store are lock-protected, so one
    client can be shared by a server handling concurrent requests. flush()
    calls are serialized.
"""

from __future__ import annotations

import sys
import threading
import traceback
from collections import deque
from collections.abc import Callable, Iterable
from dataclasses import replace
from types import TracebackType
from typing import TYPE_CHECKING, Any

import structlog

from altary.capture.capture import ErrorCapture
from altary.capture.enrich import ContextEnricher
from altary.capture.levels import map_level
from altary.capture.session import CookieSessionStore, SessionIdentity, SessionStore
from altary.contracts.enums import EventKind, Level
from altary.contracts.errors import DeliveryError
from altary.contracts.events import Event, Hint
from altary.core.clock import Clock, SystemClock
from altary.core.config import AltarySettings
from altary.delivery.buffer import DeliveryQueue
from altary.delivery.diagnostics import DiagnosticSink
from altary.delivery.factory import create_transport
from altary.delivery.protocols import Payload, TransportProtocol

if TYPE_CHECKING:
    from altary.registrar import HandlerChain, HandlerRegistrar

logger = structlog.get_logger(__name__)

PreSendHook = Callable[[Event, Hint], Event | None]

# Fingerprints remembered for the exit hook's dedup check
_SEEN_FINGERPRINTS = 1000


class Client:
    """Error telemetry client.

    Example:
        >>> client = Client.from_options(api_key="k1")
        >>> client.register()
        >>> client.capture_error(Severity.USER_WARNING, "disk low", "a.py", 10)
        >>> client.flush()
    """

    def __init__(
        self,
        settings: AltarySettings,
        *,
        pre_send: PreSendHook | None = None,
        transport: TransportProtocol | None = None,
        session_store: SessionStore | None = None,
        clock: Clock | None = None,
        transport_plugins: Iterable[Any] = (),
    ) -> None:
        """Initialize the client.

        Args:
            settings: Validated settings.
            pre_send: Optional hook run on every enriched event. Return None
                to drop the event, or an Event to enqueue in its place.
            transport: Transport instance to use instead of the one named in
                settings.
            session_store: Persistence slot for the session id. Defaults to
                the request cookie store.
            clock: Timestamp source.
            transport_plugins: Extra pluggy plugins providing transports.

        Raises:
            TransportConfigError: If the configured transport cannot be
                created.
        """
        self._settings = settings
        self._pre_send = pre_send
        self._clock = clock or SystemClock()
        self._capture = ErrorCapture(reporting=settings.reporting_mask, clock=self._clock)
        self._session = SessionIdentity(session_store if session_store is not None else CookieSessionStore())
        self._enricher = ContextEnricher(
            self._session,
            user_context=settings.user,
            context_lines=settings.source_context_lines,
            clock=self._clock,
        )
        self._log_levels: frozenset[Level] | None = (
            frozenset(settings.log_levels) if settings.log_levels is not None else None
        )
        self._queue = DeliveryQueue(max_size=settings.queue_size)
        self._diagnostics = DiagnosticSink()
        self._transport = (
            transport if transport is not None else create_transport(settings, transport_plugins=transport_plugins)
        )
        self._flush_lock = threading.Lock()
        self._seen_lock = threading.Lock()
        self._seen: deque[tuple[str, str, int, str]] = deque(maxlen=_SEEN_FINGERPRINTS)
        self._closed = False

        from altary.registrar import HandlerChain

        self._handler_chain = HandlerChain()
        self._registrar: HandlerRegistrar | None = None

    # -------------------------------------------------------------------------
    # Construction helpers
    # -------------------------------------------------------------------------

    @classmethod
    def from_options(cls, *, pre_send: PreSendHook | None = None, **options: Any) -> Client:
        """Build a client from keyword options.

        Raises:
            AltaryConfigError: If api_key is missing or options are invalid.
        """
        return cls(AltarySettings.from_options(**options), pre_send=pre_send)

    @classmethod
    def from_env(cls, *, pre_send: PreSendHook | None = None, **overrides: Any) -> Client:
        """Build a client whose api key and endpoint may come from ALTARY_* variables.

        Raises:
            AltaryConfigError: If no api key is configured or in the environment.
        """
        return cls(AltarySettings.from_env(**overrides), pre_send=pre_send)

    # -------------------------------------------------------------------------
    # Accessors
    # -------------------------------------------------------------------------

    @property
    def settings(self) -> AltarySettings:
        return self._settings

    @property
    def queue(self) -> DeliveryQueue:
        return self._queue

    @property
    def diagnostics(self) -> DiagnosticSink:
        return self._diagnostics

    @property
    def session(self) -> SessionIdentity:
        return self._session

    @property
    def transport(self) -> TransportProtocol:
        return self._transport

    @property
    def handler_chain(self) -> HandlerChain:
        """Hook installation state for this client (see HandlerRegistrar)."""
        return self._handler_chain

    @property
    def health_metrics(self) -> dict[str, Any]:
        return {
            **self._diagnostics.health_metrics,
            "queue_depth": len(self._queue),
            "queue_maxsize": self._queue.maxsize,
            "queue_dropped": self._queue.dropped_count,
        }

    # -------------------------------------------------------------------------
    # Capture API
    # -------------------------------------------------------------------------

    def capture_error(
        self,
        severity: int,
        message: str,
        file: str | None = None,
        line: int | None = None,
    ) -> Event | None:
        """Capture a fault signal and send it.

        When ``file``/``line`` are omitted the caller's location is used.

        Returns:
            The queued event, or None if it was skipped, filtered or dropped.
        """
        if file is None or line is None:
            caller = traceback.extract_stack(limit=2)[0]
            file = caller.filename if file is None else file
            line = (caller.lineno or 0) if line is None else line
        return self._send_captured(lambda: self._capture.capture_error(severity, message, file, line))

    def capture_warning(
        self,
        message: Warning | str,
        category: type[Warning],
        filename: str,
        lineno: int,
    ) -> Event | None:
        """Capture a Python warning and send it."""
        return self._send_captured(lambda: self._capture.capture_warning(message, category, filename, lineno))

    def capture_exception(
        self,
        exc: BaseException | None = None,
        tb: TracebackType | None = None,
        *,
        dedupe: bool = False,
    ) -> Event | None:
        """Capture an exception and send it.

        Args:
            exc: The exception. Defaults to the one currently being handled.
            tb: Traceback to report. Defaults to ``exc.__traceback__``.
            dedupe: Skip the exception if an event with the same fingerprint
                was already captured by this client.

        Returns:
            The queued event, or None if there was nothing to capture or the
            event was dropped.
        """
        if exc is None:
            exc = sys.exc_info()[1]
            if exc is None:
                return None
        captured = exc
        return self._send_captured(lambda: self._capture.capture_exception(captured, tb), dedupe=dedupe)

    def _send_captured(self, build: Callable[[], Event | None], *, dedupe: bool = False) -> Event | None:
        try:
            event = build()
        except Exception as e:
            # ErrorCapture degrades internally; this is the last line of defence
            logger.error("Event capture failed", error=str(e))
            return None
        if event is None:
            self._diagnostics.record_skipped()
            return None
        with self._seen_lock:
            if dedupe and event.fingerprint in self._seen:
                logger.debug("Skipping already captured fault", message=event.message)
                return None
            self._seen.append(event.fingerprint)
        return self.send(event)

    # -------------------------------------------------------------------------
    # Pipeline
    # -------------------------------------------------------------------------

    def send(self, event: Event) -> Event | None:
        """Map level, enrich, filter, and enqueue ``event``.

        Never raises.

        Returns:
            The event as queued (possibly replaced by the pre-send hook), or
            None if it was dropped.
        """
        try:
            return self._process(event)
        except Exception as e:
            logger.error(
                "Event pipeline failed, event dropped",
                event_kind=str(event.kind),
                error=str(e),
            )
            return None

    def _process(self, event: Event) -> Event | None:
        if event.kind == EventKind.EXCEPTION:
            event = replace(event, level=Level.EXCEPTION)
        else:
            event = replace(event, level=map_level(event.severity_code or 0))

        event = self._enricher.enrich(event)

        if self._log_levels is not None and event.level not in self._log_levels:
            self._diagnostics.record_filtered()
            return None

        if self._pre_send is not None:
            filtered = self._run_pre_send(event)
            if filtered is None:
                self._diagnostics.record_filtered()
                return None
            event = filtered

        self._queue.append(event)
        return event

    def _run_pre_send(self, event: Event) -> Event | None:
        """Invoke the pre-send hook exactly once.

        A hook that raises drops the event: the hook is where redaction
        happens, so an event it failed on is not sent.
        """
        assert self._pre_send is not None
        try:
            result = self._pre_send(event, Hint.for_event(event))
        except Exception as e:
            logger.warning(
                "pre_send hook raised, event dropped",
                event_kind=str(event.kind),
                error_type=type(e).__name__,
                error=str(e),
            )
            return None
        if result is None or isinstance(result, Event):
            return result
        logger.warning(
            "pre_send hook returned a non-Event value, keeping original event",
            returned_type=type(result).__name__,
        )
        return event

    def flush(self) -> None:
        """Deliver every queued event, then leave the queue empty.

        Each event (or the whole batch, when ``batch_flush`` is set) gets
        exactly one delivery attempt. Failures go to the diagnostic sink and
        are never raised.
        """
        with self._flush_lock:
            events = self._queue.drain()
            if not events:
                return
            if self._settings.batch_flush:
                self._deliver([event.to_payload() for event in events], len(events))
            else:
                for event in events:
                    self._deliver(event.to_payload(), 1)

    def _deliver(self, payload: Payload, event_count: int) -> None:
        try:
            self._transport.send(payload)
        except DeliveryError as e:
            self._diagnostics.record_failure(
                transport=self._transport.name,
                error=str(e),
                status_code=e.status_code,
                event_count=event_count,
            )
        except Exception as e:
            self._diagnostics.record_failure(
                transport=self._transport.name,
                error=f"{type(e).__name__}: {e}",
                status_code=None,
                event_count=event_count,
            )
        else:
            self._diagnostics.record_success(event_count)

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    def register(self) -> bool:
        """Install fault hooks and the exit flush. Idempotent.

        Returns:
            True if anything was installed, False if already installed.
        """
        return self._get_registrar().register()

    def unregister(self) -> None:
        """Remove this client's fault hooks and exit flush."""
        self._get_registrar().unregister()

    def _get_registrar(self) -> HandlerRegistrar:
        if self._registrar is None:
            from altary.registrar import HandlerRegistrar

            self._registrar = HandlerRegistrar(self)
        return self._registrar

    def close(self) -> None:
        """Flush pending events and release the transport. Idempotent."""
        if self._closed:
            return
        self.flush()
        self._closed = True
        try:
            self._transport.close()
        except Exception as e:
            logger.warning("Transport close failed", transport=self._transport.name, error=str(e))
        logger.debug("Altary client closed", **self.health_metrics)
