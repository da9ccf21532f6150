# src/altary/capture/capture.py
"""Normalizes raised faults into raw events.

ErrorCapture is the first stage of the pipeline. It turns either a fault
signal (severity code, message, file, line) or an uncaught exception into
a raw Event. It runs inside the host's fault path, so it never raises:
anything that goes wrong while building an event degrades to a partial
event instead.

Severity filtering happens here: a fault signal whose code is excluded by
the reporting mask produces no event and has no side effects.
"""

from __future__ import annotations

import traceback
import weakref
from types import TracebackType

import structlog

from altary.capture.context import current_request
from altary.capture.levels import severity_for_category
from altary.contracts.enums import EventKind, Level, Severity
from altary.contracts.events import Event, ExceptionRef
from altary.core.clock import Clock, SystemClock

logger = structlog.get_logger(__name__)


def _exception_ref(exc: BaseException) -> ExceptionRef:
    """Reference the exception without keeping it alive where possible.

    Built-in exception types do not support weak references; those are
    held strongly until the event is flushed.
    """
    try:
        return weakref.ref(exc)
    except TypeError:
        return lambda: exc


def _innermost_location(tb: TracebackType | None) -> tuple[str, int]:
    if tb is None:
        return "", 0
    frames = traceback.extract_tb(tb)
    if not frames:
        return "", 0
    last = frames[-1]
    return last.filename, last.lineno or 0


def _safe_text(value: object) -> str:
    try:
        return str(value)
    except Exception:
        return f"<unprintable {type(value).__name__}>"


def _request_url() -> str:
    ctx = current_request()
    return ctx.url if ctx is not None else ""


class ErrorCapture:
    """Builds raw events from fault signals and exceptions.

    Args:
        reporting: Severity mask. Fault signals whose code is not in the
            mask are skipped entirely. Exceptions are always captured.
        clock: Source of capture timestamps.
    """

    def __init__(self, *, reporting: Severity = Severity.ALL, clock: Clock | None = None) -> None:
        self._reporting = reporting
        self._clock = clock or SystemClock()

    @property
    def reporting(self) -> Severity:
        return self._reporting

    def is_reported(self, severity: int) -> bool:
        """Return True if ``severity`` is included in the reporting mask."""
        return bool(int(self._reporting) & int(severity))

    def capture_error(self, severity: int, message: str | Warning, file: str, line: int) -> Event | None:
        """Build a raw error event from a fault signal.

        A severity that is not an integer cannot be checked against the mask;
        the fault is still captured, with no severity code.

        Returns:
            The event, or None when the severity is not reported.
        """
        code: int | None
        try:
            code = int(severity)
        except Exception:
            logger.warning("Invalid severity code, capturing unfiltered", severity_type=type(severity).__name__)
            code = None
        if code is not None and not self.is_reported(code):
            return None
        try:
            return Event(
                kind=EventKind.ERROR,
                severity_code=code,
                message=str(message),
                source_file=str(file),
                source_line=int(line),
                request_url=_request_url(),
                timestamp=self._clock.now(),
            )
        except Exception as e:
            logger.warning("Error capture degraded to partial event", error=_safe_text(e))
            return Event(kind=EventKind.ERROR, severity_code=code, message=_safe_text(message))

    def capture_warning(
        self,
        message: Warning | str,
        category: type[Warning],
        filename: str,
        lineno: int,
    ) -> Event | None:
        """Build a raw error event from a Python warning."""
        try:
            severity = severity_for_category(category)
        except TypeError:
            # category is not a class; treat like an application warning
            severity = Severity.USER_WARNING
        return self.capture_error(severity, message, filename, lineno)

    def capture_exception(self, exc: BaseException, tb: TracebackType | None = None) -> Event:
        """Build a raw exception event.

        Args:
            exc: The exception.
            tb: Traceback to report. Defaults to ``exc.__traceback__``.
        """
        tb = tb if tb is not None else exc.__traceback__
        timestamp = self._clock.now()
        message = type(exc).__name__
        try:
            message = str(exc) or type(exc).__name__
            file, line = _innermost_location(tb)
            trace = "".join(traceback.format_exception(type(exc), exc, tb))
            return Event(
                kind=EventKind.EXCEPTION,
                level=Level.EXCEPTION,
                message=message,
                source_file=file,
                source_line=line,
                stack_trace=trace or "".join(traceback.format_exception_only(type(exc), exc)),
                request_url=_request_url(),
                timestamp=timestamp,
                original_exception_ref=_exception_ref(exc),
            )
        except Exception as e:
            logger.warning(
                "Exception capture degraded to partial event",
                exception_type=type(exc).__name__,
                error=_safe_text(e),
            )
            return Event(
                kind=EventKind.EXCEPTION,
                level=Level.EXCEPTION,
                message=message,
                stack_trace=f"{type(exc).__name__}: {message}",
                timestamp=timestamp,
                original_exception_ref=_exception_ref(exc),
            )
