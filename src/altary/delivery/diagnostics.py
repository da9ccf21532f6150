# src/altary/delivery/diagnostics.py
"""Diagnostic sink for delivery outcomes.

Delivery failures never reach the host application. They are recorded
here instead: each failure is logged and kept in a bounded history, and
running counters back the client's health metrics.
"""

from __future__ import annotations

import threading
from collections import deque
from dataclasses import dataclass
from datetime import datetime
from typing import Any

import structlog

from altary.core.clock import now_jst

logger = structlog.get_logger(__name__)


@dataclass(frozen=True, slots=True)
class DeliveryFailure:
    """One failed delivery attempt.

    Attributes:
        timestamp: When the failure was recorded.
        transport: Name of the transport that failed.
        error: Human-readable error description.
        status_code: HTTP status, or None for network-level failures.
        event_count: Number of events in the failed request.
    """

    timestamp: datetime
    transport: str
    error: str
    status_code: int | None
    event_count: int


class DiagnosticSink:
    """Records delivery outcomes for inspection and health reporting.

    Thread Safety:
        All mutations are serialized by an internal lock.
    """

    def __init__(self, history_size: int = 100) -> None:
        self._failures: deque[DeliveryFailure] = deque(maxlen=history_size)
        self._lock = threading.Lock()
        self._events_sent = 0
        self._events_failed = 0
        self._events_filtered = 0
        self._events_skipped = 0

    def record_success(self, event_count: int) -> None:
        with self._lock:
            self._events_sent += event_count

    def record_failure(
        self,
        *,
        transport: str,
        error: str,
        status_code: int | None,
        event_count: int,
    ) -> DeliveryFailure:
        """Record a failed delivery and log it."""
        failure = DeliveryFailure(
            timestamp=now_jst(),
            transport=transport,
            error=error,
            status_code=status_code,
            event_count=event_count,
        )
        with self._lock:
            self._failures.append(failure)
            self._events_failed += event_count
        logger.warning(
            "Event delivery failed",
            transport=transport,
            status_code=status_code,
            event_count=event_count,
            error=error,
        )
        return failure

    def record_filtered(self) -> None:
        """Count an event dropped by the pre-send hook or level allow-list."""
        with self._lock:
            self._events_filtered += 1

    def record_skipped(self) -> None:
        """Count a fault signal excluded by the reporting mask."""
        with self._lock:
            self._events_skipped += 1

    @property
    def failures(self) -> list[DeliveryFailure]:
        """Recorded failures, oldest first (bounded history)."""
        with self._lock:
            return list(self._failures)

    def clear(self) -> None:
        with self._lock:
            self._failures.clear()

    @property
    def health_metrics(self) -> dict[str, Any]:
        """Return a snapshot of delivery counters.

        - events_sent: Delivered with a 2xx response
        - events_failed: Attempted and not delivered
        - events_filtered: Dropped before queueing
        - events_skipped: Fault signals excluded by the reporting mask
        - recent_failures: Number of failures in the retained history
        """
        with self._lock:
            return {
                "events_sent": self._events_sent,
                "events_failed": self._events_failed,
                "events_filtered": self._events_filtered,
                "events_skipped": self._events_skipped,
                "recent_failures": len(self._failures),
            }
