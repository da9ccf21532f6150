# src/altary/delivery/buffer.py
"""Ordered buffer of enriched events awaiting transmission.

Key design decisions:
- Insertion order preserved, no deduplication
- Ring buffer via deque(maxlen=N): a runaway fault loop in a long-lived
  process evicts the oldest events instead of growing without bound
- Correct overflow counting: check was_full BEFORE append (deque evicts during)
- Aggregate logging: log every 100 drops to prevent Warning Fatigue
- drain() empties the buffer atomically; flush never sees a partial view
"""

import threading
from collections import deque

import structlog

from altary.contracts.events import Event

logger = structlog.get_logger(__name__)


class DeliveryQueue:
    """Ring buffer of events, drained in full on flush.

    Thread Safety:
        append() and drain() are serialized by an internal lock so that a
        server handling concurrent requests can share one client.

    Attributes:
        dropped_count: Total number of events evicted due to overflow.

    Example:
        queue = DeliveryQueue(max_size=1000)
        queue.append(event)
        batch = queue.drain()
    """

    # Log aggregate metrics every N drops to avoid Warning Fatigue
    _LOG_INTERVAL = 100

    def __init__(self, max_size: int = 10_000) -> None:
        """Initialize an empty queue.

        Args:
            max_size: Maximum number of queued events. When full, the oldest
                event is evicted on append. Defaults to 10,000.

        Raises:
            ValueError: If max_size < 1.
        """
        if max_size < 1:
            raise ValueError(f"max_size must be >= 1, got {max_size}")
        self._buffer: deque[Event] = deque(maxlen=max_size)
        self._lock = threading.Lock()
        self._dropped_count: int = 0
        self._last_logged_drop_count: int = 0

    def append(self, event: Event) -> None:
        """Append event to the queue, tracking drops correctly."""
        with self._lock:
            was_full = len(self._buffer) == self._buffer.maxlen
            self._buffer.append(event)
            if not was_full:
                return
            # deque auto-dropped the oldest item
            self._dropped_count += 1

            if self._dropped_count - self._last_logged_drop_count >= self._LOG_INTERVAL:
                logger.warning(
                    "Delivery queue overflow - events dropped",
                    dropped_since_last_log=self._dropped_count - self._last_logged_drop_count,
                    dropped_total=self._dropped_count,
                    queue_size=self._buffer.maxlen,
                    hint="Call flush() more often or raise queue_size",
                )
                self._last_logged_drop_count = self._dropped_count

    def drain(self) -> list[Event]:
        """Remove and return every queued event, oldest first."""
        with self._lock:
            events = list(self._buffer)
            self._buffer.clear()
        return events

    def snapshot(self) -> list[Event]:
        """Return the queued events without removing them."""
        with self._lock:
            return list(self._buffer)

    @property
    def maxsize(self) -> int:
        # maxlen is always set by __init__
        return self._buffer.maxlen or 0

    @property
    def dropped_count(self) -> int:
        """Number of events dropped due to overflow."""
        return self._dropped_count

    def __len__(self) -> int:
        return len(self._buffer)
