# src/altary/contracts/__init__.py
"""Types that cross subsystem boundaries: events, enums, and errors."""

from altary.contracts.enums import EventKind, Level, Severity
from altary.contracts.errors import (
    AltaryConfigError,
    AltaryError,
    DeliveryError,
    TransportConfigError,
)
from altary.contracts.events import Event, ExceptionRef, Hint

__all__ = [
    "AltaryConfigError",
    "AltaryError",
    "DeliveryError",
    "Event",
    "EventKind",
    "ExceptionRef",
    "Hint",
    "Level",
    "Severity",
    "TransportConfigError",
]
