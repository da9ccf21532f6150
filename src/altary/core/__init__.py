# src/altary/core/__init__.py
"""Core infrastructure: configuration, logging, and the event clock."""

from altary.core.clock import JST, Clock, MockClock, SystemClock, now_jst
from altary.core.config import AltarySettings, TransportSettings, load_settings

__all__ = [
    "JST",
    "AltarySettings",
    "Clock",
    "MockClock",
    "SystemClock",
    "TransportSettings",
    "load_settings",
    "now_jst",
]
