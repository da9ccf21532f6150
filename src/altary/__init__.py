"""
Altary: error telemetry client for Python applications.

Captures warnings and uncaught exceptions, enriches them with request and
environment context, and delivers them to the Altary collection endpoint.

Usage:
    import altary

    client = altary.init(api_key="...", log_levels=["error", "exception"])
"""

__version__ = "0.1.0"

import threading
from typing import Any

from altary.client import Client, PreSendHook
from altary.contracts import (
    AltaryConfigError,
    AltaryError,
    DeliveryError,
    Event,
    EventKind,
    Hint,
    Level,
    Severity,
    TransportConfigError,
)
from altary.core.config import AltarySettings, load_settings

__all__ = [
    "AltaryConfigError",
    "AltaryError",
    "AltarySettings",
    "Client",
    "DeliveryError",
    "Event",
    "EventKind",
    "Hint",
    "Level",
    "PreSendHook",
    "Severity",
    "TransportConfigError",
    "__version__",
    "init",
    "load_settings",
]

_init_lock = threading.Lock()
_initialized_client: Client | None = None


def init(*, pre_send: PreSendHook | None = None, **options: Any) -> Client:
    """Create the process-wide client and register its hooks.

    A second call returns the first client unchanged; its options are
    ignored.

    Raises:
        AltaryConfigError: If api_key is missing or options are invalid.
    """
    global _initialized_client

    with _init_lock:
        if _initialized_client is not None:
            return _initialized_client
        client = Client.from_options(pre_send=pre_send, **options)
        client.register()
        _initialized_client = client
        return client
