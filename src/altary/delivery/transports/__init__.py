# src/altary/delivery/transports/__init__.py
"""Built-in event transports.

Available transports:
- HttpTransport: POST events to the collection endpoint (default)
- ConsoleTransport: Write events to stdout/stderr for debugging

Plugin registration:
    Transports are registered via the altary_get_transports hook.
    BuiltinTransportsPlugin in this module registers the built-in ones.
"""

from altary.delivery.hookspecs import hookimpl
from altary.delivery.transports.console import ConsoleTransport
from altary.delivery.transports.http import HttpTransport


class BuiltinTransportsPlugin:
    """Plugin that registers built-in transports."""

    @hookimpl
    def altary_get_transports(self) -> list[type]:
        """Return built-in transport classes."""
        return [HttpTransport, ConsoleTransport]


__all__ = [
    "BuiltinTransportsPlugin",
    "ConsoleTransport",
    "HttpTransport",
]
