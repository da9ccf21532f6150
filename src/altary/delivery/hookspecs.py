# src/altary/delivery/hookspecs.py
"""pluggy hook specifications for event transports.

Transports implement these hooks to register themselves. create_transport()
calls them to build the name -> class registry.

Usage (implementing a transport plugin):
    from altary.delivery.hookspecs import hookimpl

    class MyTransportPlugin:
        @hookimpl
        def altary_get_transports(self):
            return [MyTransport]
"""

from typing import TYPE_CHECKING

import pluggy

if TYPE_CHECKING:
    from altary.delivery.protocols import TransportProtocol

PROJECT_NAME = "altary"

# Hook specification marker
hookspec = pluggy.HookspecMarker(PROJECT_NAME)

# Hook implementation marker (for transport plugins to use)
hookimpl = pluggy.HookimplMarker(PROJECT_NAME)


class AltaryTransportSpec:
    """Hook specifications for transport plugins."""

    @hookspec
    def altary_get_transports(self) -> list[type["TransportProtocol"]]:  # type: ignore[empty-body]
        """Return transport classes.

        Returns:
            List of transport classes (not instances) that implement
            TransportProtocol
        """
