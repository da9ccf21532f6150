# src/altary/delivery/protocols.py
"""Protocol definitions for event transports.

Transports are responsible for shipping serialized events to the
collection endpoint (or, for debugging, to a console stream).
"""

from typing import Any, Protocol, runtime_checkable

Payload = dict[str, Any] | list[dict[str, Any]]


@runtime_checkable
class TransportProtocol(Protocol):
    """Protocol for event transports.

    Transports are discovered via pluggy hooks and selected by name in the
    client settings.

    Lifecycle:
        1. Discovery: altary_get_transports hook returns transport classes
        2. Instantiation: create_transport() creates one instance
        3. Configuration: configure() called with endpoint, api key and
           transport-specific options
        4. Operation: send() called once per flushed request
        5. Shutdown: close() called when the client is closed

    Error handling:
        - configure() MUST raise TransportConfigError on invalid config
        - send() MUST raise DeliveryError when the payload was not accepted;
          the client catches it and records it to the diagnostic sink
        - close() MUST be idempotent - safe to call multiple times
    """

    @property
    def name(self) -> str:
        """Transport name for configuration reference.

            transport:
              name: http  # matches this property
        """
        ...

    def configure(self, config: dict[str, Any]) -> None:
        """Configure the transport.

        Args:
            config: Always contains ``endpoint`` and ``api_key``, plus any
                transport-specific options from settings.

        Raises:
            TransportConfigError: If configuration is invalid or incomplete
        """
        ...

    def send(self, payload: Payload) -> None:
        """Deliver one event payload or a batch (list) of payloads.

        Raises:
            DeliveryError: If the payload was not accepted.
        """
        ...

    def close(self) -> None:
        """Release any resources held by the transport."""
        ...
