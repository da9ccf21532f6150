# src/altary/contracts/errors.py
"""Altary-specific exceptions.

These are raised for misconfiguration of the client itself. Delivery
problems are represented by DeliveryError, which the client always catches
and records; nothing here is ever raised into the host's request path
after construction.
"""


class AltaryError(Exception):
    """Base class for all Altary exceptions."""


class AltaryConfigError(AltaryError):
    """Raised at client construction when configuration is missing or invalid.

    Misconfiguration must surface at startup, not as silently dropped
    events later.
    """


class TransportConfigError(AltaryError):
    """Raised when a transport encounters a configuration or discovery error.

    This is raised during transport setup (configure/discovery), NOT during
    delivery. Delivery failures are DeliveryError.

    Attributes:
        transport_name: Name of the transport that failed
        message: Human-readable error description
    """

    def __init__(self, transport_name: str, message: str) -> None:
        self.transport_name = transport_name
        self.message = message
        super().__init__(f"Transport '{transport_name}' failed: {message}")


class DeliveryError(AltaryError):
    """Raised by a transport when a payload could not be delivered.

    Attributes:
        status_code: HTTP status returned by the endpoint, or None for
            network-level failures.
    """

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        self.status_code = status_code
        super().__init__(message)
