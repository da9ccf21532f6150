# src/altary/delivery/__init__.py
"""Queueing and delivery stages of the event pipeline.

Components:
- buffer: DeliveryQueue, the ordered buffer drained on flush
- diagnostics: DiagnosticSink recording delivery failures and counters
- protocols: TransportProtocol for implementing transports
- hookspecs: pluggy hooks for transport discovery
- factory: create_transport() builds the configured transport
- transports: Built-in transports (HttpTransport, ConsoleTransport)
"""

from altary.delivery.buffer import DeliveryQueue
from altary.delivery.diagnostics import DeliveryFailure, DiagnosticSink
from altary.delivery.factory import create_transport, discover_transports
from altary.delivery.protocols import Payload, TransportProtocol
from altary.delivery.transports import ConsoleTransport, HttpTransport

__all__ = [
    "ConsoleTransport",
    "DeliveryFailure",
    "DeliveryQueue",
    "DiagnosticSink",
    "HttpTransport",
    "Payload",
    "TransportProtocol",
    "create_transport",
    "discover_transports",
]
