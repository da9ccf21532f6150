# src/altary/delivery/transports/console.py
"""Console transport for events.

Writes serialized events to stdout or stderr in JSON or human-readable
format instead of posting them. Used for local debugging and for running
the client without network access.
"""

from __future__ import annotations

import json
import sys
from typing import Any, Literal, TextIO

import structlog

from altary.contracts.errors import DeliveryError, TransportConfigError
from altary.delivery.protocols import Payload

logger = structlog.get_logger(__name__)

ConsoleFormat = Literal["json", "pretty"]
ConsoleOutput = Literal["stdout", "stderr"]


class ConsoleTransport:
    """Write events as lines on a standard stream.

    Options:
        format: "json" (default), one payload object per line, or "pretty",
            ``[TIMESTAMP] LEVEL file:line message``
        output: "stdout" (default) or "stderr"

    A batch payload is written one event per line in either format.

    Example configuration:
        transport:
          name: console
          options:
            format: pretty
            output: stderr
    """

    _name = "console"

    _FORMATS: tuple[ConsoleFormat, ...] = ("json", "pretty")
    _OUTPUTS: tuple[ConsoleOutput, ...] = ("stdout", "stderr")

    def __init__(self) -> None:
        self._format: ConsoleFormat = "json"
        self._stream: TextIO = sys.stdout

    @property
    def name(self) -> str:
        return self._name

    def _choice(self, config: dict[str, Any], key: str, choices: tuple[str, ...]) -> str:
        value = config.get(key, choices[0])
        if not isinstance(value, str):
            raise TransportConfigError(self._name, f"'{key}' must be a string, got {type(value).__name__}")
        if value not in choices:
            raise TransportConfigError(
                self._name,
                f"Invalid {key} '{value}'. Must be one of: {', '.join(sorted(choices))}",
            )
        return value

    def configure(self, config: dict[str, Any]) -> None:
        """Select format and stream.

        The ``endpoint`` and ``api_key`` entries every transport receives are
        ignored here.

        Raises:
            TransportConfigError: On a non-string or unknown option value.
        """
        fmt = self._choice(config, "format", self._FORMATS)
        output = self._choice(config, "output", self._OUTPUTS)
        self._format = "pretty" if fmt == "pretty" else "json"
        self._stream = sys.stderr if output == "stderr" else sys.stdout
        logger.debug("Console transport configured", format=fmt, output=output)

    def send(self, payload: Payload) -> None:
        """Write the payload, one line per event.

        Raises:
            DeliveryError: If the stream cannot be written.
        """
        events = payload if isinstance(payload, list) else [payload]
        render = self._render_pretty if self._format == "pretty" else self._render_json
        try:
            self._stream.write("".join(f"{render(event)}\n" for event in events))
            self._stream.flush()
        except (OSError, ValueError) as e:
            raise DeliveryError(f"Console write failed: {e}") from e

    @staticmethod
    def _render_json(event: dict[str, Any]) -> str:
        return json.dumps(event, ensure_ascii=False, default=str)

    @staticmethod
    def _render_pretty(event: dict[str, Any]) -> str:
        level = str(event.get("level") or event.get("type", "")).upper()
        location = f"{event.get('file', '')}:{event.get('line', 0)}"
        return f"[{event.get('timestamp')}] {level} {location} {event.get('message', '')}"

    def close(self) -> None:
        """Nothing to release; the standard streams are not ours to close."""
