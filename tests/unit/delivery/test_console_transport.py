# tests/unit/delivery/test_console_transport.py
"""Tests for ConsoleTransport output formats and configuration."""

import json

import pytest

from altary.contracts import TransportConfigError
from altary.delivery.transports.console import ConsoleTransport

PAYLOAD = {
    "type": "error",
    "level": "warning",
    "message": "disk low",
    "file": "a.py",
    "line": 10,
    "timestamp": "2026-01-01T09:00:00+09:00",
}


class TestConsoleTransportOutput:
    def test_json_format_one_line_per_event(self, capsys: pytest.CaptureFixture[str]) -> None:
        transport = ConsoleTransport()
        transport.configure({})

        transport.send([PAYLOAD, {**PAYLOAD, "message": "second"}])

        lines = capsys.readouterr().out.strip().splitlines()
        assert len(lines) == 2
        assert json.loads(lines[0]) == PAYLOAD
        assert json.loads(lines[1])["message"] == "second"

    def test_pretty_format(self, capsys: pytest.CaptureFixture[str]) -> None:
        transport = ConsoleTransport()
        transport.configure({"format": "pretty"})

        transport.send(PAYLOAD)

        assert capsys.readouterr().out.strip() == "[2026-01-01T09:00:00+09:00] WARNING a.py:10 disk low"

    def test_stderr_output(self, capsys: pytest.CaptureFixture[str]) -> None:
        transport = ConsoleTransport()
        transport.configure({"output": "stderr", "endpoint": "ignored", "api_key": "ignored"})

        transport.send(PAYLOAD)

        captured = capsys.readouterr()
        assert captured.out == ""
        assert "disk low" in captured.err


class TestConsoleTransportConfigure:
    @pytest.mark.parametrize(
        ("config", "match"),
        [
            ({"format": "xml"}, "Invalid format"),
            ({"format": 1}, "'format' must be a string"),
            ({"output": "file"}, "Invalid output"),
            ({"output": None}, "'output' must be a string"),
        ],
    )
    def test_invalid_config(self, config: dict[str, object], match: str) -> None:
        with pytest.raises(TransportConfigError, match=match):
            ConsoleTransport().configure(config)
