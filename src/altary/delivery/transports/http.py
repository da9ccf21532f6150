# src/altary/delivery/transports/http.py
"""HTTP transport for the collection endpoint.

POSTs serialized events as JSON with bearer-token authentication. One
httpx.Client is kept per transport for connection reuse across a flush.
"""

from __future__ import annotations

import json
import time
from typing import Any

import httpx
import structlog

from altary.contracts.errors import DeliveryError, TransportConfigError
from altary.delivery.protocols import Payload

logger = structlog.get_logger(__name__)

DEFAULT_TIMEOUT_SECONDS = 15.0
DEFAULT_CONNECT_TIMEOUT_SECONDS = 10.0
DEFAULT_MAX_REDIRECTS = 5

_monotonic = time.monotonic


def _positive_float(transport: str, key: str, value: Any) -> float:
    if isinstance(value, bool) or not isinstance(value, int | float) or value <= 0:
        raise TransportConfigError(transport, f"'{key}' must be a positive number, got {value!r}")
    return float(value)


class HttpTransport:
    """Deliver events to the collection endpoint over HTTPS.

    Configuration options:
        endpoint: Collection URL (required, supplied from settings)
        api_key: Bearer token (required, supplied from settings)
        timeout: Total seconds for one request (default: 15). httpx limits
            each connect/read/write phase separately, so the response body
            is read in chunks and abandoned once the total is exceeded. A
            peer stalling inside a single read can overrun by at most one
            read timeout.
        connect_timeout: Connect timeout in seconds (default: 10)
        max_redirects: Redirects to follow (default: 5)

    Example configuration:
        transport:
          name: http
          options:
            timeout: 5
    """

    _name = "http"

    def __init__(self) -> None:
        """Initialize unconfigured transport."""
        self._endpoint: str | None = None
        self._headers: dict[str, str] = {}
        self._timeout = DEFAULT_TIMEOUT_SECONDS
        self._client: httpx.Client | None = None

    @property
    def name(self) -> str:
        return self._name

    def configure(self, config: dict[str, Any]) -> None:
        """Configure endpoint, credentials, timeouts and redirect policy.

        Raises:
            TransportConfigError: If endpoint or api_key are missing, or a
                numeric option is invalid
        """
        endpoint = config.get("endpoint")
        if not isinstance(endpoint, str) or not endpoint:
            raise TransportConfigError(self._name, "HTTP transport requires 'endpoint' in config")
        api_key = config.get("api_key")
        if not isinstance(api_key, str) or not api_key:
            raise TransportConfigError(self._name, "HTTP transport requires 'api_key' in config")

        timeout = _positive_float(self._name, "timeout", config.get("timeout", DEFAULT_TIMEOUT_SECONDS))
        connect_timeout = _positive_float(
            self._name, "connect_timeout", config.get("connect_timeout", DEFAULT_CONNECT_TIMEOUT_SECONDS)
        )
        max_redirects = config.get("max_redirects", DEFAULT_MAX_REDIRECTS)
        if isinstance(max_redirects, bool) or not isinstance(max_redirects, int) or max_redirects < 0:
            raise TransportConfigError(self._name, f"'max_redirects' must be a non-negative integer, got {max_redirects!r}")

        self.close()
        self._endpoint = endpoint
        self._timeout = timeout
        self._headers = {
            "Content-Type": "application/json",
            "Accept": "application/json",
            "Authorization": f"Bearer {api_key}",
        }
        self._client = httpx.Client(
            timeout=httpx.Timeout(timeout, connect=connect_timeout),
            follow_redirects=max_redirects > 0,
            max_redirects=max_redirects,
        )
        logger.debug(
            "HTTP transport configured",
            endpoint=endpoint,
            timeout=timeout,
            connect_timeout=connect_timeout,
            max_redirects=max_redirects,
        )

    def send(self, payload: Payload) -> None:
        """POST ``payload`` to the endpoint.

        Raises:
            DeliveryError: On network failure, on exceeding the total
                timeout, or on any non-2xx status.
        """
        if self._client is None or self._endpoint is None:
            raise DeliveryError("HTTP transport is not configured")

        body = json.dumps(payload, ensure_ascii=False, default=str).encode("utf-8")
        deadline = _monotonic() + self._timeout
        try:
            with self._client.stream("POST", self._endpoint, content=body, headers=self._headers) as response:
                for _chunk in response.iter_bytes():
                    if _monotonic() > deadline:
                        raise DeliveryError(f"Request exceeded total timeout of {self._timeout:g}s")
        except httpx.HTTPError as e:
            raise DeliveryError(f"{type(e).__name__}: {e}") from e

        logger.debug(
            "Payload posted",
            endpoint=self._endpoint,
            status_code=response.status_code,
            body_bytes=len(body),
        )
        if not response.is_success:
            raise DeliveryError(
                f"Unexpected HTTP status code received: {response.status_code}",
                status_code=response.status_code,
            )

    def close(self) -> None:
        """Close the underlying connection pool. Idempotent."""
        if self._client is not None:
            self._client.close()
            self._client = None
