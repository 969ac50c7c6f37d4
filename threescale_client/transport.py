"""Transport - sends one HTTP request and hands back status, headers and body.

The client depends only on the Transport protocol, so tests (and callers with
their own HTTP stack) can inject any object with ``send`` and ``close``.
HttpxTransport is the default implementation.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from typing import Any, Protocol

import httpx

from threescale_client.errors import TransportError


@dataclass
class TransportResponse:
    status_code: int
    headers: dict[str, str] = field(default_factory=dict)  # lowercase keys
    body: bytes = b""


class Transport(Protocol):
    def send(
        self,
        method: str,
        path: str,
        headers: dict[str, str],
        body: bytes | None = None,
    ) -> TransportResponse:
        """Send one request. Raise TransportError if no response was received."""
        ...

    def close(self) -> None:
        ...


class HttpxTransport:
    """Transport backed by httpx.

    Usage:
        transport = HttpxTransport("https://su1.3scale.net", persistent=True)
        try:
            response = transport.send("GET", "/transactions/authorize.xml?...", headers)
        finally:
            transport.close()

    With ``persistent=True`` one httpx.Client (and its connection pool) lives
    as long as the transport; otherwise each request opens and closes its own
    client. The shared client is built once under a lock and httpx.Client is
    thread-safe, so a persistent transport may be shared across threads.
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = 30.0,
        persistent: bool = False,
        verify: bool | str = True,
        http_transport: httpx.BaseTransport | None = None,
    ) -> None:
        """Initialize the transport.

        Args:
            base_url: Scheme and host, e.g. ``http://su1.3scale.net``.
            timeout: Timeout in seconds for connect, read and write.
            persistent: Keep one connection pool across requests.
            verify: TLS verification flag or CA bundle path.
            http_transport: Lower-level httpx transport (e.g. httpx.MockTransport).
        """
        self._base_url = base_url
        self._timeout = timeout
        self._persistent = persistent
        self._verify = verify
        self._http_transport = http_transport
        self._client: httpx.Client | None = None
        # Guards building and closing the shared client in persistent mode
        self._lock = threading.Lock()

    @property
    def persistent(self) -> bool:
        return self._persistent

    def _build_client(self) -> httpx.Client:
        kwargs: dict[str, Any] = {
            "base_url": self._base_url,
            "timeout": self._timeout,
            "verify": self._verify,
        }
        if self._http_transport is not None:
            kwargs["transport"] = self._http_transport
        return httpx.Client(**kwargs)

    def _get_client(self) -> httpx.Client:
        client = self._client
        if client is not None and not client.is_closed:
            return client
        with self._lock:
            if self._client is None or self._client.is_closed:
                self._client = self._build_client()
            return self._client

    def send(
        self,
        method: str,
        path: str,
        headers: dict[str, str],
        body: bytes | None = None,
    ) -> TransportResponse:
        """Send a request. *path* may carry an already-encoded query string.

        Raises:
            TransportError: On timeout, connection failure or other httpx error.
        """
        if self._persistent:
            return self._send(self._get_client(), method, path, headers, body)
        with self._build_client() as client:
            return self._send(client, method, path, headers, body)

    def _send(
        self,
        client: httpx.Client,
        method: str,
        path: str,
        headers: dict[str, str],
        body: bytes | None,
    ) -> TransportResponse:
        try:
            response = client.request(method, path, headers=headers, content=body)
        except httpx.TimeoutException as e:
            raise TransportError(f"Request timeout: {e}") from e
        except httpx.ConnectError as e:
            raise TransportError(f"Connection error: {e}") from e
        except httpx.HTTPError as e:
            raise TransportError(f"Request error: {e}") from e

        return TransportResponse(
            status_code=response.status_code,
            headers={key.lower(): value for key, value in response.headers.items()},
            body=response.content,
        )

    def close(self) -> None:
        with self._lock:
            if self._client is not None:
                self._client.close()
                self._client = None

    def __enter__(self) -> "HttpxTransport":
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.close()
