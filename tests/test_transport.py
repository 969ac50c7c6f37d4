"""Tests for threescale_client.transport.HttpxTransport.

Tests cover:
- Requests reach httpx unchanged (pre-encoded query strings, headers, body)
- Response conversion (status, lowercased headers, raw body)
- httpx failures mapped to TransportError
- Persistent vs per-request client lifecycle, including concurrent first use
- End-to-end Client calls over an httpx.MockTransport
"""

import threading
import time
from unittest.mock import patch

import httpx
import pytest

from threescale_client import Client, HttpxTransport, ServerError, TransportError
from tests.conftest import STATUS_AUTHORIZED


BASE_URL = "http://su1.3scale.net"


class RecordingHandler:
    """httpx.MockTransport handler that records requests."""

    def __init__(self, response: httpx.Response | None = None, error: Exception | None = None) -> None:
        self.requests: list[httpx.Request] = []
        self._response = response or httpx.Response(200)
        self._error = error

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self._error is not None:
            raise self._error
        return self._response


def _transport(handler: RecordingHandler, persistent: bool = False) -> HttpxTransport:
    return HttpxTransport(BASE_URL, persistent=persistent, http_transport=httpx.MockTransport(handler))


class TestHttpxTransportSend:
    def test_query_string_sent_as_encoded(self) -> None:
        handler = RecordingHandler()
        transport = _transport(handler)

        transport.send("GET", "/transactions/authrep.xml?provider_key=k&usage%5Bhits%5D=%230", {})

        request = handler.requests[0]
        assert request.method == "GET"
        assert request.url.path == "/transactions/authrep.xml"
        assert request.url.query == b"provider_key=k&usage%5Bhits%5D=%230"

    def test_headers_and_body_forwarded(self) -> None:
        handler = RecordingHandler()
        transport = _transport(handler)

        transport.send(
            "POST",
            "/transactions.xml",
            {"X-3scale-User-Agent": "plugin-python-v1", "Content-Type": "application/x-www-form-urlencoded"},
            b"provider_key=k",
        )

        request = handler.requests[0]
        assert request.headers["x-3scale-user-agent"] == "plugin-python-v1"
        assert request.headers["content-type"] == "application/x-www-form-urlencoded"
        assert request.content == b"provider_key=k"

    def test_response_converted(self) -> None:
        handler = RecordingHandler(
            httpx.Response(409, headers={"Content-Type": "application/xml"}, content=b"<status/>")
        )
        transport = _transport(handler)

        response = transport.send("GET", "/transactions/authorize.xml", {})

        assert response.status_code == 409
        assert response.headers["content-type"] == "application/xml"
        assert response.body == b"<status/>"

    @pytest.mark.parametrize(
        "error",
        [
            httpx.ConnectError("connection refused"),
            httpx.ReadTimeout("read timed out"),
            httpx.RemoteProtocolError("server hung up"),
        ],
    )
    def test_httpx_errors_become_transport_errors(self, error: Exception) -> None:
        transport = _transport(RecordingHandler(error=error))

        with pytest.raises(TransportError) as exc_info:
            transport.send("GET", "/transactions/authorize.xml", {})

        assert exc_info.value.__cause__ is error


class TestHttpxTransportLifecycle:
    def test_persistent_reuses_client(self) -> None:
        transport = _transport(RecordingHandler(), persistent=True)

        transport.send("GET", "/a", {})
        first = transport._client
        transport.send("GET", "/b", {})

        assert first is not None
        assert transport._client is first

        transport.close()
        assert transport._client is None

    def test_non_persistent_builds_client_per_request(self) -> None:
        with patch("threescale_client.transport.httpx.Client") as mock_client_cls:
            mock_client = mock_client_cls.return_value.__enter__.return_value
            mock_client.request.return_value = httpx.Response(200)
            transport = HttpxTransport(BASE_URL)

            transport.send("GET", "/a", {})
            transport.send("GET", "/b", {})

        assert mock_client_cls.call_count == 2
        assert transport._client is None

    def test_client_kwargs(self) -> None:
        with patch("threescale_client.transport.httpx.Client") as mock_client_cls:
            HttpxTransport("https://example.com", timeout=5.0, persistent=True, verify=False)._get_client()

        kwargs = mock_client_cls.call_args.kwargs
        assert kwargs == {"base_url": "https://example.com", "timeout": 5.0, "verify": False}

    def test_concurrent_first_sends_build_one_client(self) -> None:
        transport = _transport(RecordingHandler(), persistent=True)
        build = transport._build_client
        built: list[httpx.Client] = []

        def slow_build() -> httpx.Client:
            time.sleep(0.05)
            client = build()
            built.append(client)
            return client

        barrier = threading.Barrier(4)

        def worker() -> None:
            barrier.wait()
            transport.send("GET", "/a", {})

        with patch.object(transport, "_build_client", side_effect=slow_build):
            threads = [threading.Thread(target=worker) for _ in range(4)]
            for thread in threads:
                thread.start()
            for thread in threads:
                thread.join()

        assert len(built) == 1
        transport.close()
        assert built[0].is_closed

    def test_context_manager_closes(self) -> None:
        with _transport(RecordingHandler(), persistent=True) as transport:
            transport.send("GET", "/a", {})
        assert transport._client is None


class TestClientOverHttpx:
    def test_authorize_end_to_end(self) -> None:
        handler = RecordingHandler(httpx.Response(200, content=STATUS_AUTHORIZED.encode("utf-8")))
        client = Client("foo", transport=_transport(handler))

        result = client.authorize(app_id="foo")

        request = handler.requests[0]
        assert str(request.url) == (
            "http://su1.3scale.net/transactions/authorize.xml?provider_key=foo&app_id=foo"
        )
        assert request.headers["host"] == "su1.3scale.net"
        assert request.headers["x-3scale-user-agent"].startswith("plugin-python-v")
        assert result.success is True

    def test_connection_refused_is_server_error(self) -> None:
        handler = RecordingHandler(error=httpx.ConnectError("connection refused"))
        client = Client("foo", transport=_transport(handler))

        with pytest.raises(ServerError):
            client.report({"app_id": "foo", "usage": {"hits": 1}})
