"""Pytest configuration and fixtures for threescale_client tests.

This file provides:
- RecordingTransport: in-memory Transport that records requests and replays
  queued responses
- Canned XML documents shaped like the service's responses
- Fixtures: a client wired to a RecordingTransport
"""

from __future__ import annotations

from dataclasses import dataclass
from urllib.parse import parse_qsl, urlsplit

import pytest

from threescale_client import Client, TransportResponse


PROVIDER_KEY = "1234abcd"


@dataclass
class RecordedRequest:
    method: str
    path: str
    headers: dict[str, str]
    body: bytes | None

    @property
    def route(self) -> str:
        """Path without the query string."""
        return urlsplit(self.path).path

    @property
    def query(self) -> str:
        return urlsplit(self.path).query

    def query_pairs(self) -> list[tuple[str, str]]:
        return parse_qsl(self.query, keep_blank_values=True)

    def form_pairs(self) -> list[tuple[str, str]]:
        return parse_qsl((self.body or b"").decode("ascii"), keep_blank_values=True)


class RecordingTransport:
    """Transport double: records every send and returns queued responses.

    Usage:
        transport = RecordingTransport()
        transport.queue(200, STATUS_AUTHORIZED)
        client = Client("key", transport=transport)
        client.authorize(app_id="foo")
        assert transport.last_request.route == "/transactions/authorize.xml"
    """

    def __init__(self) -> None:
        self.requests: list[RecordedRequest] = []
        self._responses: list[TransportResponse] = []
        self.error: Exception | None = None
        self.closed = False

    def queue(self, status_code: int, body: bytes | str = b"", headers: dict[str, str] | None = None) -> None:
        if isinstance(body, str):
            body = body.encode("utf-8")
        self._responses.append(TransportResponse(status_code=status_code, headers=headers or {}, body=body))

    def send(
        self,
        method: str,
        path: str,
        headers: dict[str, str],
        body: bytes | None = None,
    ) -> TransportResponse:
        self.requests.append(RecordedRequest(method, path, dict(headers), body))
        if self.error is not None:
            raise self.error
        if self._responses:
            return self._responses.pop(0)
        return TransportResponse(status_code=200, body=STATUS_AUTHORIZED.encode("utf-8"))

    def close(self) -> None:
        self.closed = True

    @property
    def last_request(self) -> RecordedRequest:
        return self.requests[-1]


STATUS_AUTHORIZED = """<status>
  <authorized>true</authorized>
  <plan>Ultimate</plan>
</status>"""

STATUS_WITH_REPORTS = """<status>
  <authorized>true</authorized>
  <plan>Ultimate</plan>
  <usage_reports>
    <usage_report metric="hits" period="day">
      <period_start>2010-04-26 00:00:00 +0000</period_start>
      <period_end>2010-04-27 00:00:00 +0000</period_end>
      <current_value>10023</current_value>
      <max_value>50000</max_value>
    </usage_report>
    <usage_report metric="hits" period="month">
      <period_start>2010-04-01 00:00:00 +0000</period_start>
      <period_end>2010-05-01 00:00:00 +0000</period_end>
      <current_value>999872</current_value>
      <max_value>150000</max_value>
    </usage_report>
  </usage_reports>
</status>"""

STATUS_EXCEEDED = """<status>
  <authorized>false</authorized>
  <reason>usage limits are exceeded</reason>
  <plan>Ultimate</plan>
  <usage_reports>
    <usage_report metric="hits" period="day" exceeded="true">
      <period_start>2010-04-26 00:00:00 +0000</period_start>
      <period_end>2010-04-27 00:00:00 +0000</period_end>
      <current_value>50002</current_value>
      <max_value>50000</max_value>
    </usage_report>
    <usage_report metric="hits" period="month">
      <period_start>2010-04-01 00:00:00 +0000</period_start>
      <period_end>2010-05-01 00:00:00 +0000</period_end>
      <current_value>999872</current_value>
      <max_value>150000</max_value>
    </usage_report>
  </usage_reports>
</status>"""

STATUS_OAUTH = """<status>
  <authorized>true</authorized>
  <application>
    <id>94bd2de3</id>
    <key>883bdb8dbc3b6b77dbcf26845560fdbb</key>
    <redirect_url>http://localhost:8080/oauth/oauth_redirect</redirect_url>
  </application>
  <plan>Ultimate</plan>
  <usage_reports>
    <usage_report metric="hits" period="week">
      <period_start>2012-01-30 00:00:00 +0000</period_start>
      <period_end>2012-02-06 00:00:00 +0000</period_end>
      <max_value>5000</max_value>
      <current_value>1</current_value>
    </usage_report>
    <usage_report metric="update" period="minute">
      <period_start>2012-02-03 00:00:00 +0000</period_start>
      <period_end>2012-02-03 00:00:00 +0000</period_end>
      <max_value>0</max_value>
      <current_value>0</current_value>
    </usage_report>
  </usage_reports>
</status>"""

ERROR_APPLICATION_NOT_FOUND = (
    '<error code="application_not_found">application with id="foo" was not found</error>'
)

ERROR_PROVIDER_KEY_INVALID = '<error code="provider_key_invalid">provider key "foo" is invalid</error>'


@pytest.fixture
def transport() -> RecordingTransport:
    return RecordingTransport()


@pytest.fixture
def client(transport: RecordingTransport) -> Client:
    return Client(PROVIDER_KEY, transport=transport)
