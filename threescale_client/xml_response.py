"""Response Parser - turns the service's XML documents into result models.

Two document shapes are recognised:

``<status>``
    Authorization outcome: ``authorized``, optional ``reason``, ``plan``,
    ``usage_reports`` and, for OAuth, an ``application`` block.

``<error code="...">message</error>``
    Business failure; success is always False.

Optional elements that are missing default to ``None`` (or empty). Anything
that is not well-formed XML, has another root, or carries values that cannot
be typed raises FormatError. HTTP status is never inspected here.
"""

from __future__ import annotations

import xml.etree.ElementTree as ET
from datetime import datetime, timezone

from threescale_client.errors import FormatError
from threescale_client.models import AuthorizeResult, Period, ReportResult, UsageReport


TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S %z"


def _strip_ns(tag: str) -> str:
    """Remove namespace URI prefix: ``{http://...}status`` -> ``status``."""
    if tag.startswith("{"):
        return tag.split("}", 1)[1]
    return tag


def _text(element: ET.Element | None) -> str | None:
    """Stripped text of *element*, or None if absent or blank."""
    if element is None:
        return None
    text = (element.text or "").strip()
    return text or None


def _int(element: ET.Element | None, name: str) -> int:
    text = _text(element)
    if text is None:
        return 0
    try:
        return int(text)
    except ValueError as e:
        raise FormatError(f"{name} is not an integer: {text!r}") from e


def parse_timestamp(text: str) -> datetime:
    """Parse ``YYYY-MM-DD HH:MM:SS +0000`` into an aware UTC datetime."""
    try:
        return datetime.strptime(text.strip(), TIMESTAMP_FORMAT).astimezone(timezone.utc)
    except ValueError as e:
        raise FormatError(f"Invalid timestamp: {text!r}") from e


def parse_document(body: bytes | str) -> ET.Element:
    """Parse *body* and return the root element.

    Raises:
        FormatError: If *body* is empty or not well-formed XML.
    """
    if not body or not body.strip():
        raise FormatError("Empty response body")
    try:
        return ET.fromstring(body)
    except ET.ParseError as e:
        raise FormatError(f"Malformed XML response: {e}") from e


def parse_usage_report(element: ET.Element) -> UsageReport:
    metric = element.get("metric")
    period = element.get("period")
    if not metric or not period:
        raise FormatError("usage_report requires metric and period attributes")
    try:
        period_value = Period(period)
    except ValueError as e:
        raise FormatError(f"Unknown period: {period!r}") from e

    start = _text(element.find("period_start"))
    end = _text(element.find("period_end"))

    return UsageReport(
        metric=metric,
        period=period_value,
        period_start=parse_timestamp(start) if start else None,
        period_end=parse_timestamp(end) if end else None,
        current_value=_int(element.find("current_value"), "current_value"),
        max_value=_int(element.find("max_value"), "max_value"),
        exceeded=element.get("exceeded") == "true",
    )


def _error_fields(root: ET.Element) -> tuple[str | None, str | None]:
    """``(code, message)`` of an ``<error>`` element."""
    message = "".join(root.itertext()).strip()
    return root.get("code"), message or None


def _status_to_result(root: ET.Element) -> AuthorizeResult:
    authorized = _text(root.find("authorized")) == "true"

    reports = tuple(
        parse_usage_report(element)
        for element in root.findall("usage_reports/usage_report")
    )

    application = root.find("application")
    app_id = app_key = redirect_url = None
    if application is not None:
        app_id = _text(application.find("id"))
        app_key = _text(application.find("key"))
        redirect_url = _text(application.find("redirect_url"))

    return AuthorizeResult(
        success=authorized,
        plan=_text(root.find("plan")),
        usage_reports=reports,
        error_message=None if authorized else _text(root.find("reason")),
        app_id=app_id,
        app_key=app_key,
        redirect_url=redirect_url,
    )


def parse_authorize_response(body: bytes | str) -> AuthorizeResult:
    """Parse an authorize / oauth_authorize / authrep response document."""
    root = parse_document(body)
    tag = _strip_ns(root.tag)

    if tag == "status":
        return _status_to_result(root)
    if tag == "error":
        code, message = _error_fields(root)
        return AuthorizeResult(success=False, error_code=code, error_message=message)

    raise FormatError(f"Unexpected root element <{tag}>")


def parse_report_response(body: bytes | str) -> ReportResult:
    """Parse a report response document (normally an ``<error>``)."""
    root = parse_document(body)
    tag = _strip_ns(root.tag)

    if tag == "error":
        code, message = _error_fields(root)
        return ReportResult(success=False, error_code=code, error_message=message)
    if tag == "status":
        authorized = _text(root.find("authorized")) == "true"
        return ReportResult(
            success=authorized,
            error_message=None if authorized else _text(root.find("reason")),
        )

    raise FormatError(f"Unexpected root element <{tag}>")
