"""Data models for the 3scale client.

All models use Pydantic v2 with ``extra="forbid"`` so a misspelled option is
rejected at construction instead of silently dropped from the request.
Configuration and result models are frozen.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Self, Union

from pydantic import BaseModel, ConfigDict, Field, StrictInt, field_validator, model_validator


DEFAULT_HOST = "su1.3scale.net"

# Metric values go on the wire as decimal integers or pre-rendered strings.
# StrictInt keeps booleans (and floats) out.
UsageValue = Union[StrictInt, str]


# =============================================================================
# Client Configuration
# =============================================================================


class ClientConfig(BaseModel):
    """Connection parameters resolved once per Client."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    provider_key: str = Field(description="Credential identifying the API provider account")
    host: str = Field(default=DEFAULT_HOST, description="Service host name")
    secure: bool = Field(default=False, description="Use https instead of http")
    persistent: bool = Field(default=False, description="Reuse one connection across calls")
    timeout: float = Field(default=30.0, gt=0, description="Transport timeout in seconds")

    @field_validator("provider_key")
    @classmethod
    def validate_provider_key(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("provider_key must not be empty")
        return v

    @field_validator("host")
    @classmethod
    def validate_host(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("host must not be empty")
        return v

    @property
    def scheme(self) -> str:
        return "https" if self.secure else "http"

    @property
    def base_url(self) -> str:
        return f"{self.scheme}://{self.host}"


# =============================================================================
# Request Models
# =============================================================================


class AuthRequest(BaseModel):
    """Parameters of one authorize, oauth_authorize or authrep call.

    Identify the application with ``app_id`` (plus optional ``app_key``) or
    with ``user_key``. ``usage`` maps metric names to increments; ``log``
    carries request/response/code strings for authrep. ``redirect_url`` is
    OAuth-only; authorize and authrep refuse a request that sets it.
    """

    model_config = ConfigDict(extra="forbid")

    app_id: str | None = None
    app_key: str | None = None
    user_key: str | None = None
    service_id: str | None = None
    user_id: str | None = None
    redirect_url: str | None = None
    usage: dict[str, UsageValue] | None = None
    log: dict[str, str] | None = None

    def has_identity(self) -> bool:
        return bool(self.app_id or self.user_key)


class TransactionRecord(BaseModel):
    """One usage transaction sent by ``report``.

    ``timestamp`` may be a datetime or a string already in the service's
    ``YYYY-MM-DD HH:MM:SS +ZZZZ`` form, which is passed through untouched.
    """

    model_config = ConfigDict(extra="forbid")

    app_id: str | None = None
    user_key: str | None = None
    user_id: str | None = None
    timestamp: datetime | str | None = None
    usage: dict[str, UsageValue]
    log: dict[str, str] | None = None

    @model_validator(mode="after")
    def check_identity(self) -> Self:
        if not (self.app_id or self.user_key):
            raise ValueError("transaction requires app_id or user_key")
        return self


# =============================================================================
# Result Models
# =============================================================================


class Period(str, Enum):
    """Rate-limit window granularity."""

    MINUTE = "minute"
    HOUR = "hour"
    DAY = "day"
    WEEK = "week"
    MONTH = "month"
    YEAR = "year"
    ETERNITY = "eternity"


class UsageReport(BaseModel):
    """A metric's consumption against its plan limit for one period."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    metric: str
    period: Period
    period_start: datetime | None = None
    period_end: datetime | None = None
    current_value: int = 0
    max_value: int = 0
    exceeded: bool = False

    @property
    def remaining(self) -> int:
        return max(self.max_value - self.current_value, 0)


class AuthorizeResult(BaseModel):
    """Outcome of authorize, oauth_authorize or authrep.

    ``success`` is False both for a ``<status>`` document with
    ``authorized=false`` (``error_message`` holds the reason) and for an
    ``<error>`` document (``error_code`` and ``error_message`` populated).
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    success: bool
    status_code: int | None = Field(default=None, description="HTTP status of the response")
    plan: str | None = None
    usage_reports: tuple[UsageReport, ...] = ()
    error_code: str | None = None
    error_message: str | None = None
    app_id: str | None = Field(default=None, description="OAuth only: <application><id>")
    app_key: str | None = Field(default=None, description="OAuth only: <application><key>")
    redirect_url: str | None = Field(default=None, description="OAuth only")

    def exceeded_reports(self) -> list[UsageReport]:
        return [report for report in self.usage_reports if report.exceeded]


class ReportResult(BaseModel):
    """Outcome of report."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    success: bool
    status_code: int | None = None
    error_code: str | None = None
    error_message: str | None = None
