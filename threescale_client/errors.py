"""Error taxonomy for the 3scale client.

Business failures (rate limits, unknown applications, invalid keys) are NOT
errors here: they come back as results with ``success=False``. Exceptions are
reserved for caller misuse, protocol violations and server/transport failures.
"""

from __future__ import annotations


class ThreeScaleError(Exception):
    """Base class for all client errors."""


class ValidationError(ThreeScaleError, ValueError):
    """Raised on caller misuse, before any network call is made."""


class FormatError(ThreeScaleError):
    """Raised when the service returns a document that cannot be interpreted."""


class TransportError(ThreeScaleError):
    """Raised by a transport when the request could not be completed."""


class ServerError(ThreeScaleError):
    """Raised on 5xx responses, unexpected statuses and transport failures.

    Distinct from a rejected authorization: callers should retry or alert,
    never read this as a rate-limit decision.
    """

    def __init__(self, message: str, status_code: int | None = None, body: bytes = b"") -> None:
        super().__init__(message)
        self.status_code = status_code
        self.body = body


class ConfigError(ThreeScaleError):
    """Raised when configuration loading fails."""


__all__ = [
    "ThreeScaleError",
    "ValidationError",
    "FormatError",
    "TransportError",
    "ServerError",
    "ConfigError",
]
