"""Python client for the 3scale Service Management API.

Usage example:
    from threescale_client import Client
    client = Client("my-provider-key")
    result = client.authrep(app_id="foo", app_key="bar", usage={"hits": 1})
"""

from threescale_client.client import USER_AGENT, VERSION, Client
from threescale_client.errors import (
    ConfigError,
    FormatError,
    ServerError,
    ThreeScaleError,
    TransportError,
    ValidationError,
)
from threescale_client.models import (
    DEFAULT_HOST,
    AuthorizeResult,
    AuthRequest,
    ClientConfig,
    Period,
    ReportResult,
    TransactionRecord,
    UsageReport,
)
from threescale_client.transport import HttpxTransport, Transport, TransportResponse

__version__ = VERSION

__all__ = [
    "Client",
    "ClientConfig",
    "AuthRequest",
    "TransactionRecord",
    "AuthorizeResult",
    "ReportResult",
    "UsageReport",
    "Period",
    "Transport",
    "TransportResponse",
    "HttpxTransport",
    "ThreeScaleError",
    "ValidationError",
    "FormatError",
    "ServerError",
    "TransportError",
    "ConfigError",
    "DEFAULT_HOST",
    "USER_AGENT",
    "VERSION",
]
