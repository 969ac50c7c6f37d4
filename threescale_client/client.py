"""Client - authorize, oauth_authorize, authrep and report against 3scale.

Every call follows the same protocol: encode the parameters, send exactly one
request through the transport, interpret the response. HTTP status decides
the outcome the same way for all four calls:

    2xx                      parsed result (``success`` from the document)
    4xx                      parsed result with ``success=False``
    anything else, or no
    response at all          ServerError

There are no retries; the caller owns retry policy.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from pathlib import Path
from typing import Any

from pydantic import ValidationError as PydanticValidationError

from threescale_client.config_loader import config_from_env, load_client_config
from threescale_client.errors import ServerError, TransportError, ValidationError
from threescale_client.models import (
    DEFAULT_HOST,
    AuthorizeResult,
    AuthRequest,
    ClientConfig,
    ReportResult,
    TransactionRecord,
)
from threescale_client.params import (
    DEFAULT_USAGE,
    build_auth_params,
    build_report_params,
    encode_form,
    encode_query,
)
from threescale_client.transport import HttpxTransport, Transport, TransportResponse
from threescale_client.xml_response import parse_authorize_response, parse_report_response


logger = logging.getLogger(__name__)

# pyproject.toml reads the package version from here
VERSION = "1.0.0"
USER_AGENT = f"plugin-python-v{VERSION}"

AUTHORIZE_PATH = "/transactions/authorize.xml"
OAUTH_AUTHORIZE_PATH = "/transactions/oauth_authorize.xml"
AUTHREP_PATH = "/transactions/authrep.xml"
REPORT_PATH = "/transactions.xml"

FORM_CONTENT_TYPE = "application/x-www-form-urlencoded"

AuthInput = AuthRequest | Mapping[str, Any] | None
TransactionInput = TransactionRecord | Mapping[str, Any]


def _is_success(status_code: int) -> bool:
    return 200 <= status_code < 300


def _is_business_failure(status_code: int) -> bool:
    return 400 <= status_code < 500


class Client:
    """Client for the 3scale Service Management API.

    Usage:
        client = Client("my-provider-key")
        result = client.authorize(app_id="foo", app_key="secret")
        if not result.success:
            print(result.error_code, result.error_message)

    Or with context manager:
        with Client("my-provider-key", persistent=True) as client:
            client.authrep(user_key="abc", usage={"hits": 1})

    Thread safety: the configuration is immutable and no per-call state is
    kept, so concurrent calls are safe exactly when the transport is. The
    default HttpxTransport is; for a custom transport that is not, serialize
    calls or use one Client per thread.
    """

    def __init__(
        self,
        provider_key: str | None = None,
        *,
        host: str = DEFAULT_HOST,
        secure: bool = False,
        persistent: bool = False,
        timeout: float = 30.0,
        transport: Transport | None = None,
        config: ClientConfig | None = None,
    ) -> None:
        """Initialize the client.

        Args:
            provider_key: Provider account credential (required unless *config* is given).
            host: Service host name.
            secure: Use https.
            persistent: Reuse one connection across calls.
            timeout: Transport timeout in seconds.
            transport: Transport to send requests through. When omitted an
                HttpxTransport is built from the configuration and closed
                by ``close()``. Injected transports are never closed here.
            config: Prebuilt configuration; the individual options are ignored.

        Raises:
            ValidationError: If provider_key is missing or empty, or an option is invalid.
        """
        if config is None:
            try:
                config = ClientConfig(
                    provider_key=provider_key,
                    host=host,
                    secure=secure,
                    persistent=persistent,
                    timeout=timeout,
                )
            except PydanticValidationError as e:
                raise ValidationError(f"Invalid client configuration: {e}") from e

        self._config = config
        self._owns_transport = transport is None
        if transport is None:
            transport = HttpxTransport(
                config.base_url,
                timeout=config.timeout,
                persistent=config.persistent,
            )
        self._transport: Transport = transport

    @classmethod
    def from_config(cls, config: ClientConfig, transport: Transport | None = None) -> "Client":
        return cls(config=config, transport=transport)

    @classmethod
    def from_env(cls, transport: Transport | None = None) -> "Client":
        """Build a client from THREESCALE_* environment variables."""
        return cls(config=config_from_env(), transport=transport)

    @classmethod
    def from_config_file(cls, path: Path, transport: Transport | None = None) -> "Client":
        """Build a client from a YAML configuration file."""
        return cls(config=load_client_config(path), transport=transport)

    def __enter__(self) -> "Client":
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.close()

    def close(self) -> None:
        if self._owns_transport:
            self._transport.close()

    @property
    def config(self) -> ClientConfig:
        return self._config

    @property
    def provider_key(self) -> str:
        return self._config.provider_key

    @property
    def host(self) -> str:
        return self._config.host

    @property
    def secure(self) -> bool:
        return self._config.secure

    @property
    def transport(self) -> Transport:
        return self._transport

    # -------------------------------------------------------------------------
    # Public calls
    # -------------------------------------------------------------------------

    def authorize(self, auth: AuthInput = None, **fields: Any) -> AuthorizeResult:
        """Check whether an application may call the API.

        Parameters come from *auth* (an AuthRequest or mapping) and/or
        keyword arguments, e.g. ``authorize(app_id="foo", app_key="bar")``.

        Raises:
            ValidationError: If neither app_id nor user_key is given, or
                redirect_url is set (it belongs to oauth_authorize).
            FormatError: If the response document cannot be parsed.
            ServerError: On 5xx, unexpected status or transport failure.
        """
        request = self._auth_request(auth, fields, require_identity=True)
        return self._authorize_call(AUTHORIZE_PATH, build_auth_params(self.provider_key, request))

    def oauth_authorize(self, auth: AuthInput = None, **fields: Any) -> AuthorizeResult:
        """Like authorize, for OAuth applications.

        The result additionally carries the application's ``app_id``,
        ``app_key`` (its secret) and ``redirect_url``.
        """
        request = self._auth_request(auth, fields, require_identity=True, oauth=True)
        return self._authorize_call(
            OAUTH_AUTHORIZE_PATH, build_auth_params(self.provider_key, request)
        )

    def authrep(self, auth: AuthInput = None, **fields: Any) -> AuthorizeResult:
        """Authorize and report in one round trip.

        Usage defaults to ``{"hits": 1}`` when not given.
        """
        request = self._auth_request(auth, fields, require_identity=False)
        return self._authorize_call(
            AUTHREP_PATH, build_auth_params(self.provider_key, request, DEFAULT_USAGE)
        )

    def report(self, *transactions: TransactionInput, service_id: str | None = None) -> ReportResult:
        """Report usage for one or more transactions.

        Raises:
            ValidationError: If no transactions are given or one is invalid.
            FormatError: If a failure response cannot be parsed.
            ServerError: On 5xx, unexpected status or transport failure.
        """
        if not transactions:
            raise ValidationError("report requires at least one transaction")

        records = [self._transaction(transaction) for transaction in transactions]
        pairs = build_report_params(self.provider_key, records, service_id=service_id)
        response = self._send(
            "POST",
            REPORT_PATH,
            body=encode_form(pairs).encode("ascii"),
            content_type=FORM_CONTENT_TYPE,
        )

        status = response.status_code
        if _is_success(status):
            # Success bodies are empty; nothing to parse
            return ReportResult(success=True, status_code=status)
        if _is_business_failure(status):
            result = parse_report_response(response.body)
            return result.model_copy(update={"success": False, "status_code": status})
        raise self._server_error(response, REPORT_PATH)

    # -------------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------------

    def _auth_request(
        self,
        auth: AuthInput,
        fields: dict[str, Any],
        require_identity: bool,
        oauth: bool = False,
    ) -> AuthRequest:
        if isinstance(auth, AuthRequest):
            data: dict[str, Any] = auth.model_dump(exclude_none=True)
        else:
            data = dict(auth or {})
        data.update(fields)

        try:
            request = AuthRequest.model_validate(data)
        except PydanticValidationError as e:
            raise ValidationError(f"Invalid auth parameters: {e}") from e

        if require_identity and not request.has_identity():
            raise ValidationError("app_id or user_key is required")
        if request.redirect_url is not None and not oauth:
            raise ValidationError("redirect_url is only accepted by oauth_authorize")
        return request

    def _transaction(self, transaction: TransactionInput) -> TransactionRecord:
        if isinstance(transaction, TransactionRecord):
            return transaction
        try:
            return TransactionRecord.model_validate(dict(transaction))
        except PydanticValidationError as e:
            raise ValidationError(f"Invalid transaction: {e}") from e

    def _headers(self, content_type: str | None = None) -> dict[str, str]:
        headers = {
            "X-3scale-User-Agent": USER_AGENT,
            "Host": self._config.host,
            "Accept": "application/xml",
        }
        if content_type:
            headers["Content-Type"] = content_type
        return headers

    def _send(
        self,
        method: str,
        path: str,
        query: str = "",
        body: bytes | None = None,
        content_type: str | None = None,
    ) -> TransportResponse:
        url = f"{path}?{query}" if query else path
        try:
            response = self._transport.send(method, url, self._headers(content_type), body)
        except TransportError as e:
            logger.warning("%s %s failed: %s", method, path, e)
            raise ServerError(f"Transport failure on {method} {path}: {e}") from e

        # Only the path is logged; the query string carries the provider key
        logger.debug("%s %s -> %d", method, path, response.status_code)
        return response

    def _authorize_call(self, path: str, pairs: list[tuple[str, str]]) -> AuthorizeResult:
        response = self._send("GET", path, query=encode_query(pairs))

        status = response.status_code
        if _is_success(status):
            result = parse_authorize_response(response.body)
            return result.model_copy(update={"status_code": status})
        if _is_business_failure(status):
            result = parse_authorize_response(response.body)
            return result.model_copy(update={"success": False, "status_code": status})
        raise self._server_error(response, path)

    def _server_error(self, response: TransportResponse, path: str) -> ServerError:
        logger.warning("Server error %d on %s", response.status_code, path)
        return ServerError(
            f"Server error {response.status_code} on {path}: {response.body[:200]!r}",
            status_code=response.status_code,
            body=response.body,
        )
