"""Parameter Encoder - flattens call parameters into ordered wire pairs.

Nested mappings are rendered with bracket notation (``usage[hits]``,
``transactions[0][usage][hits]``). Keys keep the order in which they are
built, so encoding the same request twice yields the same bytes. Keys and
values are percent-encoded individually: ``%20`` for spaces in query strings,
``+`` in form bodies.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from datetime import datetime
from typing import Any
from urllib.parse import quote, quote_plus

from threescale_client.errors import ValidationError
from threescale_client.models import AuthRequest, TransactionRecord


Pairs = list[tuple[str, str]]

# authrep consumes one hit when the caller does not say otherwise
DEFAULT_USAGE: dict[str, int] = {"hits": 1}

TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S %z"

# Identity fields lead, in this order, right after provider_key
_AUTH_FIELDS = ("app_id", "user_key", "app_key", "service_id", "user_id", "redirect_url")
_TRANSACTION_FIELDS = ("app_id", "user_key", "user_id", "timestamp")


def format_timestamp(value: datetime) -> str:
    """Render a datetime the way the service expects.

    Naive values are local time and go out with the host's UTC offset.
    """
    if value.tzinfo is None:
        value = value.astimezone()
    return value.strftime(TIMESTAMP_FORMAT)


def render_value(value: Any) -> str:
    """Coerce a scalar parameter value to its wire string."""
    if isinstance(value, bool):
        raise ValidationError(f"boolean values cannot be encoded: {value!r}")
    if isinstance(value, datetime):
        return format_timestamp(value)
    return str(value)


def flatten_params(params: Mapping[str, Any], prefix: str = "") -> Pairs:
    """Flatten nested mappings into ``(key, value)`` pairs.

    ``None`` values are dropped. Mapping iteration order is preserved.

    Example:
        >>> flatten_params({"provider_key": "k", "usage": {"hits": 1}})
        [('provider_key', 'k'), ('usage[hits]', '1')]
    """
    pairs: Pairs = []
    for key, value in params.items():
        if value is None:
            continue
        name = f"{prefix}[{key}]" if prefix else str(key)
        if isinstance(value, Mapping):
            pairs.extend(flatten_params(value, name))
        else:
            pairs.append((name, render_value(value)))
    return pairs


def build_auth_params(
    provider_key: str,
    auth: AuthRequest,
    default_usage: Mapping[str, Any] | None = None,
) -> Pairs:
    """Build the query pairs for authorize, oauth_authorize and authrep.

    Args:
        provider_key: Always emitted first.
        auth: The call's parameters.
        default_usage: Used when ``auth.usage`` is absent (authrep passes
            DEFAULT_USAGE; the plain authorize calls pass nothing).
    """
    params: dict[str, Any] = {"provider_key": provider_key}
    for field in _AUTH_FIELDS:
        params[field] = getattr(auth, field)
    params["usage"] = auth.usage if auth.usage is not None else default_usage
    params["log"] = auth.log
    return flatten_params(params)


def _transaction_params(transaction: TransactionRecord) -> dict[str, Any]:
    params: dict[str, Any] = {field: getattr(transaction, field) for field in _TRANSACTION_FIELDS}
    params["usage"] = transaction.usage
    params["log"] = transaction.log
    return params


def build_report_params(
    provider_key: str,
    transactions: Sequence[TransactionRecord],
    service_id: str | None = None,
) -> Pairs:
    """Build the form pairs for report.

    Each transaction is prefixed with its position (``transactions[i][...]``)
    in input order; ``provider_key`` is appended once, last.

    Raises:
        ValidationError: If *transactions* is empty.
    """
    if not transactions:
        raise ValidationError("report requires at least one transaction")

    params: dict[str, Any] = {
        "transactions": {
            str(index): _transaction_params(transaction)
            for index, transaction in enumerate(transactions)
        },
        "service_id": service_id,
        "provider_key": provider_key,
    }
    return flatten_params(params)


def encode_query(pairs: Pairs) -> str:
    """Encode pairs as a URL query string (spaces as ``%20``)."""
    return "&".join(f"{quote(key, safe='')}={quote(value, safe='')}" for key, value in pairs)


def encode_form(pairs: Pairs) -> str:
    """Encode pairs as an ``application/x-www-form-urlencoded`` body (spaces as ``+``)."""
    return "&".join(
        f"{quote_plus(key, safe='')}={quote_plus(value, safe='')}" for key, value in pairs
    )
